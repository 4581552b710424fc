"""
Exception types raised while recording and reifying versions.
"""


class VersionTrailError(Exception):
    """Base class for all versiontrail errors."""


class UnknownAttributeError(VersionTrailError, AttributeError):
    """Raised when assigning an attribute the entity type does not declare."""

    def __init__(self, entity_type: str, attribute: str) -> None:
        self.entity_type = entity_type
        self.attribute = attribute
        super().__init__(f"Attribute {attribute} does not exist on {entity_type}")


class TypeResolutionError(VersionTrailError, LookupError):
    """Raised when a stored type name has no registered entity type."""

    def __init__(self, type_name: str) -> None:
        self.type_name = type_name
        super().__init__(f"No entity type registered under the name '{type_name}'")


class CorruptSnapshotError(VersionTrailError, ValueError):
    """Raised when a stored object or object_changes payload cannot be decoded."""
