"""
Registry of entity types, keyed by the names stored in version rows.

Version rows store type names (`item_type`, and the discriminator inside the
serialized object). Resolving those names goes through this explicit registry
instead of importing or evaluating anything dynamically. Entity classes are
registered automatically when they are defined.
"""
import logging
from typing import Any, Callable, Dict, List, Optional, Type, TYPE_CHECKING

from versiontrail.errors import TypeResolutionError

if TYPE_CHECKING:
    from versiontrail.entity import TrackedEntity

EntityFactory = Callable[[], "TrackedEntity"]


class EntityTypeRegistry:
    """
    Static registry mapping type names to entity classes and factories.

    A factory builds an empty, unvalidated instance; the default factory is
    the class's `model_construct`.
    """
    _logger = logging.getLogger("EntityTypeRegistry")
    _types: Dict[str, Type["TrackedEntity"]] = {}
    _factories: Dict[str, EntityFactory] = {}

    @classmethod
    def register(
        cls,
        entity_type: Type["TrackedEntity"],
        name: Optional[str] = None,
        factory: Optional[EntityFactory] = None,
    ) -> None:
        """Register an entity type under `name` (defaults to the class name)."""
        type_name = name or entity_type.__name__
        if type_name in cls._types and cls._types[type_name] is not entity_type:
            cls._logger.debug(f"Replacing registered type {type_name}")
        cls._types[type_name] = entity_type
        cls._factories[type_name] = factory or entity_type.model_construct
        cls._logger.debug(f"Registered entity type {type_name}")

    @classmethod
    def unregister(cls, name: str) -> None:
        cls._types.pop(name, None)
        cls._factories.pop(name, None)

    @classmethod
    def is_registered(cls, name: str) -> bool:
        return name in cls._types

    @classmethod
    def resolve(cls, name: Optional[str]) -> Type["TrackedEntity"]:
        """
        Return the entity class registered under `name`.

        Raises:
            TypeResolutionError: If nothing is registered under the name
        """
        if not name or name not in cls._types:
            raise TypeResolutionError(str(name))
        return cls._types[name]

    @classmethod
    def build(cls, name: str) -> "TrackedEntity":
        """Build an empty instance of the type registered under `name`."""
        cls.resolve(name)
        return cls._factories[name]()

    @classmethod
    def names(cls) -> List[str]:
        return sorted(cls._types)

    @classmethod
    def get_registry_status(cls) -> Dict[str, Any]:
        return {"registered_types": len(cls._types)}
