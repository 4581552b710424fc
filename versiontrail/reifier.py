"""
Reconstruction of entities from stored version snapshots.

Normally the item a version belongs to can be found through `item_type` and
`item_id`, but that fails once the item is destroyed, and for single table
inheritance `item_type` names only the base type. So the type is resolved
from the snapshot itself: if the decoded attributes carry a discriminator
value, that names the concrete class; otherwise `item_type` does.
"""
import logging
from typing import Any, Dict, Optional, Type

from versiontrail.config import TrailConfig
from versiontrail.entity import TrackedEntity
from versiontrail.errors import UnknownAttributeError
from versiontrail.registry import EntityTypeRegistry
from versiontrail.serializers.attribute import CastAttributeSerializer, decode_object
from versiontrail.storage import InMemoryEntityStorage
from versiontrail.version import StoredVersion

class Reifier:
    """
    Builds detached entity instances from stored versions.

    Args:
        store: The version store the versions were read from
        entity_store: Live entities, used to copy current has-one associations
        config: Trail config providing the text serializer
        registry: Type registry used to resolve stored type names
    """

    def __init__(
        self,
        store: Any,
        entity_store: Optional[InMemoryEntityStorage] = None,
        config: Optional[TrailConfig] = None,
        registry: Type[EntityTypeRegistry] = EntityTypeRegistry,
    ) -> None:
        self._store = store
        self._entity_store = entity_store
        self._config = config or TrailConfig()
        self._registry = registry
        self._logger = logging.getLogger("Reifier")

    def reify(self, version: StoredVersion) -> Optional[TrackedEntity]:
        """
        Return the entity as it was when `version` was recorded.

        Returns None when the version has no `object` (create events, or a
        store without an object slot). The returned instance is never saved.

        Raises:
            TypeResolutionError: If the stored type name is not registered
            CorruptSnapshotError: If the stored object cannot be decoded
        """
        stored = getattr(version, "object", None)
        if stored is None:
            self._logger.debug(f"Version {version.id} has no object, nothing to reify")
            return None

        item_class = self._registry.resolve(version.item_type)
        raw = decode_object(stored, item_class, self._store, self._config.serializer) or {}

        class_name = self._concrete_type_name(item_class, raw) or version.item_type
        klass = self._registry.resolve(class_name)
        model = self._registry.build(class_name)
        self._logger.info(f"Reifying version {version.id} as {klass.__name__}")

        attributes = CastAttributeSerializer(klass).deserialize(raw)
        self._assign_attributes(model, attributes, version)
        self._restore_has_one(model, klass, version)
        return model

    def _concrete_type_name(self, item_class: Type[TrackedEntity], attributes: Dict[str, Any]) -> Optional[str]:
        field = item_class.discriminator_attribute_name()
        if not field:
            return None
        value = attributes.get(field)
        return str(value) if value else None

    def _assign_attributes(self, model: TrackedEntity, attributes: Dict[str, Any], version: StoredVersion) -> None:
        for name, value in attributes.items():
            try:
                model.set_attribute(name, value)
            except UnknownAttributeError:
                self._logger.warning(
                    f"Attribute {name} does not exist on {version.item_type} (Version id: {version.id})."
                )

    def _restore_has_one(self, model: TrackedEntity, klass: Type[TrackedEntity], version: StoredVersion) -> None:
        # A destroyed item's associations cannot be recovered this way.
        if self._entity_store is None:
            return
        item = self._entity_store.find(version.item_type, version.item_id)
        if item is None:
            return
        for association in klass.has_one:
            setattr(model, association, getattr(item, association, None))
            self._logger.debug(f"Copied has-one association '{association}' from live {item!r}")
