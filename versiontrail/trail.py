"""
Lifecycle glue: saving, touching, updating and destroying tracked entities
while recording versions.

Classification happens inline with each operation. If building the version
payload fails (for example a metadata method raises), the operation is
rolled back and the exception propagates: an entity is never mutated
without the version that should record it.
"""
import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional

from versiontrail.config import TrailConfig
from versiontrail.context import RequestContext
from versiontrail.entity import TrackedEntity
from versiontrail.events import CreateEvent, DestroyEvent, UpdateEvent
from versiontrail.registry import EntityTypeRegistry
from versiontrail.reifier import Reifier
from versiontrail.serializers.attribute import ObjectChangesAttribute
from versiontrail.storage import InMemoryEntityStorage, VersionStore
from versiontrail.version import StoredVersion


def _now() -> datetime:
    return datetime.now(timezone.utc)


class VersionTrail:
    """
    Records versions for tracked entities and reads them back.

    Args:
        version_store: Where version payloads are persisted
        entity_store: Live entity storage (a fresh in-memory one by default)
        config: Trail-wide configuration
    """

    def __init__(
        self,
        version_store: VersionStore,
        entity_store: Optional[InMemoryEntityStorage] = None,
        config: Optional[TrailConfig] = None,
    ) -> None:
        self.version_store = version_store
        self.entity_store = entity_store if entity_store is not None else InMemoryEntityStorage()
        self.config = config or TrailConfig()
        self._logger = logging.getLogger("VersionTrail")

    ##############################
    # Recording switches
    ##############################

    def enabled_for(self, entity: TrackedEntity, event: str, context: RequestContext) -> bool:
        options = type(entity).version_options
        if options is None or not self.config.enabled or not context.enabled:
            return False
        return options.records(event, entity)

    @contextmanager
    def _transaction(self, entity: TrackedEntity) -> Iterator[None]:
        entity_state = entity.capture_state()
        items = self.entity_store.snapshot()
        try:
            yield
        except Exception:
            self._logger.warning(f"Rolling back {type(entity).__name__} operation after a recording failure")
            entity.restore_state(entity_state)
            self.entity_store.restore(items)
            raise

    def _insert(self, entity: TrackedEntity, data: Dict[str, Any]) -> Any:
        payload = {
            "item_type": type(entity).base_class().__name__,
            "item_id": entity.id,
            **data,
        }
        version = self.version_store.insert(payload)
        self._logger.info(f"Recorded {payload['event']} version for {payload['item_type']}#{entity.id}")
        return version

    ##############################
    # Lifecycle operations
    ##############################

    def save(self, entity: TrackedEntity, context: Optional[RequestContext] = None) -> TrackedEntity:
        """Create or update `entity`, recording a version when appropriate."""
        context = context or RequestContext()
        if entity.destroyed:
            raise ValueError(f"Cannot save destroyed {entity!r}")
        if entity.new_record:
            return self._create(entity, context)
        return self._update(entity, context)

    def _create(self, entity: TrackedEntity, context: RequestContext) -> TrackedEntity:
        now = _now()
        with self._transaction(entity):
            for name in type(entity).timestamp_attributes_for_create() + type(entity).timestamp_attributes_for_update():
                if getattr(entity, name) is None:
                    setattr(entity, name, now)
            self.entity_store.insert(entity)
            entity.commit_changes()
            if self.enabled_for(entity, "create", context):
                data = CreateEvent(entity, True, self.version_store, context, self.config).data()
                self._insert(entity, data)
        return entity

    def _update(self, entity: TrackedEntity, context: RequestContext) -> TrackedEntity:
        if not entity.change_set():
            self._logger.debug(f"{entity!r} has no pending changes, nothing to save")
            return entity
        with self._transaction(entity):
            for name in type(entity).timestamp_attributes_for_update():
                if not entity.attribute_changed(name):
                    setattr(entity, name, _now())
            entity.commit_changes()
            self.entity_store.update(entity)
            if self.enabled_for(entity, "update", context):
                event = UpdateEvent(entity, True, self.version_store, context, self.config)
                if event.changed_notably():
                    self._insert(entity, event.data())
        return entity

    def touch(self, entity: TrackedEntity, context: Optional[RequestContext] = None) -> TrackedEntity:
        """Refresh the update timestamps of a persisted entity."""
        context = context or RequestContext()
        timestamps = type(entity).timestamp_attributes_for_update()
        if not entity.persisted:
            raise ValueError(f"Cannot touch {entity!r}: it is not persisted")
        if not timestamps:
            raise ValueError(f"Cannot touch {entity!r}: {type(entity).__name__} has no update timestamp")
        with self._transaction(entity):
            now = _now()
            for name in timestamps:
                setattr(entity, name, now)
            entity.commit_columns(timestamps, as_saved_changes=True)
            self.entity_store.update(entity)
            if self.enabled_for(entity, "touch", context):
                event = UpdateEvent(entity, True, self.version_store, context, self.config, is_touch=True)
                if event.changed_notably():
                    self._insert(entity, event.data())
        return entity

    def update_columns(
        self,
        entity: TrackedEntity,
        context: Optional[RequestContext] = None,
        **values: Any,
    ) -> TrackedEntity:
        """
        Write `values` directly, bypassing timestamps and dirty tracking.

        The change set is built here, so a version is always recorded when
        recording is enabled.
        """
        context = context or RequestContext()
        if not entity.persisted:
            raise ValueError(f"Cannot update columns on {entity!r}: it is not persisted")
        for name in values:
            if not entity.has_attribute(name):
                raise ValueError(f"{type(entity).__name__} has no column '{name}'")
        changes: Dict[str, List[Any]] = {
            name: [entity.attribute_in_database(name), value] for name, value in values.items()
        }
        with self._transaction(entity):
            data = None
            if self.enabled_for(entity, "update", context):
                # Evaluated before the write so the snapshot holds the old values.
                event = UpdateEvent(entity, False, self.version_store, context, self.config, force_changes=changes)
                data = event.data()
            for name, value in values.items():
                setattr(entity, name, value)
            entity.commit_columns(list(values))
            self.entity_store.update(entity)
            if data is not None:
                self._insert(entity, data)
        return entity

    def destroy(self, entity: TrackedEntity, context: Optional[RequestContext] = None) -> TrackedEntity:
        """Record a destroy version, then remove the entity."""
        context = context or RequestContext()
        if not entity.persisted:
            raise ValueError(f"Cannot destroy {entity!r}: it is not persisted")
        with self._transaction(entity):
            if self.enabled_for(entity, "destroy", context):
                self._insert(entity, DestroyEvent(entity, False, self.version_store, context, self.config).data())
            self.entity_store.delete(entity)
            entity.mark_destroyed()
        return entity

    ##############################
    # Reading versions
    ##############################

    def versions_for(self, entity: TrackedEntity) -> List[StoredVersion]:
        return self.version_store.versions_for(type(entity).base_class().__name__, entity.id)

    def reifier(self) -> Reifier:
        return Reifier(self.version_store, self.entity_store, self.config)

    def reify(self, version: StoredVersion) -> Optional[TrackedEntity]:
        return self.reifier().reify(version)

    def version_at(self, entity: TrackedEntity, when: datetime) -> Optional[TrackedEntity]:
        """
        The entity as it was at `when`.

        The first version recorded after `when` holds the state that was
        current at `when`. If there is none, the entity has not changed
        since, and the live entity is returned.
        """
        if when.tzinfo is None:
            when = when.replace(tzinfo=timezone.utc)
        for version in self.versions_for(entity):
            created_at = version.created_at
            if created_at is not None and created_at.tzinfo is None:
                created_at = created_at.replace(tzinfo=timezone.utc)
            if created_at is not None and created_at > when:
                return self.reify(version)
        return None if entity.destroyed else entity

    def changeset(self, version: StoredVersion) -> Dict[str, List[Any]]:
        """Decode the `object_changes` of a version, with typed values restored."""
        adapter = self.config.object_changes_adapter
        if adapter is not None and hasattr(adapter, "load_changeset"):
            return adapter.load_changeset(version)
        if getattr(version, "object_changes", None) is None:
            return {}
        entity_type = EntityTypeRegistry.resolve(version.item_type)
        return ObjectChangesAttribute(entity_type, self.version_store, self.config.serializer).deserialize(
            version.object_changes
        )
