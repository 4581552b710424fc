"""
Shared decision logic for the create, update and destroy events.

We refer to times in the lifecycle of an entity as "events":
- create: after the entity is first saved
- update: after a save that changed it, after a touch, and for
  `update_columns` (which brings its own change set)
- destroy: before the entity is removed

Each event turns the entity's dirty-tracking state into a version payload.
The label stored in the `event` column can be overridden per entity with
`entity.version_event`.
"""
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Union

from versiontrail.config import TrailConfig
from versiontrail.context import RequestContext
from versiontrail.entity import TrackedEntity
from versiontrail.options import Computed, Constant, MethodRef, VersionOptions
from versiontrail.serializers.attribute import ObjectAttribute, ObjectChangesAttribute, slot_info


class BaseEvent(ABC):
    """
    Base class for event classifiers.

    Args:
        record: The entity being versioned
        in_after_callback: True when the event runs after the mutation was
            committed; selects which change set and which "before" values
            are read from the entity
        store: The version store the payload is destined for
        context: Request context supplying the actor and request metadata
        config: Trail-wide configuration (serializer, diff adapter)
    """
    default_event: str = ""

    def __init__(
        self,
        record: TrackedEntity,
        in_after_callback: bool,
        store: Any,
        context: Optional[RequestContext] = None,
        config: Optional[TrailConfig] = None,
    ) -> None:
        self._record = record
        self._in_after_callback = in_after_callback
        self._store = store
        self._context = context or RequestContext()
        self._config = config or TrailConfig()
        self._logger = logging.getLogger("EventClassifier")

    @property
    def options(self) -> VersionOptions:
        return type(self._record).version_options or VersionOptions()

    @property
    def entity_type(self) -> type:
        return type(self._record).base_class()

    def event_name(self) -> str:
        return self._record.version_event or self.default_event

    @abstractmethod
    def data(self) -> Dict[str, Any]:
        """Return the attributes of the nascent version."""

    ##############################
    # Notability
    ##############################

    def changed_notably(self) -> bool:
        """
        Whether this event should produce a version.

        A change to a timestamp alone counts, unless an ignored attribute
        changed too, in which case something besides timestamps must have
        changed.
        """
        notable = self.notably_changed()
        if self._ignored_attr_has_changed():
            timestamps = set(type(self._record).timestamp_attributes_for_update())
            result = any(name not in timestamps for name in notable)
        else:
            result = bool(notable)
        self._logger.debug(f"{self._record!r} changed notably: {result} (notable={notable})")
        return result

    def notably_changed(self) -> List[str]:
        only = self._active_names(self.options.only, self.options.only_if)
        changed = self._changed_and_not_ignored()
        if not only:
            return changed
        return [name for name in changed if name in only]

    def _changed_and_not_ignored(self) -> List[str]:
        ignore = self._active_names(self.options.ignore, self.options.ignore_if)
        skip = set(self.options.skip)
        return [
            name for name in self._changed_in_latest_version()
            if name not in ignore and name not in skip
        ]

    def _active_names(self, names: List[str], conditions: Dict[str, Any]) -> set:
        active = set(names)
        for attr, condition in conditions.items():
            if callable(condition) and condition(self._record):
                active.add(attr)
        return active

    def _ignored_attr_has_changed(self) -> bool:
        """True if an attribute listed in `ignore` (or `skip`) has changed."""
        ignored = self._active_names(self.options.ignore, self.options.ignore_if) | set(self.options.skip)
        return bool(ignored) and any(name in ignored for name in self._changed_in_latest_version())

    ##############################
    # Change sets
    ##############################

    def _changed_in_latest_version(self) -> List[str]:
        return self._record.changed_attribute_names(after_save=self._in_after_callback)

    def _changes_in_latest_version(self) -> Dict[str, List[Any]]:
        return self._record.change_set(after_save=self._in_after_callback)

    def _attribute_changed_in_latest_version(self, name: str) -> bool:
        if self._in_after_callback:
            return self._record.saved_change_to_attribute(name)
        return self._record.attribute_changed(name)

    def changes(self) -> Dict[str, List[Any]]:
        """The notable subset of this event's change set, `{name: [before, after]}`."""
        notable = set(self.notably_changed())
        return {
            name: pair for name, pair in self._changes_in_latest_version().items()
            if name in notable
        }

    ##############################
    # "Before" values
    ##############################

    def _attribute_in_previous_version(self, name: str, is_touch: bool) -> Any:
        if self._in_after_callback and not is_touch:
            # The value before the save that just happened.
            return self._record.attribute_before_last_save(name)
        # Destroy, touch, or an event evaluated before the save was committed.
        return self._record.attribute_in_database(name)

    def _attributes_before_change(self, is_touch: bool) -> Dict[str, Any]:
        return {
            name: self._attribute_in_previous_version(name, is_touch)
            for name in self._record.column_names()
        }

    def object_attrs(self, is_touch: bool = False) -> Dict[str, Any]:
        """The entity's attributes as of before this event, minus skipped ones."""
        skip = set(self.options.skip)
        return {
            name: value for name, value in self._attributes_before_change(is_touch).items()
            if name not in skip
        }

    ##############################
    # Metadata
    ##############################

    def _merge_metadata_into(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Add model `meta` values, then request metadata (which wins on collisions)."""
        for key, value in self.options.meta.items():
            data[key] = self._model_metadatum(value, data["event"])
        data.update(self._context.current_context_metadata())
        return data

    def _model_metadatum(self, value: Union[Constant, Computed, MethodRef], event: str) -> Any:
        if isinstance(value, Computed):
            return value(self._record)
        if isinstance(value, MethodRef):
            name = value.name
            if (
                event != "create"
                and self._record.has_attribute(name)
                and self._attribute_changed_in_latest_version(name)
            ):
                # Record the value belonging to the version being closed out.
                return self._attribute_in_previous_version(name, False)
            attr = getattr(self._record, name)
            return attr() if callable(attr) else attr
        return value.value

    ##############################
    # Slots
    ##############################

    def _record_object(self) -> bool:
        return slot_info(self._store, self.entity_type).has_object

    def _record_object_changes(self) -> bool:
        return self.options.save_changes and slot_info(self._store, self.entity_type).has_object_changes

    def _recordable_object(self, is_touch: bool) -> Union[Dict[str, Any], str]:
        serializer = ObjectAttribute(self.entity_type, self._store, self._config.serializer)
        return serializer.serialize(self.object_attrs(is_touch))

    def _recordable_object_changes(self, changes: Dict[str, List[Any]]) -> Union[Dict[str, Any], str]:
        serializer = ObjectChangesAttribute(self.entity_type, self._store, self._config.serializer)
        serialized = serializer.serialize_changes(changes)
        adapter = self._config.object_changes_adapter
        if adapter is not None:
            serialized = adapter.diff(serialized)
        return serializer.encode(serialized)

    def _base_data(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "event": self.event_name(),
            "whodunnit": self._context.current_actor(),
        }
        if "updated_at" in type(self._record).model_fields:
            data["created_at"] = self._record.updated_at  # type: ignore[attr-defined]
        return data
