"""
Classifier for the update event, including touches and `update_columns`.
"""
from typing import Any, Dict, List, Optional

from versiontrail.config import TrailConfig
from versiontrail.context import RequestContext
from versiontrail.entity import TrackedEntity
from versiontrail.events.base import BaseEvent


class UpdateEvent(BaseEvent):
    """
    A change to an existing entity.

    Args:
        is_touch: True for timestamp-only refreshes; the snapshot then uses
            committed values because no finer "before" is available
        force_changes: Change set supplied by the caller when dirty tracking
            was bypassed (`update_columns`); replaces the computed diff and
            skips notability filtering, though `skip` attributes are still
            left out
    """
    default_event = "update"

    def __init__(
        self,
        record: TrackedEntity,
        in_after_callback: bool,
        store: Any,
        context: Optional[RequestContext] = None,
        config: Optional[TrailConfig] = None,
        is_touch: bool = False,
        force_changes: Optional[Dict[str, List[Any]]] = None,
    ) -> None:
        super().__init__(record, in_after_callback, store, context, config)
        self._is_touch = is_touch
        self._forced = force_changes is not None
        if force_changes is not None:
            skip = set(self.options.skip)
            self._changes = {k: v for k, v in force_changes.items() if k not in skip}
        else:
            self._changes = self.changes()

    @property
    def forced(self) -> bool:
        return self._forced

    def data(self) -> Dict[str, Any]:
        data = self._base_data()
        if self._record_object():
            data["object"] = self._recordable_object(self._is_touch)
        if self._record_object_changes():
            data["object_changes"] = self._recordable_object_changes(self._changes)
        return self._merge_metadata_into(data)
