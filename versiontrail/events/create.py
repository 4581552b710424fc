"""
Classifier for the create event.
"""
from typing import Any, Dict

from versiontrail.events.base import BaseEvent


class CreateEvent(BaseEvent):
    """
    A newly saved entity.

    There is no prior state, so no `object` is stored; the diff holds every
    notable initial value as `[None, value]`.
    """
    default_event = "create"

    def data(self) -> Dict[str, Any]:
        data = self._base_data()
        if self._record_object_changes() and self.changed_notably():
            data["object_changes"] = self._recordable_object_changes(self.changes())
        return self._merge_metadata_into(data)
