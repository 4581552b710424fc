"""
Classifier for the destroy event.
"""
from typing import Any, Dict

from versiontrail.events.base import BaseEvent


class DestroyEvent(BaseEvent):
    """
    An entity about to be removed.

    The snapshot is the committed state; destruction has no "after", so no
    diff is stored.
    """
    default_event = "destroy"

    def data(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "event": self.event_name(),
            "whodunnit": self._context.current_actor(),
        }
        if self._record_object():
            data["object"] = self._recordable_object(False)
        return self._merge_metadata_into(data)
