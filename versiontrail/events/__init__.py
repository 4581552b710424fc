"""
Event classifiers turning entity mutations into version payloads.
"""
from .base import BaseEvent
from .create import CreateEvent
from .update import UpdateEvent
from .destroy import DestroyEvent

__all__ = ["BaseEvent", "CreateEvent", "UpdateEvent", "DestroyEvent"]
