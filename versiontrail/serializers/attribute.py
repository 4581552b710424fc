"""
Serialization of attribute maps into the `object` and `object_changes` slots.

Two storage shapes are supported:
- structured slots (JSON columns) receive a dict; only values JSON cannot
  hold natively (temporal types, Decimal, UUID) are canonicalized to strings,
  including inside lists and mappings
- textual slots receive the canonicalized dict encoded by the configured
  serializer (YAML by default)

Whether a slot is structured requires introspecting the version store, so
the answer is memoized per (store, entity type) for as long as the store
is alive.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal
from functools import lru_cache
from typing import Any, Dict, List, Optional, Type, Union, get_args
from uuid import UUID
from weakref import WeakKeyDictionary

from pydantic import TypeAdapter

from versiontrail.entity import TrackedEntity
from versiontrail.errors import CorruptSnapshotError

CANONICALIZED_TYPES = (datetime, date, time, Decimal, UUID)

_slot_cache: "WeakKeyDictionary[Any, Dict[Type[TrackedEntity], SlotInfo]]" = WeakKeyDictionary()


@dataclass(frozen=True)
class SlotInfo:
    """Which version slots exist and how each one is stored."""
    has_object: bool
    has_object_changes: bool
    object_is_structured: bool
    object_changes_is_structured: bool


def slot_info(store: Any, entity_type: Type[TrackedEntity]) -> SlotInfo:
    """Introspect `store` once for `entity_type` and remember the result."""
    per_store = _slot_cache.setdefault(store, {})
    if entity_type in per_store:
        return per_store[entity_type]
    logger = logging.getLogger("AttributeSerializer")
    existing = store.columns_exist(["object", "object_changes"])
    info = SlotInfo(
        has_object="object" in existing,
        has_object_changes="object_changes" in existing,
        object_is_structured="object" in existing and store.object_slot_is_structured(),
        object_changes_is_structured="object_changes" in existing and store.object_changes_slot_is_structured(),
    )
    per_store[entity_type] = info
    logger.debug(f"Slot info for {entity_type.__name__} on {type(store).__name__}: {info}")
    return info


def clear_slot_cache() -> None:
    """Forget every memoized slot decision."""
    _slot_cache.clear()


def canonicalize(value: Any) -> Any:
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, (Decimal, UUID)):
        return str(value)
    if isinstance(value, dict):
        return {canonicalize(key): canonicalize(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [canonicalize(item) for item in value]
    return value


def _needs_restore(annotation: Any) -> bool:
    if annotation in CANONICALIZED_TYPES:
        return True
    return any(_needs_restore(arg) for arg in get_args(annotation))


@lru_cache(maxsize=None)
def _adapter_for(annotation: Any) -> TypeAdapter:
    return TypeAdapter(annotation)


class CastAttributeSerializer:
    """Per-field canonicalization driven by the entity type's field annotations."""

    def __init__(self, entity_type: Type[TrackedEntity]) -> None:
        self.entity_type = entity_type

    def serialize_value(self, value: Any) -> Any:
        return canonicalize(value)

    def deserialize_value(self, name: str, value: Any) -> Any:
        field = self.entity_type.model_fields.get(name)
        if value is None or field is None or not _needs_restore(field.annotation):
            return value
        return _adapter_for(field.annotation).validate_python(value)

    def serialize(self, attributes: Dict[str, Any]) -> Dict[str, Any]:
        return {name: self.serialize_value(value) for name, value in attributes.items()}

    def deserialize(self, attributes: Dict[str, Any]) -> Dict[str, Any]:
        return {name: self.deserialize_value(name, value) for name, value in attributes.items()}


class _SlotAttribute(ABC):
    """Shared encode/decode logic for a single version slot."""

    def __init__(self, entity_type: Type[TrackedEntity], store: Any, serializer: Any) -> None:
        self.entity_type = entity_type
        self.store = store
        self.serializer = serializer
        self.cast = CastAttributeSerializer(entity_type)

    @abstractmethod
    def is_structured(self) -> bool:
        """Whether this slot holds native dicts rather than encoded text."""

    def encode(self, data: Dict[str, Any]) -> Union[Dict[str, Any], str]:
        if self.is_structured():
            return data
        return self.serializer.dump(data)

    def decode(self, stored: Any) -> Dict[str, Any]:
        """Turn a stored slot value back into a plain dict, without type restoration."""
        if isinstance(stored, (str, bytes)):
            data = self.serializer.load(stored.decode("utf-8") if isinstance(stored, bytes) else stored)
        else:
            data = stored
        if not isinstance(data, dict):
            raise CorruptSnapshotError(
                f"Expected a mapping in stored {type(self).__name__} for {self.entity_type.__name__}, "
                f"got {type(data).__name__}"
            )
        return data


class ObjectAttribute(_SlotAttribute):
    """Serializes full attribute snapshots for the `object` slot."""

    def is_structured(self) -> bool:
        return slot_info(self.store, self.entity_type).object_is_structured

    def serialize(self, attributes: Dict[str, Any]) -> Union[Dict[str, Any], str]:
        return self.encode(self.cast.serialize(attributes))

    def deserialize(self, stored: Any) -> Dict[str, Any]:
        return self.cast.deserialize(self.decode(stored))


class ObjectChangesAttribute(_SlotAttribute):
    """Serializes `{name: [before, after]}` diffs for the `object_changes` slot."""

    def is_structured(self) -> bool:
        return slot_info(self.store, self.entity_type).object_changes_is_structured

    def serialize_changes(self, changes: Dict[str, List[Any]]) -> Dict[str, List[Any]]:
        return {
            name: [self.cast.serialize_value(value) for value in pair]
            for name, pair in changes.items()
        }

    def serialize(self, changes: Dict[str, List[Any]]) -> Union[Dict[str, Any], str]:
        return self.encode(self.serialize_changes(changes))

    def deserialize(self, stored: Any) -> Dict[str, List[Any]]:
        data = self.decode(stored)
        restored: Dict[str, List[Any]] = {}
        for name, pair in data.items():
            if not isinstance(pair, (list, tuple)) or len(pair) != 2:
                raise CorruptSnapshotError(f"Change for '{name}' is not a [before, after] pair: {pair!r}")
            restored[name] = [self.cast.deserialize_value(name, value) for value in pair]
        return restored


def decode_object(stored: Optional[Any], entity_type: Type[TrackedEntity], store: Any, serializer: Any) -> Optional[Dict[str, Any]]:
    """Decode a stored `object` slot into a raw attribute dict, or None if it is empty."""
    if stored is None:
        return None
    return ObjectAttribute(entity_type, store, serializer).decode(stored)
