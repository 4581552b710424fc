"""
Serializers for version slots.
"""
from .yaml_serializer import YAMLSerializer
from .json_serializer import JSONSerializer
from .attribute import (
    CastAttributeSerializer,
    ObjectAttribute,
    ObjectChangesAttribute,
    SlotInfo,
    clear_slot_cache,
    slot_info,
)

SERIALIZERS = {
    YAMLSerializer.name: YAMLSerializer,
    JSONSerializer.name: JSONSerializer,
}

__all__ = [
    "YAMLSerializer",
    "JSONSerializer",
    "CastAttributeSerializer",
    "ObjectAttribute",
    "ObjectChangesAttribute",
    "SlotInfo",
    "slot_info",
    "clear_slot_cache",
    "SERIALIZERS",
]
