"""
versiontrail: an audit trail of entity versions.

Records create, update and destroy events of tracked entities as immutable
version rows, and reifies past states from them.
"""
from versiontrail.config import ObjectChangesAdapter, Serializer, TrailConfig
from versiontrail.context import RequestContext
from versiontrail.entity import TrackedEntity
from versiontrail.errors import (
    CorruptSnapshotError,
    TypeResolutionError,
    UnknownAttributeError,
    VersionTrailError,
)
from versiontrail.events import BaseEvent, CreateEvent, DestroyEvent, UpdateEvent
from versiontrail.options import Computed, Constant, MethodRef, VersionOptions, has_paper_trail
from versiontrail.registry import EntityTypeRegistry
from versiontrail.reifier import Reifier
from versiontrail.serializers import JSONSerializer, YAMLSerializer
from versiontrail.storage import (
    InMemoryEntityStorage,
    InMemoryVersionStore,
    SqlVersionStore,
    VersionStore,
)
from versiontrail.trail import VersionTrail
from versiontrail.version import Base, VersionBase, VersionRecord, VersionSQL

__all__ = [
    "Base",
    "BaseEvent",
    "Computed",
    "Constant",
    "CorruptSnapshotError",
    "CreateEvent",
    "DestroyEvent",
    "EntityTypeRegistry",
    "InMemoryEntityStorage",
    "InMemoryVersionStore",
    "JSONSerializer",
    "MethodRef",
    "ObjectChangesAdapter",
    "Reifier",
    "RequestContext",
    "Serializer",
    "SqlVersionStore",
    "TrackedEntity",
    "TrailConfig",
    "TypeResolutionError",
    "UnknownAttributeError",
    "UpdateEvent",
    "VersionBase",
    "VersionOptions",
    "VersionRecord",
    "VersionSQL",
    "VersionStore",
    "VersionTrail",
    "VersionTrailError",
    "YAMLSerializer",
    "has_paper_trail",
]
