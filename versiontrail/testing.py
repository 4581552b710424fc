"""
Helpers for testing code that uses version trails.
"""
from contextlib import contextmanager
from typing import Any, Iterator

from versiontrail.entity import TrackedEntity
from versiontrail.trail import VersionTrail


def is_versioned(obj: Any) -> bool:
    """Whether `obj` (an entity or an entity class) has `has_paper_trail` applied."""
    klass = obj if isinstance(obj, type) else type(obj)
    return issubclass(klass, TrackedEntity) and klass.version_options is not None


def have_a_version_with(trail: VersionTrail, entity: TrackedEntity, **attributes: Any) -> bool:
    """
    Whether any stored snapshot of `entity` has all the given attribute values.

    Only versions with an `object` are considered, so the create version
    never matches.
    """
    reifier = trail.reifier()
    for version in trail.versions_for(entity):
        model = reifier.reify(version)
        if model is None:
            continue
        if all(getattr(model, name, None) == value for name, value in attributes.items()):
            return True
    return False


@contextmanager
def without_versioning(trail: VersionTrail) -> Iterator[VersionTrail]:
    """Disable recording on `trail` for the duration of the block."""
    previous = trail.config.enabled
    trail.config.enabled = False
    try:
        yield trail
    finally:
        trail.config.enabled = previous
