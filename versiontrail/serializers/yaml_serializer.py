"""
Default text serializer for `object` and `object_changes` slots.
"""
from typing import Any

import yaml

from versiontrail.errors import CorruptSnapshotError


class YAMLSerializer:
    """Human-readable YAML encoding, restricted to safe tags."""

    name = "yaml"

    def dump(self, data: Any) -> str:
        return yaml.safe_dump(data, sort_keys=False, allow_unicode=True)

    def load(self, text: str) -> Any:
        try:
            return yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise CorruptSnapshotError(f"Stored YAML payload could not be parsed: {e}") from e
