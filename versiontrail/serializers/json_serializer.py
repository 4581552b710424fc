"""
JSON text serializer for `object` and `object_changes` slots.
"""
import json
from typing import Any

from versiontrail.errors import CorruptSnapshotError


class JSONSerializer:
    """Compact JSON encoding."""

    name = "json"

    def dump(self, data: Any) -> str:
        return json.dumps(data)

    def load(self, text: str) -> Any:
        try:
            return json.loads(text)
        except (json.JSONDecodeError, TypeError) as e:
            raise CorruptSnapshotError(f"Stored JSON payload could not be parsed: {e}") from e
