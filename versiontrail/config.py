"""
Process-level configuration for a version trail.
"""
import logging
import os
from typing import Any, Dict, Optional, Protocol, runtime_checkable

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

from versiontrail.serializers import SERIALIZERS, YAMLSerializer


@runtime_checkable
class Serializer(Protocol):
    """Anything that can encode a dict to text and back."""
    def dump(self, data: Any) -> str: ...
    def load(self, text: str) -> Any: ...


@runtime_checkable
class ObjectChangesAdapter(Protocol):
    """
    Rewrites a computed `{name: [before, after]}` diff before it is stored.

    Adapters may also define `load_changeset(version)` to decode diffs they
    wrote in a custom representation.
    """
    def diff(self, changes: Dict[str, Any]) -> Dict[str, Any]: ...


class TrailConfig(BaseModel):
    """
    Configuration shared by every event recorded through one trail.

    Attributes:
        enabled: Master switch; when False nothing is recorded
        serializer: Encoder used for textual `object`/`object_changes` slots
        object_changes_adapter: Optional diff rewriter applied to `object_changes`
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    enabled: bool = True
    serializer: Any = Field(default_factory=YAMLSerializer)
    object_changes_adapter: Optional[Any] = None

    @classmethod
    def from_env(cls, prefix: str = "VERSIONTRAIL_", **overrides: Any) -> "TrailConfig":
        """
        Build a config from environment variables (a `.env` file is honoured).

        Reads `<prefix>ENABLED` ("true"/"false") and `<prefix>SERIALIZER`
        ("yaml" or "json").
        """
        logger = logging.getLogger("TrailConfig")
        load_dotenv()
        values: Dict[str, Any] = {}

        enabled = os.getenv(f"{prefix}ENABLED")
        if enabled is not None:
            values["enabled"] = enabled.strip().lower() not in {"0", "false", "no", "off"}

        serializer_name = os.getenv(f"{prefix}SERIALIZER")
        if serializer_name:
            key = serializer_name.strip().lower()
            if key not in SERIALIZERS:
                raise ValueError(f"Unknown serializer '{serializer_name}', expected one of {sorted(SERIALIZERS)}")
            values["serializer"] = SERIALIZERS[key]()

        values.update(overrides)
        logger.info(f"Loaded trail config from environment: enabled={values.get('enabled', True)}")
        return cls(**values)
