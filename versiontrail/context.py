"""
Request-scoped context passed explicitly into every recorded event.
"""
from typing import Any, Callable, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class RequestContext(BaseModel):
    """
    Who is acting and what request metadata to attach to versions.

    Callers build one per logical request or unit of work and pass it to
    the trail. It is never mutated by the trail.

    Attributes:
        whodunnit: Actor identifier, or a zero-argument callable returning it
        controller_info: Extra version columns (e.g. `ip`, `user_agent`);
            merged after model metadata so it wins on key collisions
        enabled: When False, nothing is recorded for this request
    """
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    whodunnit: Optional[Union[str, Callable[[], Optional[str]]]] = None
    controller_info: Dict[str, Any] = Field(default_factory=dict)
    enabled: bool = True

    def current_actor(self) -> Optional[str]:
        actor = self.whodunnit() if callable(self.whodunnit) else self.whodunnit
        return None if actor is None else str(actor)

    def current_context_metadata(self) -> Dict[str, Any]:
        return dict(self.controller_info or {})

    def with_actor(self, whodunnit: Optional[str]) -> "RequestContext":
        return self.model_copy(update={"whodunnit": whodunnit})

    def disabled(self) -> "RequestContext":
        return self.model_copy(update={"enabled": False})
