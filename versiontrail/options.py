"""
Per-type versioning options and the `has_paper_trail` class decorator.

Options are resolved once, when the decorator runs:
- `ignore` / `only` accept attribute names or `{name: predicate}` mappings;
  the mappings are split into `ignore_if` / `only_if`
- `meta` values become tagged variants: callables turn into `Computed`,
  `MethodRef` is kept as given, anything else becomes a `Constant`
"""
import inspect
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Literal, Optional, Type, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

T = TypeVar("T")

EventKind = Literal["create", "update", "destroy", "touch"]
ALL_EVENTS: List[str] = ["create", "update", "destroy", "touch"]


@dataclass(frozen=True)
class Constant:
    """A metadata value recorded as-is."""
    value: Any


@dataclass(frozen=True)
class Computed:
    """
    A metadata value computed by calling `fn`.

    `fn` receives the entity being versioned when it accepts a positional
    argument, and is called with no arguments otherwise.
    """
    fn: Callable[..., Any]
    takes_entity: Optional[bool] = None

    def __post_init__(self) -> None:
        if self.takes_entity is None:
            object.__setattr__(self, "takes_entity", _accepts_positional(self.fn))

    def __call__(self, entity: Any) -> Any:
        return self.fn(entity) if self.takes_entity else self.fn()


@dataclass(frozen=True)
class MethodRef:
    """
    A metadata value read from an attribute or method of the entity.

    When `name` is an attribute that changed in an update or destroy, the
    value before the change is recorded.
    """
    name: str


MetaValue = Union[Constant, Computed, MethodRef]


def _accepts_positional(fn: Callable[..., Any]) -> bool:
    try:
        parameters = inspect.signature(fn).parameters.values()
    except (TypeError, ValueError):
        # Builtins without introspectable signatures.
        return True
    positional = (
        inspect.Parameter.POSITIONAL_ONLY,
        inspect.Parameter.POSITIONAL_OR_KEYWORD,
        inspect.Parameter.VAR_POSITIONAL,
    )
    return any(p.kind in positional for p in parameters)


def coerce_meta_value(value: Any) -> MetaValue:
    if isinstance(value, (Constant, Computed, MethodRef)):
        return value
    if callable(value):
        return Computed(value)
    return Constant(value)


def _split_conditional(entries: Any) -> tuple:
    names: List[str] = []
    conditions: Dict[str, Callable[[Any], bool]] = {}
    for entry in entries or []:
        if isinstance(entry, dict):
            for attr, condition in entry.items():
                conditions[str(attr)] = condition
        else:
            names.append(str(entry))
    return names, conditions


class VersionOptions(BaseModel):
    """
    Versioning configuration for one entity type.

    Attributes:
        ignore: Attributes whose change alone does not create a version
        ignore_if: Attributes ignored only while their predicate holds
        skip: Attributes ignored and also left out of the object snapshot
        only: If non-empty, only these attributes can make a change notable
        only_if: Attributes added to `only` while their predicate holds
        meta: Extra version columns and how to compute them
        save_changes: Whether to record `object_changes`
        on: Lifecycle events that are recorded
        condition: Record only when this predicate holds for the entity
        unless: Never record when this predicate holds for the entity
    """
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    ignore: List[str] = Field(default_factory=list)
    ignore_if: Dict[str, Callable[[Any], bool]] = Field(default_factory=dict)
    skip: List[str] = Field(default_factory=list)
    only: List[str] = Field(default_factory=list)
    only_if: Dict[str, Callable[[Any], bool]] = Field(default_factory=dict)
    meta: Dict[str, Any] = Field(default_factory=dict)
    save_changes: bool = True
    on: List[EventKind] = Field(default_factory=lambda: list(ALL_EVENTS))
    condition: Optional[Callable[[Any], bool]] = None
    unless: Optional[Callable[[Any], bool]] = None

    @model_validator(mode='before')
    @classmethod
    def split_conditional_entries(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for key in ("ignore", "only"):
            if key in data:
                names, conditions = _split_conditional(data[key])
                data[key] = names
                data[f"{key}_if"] = {**conditions, **data.get(f"{key}_if", {})}
        return data

    @field_validator("skip", mode='before')
    @classmethod
    def stringify_skip(cls, value: Any) -> List[str]:
        return [str(v) for v in value or []]

    @field_validator("meta", mode='before')
    @classmethod
    def resolve_meta(cls, value: Any) -> Dict[str, MetaValue]:
        return {str(k): coerce_meta_value(v) for k, v in (value or {}).items()}

    def records(self, event: str, entity: Any) -> bool:
        """Whether `event` should be recorded for `entity` under these options."""
        if event not in self.on:
            return False
        if self.condition is not None and not self.condition(entity):
            return False
        if self.unless is not None and self.unless(entity):
            return False
        return True


def has_paper_trail(cls: Optional[Type[T]] = None, **options: Any) -> Any:
    """
    Class decorator enabling versioning for a TrackedEntity subclass.

    Usage:
        @has_paper_trail
        class Widget(TrackedEntity): ...

        @has_paper_trail(ignore=["title"], meta={"answer": 42})
        class Article(TrackedEntity): ...
    """
    def decorate(klass: Type[T]) -> Type[T]:
        klass.version_options = VersionOptions(**options)  # type: ignore[attr-defined]
        return klass

    if cls is not None:
        return decorate(cls)
    return decorate
