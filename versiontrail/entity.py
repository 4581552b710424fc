############################################################
# entity.py
############################################################

"""
Tracked entities with attribute-level dirty tracking.

This module implements the entity side of the version trail. Every versioned
domain object is a `TrackedEntity`, a pydantic model that remembers the values
it was last committed with so that the event classifiers can ask:

1. DIRTY TRACKING:
   - `change_set(after_save=False)` gives pending changes, compared against
     the committed values
   - `change_set(after_save=True)` gives the changes applied by the most
     recent save
   - `attribute_before_last_save()` / `attribute_in_database()` give the two
     flavours of "before" value used by snapshots

2. SINGLE TABLE INHERITANCE:
   - A base type may declare a `discriminator_field`; subclasses store their
     own class name in it so a reified snapshot can be rebuilt as the subtype
   - `base_class()` names the type recorded as `item_type` on versions

3. HAS-ONE ASSOCIATIONS:
   - Fields listed in `has_one` hold related entities; they are not columns
     and are never part of a snapshot

4. REGISTRATION:
   - Every subclass is registered with `EntityTypeRegistry` on definition so
     stored type names can be resolved without dynamic lookups

Example Usage:
```python
class Widget(TrackedEntity):
    name: Optional[str] = None
    updated_at: Optional[datetime] = None

widget = Widget(name="Flugel")
widget.change_set()        # {"name": [None, "Flugel"]}
```
"""

from copy import deepcopy
from typing import Any, ClassVar, Dict, List, Optional, Self, Tuple, Type, TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, PrivateAttr, model_validator

from versiontrail.errors import UnknownAttributeError

if TYPE_CHECKING:
    from versiontrail.options import VersionOptions

TIMESTAMP_ATTRIBUTES_FOR_UPDATE = ("updated_at", "updated_on")
TIMESTAMP_ATTRIBUTES_FOR_CREATE = ("created_at", "created_on")


class TrackedEntity(BaseModel):
    """
    Base class for entities whose lifecycle is recorded as versions.

    Class attributes:
        discriminator_field: Name of the attribute holding the concrete
            subtype name, or None when the type is not polymorphic
        has_one: Names of fields holding singular related entities
        version_options: Options attached by `has_paper_trail`; None means
            the type is not versioned

    Attributes:
        id: Identifier assigned by the entity store on first save
    """
    model_config = ConfigDict(validate_assignment=True, arbitrary_types_allowed=True)

    discriminator_field: ClassVar[Optional[str]] = None
    has_one: ClassVar[Tuple[str, ...]] = ()
    version_options: ClassVar[Optional["VersionOptions"]] = None

    id: Optional[int] = None

    _committed: Dict[str, Any] = PrivateAttr(default_factory=dict)
    _saved_changes: Dict[str, List[Any]] = PrivateAttr(default_factory=dict)
    _persisted: bool = PrivateAttr(default=False)
    _destroyed: bool = PrivateAttr(default=False)
    _version_event: Optional[str] = PrivateAttr(default=None)

    @classmethod
    def __pydantic_init_subclass__(cls, **kwargs: Any) -> None:
        super().__pydantic_init_subclass__(**kwargs)
        from versiontrail.registry import EntityTypeRegistry
        EntityTypeRegistry.register(cls)

    @model_validator(mode='after')
    def assign_discriminator(self) -> Self:
        """Store the concrete class name in the discriminator if it is unset."""
        field = type(self).discriminator_field
        if field and field in type(self).model_fields and getattr(self, field, None) is None:
            self.__dict__[field] = type(self).__name__
        return self

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.id})"

    ##############################
    # Type information
    ##############################

    @classmethod
    def column_names(cls) -> List[str]:
        """Names of the persisted attributes, in declaration order."""
        return [name for name in cls.model_fields if name not in cls.has_one]

    @classmethod
    def base_class(cls) -> Type["TrackedEntity"]:
        """The topmost TrackedEntity subclass in this type's hierarchy."""
        base: Type[TrackedEntity] = cls
        for klass in cls.__mro__:
            if isinstance(klass, type) and issubclass(klass, TrackedEntity) and klass is not TrackedEntity:
                base = klass
        return base

    @classmethod
    def discriminator_attribute_name(cls) -> Optional[str]:
        return cls.base_class().discriminator_field

    @classmethod
    def timestamp_attributes_for_update(cls) -> List[str]:
        return [name for name in TIMESTAMP_ATTRIBUTES_FOR_UPDATE if name in cls.model_fields]

    @classmethod
    def timestamp_attributes_for_create(cls) -> List[str]:
        return [name for name in TIMESTAMP_ATTRIBUTES_FOR_CREATE if name in cls.model_fields]

    ##############################
    # Lifecycle state
    ##############################

    @property
    def new_record(self) -> bool:
        return not self._persisted and not self._destroyed

    @property
    def persisted(self) -> bool:
        return self._persisted and not self._destroyed

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    @property
    def version_event(self) -> Optional[str]:
        """Custom label for the `event` column of the next version, if any."""
        return self._version_event

    @version_event.setter
    def version_event(self, value: Optional[str]) -> None:
        self._version_event = value

    ##############################
    # Attributes
    ##############################

    def current_attributes(self) -> Dict[str, Any]:
        """All persisted attributes with their in-memory values."""
        return {name: getattr(self, name, None) for name in self.column_names()}

    def set_attribute(self, name: str, value: Any) -> None:
        """
        Assign a persisted attribute by name.

        Raises:
            UnknownAttributeError: If the type has no such column
        """
        if name not in self.column_names():
            raise UnknownAttributeError(type(self).__name__, name)
        setattr(self, name, value)

    def has_attribute(self, name: str) -> bool:
        return name in self.column_names()

    ##############################
    # Dirty tracking
    ##############################

    def change_set(self, after_save: bool = False) -> Dict[str, List[Any]]:
        """
        Return `{name: [before, after]}` for changed attributes.

        Args:
            after_save: If True, return the changes applied by the last save,
                otherwise the pending, uncommitted changes
        """
        if after_save:
            return {name: list(pair) for name, pair in self._saved_changes.items()}
        pending: Dict[str, List[Any]] = {}
        for name in self.column_names():
            before = self._committed.get(name)
            after = getattr(self, name, None)
            if before != after:
                pending[name] = [before, after]
        return pending

    def changed_attribute_names(self, after_save: bool = False) -> List[str]:
        return list(self.change_set(after_save).keys())

    def attribute_changed(self, name: str) -> bool:
        return name in self.change_set(after_save=False)

    def saved_change_to_attribute(self, name: str) -> bool:
        return name in self._saved_changes

    def attribute_before_last_save(self, name: str) -> Any:
        """The value an attribute had before the most recent save."""
        if name in self._saved_changes:
            return self._saved_changes[name][0]
        return getattr(self, name, None)

    def attribute_in_database(self, name: str) -> Any:
        """The last committed value of an attribute."""
        if not self._persisted:
            return None
        return self._committed.get(name)

    ##############################
    # Commit bookkeeping (used by the trail)
    ##############################

    def commit_changes(self) -> Dict[str, List[Any]]:
        """Commit all pending changes, returning them as the saved change set."""
        changes = self.change_set(after_save=False)
        self._saved_changes = deepcopy(changes)
        self._committed = deepcopy(self.current_attributes())
        self._persisted = True
        return changes

    def commit_columns(self, names: List[str], as_saved_changes: bool = False) -> None:
        """
        Commit only the given columns, leaving other pending changes intact.

        With `as_saved_changes`, the committed columns also become the saved
        change set, as a touch does.
        """
        pending = self.change_set(after_save=False)
        for name in names:
            self._committed[name] = deepcopy(getattr(self, name, None))
        if as_saved_changes:
            self._saved_changes = {name: pending[name] for name in names if name in pending}

    def mark_destroyed(self) -> None:
        self._destroyed = True

    def capture_state(self) -> Dict[str, Any]:
        """Snapshot of attributes and tracking state, for rolling back a failed save."""
        return {
            "attributes": dict(self.__dict__),
            "committed": deepcopy(self._committed),
            "saved_changes": deepcopy(self._saved_changes),
            "persisted": self._persisted,
            "destroyed": self._destroyed,
        }

    def restore_state(self, state: Dict[str, Any]) -> None:
        self.__dict__.update(state["attributes"])
        self._committed = state["committed"]
        self._saved_changes = state["saved_changes"]
        self._persisted = state["persisted"]
        self._destroyed = state["destroyed"]
