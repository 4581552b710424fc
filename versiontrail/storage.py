"""
Storage backends for versions and for live entities.

Version stores implement the persistence contract the event classifiers
consume:
- `columns_exist(names)` says which version slots the schema defines
- `object_slot_is_structured()` / `object_changes_slot_is_structured()` say
  whether those slots hold native JSON or text
- `insert(payload)` persists one version

Two implementations are provided: `InMemoryVersionStore` for hermetic use
and tests, and `SqlVersionStore` backed by a SQLAlchemy mapped version class.

`InMemoryEntityStorage` holds the live entities themselves so reification
can find the current item and its has-one associations.
"""
import logging
from abc import ABC, abstractmethod
from itertools import count
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Tuple, Type

from sqlalchemy import JSON, select
from sqlalchemy.orm import Session

from versiontrail.entity import TrackedEntity
from versiontrail.version import VersionBase, VersionRecord

STANDARD_COLUMNS = ("id", "item_type", "item_id", "event", "whodunnit", "object", "object_changes", "created_at")


##############################
# 1) Version storage
##############################

class VersionStore(ABC):
    """Abstract persistence layer for version rows."""

    @abstractmethod
    def column_names(self) -> Set[str]:
        """All columns a version row can hold."""

    def columns_exist(self, names: Iterable[str]) -> Set[str]:
        available = self.column_names()
        return {name for name in names if name in available}

    @abstractmethod
    def object_slot_is_structured(self) -> bool: ...

    @abstractmethod
    def object_changes_slot_is_structured(self) -> bool: ...

    @abstractmethod
    def insert(self, payload: Dict[str, Any]) -> Any:
        """Persist a version payload and return the stored version."""

    @abstractmethod
    def versions_for(self, item_type: str, item_id: Any) -> List[Any]:
        """Versions of one item, oldest first."""

    @abstractmethod
    def get(self, version_id: Any) -> Optional[Any]: ...

    @abstractmethod
    def clear(self) -> None: ...

    def get_registry_status(self) -> Dict[str, Any]:
        return {"storage": "abstract"}


class InMemoryVersionStore(VersionStore):
    """
    Version store keeping rows in a list.

    Args:
        metadata_columns: Extra columns allowed in payloads (e.g. `ip`)
        has_object: Whether the `object` slot exists
        has_object_changes: Whether the `object_changes` slot exists
        structured: Whether both slots hold native dicts instead of text
    """

    def __init__(
        self,
        metadata_columns: Iterable[str] = (),
        has_object: bool = True,
        has_object_changes: bool = True,
        structured: bool = False,
    ) -> None:
        self._logger = logging.getLogger("InMemoryVersionStore")
        self._columns: Set[str] = set(STANDARD_COLUMNS) | set(metadata_columns)
        if not has_object:
            self._columns.discard("object")
        if not has_object_changes:
            self._columns.discard("object_changes")
        self._structured = structured
        self._versions: List[VersionRecord] = []
        self._ids = count(1)

    def column_names(self) -> Set[str]:
        return set(self._columns)

    def object_slot_is_structured(self) -> bool:
        return self._structured

    def object_changes_slot_is_structured(self) -> bool:
        return self._structured

    def insert(self, payload: Dict[str, Any]) -> VersionRecord:
        unknown = set(payload) - self._columns
        if unknown:
            raise ValueError(f"Unknown version columns: {sorted(unknown)}")
        data = {k: v for k, v in payload.items() if not (k == "created_at" and v is None)}
        version = VersionRecord(id=next(self._ids), **data)
        self._versions.append(version)
        self._logger.debug(f"Stored version {version.id} ({version.event}) for {version.item_type}#{version.item_id}")
        return version

    def versions_for(self, item_type: str, item_id: Any) -> List[VersionRecord]:
        return [v for v in self._versions if v.item_type == item_type and v.item_id == item_id]

    def get(self, version_id: Any) -> Optional[VersionRecord]:
        return next((v for v in self._versions if v.id == version_id), None)

    def all(self) -> List[VersionRecord]:
        return list(self._versions)

    def clear(self) -> None:
        self._versions.clear()

    def get_registry_status(self) -> Dict[str, Any]:
        return {"storage": "in_memory", "versions": len(self._versions)}


class SqlVersionStore(VersionStore):
    """
    Version store backed by a SQLAlchemy mapped class.

    Args:
        session_factory: A `sessionmaker` (or any callable returning a Session)
        version_class: Mapped subclass of `VersionBase` to read and write
    """

    def __init__(self, session_factory: Callable[[], Session], version_class: Type[VersionBase]) -> None:
        self._logger = logging.getLogger("SqlVersionStore")
        self._session_factory = session_factory
        self._version_class = version_class

    @property
    def version_class(self) -> Type[VersionBase]:
        return self._version_class

    def column_names(self) -> Set[str]:
        return {column.name for column in self._version_class.__table__.columns}

    def _column_is_json(self, name: str) -> bool:
        column = self._version_class.__table__.columns.get(name)
        return column is not None and isinstance(column.type, JSON)

    def object_slot_is_structured(self) -> bool:
        return self._column_is_json("object")

    def object_changes_slot_is_structured(self) -> bool:
        return self._column_is_json("object_changes")

    def insert(self, payload: Dict[str, Any]) -> VersionBase:
        data = {k: v for k, v in payload.items() if not (k == "created_at" and v is None)}
        with self._session_factory() as session:
            try:
                version = self._version_class(**data)
                session.add(version)
                session.commit()
                session.refresh(version)
                session.expunge(version)
            except Exception:
                session.rollback()
                raise
        self._logger.debug(f"Stored version {version.id} ({version.event}) for {version.item_type}#{version.item_id}")
        return version

    def versions_for(self, item_type: str, item_id: Any) -> List[VersionBase]:
        cls = self._version_class
        with self._session_factory() as session:
            stmt = (
                select(cls)
                .where(cls.item_type == item_type, cls.item_id == item_id)
                .order_by(cls.id)
            )
            return list(session.execute(stmt).scalars().all())

    def get(self, version_id: Any) -> Optional[VersionBase]:
        with self._session_factory() as session:
            return session.get(self._version_class, version_id)

    def clear(self) -> None:
        with self._session_factory() as session:
            session.query(self._version_class).delete()
            session.commit()

    def get_registry_status(self) -> Dict[str, Any]:
        return {"storage": "sql", "table": self._version_class.__tablename__}


##############################
# 2) Live entity storage
##############################

class InMemoryEntityStorage:
    """
    Identity map of live entities keyed by (base type name, id).

    Ids are assigned per base type on insert, starting at 1.
    """

    def __init__(self) -> None:
        self._logger = logging.getLogger("InMemoryEntityStorage")
        self._items: Dict[Tuple[str, Any], TrackedEntity] = {}
        self._sequences: Dict[str, Any] = {}

    @staticmethod
    def _key(entity: TrackedEntity) -> Tuple[str, Any]:
        return (type(entity).base_class().__name__, entity.id)

    def insert(self, entity: TrackedEntity) -> TrackedEntity:
        type_name = type(entity).base_class().__name__
        if entity.id is None:
            sequence = self._sequences.setdefault(type_name, count(1))
            entity.id = next(sequence)
        self._items[(type_name, entity.id)] = entity
        self._logger.debug(f"Inserted {type_name}#{entity.id}")
        return entity

    def update(self, entity: TrackedEntity) -> TrackedEntity:
        self._items[self._key(entity)] = entity
        return entity

    def delete(self, entity: TrackedEntity) -> None:
        self._items.pop(self._key(entity), None)
        self._logger.debug(f"Deleted {self._key(entity)[0]}#{entity.id}")

    def find(self, item_type: str, item_id: Any) -> Optional[TrackedEntity]:
        return self._items.get((item_type, item_id))

    def has_entity(self, item_type: str, item_id: Any) -> bool:
        return (item_type, item_id) in self._items

    def snapshot(self) -> Dict[Tuple[str, Any], TrackedEntity]:
        return dict(self._items)

    def restore(self, items: Dict[Tuple[str, Any], TrackedEntity]) -> None:
        self._items = dict(items)

    def clear(self) -> None:
        self._items.clear()
        self._sequences.clear()

    def get_registry_status(self) -> Dict[str, Any]:
        return {"storage": "in_memory", "entities": len(self._items)}
