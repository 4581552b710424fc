"""
Version row models.

`VersionBase` is an abstract SQLAlchemy mapped class with the standard
version columns; `VersionSQL` is the default concrete `versions` table with
textual `object`/`object_changes` slots. Applications subclass `VersionBase`
to add metadata columns, or to declare the slots as `JSON` so they are stored
structured.

`VersionRecord` is the pydantic equivalent used by the in-memory store.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional, Protocol, Union

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, declarative_base, mapped_column

Base = declarative_base()


class StoredVersion(Protocol):
    """The shape of a persisted version, whatever store it came from."""
    id: Any
    item_type: str
    item_id: Any
    event: str
    whodunnit: Optional[str]
    object: Optional[Union[str, Dict[str, Any]]]
    object_changes: Optional[Union[str, Dict[str, Any]]]
    created_at: Optional[datetime]


class VersionBase(Base):
    """Abstract base class for version tables with the standard columns."""
    __abstract__ = True

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    item_type: Mapped[str] = mapped_column(String(191), nullable=False)
    item_id: Mapped[int] = mapped_column(Integer, nullable=False)
    event: Mapped[str] = mapped_column(String(255), nullable=False)
    whodunnit: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    object = mapped_column(Text, nullable=True)
    object_changes = mapped_column(Text, nullable=True)
    created_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self.id}, item={self.item_type}#{self.item_id}, event={self.event})"


class VersionSQL(VersionBase):
    """Default version table."""
    __tablename__ = "versions"
    __table_args__ = (
        Index("index_versions_on_item_type_and_item_id", "item_type", "item_id"),
    )


class VersionRecord(BaseModel):
    """A version held by the in-memory store; metadata columns are extra fields."""
    model_config = ConfigDict(extra="allow", frozen=True, arbitrary_types_allowed=True)

    id: int
    item_type: str
    item_id: Any
    event: str
    whodunnit: Optional[str] = None
    object: Optional[Union[str, Dict[str, Any]]] = None
    object_changes: Optional[Union[str, Dict[str, Any]]] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
