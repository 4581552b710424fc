"""
Common fixtures and test entity classes for the versiontrail tests.
"""
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional

import pytest
from sqlalchemy import JSON, Integer, String, create_engine
from sqlalchemy.orm import Mapped, mapped_column, sessionmaker

from versiontrail import (
    Base,
    Computed,
    InMemoryVersionStore,
    MethodRef,
    RequestContext,
    SqlVersionStore,
    TrackedEntity,
    VersionBase,
    VersionTrail,
    has_paper_trail,
)
from versiontrail.serializers import clear_slot_cache

META_COLUMNS = ["answer", "action", "question", "article_id", "title", "ip", "user_agent"]

# ========================================================================
# Test entity classes
# ========================================================================

@has_paper_trail
class Wotsit(TrackedEntity):
    widget_id: Optional[int] = None
    name: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@has_paper_trail
class Widget(TrackedEntity):
    """A widget with one column of every common type."""
    discriminator_field = "type"
    has_one = ("wotsit",)

    name: Optional[str] = None
    a_text: Optional[str] = None
    an_integer: Optional[int] = None
    a_float: Optional[float] = None
    a_decimal: Optional[Decimal] = None
    a_datetime: Optional[datetime] = None
    a_date: Optional[date] = None
    a_boolean: Optional[bool] = None
    sacrificial_column: Optional[str] = None
    type: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    wotsit: Optional[Wotsit] = None


class FooWidget(Widget):
    """Widget subtype stored with the same item_type."""


class Fluxor(TrackedEntity):
    """Not versioned."""
    widget_id: Optional[int] = None
    name: Optional[str] = None


@has_paper_trail(
    ignore=["title", {"abstract": lambda article: article.abstract in ("ignore abstract", "Other abstract")}],
    only=["content", {"abstract": lambda article: bool(article.abstract)}],
    skip=["file_upload"],
    meta={
        "answer": 42,
        "action": MethodRef("action_data_provider_method"),
        "question": Computed(lambda article: f"31 + 11 = {31 + 11}"),
        "article_id": lambda article: article.id,
        "title": MethodRef("title"),
    },
)
class Article(TrackedEntity):
    title: Optional[str] = None
    content: Optional[str] = None
    abstract: Optional[str] = None
    file_upload: Optional[str] = None

    def action_data_provider_method(self) -> str:
        return str(self.id)


@has_paper_trail(ignore=["brand"])
class Gadget(TrackedEntity):
    name: Optional[str] = None
    brand: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@has_paper_trail(only=["name"])
class Gizmo(TrackedEntity):
    name: Optional[str] = None
    color: Optional[str] = None
    updated_at: Optional[datetime] = None


@has_paper_trail(meta={"answer": 42, "action": MethodRef("name")})
class Thing(TrackedEntity):
    name: Optional[str] = None
    updated_at: Optional[datetime] = None


@has_paper_trail
class Animal(TrackedEntity):
    """Single table inheritance base; the subtype lives in `species`."""
    discriminator_field = "species"

    name: Optional[str] = None
    species: Optional[str] = None


class Dog(Animal):
    pass


class Cat(Animal):
    pass


@has_paper_trail(on=["create", "destroy"])
class Song(TrackedEntity):
    length: Optional[int] = None


@has_paper_trail(save_changes=False)
class Book(TrackedEntity):
    title: Optional[str] = None


@has_paper_trail
class Schedule(TrackedEntity):
    name: Optional[str] = None
    due: Optional[List[date]] = None
    milestones: Optional[Dict[str, datetime]] = None


@has_paper_trail
class Part(TrackedEntity):
    name: Optional[str] = None
    type: Optional[str] = None


# ========================================================================
# Version tables
# ========================================================================

class MetadataColumns:
    answer: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    action: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    question: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    article_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    title: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    ip: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    user_agent: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)


class TextVersion(MetadataColumns, VersionBase):
    """Versions with YAML text slots."""
    __tablename__ = "text_versions"


class JsonVersion(MetadataColumns, VersionBase):
    """Versions with structured JSON slots."""
    __tablename__ = "json_versions"

    object = mapped_column(JSON, nullable=True)
    object_changes = mapped_column(JSON, nullable=True)


# ========================================================================
# Fixtures
# ========================================================================

@pytest.fixture(autouse=True)
def reset_slot_cache():
    """Slot introspection is memoized per store; forget it between tests."""
    yield
    clear_slot_cache()


@pytest.fixture
def store() -> InMemoryVersionStore:
    return InMemoryVersionStore(metadata_columns=META_COLUMNS)


@pytest.fixture
def trail(store: InMemoryVersionStore) -> VersionTrail:
    return VersionTrail(store)


@pytest.fixture
def context() -> RequestContext:
    return RequestContext(
        whodunnit="153",
        controller_info={"ip": "127.0.0.1", "user_agent": "Test Client"},
    )


@pytest.fixture
def session_factory():
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    yield sessionmaker(bind=engine)
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def text_sql_trail(session_factory) -> VersionTrail:
    return VersionTrail(SqlVersionStore(session_factory, TextVersion))


@pytest.fixture
def json_sql_trail(session_factory) -> VersionTrail:
    return VersionTrail(SqlVersionStore(session_factory, JsonVersion))
