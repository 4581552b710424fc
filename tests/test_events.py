"""
Tests for event classification: which changes are notable and what each
event stores.
"""
from datetime import datetime, timezone

import pytest
import yaml

from versiontrail import InMemoryVersionStore, UpdateEvent, VersionTrail
from versiontrail.events import BaseEvent

from conftest import Article, Book, Gadget, Gizmo, Song, Thing, Widget

T0 = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

class TestBaseEvent:
    """Tests for the shared event base."""

    def test_base_event_is_abstract(self, store):
        """Test that the base class cannot be built without a payload builder."""
        with pytest.raises(TypeError):
            BaseEvent(Widget(name="Henry"), True, store)

class TestCreateEvent:
    """Tests for the create event payload."""

    def test_create_records_diff_without_object(self, trail, store):
        """Test that create stores a [None, value] diff and no object."""
        widget = trail.save(Widget(name="Henry"))

        versions = trail.versions_for(widget)
        assert len(versions) == 1
        version = versions[0]
        assert version.event == "create"
        assert version.object is None
        changes = yaml.safe_load(version.object_changes)
        assert changes["name"] == [None, "Henry"]
        assert changes["id"] == [None, widget.id]

    def test_create_sets_created_at_from_updated_at(self, trail):
        """Test that the version timestamp matches the entity's update timestamp."""
        widget = trail.save(Widget(name="Henry", created_at=T0, updated_at=T0))

        assert trail.versions_for(widget)[0].created_at == T0

    def test_create_with_nothing_notable(self, trail):
        """Test that a create version is recorded even with no notable diff."""
        article = trail.save(Article(title="Only the title"))

        versions = trail.versions_for(article)
        assert len(versions) == 1
        assert versions[0].event == "create"
        assert versions[0].object_changes is None

    def test_save_changes_disabled(self, trail):
        """Test that save_changes=False omits object_changes."""
        book = trail.save(Book(title="Dune"))
        book.title = "Dune Messiah"
        trail.save(book)

        versions = trail.versions_for(book)
        assert [v.event for v in versions] == ["create", "update"]
        assert all(v.object_changes is None for v in versions)
        assert yaml.safe_load(versions[1].object)["title"] == "Dune"

class TestUpdateEvent:
    """Tests for update notability and payload."""

    def test_update_stores_previous_object(self, trail):
        """Test that an update stores the state before the change and the diff."""
        widget = trail.save(Widget(name="Henry"))
        widget.name = "Harry"
        trail.save(widget)

        version = trail.versions_for(widget)[-1]
        assert version.event == "update"
        assert yaml.safe_load(version.object)["name"] == "Henry"
        changes = yaml.safe_load(version.object_changes)
        assert changes["name"] == ["Henry", "Harry"]
        assert "updated_at" in changes

    def test_save_without_changes(self, trail):
        """Test that saving an unchanged entity records nothing."""
        widget = trail.save(Widget(name="Henry"))
        trail.save(widget)

        assert len(trail.versions_for(widget)) == 1

    def test_ignored_attribute_alone(self, trail):
        """Test that changing only an ignored attribute is not notable."""
        gadget = trail.save(Gadget(name="Phone", brand="Acme"))
        gadget.brand = "Globex"
        trail.save(gadget)

        assert [v.event for v in trail.versions_for(gadget)] == ["create"]

    def test_ignored_with_other_change(self, trail):
        """Test that ignored attributes are left out of the diff but not the object."""
        gadget = trail.save(Gadget(name="Phone", brand="Acme"))
        gadget.brand = "Globex"
        gadget.name = "Tablet"
        trail.save(gadget)

        version = trail.versions_for(gadget)[-1]
        changes = yaml.safe_load(version.object_changes)
        assert set(changes) == {"name", "updated_at"}
        assert yaml.safe_load(version.object)["brand"] == "Acme"

    def test_only_filters_changes(self, trail):
        """Test that with `only`, other attributes are never notable."""
        gizmo = trail.save(Gizmo(name="Cog", color="red"))
        gizmo.color = "blue"
        trail.save(gizmo)
        assert len(trail.versions_for(gizmo)) == 1

        gizmo.name = "Sprocket"
        trail.save(gizmo)
        version = trail.versions_for(gizmo)[-1]
        assert yaml.safe_load(version.object_changes) == {"name": ["Cog", "Sprocket"]}

    def test_skip_omits_from_object(self, trail):
        """Test that skipped attributes are neither notable nor stored."""
        article = trail.save(Article(content="Some text", file_upload="a.png"))
        article.file_upload = "b.png"
        trail.save(article)
        assert len(trail.versions_for(article)) == 1

        article.content = "Other text"
        article.file_upload = "c.png"
        trail.save(article)
        version = trail.versions_for(article)[-1]
        assert "file_upload" not in yaml.safe_load(version.object)
        assert set(yaml.safe_load(version.object_changes)) == {"content"}

    def test_conditional_ignore(self, trail):
        """Test that a conditional ignore applies only while its predicate holds."""
        article = trail.save(Article(content="Some text"))
        article.abstract = "ignore abstract"
        trail.save(article)
        assert len(trail.versions_for(article)) == 1

        article.abstract = "A real abstract"
        trail.save(article)
        version = trail.versions_for(article)[-1]
        assert yaml.safe_load(version.object_changes) == {"abstract": ["ignore abstract", "A real abstract"]}

    def test_on_excludes_update(self, trail):
        """Test that events missing from `on` are not recorded."""
        song = trail.save(Song(length=180))
        song.length = 200
        trail.save(song)
        trail.destroy(song)

        assert [v.event for v in trail.versions_for(song)] == ["create", "destroy"]

    def test_custom_event_label(self, trail):
        """Test that version_event overrides the stored event label."""
        widget = trail.save(Widget(name="Henry"))
        widget.version_event = "rename"
        widget.name = "Harry"
        trail.save(widget)

        assert trail.versions_for(widget)[-1].event == "rename"

    def test_forced_changes_skip_notability(self, store):
        """Test that a caller-supplied change set is stored as given."""
        gizmo = Gizmo(name="Cog", color="red")
        gizmo.commit_changes()

        event = UpdateEvent(gizmo, False, store, force_changes={"color": ["red", "blue"]})

        assert event.forced
        assert yaml.safe_load(event.data()["object_changes"]) == {"color": ["red", "blue"]}

class TestTouch:
    """Tests for timestamp-only refreshes."""

    def test_touch_records_update(self, trail):
        """Test that touching a versioned entity records an update version."""
        thing = trail.save(Thing(name="Rock"))
        before = thing.updated_at

        trail.touch(thing)

        versions = trail.versions_for(thing)
        assert [v.event for v in versions] == ["create", "update"]
        changes = yaml.safe_load(versions[-1].object_changes)
        assert set(changes) == {"updated_at"}
        assert thing.updated_at >= before

    def test_touch_with_only(self, trail):
        """Test that a touch is not notable when `only` excludes timestamps."""
        gizmo = trail.save(Gizmo(name="Cog"))
        trail.touch(gizmo)

        assert len(trail.versions_for(gizmo)) == 1

class TestDestroyEvent:
    """Tests for the destroy event payload."""

    def test_destroy_stores_committed_object(self, trail):
        """Test that destroy stores the last saved state and no diff."""
        widget = trail.save(Widget(name="Henry"))
        widget.name = "Unsaved"
        trail.destroy(widget)

        version = trail.versions_for(widget)[-1]
        assert version.event == "destroy"
        assert yaml.safe_load(version.object)["name"] == "Henry"
        assert version.object_changes is None
        assert widget.destroyed

class TestSlots:
    """Tests for stores lacking the object or object_changes slot."""

    def test_no_object_changes_slot(self):
        """Test that the diff is dropped when the store has no slot for it."""
        store = InMemoryVersionStore(has_object_changes=False)
        trail = VersionTrail(store)
        widget = trail.save(Widget(name="Henry"))
        widget.name = "Harry"
        trail.save(widget)

        versions = trail.versions_for(widget)
        assert all(v.object_changes is None for v in versions)
        assert versions[-1].object is not None

    def test_structured_slots(self):
        """Test that structured slots receive dicts with canonical values."""
        store = InMemoryVersionStore(structured=True)
        trail = VersionTrail(store)
        widget = trail.save(Widget(name="Henry", updated_at=T0, created_at=T0))
        widget.name = "Harry"
        widget.updated_at = T0.replace(hour=13)
        trail.save(widget)

        version = trail.versions_for(widget)[-1]
        assert version.object["name"] == "Henry"
        assert version.object["updated_at"] == T0.isoformat()
        assert version.object_changes["name"] == ["Henry", "Harry"]
