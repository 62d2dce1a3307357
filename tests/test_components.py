"""Tests for the built-in components."""

import pytest
from annotext import COMPONENTS, FlagKind, FlagsWithData, Highlight, Italicize, Note, Underline
from annotext.components import get_component


class TestRegistry:
    """The built-in components."""

    def test_components(self):
        """Test the registry maps each kind to its component."""
        assert COMPONENTS[FlagKind.ITALICIZE] is Italicize
        assert COMPONENTS[FlagKind.HIGHLIGHT] is Highlight
        assert COMPONENTS[FlagKind.UNDERLINE] is Underline
        assert get_component(FlagKind.NOTE) is Note
        assert get_component(FlagKind.ALL) is None

    def test_bound_to_document(self, document):
        """Test the document binds one component per kind."""
        for kind, component in document.components.items():
            assert component.FLAG == kind
            assert component.document is document

    def test_note_policy(self):
        """Test the note is exclusive and overwriting."""
        assert Note.ALLOWED_SIBLINGS == FlagKind(0)
        assert Note.OVERWRITE_INVALID
        assert Highlight.ALLOWED_SIBLINGS == FlagKind.ALL


class TestHighlight:
    """Highlights with and without a colour."""

    def test_color(self, document):
        """Test a colour is stored as the payload."""
        highlight = document.components[FlagKind.HIGHLIGHT]
        assert highlight.on_select(document.resolve_range(0, 4), color=7)
        assert highlight.color_of(0) == 7

    def test_plain_toggle(self, document):
        """Test a highlight without colour stores nothing."""
        highlight = document.components[FlagKind.HIGHLIGHT]
        selection = document.resolve_range(0, 4)
        assert highlight.on_select(selection)
        assert document.blocks[0].segment_at(0).flags == FlagsWithData.of(FlagKind.HIGHLIGHT)
        assert len(document.store) == 0

    def test_recolor_part(self, document):
        """Test a new colour next to an old one stays separate."""
        highlight = document.components[FlagKind.HIGHLIGHT]
        highlight.on_select(document.resolve_range(0, 8), color=1)
        highlight.on_select(document.resolve_range(8, 10), color=2)
        text = document.blocks[0]
        assert text.offsets() == [0, 8]
        assert text.segment_at(9).flags == FlagsWithData.of(FlagKind.HIGHLIGHT, 1)


class TestNote:
    """Notes own their text payload."""

    @pytest.fixture
    def note(self, document):
        return document.components[FlagKind.NOTE]

    def test_create(self, note, document):
        """Test creating a note stores its text."""
        payload_id = note.create(document.resolve_range(1, 4), "first")
        assert note.text(payload_id) == "first"
        assert note.notes_in(document.resolve_range(0, 10)) == [payload_id]

    def test_on_select(self, note, document):
        """Test selecting creates an empty note."""
        assert note.on_select(document.resolve_range(1, 4))
        assert note.text(0) == ""

    def test_edit(self, note, document):
        """Test editing replaces the note text."""
        payload_id = note.create(document.resolve_range(1, 4), "first")
        note.edit(payload_id, "second")
        assert note.text(payload_id) == "second"

    def test_delete(self, note, document):
        """Test deleting a note relocates the other one."""
        first = note.create(document.resolve_range(1, 4), "first")
        note.create(document.resolve_range(6, 8), "second")
        note.delete(first)
        assert document.blocks[0].segment_at(2).are_flags_empty()
        assert note.notes_in(document.resolve_range(0, 10)) == [0]
        assert note.text(0) == "second"

    def test_on_click(self, note, document):
        """Test clicking finds the note under the click."""
        payload_id = note.create(document.resolve_range(12, 14), "x")
        assert note.on_click(document.resolve_range(12, 13)) == payload_id
        assert note.on_click(document.resolve_range(0, 1)) is None

    def test_failed_insert_removes_payload(self, note, document, monkeypatch):
        """Test a rejected note doesn't leave its text behind."""
        from annotext import PolicyError

        def refuse(*args, **kwargs):
            raise PolicyError(FlagKind.NOTE, FlagKind.HIGHLIGHT)

        monkeypatch.setattr(document, "insert_component", refuse)
        with pytest.raises(PolicyError):
            note.create(document.resolve_range(0, 3), "lost")
        assert len(document.store) == 0
