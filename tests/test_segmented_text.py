"""Tests for splitting, flag mutation, and merging of a single block."""

import pytest
from annotext import FlagKind, FlagsWithData, SegmentedText, TextArena

H = FlagKind.HIGHLIGHT
U = FlagKind.UNDERLINE


@pytest.fixture
def arena():
    return TextArena()


@pytest.fixture
def text(arena):
    return SegmentedText(arena.add_text("0123456789"), 10, arena)


def flag_range(text, start, end, flags):
    first, last = text.range_for(start, end)
    text.add_flags(first, last, flags)


def rendered(text, arena):
    return "".join(arena.text(seg.handle) for seg in text.segments)


class TestSplit:
    """Tests for split_at and range_for."""

    def test_split_inside(self, text, arena):
        """Test splitting carves the backing node in two."""
        assert text.split_at(4) == 1
        assert text.offsets() == [0, 4]
        assert arena.text(text.segments[0].handle) == "0123"
        assert arena.text(text.segments[1].handle) == "456789"

    def test_split_copies_flags(self, text):
        """Test the new right segment gets a copy of the flags."""
        flag_range(text, 0, 10, FlagsWithData.of(H, 1))
        text.split_at(3)
        assert text.segments[1].flags == FlagsWithData.of(H, 1)
        assert text.segments[1].flags is not text.segments[0].flags

    def test_split_on_boundary_is_noop(self, text):
        """Test splitting at an existing boundary changes nothing."""
        text.split_at(4)
        assert text.split_at(4) == 1
        assert text.split_at(0) == 0
        assert text.split_at(10) == 2
        assert text.offsets() == [0, 4]

    def test_split_out_of_range(self, text):
        """Test offsets past the block are rejected."""
        with pytest.raises(AssertionError):
            text.split_at(11)

    def test_range_for(self, text):
        """Test range_for splits both ends and returns inclusive indexes."""
        assert text.range_for(2, 6) == (1, 1)
        assert text.offsets() == [0, 2, 6]
        assert text.range_for(0, 10) == (0, 2)

    def test_empty_range(self, text):
        """Test an empty range is rejected."""
        with pytest.raises(AssertionError):
            text.range_for(3, 3)

    def test_index_for_offset(self, text):
        """Test finding the segment containing an offset."""
        text.range_for(2, 6)
        assert text.index_for_offset(0) == 0
        assert text.index_for_offset(5) == 1
        assert text.index_for_offset(6) == 2
        assert text.segment_length(1) == 4


class TestFlags:
    """Tests for flag mutation and the presentation calls it makes."""

    def test_add_wraps_and_classes(self, text, arena):
        """Test flagged segments are wrapped with their class string."""
        flag_range(text, 2, 6, FlagsWithData.of(H))
        node = arena.node(text.segments[1].handle)
        assert node.wrapped
        assert node.class_name == "editor-styling highlight"
        assert not arena.node(text.segments[0].handle).wrapped

    def test_class_names_are_ordered(self, text, arena):
        """Test class names follow bit order."""
        flag_range(text, 0, 10, FlagsWithData(U | H))
        assert arena.node(text.segments[0].handle).class_name == (
            "editor-styling highlight underline"
        )

    def test_render_markup(self, text, arena):
        """Test only wrapped nodes render as spans."""
        flag_range(text, 2, 4, FlagsWithData.of(H))
        handles = [seg.handle for seg in text.segments]
        assert arena.render_markup(handles) == (
            '01<span class="editor-styling highlight">23</span>456789'
        )

    def test_add_then_remove_restores(self, text, arena):
        """Test removing what was added restores the original segments."""
        flag_range(text, 2, 6, FlagsWithData.of(H))
        first, last = text.range_for(2, 6)
        text.remove_flags(first, last, FlagsWithData.of(H))
        assert text.offsets() == [0]
        assert text.segments[0].are_flags_empty()
        assert arena.text(text.segments[0].handle) == "0123456789"
        assert not arena.node(text.segments[0].handle).wrapped
        assert len(arena.nodes) == 1

    def test_equal_neighbors_merge(self, text):
        """Test {H}, {H}, {U} collapses to {H}, {U}."""
        flag_range(text, 0, 3, FlagsWithData.of(H))
        flag_range(text, 6, 10, FlagsWithData.of(U))
        assert text.offsets() == [0, 3, 6]
        flag_range(text, 3, 6, FlagsWithData.of(H))
        assert text.offsets() == [0, 6]
        assert text.segments[0].flags == FlagsWithData.of(H)
        assert text.segments[1].flags == FlagsWithData.of(U)

    def test_different_payloads_do_not_merge(self, text):
        """Test the same kind with different payloads stays apart."""
        flag_range(text, 0, 5, FlagsWithData.of(H, 0))
        flag_range(text, 5, 10, FlagsWithData.of(H, 1))
        assert text.offsets() == [0, 5]

    def test_coverage_holds(self, text, arena):
        """Test the segments keep covering the block through many edits."""
        for start, end, kind in [(1, 4, H), (3, 8, U), (0, 2, U), (5, 6, H), (2, 9, H)]:
            flag_range(text, start, end, FlagsWithData.of(kind))
            assert text.check_coverage()
            assert rendered(text, arena) == "0123456789"
        for a, b in zip(text.segments, text.segments[1:]):
            assert a.flags != b.flags

    def test_set_and_clear(self, text):
        """Test overwriting and clearing flags."""
        first, last = text.range_for(0, 4)
        text.set_flags(first, last, FlagsWithData.of(U))
        assert text.segment_at(2).flags == FlagsWithData.of(U)
        first, last = text.range_for(0, 4)
        text.clear_flags(first, last)
        assert text.are_all_flags_empty()
        assert text.offsets() == [0]

    def test_remove_pair(self, text):
        """Test dropping one (kind, payload) pair everywhere."""
        flag_range(text, 0, 3, FlagsWithData.of(H, 0))
        flag_range(text, 3, 6, FlagsWithData.of(H, 1))
        flag_range(text, 6, 9, FlagsWithData.of(H, 0))
        assert text.remove_pair(H, 0) == 2
        assert text.offsets() == [0, 3, 6]
        assert text.segment_at(4).flags == FlagsWithData.of(H, 1)
        assert text.segment_at(7).are_flags_empty()

    def test_rewrite_payload_merges(self, text):
        """Test a rewritten payload merges with an equal neighbor."""
        flag_range(text, 0, 5, FlagsWithData.of(H, 0))
        flag_range(text, 5, 10, FlagsWithData.of(H, 2))
        assert text.rewrite_payload(H, 2, 0) == 1
        assert text.offsets() == [0]

    def test_release(self, text, arena):
        """Test releasing leaves one bare segment."""
        flag_range(text, 2, 5, FlagsWithData.of(H))
        flag_range(text, 7, 9, FlagsWithData.of(U))
        text.release()
        assert text.offsets() == [0]
        assert not arena.node(text.segments[0].handle).wrapped

    def test_merge(self, text):
        """Test merge removes boundaries left by bare splits."""
        flag_range(text, 0, 6, FlagsWithData.of(H))
        text.split_at(3)
        text.split_at(8)
        text.merge()
        assert text.offsets() == [0, 6]

    def test_stale_handle_is_logged(self, text, arena, caplog):
        """Test a stale handle is logged and the flags still change."""
        arena.release(text.segments[0].handle)
        first, last = text.range_for(0, 10)
        with caplog.at_level("WARNING", logger="annotext.segmented_text"):
            text.add_flags(first, last, FlagsWithData.of(H))
        assert "Skipping presentation refresh" in caplog.text
        assert text.segments[0].flags == FlagsWithData.of(H)


class TestQueries:
    """Read-only lookups on a block."""

    def test_data_ids(self, text):
        """Test collecting the payload pairs and bit tests."""
        flag_range(text, 0, 3, FlagsWithData.of(H, 4))
        flag_range(text, 5, 6, FlagsWithData.of(U))
        assert text.get_all_data_ids() == [(H, 4)]
        assert text.intersects_bits(U)
        assert text.has_pair(FlagsWithData.of(H, 4))
        assert not text.has_pair(FlagsWithData.of(H, 3))

    def test_segment_for_handle(self, text):
        """Test finding a segment by its backing handle."""
        text.split_at(4)
        handle = text.segments[1].handle
        assert text.segment_for_handle(handle) is text.segments[1]
        assert text.segment_for_handle(-1) is None

    def test_empty_block(self, arena):
        """Test a zero-length block holds a single segment."""
        text = SegmentedText(arena.add_text(""), 0, arena)
        assert text.check_coverage()
        assert text.split_at(0) == 1
        assert text.offsets() == [0]
