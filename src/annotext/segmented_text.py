from __future__ import annotations
import bisect
import logging
from typing import Callable, Generator, Optional

from .errors import StaleHandleError
from .flags import FlagKind, FlagsWithData
from .presentation import generate_class_name
from .render import RenderCollaborator
from .segment import Segment

logger = logging.getLogger(__name__)


class SegmentedText:
    """The segments of a single text block

    The segments are ordered by offset and cover [0, length) with no gaps and
    no overlaps. The first one always starts at 0. Neighbors never carry equal
    flags once a mutation has finished, because every mutation ends with a
    merge over the range it touched.

    Properties:
        segments: The ordered segments
        length: The length of the block's text
        renderer: The collaborator that owns the segments' backing nodes
    """

    def __init__(self, handle: int, length: int, renderer: RenderCollaborator):
        self.length: int = length
        self.renderer: RenderCollaborator = renderer
        self.segments: list[Segment] = [Segment(handle, 0, FlagsWithData())]

    def __len__(self):
        return len(self.segments)

    def __iter__(self):
        return iter(self.segments)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def offsets(self) -> list[int]:
        return [seg.offset for seg in self.segments]

    def segment_end(self, index: int) -> int:
        """Get the block offset one past the end of the given segment"""
        if index + 1 < len(self.segments):
            return self.segments[index + 1].offset
        return self.length

    def segment_length(self, index: int) -> int:
        return self.segment_end(index) - self.segments[index].offset

    def index_for_offset(self, offset: int) -> int:
        """Get the index of the segment containing the given block offset"""
        assert 0 <= offset <= self.length, f"Offset {offset} outside [0, {self.length}]"
        return bisect.bisect_right(self.offsets(), offset) - 1

    def segment_at(self, offset: int) -> Segment:
        return self.segments[self.index_for_offset(offset)]

    def index_of_handle(self, handle: int) -> Optional[int]:
        for i, seg in enumerate(self.segments):
            if seg.handle == handle:
                return i
        return None

    def segment_for_handle(self, handle: int) -> Optional[Segment]:
        index = self.index_of_handle(handle)
        return None if index is None else self.segments[index]

    def contains_handle(self, handle: int) -> bool:
        return self.index_of_handle(handle) is not None

    def spans(self) -> Generator[tuple[int, int, Segment], None, None]:
        """Iterate over (start, end, segment) for every segment"""
        for i, seg in enumerate(self.segments):
            yield seg.offset, self.segment_end(i), seg

    def are_all_flags_empty(self) -> bool:
        return all(seg.are_flags_empty() for seg in self.segments)

    def intersects_bits(self, mask: FlagKind) -> bool:
        return any(seg.intersects_bits(mask) for seg in self.segments)

    def has_pair(self, value: FlagsWithData) -> bool:
        return any(seg.contains_pair(value) for seg in self.segments)

    def get_all_data_ids(self) -> list[tuple[FlagKind, int]]:
        out = []
        for seg in self.segments:
            out.extend(seg.flags.data)
        return out

    def check_coverage(self) -> bool:
        """Check that the offsets start at 0, strictly increase, and stay
        inside the block
        """
        if not self.segments or self.segments[0].offset != 0:
            return False
        offsets = self.offsets()
        if any(b <= a for a, b in zip(offsets, offsets[1:])):
            return False
        if self.length == 0:
            return len(self.segments) == 1
        return offsets[-1] < self.length

    # ------------------------------------------------------------------
    # Splitting
    # ------------------------------------------------------------------

    def split_at(self, offset: int) -> int:
        """Make sure a segment boundary exists at the given block offset

        Returns:
            The index of the segment that starts at `offset`. For an offset
            equal to the block length this is len(self.segments)
        """
        assert 0 <= offset <= self.length, f"Offset {offset} outside [0, {self.length}]"
        if offset == self.length:
            return len(self.segments)

        index = self.index_for_offset(offset)
        seg = self.segments[index]
        if seg.offset == offset:
            return index

        left, right = self.renderer.split(seg.handle, offset - seg.offset)
        seg.handle = left
        self.segments.insert(index + 1, Segment(right, offset, seg.flags.copy()))
        logger.debug("Split segment %s at block offset %s", index, offset)
        return index + 1

    def range_for(self, start: int, end: int) -> tuple[int, int]:
        """Split at both ends of [start, end) and get the inclusive index range"""
        assert start < end, f"Empty range [{start}, {end})"
        # End first, so splitting the start can't move the end boundary
        self.split_at(end)
        first = self.split_at(start)
        last = self.split_at(end) - 1
        return first, last

    # ------------------------------------------------------------------
    # Flag mutation
    # ------------------------------------------------------------------

    def add_flags(self, first: int, last: int, delta: FlagsWithData):
        def _add(flags: FlagsWithData) -> FlagsWithData:
            flags.insert(delta)
            return flags

        self._mutate(first, last, _add)

    def remove_flags(self, first: int, last: int, delta: FlagsWithData):
        def _remove(flags: FlagsWithData) -> FlagsWithData:
            flags.remove(delta)
            return flags

        self._mutate(first, last, _remove)

    def set_flags(self, first: int, last: int, value: FlagsWithData):
        self._mutate(first, last, lambda _flags: value.copy())

    def clear_flags(self, first: int, last: int):
        self._mutate(first, last, lambda _flags: FlagsWithData())

    def remove_pair(self, kind: FlagKind, payload_id: int) -> int:
        """Drop `kind` from every segment that references (kind, payload_id)

        Returns:
            The number of segments that were changed
        """
        target = FlagsWithData.of(kind, payload_id)
        changed = 0
        # Walk backwards so merges only ever remove already-visited segments
        for index in reversed(range(len(self.segments))):
            if index >= len(self.segments):
                continue
            if self.segments[index].contains_pair(target):
                self.remove_flags(index, index, target)
                changed += 1
        return changed

    def rewrite_payload(self, kind: FlagKind, old_id: int, new_id: int) -> int:
        """Point every (kind, old_id) reference at new_id

        Returns:
            The number of segments that were changed
        """
        changed = 0
        for index in reversed(range(len(self.segments))):
            if index >= len(self.segments):
                continue
            seg = self.segments[index]
            if seg.flags.rewrite_payload(kind, old_id, new_id):
                self._refresh(seg, False)
                self._merge_range(index, index)
                changed += 1
        return changed

    def release(self):
        """Clear every flag so all the backing nodes get unwrapped and joined"""
        self.clear_flags(0, len(self.segments) - 1)

    def _mutate(
        self,
        first: int,
        last: int,
        func: Callable[[FlagsWithData], FlagsWithData],
    ):
        assert 0 <= first <= last < len(self.segments), (
            f"Segment range [{first}, {last}] outside [0, {len(self.segments)})"
        )
        for seg in self.segments[first : last + 1]:
            was_empty = seg.are_flags_empty()
            seg.flags = func(seg.flags)
            self._refresh(seg, was_empty)
        self._merge_range(first, last)

    def _refresh(self, seg: Segment, was_empty: bool):
        """Tell the renderer about a segment's new flags"""
        try:
            self.renderer.set_presentation_class(
                seg.handle, generate_class_name(seg.flags)
            )
            if was_empty and not seg.are_flags_empty():
                seg.handle = self.renderer.wrap(seg.handle)
            elif not was_empty and seg.are_flags_empty():
                seg.handle = self.renderer.unwrap(seg.handle)
        except StaleHandleError as err:
            logger.warning("Skipping presentation refresh: %s", err)

    # ------------------------------------------------------------------
    # Merging
    # ------------------------------------------------------------------

    def merge(self):
        """Join every pair of equal neighbors in the block"""
        self._merge_range(0, len(self.segments) - 1)

    def _merge_range(self, first: int, last: int):
        """Join equal neighbors across [first - 1, last + 1]

        Walking from the right end down means a join only ever removes a
        segment we've already looked at, and chains of equal segments fold
        into the leftmost one.
        """
        hi = min(last + 1, len(self.segments) - 1)
        lo = max(first, 1)
        for index in range(hi, lo - 1, -1):
            if index >= len(self.segments):
                continue
            if self.segments[index].flags == self.segments[index - 1].flags:
                self._join_with_left(index)

    def _join_with_left(self, index: int):
        left = self.segments[index - 1]
        right = self.segments.pop(index)
        try:
            left.handle = self.renderer.join(left.handle, right.handle)
        except StaleHandleError as err:
            logger.warning("Joined segments over a stale node: %s", err)
        logger.debug("Merged segment %s into %s", index, index - 1)

    def __repr__(self):
        segs = ", ".join(
            f"({start}, {end}, {seg.flags!r})" for start, end, seg in self.spans()
        )
        return f"<SegmentedText [{segs}]>"
