from __future__ import annotations
from dataclasses import dataclass, field
import logging
from typing import TYPE_CHECKING, Sequence

from .segment import Segment

if TYPE_CHECKING:
    from .document import AnnotatedDocument

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SelectedSpan:
    """A [start, end) range of block-local offsets inside one block"""

    block_index: int
    start: int
    end: int

    @property
    def length(self) -> int:
        return self.end - self.start


@dataclass
class Selection:
    """The result of resolving a user selection

    `spans` are what the flag operations work from. They stay valid across
    merges, since merging never moves an offset. `segments` are the segments
    the spans covered at the moment the selection was resolved.
    """

    spans: list[SelectedSpan] = field(default_factory=list)
    segments: list[Segment] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.spans

    def __len__(self):
        return len(self.segments)

    def __iter__(self):
        return iter(self.segments)


class SelectionResolver:
    """Turn a list of backing handles plus offsets into exact segment ranges

    The render layer gives us the handles it found inside the user's
    selection, the offset where the selection starts inside the first one and
    the offset where it ends inside the last one. Segments are split so the
    selection falls exactly on segment boundaries.
    """

    def __init__(self, document: AnnotatedDocument):
        self.document = document

    def resolve(
        self, handles: Sequence[int], start_offset: int, end_offset: int
    ) -> Selection:
        located = [self.document.find_handle(handle) for handle in handles]
        if not located:
            return Selection()

        if len(located) > 1:
            block_index, seg_index = located[0]
            text = self.document.blocks[block_index]
            if start_offset == text.segment_length(seg_index):
                # Range APIs sometimes report the start as the very end of the
                # previous node. Start at the beginning of the next one instead
                logger.warning(
                    "Selection starts at the end of handle %s, dropping it",
                    handles[0],
                )
                located.pop(0)
                start_offset = 0

        if len(located) == 1:
            spans = [self._single_span(located[0], start_offset, end_offset)]
        else:
            spans = self._multi_spans(located, start_offset, end_offset)

        selection = self.document.select_spans([span for span in spans if span.length > 0])
        logger.debug("Resolved selection to %s segments", len(selection))
        return selection

    def _single_span(
        self, loc: tuple[int, int], start_offset: int, end_offset: int
    ) -> SelectedSpan:
        block_index, seg_index = loc
        text = self.document.blocks[block_index]
        seg_start = text.segments[seg_index].offset
        seg_len = text.segment_length(seg_index)
        assert 0 <= start_offset <= seg_len, f"Start offset {start_offset} outside node"
        assert 0 <= end_offset <= seg_len, f"End offset {end_offset} outside node"
        if start_offset >= end_offset:
            # Collapsed or backwards ranges select nothing
            return SelectedSpan(block_index, seg_start, seg_start)
        return SelectedSpan(block_index, seg_start + start_offset, seg_start + end_offset)

    def _multi_spans(
        self, located: list[tuple[int, int]], start_offset: int, end_offset: int
    ) -> list[SelectedSpan]:
        spans: list[SelectedSpan] = []
        last_i = len(located) - 1
        for i, (block_index, seg_index) in enumerate(located):
            text = self.document.blocks[block_index]
            start = text.segments[seg_index].offset
            end = text.segment_end(seg_index)
            if i == 0:
                assert 0 <= start_offset <= end - start, "Start offset outside node"
                start += start_offset
            if i == last_i:
                assert 0 <= end_offset <= end - start, "End offset outside node"
                end = text.segments[seg_index].offset + end_offset

            if spans and spans[-1].block_index == block_index:
                prev = spans[-1]
                assert prev.end == start, "Handles inside one block must be contiguous"
                spans[-1] = SelectedSpan(block_index, prev.start, end)
            else:
                spans.append(SelectedSpan(block_index, start, end))
        return spans
