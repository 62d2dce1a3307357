from __future__ import annotations
from dataclasses import dataclass
import logging
from typing import Collection, Iterator, Optional, Sequence, Union

from .codec import CURRENT_VERSION, SavedSegmentation, SaveState
from .components import COMPONENTS, Component
from .errors import CodecError, PolicyError
from .flags import NO_KINDS, FlagKind, FlagsWithData, iter_kinds
from .options import EngineOptions
from .render import RenderCollaborator
from .segment import Segment
from .segmented_text import SegmentedText
from .selection import SelectedSpan, Selection, SelectionResolver
from .store import AnnotationStore
from .tracker import BlockTracker

logger = logging.getLogger(__name__)


@dataclass
class FlaggedText:
    """A run of text carrying one kind (and payload) of annotation"""

    kind: FlagKind
    payload_id: Optional[int]
    block_index: int
    start: int
    end: int
    content: str


class AnnotatedDocument:
    """The annotation state of one document

    This is the context every operation goes through. It owns the segmented
    blocks, the payload side-table, and the render collaborator that holds
    the backing nodes. Nothing here is shared between documents.
    """

    def __init__(
        self,
        renderer: RenderCollaborator,
        options: Optional[EngineOptions] = None,
    ):
        self.renderer: RenderCollaborator = renderer
        self.options: EngineOptions = EngineOptions() if options is None else options
        self.blocks: list[SegmentedText] = []
        self.store: AnnotationStore = AnnotationStore()
        self.tracker: BlockTracker = BlockTracker()
        self.resolver: SelectionResolver = SelectionResolver(self)
        self.components: dict[FlagKind, Component] = {
            kind: cls(self) for kind, cls in COMPONENTS.items()
        }

        self.remove_expands_to_run: bool = False
        self.save_version: int = CURRENT_VERSION
        self.options.optionsUpdated.connect(self.updateOptions)
        self.updateOptions(list(self.options.keys()))

    def updateOptions(self, keylist: Collection[str]):
        keys = set(keylist)
        if "remove_expands_to_run" in keys:
            self.remove_expands_to_run = bool(self.options["remove_expands_to_run"])
        if "save_version" in keys:
            self.save_version = int(self.options["save_version"])

    # ------------------------------------------------------------------
    # Blocks
    # ------------------------------------------------------------------

    def register_block(self, handle: int) -> int:
        """Start tracking a text block. Returns its block index"""
        for text in self.blocks:
            assert not text.contains_handle(handle), f"Handle {handle} already registered"
        text = SegmentedText(handle, self.renderer.length(handle), self.renderer)
        self.blocks.append(text)
        self.tracker.append(text.length)
        return len(self.blocks) - 1

    def register_blocks(self, handles: Sequence[int]) -> list[int]:
        return [self.register_block(handle) for handle in handles]

    def unregister_block(self, block_index: int):
        """Clear a block's flags, so its nodes are unwrapped, and stop tracking it"""
        self.blocks[block_index].release()
        del self.blocks[block_index]
        self.tracker.remove(block_index)

    def clear(self):
        """Unregister every block and drop every payload"""
        for text in self.blocks:
            text.release()
        self.blocks = []
        self.tracker.set([])
        self.store.clear()

    def find_handle(self, handle: int) -> tuple[int, int]:
        """Get the (block index, segment index) for a backing handle"""
        for block_index, text in enumerate(self.blocks):
            seg_index = text.index_of_handle(handle)
            if seg_index is not None:
                return block_index, seg_index
        raise KeyError(f"Handle {handle} is not registered with this document")

    def find_block(self, handle: int) -> SegmentedText:
        return self.blocks[self.find_handle(handle)[0]]

    def handles(self) -> list[int]:
        """The backing handles of every segment, in document order"""
        return [seg.handle for text in self.blocks for seg in text.segments]

    # ------------------------------------------------------------------
    # Selections
    # ------------------------------------------------------------------

    def resolve_selection(
        self, handles: Sequence[int], start_offset: int, end_offset: int
    ) -> Selection:
        return self.resolver.resolve(handles, start_offset, end_offset)

    def resolve_range(self, start: int, end: int) -> Selection:
        """Resolve a selection given as document-global character offsets"""
        if start >= end:
            return Selection()
        start_block, start_local = self.tracker.block_for_offset(start)
        end_block, end_local = self.tracker.block_for_offset(end - 1)
        end_local += 1

        spans = []
        for block_index in range(start_block, end_block + 1):
            s = start_local if block_index == start_block else 0
            e = end_local if block_index == end_block else self.blocks[block_index].length
            if e > s:
                spans.append(SelectedSpan(block_index, s, e))
        return self.select_spans(spans)

    def select_spans(self, spans: Sequence[SelectedSpan]) -> Selection:
        """Split at the span boundaries and build a Selection from them"""
        segments: list[Segment] = []
        for span in spans:
            text = self.blocks[span.block_index]
            first, last = text.range_for(span.start, span.end)
            segments.extend(text.segments[first : last + 1])
        return Selection(list(spans), segments)

    def select_block(self, block_index: int) -> Selection:
        text = self.blocks[block_index]
        if not text.length:
            return Selection()
        return self.select_spans([SelectedSpan(block_index, 0, text.length)])

    def select_payload(self, kind: FlagKind, payload_id: int) -> Selection:
        """Select every run that references (kind, payload_id)"""
        target = FlagsWithData.of(kind, payload_id)
        spans: list[SelectedSpan] = []
        for block_index, text in enumerate(self.blocks):
            for start, end, seg in text.spans():
                if not seg.contains_pair(target):
                    continue
                prev = spans[-1] if spans else None
                if prev and prev.block_index == block_index and prev.end == start:
                    spans[-1] = SelectedSpan(block_index, prev.start, end)
                else:
                    spans.append(SelectedSpan(block_index, start, end))
        return self.select_spans(spans)

    def located_segments(
        self, selection: Selection
    ) -> list[tuple[int, int, int, Segment]]:
        """The (block index, start, end, segment) of every segment overlapping
        the selection, with start and end clipped to the selection

        Segments may have been merged since the selection was resolved, so
        this looks them up again from the spans. Nothing is split, and the
        boundaries resolving the selection introduced are merged away first
        """
        for block_index in sorted({span.block_index for span in selection.spans}):
            self.blocks[block_index].merge()

        out = []
        for span in selection.spans:
            text = self.blocks[span.block_index]
            for start, end, seg in text.spans():
                if start < span.end and end > span.start:
                    out.append(
                        (span.block_index, max(start, span.start), min(end, span.end), seg)
                    )
        return out

    def segments_in(self, selection: Selection) -> list[Segment]:
        return [seg for _bi, _start, _end, seg in self.located_segments(selection)]

    def does_selection_contain(self, selection: Selection, kind: FlagKind) -> bool:
        """True if every selected segment has `kind`, whatever its payload"""
        segments = self.segments_in(selection)
        return bool(segments) and all(seg.intersects_bits(kind) for seg in segments)

    def get_flag_ids_in_selection(self, selection: Selection) -> list[tuple[FlagKind, int]]:
        """Every distinct (kind, payload_id) referenced inside the selection"""
        out: list[tuple[FlagKind, int]] = []
        for seg in self.segments_in(selection):
            for pair in seg.flags.data:
                if pair not in out:
                    out.append(pair)
        return out

    def _ranges(self, selection: Selection) -> Iterator[tuple[SegmentedText, int, int]]:
        # Lazy, so each span is split only after the previous one was mutated
        for span in selection.spans:
            text = self.blocks[span.block_index]
            first, last = text.range_for(span.start, span.end)
            yield text, first, last

    def _expand_to_runs(self, selection: Selection, mask: FlagKind) -> Selection:
        spans = []
        for span in selection.spans:
            text = self.blocks[span.block_index]
            first, last = text.range_for(span.start, span.end)
            while first > 0 and text.segments[first - 1].intersects_bits(mask):
                first -= 1
            while last + 1 < len(text) and text.segments[last + 1].intersects_bits(mask):
                last += 1
            spans.append(
                SelectedSpan(span.block_index, text.segments[first].offset, text.segment_end(last))
            )
        return Selection(spans, selection.segments)

    # ------------------------------------------------------------------
    # Flag operations
    # ------------------------------------------------------------------

    def add_flags(self, selection: Selection, delta: FlagsWithData):
        for text, first, last in self._ranges(selection):
            text.add_flags(first, last, delta)

    def set_flags(self, selection: Selection, value: FlagsWithData):
        """Overwrite the flags of every selected segment

        Payloads that are no longer referenced anywhere are released
        """
        before = self._pairs_in(selection, FlagKind.ALL)
        for text, first, last in self._ranges(selection):
            text.set_flags(first, last, value)
        self._release_orphans(before)

    def remove_flags(
        self,
        selection: Selection,
        delta: Union[FlagsWithData, FlagKind],
        expand: Optional[bool] = None,
    ):
        """Remove kinds from the selection

        Args:
            selection: The selection to remove from
            delta: The kinds to remove. Payload ids are ignored
            expand: Grow the removal to the whole flagged runs the selection
                touches. Defaults to the `remove_expands_to_run` option
        """
        self._remove(selection, delta, expand, None)

    def _remove(
        self,
        selection: Selection,
        delta: Union[FlagsWithData, FlagKind],
        expand: Optional[bool],
        keep: Optional[int],
    ) -> Optional[int]:
        if isinstance(delta, FlagsWithData):
            delta = delta.bitset
        if expand is None:
            expand = self.remove_expands_to_run
        if expand:
            selection = self._expand_to_runs(selection, delta)

        before = self._pairs_in(selection, delta)
        for text, first, last in self._ranges(selection):
            text.remove_flags(first, last, FlagsWithData(delta))
        return self._release_orphans(before, keep)

    def toggle(
        self,
        selection: Selection,
        component: Union[Component, type[Component], FlagKind],
        payload_id: Optional[int] = None,
    ) -> bool:
        """Remove the kind if every selected segment has it, otherwise apply it

        Returns:
            True if the kind was applied
        """
        kind = self._component_cls(component).FLAG
        if self.does_selection_contain(selection, kind):
            logger.debug("Unset %s", kind.name)
            self.remove_flags(selection, kind)
            return False
        logger.debug("Set %s", kind.name)
        self.insert_component(selection, component, payload_id)
        return True

    def insert_component(
        self,
        selection: Selection,
        component: Union[Component, type[Component], FlagKind],
        payload_id: Optional[int] = None,
    ) -> Optional[int]:
        """Apply a component's kind over the selection, following its sibling policy

        Raises:
            PolicyError: The kind wants its segments to itself, won't
                overwrite, and some selected segment already has another kind.
                Nothing is changed

        Returns:
            The payload id, which moves if releasing a stripped payload
            relocated it
        """
        cls = self._component_cls(component)
        kind = cls.FLAG
        allowed = cls.ALLOWED_SIBLINGS
        disallowed = FlagKind.ALL & ~(allowed | kind)

        located = self.located_segments(selection)
        conflicting = [loc for loc in located if loc[3].intersects_bits(disallowed)]
        if conflicting:
            found = NO_KINDS
            for _bi, _start, _end, seg in conflicting:
                found |= seg.flags.bitset & disallowed

            if not cls.OVERWRITE_INVALID and allowed == NO_KINDS:
                raise PolicyError(kind, found)

            if cls.OVERWRITE_INVALID:
                logger.debug("%s overwrites %r", kind.name, found)
                payload_id = self._remove(selection, disallowed, False, payload_id)
            else:
                logger.debug("%s strips %r from conflicting segments", kind.name, found)
                spans = [SelectedSpan(bi, start, end) for bi, start, end, _seg in conflicting]
                payload_id = self._remove(Selection(spans), disallowed, False, payload_id)

        if payload_id is None:
            self.add_flags(selection, FlagsWithData.of(kind))
            return None

        # A new payload replaces whatever this kind referenced before
        replaced = self._pairs_in(selection, kind)
        self.add_flags(selection, FlagsWithData.of(kind, payload_id))
        return self._release_orphans(replaced, payload_id)

    def _component_cls(
        self, component: Union[Component, type[Component], FlagKind]
    ) -> type[Component]:
        if isinstance(component, Component):
            return type(component)
        if isinstance(component, type):
            return component
        return COMPONENTS[FlagKind(component)]

    # ------------------------------------------------------------------
    # Payloads
    # ------------------------------------------------------------------

    def store_data(self, kind: FlagKind, payload: bytes) -> int:
        return self.store.store(kind, payload)

    def get_data(self, payload_id: int) -> bytes:
        return self.store.get(payload_id)

    def update_data(self, payload_id: int, payload: bytes):
        self.store.update(payload_id, payload)

    def remove_data(self, payload_id: int) -> Optional[tuple[FlagKind, int, int]]:
        """Remove a payload and every reference to it

        The kind is dropped from every segment that references the payload,
        then the payload is swap-removed and every reference to the payload
        that moved is rewritten to its new id, across every block.

        Returns:
            The (kind, old_id, new_id) of the payload that moved, if any
        """
        kind = self.store.kind_of(payload_id)
        for text in self.blocks:
            text.remove_pair(kind, payload_id)

        relocation = self.store.remove(payload_id)
        if relocation is not None:
            moved_kind, old_id, new_id = relocation
            for text in self.blocks:
                text.rewrite_payload(moved_kind, old_id, new_id)
        return relocation

    def is_referenced(self, kind: FlagKind, payload_id: int) -> bool:
        target = FlagsWithData.of(kind, payload_id)
        return any(text.has_pair(target) for text in self.blocks)

    def _pairs_in(self, selection: Selection, mask: FlagKind) -> list[tuple[FlagKind, int]]:
        pairs = []
        for seg in self.segments_in(selection):
            for kind, pid in seg.flags.data:
                if kind & mask and (kind, pid) not in pairs:
                    pairs.append((kind, pid))
        return pairs

    def _release_orphans(
        self, pairs: list[tuple[FlagKind, int]], keep: Optional[int] = None
    ) -> Optional[int]:
        """Remove the payloads in `pairs` nothing references any more

        Highest ids go first, so a relocation only ever moves the current last
        payload into a slot above every id still waiting to be released.

        Returns:
            The id `keep` ended up at
        """
        for kind, pid in sorted(pairs, key=lambda p: p[1], reverse=True):
            if pid == keep or self.is_referenced(kind, pid):
                continue
            relocation = self.remove_data(pid)
            if relocation is not None and relocation[1] == keep:
                keep = relocation[2]
        return keep

    def iter_flagged_text(self) -> Iterator[FlaggedText]:
        """Yield each annotated run, one per kind, joined across segments"""
        for block_index, text in enumerate(self.blocks):
            for kind in iter_kinds(FlagKind.ALL):
                current: Optional[FlaggedText] = None
                for start, end, seg in text.spans():
                    if not seg.intersects_bits(kind):
                        if current is not None:
                            yield current
                            current = None
                        continue
                    pid = seg.flags.payload_for(kind)
                    content = self.renderer.text(seg.handle)
                    if current is not None and current.payload_id == pid:
                        current.end = end
                        current.content += content
                        continue
                    if current is not None:
                        yield current
                    current = FlaggedText(kind, pid, block_index, start, end, content)
                if current is not None:
                    yield current

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save(self) -> SaveState:
        """Snapshot the annotations

        Boundaries left behind by selections that were resolved but never
        used are merged first, so equal states always save to equal bytes
        """
        for text in self.blocks:
            text.merge()
        return SaveState(
            version=self.save_version,
            data=self.store.items(),
            nodes=[
                SavedSegmentation.from_text(index, text)
                for index, text in enumerate(self.blocks)
                if not text.are_all_flags_empty()
            ],
        )

    def try_save(self) -> Optional[SaveState]:
        """Like save, but None if there is nothing annotated"""
        state = self.save()
        return state if state.nodes else None

    def save_bytes(self) -> bytes:
        return self.save().to_bytes()

    def load(self, state: Union[SaveState, bytes]):
        """Replace the annotations with a saved state

        The state is fully decoded and checked against the registered blocks
        before anything changes, so a CodecError leaves the document as it was
        """
        if not isinstance(state, SaveState):
            state = SaveState.from_bytes(state)
        self._validate(state)

        for text in self.blocks:
            if not text.are_all_flags_empty():
                text.release()
        self.store.load(state.data)
        for node in state.nodes:
            node.restore(self.blocks[node.index])
        logger.info(
            "Loaded %s payloads over %s blocks", len(state.data), len(state.nodes)
        )

    def _validate(self, state: SaveState):
        if state.version > CURRENT_VERSION:
            raise CodecError(f"Save version {state.version} is newer than {CURRENT_VERSION}")
        seen = set()
        for node in state.nodes:
            if node.index >= len(self.blocks):
                raise CodecError(
                    f"Saved block {node.index} but only {len(self.blocks)} are registered"
                )
            if node.index in seen:
                raise CodecError(f"Block {node.index} saved twice")
            seen.add(node.index)
            node.validate(self.blocks[node.index].length, state.data)

    @classmethod
    def load_and_register(
        cls,
        state: Union[SaveState, bytes],
        renderer: RenderCollaborator,
        handles: Sequence[int],
        options: Optional[EngineOptions] = None,
    ) -> AnnotatedDocument:
        """Register fresh backing nodes and restore a saved state onto them"""
        document = cls(renderer, options)
        document.register_blocks(handles)
        document.load(state)
        return document
