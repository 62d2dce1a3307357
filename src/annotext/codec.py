"""Bit-exact save format for the annotation state

Everything is big-endian and every variable-length item is preceded by its
count or length::

    SaveState         := version:u64
                         data_count:u32 [kind:u32 len:u32 bytes:len]*
                         node_count:u32 [SavedSegmentation]*
    SavedSegmentation := block_index:u64 run_count:u32 [SavedFlagRun]*
    SavedFlagRun      := offset:u32 has_length:u8 (length:u32)?
                         pair_count:u8 [(kind << 32 | payload_id):u64]*

Only runs with flags are written. The gaps between them are empty, which is
why decoding explicitly resets whatever follows a run with a length.
"""
from __future__ import annotations
from dataclasses import dataclass, field
import struct
from typing import Optional

from .errors import CodecError
from .flags import FlagKind, FlagsWithData, kind_from_bits
from .segmented_text import SegmentedText

CURRENT_VERSION: int = 1
MAX_PAIRS: int = 0xFF

_U8 = struct.Struct(">B")
_U32 = struct.Struct(">I")
_U64 = struct.Struct(">Q")


class _Reader:
    """Pull big-endian values off a buffer, raising CodecError on truncation"""

    def __init__(self, buf: bytes):
        self.buf = memoryview(bytes(buf))
        self.pos = 0

    def _take(self, size: int) -> memoryview:
        if self.pos + size > len(self.buf):
            raise CodecError(
                f"Truncated save data: needed {size} bytes at {self.pos}, "
                f"only {len(self.buf) - self.pos} left"
            )
        chunk = self.buf[self.pos : self.pos + size]
        self.pos += size
        return chunk

    def u8(self) -> int:
        return _U8.unpack(self._take(1))[0]

    def u32(self) -> int:
        return _U32.unpack(self._take(4))[0]

    def u64(self) -> int:
        return _U64.unpack(self._take(8))[0]

    def raw(self, size: int) -> bytes:
        return bytes(self._take(size))

    def remaining(self) -> int:
        return len(self.buf) - self.pos


@dataclass
class SavedFlagRun:
    """One flagged run of a block

    Attributes:
        offset: Where the run starts inside the block
        length: How long the run is. None means it runs to the end of the block
        flags: The run's kinds, packed as (kind << 32 | payload_id)
    """

    offset: int
    length: Optional[int]
    flags: list[int] = field(default_factory=list)

    def to_bytes(self) -> bytes:
        if len(self.flags) > MAX_PAIRS:
            raise CodecError(f"A run can hold at most {MAX_PAIRS} flags")
        out = bytearray(_U32.pack(self.offset))
        if self.length is None:
            out += _U8.pack(0)
        else:
            out += _U8.pack(1)
            out += _U32.pack(self.length)
        out += _U8.pack(len(self.flags))
        for single in self.flags:
            out += _U64.pack(single)
        return bytes(out)

    @classmethod
    def read(cls, reader: _Reader) -> SavedFlagRun:
        offset = reader.u32()
        has_length = reader.u8()
        if has_length not in (0, 1):
            raise CodecError(f"Bad has_length marker {has_length}")
        length = reader.u32() if has_length else None
        flags = [reader.u64() for _ in range(reader.u8())]
        return cls(offset, length, flags)

    def to_flags(self) -> FlagsWithData:
        try:
            return FlagsWithData.from_singles(self.flags)
        except ValueError as err:
            raise CodecError(str(err)) from err


@dataclass
class SavedSegmentation:
    """The flagged runs of a single block"""

    index: int
    flags: list[SavedFlagRun] = field(default_factory=list)

    @classmethod
    def from_text(cls, index: int, text: SegmentedText) -> SavedSegmentation:
        runs = []
        last = len(text.segments) - 1
        for i, seg in enumerate(text.segments):
            if seg.are_flags_empty():
                continue
            length = None if i == last else text.segment_length(i)
            runs.append(SavedFlagRun(seg.offset, length, seg.flags.to_singles()))
        return cls(index, runs)

    def to_bytes(self) -> bytes:
        out = bytearray(_U64.pack(self.index))
        out += _U32.pack(len(self.flags))
        for run in self.flags:
            out += run.to_bytes()
        return bytes(out)

    @classmethod
    def read(cls, reader: _Reader) -> SavedSegmentation:
        index = reader.u64()
        runs = [SavedFlagRun.read(reader) for _ in range(reader.u32())]
        return cls(index, runs)

    def validate(self, block_length: int, data: list[tuple[FlagKind, bytes]]):
        """Raise a CodecError if the runs can't be applied to a block of the
        given length with the given payload table
        """
        prev_end = 0
        for run in self.flags:
            if run.offset < prev_end:
                raise CodecError(
                    f"Block {self.index}: run at {run.offset} overlaps the previous run"
                )
            end = block_length if run.length is None else run.offset + run.length
            if run.offset >= block_length or end > block_length or end <= run.offset:
                raise CodecError(
                    f"Block {self.index}: run [{run.offset}, {end}) does not fit "
                    f"a block of length {block_length}"
                )
            flags = run.to_flags()
            for kind, payload_id in flags.data:
                if payload_id >= len(data):
                    raise CodecError(f"Block {self.index}: unknown payload id {payload_id}")
                if data[payload_id][0] != kind:
                    raise CodecError(
                        f"Block {self.index}: payload {payload_id} belongs to "
                        f"{data[payload_id][0]!r}, not {kind!r}"
                    )
            prev_end = end

    def restore(self, text: SegmentedText):
        """Replay the runs onto a freshly registered block"""
        for run in self.flags:
            end = text.length if run.length is None else run.offset + run.length
            first, last = text.range_for(run.offset, end)
            text.set_flags(first, last, run.to_flags())
            if run.length is not None and end < text.length:
                first, last = text.range_for(end, text.length)
                text.clear_flags(first, last)


@dataclass
class SaveState:
    """A snapshot of a document's annotations

    Attributes:
        version: The format version
        data: The payload table, (kind, bytes) in payload id order
        nodes: The flagged runs of every block that has any
    """

    version: int = CURRENT_VERSION
    data: list[tuple[FlagKind, bytes]] = field(default_factory=list)
    nodes: list[SavedSegmentation] = field(default_factory=list)

    def to_bytes(self) -> bytes:
        out = bytearray(_U64.pack(self.version))
        out += _U32.pack(len(self.data))
        for kind, payload in self.data:
            out += _U32.pack(int(kind))
            out += _U32.pack(len(payload))
            out += payload
        out += _U32.pack(len(self.nodes))
        for node in self.nodes:
            out += node.to_bytes()
        return bytes(out)

    @classmethod
    def from_bytes(cls, buf: bytes) -> SaveState:
        """Decode a whole buffer. Raises CodecError if anything is off"""
        reader = _Reader(buf)
        version = reader.u64()

        data: list[tuple[FlagKind, bytes]] = []
        for _ in range(reader.u32()):
            bits = reader.u32()
            try:
                kind = kind_from_bits(bits)
            except ValueError as err:
                raise CodecError(str(err)) from err
            data.append((kind, reader.raw(reader.u32())))

        nodes = [SavedSegmentation.read(reader) for _ in range(reader.u32())]
        if reader.remaining():
            raise CodecError(f"{reader.remaining()} unexpected trailing bytes")

        return cls(version, data, nodes)

