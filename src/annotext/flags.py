from __future__ import annotations
from enum import IntFlag
from typing import Iterable, Iterator, Optional, Union


class FlagKind(IntFlag):
    """The annotation kinds. The bit values are written to disk, never renumber them"""

    ITALICIZE = 0b0000_0001
    HIGHLIGHT = 0b0000_0010
    UNDERLINE = 0b0000_0100
    NOTE = 0b0000_1000

    ALL = 0b0000_1111


NO_KINDS = FlagKind(0)
# Payload id written to disk for kinds that carry no auxiliary data
NO_PAYLOAD: int = 0xFFFF_FFFF
SINGLE_KINDS: tuple[FlagKind, ...] = (
    FlagKind.ITALICIZE,
    FlagKind.HIGHLIGHT,
    FlagKind.UNDERLINE,
    FlagKind.NOTE,
)


def iter_kinds(bits: Union[int, FlagKind]) -> Iterator[FlagKind]:
    """Yield every single kind set in `bits`, lowest bit first"""
    for kind in SINGLE_KINDS:
        if bits & kind:
            yield kind


def kind_from_bits(bits: int) -> FlagKind:
    """Get the single FlagKind for the given bits, or raise a ValueError"""
    for kind in SINGLE_KINDS:
        if kind == bits:
            return kind
    raise ValueError(f"{bits:#x} is not a single annotation kind")


def pack_single(kind: FlagKind, payload_id: int) -> int:
    """Pack a kind and a payload id into the u64 used on disk"""
    return (int(kind) << 32) | (payload_id & 0xFFFF_FFFF)


def unpack_single(value: int) -> tuple[FlagKind, int]:
    """The inverse of pack_single"""
    return kind_from_bits(value >> 32), value & 0xFFFF_FFFF


class FlagsWithData:
    """The set of kinds on a segment, with an optional payload id per kind

    Stored as a mapping of kind -> payload id (None for no payload), so the
    bitset is always exactly the kinds present. Two values are equal when
    both the bitset and the (kind, payload_id) list match, which is what
    decides whether neighboring segments merge.
    """

    __slots__: tuple[str, ...] = ("_kinds",)

    def __init__(
        self,
        bitset: Union[int, FlagKind] = NO_KINDS,
        data: Optional[Iterable[tuple[FlagKind, int]]] = None,
    ):
        self._kinds: dict[FlagKind, Optional[int]] = {
            kind: None for kind in iter_kinds(bitset)
        }
        for kind, payload_id in data or ():
            self._kinds[FlagKind(kind)] = payload_id

    @classmethod
    def empty(cls) -> FlagsWithData:
        return cls()

    @classmethod
    def of(cls, kind: FlagKind, payload_id: Optional[int] = None) -> FlagsWithData:
        """A value holding a single kind"""
        if payload_id is None:
            return cls(kind)
        return cls(kind, [(kind, payload_id)])

    @classmethod
    def from_singles(cls, singles: Iterable[int]) -> FlagsWithData:
        """Build from the packed u64 values stored on disk

        A payload id of 0xFFFFFFFF means the kind carries no payload
        """
        out = cls()
        for single in singles:
            kind, payload_id = unpack_single(single)
            out._kinds[kind] = None if payload_id == NO_PAYLOAD else payload_id
        return out

    @property
    def bitset(self) -> FlagKind:
        bits = NO_KINDS
        for kind in self._kinds:
            bits |= kind
        return bits

    @property
    def data(self) -> list[tuple[FlagKind, int]]:
        """The (kind, payload_id) pairs, sorted by kind"""
        return sorted(
            (kind, pid) for kind, pid in self._kinds.items() if pid is not None
        )

    def to_singles(self) -> list[int]:
        """Every kind packed into a u64, sorted by kind"""
        return [
            pack_single(kind, NO_PAYLOAD if pid is None else pid)
            for kind, pid in sorted(self._kinds.items())
        ]

    def kinds(self) -> list[FlagKind]:
        return sorted(self._kinds)

    def payload_for(self, kind: FlagKind) -> Optional[int]:
        return self._kinds.get(kind)

    def copy(self) -> FlagsWithData:
        out = FlagsWithData()
        out._kinds = dict(self._kinds)
        return out

    def is_empty(self) -> bool:
        return not self._kinds

    def insert(self, other: FlagsWithData):
        """Add the kinds of `other`. Payload ids in `other` replace ours"""
        for kind, pid in other._kinds.items():
            if pid is None:
                self._kinds.setdefault(kind, None)
            else:
                self._kinds[kind] = pid

    def remove(self, other: Union[FlagsWithData, FlagKind]):
        """Drop every kind of `other`, whatever payload id we hold for it"""
        bits = other.bitset if isinstance(other, FlagsWithData) else other
        for kind in iter_kinds(bits):
            self._kinds.pop(kind, None)

    def clear(self):
        self._kinds.clear()

    def intersects_bits(self, mask: Union[int, FlagKind]) -> bool:
        """Bit test only, payload ids are ignored"""
        return bool(self.bitset & mask)

    def contains_pair(self, other: FlagsWithData) -> bool:
        """True if we hold every kind of `other` and the same payload id for
        every kind `other` has a payload for
        """
        for kind, pid in other._kinds.items():
            if kind not in self._kinds:
                return False
            if pid is not None and self._kinds[kind] != pid:
                return False
        return True

    def rewrite_payload(self, kind: FlagKind, old_id: int, new_id: int) -> bool:
        """Point a (kind, old_id) reference at new_id. Returns True if changed"""
        if self._kinds.get(kind) == old_id:
            self._kinds[kind] = new_id
            return True
        return False

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FlagsWithData):
            return NotImplemented
        return self._kinds == other._kinds

    __hash__ = None  # type: ignore

    def __bool__(self) -> bool:
        return bool(self._kinds)

    def __repr__(self):
        parts = []
        for kind, pid in sorted(self._kinds.items()):
            parts.append(kind.name if pid is None else f"{kind.name}:{pid}")
        return f"<FlagsWithData {{{', '.join(parts)}}}>"
