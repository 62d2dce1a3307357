from __future__ import annotations
from dataclasses import dataclass, field

from .flags import FlagsWithData


@dataclass
class Segment:
    """One contiguous run of a text block carrying a single FlagsWithData

    Attributes:
        handle: The render collaborator's node for this run. The engine only
            passes it back to the collaborator, it never owns or inspects it
        offset: The start of this run within its block. The length is implied
            by the next segment's offset, or the block length for the last one
        flags: The kinds (and payload ids) applied to this run
    """

    handle: int
    offset: int
    flags: FlagsWithData = field(default_factory=FlagsWithData)

    def are_flags_empty(self) -> bool:
        return self.flags.is_empty()

    def intersects_bits(self, mask) -> bool:
        return self.flags.intersects_bits(mask)

    def contains_pair(self, value: FlagsWithData) -> bool:
        return self.flags.contains_pair(value)
