from __future__ import annotations
from typing import Optional, Sequence

import numpy as np


def _zcs(ary) -> np.ndarray:
    """leading Zero Cumulative Summation"""
    return np.concatenate(([0], np.cumsum(ary, dtype=np.int64)))


class BlockTracker:
    """Keep track of where each registered block starts in the document

    This is done by storing the length of each block, and a lazily rebuilt
    cumulative sum of those lengths so a document-global character offset can
    be turned into a (block, local offset) pair with a single search.

    Properties:
        lengths: The length of each block, in registration order
    """

    def __init__(self, lengths: Optional[Sequence[int]] = None):
        self.lengths: np.ndarray
        self._starts: Optional[np.ndarray] = None
        self.set([] if lengths is None else lengths)

    def set(self, lengths: Sequence[int]):
        self.lengths = np.array(lengths, dtype=np.int64)
        self._starts = None

    def append(self, length: int):
        self.lengths = np.append(self.lengths, length)
        self._starts = None

    def remove(self, block_index: int):
        self.lengths = np.delete(self.lengths, block_index)
        self._starts = None

    @property
    def starts(self) -> np.ndarray:
        if self._starts is None:
            self._starts = _zcs(self.lengths)
        return self._starts

    def __len__(self):
        return len(self.lengths)

    def total(self) -> int:
        """Get the total length of every block"""
        return int(self.starts[-1])

    def block_start(self, block_index: int) -> int:
        return int(self.starts[block_index])

    def block_for_offset(self, offset: int) -> tuple[int, int]:
        """Get the (block index, local offset) for a document-global offset

        Offsets that land exactly between two blocks belong to the later one.
        The total length maps to the end of the last block.
        """
        if not len(self.lengths) or not 0 <= offset <= self.total():
            raise IndexError(f"Offset {offset} outside [0, {self.total()}]")
        if offset == self.total():
            last = len(self.lengths) - 1
            return last, int(self.lengths[last])
        # "right" puts us past any empty blocks that share this start
        block = int(np.searchsorted(self.starts, offset, "right")) - 1
        return block, offset - int(self.starts[block])
