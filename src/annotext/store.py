from __future__ import annotations
import logging
from typing import Iterable, Optional

from .flags import FlagKind

logger = logging.getLogger(__name__)


class AnnotationStore:
    """The side-table of payloads referenced by segments

    Each entry is a (kind, payload bytes) pair and its position in the list
    is its payload id. Removal swaps the last entry into the freed slot, so
    it reports which id moved and the caller has to rewrite every reference
    to the old id. AnnotatedDocument.remove_data does both in one call.
    """

    def __init__(self, items: Optional[Iterable[tuple[FlagKind, bytes]]] = None):
        self._items: list[tuple[FlagKind, bytes]] = []
        if items is not None:
            self.load(items)

    def __len__(self):
        return len(self._items)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AnnotationStore):
            return NotImplemented
        return self._items == other._items

    def _check(self, payload_id: int):
        if not 0 <= payload_id < len(self._items):
            raise IndexError(
                f"Payload id {payload_id} out of range for {len(self._items)} items"
            )

    def load(self, items: Iterable[tuple[FlagKind, bytes]]):
        self._items = [(FlagKind(kind), bytes(payload)) for kind, payload in items]

    def clear(self):
        self._items = []

    def items(self) -> list[tuple[FlagKind, bytes]]:
        return list(self._items)

    def store(self, kind: FlagKind, payload: bytes) -> int:
        """Append a payload and get its id"""
        self._items.append((kind, bytes(payload)))
        return len(self._items) - 1

    def get(self, payload_id: int) -> bytes:
        self._check(payload_id)
        return self._items[payload_id][1]

    def kind_of(self, payload_id: int) -> FlagKind:
        self._check(payload_id)
        return self._items[payload_id][0]

    def update(self, payload_id: int, payload: bytes):
        self._check(payload_id)
        kind = self._items[payload_id][0]
        self._items[payload_id] = (kind, bytes(payload))

    def remove(self, payload_id: int) -> Optional[tuple[FlagKind, int, int]]:
        """Swap-remove a payload

        Returns:
            None if the removed payload was the last one. Otherwise the
            (kind, old_id, new_id) relocation of the payload that used to be
            last and now lives at `payload_id`
        """
        self._check(payload_id)
        last_id = len(self._items) - 1
        last = self._items.pop()
        if payload_id == last_id:
            return None
        self._items[payload_id] = last
        logger.debug("Payload %s moved to %s", last_id, payload_id)
        return last[0], last_id, payload_id
