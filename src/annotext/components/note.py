from __future__ import annotations
import logging
from typing import TYPE_CHECKING, Optional

from . import Component
from ..errors import PolicyError
from ..flags import FlagKind

if TYPE_CHECKING:
    from ..selection import Selection

logger = logging.getLogger(__name__)


class Note(Component):
    """A free-text note. A note owns its text exclusively, anything else on
    the selected text is stripped when the note is created
    """

    TITLE = "Note"
    FLAG = FlagKind.NOTE
    ALLOWED_SIBLINGS = FlagKind(0)
    OVERWRITE_INVALID = True

    def on_select(self, selection: Selection, text: str = "") -> bool:
        self.create(selection, text)
        return True

    def create(self, selection: Selection, text: str) -> int:
        """Store the note text and attach it to the selection

        Returns:
            The note's payload id
        """
        payload_id = self.store_data(text)
        try:
            payload_id = self.document.insert_component(selection, self, payload_id)
        except PolicyError:
            # Don't leave the text behind if it couldn't be attached
            self.document.remove_data(payload_id)
            raise
        logger.debug("Created note %s", payload_id)
        return payload_id

    def text(self, payload_id: int) -> str:
        return self.get_data(payload_id)

    def edit(self, payload_id: int, text: str):
        self.document.update_data(payload_id, self.encode_data(text))

    def delete(self, payload_id: int):
        self.document.remove_data(payload_id)

    def notes_in(self, selection: Selection) -> list[int]:
        return [
            pid
            for kind, pid in self.document.get_flag_ids_in_selection(selection)
            if kind == self.FLAG
        ]

    def on_click(self, selection: Selection) -> Optional[int]:
        """Get the id of the first note under a click, if there is one"""
        notes = self.notes_in(selection)
        return notes[0] if notes else None
