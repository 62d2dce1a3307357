from __future__ import annotations
import logging
from typing import TYPE_CHECKING, Optional

from . import Component
from ..flags import FlagKind

if TYPE_CHECKING:
    from ..selection import Selection

logger = logging.getLogger(__name__)


class Highlight(Component):
    """Highlight a selection, optionally with a color index as its payload"""

    TITLE = "H"
    FLAG = FlagKind.HIGHLIGHT

    def on_select(self, selection: Selection, color: Optional[int] = None) -> bool:
        if color is None or self.does_selected_contain_self(selection):
            return super().on_select(selection)

        logger.debug("Highlight with color %s", color)
        payload_id = self.store_data(color)
        self.document.insert_component(selection, self, payload_id)
        return True

    def color_of(self, payload_id: int) -> int:
        return self.get_data(payload_id)
