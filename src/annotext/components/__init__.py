from __future__ import annotations
import json
from typing import TYPE_CHECKING, Any, Optional

from ..flags import FlagKind

if TYPE_CHECKING:
    from ..document import AnnotatedDocument
    from ..selection import Selection


class Component:
    """The policy for one annotation kind

    Attributes:
        TITLE: The display title
        FLAG: The kind this component applies
        ALLOWED_SIBLINGS: The kinds that may share a segment with FLAG
        OVERWRITE_INVALID: If True, applying FLAG strips any kind outside
            ALLOWED_SIBLINGS instead of refusing
    """

    TITLE: str = ""
    FLAG: FlagKind = FlagKind(0)
    ALLOWED_SIBLINGS: FlagKind = FlagKind.ALL
    OVERWRITE_INVALID: bool = False

    def __init__(self, document: AnnotatedDocument):
        self.document = document

    @staticmethod
    def encode_data(value: Any) -> bytes:
        return json.dumps(value).encode("utf8")

    @staticmethod
    def decode_data(payload: bytes) -> Any:
        return json.loads(payload.decode("utf8"))

    def store_data(self, value: Any) -> int:
        return self.document.store_data(self.FLAG, self.encode_data(value))

    def get_data(self, payload_id: int) -> Any:
        return self.decode_data(self.document.get_data(payload_id))

    def does_selected_contain_self(self, selection: Selection) -> bool:
        return self.document.does_selection_contain(selection, self.FLAG)

    def on_select(self, selection: Selection) -> bool:
        """Toggle this kind over the selection. Returns True if it was applied"""
        return self.document.toggle(selection, self)


from .highlight import Highlight  # noqa: E402
from .italicize import Italicize  # noqa: E402
from .note import Note  # noqa: E402
from .underline import Underline  # noqa: E402

COMPONENTS: dict[FlagKind, type[Component]] = {
    FlagKind.ITALICIZE: Italicize,
    FlagKind.HIGHLIGHT: Highlight,
    FlagKind.UNDERLINE: Underline,
    FlagKind.NOTE: Note,
}


def get_component(kind: FlagKind) -> Optional[type[Component]]:
    return COMPONENTS.get(kind)


__all__ = [
    "COMPONENTS",
    "Component",
    "Highlight",
    "Italicize",
    "Note",
    "Underline",
    "get_component",
]
