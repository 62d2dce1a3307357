from __future__ import annotations
from dataclasses import dataclass
import itertools
import logging
from typing import Any, Collection, Optional

from Qt.QtGui import QColor, QFont, QTextCharFormat, QTextCursor, QTextDocument

from .errors import StaleHandleError
from .options import EngineOptions
from .presentation import STYLING_PREFIX_CLASS
from .render import RenderCollaborator

logger = logging.getLogger(__name__)


@dataclass
class QtNode:
    """A run of characters in the QTextDocument

    Annotating never edits the text, so a node's position never moves
    """

    position: int
    length: int
    class_name: str = ""
    wrapped: bool = False

    @property
    def end(self) -> int:
        return self.position + self.length


class QtRenderer(RenderCollaborator):
    """Drive the annotation presentation of a QTextDocument

    Each handle is a character range of the document. Presentation classes
    are turned into merged QTextCharFormats and applied with a cursor.
    """

    def __init__(self, document: QTextDocument, options: Optional[EngineOptions] = None):
        self.document = document
        self.options = EngineOptions() if options is None else options
        self.nodes: dict[int, QtNode] = {}
        self._next_handle = itertools.count()
        self.formats: dict[str, QTextCharFormat] = {}

        self.options.optionsUpdated.connect(self.updateOptions)
        self.updateOptions(["format_specs"])

    def updateOptions(self, keylist: Collection[str]):
        if "format_specs" not in keylist:
            return
        self.formats = self._compile_formats(self.options["format_specs"])
        for node in self.nodes.values():
            if node.wrapped:
                self._apply(node)

    # ------------------------------------------------------------------
    # Text formats
    # ------------------------------------------------------------------

    def _compile_formats(
        self, format_specs: dict[str, dict[str, Any]]
    ) -> dict[str, QTextCharFormat]:
        """Convert user style specs -> QTextCharFormat instances."""
        out = {}

        for name, spec in format_specs.items():
            fmt = QTextCharFormat()
            if "color" in spec:
                fmt.setForeground(QColor(spec["color"]))
            if "background" in spec:
                fmt.setBackground(QColor(spec["background"]))
            if spec.get("bold"):
                fmt.setFontWeight(QFont.Bold)
            if spec.get("italic"):
                fmt.setFontItalic(True)
            if spec.get("underline"):
                fmt.setFontUnderline(True)
            if "underline_color" in spec:
                fmt.setUnderlineColor(QColor(spec["underline_color"]))
            out[name] = fmt

        return out

    def format_for(self, class_name: str) -> QTextCharFormat:
        """Merge the formats of every class in a class string"""
        fmt = QTextCharFormat()
        for name in class_name.split():
            if name == STYLING_PREFIX_CLASS:
                continue
            sub = self.formats.get(name)
            if sub is None:
                logger.warning("No format for presentation class %r", name)
                continue
            fmt.merge(sub)
        return fmt

    def _apply(self, node: QtNode):
        if not node.length:
            return
        cursor = QTextCursor(self.document)
        cursor.setPosition(node.position)
        cursor.setPosition(node.end, QTextCursor.KeepAnchor)
        if node.wrapped and node.class_name:
            cursor.setCharFormat(self.format_for(node.class_name))
        else:
            cursor.setCharFormat(QTextCharFormat())

    # ------------------------------------------------------------------
    # Nodes
    # ------------------------------------------------------------------

    def add_range(self, position: int, length: int) -> int:
        handle = next(self._next_handle)
        self.nodes[handle] = QtNode(position, length)
        return handle

    def nodes_for_document(self) -> list[int]:
        """Make one handle per QTextBlock, not counting the block separator"""
        handles = []
        block = self.document.firstBlock()
        while block.isValid():
            handles.append(self.add_range(block.position(), max(block.length() - 1, 0)))
            block = block.next()
        return handles

    def node(self, handle: int) -> QtNode:
        try:
            return self.nodes[handle]
        except KeyError:
            raise StaleHandleError(handle) from None

    # ------------------------------------------------------------------
    # RenderCollaborator
    # ------------------------------------------------------------------

    def wrap(self, handle: int) -> int:
        node = self.node(handle)
        node.wrapped = True
        self._apply(node)
        return handle

    def unwrap(self, handle: int) -> int:
        node = self.node(handle)
        node.wrapped = False
        self._apply(node)
        return handle

    def split(self, handle: int, offset: int) -> tuple[int, int]:
        node = self.node(handle)
        assert 0 < offset < node.length, "Split offset must be inside the node"
        right = next(self._next_handle)
        self.nodes[right] = QtNode(
            node.position + offset, node.length - offset, node.class_name, node.wrapped
        )
        node.length = offset
        return handle, right

    def join(self, left: int, right: int) -> int:
        lnode = self.node(left)
        rnode = self.node(right)
        assert lnode.end == rnode.position, "Only neighboring nodes can be joined"
        del self.nodes[right]
        lnode.length += rnode.length
        return left

    def set_presentation_class(self, handle: int, class_name: str):
        node = self.node(handle)
        node.class_name = class_name
        if node.wrapped:
            self._apply(node)

    def text(self, handle: int) -> str:
        node = self.node(handle)
        cursor = QTextCursor(self.document)
        cursor.setPosition(node.position)
        cursor.setPosition(node.end, QTextCursor.KeepAnchor)
        return cursor.selectedText()

    def length(self, handle: int) -> int:
        return self.node(handle).length
