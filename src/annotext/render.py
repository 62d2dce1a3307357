from __future__ import annotations
from dataclasses import dataclass
import itertools

from .errors import StaleHandleError


class RenderCollaborator:
    """The presentation layer the engine drives

    Every backing handle is an opaque int the collaborator hands out. The
    engine calls these methods when segments are carved, joined or restyled
    and never touches the underlying nodes itself.
    """

    def wrap(self, handle: int) -> int:
        """Put a presentational container around the node's text"""
        raise NotImplementedError("A RenderCollaborator must implement wrap")

    def unwrap(self, handle: int) -> int:
        """Remove the presentational container, leaving the bare text"""
        raise NotImplementedError("A RenderCollaborator must implement unwrap")

    def split(self, handle: int, offset: int) -> tuple[int, int]:
        """Carve the node at a local offset. Returns the (left, right) handles"""
        raise NotImplementedError("A RenderCollaborator must implement split")

    def join(self, left: int, right: int) -> int:
        """Splice `right` onto the end of `left`. Returns the surviving handle"""
        raise NotImplementedError("A RenderCollaborator must implement join")

    def set_presentation_class(self, handle: int, class_name: str):
        raise NotImplementedError(
            "A RenderCollaborator must implement set_presentation_class"
        )

    def text(self, handle: int) -> str:
        raise NotImplementedError("A RenderCollaborator must implement text")

    def length(self, handle: int) -> int:
        return len(self.text(handle))


@dataclass
class ArenaNode:
    text: str
    class_name: str = ""
    wrapped: bool = False


class TextArena(RenderCollaborator):
    """An in-memory render collaborator

    Nodes live in a dict keyed by integer handles, so the engine can be
    driven without any real rendering surface. Handles are never reused.
    """

    def __init__(self):
        self.nodes: dict[int, ArenaNode] = {}
        self._next_handle = itertools.count()

    def add_text(self, text: str) -> int:
        """Register a bare text node and get its handle"""
        handle = next(self._next_handle)
        self.nodes[handle] = ArenaNode(text)
        return handle

    def add_texts(self, texts: list[str]) -> list[int]:
        return [self.add_text(t) for t in texts]

    def release(self, handle: int):
        self.nodes.pop(handle, None)

    def node(self, handle: int) -> ArenaNode:
        try:
            return self.nodes[handle]
        except KeyError:
            raise StaleHandleError(handle) from None

    def wrap(self, handle: int) -> int:
        self.node(handle).wrapped = True
        return handle

    def unwrap(self, handle: int) -> int:
        self.node(handle).wrapped = False
        return handle

    def split(self, handle: int, offset: int) -> tuple[int, int]:
        node = self.node(handle)
        assert 0 < offset < len(node.text), "Split offset must be inside the node"
        right = next(self._next_handle)
        self.nodes[right] = ArenaNode(node.text[offset:], node.class_name, node.wrapped)
        node.text = node.text[:offset]
        return handle, right

    def join(self, left: int, right: int) -> int:
        lnode = self.node(left)
        rnode = self.nodes.pop(right, None)
        if rnode is None:
            raise StaleHandleError(right)
        lnode.text += rnode.text
        return left

    def set_presentation_class(self, handle: int, class_name: str):
        self.node(handle).class_name = class_name

    def text(self, handle: int) -> str:
        return self.node(handle).text

    def render_markup(self, handles: list[int]) -> str:
        """Flatten the given nodes into span markup. Useful for debugging"""
        out = []
        for handle in handles:
            node = self.node(handle)
            if node.wrapped:
                out.append(f'<span class="{node.class_name}">{node.text}</span>')
            else:
                out.append(node.text)
        return "".join(out)
