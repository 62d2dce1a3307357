from __future__ import annotations
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .flags import FlagKind


class AnnotextError(Exception):
    """Base class for the recoverable errors raised by the engine"""


class PolicyError(AnnotextError):
    """A flag kind refused to share a segment with the kinds already there

    The engine state is unchanged when this is raised
    """

    def __init__(self, kind: FlagKind, conflicting: FlagKind):
        self.kind = kind
        self.conflicting = conflicting
        super().__init__(
            f"Cannot apply {kind.name} over segments flagged {conflicting!r}"
        )


class CodecError(AnnotextError, ValueError):
    """The saved byte stream is truncated or corrupt"""


class StaleHandleError(AnnotextError, KeyError):
    """The render collaborator no longer knows about a backing handle"""

    def __init__(self, handle: int):
        self.handle = handle
        super().__init__(f"Backing handle {handle} is no longer valid")
