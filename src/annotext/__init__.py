from .codec import CURRENT_VERSION, SavedFlagRun, SavedSegmentation, SaveState
from .components import COMPONENTS, Component, Highlight, Italicize, Note, Underline
from .document import AnnotatedDocument, FlaggedText
from .errors import AnnotextError, CodecError, PolicyError, StaleHandleError
from .flags import FlagKind, FlagsWithData
from .options import DEFAULT_OPTIONS, EngineOptions
from .presentation import FORMAT_SPECS, STYLING_PREFIX_CLASS, generate_class_name
from .render import RenderCollaborator, TextArena
from .segment import Segment
from .segmented_text import SegmentedText
from .selection import SelectedSpan, Selection
from .store import AnnotationStore
from .tracker import BlockTracker

__all__ = [
    "AnnotatedDocument",
    "AnnotationStore",
    "AnnotextError",
    "BlockTracker",
    "COMPONENTS",
    "CURRENT_VERSION",
    "CodecError",
    "Component",
    "DEFAULT_OPTIONS",
    "EngineOptions",
    "FORMAT_SPECS",
    "FlagKind",
    "FlaggedText",
    "FlagsWithData",
    "Highlight",
    "Italicize",
    "Note",
    "PolicyError",
    "RenderCollaborator",
    "STYLING_PREFIX_CLASS",
    "SaveState",
    "SavedFlagRun",
    "SavedSegmentation",
    "Segment",
    "SegmentedText",
    "SelectedSpan",
    "Selection",
    "StaleHandleError",
    "TextArena",
    "Underline",
    "generate_class_name",
]
