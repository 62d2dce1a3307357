from __future__ import annotations
from .flags import FlagKind, FlagsWithData

STYLING_PREFIX_CLASS = "editor-styling"

CLASS_NAMES: dict[FlagKind, str] = {
    FlagKind.ITALICIZE: "italicize",
    FlagKind.HIGHLIGHT: "highlight",
    FlagKind.UNDERLINE: "underline",
    FlagKind.NOTE: "note",
}


def generate_class_name(flags: FlagsWithData) -> str:
    """Get the class string for a set of flags

    The same flags always give the same string. Empty flags give ""
    """
    if flags.is_empty():
        return ""
    classes = [STYLING_PREFIX_CLASS]
    classes.extend(CLASS_NAMES[kind] for kind in flags.kinds())
    return " ".join(classes)


# fmt: off
FORMAT_SPECS = {
    "italicize": {"italic": True},
    "highlight": {"background": "#FFF176"},
    "underline": {"underline": True},
    "note": {"background": "#BBDEFB", "underline": True, "underline_color": "#1565C0"},
}
# fmt: on
