from . import Component
from ..flags import FlagKind


class Underline(Component):
    TITLE = "U"
    FLAG = FlagKind.UNDERLINE
