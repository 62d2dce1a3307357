from . import Component
from ..flags import FlagKind


class Italicize(Component):
    TITLE = "Italicize"
    FLAG = FlagKind.ITALICIZE
