from __future__ import annotations
from typing import Any, Optional

from Qt.QtCore import QObject, Signal

from .codec import CURRENT_VERSION
from .presentation import FORMAT_SPECS

DEFAULT_OPTIONS: dict[str, Any] = {
    # Grow a removal to the whole flagged run it touches instead of only
    # the selected characters
    "remove_expands_to_run": False,
    # presentation class name -> format spec, read by QtRenderer
    "format_specs": FORMAT_SPECS,
    "save_version": CURRENT_VERSION,
}


class EngineOptions(QObject):
    """The tunables shared by a document and its renderer

    Anything holding onto an option should connect to optionsUpdated and
    re-read the keys it cares about.
    """

    optionsUpdated = Signal(list)  # list of str

    def __init__(self, opts: Optional[dict[str, Any]] = None):
        super().__init__()
        self._options: dict[str, Any] = dict(DEFAULT_OPTIONS)
        if opts is not None:
            unknown = set(opts) - set(DEFAULT_OPTIONS)
            if unknown:
                raise KeyError(f"Unknown engine options: {sorted(unknown)}")
            self._options.update(opts)

    def __getitem__(self, key: str):
        return self._options[key]

    def __setitem__(self, key: str, value):
        if key not in DEFAULT_OPTIONS:
            raise KeyError(f"Unknown engine option: {key}")
        self._options[key] = value
        self.optionsUpdated.emit([key])

    def __contains__(self, key: str) -> bool:
        return key in self._options

    def update(self, opts: dict[str, Any]):
        for key, value in opts.items():
            if key not in DEFAULT_OPTIONS:
                raise KeyError(f"Unknown engine option: {key}")
            self._options[key] = value
        self.optionsUpdated.emit(list(opts.keys()))

    def reset(self, key: str):
        """Put an option back to its default"""
        self[key] = DEFAULT_OPTIONS[key]

    def get(self, key, default=None) -> Any:
        return self._options.get(key, default)

    def keys(self):
        return self._options.keys()
