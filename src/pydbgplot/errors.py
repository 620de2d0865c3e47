class DebugPlotError(Exception):
    """Base class for errors raised inside pydbgplot."""


class RenderError(DebugPlotError):
    """Charting, encoding or file write failure for one render attempt."""


class WindowError(DebugPlotError):
    """A live window could not be opened or maintained."""
