"""
pydbgplot: Debug Plotting Library

Record values at arbitrary call sites and have them rendered as charts,
written to image files or shown in a live window.
"""

# plotstore must be imported before the render subpackage
from pydbgplot.plotstore import (
    PlotConfig,
    PlotEntry,
    PlotIdentity,
    PlotRegistry,
    Sample,
    get_registry,
)
from pydbgplot.api import flush, plot, plot_always
from pydbgplot.errors import DebugPlotError, RenderError, WindowError
from pydbgplot.settings import SETTINGS, Settings, configure, configure_logging

__all__ = [
    # Call-site entry points
    "plot",
    "plot_always",
    "flush",
    "Sample",
    # Configuration
    "configure",
    "configure_logging",
    "SETTINGS",
    "Settings",
    # Storage
    "PlotConfig",
    "PlotIdentity",
    "PlotEntry",
    "PlotRegistry",
    "get_registry",
    # Errors
    "DebugPlotError",
    "RenderError",
    "WindowError",
]
