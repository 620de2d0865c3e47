"""
Process-wide storage of recorded plot data.

This package holds the bounded per-series buffers, the plot entries that own
them and the registry that maps plot identities to entries.
"""

from pydbgplot.plotstore.config import PlotConfig, PlotIdentity, Sample
from pydbgplot.plotstore.series_buffer import SeriesBuffer
from pydbgplot.plotstore.snapshot import PlotSnapshot, SeriesSnapshot
from pydbgplot.plotstore.plot_entry import PlotEntry
from pydbgplot.plotstore.registry import PlotRegistry, get_registry

__all__ = [
    "PlotConfig",
    "PlotIdentity",
    "Sample",
    "SeriesBuffer",
    "PlotSnapshot",
    "SeriesSnapshot",
    "PlotEntry",
    "PlotRegistry",
    "get_registry",
]
