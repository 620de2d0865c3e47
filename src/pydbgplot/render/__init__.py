"""
Chart rendering for recorded plots.

Static images are drawn with matplotlib's Agg canvas and encoded with Pillow;
live plots are rendered by a background thread and shown by a window process.
"""

from pydbgplot.render.chart import encode_image, render_chart, render_to_file
from pydbgplot.render.live import LiveBridge, LiveState
from pydbgplot.render.window import MatplotlibWindow, ProcessWindow, Window, open_window

__all__ = [
    "render_chart",
    "encode_image",
    "render_to_file",
    "LiveBridge",
    "LiveState",
    "Window",
    "MatplotlibWindow",
    "ProcessWindow",
    "open_window",
]
