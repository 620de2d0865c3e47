import io
import os
import tempfile
import threading
from pathlib import Path
from typing import Dict, Tuple

import matplotlib as mpl
import numpy as np
from loguru import logger
from matplotlib.backends.backend_agg import FigureCanvasAgg
from matplotlib.figure import Figure
from PIL import Image

from pydbgplot.errors import RenderError
from pydbgplot.plotstore.snapshot import PlotSnapshot
from pydbgplot.render.axis_limits import compute_limits

# Matplotlib's font and text caches are process-wide, so figures are drawn one at a time
RENDER_LOCK = threading.RLock()

DPI = 100
TITLE_FONT_SIZE = 14
LINE_WIDTH = 1.5
LEGEND_ALPHA = 0.8

# Output suffix -> Pillow format name
IMAGE_FORMATS: Dict[str, str] = {
    ".png": "PNG",
    ".jpg": "JPEG",
    ".jpeg": "JPEG",
    ".bmp": "BMP",
    ".gif": "GIF",
    ".tif": "TIFF",
    ".tiff": "TIFF",
    ".webp": "WEBP",
}
# Formats without an alpha channel
_RGB_ONLY_FORMATS = ("JPEG", "BMP")


def series_color(index: int, count: int) -> Tuple[float, float, float]:
    """Evenly spaced fully saturated hues, one per series."""
    hue = index / count if count > 0 else 0.0
    return tuple(mpl.colors.hsv_to_rgb((hue, 1.0, 1.0)))


def render_chart(snapshot: PlotSnapshot) -> np.ndarray:
    """
    Draw a snapshot into an RGBA pixel array.

    Each series becomes a labelled line. Axis limits come from the fixed ranges
    when given, otherwise from the data extents. A snapshot without series
    produces an empty chart with axes and title.

    Parameters
    ----------
    snapshot : PlotSnapshot
        The plot state to draw.

    Returns
    -------
    np.ndarray
        Array of shape (height, width, 4), dtype uint8.
    """
    width, height = snapshot.size

    with RENDER_LOCK:
        fig = Figure(figsize=(width / DPI, height / DPI), dpi=DPI, facecolor="white")
        canvas = FigureCanvasAgg(fig)
        ax = fig.add_subplot()

        n_series = len(snapshot.series)
        for i, series in enumerate(snapshot.series):
            ax.plot(
                series.x,
                series.y,
                color=series_color(i, n_series),
                linewidth=LINE_WIDTH,
                label=series.label,
            )

        ax.set_title(snapshot.title, fontsize=TITLE_FONT_SIZE)
        if snapshot.x_desc:
            ax.set_xlabel(snapshot.x_desc)
        if snapshot.y_desc:
            ax.set_ylabel(snapshot.y_desc)

        ax.set_xlim(
            compute_limits(
                (s.x for s in snapshot.series),
                fixed=snapshot.x_range,
                margin_fraction=0.0,
            )
        )
        ax.set_ylim(compute_limits((s.y for s in snapshot.series), fixed=snapshot.y_range))
        ax.grid(True, alpha=0.3)

        if n_series:
            legend = ax.legend(loc="upper right", framealpha=LEGEND_ALPHA)
            legend.get_frame().set_facecolor("white")
            legend.get_frame().set_edgecolor("black")

        canvas.draw()
        pixels = np.asarray(canvas.buffer_rgba()).copy()

    logger.debug(
        f"Rendered '{snapshot.title}' generation {snapshot.generation}: "
        f"{n_series} series, {pixels.shape[1]}x{pixels.shape[0]} px"
    )
    return pixels


def encode_image(pixels: np.ndarray, suffix: str = ".png") -> bytes:
    """
    Encode RGBA pixels in the image format selected by a file suffix.

    Parameters
    ----------
    pixels : np.ndarray
        RGBA array as returned by :func:`render_chart`.
    suffix : str, default=".png"
        File suffix, case-insensitive.

    Returns
    -------
    bytes
        The encoded image.

    Raises
    ------
    RenderError
        If the suffix is not a supported image format.
    """
    image_format = IMAGE_FORMATS.get(suffix.lower())
    if image_format is None:
        raise RenderError(
            f"Unsupported image format '{suffix}'. Supported: {', '.join(IMAGE_FORMATS)}"
        )

    image = Image.fromarray(np.ascontiguousarray(pixels, dtype=np.uint8))
    if image_format in _RGB_ONLY_FORMATS:
        image = image.convert("RGB")

    buffer = io.BytesIO()
    image.save(buffer, format=image_format)
    return buffer.getvalue()


def write_atomic(path: Path, data: bytes) -> None:
    """
    Write bytes to a temporary sibling file, then rename it over ``path``.

    Missing parent directories are created.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(
        dir=path.parent, prefix=f".{path.name}.", suffix=".tmp"
    )
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise


def render_to_file(snapshot: PlotSnapshot) -> Path:
    """
    Render a snapshot and write it to its output path.

    Parameters
    ----------
    snapshot : PlotSnapshot
        The plot state to render.

    Returns
    -------
    Path
        The written file.

    Raises
    ------
    RenderError
        If drawing, encoding or writing fails.
    """
    path = snapshot.output_path
    logger.info(f'Saving plot "{snapshot.title}" to {path}')
    try:
        pixels = render_chart(snapshot)
        data = encode_image(pixels, path.suffix)
        write_atomic(path, data)
    except RenderError:
        raise
    except Exception as e:
        raise RenderError(f"Failed to render plot '{snapshot.title}' to {path}: {e}") from e
    return path
