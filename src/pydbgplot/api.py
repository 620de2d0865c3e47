import atexit
import os
import sys
from dataclasses import fields
from typing import Any, List, Mapping, Optional, Sequence, Tuple

from loguru import logger

from pydbgplot.errors import RenderError
from pydbgplot.plotstore.config import PlotConfig, PlotIdentity, Sample
from pydbgplot.plotstore.registry import get_registry
from pydbgplot.settings import SETTINGS


def _call_site(depth: int) -> str:
    """'file:line' of the frame ``depth`` levels above the caller."""
    frame = sys._getframe(depth + 1)
    filename = frame.f_code.co_filename
    try:
        filename = os.path.relpath(filename)
    except ValueError:
        # Different drive on Windows
        pass
    return f"{filename}:{frame.f_lineno}"


def _make_sample(name: Any, value: Any, label: Optional[str] = None) -> Optional[Sample]:
    """Build a sample from a value or an (x, y) pair; None if it is not numeric."""
    if isinstance(value, (tuple, list)) and len(value) == 2:
        x, y = value
    else:
        x, y = None, value

    try:
        return Sample(
            str(name),
            float(y),
            None if x is None else float(x),
            None if label is None else str(label),
        )
    except (TypeError, ValueError):
        logger.warning(f"Dropping non-numeric value for '{name}': {value!r}")
        return None


def _coerce_samples(raw: Sequence[Any]) -> List[Sample]:
    """
    Normalise the positional arguments of :func:`plot` into samples.

    Accepted forms are ``Sample`` instances, ``(name, y)``, ``(name, (x, y))``,
    the same with a trailing label, and mappings of ``name -> y`` or
    ``name -> (x, y)``.
    """
    samples: List[Optional[Sample]] = []
    for item in raw:
        if isinstance(item, Sample):
            value = item.y if item.x is None else (item.x, item.y)
            samples.append(_make_sample(item.name, value, item.label))
        elif isinstance(item, Mapping):
            samples.extend(_make_sample(name, value) for name, value in item.items())
        elif isinstance(item, tuple) and len(item) in (2, 3):
            samples.append(_make_sample(*item))
        else:
            logger.warning(f"Ignoring unsupported plot argument {item!r}")
    return [s for s in samples if s is not None]


def _record(
    raw_samples: Sequence[Any],
    call_site: str,
    identity: Optional[str],
    options: Mapping[str, Any],
) -> None:
    try:
        samples = _coerce_samples(raw_samples)
        if not samples:
            logger.debug(f"Nothing to plot at {call_site}")
            return

        plot_identity = PlotIdentity.resolve(
            explicit=identity,
            caption=options.get("caption"),
            path=options.get("path"),
            call_site=call_site,
        )
        config = PlotConfig(**options)
        entry = get_registry().get_or_create(plot_identity, config)
        entry.update(samples)
    except Exception as e:
        logger.exception(f"Failed to record plot data at {call_site}: {e}")


def plot(
    *samples: Any,
    identity: Optional[str] = None,
    caption: Optional[str] = None,
    path: Optional[str] = None,
    size: Optional[Tuple[int, int]] = None,
    x_desc: Optional[str] = None,
    y_desc: Optional[str] = None,
    x_range: Optional[Tuple[float, float]] = None,
    y_range: Optional[Tuple[float, float]] = None,
    capacity: Optional[int] = None,
    live: Optional[bool] = None,
    render_on: Optional[str] = None,
) -> None:
    """
    Record values for a chart. Does nothing when recording is disabled.

    Every call to the same plot (same identity, caption, path or call site, in
    that order of precedence) appends one sample to each named series. Options
    only take effect on the first call for a plot.

    This function never raises; problems are logged.

    Parameters
    ----------
    *samples
        ``Sample`` objects, ``(name, y)`` or ``(name, (x, y))`` tuples with an
        optional trailing legend label, or mappings of name to y or (x, y).
        Without an explicit x, the number of calls to this plot is used.
    identity : Optional[str]
        Explicit plot key.
    caption : Optional[str]
        Chart title and default file name.
    path : Optional[str]
        Output image path; defaults to ``<output_dir>/<caption>.png``.
    size : Optional[Tuple[int, int]]
        Image size in pixels.
    x_desc, y_desc : Optional[str]
        Axis descriptions.
    x_range, y_range : Optional[Tuple[float, float]]
        Fixed axis ranges.
    capacity : Optional[int]
        Number of most recent samples kept per series.
    live : Optional[bool]
        Show a live window instead of writing a file.
    render_on : Optional[str]
        "update" (default) or "exit".

    Examples
    --------
    >>> for i in range(100):
    ...     plot(("sin", (i / 10, math.sin(i / 10))), caption="Trigonometry")
    """
    if not SETTINGS.enabled:
        return
    _record(
        samples,
        _call_site(1),
        identity,
        dict(
            caption=caption,
            path=path,
            size=size,
            x_desc=x_desc,
            y_desc=y_desc,
            x_range=x_range,
            y_range=y_range,
            capacity=capacity,
            live=live,
            render_on=render_on,
        ),
    )


def plot_always(*samples: Any, identity: Optional[str] = None, **options: Any) -> None:
    """Same as :func:`plot`, but records even when recording is disabled."""
    unknown = set(options) - {f.name for f in fields(PlotConfig)}
    if unknown:
        logger.warning(f"Ignoring unknown plot option(s): {', '.join(sorted(unknown))}")
        options = {k: v for k, v in options.items() if k not in unknown}
    _record(samples, _call_site(1), identity, options)


def flush() -> None:
    """Write every plot with unwritten changes to its file, except running live plots."""
    for entry in get_registry().entries():
        if not entry.dirty or entry.live_running:
            continue
        try:
            entry.render()
        except RenderError as e:
            logger.exception(f"Error rendering plot '{entry.title}': {e}")


atexit.register(flush)
