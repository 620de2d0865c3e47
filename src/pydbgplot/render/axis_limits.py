from typing import Iterable, Optional, Tuple

import numpy as np
from loguru import logger

DEFAULT_MARGIN_FRACTION = 0.05
DEFAULT_MIN_RANGE = 1e-9
# Half-span used around a flat line (all values equal)
FLAT_HALF_SPAN = 0.5
EMPTY_LIMITS = (0.0, 1.0)


def data_extent(arrays: Iterable[np.ndarray]) -> Optional[Tuple[float, float]]:
    """
    Minimum and maximum over all finite values.

    Parameters
    ----------
    arrays : Iterable[np.ndarray]
        Value arrays, possibly empty or containing NaN/inf.

    Returns
    -------
    Optional[Tuple[float, float]]
        (min, max), or None if there is no finite value.
    """
    lo = float("inf")
    hi = float("-inf")
    for arr in arrays:
        finite = arr[np.isfinite(arr)]
        if finite.size == 0:
            continue
        lo = min(lo, float(np.min(finite)))
        hi = max(hi, float(np.max(finite)))

    if lo == float("inf") or hi == float("-inf"):
        return None
    return lo, hi


def compute_limits(
    arrays: Iterable[np.ndarray],
    fixed: Optional[Tuple[float, float]] = None,
    margin_fraction: float = DEFAULT_MARGIN_FRACTION,
    min_range: float = DEFAULT_MIN_RANGE,
) -> Tuple[float, float]:
    """
    Axis limits for a set of value arrays.

    Parameters
    ----------
    arrays : Iterable[np.ndarray]
        Value arrays of every series on this axis.
    fixed : Optional[Tuple[float, float]], default=None
        User-supplied limits. Returned unchanged when given.
    margin_fraction : float, default=0.05
        Fraction of the data range added on both sides.
    min_range : float, default=1e-9
        Data ranges below this are widened around their mean.

    Returns
    -------
    Tuple[float, float]
        (lower, upper) with lower < upper.
    """
    if fixed is not None:
        return fixed

    extent = data_extent(arrays)
    if extent is None:
        return EMPTY_LIMITS

    lo, hi = extent
    data_range = hi - lo
    data_mean = (lo + hi) / 2

    if data_range == 0:
        half_span = max(abs(data_mean) * margin_fraction, FLAT_HALF_SPAN)
        return data_mean - half_span, data_mean + half_span

    if data_range < min_range:
        return data_mean - min_range / 2, data_mean + min_range / 2

    margin = margin_fraction * data_range
    logger.debug(
        f"Limit calculation: data_range={data_range:.3g}, margin={margin:.3g}"
    )
    return lo - margin, hi + margin
