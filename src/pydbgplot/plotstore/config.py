import math
import re
from dataclasses import dataclass, fields
from typing import List, Optional, Sequence, Tuple

from loguru import logger

from pydbgplot.settings import SETTINGS

# When a plot output is rendered
RENDER_ON_UPDATE = "update"
RENDER_ON_EXIT = "exit"
RENDER_MODES = (RENDER_ON_UPDATE, RENDER_ON_EXIT)

# Characters that cannot appear in a file name on common platforms
_UNSAFE_FILENAME_CHARS = re.compile(r'[<>:"|?*\\]')


def sanitize_filename(caption: str) -> str:
    """Turn a caption into a file name stem ("a/b c" -> "a-b_c")."""
    stem = caption.replace("/", "-").replace(" ", "_")
    return _UNSAFE_FILENAME_CHARS.sub("_", stem)


@dataclass(frozen=True)
class Sample:
    """
    One named value recorded at a call site.

    Parameters
    ----------
    name : str
        Series name, unique within a plot.
    y : float
        The recorded value.
    x : Optional[float], default=None
        Explicit x coordinate. If None, the plot's invocation counter is used.
    label : Optional[str], default=None
        Legend label. Only the label seen on the first occurrence of a name is kept.
    """

    name: str
    y: float
    x: Optional[float] = None
    label: Optional[str] = None


@dataclass(frozen=True)
class PlotIdentity:
    """
    Stable key of one logical chart.

    ``kind`` records where the key came from: an explicit identity, the caption,
    the output path, or the call site.
    """

    kind: str
    value: str

    @classmethod
    def resolve(
        cls,
        explicit: Optional[str] = None,
        caption: Optional[str] = None,
        path: Optional[str] = None,
        call_site: Optional[str] = None,
    ) -> "PlotIdentity":
        """Pick the first available source: explicit, caption, path, call site."""
        if explicit is not None:
            return cls("explicit", str(explicit))
        if caption is not None:
            return cls("caption", str(caption))
        if path is not None:
            return cls("path", str(path))
        if call_site is not None:
            return cls("site", call_site)
        raise ValueError("A plot identity needs a caption, a path or a call site")

    def __str__(self) -> str:
        return self.value


def _check_pair(
    name: str, value: Optional[Sequence], integer: bool = False
) -> Optional[Tuple]:
    """Validate a 2-element (lo, hi) or (width, height) option, dropping bad values."""
    if value is None:
        return None
    try:
        first, second = value
        if integer:
            pair = (int(first), int(second))
            if pair[0] <= 0 or pair[1] <= 0:
                raise ValueError(value)
        else:
            pair = (float(first), float(second))
            finite = math.isfinite(pair[0]) and math.isfinite(pair[1])
            if not (finite and pair[0] < pair[1]):
                raise ValueError(value)
        return pair
    except (TypeError, ValueError, OverflowError):
        logger.warning(f"Ignoring invalid {name}={value!r}")
        return None


@dataclass(frozen=True)
class PlotConfig:
    """
    Options of one plot, fixed by the first invocation that creates it.

    Every field is optional. ``None`` means "not given" and is resolved to a
    process default when the plot entry is created. Invalid values are logged
    and treated as not given; a non-positive capacity is replaced by the
    process default capacity.

    Parameters
    ----------
    caption : Optional[str]
        Chart title, also the default output file name.
    path : Optional[str]
        Output image path. Its suffix selects the image format.
    size : Optional[Tuple[int, int]]
        Image size in pixels (width, height).
    x_desc, y_desc : Optional[str]
        Axis descriptions.
    x_range, y_range : Optional[Tuple[float, float]]
        Fixed axis ranges. Auto-computed from the data when None.
    capacity : Optional[int]
        Number of most recent samples kept per series.
    live : Optional[bool]
        Draw into a live window instead of writing a file.
    render_on : Optional[str]
        "update" writes the file on every update, "exit" once at interpreter exit.
    """

    caption: Optional[str] = None
    path: Optional[str] = None
    size: Optional[Tuple[int, int]] = None
    x_desc: Optional[str] = None
    y_desc: Optional[str] = None
    x_range: Optional[Tuple[float, float]] = None
    y_range: Optional[Tuple[float, float]] = None
    capacity: Optional[int] = None
    live: Optional[bool] = None
    render_on: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "size", _check_pair("size", self.size, integer=True))
        object.__setattr__(self, "x_range", _check_pair("x_range", self.x_range))
        object.__setattr__(self, "y_range", _check_pair("y_range", self.y_range))

        if self.capacity is not None:
            try:
                capacity = int(self.capacity)
            except (TypeError, ValueError, OverflowError):
                capacity = 0
            if capacity <= 0:
                logger.warning(
                    f"Invalid capacity {self.capacity!r}, using default {SETTINGS.default_capacity}"
                )
                capacity = SETTINGS.default_capacity
            object.__setattr__(self, "capacity", capacity)

        if self.render_on is not None and self.render_on not in RENDER_MODES:
            logger.warning(
                f"Invalid render_on={self.render_on!r}, expected one of {RENDER_MODES}"
            )
            object.__setattr__(self, "render_on", None)

        if self.live is not None:
            object.__setattr__(self, "live", bool(self.live))

    def conflicts_with(self, other: "PlotConfig") -> List[str]:
        """Names of fields that ``other`` sets to a value different from ours."""
        conflicts = []
        for f in fields(self):
            theirs = getattr(other, f.name)
            if theirs is not None and theirs != getattr(self, f.name):
                conflicts.append(f.name)
        return conflicts
