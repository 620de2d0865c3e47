from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

import numpy as np

from pydbgplot.plotstore.config import PlotIdentity


@dataclass(frozen=True)
class SeriesSnapshot:
    """Read-only copy of one series."""

    name: str
    label: str
    x: np.ndarray
    y: np.ndarray

    def __post_init__(self):
        self.x.setflags(write=False)
        self.y.setflags(write=False)

    def __len__(self) -> int:
        return len(self.x)


@dataclass(frozen=True)
class PlotSnapshot:
    """
    Consistent copy of a plot entry at one generation.

    Everything the render pipeline needs is resolved here, so rendering is a
    pure function of the snapshot.
    """

    identity: PlotIdentity
    title: str
    output_path: Path
    size: Tuple[int, int]
    x_desc: Optional[str]
    y_desc: Optional[str]
    x_range: Optional[Tuple[float, float]]
    y_range: Optional[Tuple[float, float]]
    generation: int
    invocations: int
    series: Tuple[SeriesSnapshot, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.series

    def get_series(self, name: str) -> Optional[SeriesSnapshot]:
        for series in self.series:
            if series.name == name:
                return series
        return None
