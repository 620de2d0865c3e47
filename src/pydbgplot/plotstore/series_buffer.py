from typing import List, Optional, Tuple

import numpy as np

# Storage starts small and doubles until it reaches the capacity
_INITIAL_STORAGE = 64


class SeriesBuffer:
    """
    Fixed-capacity ring of (x, y) samples for one named variable.

    Holds the most recent ``capacity`` samples in arrival order; appending to a
    full buffer overwrites the oldest sample. Not thread-safe on its own: the
    owning :class:`~pydbgplot.plotstore.plot_entry.PlotEntry` serialises access.
    """

    def __init__(self, name: str, capacity: int, label: Optional[str] = None):
        """
        Initialise an empty buffer.

        Parameters
        ----------
        name : str
            Series name.
        capacity : int
            Maximum number of samples kept. Must be positive.
        label : Optional[str], default=None
            Legend label. Defaults to the name.

        Raises
        ------
        ValueError
            If capacity is not positive.
        """
        if capacity <= 0:
            raise ValueError(f"Series capacity must be positive, got {capacity}")

        self.name = name
        self.label = label if label is not None else name
        self.capacity = int(capacity)

        size = min(self.capacity, _INITIAL_STORAGE)
        self._x = np.empty(size, dtype=np.float64)
        self._y = np.empty(size, dtype=np.float64)
        self._head = 0  # next write position once the ring is full
        self._count = 0

    def __len__(self) -> int:
        return self._count

    def append(self, x: float, y: float) -> None:
        """Append one sample, evicting the oldest one if the buffer is full."""
        if self._count < self.capacity:
            if self._count == len(self._x):
                self._grow()
            self._x[self._count] = x
            self._y[self._count] = y
            self._count += 1
            return

        self._x[self._head] = x
        self._y[self._head] = y
        self._head = (self._head + 1) % self.capacity

    def _grow(self) -> None:
        size = min(self.capacity, 2 * len(self._x))
        self._x = np.resize(self._x, size)
        self._y = np.resize(self._y, size)

    def arrays(self) -> Tuple[np.ndarray, np.ndarray]:
        """
        Copy the samples out, oldest first.

        Returns
        -------
        Tuple[np.ndarray, np.ndarray]
            x and y arrays of length ``len(self)``.
        """
        if self._count < self.capacity or self._head == 0:
            return self._x[: self._count].copy(), self._y[: self._count].copy()

        order = np.r_[self._head : self.capacity, 0 : self._head]
        return self._x[order], self._y[order]

    def samples(self) -> List[Tuple[float, float]]:
        """Samples as a list of (x, y) tuples, oldest first."""
        x, y = self.arrays()
        return list(zip(x.tolist(), y.tolist()))
