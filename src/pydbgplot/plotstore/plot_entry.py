import threading
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from loguru import logger

from pydbgplot.errors import RenderError
from pydbgplot.plotstore.config import (
    RENDER_ON_EXIT,
    RENDER_ON_UPDATE,
    PlotConfig,
    PlotIdentity,
    Sample,
    sanitize_filename,
)
from pydbgplot.plotstore.series_buffer import SeriesBuffer
from pydbgplot.plotstore.snapshot import PlotSnapshot, SeriesSnapshot
from pydbgplot.render.chart import render_to_file
from pydbgplot.render.live import LiveBridge, LiveState
from pydbgplot.render.window import WindowFactory, open_window
from pydbgplot.settings import SETTINGS


class PlotEntry:
    """
    State of one plot: configuration, series buffers and counters.

    All series of a plot share one invocation counter, used as the implicit x
    coordinate. Each :meth:`update` bumps the generation number exactly once,
    after every series was appended, under the entry lock; snapshots are taken
    under the same lock, so readers never see a partial update.

    Non-live plots are rendered to their output file synchronously (or once at
    exit with ``render_on="exit"``). Live plots hand the new generation to a
    :class:`~pydbgplot.render.live.LiveBridge`; once its window is closed the
    plot falls back to file rendering.
    """

    def __init__(
        self,
        identity: PlotIdentity,
        config: PlotConfig,
        window_factory: WindowFactory = open_window,
    ):
        """
        Initialise the entry and resolve defaults from the process settings.

        Parameters
        ----------
        identity : PlotIdentity
            Key of this plot.
        config : PlotConfig
            Options from the first invocation.
        window_factory : WindowFactory, default=open_window
            Window factory used if the plot is live.
        """
        self.identity = identity
        self.config = config

        self.title = config.caption if config.caption is not None else identity.value
        self.output_path = (
            Path(config.path)
            if config.path is not None
            else Path(SETTINGS.output_dir) / f"{sanitize_filename(self.title)}.png"
        )
        self.size: Tuple[int, int] = config.size or tuple(SETTINGS.default_size)
        self.capacity = config.capacity or SETTINGS.default_capacity
        self.render_on = config.render_on or RENDER_ON_UPDATE

        self._lock = threading.Lock()
        self._render_lock = threading.Lock()
        self._series: Dict[str, SeriesBuffer] = {}
        self._invocations = 0
        self._generation = 0
        self._rendered_generation = 0
        self._fallback_reported = False

        self.live: Optional[LiveBridge] = None
        if config.live:
            self.live = LiveBridge(
                self.title,
                self.size,
                self.snapshot,
                redraw_interval=SETTINGS.redraw_interval,
                window_factory=window_factory,
            )

    def __repr__(self) -> str:
        return f"PlotEntry({self.identity!r}, generation={self.generation})"

    @property
    def generation(self) -> int:
        with self._lock:
            return self._generation

    @property
    def invocations(self) -> int:
        with self._lock:
            return self._invocations

    @property
    def series_names(self) -> List[str]:
        with self._lock:
            return list(self._series)

    @property
    def dirty(self) -> bool:
        """True if the entry changed since it was last written to its file."""
        with self._lock:
            return self._generation > self._rendered_generation

    @property
    def live_running(self) -> bool:
        return self.live is not None and self.live.state is not LiveState.CLOSED

    def update(self, samples: Iterable[Sample]) -> int:
        """
        Record one invocation.

        Parameters
        ----------
        samples : Iterable[Sample]
            Values of this invocation. The first occurrence of a name fixes
            the series' legend position and label.

        Returns
        -------
        int
            The generation number after this update.
        """
        # Coerce first so a bad value cannot leave a half-applied update
        values = [
            (s.name, s.label, None if s.x is None else float(s.x), float(s.y))
            for s in samples
        ]

        with self._lock:
            # Buffers for new names are built before any state changes
            created: Dict[str, SeriesBuffer] = {}
            for name, label, _, _ in values:
                if name not in self._series and name not in created:
                    created[name] = SeriesBuffer(name, self.capacity, label=label)
            self._series.update(created)

            self._invocations += 1
            for name, _, x, y in values:
                self._series[name].append(
                    x if x is not None else float(self._invocations), y
                )
            self._generation += 1
            generation = self._generation

        self._publish(generation)
        return generation

    def _publish(self, generation: int) -> None:
        if self.live is not None:
            if self.live.notify(generation):
                return
            with self._lock:
                report = not self._fallback_reported
                self._fallback_reported = True
            if report:
                logger.warning(
                    f"Live window for '{self.title}' is closed, writing to {self.output_path} instead"
                )

        if self.render_on == RENDER_ON_EXIT:
            return

        try:
            self.render()
        except RenderError as e:
            logger.exception(f"Error rendering plot '{self.title}': {e}")

    def snapshot(self) -> PlotSnapshot:
        """Consistent copy of the current state."""
        with self._lock:
            series = []
            for buffer in self._series.values():
                x, y = buffer.arrays()
                series.append(SeriesSnapshot(buffer.name, buffer.label, x, y))
            generation = self._generation
            invocations = self._invocations

        return PlotSnapshot(
            identity=self.identity,
            title=self.title,
            output_path=self.output_path,
            size=self.size,
            x_desc=self.config.x_desc,
            y_desc=self.config.y_desc,
            x_range=self.config.x_range,
            y_range=self.config.y_range,
            generation=generation,
            invocations=invocations,
            series=tuple(series),
        )

    def render(self) -> Optional[Path]:
        """
        Write the current state to the output file.

        Renders of one entry are serialised; if the file already holds this
        generation or a newer one, nothing is written.

        Returns
        -------
        Optional[Path]
            The written file, or None if it was already up to date.

        Raises
        ------
        RenderError
            If rendering or writing fails. The in-memory state is unaffected.
        """
        with self._render_lock:
            snapshot = self.snapshot()
            if snapshot.generation <= self._rendered_generation:
                return None
            path = render_to_file(snapshot)
            with self._lock:
                self._rendered_generation = snapshot.generation
            return path
