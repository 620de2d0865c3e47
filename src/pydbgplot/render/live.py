import atexit
import threading
from enum import Enum
from typing import Callable, Optional, Tuple

import numpy as np
from loguru import logger

from pydbgplot.plotstore.snapshot import PlotSnapshot
from pydbgplot.render.chart import render_chart
from pydbgplot.render.window import Window, WindowFactory, open_window

# Set at interpreter exit; every live thread watches it
SHUTDOWN = threading.Event()
atexit.register(SHUTDOWN.set)

DEFAULT_REDRAW_INTERVAL = 0.1


class LiveState(Enum):
    UNINITIALIZED = "uninitialized"
    RUNNING = "running"
    CLOSED = "closed"


class LiveBridge:
    """
    Couples one plot entry to a window redrawn by a background thread.

    Call sites only post the newest generation number into a single-slot
    mailbox (:meth:`notify`); the thread wakes on a newer generation or on the
    redraw timer, copies the latest snapshot and draws it. Updates arriving
    between two redraws are coalesced into one frame of the newest state.

    The thread is a daemon and is never joined. It stops when the window is
    closed, when the window cannot be opened or drawn, or at interpreter exit.
    Once closed the bridge never restarts.
    """

    def __init__(
        self,
        title: str,
        size: Tuple[int, int],
        snapshot_fn: Callable[[], PlotSnapshot],
        redraw_interval: float = DEFAULT_REDRAW_INTERVAL,
        window_factory: WindowFactory = open_window,
        renderer: Callable[[PlotSnapshot], np.ndarray] = render_chart,
        shutdown: threading.Event = SHUTDOWN,
    ):
        """
        Initialise the bridge without starting the thread.

        Parameters
        ----------
        title : str
            Window title.
        size : Tuple[int, int]
            Window size in pixels.
        snapshot_fn : Callable[[], PlotSnapshot]
            Returns a consistent copy of the plot entry.
        redraw_interval : float, default=0.1
            Seconds between wake-ups when no new data arrives.
        window_factory : WindowFactory, default=open_window
            Creates the window inside the background thread.
        renderer : Callable[[PlotSnapshot], np.ndarray], default=render_chart
            Turns a snapshot into a frame.
        shutdown : threading.Event, default=SHUTDOWN
            Process shutdown signal.
        """
        self.title = title
        self.size = size
        self._snapshot_fn = snapshot_fn
        self._redraw_interval = redraw_interval
        self._window_factory = window_factory
        self._renderer = renderer
        self._shutdown = shutdown

        self._cond = threading.Condition()
        self._state = LiveState.UNINITIALIZED
        self._latest_generation = 0
        self._drawn_generation = 0
        self._frames_drawn = 0
        self._thread: Optional[threading.Thread] = None

    @property
    def state(self) -> LiveState:
        with self._cond:
            return self._state

    @property
    def frames_drawn(self) -> int:
        with self._cond:
            return self._frames_drawn

    @property
    def drawn_generation(self) -> int:
        with self._cond:
            return self._drawn_generation

    def notify(self, generation: int) -> bool:
        """
        Announce a new generation. Never blocks on drawing.

        Starts the background thread on first call.

        Returns
        -------
        bool
            False if the bridge is closed and the update will not be shown.
        """
        with self._cond:
            if self._state is LiveState.CLOSED:
                return False
            if generation > self._latest_generation:
                self._latest_generation = generation
            if self._state is LiveState.UNINITIALIZED:
                self._start_locked()
            self._cond.notify_all()
        return True

    def _start_locked(self) -> None:
        self._state = LiveState.RUNNING
        self._thread = threading.Thread(
            target=self._run, name=f"pydbgplot-live[{self.title}]", daemon=True
        )
        self._thread.start()
        logger.debug(f"Started live thread for '{self.title}'")

    def close(self) -> None:
        """Ask the background thread to stop and mark the bridge closed."""
        with self._cond:
            self._state = LiveState.CLOSED
            self._cond.notify_all()

    def wait_drawn(self, generation: int, timeout: Optional[float] = None) -> bool:
        """
        Wait until a frame at or after ``generation`` was drawn.

        Returns
        -------
        bool
            True if such a frame was drawn, False on timeout or if the bridge closed first.
        """
        with self._cond:
            self._cond.wait_for(
                lambda: self._drawn_generation >= generation
                or self._state is LiveState.CLOSED,
                timeout=timeout,
            )
            return self._drawn_generation >= generation

    def wait_closed(self, timeout: Optional[float] = None) -> bool:
        with self._cond:
            return self._cond.wait_for(
                lambda: self._state is LiveState.CLOSED, timeout=timeout
            )

    def _next_target(self) -> Optional[int]:
        """Block until there is something to draw or the timer fires. None means stop."""
        with self._cond:
            self._cond.wait_for(
                lambda: self._state is LiveState.CLOSED
                or self._latest_generation > self._drawn_generation,
                timeout=self._redraw_interval,
            )
            if self._state is LiveState.CLOSED:
                return None
            return self._latest_generation

    def _run(self) -> None:
        try:
            window = self._window_factory(self.size, self.title)
        except Exception as e:
            logger.exception(f"Could not open live window for '{self.title}': {e}")
            self.close()
            return

        logger.info(f"Live window for '{self.title}' opened")
        try:
            self._loop(window)
        except Exception as e:
            logger.exception(f"Live window for '{self.title}' failed: {e}")
        finally:
            try:
                window.close()
            except Exception as e:
                logger.warning(f"Error closing live window for '{self.title}': {e}")
            self.close()
            logger.info(f"Live window for '{self.title}' closed")

    def _loop(self, window: Window) -> None:
        while True:
            target = self._next_target()
            if target is None or self._shutdown.is_set():
                return
            if window.is_closed():
                logger.info(f"Live window for '{self.title}' was closed by the user")
                return

            with self._cond:
                stale = target <= self._drawn_generation
            if stale:
                window.process_events()
                continue

            snapshot = self._snapshot_fn()
            frame = self._renderer(snapshot)
            window.draw_frame(frame)

            with self._cond:
                self._drawn_generation = max(self._drawn_generation, snapshot.generation)
                self._frames_drawn += 1
                self._cond.notify_all()
            logger.debug(
                f"Live frame {self._frames_drawn} for '{self.title}' at generation {snapshot.generation}"
            )
