import multiprocessing
import queue
from typing import Callable, Tuple

import matplotlib
import matplotlib.pyplot as plt
import numpy as np
from loguru import logger

from pydbgplot.errors import WindowError

# Built-in matplotlib backends that cannot show a window
NON_INTERACTIVE_BACKENDS = frozenset(
    {"agg", "cairo", "pdf", "pgf", "ps", "svg", "template"}
)


class Window:
    """Minimal surface a live plot draws into."""

    def draw_frame(self, pixels: np.ndarray) -> None:
        """Show an RGBA frame."""
        raise NotImplementedError

    def process_events(self) -> None:
        """Let the window handle pending user input without drawing."""

    def is_closed(self) -> bool:
        raise NotImplementedError

    def close(self) -> None:
        """Close the window. Safe to call more than once."""


# (size, title) -> Window
WindowFactory = Callable[[Tuple[int, int], str], Window]


class MatplotlibWindow(Window):
    """
    Live window backed by a pyplot figure showing pre-rendered frames.

    Requires an interactive matplotlib backend and must be created and driven
    from the main thread of its process. :class:`ProcessWindow` runs it in a
    child process for that reason.
    """

    DPI = 100

    def __init__(self, size: Tuple[int, int], title: str):
        width, height = size
        self._closed = False

        self.fig = plt.figure(figsize=(width / self.DPI, height / self.DPI), dpi=self.DPI)
        if getattr(self.fig.canvas, "required_interactive_framework", None) is None:
            plt.close(self.fig)
            raise WindowError(
                f"Matplotlib backend '{plt.get_backend()}' cannot open windows"
            )

        manager = self.fig.canvas.manager
        if manager is not None:
            manager.set_window_title(title)

        self.ax = self.fig.add_axes((0.0, 0.0, 1.0, 1.0))
        self.ax.set_axis_off()
        self._image = None

        self.fig.canvas.mpl_connect("close_event", self._on_close)
        plt.show(block=False)
        logger.debug(f"Opened live window '{title}' ({width}x{height})")

    def _on_close(self, event) -> None:
        self._closed = True

    def draw_frame(self, pixels: np.ndarray) -> None:
        if self._image is None:
            self._image = self.ax.imshow(pixels, interpolation="nearest")
        else:
            self._image.set_data(pixels)
        self.fig.canvas.draw_idle()
        self.process_events()

    def process_events(self) -> None:
        self.fig.canvas.flush_events()

    def is_closed(self) -> bool:
        return self._closed or not plt.fignum_exists(self.fig.number)

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            plt.close(self.fig)


def run_window_process(
    frames,
    status,
    stop,
    size: Tuple[int, int],
    title: str,
    backend: str,
    window_factory: WindowFactory = MatplotlibWindow,
) -> None:
    """
    Body of the window process: show frames from ``frames`` until closed.

    Parameters
    ----------
    frames : queue-like
        Incoming RGBA frames. Only the newest pending frame is kept by the sender.
    status : queue-like
        Receives ``("ready", "")`` once the window is open, or
        ``("error", message)`` if it cannot be opened.
    stop : event-like
        Set by the parent to close the window; set here when the user closes it.
    size : Tuple[int, int]
        Window size in pixels.
    title : str
        Window title.
    backend : str
        Matplotlib backend selected in the parent process.
    window_factory : WindowFactory, default=MatplotlibWindow
        Creates the window on this process's main thread.
    """
    try:
        matplotlib.use(backend)
        window = window_factory(size, title)
    except Exception as e:
        status.put(("error", str(e)))
        return
    status.put(("ready", ""))

    try:
        while not stop.is_set() and not window.is_closed():
            try:
                pixels = frames.get(timeout=ProcessWindow.POLL_INTERVAL)
            except queue.Empty:
                window.process_events()
                continue
            window.draw_frame(pixels)
    finally:
        window.close()
        stop.set()


class ProcessWindow(Window):
    """
    Live window shown by a child process that owns the GUI toolkit.

    GUI toolkits only work from the main thread of a process, while the live
    plot thread is a background thread. The child process opens a
    :class:`MatplotlibWindow` on its own main thread and receives rendered
    frames through a single-slot queue. When the slot is still occupied the
    pending frame is replaced, so a slow window always shows the newest frame.
    """

    STARTUP_TIMEOUT = 30.0
    POLL_INTERVAL = 0.05
    PUT_TIMEOUT = 1.0
    JOIN_TIMEOUT = 5.0

    def __init__(self, size: Tuple[int, int], title: str, backend: str):
        # Never fork: the calling process runs background threads
        context = multiprocessing.get_context("spawn")
        self.title = title
        self._frames = context.Queue(maxsize=1)
        self._status = context.Queue()
        self._stop = context.Event()
        self._process = context.Process(
            target=run_window_process,
            args=(self._frames, self._status, self._stop, size, title, backend),
            name=f"pydbgplot-window[{title}]",
            daemon=True,
        )
        self._process.start()

        try:
            kind, message = self._status.get(timeout=self.STARTUP_TIMEOUT)
        except queue.Empty:
            self.close()
            raise WindowError(f"Window process for '{title}' did not start")
        if kind != "ready":
            self.close()
            raise WindowError(message)
        logger.debug(f"Window process for '{title}' started (pid {self._process.pid})")

    def draw_frame(self, pixels: np.ndarray) -> None:
        try:
            self._frames.get_nowait()
        except queue.Empty:
            pass
        try:
            self._frames.put(np.ascontiguousarray(pixels), timeout=self.PUT_TIMEOUT)
        except queue.Full:
            logger.debug(f"Dropped a frame for '{self.title}', window is busy")

    def is_closed(self) -> bool:
        return self._stop.is_set() or not self._process.is_alive()

    def close(self) -> None:
        self._stop.set()
        self._frames.cancel_join_thread()
        self._process.join(timeout=self.JOIN_TIMEOUT)
        if self._process.is_alive():
            self._process.terminate()
            self._process.join()


def open_window(size: Tuple[int, int], title: str) -> Window:
    """
    Default window factory.

    Raises
    ------
    WindowError
        If the active matplotlib backend cannot show windows (headless runs,
        ``MPLBACKEND=Agg``) or the window process fails to start.
    """
    backend = matplotlib.get_backend()
    if backend.lower() in NON_INTERACTIVE_BACKENDS:
        raise WindowError(f"Matplotlib backend '{backend}' cannot open windows")
    return ProcessWindow(size, title, backend)
