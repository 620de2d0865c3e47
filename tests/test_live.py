import queue
import threading
import time

import matplotlib.pyplot as plt
import numpy as np
import pytest

from pydbgplot.errors import WindowError
from pydbgplot.plotstore.config import PlotConfig, PlotIdentity, Sample
from pydbgplot.plotstore.plot_entry import PlotEntry
from pydbgplot.render.live import LiveBridge, LiveState
from pydbgplot.render.window import (
    MatplotlibWindow,
    Window,
    open_window,
    run_window_process,
)

from conftest import messages_at

TIMEOUT = 5.0


class FakeWindow(Window):
    """Records frames; the first draw can be held back with a gate."""

    def __init__(self, gate=None):
        self.frames = []
        self.closed = False
        self.gate = gate
        self.drawing = threading.Event()

    def draw_frame(self, pixels):
        self.drawing.set()
        if self.gate is not None and not self.frames:
            assert self.gate.wait(TIMEOUT)
        self.frames.append(pixels)

    def is_closed(self):
        return self.closed

    def close(self):
        self.closed = True


class FakeFactory:
    def __init__(self, window=None, error=None):
        self.window = window or FakeWindow()
        self.error = error
        self.calls = 0

    def __call__(self, size, title):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.window


def identity_renderer(snapshot):
    # Frames are the snapshots themselves
    return snapshot


class Source:
    """Minimal stand-in for a plot entry's snapshot function."""

    def __init__(self):
        self.generation = 0
        self.lock = threading.Lock()

    def bump(self):
        with self.lock:
            self.generation += 1
            return self.generation

    def snapshot(self):
        with self.lock:
            return type("Snap", (), {"generation": self.generation})()


def make_bridge(factory, source, shutdown=None):
    return LiveBridge(
        "Live",
        (200, 100),
        source.snapshot,
        redraw_interval=0.01,
        window_factory=factory,
        renderer=identity_renderer,
        shutdown=shutdown or threading.Event(),
    )


def test_bridge_starts_lazily_and_draws_latest():
    source, factory = Source(), FakeFactory()
    bridge = make_bridge(factory, source)
    assert bridge.state is LiveState.UNINITIALIZED

    assert bridge.notify(source.bump())
    assert bridge.wait_drawn(1, timeout=TIMEOUT)
    assert bridge.state is LiveState.RUNNING
    assert factory.window.frames[-1].generation >= 1
    bridge.close()


def test_rapid_updates_are_coalesced():
    gate = threading.Event()
    window = FakeWindow(gate=gate)
    source, factory = Source(), FakeFactory(window)
    bridge = make_bridge(factory, source)

    bridge.notify(source.bump())
    assert window.drawing.wait(TIMEOUT)

    k = 50
    for _ in range(k - 1):
        bridge.notify(source.bump())
    gate.set()

    assert bridge.wait_drawn(k, timeout=TIMEOUT)
    generations = [frame.generation for frame in window.frames]
    # One frame for the first state, at most one more for everything after it
    assert len(generations) <= 2
    assert generations[-1] == k
    bridge.close()


def test_one_thread_under_concurrent_first_notify():
    source, factory = Source(), FakeFactory()
    bridge = make_bridge(factory, source)
    n_threads = 16
    barrier = threading.Barrier(n_threads)

    def worker():
        barrier.wait()
        bridge.notify(source.bump())

    threads = [threading.Thread(target=worker) for _ in range(n_threads)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert bridge.wait_drawn(n_threads, timeout=TIMEOUT)
    assert factory.calls == 1
    assert sum(t.name.startswith("pydbgplot-live") for t in threading.enumerate()) <= 1
    bridge.close()


def test_window_failure_closes_bridge(log_records):
    source = Source()
    bridge = make_bridge(FakeFactory(error=WindowError("no display")), source)

    assert bridge.notify(source.bump())
    assert bridge.wait_closed(timeout=TIMEOUT)
    assert not bridge.notify(source.bump())
    assert any("Could not open live window" in m for m in messages_at(log_records, "ERROR"))


def test_user_closing_the_window_closes_bridge():
    source, factory = Source(), FakeFactory()
    bridge = make_bridge(factory, source)
    bridge.notify(source.bump())
    assert bridge.wait_drawn(1, timeout=TIMEOUT)

    factory.window.closed = True
    assert bridge.wait_closed(timeout=TIMEOUT)
    assert bridge.state is LiveState.CLOSED


def test_shutdown_stops_the_thread():
    source, factory = Source(), FakeFactory()
    shutdown = threading.Event()
    bridge = make_bridge(factory, source, shutdown=shutdown)
    bridge.notify(source.bump())
    assert bridge.wait_drawn(1, timeout=TIMEOUT)

    shutdown.set()
    assert bridge.wait_closed(timeout=TIMEOUT)
    assert factory.window.closed


def test_notify_never_waits_for_drawing():
    gate = threading.Event()
    window = FakeWindow(gate=gate)
    source, factory = Source(), FakeFactory(window)
    bridge = make_bridge(factory, source)

    bridge.notify(source.bump())
    assert window.drawing.wait(TIMEOUT)

    # The window is stuck drawing; notifying must still return immediately
    start = time.monotonic()
    for _ in range(100):
        assert bridge.notify(source.bump())
    assert time.monotonic() - start < 1.0
    gate.set()
    bridge.close()


def test_live_entry_falls_back_to_file_when_window_fails(plot_settings, log_records):
    factory = FakeFactory(error=WindowError("no display"))
    entry = PlotEntry(
        PlotIdentity("caption", "Live Fallback"),
        PlotConfig(caption="Live Fallback", live=True),
        window_factory=factory,
    )

    entry.update([Sample("a", 1)])
    assert not entry.output_path.exists()
    assert entry.live.wait_closed(timeout=TIMEOUT)
    assert not entry.live_running

    entry.update([Sample("a", 2)])
    entry.update([Sample("a", 3)])
    assert entry.output_path.exists()
    assert not entry.dirty

    fallback = [m for m in messages_at(log_records, "WARNING") if "is closed" in m]
    assert len(fallback) == 1


def test_live_entry_draws_rendered_frames(plot_settings):
    window = FakeWindow()
    entry = PlotEntry(
        PlotIdentity("caption", "Live Frames"),
        PlotConfig(caption="Live Frames", live=True, size=(200, 100)),
        window_factory=FakeFactory(window),
    )

    generation = entry.update([Sample("a", 1), Sample("b", 2)])
    assert entry.live.wait_drawn(generation, timeout=TIMEOUT)
    assert window.frames[-1].shape == (100, 200, 4)
    assert not entry.output_path.exists()
    entry.live.close()


@pytest.fixture(autouse=True)
def no_leftover_threads():
    yield
    # Closed bridges exit within one redraw interval
    deadline = time.monotonic() + TIMEOUT
    while time.monotonic() < deadline:
        if not any(t.name.startswith("pydbgplot-live") for t in threading.enumerate()):
            break
        time.sleep(0.01)


def test_fallback_is_reported_once_across_threads(plot_settings, log_records):
    entry = PlotEntry(
        PlotIdentity("caption", "Threaded Fallback"),
        PlotConfig(caption="Threaded Fallback", live=True, render_on="exit"),
        window_factory=FakeFactory(error=WindowError("no display")),
    )
    entry.update([Sample("a", 0)])
    assert entry.live.wait_closed(timeout=TIMEOUT)

    n_threads = 8
    barrier = threading.Barrier(n_threads)

    def worker(i):
        barrier.wait()
        entry.update([Sample("a", i)])

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(n_threads)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert entry.invocations == n_threads + 1
    fallback = [m for m in messages_at(log_records, "WARNING") if "is closed" in m]
    assert len(fallback) == 1


def test_open_window_refuses_headless_backend():
    with pytest.raises(WindowError, match="cannot open windows"):
        open_window((200, 100), "Headless")
    assert plt.get_fignums() == []


def test_matplotlib_window_needs_interactive_backend():
    with pytest.raises(WindowError, match="cannot open windows"):
        MatplotlibWindow((200, 100), "Headless")
    assert plt.get_fignums() == []


def test_window_process_reports_startup_failure():
    status = queue.Queue()
    stop = threading.Event()
    run_window_process(queue.Queue(), status, stop, (200, 100), "Headless", "agg")

    kind, message = status.get_nowait()
    assert kind == "error"
    assert "cannot open windows" in message


def test_window_process_shows_frames_until_closed():
    class TwoFrameWindow(FakeWindow):
        def is_closed(self):
            return self.closed or len(self.frames) >= 2

    window = TwoFrameWindow()
    frames = queue.Queue()
    status = queue.Queue()
    stop = threading.Event()
    for value in (1, 2):
        frames.put(np.full((100, 200, 4), value, dtype=np.uint8))

    run_window_process(
        frames, status, stop, (200, 100), "Frames", "agg",
        window_factory=lambda size, title: window,
    )

    assert status.get_nowait() == ("ready", "")
    assert [int(f[0, 0, 0]) for f in window.frames] == [1, 2]
    assert window.closed
    assert stop.is_set()


def test_headless_live_entry_falls_back_to_file(plot_settings, log_records):
    entry = PlotEntry(
        PlotIdentity("caption", "Headless Live"),
        PlotConfig(caption="Headless Live", live=True),
    )

    entry.update([Sample("a", 1)])
    assert entry.live.wait_closed(timeout=TIMEOUT)
    assert entry.live.state is LiveState.CLOSED
    assert any("Could not open live window" in m for m in messages_at(log_records, "ERROR"))

    entry.update([Sample("a", 2)])
    assert entry.output_path.exists()
    assert not entry.dirty
