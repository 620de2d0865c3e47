import matplotlib

matplotlib.use("Agg")

import pytest  # noqa: E402
from loguru import logger  # noqa: E402

from pydbgplot.plotstore import registry as registry_module  # noqa: E402
from pydbgplot.plotstore.registry import PlotRegistry  # noqa: E402
from pydbgplot.settings import SETTINGS  # noqa: E402


@pytest.fixture(autouse=True)
def plot_settings(monkeypatch, tmp_path):
    """Record everything, write into a temporary directory, redraw fast."""
    monkeypatch.setattr(SETTINGS, "enabled", True)
    monkeypatch.setattr(SETTINGS, "output_dir", str(tmp_path / "plots"))
    monkeypatch.setattr(SETTINGS, "default_capacity", 1000)
    monkeypatch.setattr(SETTINGS, "redraw_interval", 0.01)
    return SETTINGS


@pytest.fixture(autouse=True)
def fresh_registry(monkeypatch):
    """Give each test its own process-wide registry."""
    registry = PlotRegistry()
    monkeypatch.setattr(registry_module, "_registry", registry)
    return registry


@pytest.fixture
def log_records():
    """Loguru records emitted during the test."""
    records = []
    handler_id = logger.add(lambda message: records.append(message.record), level="DEBUG")
    yield records
    logger.remove(handler_id)


def messages_at(records, level):
    return [r["message"] for r in records if r["level"].name == level]
