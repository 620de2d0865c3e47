import threading

from pydbgplot.plotstore import registry as registry_module
from pydbgplot.plotstore.config import PlotConfig, PlotIdentity, Sample
from pydbgplot.plotstore.registry import PlotRegistry, get_registry

from conftest import messages_at


def test_same_identity_returns_same_entry(fresh_registry):
    identity = PlotIdentity("caption", "A")
    first = fresh_registry.get_or_create(identity, PlotConfig(caption="A"))
    second = fresh_registry.get_or_create(identity, PlotConfig(caption="A"))
    assert first is second
    assert len(fresh_registry) == 1
    assert identity in fresh_registry


def test_distinct_identities_get_distinct_entries(fresh_registry):
    a = fresh_registry.get_or_create(PlotIdentity("caption", "A"), PlotConfig())
    b = fresh_registry.get_or_create(PlotIdentity("caption", "B"), PlotConfig())
    assert a is not b
    assert fresh_registry.entries() == [a, b]


def test_concurrent_first_touch_creates_one_entry(fresh_registry):
    n_threads = 16
    identity = PlotIdentity("caption", "Contended")
    barrier = threading.Barrier(n_threads)
    results = [None] * n_threads

    def worker(i):
        barrier.wait()
        results[i] = fresh_registry.get_or_create(identity, PlotConfig(caption="Contended"))

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(n_threads)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert all(r is results[0] for r in results)
    assert len(fresh_registry) == 1


def test_first_configuration_wins(fresh_registry, log_records):
    identity = PlotIdentity("explicit", "shared")
    entry = fresh_registry.get_or_create(identity, PlotConfig(caption="Foo", render_on="exit"))
    again = fresh_registry.get_or_create(identity, PlotConfig(caption="Bar", render_on="exit"))
    fresh_registry.get_or_create(identity, PlotConfig(caption="Bar"))

    assert again is entry
    assert entry.config.caption == "Foo"
    assert entry.title == "Foo"

    warnings = [m for m in messages_at(log_records, "WARNING") if "ignoring caption" in m]
    # Reported once per identity and field
    assert len(warnings) == 1
    assert "'Bar'" in warnings[0]

    entry.update([Sample("a", 1)])
    assert entry.snapshot().title == "Foo"


def test_get_registry_is_a_lazy_singleton(monkeypatch):
    monkeypatch.setattr(registry_module, "_registry", None)
    first = get_registry()
    assert isinstance(first, PlotRegistry)
    assert get_registry() is first


def test_get_registry_concurrent_init(monkeypatch):
    monkeypatch.setattr(registry_module, "_registry", None)
    n_threads = 8
    barrier = threading.Barrier(n_threads)
    seen = []

    def worker():
        barrier.wait()
        seen.append(get_registry())

    threads = [threading.Thread(target=worker) for _ in range(n_threads)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len({id(r) for r in seen}) == 1
