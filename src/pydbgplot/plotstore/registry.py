import threading
from typing import Dict, List, Optional, Set, Tuple

from loguru import logger

from pydbgplot.plotstore.config import PlotConfig, PlotIdentity
from pydbgplot.plotstore.plot_entry import PlotEntry


class PlotRegistry:
    """
    Process-wide map from plot identity to plot entry.

    Exactly one entry exists per identity: concurrent first use from several
    threads resolves to a single entry. The registry lock only covers the
    insert-or-fetch; entry mutation and rendering happen under each entry's own
    locks. Entries are never removed.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._entries: Dict[PlotIdentity, PlotEntry] = {}
        self._reported_conflicts: Set[Tuple[PlotIdentity, str]] = set()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, identity: PlotIdentity) -> bool:
        with self._lock:
            return identity in self._entries

    def get(self, identity: PlotIdentity) -> Optional[PlotEntry]:
        with self._lock:
            return self._entries.get(identity)

    def entries(self) -> List[PlotEntry]:
        """All entries, in creation order."""
        with self._lock:
            return list(self._entries.values())

    def get_or_create(self, identity: PlotIdentity, config: PlotConfig) -> PlotEntry:
        """
        Fetch the entry for ``identity``, creating it with ``config`` on first use.

        Later configurations never change an existing entry (first write wins).
        Each differing field is logged once per identity.

        Parameters
        ----------
        identity : PlotIdentity
            Plot key.
        config : PlotConfig
            Options of the calling invocation.

        Returns
        -------
        PlotEntry
            The single entry of this identity.
        """
        with self._lock:
            entry = self._entries.get(identity)
            if entry is None:
                entry = PlotEntry(identity, config)
                self._entries[identity] = entry
                logger.debug(f"Created plot entry for {identity.kind} '{identity.value}'")
                return entry

            conflicts = [
                name
                for name in entry.config.conflicts_with(config)
                if (identity, name) not in self._reported_conflicts
            ]
            self._reported_conflicts.update((identity, name) for name in conflicts)

        for name in conflicts:
            logger.warning(
                f"Plot '{identity.value}': ignoring {name}={getattr(config, name)!r}, "
                f"already configured as {getattr(entry.config, name)!r}"
            )
        return entry


# Created on first use and kept until the process exits
_registry: Optional[PlotRegistry] = None
_registry_lock = threading.Lock()


def get_registry() -> PlotRegistry:
    """The process-wide registry, created on first call."""
    global _registry
    if _registry is None:
        with _registry_lock:
            if _registry is None:
                _registry = PlotRegistry()
    return _registry
