"""
Mutable exporter state shared by the collector and the HTTP endpoint.
"""

import threading
from typing import Optional

from docker_stats_exporter.registry import MetricRegistry
from docker_stats_exporter.store import SnapshotStore


class ExporterState:
    """
    Bundles the metric registry, the snapshot baselines and the lock that
    serializes a collection cycle's writes against scrapes.

    A collection cycle holds ``lock`` while it applies its updates, and
    ``render`` takes the same lock, so a scrape always sees the state of the
    last completed cycle.
    """

    def __init__(self, registry: MetricRegistry, store: Optional[SnapshotStore] = None):
        self.registry = registry
        self.store = store if store is not None else SnapshotStore()
        self.lock = threading.Lock()

    @property
    def content_type(self) -> str:
        return self.registry.content_type

    def render(self) -> bytes:
        with self.lock:
            return self.registry.render()
