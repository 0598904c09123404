"""
In-memory store of the previous snapshot of every container.
"""

from typing import Dict, Iterator, Optional

from docker_stats_exporter.models import ContainerSnapshot


class SnapshotStore:
    """
    Keeps the most recent snapshot per container id as the baseline for the
    next collection cycle.

    Entries are never evicted; containers that go away keep their last
    snapshot until the process exits.
    """

    def __init__(self):
        self._snapshots: Dict[str, ContainerSnapshot] = {}

    def get(self, container_id: str) -> Optional[ContainerSnapshot]:
        return self._snapshots.get(container_id)

    def put(self, container_id: str, snapshot: ContainerSnapshot):
        self._snapshots[container_id] = snapshot

    def __contains__(self, container_id: str) -> bool:
        return container_id in self._snapshots

    def __len__(self) -> int:
        return len(self._snapshots)

    def __iter__(self) -> Iterator[str]:
        return iter(self._snapshots)
