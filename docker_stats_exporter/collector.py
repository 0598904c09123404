"""
Collection cycle and interval scheduling.

Each cycle lists the running containers, fetches a snapshot of every one of
them in parallel, and applies the deltas against the previous snapshots under
the exporter state lock. A cycle that cannot list containers commits nothing.
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from typing import List

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from docker.errors import DockerException
from requests.exceptions import RequestException

from docker_stats_exporter.accountant import DeltaAccountant
from docker_stats_exporter.errors import CollectionError, MalformedPayloadError
from docker_stats_exporter.labels import resolve_labels
from docker_stats_exporter.models import ContainerSnapshot
from docker_stats_exporter.state import ExporterState

logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 8


class CycleState(str, Enum):
    """State of the collector"""
    IDLE = "idle"
    COLLECTING = "collecting"
    FAILED_CYCLE = "failed_cycle"


def fetch_snapshots(client, max_workers: int = DEFAULT_MAX_WORKERS) -> List[ContainerSnapshot]:
    """
    Take one snapshot of every running container.

    A container whose inspect or stats call fails is logged and left out;
    the other containers are still returned.

    Args:
        client: DockerRuntimeClient (or any object with the same interface).
        max_workers: Upper bound on concurrent Docker API calls.

    Raises:
        CollectionError: If the container list cannot be fetched or is empty.
    """
    try:
        container_ids = client.list_containers()
    except (DockerException, RequestException) as e:
        raise CollectionError(f"Unable to get containers: {e}") from e

    if not container_ids:
        raise CollectionError("Unable to get containers: no running containers")

    snapshots = []
    with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(container_ids)))) as pool:
        futures = [(container_id, pool.submit(client.fetch_snapshot, container_id))
                   for container_id in container_ids]
        for container_id, future in futures:
            try:
                snapshots.append(future.result())
            except MalformedPayloadError as e:
                logger.warning(f"Skipping container {container_id[:12]}: malformed payload: {e}")
            except (DockerException, RequestException) as e:
                logger.warning(f"Failed to get stats for container {container_id[:12]}: {e}")

    logger.debug(f"Fetched {len(snapshots)}/{len(container_ids)} container snapshots")
    return snapshots


class StatsCollector:
    """
    Runs collection cycles against an ExporterState.

    Only one cycle runs at a time; a cycle triggered while another is still
    running is skipped.
    """

    def __init__(
        self,
        client,
        state: ExporterState,
        supported: bool = True,
        max_workers: int = DEFAULT_MAX_WORKERS
    ):
        """
        Args:
            client: DockerRuntimeClient used to fetch snapshots.
            state: Registry and snapshot baselines to update.
            supported: False on non-Windows daemons, whose stats are not handled.
            max_workers: Upper bound on concurrent Docker API calls.
        """
        self.client = client
        self.state = state
        self.supported = supported
        self.max_workers = max_workers
        self.accountant = DeltaAccountant(state.registry)
        self.cycle_state = CycleState.IDLE
        self.cycles_completed = 0
        self.cycles_failed = 0
        self._cycle_lock = threading.Lock()

    def run_cycle(self) -> bool:
        """
        Run one collection cycle.

        Returns:
            True if the cycle completed and its updates were committed.
        """
        if not self._cycle_lock.acquire(blocking=False):
            logger.warning("Previous collection cycle still running, skipping this one")
            return False

        try:
            self.cycle_state = CycleState.COLLECTING
            start_time = time.time()

            if not self.supported:
                self._fail("Non-Windows Docker hosts are not supported yet, use cAdvisor")
                return False

            try:
                snapshots = fetch_snapshots(self.client, self.max_workers)
            except CollectionError as e:
                self._fail(str(e))
                return False

            with self.state.lock:
                accounted = self.commit(snapshots)

            duration = time.time() - start_time
            self.cycles_completed += 1
            logger.info(f"Collected stats for {len(snapshots)} containers "
                        f"({accounted} with a baseline) in {duration:.2f}s")
            return True
        finally:
            self.cycle_state = CycleState.IDLE
            self._cycle_lock.release()

    def commit(self, snapshots: List[ContainerSnapshot]) -> int:
        """
        Apply a cycle's snapshots to the registry and store them as baselines.

        The caller must hold the state lock.

        Returns:
            Number of containers that had a baseline and were accounted.
        """
        accounted = 0
        label_names = self.state.registry.label_names

        for snapshot in snapshots:
            previous = self.state.store.get(snapshot.id)
            if previous is None:
                logger.info(f"New container {snapshot.name} ({snapshot.id[:12]}), storing baseline")
            else:
                logger.debug(f"Container {snapshot.name}: {snapshot.sampled_at - previous.sampled_at:.1f}s "
                             f"since previous sample")
                labels = resolve_labels(snapshot.info, label_names)
                self.accountant.apply(previous, snapshot, labels)
                accounted += 1
            self.state.store.put(snapshot.id, snapshot)

        return accounted

    def _fail(self, reason: str):
        self.cycle_state = CycleState.FAILED_CYCLE
        self.cycles_failed += 1
        logger.error(f"Collection cycle failed: {reason}")


class CollectionScheduler:
    """Triggers collection cycles on a fixed interval."""

    def __init__(self, collector: StatsCollector, interval: int):
        self.collector = collector
        self.interval = interval
        self.scheduler = BackgroundScheduler()
        self.scheduler.add_job(
            collector.run_cycle,
            IntervalTrigger(seconds=interval),
            id='collect_container_stats',
            name='Collect container stats',
            max_instances=1,
            coalesce=True,
            replace_existing=True
        )

    def start(self):
        self.scheduler.start()
        logger.info(f"Collection scheduled every {self.interval} seconds")

    def shutdown(self):
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Collection scheduler stopped")
