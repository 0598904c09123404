"""
Delta accounting between two snapshots of the same container.

Docker reports cumulative counters (CPU time, bytes, packets). Prometheus
counters only ever increase, so each cycle adds the difference between the
new snapshot and the previous one instead of the raw value.
"""

import logging
from typing import Dict, Mapping

from docker_stats_exporter.labels import network_labels
from docker_stats_exporter.models import ContainerSnapshot
from docker_stats_exporter.registry import GROUP_FILESYSTEM, GROUP_NETWORK, Metric, MetricRegistry

logger = logging.getLogger(__name__)

# Windows reports CPU time in 100ns units
CPU_SECONDS_DIVISOR = 10 ** 7
CPU_QUOTA_DIVISOR = 10 ** 4


class DeltaAccountant:
    """
    Applies the increments between two snapshots to the metric registry.

    Point-in-time values (memory usage, limits) are set directly. A negative
    delta means the runtime reset the counter: nothing is added for that
    interval and the new value becomes the baseline.
    """

    def __init__(self, registry: MetricRegistry):
        self.registry = registry
        self.filesystem_counters = registry.field_map(GROUP_FILESYSTEM)
        self.network_counters = registry.field_map(GROUP_NETWORK)

    def apply(self, previous: ContainerSnapshot, current: ContainerSnapshot, labels: Dict[str, str]) -> int:
        """
        Update metrics with the change from ``previous`` to ``current``.

        Args:
            previous: Baseline snapshot from the last cycle.
            current: Snapshot taken this cycle.
            labels: Container label values from the label resolver.

        Returns:
            Number of counters that went backwards and were skipped.
        """
        resets = 0
        resets += self._apply_cpu(previous, current, labels)
        self._apply_memory(current, labels)

        if current.filesystem is not None and previous.filesystem is not None:
            resets += self.dispatch(self.filesystem_counters, current.filesystem, previous.filesystem, labels)

        for key, counters in current.networks.items():
            previous_counters = previous.networks.get(key)
            if previous_counters is None:
                logger.debug(f"Interface {key} of {current.name} has no baseline yet")
                continue
            interface = current.interface_names.get(key, key)
            resets += self.dispatch(
                self.network_counters,
                counters,
                previous_counters,
                network_labels(labels, interface)
            )

        if resets:
            logger.warning(f"Counter reset detected for container {current.name}: "
                           f"{resets} counter(s) went backwards, using new values as baseline")
        return resets

    def dispatch(
        self,
        counters: Mapping[str, Metric],
        new_values: Mapping[str, float],
        old_values: Mapping[str, float],
        labels: Dict[str, str]
    ) -> int:
        """
        Increment each mapped counter by ``new[field] - old[field]``.

        Fields missing from either side are skipped, so a field seen for the
        first time only starts counting from the next cycle.
        """
        resets = 0
        for field, value in new_values.items():
            counter = counters.get(field)
            if counter is None or field not in old_values:
                continue
            if not self._increment(counter, labels, value - old_values[field]):
                resets += 1
        return resets

    def _apply_cpu(self, previous: ContainerSnapshot, current: ContainerSnapshot, labels: Dict[str, str]) -> int:
        resets = 0
        if current.cpu is not None and previous.cpu is not None:
            usage_seconds = (current.cpu.total - previous.cpu.total) / CPU_SECONDS_DIVISOR
            if not self._increment(self.registry.metric('container_cpu_usage_seconds_total'), labels, usage_seconds):
                resets += 1

            # Kernel time only counts once both samples report it
            if current.cpu.kernel is not None and previous.cpu.kernel is not None:
                kernel_seconds = (current.cpu.kernel - previous.cpu.kernel) / CPU_SECONDS_DIVISOR
                if not self._increment(
                    self.registry.metric('container_cpu_system_seconds_total'), labels, kernel_seconds
                ):
                    resets += 1

        if current.cpu_quota and current.cpu_quota > 0:
            self.registry.metric('container_spec_cpu_quota').labels(**labels).set(
                current.cpu_quota / CPU_QUOTA_DIVISOR
            )
        return resets

    def _apply_memory(self, current: ContainerSnapshot, labels: Dict[str, str]):
        if current.memory is not None:
            self.registry.metric('container_memory_usage_bytes').labels(**labels).set(current.memory.usage_bytes)
            self.registry.metric('container_memory_working_set_bytes').labels(**labels).set(
                current.memory.working_set_bytes
            )

        if current.memory_limit and current.memory_limit > 0:
            self.registry.metric('container_spec_memory_limit_bytes').labels(**labels).set(current.memory_limit)

    @staticmethod
    def _increment(counter: Metric, labels: Dict[str, str], delta: float) -> bool:
        # Prometheus counters can't decrease
        if delta < 0:
            return False
        counter.labels(**labels).inc(delta)
        return True
