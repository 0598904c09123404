"""
Prometheus metrics definitions for Docker container statistics.

This module defines all Prometheus metrics exposed by the exporter, using the
cAdvisor metric names expected by container dashboards. The metrics are
built once, after the label universe is known, on a registry owned by the
exporter rather than on the process-global default registry.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple, Union

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    GCCollector,
    Gauge,
    PlatformCollector,
    ProcessCollector,
    generate_latest,
)

from docker_stats_exporter.labels import INTERFACE_LABEL

logger = logging.getLogger(__name__)

COUNTER = 'counter'
GAUGE = 'gauge'

GROUP_CPU = 'cpu'
GROUP_MEMORY = 'memory'
GROUP_FILESYSTEM = 'filesystem'
GROUP_NETWORK = 'network'


@dataclass(frozen=True)
class MetricDefinition:
    """
    A metric exposed by the exporter.

    ``field`` names the snapshot counter a metric is fed from by the generic
    delta dispatch; metrics with no field are updated explicitly.
    """
    name: str
    documentation: str
    kind: str
    group: str
    field: Optional[str] = None

    @property
    def per_interface(self) -> bool:
        return self.group == GROUP_NETWORK


METRIC_DEFINITIONS: List[MetricDefinition] = [
    # CPU metrics
    # Cumulative CPU time consumed by the container, in seconds
    MetricDefinition('container_cpu_usage_seconds_total',
                     'Cumulative cpu time consumed in seconds.', COUNTER, GROUP_CPU),
    MetricDefinition('container_cpu_system_seconds_total',
                     'Cumulative system cpu time consumed in seconds.', COUNTER, GROUP_CPU),
    MetricDefinition('container_spec_cpu_quota',
                     'CPU quota of the container.', GAUGE, GROUP_CPU),

    # Memory metrics
    MetricDefinition('container_memory_usage_bytes',
                     'Current memory usage in bytes, including all memory regardless of when it was accessed.',
                     GAUGE, GROUP_MEMORY),
    MetricDefinition('container_memory_working_set_bytes',
                     'Current working set in bytes.', GAUGE, GROUP_MEMORY),
    MetricDefinition('container_spec_memory_limit_bytes',
                     'Memory limit for the container.', GAUGE, GROUP_MEMORY),

    # Network metrics - Receive
    MetricDefinition('container_network_receive_bytes_total',
                     'Cumulative count of bytes received.', COUNTER, GROUP_NETWORK, 'rx_bytes'),
    MetricDefinition('container_network_receive_errors_total',
                     'Cumulative count of errors encountered while receiving.', COUNTER, GROUP_NETWORK, 'rx_errors'),
    MetricDefinition('container_network_receive_packets_dropped_total',
                     'Cumulative count of packets dropped while receiving.', COUNTER, GROUP_NETWORK, 'rx_dropped'),
    MetricDefinition('container_network_receive_packets_total',
                     'Cumulative count of packets received.', COUNTER, GROUP_NETWORK, 'rx_packets'),

    # Network metrics - Transmit
    MetricDefinition('container_network_transmit_bytes_total',
                     'Cumulative count of bytes transmitted.', COUNTER, GROUP_NETWORK, 'tx_bytes'),
    MetricDefinition('container_network_transmit_errors_total',
                     'Cumulative count of errors encountered while transmitting.', COUNTER, GROUP_NETWORK, 'tx_errors'),
    MetricDefinition('container_network_transmit_packets_dropped_total',
                     'Cumulative count of packets dropped while transmitting.', COUNTER, GROUP_NETWORK, 'tx_dropped'),
    MetricDefinition('container_network_transmit_packets_total',
                     'Cumulative count of packets transmitted.', COUNTER, GROUP_NETWORK, 'tx_packets'),

    # Disk I/O metrics
    MetricDefinition('container_fs_reads_bytes_total',
                     'Cumulative count of bytes read.', COUNTER, GROUP_FILESYSTEM, 'read_size_bytes'),
    MetricDefinition('container_fs_reads_total',
                     'Cumulative count of reads completed.', COUNTER, GROUP_FILESYSTEM, 'read_count_normalized'),
    MetricDefinition('container_fs_writes_bytes_total',
                     'Cumulative count of bytes written.', COUNTER, GROUP_FILESYSTEM, 'write_size_bytes'),
    MetricDefinition('container_fs_writes_total',
                     'Cumulative count of writes completed.', COUNTER, GROUP_FILESYSTEM, 'write_count_normalized'),
]

_TYPE_MAP = {
    COUNTER: Counter,
    GAUGE: Gauge,
}

Metric = Union[Counter, Gauge]


class MetricRegistry:
    """
    Owns the container metrics and the registry they are exposed from.

    The label names are fixed at construction; every series of a metric
    carries exactly the same names.
    """

    content_type = CONTENT_TYPE_LATEST

    def __init__(
        self,
        label_names: Sequence[str],
        registry: Optional[CollectorRegistry] = None,
        collect_default: bool = False
    ):
        """
        Build and register every metric definition.

        Args:
            label_names: Label universe computed at bootstrap.
            registry: Registry to register on. A new one is created if None.
            collect_default: Also expose process, platform and GC metrics.
        """
        self.registry = registry if registry is not None else CollectorRegistry()
        self.label_names: Tuple[str, ...] = tuple(label_names)
        self.network_label_names: Tuple[str, ...] = self.label_names + (INTERFACE_LABEL,)
        self._metrics: Dict[str, Metric] = {}

        logger.info("Registering Prometheus metrics...")
        for definition in METRIC_DEFINITIONS:
            metric_class = _TYPE_MAP[definition.kind]
            self._metrics[definition.name] = metric_class(
                definition.name,
                definition.documentation,
                self.labels_for(definition),
                registry=self.registry
            )

        if collect_default:
            ProcessCollector(registry=self.registry)
            PlatformCollector(registry=self.registry)
            GCCollector(registry=self.registry)
            logger.info("Default process metrics enabled")

        logger.debug(f"Label universe: {', '.join(self.label_names)}")

    def labels_for(self, definition: MetricDefinition) -> Tuple[str, ...]:
        return self.network_label_names if definition.per_interface else self.label_names

    def metric(self, name: str) -> Metric:
        return self._metrics[name]

    def field_map(self, group: str) -> Dict[str, Metric]:
        """
        Map snapshot field names to the metrics fed from them.

        Args:
            group: GROUP_FILESYSTEM or GROUP_NETWORK.
        """
        return {
            definition.field: self._metrics[definition.name]
            for definition in METRIC_DEFINITIONS
            if definition.group == group and definition.field
        }

    def render(self) -> bytes:
        """Render the registry in the Prometheus text exposition format."""
        return generate_latest(self.registry)
