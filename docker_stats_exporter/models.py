"""
Typed container data parsed from Docker API payloads.

Inspection metadata is static for the lifetime of a container; snapshots are
taken once per collection cycle and diffed against the previous one.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional


@dataclass(frozen=True)
class NetworkEndpoint:
    """A network the container is attached to, as reported by inspect."""
    name: str
    endpoint_id: str = ''


@dataclass
class ContainerInfo:
    """Static inspection metadata for one container."""
    id: str
    name: str
    image: str
    labels: Dict[str, str] = field(default_factory=dict)
    networks: List[NetworkEndpoint] = field(default_factory=list)
    nano_cpus: Optional[int] = None
    memory_limit: Optional[int] = None


@dataclass(frozen=True)
class CpuUsage:
    """Cumulative CPU time in the runtime's native 100ns units. ``kernel`` is None when not reported."""
    total: int
    kernel: Optional[int] = None


@dataclass(frozen=True)
class MemoryUsage:
    """Point-in-time memory figures in bytes."""
    usage_bytes: int
    working_set_bytes: int


@dataclass
class ContainerSnapshot:
    """
    One container's resource usage at one sampling instant.

    ``filesystem`` and each entry of ``networks`` map a counter field name
    (``read_size_bytes``, ``rx_packets``...) to its cumulative value.
    ``interface_names`` maps each stats interface key to the logical network
    name used for the ``interface`` label.
    """
    info: ContainerInfo
    sampled_at: float
    cpu: Optional[CpuUsage] = None
    memory: Optional[MemoryUsage] = None
    filesystem: Optional[Dict[str, float]] = None
    networks: Dict[str, Dict[str, float]] = field(default_factory=dict)
    interface_names: Dict[str, str] = field(default_factory=dict)

    @property
    def id(self) -> str:
        return self.info.id

    @property
    def name(self) -> str:
        return self.info.name

    @property
    def cpu_quota(self) -> Optional[int]:
        return self.info.nano_cpus

    @property
    def memory_limit(self) -> Optional[int]:
        return self.info.memory_limit
