"""
Docker API Client for collecting container statistics.

This module provides a wrapper around the Docker SDK that lists containers
and returns their inspection metadata and one-shot stats as typed objects.
Payloads are validated here so that the accounting code never has to deal
with missing keys or unexpected types.
"""

import logging
import time
from typing import Any, Dict, List, Optional

import docker
from docker.errors import DockerException

from docker_stats_exporter.errors import MalformedPayloadError
from docker_stats_exporter.labels import resolve_interface_names
from docker_stats_exporter.models import (
    ContainerInfo,
    ContainerSnapshot,
    CpuUsage,
    MemoryUsage,
    NetworkEndpoint,
)

logger = logging.getLogger(__name__)


class DockerRuntimeClient:
    """Reads container metadata and statistics from the Docker daemon."""

    def __init__(self, base_url: Optional[str] = None, timeout: int = 60):
        """
        Initialize the Docker client.

        Args:
            base_url: Docker endpoint (``tcp://host:port``). If None, uses the
                environment (``DOCKER_HOST``) or the local socket.
            timeout: Timeout in seconds for each API call.
        """
        try:
            if base_url:
                logger.info(f"Connecting to Docker on {base_url}...")
                self.client = docker.DockerClient(base_url=base_url, timeout=timeout)
            else:
                logger.info("Connecting to Docker on the local socket...")
                self.client = docker.from_env(timeout=timeout)

            # Test connection
            self.ping()
            logger.info("Successfully connected to Docker daemon")
        except DockerException as e:
            logger.error(f"Failed to connect to Docker daemon: {e}")
            raise

    def ping(self) -> bool:
        return bool(self.client.ping())

    def version(self) -> Dict[str, Any]:
        return self.client.version()

    def is_windows(self) -> bool:
        """True if the daemon runs Windows containers."""
        return str(self.version().get('Os', '')).lower() == 'windows'

    def list_containers(self) -> List[str]:
        """
        List the ids of running containers.

        Raises:
            DockerException: If the daemon call fails.
        """
        containers = self.client.api.containers()
        ids = [container['Id'] for container in containers or [] if container.get('Id')]
        logger.debug(f"Found {len(ids)} containers")
        return ids

    def inspect(self, container_id: str) -> ContainerInfo:
        return parse_inspect(self.client.api.inspect_container(container_id))

    def stats(self, container_id: str, info: ContainerInfo) -> ContainerSnapshot:
        # stream=False returns a single snapshot
        return parse_stats(self.client.api.stats(container_id, stream=False), info)

    def fetch_snapshot(self, container_id: str) -> ContainerSnapshot:
        """Inspect a container and take one stats snapshot of it."""
        info = self.inspect(container_id)
        return self.stats(container_id, info)

    def close(self):
        """Close the Docker client connection."""
        try:
            self.client.close()
            logger.info("Docker client connection closed")
        except Exception as e:
            logger.error(f"Error closing Docker client: {e}")


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _section(payload: Dict[str, Any], key: str, container_id: str) -> Optional[Dict[str, Any]]:
    """Return ``payload[key]`` if it is a mapping, None if absent."""
    value = payload.get(key)
    if value is None:
        return None
    if not isinstance(value, dict):
        raise MalformedPayloadError(f"'{key}' is not an object", container_id)
    return value


def _optional_int(section: Optional[Dict[str, Any]], key: str, container_id: str) -> Optional[int]:
    if not section or section.get(key) is None:
        return None
    value = section[key]
    if not _is_number(value):
        raise MalformedPayloadError(f"'{key}' is not a number", container_id)
    return int(value)


def _counters(section: Dict[str, Any]) -> Dict[str, float]:
    """Keep the numeric fields of a counters section."""
    return {key: value for key, value in section.items() if _is_number(value)}


def parse_inspect(payload: Any) -> ContainerInfo:
    """
    Parse a ``docker inspect`` payload.

    Raises:
        MalformedPayloadError: If required fields are missing or mistyped.
    """
    if not isinstance(payload, dict) or not isinstance(payload.get('Id'), str):
        raise MalformedPayloadError("inspect payload has no container id")

    container_id = payload['Id']
    config = _section(payload, 'Config', container_id) or {}
    host_config = _section(payload, 'HostConfig', container_id)
    network_settings = _section(payload, 'NetworkSettings', container_id) or {}

    labels = config.get('Labels') or {}
    if not isinstance(labels, dict):
        raise MalformedPayloadError("'Config.Labels' is not an object", container_id)

    networks = []
    for network_name, settings in (network_settings.get('Networks') or {}).items():
        endpoint_id = settings.get('EndpointID') if isinstance(settings, dict) else None
        networks.append(NetworkEndpoint(name=network_name, endpoint_id=endpoint_id or ''))

    # Container names are reported with a leading /
    name = str(payload.get('Name') or '')
    if name.startswith('/'):
        name = name[1:]

    return ContainerInfo(
        id=container_id,
        name=name,
        image=str(config.get('Image') or ''),
        labels={str(key): '' if value is None else str(value) for key, value in labels.items()},
        networks=networks,
        nano_cpus=_optional_int(host_config, 'NanoCpus', container_id),
        memory_limit=_optional_int(host_config, 'Memory', container_id),
    )


def parse_stats(payload: Any, info: ContainerInfo) -> ContainerSnapshot:
    """
    Parse a one-shot stats payload into a snapshot.

    Sections the daemon did not report are left empty; each metric fed from
    them is then skipped for this container.

    Args:
        payload: Decoded ``/containers/{id}/stats?stream=false`` response.
        info: Inspection metadata of the same container.

    Raises:
        MalformedPayloadError: If a section has an unexpected type.
    """
    if not isinstance(payload, dict):
        raise MalformedPayloadError("stats payload is not an object", info.id)

    snapshot = ContainerSnapshot(info=info, sampled_at=time.time())

    cpu_stats = _section(payload, 'cpu_stats', info.id)
    cpu_usage = _section(cpu_stats, 'cpu_usage', info.id) if cpu_stats else None
    if cpu_usage and cpu_usage.get('total_usage') is not None:
        total = _optional_int(cpu_usage, 'total_usage', info.id)
        kernel = _optional_int(cpu_usage, 'usage_in_kernelmode', info.id)
        snapshot.cpu = CpuUsage(total=total, kernel=kernel)

    memory_stats = _section(payload, 'memory_stats', info.id)
    working_set = _optional_int(memory_stats, 'privateworkingset', info.id)
    commit_bytes = _optional_int(memory_stats, 'commitbytes', info.id)
    if working_set is not None and commit_bytes is not None:
        snapshot.memory = MemoryUsage(usage_bytes=commit_bytes, working_set_bytes=working_set)

    storage_stats = _section(payload, 'storage_stats', info.id)
    if storage_stats is not None:
        snapshot.filesystem = _counters(storage_stats)

    networks = _section(payload, 'networks', info.id) or {}
    for key, counters in networks.items():
        if not isinstance(counters, dict):
            raise MalformedPayloadError(f"network '{key}' is not an object", info.id)
        snapshot.networks[key] = _counters(counters)
    snapshot.interface_names = resolve_interface_names(info.networks, list(snapshot.networks))

    return snapshot
