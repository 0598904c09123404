"""
Pytest configuration and shared fixtures
"""
import pytest
from pathlib import Path

from prometheus_client import CollectorRegistry

# Load .env from project root for all tests
from dotenv import load_dotenv
load_dotenv(Path(__file__).parent.parent / ".env")

from docker_stats_exporter.collector import StatsCollector
from docker_stats_exporter.labels import build_label_universe
from docker_stats_exporter.registry import MetricRegistry
from docker_stats_exporter.state import ExporterState
from docker_stats_exporter.docker_client import parse_inspect

from tests.fixtures.mock_apis import MockDockerClient
from tests.fixtures.sample_data import CONTAINER_A, make_inspect_payload


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "live: mark test as requiring a running Docker daemon"
    )
    config.addinivalue_line(
        "markers",
        "slow: mark test as slow running"
    )


@pytest.fixture
def mock_docker_client():
    """Mock Docker client with one running container"""
    client = MockDockerClient()
    client.add_container(
        CONTAINER_A,
        inspect=make_inspect_payload(CONTAINER_A, labels={'com.example.team': 'web'})
    )
    return client


@pytest.fixture
def label_universe(mock_docker_client):
    """Label universe built from the mock client's containers"""
    infos = [parse_inspect(payload) for payload in mock_docker_client.inspect_payloads.values()]
    return build_label_universe(infos)


@pytest.fixture
def metric_registry(label_universe):
    """Metric registry on an isolated prometheus registry"""
    return MetricRegistry(label_universe, registry=CollectorRegistry())


@pytest.fixture
def exporter_state(metric_registry):
    """Empty exporter state"""
    return ExporterState(metric_registry)


@pytest.fixture
def collector(mock_docker_client, exporter_state):
    """Stats collector wired to the mock client"""
    return StatsCollector(mock_docker_client, exporter_state)
