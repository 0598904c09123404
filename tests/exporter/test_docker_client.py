"""
Tests for the Docker API client and payload parsing
"""
import pytest
from unittest.mock import patch

from docker.errors import DockerException

from docker_stats_exporter.docker_client import DockerRuntimeClient, parse_inspect, parse_stats
from docker_stats_exporter.errors import MalformedPayloadError
from docker_stats_exporter.models import NetworkEndpoint

from tests.fixtures.sample_data import (
    CONTAINER_A,
    ENDPOINT_BACKEND,
    ENDPOINT_NAT,
    make_inspect_payload,
    make_network_counters,
    make_stats_payload,
)


class TestParseInspect:
    """Test parse_inspect()"""

    def test_parses_metadata(self):
        """Test name, image, labels, networks and limits"""
        payload = make_inspect_payload(
            CONTAINER_A,
            name='/web',
            image='iis:ltsc2022',
            labels={'com.example.team': 'web'},
            networks=[('nat', ENDPOINT_NAT), ('backend', ENDPOINT_BACKEND)],
            nano_cpus=1_500_000_000,
            memory=536_870_912,
        )

        info = parse_inspect(payload)

        assert info.id == CONTAINER_A
        assert info.name == 'web'
        assert info.image == 'iis:ltsc2022'
        assert info.labels == {'com.example.team': 'web'}
        assert info.networks == [NetworkEndpoint('nat', ENDPOINT_NAT), NetworkEndpoint('backend', ENDPOINT_BACKEND)]
        assert info.nano_cpus == 1_500_000_000
        assert info.memory_limit == 536_870_912

    def test_null_labels(self):
        """Test Config.Labels may be null"""
        payload = make_inspect_payload()
        payload['Config']['Labels'] = None

        assert parse_inspect(payload).labels == {}

    def test_missing_id(self):
        """Test payload without Id is rejected"""
        with pytest.raises(MalformedPayloadError):
            parse_inspect({'Name': '/web'})

    def test_mistyped_section(self):
        """Test a non-object section is rejected"""
        payload = make_inspect_payload()
        payload['HostConfig'] = 'unexpected'

        with pytest.raises(MalformedPayloadError) as exc_info:
            parse_inspect(payload)

        assert exc_info.value.container_id == CONTAINER_A


class TestParseStats:
    """Test parse_stats()"""

    @pytest.fixture
    def info(self):
        return parse_inspect(make_inspect_payload(
            CONTAINER_A, networks=[('nat', ENDPOINT_NAT), ('backend', ENDPOINT_BACKEND)]
        ))

    def test_parses_all_sections(self, info):
        """Test CPU, memory, storage and network sections"""
        payload = make_stats_payload(
            CONTAINER_A,
            total_usage=600_000_000,
            kernel_usage=250_000_000,
            commit_bytes=2048,
            working_set=1024,
            storage={'read_size_bytes': 10, 'read_count_normalized': 2,
                     'write_size_bytes': 30, 'write_count_normalized': 4},
            networks={ENDPOINT_BACKEND: make_network_counters(100), ENDPOINT_NAT: make_network_counters()},
        )

        snapshot = parse_stats(payload, info)

        assert snapshot.id == CONTAINER_A
        assert snapshot.cpu.total == 600_000_000
        assert snapshot.cpu.kernel == 250_000_000
        assert snapshot.memory.usage_bytes == 2048
        assert snapshot.memory.working_set_bytes == 1024
        assert snapshot.filesystem['write_size_bytes'] == 30
        assert snapshot.networks[ENDPOINT_BACKEND]['rx_bytes'] == 100
        assert snapshot.interface_names == {ENDPOINT_BACKEND: 'backend', ENDPOINT_NAT: 'nat'}
        assert snapshot.sampled_at > 0

    def test_missing_sections_are_left_empty(self, info):
        """Test absent sections don't fail parsing"""
        payload = make_stats_payload(omit=('cpu_stats', 'memory_stats', 'storage_stats', 'networks'))

        snapshot = parse_stats(payload, info)

        assert snapshot.cpu is None
        assert snapshot.memory is None
        assert snapshot.filesystem is None
        assert snapshot.networks == {}

    def test_missing_kernel_time(self, info):
        """Test an unreported kernel time is left unset rather than zero"""
        payload = make_stats_payload()
        del payload['cpu_stats']['cpu_usage']['usage_in_kernelmode']

        snapshot = parse_stats(payload, info)

        assert snapshot.cpu.total == 500_000_000
        assert snapshot.cpu.kernel is None

    def test_memory_requires_working_set(self, info):
        """Test Linux-style memory stats are not treated as Windows ones"""
        payload = make_stats_payload()
        payload['memory_stats'] = {'usage': 1024, 'limit': 4096}

        assert parse_stats(payload, info).memory is None

    def test_non_numeric_counters_are_ignored(self, info):
        """Test non-numeric fields in counter sections are dropped"""
        payload = make_stats_payload()
        payload['storage_stats']['device'] = 'C:'

        snapshot = parse_stats(payload, info)

        assert 'device' not in snapshot.filesystem

    def test_non_numeric_cpu_usage(self, info):
        """Test a mistyped CPU counter is rejected"""
        payload = make_stats_payload()
        payload['cpu_stats']['cpu_usage']['total_usage'] = 'lots'

        with pytest.raises(MalformedPayloadError):
            parse_stats(payload, info)

    def test_not_an_object(self, info):
        """Test a non-object payload is rejected"""
        with pytest.raises(MalformedPayloadError):
            parse_stats(['unexpected'], info)


class TestDockerRuntimeClient:
    """Test DockerRuntimeClient"""

    @patch('docker_stats_exporter.docker_client.docker.from_env')
    def test_connects_to_local_socket(self, mock_from_env):
        """Test default connection pings the daemon"""
        client = DockerRuntimeClient()

        mock_from_env.assert_called_once_with(timeout=60)
        client.client.ping.assert_called_once()

    @patch('docker_stats_exporter.docker_client.docker.DockerClient')
    def test_connects_to_remote_host(self, mock_docker_client):
        """Test remote endpoint connection"""
        DockerRuntimeClient('tcp://10.0.0.5:2375', timeout=10)

        mock_docker_client.assert_called_once_with(base_url='tcp://10.0.0.5:2375', timeout=10)

    @patch('docker_stats_exporter.docker_client.docker.from_env')
    def test_connection_failure_is_raised(self, mock_from_env):
        """Test failure to reach the daemon propagates"""
        mock_from_env.return_value.ping.side_effect = DockerException("connection refused")

        with pytest.raises(DockerException):
            DockerRuntimeClient()

    @patch('docker_stats_exporter.docker_client.docker.from_env')
    def test_is_windows(self, mock_from_env):
        """Test platform detection from the daemon version"""
        mock_from_env.return_value.version.return_value = {'Os': 'windows', 'Version': '24.0.7'}

        assert DockerRuntimeClient().is_windows() is True

        mock_from_env.return_value.version.return_value = {'Os': 'linux'}
        assert DockerRuntimeClient().is_windows() is False

    @patch('docker_stats_exporter.docker_client.docker.from_env')
    def test_list_containers(self, mock_from_env):
        """Test container ids are extracted from the listing"""
        mock_from_env.return_value.api.containers.return_value = [
            {'Id': 'aaa', 'Names': ['/web']},
            {'Names': ['/broken']},
            {'Id': 'bbb', 'Names': ['/db']},
        ]

        assert DockerRuntimeClient().list_containers() == ['aaa', 'bbb']

    @patch('docker_stats_exporter.docker_client.docker.from_env')
    def test_fetch_snapshot(self, mock_from_env):
        """Test fetch_snapshot inspects then takes one-shot stats"""
        api = mock_from_env.return_value.api
        api.inspect_container.return_value = make_inspect_payload(CONTAINER_A, name='/web')
        api.stats.return_value = make_stats_payload(CONTAINER_A)

        snapshot = DockerRuntimeClient().fetch_snapshot(CONTAINER_A)

        api.stats.assert_called_once_with(CONTAINER_A, stream=False)
        assert snapshot.name == 'web'
        assert snapshot.cpu.total == 500_000_000

    @patch('docker_stats_exporter.docker_client.docker.from_env')
    def test_close(self, mock_from_env):
        """Test close releases the SDK client"""
        client = DockerRuntimeClient()
        client.close()

        mock_from_env.return_value.close.assert_called_once()
