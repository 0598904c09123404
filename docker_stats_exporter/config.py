"""
Configuration for the Docker Stats Exporter

Values are read, from lowest to highest precedence, from the defaults below,
an optional YAML file, ``DOCKERSTATS_*`` environment variables and the
command line.
"""

import argparse
import logging
import os
from typing import Any, Dict, List, Mapping, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

MIN_INTERVAL = 3
DEFAULT_CONFIG_FILE = 'config.yaml'

# Environment variable -> config field
ENV_VARS = {
    'DOCKERSTATS_PORT': 'port',
    'DOCKERSTATS_INTERVAL': 'interval',
    'DOCKERSTATS_HOSTIP': 'host_ip',
    'DOCKERSTATS_HOSTPORT': 'host_port',
    'DOCKERSTATS_DEFAULTMETRICS': 'collect_default',
    'DOCKERSTATS_LOG_LEVEL': 'log_level',
    'DOCKERSTATS_DOCKER_TIMEOUT': 'docker_timeout',
    'DOCKERSTATS_MAX_WORKERS': 'max_workers',
}


class ExporterConfig(BaseModel):
    """Configuration for the exporter"""

    # HTTP
    port: int = Field(default=9487, ge=1, le=65535)

    # Collection interval in seconds, never below MIN_INTERVAL
    interval: int = 15

    # Remote Docker endpoint, used only when both are set
    host_ip: str = ''
    host_port: int = Field(default=0, ge=0, le=65535)

    collect_default: bool = False
    log_level: str = 'INFO'
    docker_timeout: int = Field(default=60, ge=1)
    max_workers: int = Field(default=8, ge=1)

    @field_validator('interval')
    @classmethod
    def clamp_interval(cls, value: int) -> int:
        return value if value >= MIN_INTERVAL else MIN_INTERVAL

    @field_validator('log_level')
    @classmethod
    def check_log_level(cls, value: str) -> str:
        level = value.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {value}")
        return level

    @property
    def docker_base_url(self) -> Optional[str]:
        """Remote Docker URL, or None to use the local socket."""
        if self.host_ip and self.host_port:
            return f"tcp://{self.host_ip}:{self.host_port}"
        return None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Docker Stats Exporter for Prometheus')
    parser.add_argument('-p', '--port', type=int, default=None,
                        help='Port to expose metrics on (default: 9487)')
    parser.add_argument('-i', '--interval', type=int, default=None,
                        help=f'Collection interval in seconds (default: 15, minimum: {MIN_INTERVAL})')
    parser.add_argument('--hostip', dest='host_ip', default=None,
                        help='Remote Docker host IP (default: local socket)')
    parser.add_argument('--hostport', dest='host_port', type=int, default=None,
                        help='Remote Docker host port')
    parser.add_argument('--collectdefault', dest='collect_default', action='store_true', default=None,
                        help='Also export process metrics of the exporter itself')
    parser.add_argument('--log-level', dest='log_level', default=None,
                        help='Logging level (default: INFO)')
    parser.add_argument('--config', default=None,
                        help=f'YAML configuration file (default: $DOCKERSTATS_CONFIG or {DEFAULT_CONFIG_FILE})')
    return parser


def load_config_file(path: Optional[str]) -> Dict[str, Any]:
    """Load configuration values from a YAML file"""
    explicit = path is not None
    path = path or DEFAULT_CONFIG_FILE

    if not os.path.exists(path):
        if explicit:
            logger.warning(f"Config file not found: {path}, using defaults")
        return {}

    with open(path, 'r') as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a mapping")
    logger.info(f"Loaded configuration from {path}")
    return data


def config_from_env(environ: Mapping[str, str]) -> Dict[str, Any]:
    return {
        field: environ[var]
        for var, field in ENV_VARS.items()
        if environ.get(var, '') != ''
    }


def load_config(argv: Optional[List[str]] = None, environ: Optional[Mapping[str, str]] = None) -> ExporterConfig:
    """
    Build the exporter configuration.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:]).
        environ: Environment mapping. If None, ``.env`` is loaded and
            ``os.environ`` is used.

    Raises:
        pydantic.ValidationError: If a value is invalid.
    """
    if environ is None:
        load_dotenv()
        environ = os.environ

    args = build_parser().parse_args(argv)

    values: Dict[str, Any] = {}
    values.update(load_config_file(args.config or environ.get('DOCKERSTATS_CONFIG') or None))
    values.update(config_from_env(environ))
    values.update({
        key: value for key, value in vars(args).items()
        if key != 'config' and value is not None
    })

    return ExporterConfig(**values)
