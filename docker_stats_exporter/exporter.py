"""
Main Docker Stats Exporter application.

This module implements the startup bootstrap, the HTTP server and the wiring
of the periodic collection that exposes Docker container statistics in
Prometheus format.
"""

import logging
import signal
import sys
from typing import List, Optional, Tuple

from docker.errors import DockerException
from flask import Flask, Response, request
from pydantic import ValidationError
from werkzeug.serving import WSGIRequestHandler

from docker_stats_exporter import __version__
from docker_stats_exporter.collector import CollectionScheduler, StatsCollector, fetch_snapshots
from docker_stats_exporter.config import ExporterConfig, load_config
from docker_stats_exporter.docker_client import DockerRuntimeClient
from docker_stats_exporter.errors import CollectionError
from docker_stats_exporter.labels import build_label_universe
from docker_stats_exporter.registry import MetricRegistry
from docker_stats_exporter.state import ExporterState

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(sys.stdout)
    ]
)
logger = logging.getLogger(__name__)

REQUEST_TIMEOUT_SECONDS = 20
HTTP_METHODS = ['GET', 'HEAD', 'POST', 'PUT', 'PATCH', 'DELETE', 'OPTIONS']


class TimeoutRequestHandler(WSGIRequestHandler):
    """Request handler that drops connections idle for longer than the timeout."""
    timeout = REQUEST_TIMEOUT_SECONDS


def create_app(state: ExporterState) -> Flask:
    """
    Create the Flask app serving the metrics of ``state``.

    Every path serves the metrics; only GET is allowed.
    """
    app = Flask(__name__)

    @app.route('/', defaults={'path': ''}, methods=HTTP_METHODS)
    @app.route('/<path:path>', methods=HTTP_METHODS)
    def metrics_endpoint(path):
        """Prometheus metrics endpoint."""
        # Only allowed to poll prometheus metrics
        if request.method != 'GET':
            return Response('Support GET only', status=404, mimetype='text/plain')
        return Response(state.render(), content_type=state.content_type)

    return app


def bootstrap(client: DockerRuntimeClient, config: ExporterConfig) -> Tuple[ExporterState, bool]:
    """
    Run the first collection pass and build the metrics from it.

    The label universe is taken from the containers running now, and their
    snapshots become the baseline of the first scheduled cycle. Nothing is
    reported for this pass.

    Returns:
        The exporter state and whether the daemon platform is supported.
    """
    supported = client.is_windows()
    logger.info(f"Windows OS = {supported}")

    try:
        snapshots = fetch_snapshots(client, config.max_workers)
    except CollectionError as e:
        logger.error(f"Initial collection failed: {e}")
        snapshots = []

    universe = build_label_universe(snapshot.info for snapshot in snapshots)
    registry = MetricRegistry(universe, collect_default=config.collect_default)
    state = ExporterState(registry)

    if supported:
        for snapshot in snapshots:
            state.store.put(snapshot.id, snapshot)

    logger.info(f"Bootstrap complete: {len(snapshots)} containers, {len(universe)} labels")
    return state, supported


class DockerStatsExporter:
    """Main exporter class that collects and exposes Docker metrics."""

    def __init__(self, config: ExporterConfig):
        self.config = config
        self.client: Optional[DockerRuntimeClient] = None
        self.state: Optional[ExporterState] = None
        self.collector: Optional[StatsCollector] = None
        self.scheduler: Optional[CollectionScheduler] = None
        self.app: Optional[Flask] = None

    def _signal_handler(self, signum, frame):
        """Handle shutdown signals."""
        logger.info(f"Received signal {signum}, shutting down gracefully...")
        self.stop()
        sys.exit(0)

    def setup(self):
        """Connect to Docker, bootstrap the metrics and schedule collection."""
        try:
            self.client = DockerRuntimeClient(self.config.docker_base_url, timeout=self.config.docker_timeout)
        except DockerException as e:
            logger.error(f"Unable to connect to Docker: {e}")
            logger.error("Make sure Docker socket is mounted and accessible")
            sys.exit(1)

        self.state, supported = bootstrap(self.client, self.config)
        self.collector = StatsCollector(
            self.client,
            self.state,
            supported=supported,
            max_workers=self.config.max_workers
        )
        self.scheduler = CollectionScheduler(self.collector, self.config.interval)
        self.app = create_app(self.state)

    def start(self):
        """Start the exporter."""
        logger.info("Starting Docker Stats Exporter...")
        logger.info(f"Collection interval: {self.config.interval} seconds")
        logger.info(f"HTTP port: {self.config.port}")

        # Register signal handlers for graceful shutdown
        signal.signal(signal.SIGINT, self._signal_handler)
        signal.signal(signal.SIGTERM, self._signal_handler)

        try:
            self.setup()
        except DockerException as e:
            logger.error(f"Unable to reach Docker during startup: {e}")
            self.stop()
            sys.exit(1)
        self.scheduler.start()

        logger.info("Starting HTTP server...")
        logger.info(f"Docker Stats exporter listening on port {self.config.port}")
        self.app.run(
            host='0.0.0.0',
            port=self.config.port,
            threaded=True,
            request_handler=TimeoutRequestHandler
        )

    def stop(self):
        """Stop the exporter."""
        logger.info("Stopping Docker Stats Exporter...")

        if self.scheduler:
            self.scheduler.shutdown()

        if self.client:
            self.client.close()

        logger.info("Exporter stopped")


def main(argv: Optional[List[str]] = None):
    """Main entry point."""
    try:
        config = load_config(argv)
    except (ValidationError, ValueError) as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(2)

    logging.getLogger().setLevel(config.log_level)
    logger.info(f"Docker Stats Exporter v{__version__}")
    logger.info(f"Configuration: interval={config.interval}s, port={config.port}, "
                f"collect_default={config.collect_default}")

    exporter = DockerStatsExporter(config)

    try:
        exporter.start()
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt, shutting down...")
        exporter.stop()
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        exporter.stop()
        sys.exit(1)


if __name__ == '__main__':
    main()
