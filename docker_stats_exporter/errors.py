"""
Exceptions raised by the Docker stats exporter.
"""

from typing import Optional


class ExporterError(Exception):
    """Base class for exporter errors."""


class MalformedPayloadError(ExporterError):
    """A Docker inspect or stats payload did not have the expected shape."""

    def __init__(self, message: str, container_id: Optional[str] = None):
        self.container_id = container_id
        if container_id:
            message = f"{message} (container {container_id[:12]})"
        super().__init__(message)


class CollectionError(ExporterError):
    """A collection cycle could not list containers and was abandoned."""
