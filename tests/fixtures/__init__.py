"""
Shared test fixtures and utilities for docker-stats-exporter tests.

This package provides:
- sample_data: Generators for Docker inspect and stats payloads
- mock_apis: In-memory Docker runtime client
"""

from tests.fixtures import sample_data, mock_apis

__all__ = [
    "sample_data",
    "mock_apis",
]
