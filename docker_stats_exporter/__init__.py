"""
Docker Stats Exporter for Prometheus

A Windows-compatible container metrics exporter that provides cAdvisor-style
metrics using the Docker API. Cumulative runtime counters are sampled on a
fixed interval and turned into monotonically increasing Prometheus counters.
"""

__version__ = "1.0.0"
