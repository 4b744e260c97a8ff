"""Serve the newest row of a CSV file as Prometheus text-exposition metrics."""

__version__ = "0.1.0"
