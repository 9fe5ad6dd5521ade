"""Prometheus exporter for GitLab merge request and project activity."""

__version__ = "0.1.0"
