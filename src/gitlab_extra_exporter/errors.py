"""Custom exception types for the GitLab Extra Exporter."""

from __future__ import annotations

from typing import Optional


class ExporterError(Exception):
    """Base exception for all exporter errors."""


class ConfigError(ExporterError):
    """Raised when runtime configuration values are missing or invalid."""


class AuthenticationError(ConfigError):
    """Raised when the GitLab API token is not configured."""


class UpstreamError(ExporterError):
    """Raised when a GitLab API request fails or returns an unexpected response."""


class PartialCycleError(ExporterError):
    """Raised when one of the concurrent merge request enrichment tasks fails.

    ``partition`` names the merge request state whose task failed first.
    """

    def __init__(self, message: str, partition: Optional[str] = None) -> None:
        super().__init__(message)
        self.partition = partition
