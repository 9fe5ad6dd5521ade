"""Configuration parsing and validation for the GitLab Extra Exporter."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .errors import AuthenticationError, ConfigError

DEFAULT_LISTEN_ADDRESS = "8080"
DEFAULT_LISTEN_PATH = "/metrics"
DEFAULT_TARGET_BRANCH = "master"


@dataclass(frozen=True)
class Config:
    """Validated runtime settings used by the exporter."""

    listen_address: str
    listen_path: str
    gitlab_uri: str
    gitlab_api_key: str
    interval_seconds: int
    target_branch: str = DEFAULT_TARGET_BRANCH
    include_archived: bool = False
    log_level: str = "INFO"

    @property
    def listen_port(self) -> int:
        """Port parsed from ``listen_address``, which may be ``host:port`` or a bare port."""
        return int(self.listen_address.rsplit(":", 1)[-1])

    @property
    def listen_host(self) -> str:
        """Host part of ``listen_address``; empty means all interfaces."""
        if ":" not in self.listen_address:
            return ""
        return self.listen_address.rsplit(":", 1)[0]


def _is_unset(value: Optional[str]) -> bool:
    return value is None or value.strip() in ("", "0")


def load_config(
    gitlab_uri: Optional[str],
    gitlab_api_key: Optional[str],
    interval: Optional[str],
    listen_address: Optional[str] = None,
    listen_path: Optional[str] = None,
    target_branch: Optional[str] = None,
    include_archived: bool = False,
    log_level: Optional[str] = None,
) -> Config:
    """Build and validate exporter configuration.

    Args:
        gitlab_uri: Base URI of the GitLab instance to monitor.
        gitlab_api_key: API token forwarded to GitLab on every request.
        interval: Refresh interval in seconds, as given on the command line.
        listen_address: Port (or ``host:port``) for the metrics server.
        listen_path: Path the metrics are exposed on.
        target_branch: Branch merge requests must target to be exported.
        include_archived: Whether archived projects are listed.
        log_level: Logging level name.

    Returns:
        A validated ``Config`` instance.

    Raises:
        ConfigError: If the GitLab URI, interval or listen address is invalid.
        AuthenticationError: If the GitLab API key is not configured.
    """
    if _is_unset(gitlab_uri):
        raise ConfigError("URI to Gitlab instance to monitor is empty.")

    if _is_unset(gitlab_api_key):
        raise AuthenticationError(
            "API Key to access the Gitlab instance is empty. "
            "Set --gitlab-api-key or the 'GITLAB_API_KEY' environment variable."
        )

    try:
        interval_seconds = int(str(interval).strip())
    except ValueError as exc:
        raise ConfigError(f"Invalid value for 'interval': {interval!r} is not an integer.") from exc

    if interval_seconds <= 0:
        raise ConfigError("Invalid value for 'interval': expected an integer greater than 0.")

    address = DEFAULT_LISTEN_ADDRESS if _is_unset(listen_address) else str(listen_address).strip()
    path = DEFAULT_LISTEN_PATH if _is_unset(listen_path) else str(listen_path).strip()
    if not path.startswith("/"):
        path = "/" + path

    config = Config(
        listen_address=address,
        listen_path=path,
        gitlab_uri=str(gitlab_uri).strip(),
        gitlab_api_key=str(gitlab_api_key).strip(),
        interval_seconds=interval_seconds,
        target_branch=(target_branch or DEFAULT_TARGET_BRANCH).strip(),
        include_archived=include_archived,
        log_level=(log_level or "INFO").strip().upper(),
    )

    try:
        port = config.listen_port
    except ValueError as exc:
        raise ConfigError(f"Invalid value for 'listenAddress': {address!r}.") from exc
    if not 0 < port < 65536:
        raise ConfigError(f"Invalid value for 'listenAddress': port {port} out of range.")

    return config
