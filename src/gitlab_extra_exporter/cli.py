"""Command-line argument parsing for the GitLab Extra Exporter."""

from __future__ import annotations

import argparse
import os
from typing import Optional, Sequence


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in ("1", "true", "yes", "on")


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser; every flag falls back to an environment variable."""
    parser = argparse.ArgumentParser(
        prog="gitlab-extra-exporter",
        description=(
            "Export GitLab project and merge request metrics "
            "(approvals, durations, changes) for Prometheus."
        ),
    )

    parser.add_argument(
        "--listen-address",
        default=os.getenv("LISTEN_ADDRESS"),
        help="Port address of exporter to run on (default: 8080).",
    )
    parser.add_argument(
        "--listen-path",
        default=os.getenv("LISTEN_PATH"),
        help="Path where metrics will be exposed (default: /metrics).",
    )
    parser.add_argument(
        "--gitlab-uri",
        default=os.getenv("GITLAB_URI"),
        help="URI to Gitlab instance to monitor.",
    )
    parser.add_argument(
        "--gitlab-api-key",
        default=os.getenv("GITLAB_API_KEY"),
        help="API Key to access the Gitlab instance.",
    )
    parser.add_argument(
        "--interval",
        default=os.getenv("INTERVAL"),
        help="Interval in seconds between metric refreshes.",
    )
    parser.add_argument(
        "--target-branch",
        default=os.getenv("TARGET_BRANCH"),
        help="Target branch of the merge requests to export (default: master).",
    )
    parser.add_argument(
        "--include-archived",
        action="store_true",
        default=_env_flag("INCLUDE_ARCHIVED"),
        help="Include archived projects.",
    )
    parser.add_argument(
        "--log-level",
        default=os.getenv("LOG_LEVEL", "INFO"),
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        type=str.upper,
        help="Logging level (default: INFO).",
    )

    return parser


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments for the exporter.

    Required values (GitLab URI, API key, interval) are validated later by
    :func:`gitlab_extra_exporter.config.load_config` so that they may come
    from either flags or the environment.
    """
    return build_parser().parse_args(argv)
