"""Entry point wiring the GitLab Extra Exporter together."""

from __future__ import annotations

import logging
import sys
from typing import Optional, Sequence

from prometheus_client import CollectorRegistry

from .aggregator import Aggregator
from .cache import SnapshotCache
from .cli import build_parser, parse_args
from .collector import MergeRequestCollector
from .config import Config, load_config
from .errors import ConfigError
from .gitlab_client import GitLabClient
from .scheduler import Scheduler
from .server import create_app, serve

logger = logging.getLogger(__name__)

DEFAULT_LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

EXIT_OK = 0
EXIT_UNEXPECTED = 1
EXIT_CONFIG = 2


def configure_logging(level: str = "INFO") -> None:
    """Configure standard library logging for the exporter process."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=DEFAULT_LOG_FORMAT,
        force=True,
    )


def build_registry(cache: SnapshotCache) -> CollectorRegistry:
    """Create a registry exposing only the exporter's own metrics."""
    registry = CollectorRegistry()
    registry.register(MergeRequestCollector(cache))
    return registry


def build_scheduler(config: Config, cache: SnapshotCache) -> Scheduler:
    """Wire client, aggregator and cache into a scheduler."""
    client = GitLabClient(config=config)
    aggregator = Aggregator(
        client,
        target_branch=config.target_branch,
        include_archived=config.include_archived,
    )
    return Scheduler(aggregator, cache, interval_seconds=config.interval_seconds)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Start the refresh loop and serve metrics until interrupted.

    Exit codes:
        0: clean shutdown
        1: unexpected error
        2: invalid or missing configuration
    """
    try:
        args = parse_args(argv)
        config = load_config(
            gitlab_uri=args.gitlab_uri,
            gitlab_api_key=args.gitlab_api_key,
            interval=args.interval,
            listen_address=args.listen_address,
            listen_path=args.listen_path,
            target_branch=args.target_branch,
            include_archived=args.include_archived,
            log_level=args.log_level,
        )
    except ConfigError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        build_parser().print_usage(sys.stderr)
        return EXIT_CONFIG

    configure_logging(config.log_level)
    logger.info("Starting Gitlab Extra Exporter", extra={"gitlab_uri": config.gitlab_uri})

    cache = SnapshotCache()
    scheduler = build_scheduler(config, cache)
    app = create_app(build_registry(cache), config.listen_path)

    try:
        scheduler.start()
        serve(app, port=config.listen_port, host=config.listen_host)
    except KeyboardInterrupt:
        logger.info("Shutting down")
        return EXIT_OK
    except Exception:
        logger.exception("Exporter stopped with an unexpected error")
        return EXIT_UNEXPECTED
    finally:
        scheduler.stop(timeout=0)

    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
