"""Tests for application wiring in the main module."""

import sys
from pathlib import Path
from unittest.mock import Mock, patch

# Add src directory to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from gitlab_extra_exporter.cache import SnapshotCache
from gitlab_extra_exporter.config import Config
from gitlab_extra_exporter.main import build_registry, build_scheduler, main

ARGV = ["--gitlab-uri", "https://gitlab.example.com", "--gitlab-api-key", "secret", "--interval", "60"]


def test_main_starts_scheduler_and_serves(monkeypatch):
    """Verify the exporter starts the scheduler and serves on the configured port."""
    scheduler = Mock()

    with patch("gitlab_extra_exporter.main.build_scheduler", return_value=scheduler) as build_mock, patch(
        "gitlab_extra_exporter.main.serve"
    ) as serve_mock, patch("gitlab_extra_exporter.main.configure_logging"):
        exit_code = main(ARGV + ["--listen-address", "9100"])

    assert exit_code == 0
    config = build_mock.call_args.args[0]
    assert config.gitlab_uri == "https://gitlab.example.com"
    assert config.interval_seconds == 60
    scheduler.start.assert_called_once_with()
    serve_mock.assert_called_once()
    assert serve_mock.call_args.kwargs["port"] == 9100
    scheduler.stop.assert_called_once()


def test_main_missing_api_key_returns_config_exit_code(monkeypatch, capsys):
    """Verify missing configuration prints usage and returns exit code 2."""
    monkeypatch.delenv("GITLAB_API_KEY", raising=False)

    with patch("gitlab_extra_exporter.main.serve") as serve_mock:
        exit_code = main(["--gitlab-uri", "https://gitlab.example.com", "--interval", "60"])

    assert exit_code == 2
    serve_mock.assert_not_called()
    err = capsys.readouterr().err
    assert "API Key" in err
    assert "usage:" in err


def test_main_keyboard_interrupt_is_clean_shutdown():
    """Verify Ctrl-C stops the scheduler and exits with 0."""
    scheduler = Mock()

    with patch("gitlab_extra_exporter.main.build_scheduler", return_value=scheduler), patch(
        "gitlab_extra_exporter.main.serve", side_effect=KeyboardInterrupt
    ), patch("gitlab_extra_exporter.main.configure_logging"):
        exit_code = main(ARGV)

    assert exit_code == 0
    scheduler.stop.assert_called_once()


def test_main_unexpected_error_returns_generic_exit_code():
    """Verify unexpected server errors map to exit code 1."""
    scheduler = Mock()

    with patch("gitlab_extra_exporter.main.build_scheduler", return_value=scheduler), patch(
        "gitlab_extra_exporter.main.serve", side_effect=OSError("address in use")
    ), patch("gitlab_extra_exporter.main.configure_logging"):
        exit_code = main(ARGV)

    assert exit_code == 1


def test_build_scheduler_and_registry_wire_components():
    """Verify the scheduler and registry are built around the shared cache."""
    config = Config(
        listen_address="8080",
        listen_path="/metrics",
        gitlab_uri="https://gitlab.example.com",
        gitlab_api_key="secret",
        interval_seconds=60,
    )
    cache = SnapshotCache()

    scheduler = build_scheduler(config, cache)
    registry = build_registry(cache)

    assert scheduler._cache is cache
    assert scheduler._interval_seconds == 60
    assert registry.get_sample_value("gitlab_extra_up") == 0.0


def test_main_reads_sys_argv_when_no_arguments_given(monkeypatch):
    """Verify main() parses the process arguments when called without argv."""
    monkeypatch.setattr(sys, "argv", ["gitlab-extra-exporter"] + ARGV)
    scheduler = Mock()

    with patch("gitlab_extra_exporter.main.build_scheduler", return_value=scheduler) as build_mock, patch(
        "gitlab_extra_exporter.main.serve"
    ), patch("gitlab_extra_exporter.main.configure_logging"):
        exit_code = main()

    assert exit_code == 0
    assert build_mock.call_args.args[0].interval_seconds == 60
