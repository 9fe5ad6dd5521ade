"""Tests for the WSGI app serving metrics and the landing page."""

import sys
from pathlib import Path
from wsgiref.util import setup_testing_defaults

# Add src directory to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from gitlab_extra_exporter.cache import SnapshotCache
from gitlab_extra_exporter.main import build_registry
from gitlab_extra_exporter.server import create_app


def _call(app, path: str):
    environ = {}
    setup_testing_defaults(environ)
    environ["PATH_INFO"] = path
    captured = {}

    def start_response(status, headers, exc_info=None):
        captured["status"] = status
        captured["headers"] = dict(headers)

    body = b"".join(app(environ, start_response))
    return captured["status"], captured["headers"], body.decode()


def test_metrics_path_serves_exposition():
    """Verify the configured path returns the text exposition."""
    app = create_app(build_registry(SnapshotCache()), "/metrics")

    status, _headers, body = _call(app, "/metrics")

    assert status.startswith("200")
    assert "gitlab_extra_up 0.0" in body


def test_root_serves_landing_page_linking_metrics_path():
    """Verify / serves HTML that links to the metrics path."""
    app = create_app(build_registry(SnapshotCache()), "/probe")

    status, headers, body = _call(app, "/")

    assert status.startswith("200")
    assert headers["Content-Type"].startswith("text/html")
    assert '<a href="/probe">Metrics</a>' in body


def test_unknown_path_returns_404():
    """Verify other paths are not found."""
    app = create_app(build_registry(SnapshotCache()), "/metrics")

    status, _headers, _body = _call(app, "/other")

    assert status.startswith("404")
