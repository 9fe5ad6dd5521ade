"""HTTP surface: metrics exposition plus a small landing page."""

from __future__ import annotations

import logging
from socketserver import ThreadingMixIn
from typing import Any, Callable, Iterable, List
from wsgiref.simple_server import WSGIRequestHandler, WSGIServer, make_server

from prometheus_client import CollectorRegistry, make_wsgi_app

logger = logging.getLogger(__name__)

LANDING_PAGE = """<html>
<head><title>Gitlab Extra Exporter</title></head>
<body>
<h1>Gitlab Extra Exporter</h1>
<p><a href="{path}">Metrics</a></p>
</body>
</html>
"""

WSGIApp = Callable[[dict, Callable[..., Any]], Iterable[bytes]]


class _ThreadingWSGIServer(ThreadingMixIn, WSGIServer):
    """Handles each scrape in its own thread."""

    daemon_threads = True


class _QuietHandler(WSGIRequestHandler):
    def log_message(self, format: str, *args: Any) -> None:
        logger.debug("%s - " + format, self.address_string(), *args)


def create_app(registry: CollectorRegistry, listen_path: str) -> WSGIApp:
    """Build the WSGI app serving ``listen_path`` from ``registry`` and a landing page on ``/``."""
    metrics_app = make_wsgi_app(registry)
    landing_page = LANDING_PAGE.format(path=listen_path).encode("utf-8")

    def app(environ: dict, start_response: Callable[..., Any]) -> List[bytes]:
        path = environ.get("PATH_INFO") or "/"

        if path == listen_path:
            return list(metrics_app(environ, start_response))

        if path == "/":
            start_response(
                "200 OK",
                [("Content-Type", "text/html; charset=utf-8"), ("Content-Length", str(len(landing_page)))],
            )
            return [landing_page]

        body = b"Not Found\n"
        start_response("404 Not Found", [("Content-Type", "text/plain"), ("Content-Length", str(len(body)))])
        return [body]

    return app


def serve(app: WSGIApp, port: int, host: str = "") -> None:
    """Serve ``app`` until interrupted."""
    httpd = make_server(host, port, app, server_class=_ThreadingWSGIServer, handler_class=_QuietHandler)
    logger.info("Start serving metrics", extra={"host": host or "0.0.0.0", "port": port})
    try:
        httpd.serve_forever()
    finally:
        httpd.server_close()
