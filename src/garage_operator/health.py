"""Metrics and health endpoints for the operator."""

from __future__ import annotations

import threading
from typing import Any

from prometheus_client import make_wsgi_app
from werkzeug.serving import make_server
from werkzeug.wrappers import Response

_ready = threading.Event()


def mark_ready() -> None:
    """Report the operator as ready once kopf startup hooks have run."""
    _ready.set()


def mark_not_ready() -> None:
    _ready.clear()


def create_combined_wsgi_app() -> Any:
    """Create a WSGI app serving /healthz and /readyz and delegating everything else to prometheus.

    Returns:
        Combined WSGI application
    """
    metrics_app = make_wsgi_app()

    def combined_app(environ: dict[str, Any], start_response: Any) -> list[bytes]:
        path = environ.get("PATH_INFO", "")

        if path == "/healthz":
            response = Response('{"status":"ok"}', mimetype="application/json", status=200)
            return response(environ, start_response)
        if path == "/readyz":
            if _ready.is_set():
                response = Response('{"status":"ready"}', mimetype="application/json", status=200)
            else:
                response = Response('{"status":"starting"}', mimetype="application/json", status=503)
            return response(environ, start_response)
        # Delegate all other paths (including /metrics) to prometheus app
        return metrics_app(environ, start_response)

    return combined_app


def start_server(port: int) -> Any:
    """Serve the combined app on ``port`` from a daemon thread and return the server."""
    server = make_server("", port, create_combined_wsgi_app(), threaded=True)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    return server
