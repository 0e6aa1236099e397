"""Main entry point for the Garage Operator."""

from __future__ import annotations

import os
from typing import Any

import kopf

from . import handlers  # noqa: F401
from . import health
from . import logging as structured_logging
from .tracing import initialize_tracing


@kopf.on.startup()
def configure(settings: kopf.OperatorSettings, **_: Any) -> None:
    """Configure the operator."""
    structured_logging.setup_structured_logging()
    initialize_tracing()

    # Use AnnotationsProgressStorage to avoid conflicts with status updates
    settings.persistence.progress_storage = kopf.AnnotationsProgressStorage()
    settings.persistence.diffbase_storage = kopf.AnnotationsDiffBaseStorage()

    settings.posting.level = 0
    settings.networking.request_timeout = 30.0
    settings.execution.max_workers = int(os.getenv("MAX_WORKERS", "4"))

    metrics_port = int(os.getenv("METRICS_PORT", "8080"))
    health.start_server(metrics_port)
    health.mark_ready()


@kopf.on.cleanup()
def shutdown(**_: Any) -> None:
    health.mark_not_ready()


def main() -> None:
    """Run the operator across all namespaces."""
    kopf.run(clusterwide=True)


if __name__ == "__main__":
    main()
