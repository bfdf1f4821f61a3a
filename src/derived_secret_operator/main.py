"""Main entry point for the Derived Secret Operator.

Run with ``kopf run -m derived_secret_operator.main``.
"""

from __future__ import annotations

import logging
import os
from typing import Any

import kopf

from . import handlers  # noqa: F401
from . import logging as structured_logging
from .config import K8S_REQUEST_TIMEOUT_SECONDS, MAX_WORKERS, METRICS_PORT, OPERATOR_NAMESPACE
from .health import start_metrics_server
from .tracing import initialize_tracing

logger = logging.getLogger(__name__)


@kopf.on.startup()
def configure(settings: kopf.OperatorSettings, **_: Any) -> None:
    """Configure the operator."""
    # Set up structured JSON logging
    level = getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO)
    structured_logging.setup_structured_logging(level)
    initialize_tracing()

    # Use AnnotationsProgressStorage to avoid conflicts with status updates
    settings.persistence.progress_storage = kopf.AnnotationsProgressStorage()
    settings.persistence.diffbase_storage = kopf.AnnotationsDiffBaseStorage()

    settings.posting.level = logging.WARNING
    settings.networking.request_timeout = K8S_REQUEST_TIMEOUT_SECONDS
    # Sync handlers run here; Argon2id derivations must not block the event loop
    settings.execution.max_workers = MAX_WORKERS

    # Start metrics HTTP server with health check endpoints
    start_metrics_server(METRICS_PORT)
    logger.info(f"Operator started, master passwords are stored in namespace {OPERATOR_NAMESPACE}")
