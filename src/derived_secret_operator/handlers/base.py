"""Base handler class with common functionality for all CRD handlers."""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable

import kopf
from kubernetes import client

from .. import metrics
from ..config import backoff_delay
from ..constants import FINALIZER, REASON_INVALID_SPEC, REASON_RECONCILIATION_FAILED
from ..exceptions import ConflictError, DerivedSecretOperatorError
from ..logging import log_resource_event
from ..utils.conditions import set_ready_condition
from ..utils.context import with_correlation_id
from ..utils.errors import sanitize_dict, sanitize_exception
from ..utils.events import emit_reconcile_failed, emit_reconcile_started

CONTROLLER_NAME = "derived-secret-operator"


def to_kopf_error(error: Exception, retry: int = 0) -> Exception:
    """Translate an exception into kopf retry semantics.

    Args:
        error: Exception raised by a reconcile
        retry: Number of retries kopf has already performed for the handler

    Returns:
        A kopf.PermanentError (no retry), a kopf.TemporaryError with zero
        delay for write conflicts, or a kopf.TemporaryError with exponential
        backoff for everything else
    """
    if isinstance(error, (kopf.PermanentError, kopf.TemporaryError)):
        return error

    message = sanitize_exception(error)
    if isinstance(error, DerivedSecretOperatorError) and error.permanent:
        return kopf.PermanentError(message)
    if isinstance(error, ConflictError):
        return kopf.TemporaryError(message, delay=0)
    if isinstance(error, client.exceptions.ApiException) and error.status == 409:
        return kopf.TemporaryError(f"Conflict: {message}", delay=0)
    return kopf.TemporaryError(message, delay=backoff_delay(retry))


class BaseHandler:
    """Base class for all CRD handlers with common functionality."""

    def __init__(self, kind: str):
        """Initialize base handler.

        Args:
            kind: The Kubernetes resource kind (e.g., "MasterPassword", "DerivedSecret")
        """
        self.kind = kind
        self.logger = logging.getLogger(__name__)

    def _get_resource_context(self, meta: dict[str, Any]) -> dict[str, Any]:
        return {
            "name": meta.get("name", "unknown"),
            "namespace": meta.get("namespace", ""),
            "uid": meta.get("uid", "unknown"),
        }

    def _log(
        self,
        level: int,
        meta: dict[str, Any],
        message: str,
        event: str,
        reason: str,
        **kwargs: Any,
    ) -> None:
        ctx = self._get_resource_context(meta)
        log_resource_event(
            self.logger,
            controller=CONTROLLER_NAME,
            resource_kind=self.kind,
            resource_name=ctx["name"],
            namespace=ctx["namespace"],
            uid=ctx["uid"],
            event=event,
            reason=reason,
            message=message,
            level=level,
            **sanitize_dict(kwargs),
        )

    def log_info(
        self,
        meta: dict[str, Any],
        message: str,
        event: str = "info",
        reason: str = "Info",
        **kwargs: Any,
    ) -> None:
        """Log an info-level structured log message."""
        self._log(logging.INFO, meta, message, event, reason, **kwargs)

    def log_warning(
        self,
        meta: dict[str, Any],
        message: str,
        event: str = "warning",
        reason: str = "Warning",
        **kwargs: Any,
    ) -> None:
        """Log a warning-level structured log message."""
        self._log(logging.WARNING, meta, message, event, reason, **kwargs)

    def log_error(
        self,
        meta: dict[str, Any],
        message: str,
        error: Exception | None = None,
        event: str = "error",
        reason: str = "Error",
        **kwargs: Any,
    ) -> None:
        """Log an error-level structured log message.

        Args:
            meta: Kubernetes resource metadata
            message: Log message
            error: Optional exception to include sanitized error details
            event: Event type (default: "error")
            reason: Reason for the event (default: "Error")
            **kwargs: Additional fields to include in the log
        """
        if error is not None:
            kwargs["error"] = sanitize_exception(error)
            kwargs["error_type"] = type(error).__name__
        self._log(logging.ERROR, meta, message, event, reason, **kwargs)

    def ensure_finalizer(self, meta: dict[str, Any], patch: kopf.Patch) -> bool:
        """Ensure finalizer is present in metadata.

        Returns:
            True if the finalizer had to be added
        """
        finalizers = list(meta.get("finalizers") or [])
        if FINALIZER in finalizers:
            return False
        finalizers.append(FINALIZER)
        patch.metadata["finalizers"] = finalizers
        return True

    def remove_finalizer(self, meta: dict[str, Any], patch: kopf.Patch) -> None:
        """Remove finalizer from metadata."""
        finalizers = list(meta.get("finalizers") or [])
        if FINALIZER in finalizers:
            finalizers.remove(FINALIZER)
            patch.metadata["finalizers"] = finalizers if finalizers else None

    def report_failure(
        self,
        meta: dict[str, Any],
        status: dict[str, Any],
        patch: kopf.Patch,
        error: Exception,
        reason: str | None = None,
        status_data: dict[str, Any] | None = None,
    ) -> None:
        """Record a failed reconcile as a False Ready condition.

        Args:
            meta: Kubernetes resource metadata
            status: Current resource status
            patch: Kopf patch object
            error: Exception that failed the reconcile
            reason: Condition reason; derived from the error when omitted
            status_data: Additional status fields to write
        """
        if reason is None:
            permanent = isinstance(error, DerivedSecretOperatorError) and error.permanent
            reason = REASON_INVALID_SPEC if permanent else REASON_RECONCILIATION_FAILED

        generation = meta.get("generation", 0)
        conditions = set_ready_condition(
            list(status.get("conditions", [])),
            False,
            sanitize_exception(error),
            observed_generation=generation,
            reason=reason,
        )
        self.update_resource_status(
            patch,
            meta,
            ready=False,
            status_data={"ready": False, "conditions": conditions, **(status_data or {})},
        )

    def reconcile_with_metrics(
        self,
        body: dict[str, Any],
        reconcile_fn: Callable[[], None],
        retry: int = 0,
    ) -> None:
        """Execute reconciliation with metrics, events and error translation.

        Args:
            body: Kubernetes resource body
            reconcile_fn: Function to execute for reconciliation
            retry: Retry counter supplied by kopf
        """
        meta = body.get("metadata", {})
        with with_correlation_id():
            emit_reconcile_started(body)
            metrics.reconcile_total.labels(kind=self.kind, result="started").inc()

            start_time = time.time()
            try:
                reconcile_fn()
                metrics.reconcile_total.labels(kind=self.kind, result="success").inc()
            except kopf.TemporaryError:
                # Deliberate requeue, not a failure
                metrics.reconcile_total.labels(kind=self.kind, result="requeued").inc()
                raise
            except Exception as e:
                sanitized_error = sanitize_exception(e)
                metrics.error_total.labels(kind=self.kind, error_type=type(e).__name__).inc()
                self.log_error(meta, "Reconciliation failed", error=e, reason="ReconciliationFailed")
                emit_reconcile_failed(body, f"Reconciliation failed: {sanitized_error}")
                metrics.reconcile_total.labels(kind=self.kind, result="error").inc()
                raise to_kopf_error(e, retry) from e
            finally:
                duration = time.time() - start_time
                metrics.reconcile_duration_seconds.labels(kind=self.kind).observe(duration)

    def update_resource_status(
        self,
        patch: kopf.Patch,
        meta: dict[str, Any],
        ready: bool,
        status_data: dict[str, Any] | None = None,
    ) -> None:
        """Update resource status with common fields.

        Args:
            patch: Kopf patch object
            meta: Kubernetes resource metadata
            ready: Whether the resource is ready
            status_data: Additional status data to include
        """
        status_update = {
            "observedGeneration": meta.get("generation", 0),
            **(status_data or {}),
        }

        metrics.resource_status_total.labels(
            kind=self.kind, status="ready" if ready else "not_ready"
        ).inc()

        patch.status.update(status_update)


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()
