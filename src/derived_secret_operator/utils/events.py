"""Utilities for emitting Kubernetes events."""

from __future__ import annotations

from typing import Any

import kopf

from ..constants import (
    EVENT_REASON_MASTER_PASSWORD_GENERATED,
    EVENT_REASON_RECONCILE_FAILED,
    EVENT_REASON_RECONCILE_STARTED,
    EVENT_REASON_SECRET_CREATED,
    EVENT_REASON_SECRET_DELETED,
    EVENT_REASON_SECRET_UPDATED,
    EVENT_REASON_VALIDATE_FAILED,
)


def emit_event(
    body: dict[str, Any],
    reason: str,
    message: str,
    type_: str = "Normal",
) -> None:
    """Emit a Kubernetes event.

    Args:
        body: Resource body (or metadata with apiVersion/kind/uid)
        reason: Event reason
        message: Event message
        type_: Event type (Normal or Warning)
    """
    kopf.event(
        body,
        reason=reason,
        message=message,
        type=type_,
    )


def emit_reconcile_started(body: dict[str, Any]) -> None:
    """Emit reconcile started event."""
    emit_event(body, EVENT_REASON_RECONCILE_STARTED, "Reconciliation started")


def emit_reconcile_failed(body: dict[str, Any], message: str) -> None:
    """Emit reconcile failed event."""
    emit_event(body, EVENT_REASON_RECONCILE_FAILED, message, type_="Warning")


def emit_validate_failed(body: dict[str, Any], message: str) -> None:
    """Emit validation failed event."""
    emit_event(body, EVENT_REASON_VALIDATE_FAILED, message, type_="Warning")


def emit_master_password_generated(body: dict[str, Any], secret_ref: str) -> None:
    emit_event(body, EVENT_REASON_MASTER_PASSWORD_GENERATED, f"Master password stored in {secret_ref}")


def emit_secret_created(body: dict[str, Any], secret_ref: str) -> None:
    emit_event(body, EVENT_REASON_SECRET_CREATED, f"Secret {secret_ref} created")


def emit_secret_updated(body: dict[str, Any], secret_ref: str) -> None:
    emit_event(body, EVENT_REASON_SECRET_UPDATED, f"Secret {secret_ref} updated")


def emit_secret_deleted(body: dict[str, Any], secret_ref: str) -> None:
    emit_event(body, EVENT_REASON_SECRET_DELETED, f"Secret {secret_ref} deleted")
