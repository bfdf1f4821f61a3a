"""Utilities for managing Kubernetes conditions."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from ..constants import COND_READY, REASON_SECRET_READY


def update_condition(
    conditions: list[dict[str, Any]],
    condition_type: str,
    status: str,
    reason: str,
    message: str,
    observed_generation: int | None = None,
) -> list[dict[str, Any]]:
    """Update or add a condition, keeping at most one entry per type.

    Args:
        conditions: List of existing conditions
        condition_type: Type of condition
        status: Status of condition ("True", "False", "Unknown")
        reason: Reason for the condition
        message: Human-readable message
        observed_generation: Generation when condition was observed

    Returns:
        Updated list of conditions, ordered by type
    """
    now = datetime.now(timezone.utc).isoformat()

    by_type: dict[str, dict[str, Any]] = {}
    for cond in conditions or []:
        by_type[cond.get("type")] = cond

    new_condition = {
        "type": condition_type,
        "status": status,
        "reason": reason,
        "message": message,
        "lastTransitionTime": now,
    }

    if observed_generation is not None:
        new_condition["observedGeneration"] = observed_generation

    existing = by_type.get(condition_type)
    # Only update lastTransitionTime if status changed
    if existing is not None and existing.get("status") == status:
        new_condition["lastTransitionTime"] = existing.get("lastTransitionTime", now)

    by_type[condition_type] = new_condition
    return [by_type[key] for key in sorted(by_type)]


def set_ready_condition(
    conditions: list[dict[str, Any]],
    status: bool,
    message: str,
    observed_generation: int | None = None,
    reason: str | None = None,
) -> list[dict[str, Any]]:
    """Set the Ready condition."""
    if reason is None:
        reason = REASON_SECRET_READY if status else "NotReady"
    return update_condition(
        conditions,
        COND_READY,
        "True" if status else "False",
        reason,
        message,
        observed_generation,
    )
