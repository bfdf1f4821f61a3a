"""Runtime configuration read from the environment."""

from __future__ import annotations

import os

SERVICE_ACCOUNT_NAMESPACE_FILE = "/var/run/secrets/kubernetes.io/serviceaccount/namespace"
DEFAULT_OPERATOR_NAMESPACE = "derived-secret-operator-system"


def _detect_operator_namespace() -> str:
    """Resolve the namespace that holds master password secrets."""
    namespace = os.getenv("OPERATOR_NAMESPACE")
    if namespace:
        return namespace
    try:
        with open(SERVICE_ACCOUNT_NAMESPACE_FILE, encoding="utf-8") as f:
            return f.read().strip() or DEFAULT_OPERATOR_NAMESPACE
    except OSError:
        return DEFAULT_OPERATOR_NAMESPACE


OPERATOR_NAMESPACE: str = _detect_operator_namespace()

METRICS_PORT: int = int(os.getenv("METRICS_PORT", "8080"))
MAX_WORKERS: int = int(os.getenv("MAX_WORKERS", "4"))
K8S_REQUEST_TIMEOUT_SECONDS: float = float(os.getenv("K8S_REQUEST_TIMEOUT_SECONDS", "30.0"))

# Exponential backoff for retried reconciles: 1s, 2s, 4s, ... capped at 60s
RETRY_BASE_DELAY_SECONDS: float = float(os.getenv("RETRY_BASE_DELAY_SECONDS", "1.0"))
RETRY_MAX_DELAY_SECONDS: float = float(os.getenv("RETRY_MAX_DELAY_SECONDS", "60.0"))


def backoff_delay(retry: int) -> float:
    """Return the delay before the next attempt of a failed reconcile.

    Args:
        retry: Number of retries already performed (0 for the first failure)

    Returns:
        Delay in seconds
    """
    return min(RETRY_MAX_DELAY_SECONDS, RETRY_BASE_DELAY_SECONDS * (2 ** max(retry, 0)))
