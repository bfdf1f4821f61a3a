"""Utilities for managing Kubernetes secrets."""

from __future__ import annotations

import base64
import binascii
import time
from typing import Any

from kubernetes import client

from .. import metrics
from ..constants import FIELD_MANAGER
from ..exceptions import ConflictError


def encode_secret_data(data: dict[str, str]) -> dict[str, str]:
    """Base64 encode secret values for the ``data`` field."""
    return {k: base64.b64encode(v.encode("utf-8")).decode("utf-8") for k, v in data.items()}


def decode_secret_data(secret: client.V1Secret) -> dict[str, str]:
    """Decode all values of a secret's ``data`` field.

    Args:
        secret: Secret as returned by the API

    Returns:
        Dictionary of decoded secret data
    """
    result = {}
    for key, value in (secret.data or {}).items():
        if isinstance(value, str):
            try:
                result[key] = base64.b64decode(value, validate=True).decode("utf-8")
            except (binascii.Error, UnicodeDecodeError):
                # Some client versions already hand out decoded values
                result[key] = value
        else:
            result[key] = value.decode("utf-8")
    return result


def _track(operation: str, result: str, start_time: float) -> None:
    metrics.secret_operations_total.labels(operation=operation, result=result).inc()
    metrics.api_call_duration_seconds.labels(api_type="k8s", operation=f"{operation}_secret").observe(
        time.time() - start_time
    )


def read_secret(
    api: client.CoreV1Api,
    namespace: str,
    secret_name: str,
) -> client.V1Secret | None:
    """Read a secret, returning None if it does not exist.

    Raises:
        client.exceptions.ApiException: For errors other than 404
    """
    start_time = time.time()
    try:
        secret = api.read_namespaced_secret(name=secret_name, namespace=namespace)
        _track("read", "success", start_time)
        return secret
    except client.exceptions.ApiException as e:
        if e.status == 404:
            _track("read", "not_found", start_time)
            return None
        _track("read", "error", start_time)
        raise


def create_secret(
    api: client.CoreV1Api,
    namespace: str,
    secret_name: str,
    data: dict[str, str],
    secret_type: str = "Opaque",
    labels: dict[str, str] | None = None,
    annotations: dict[str, str] | None = None,
    owner_references: list[dict[str, Any]] | None = None,
) -> client.V1Secret:
    """Create a Kubernetes secret.

    Args:
        api: Kubernetes API client
        namespace: Namespace for the secret
        secret_name: Name of the secret
        data: Secret data (will be base64 encoded)
        secret_type: Secret type tag
        labels: Labels for the secret
        annotations: Annotations for the secret
        owner_references: Owner references for the secret

    Raises:
        ConflictError: If a secret with the same name appeared concurrently
    """
    secret = client.V1Secret(
        metadata=client.V1ObjectMeta(
            name=secret_name,
            namespace=namespace,
            labels=labels or None,
            annotations=annotations or None,
            owner_references=owner_references or None,
        ),
        type=secret_type,
        data=encode_secret_data(data),
    )

    start_time = time.time()
    try:
        created = api.create_namespaced_secret(
            namespace=namespace,
            body=secret,
            field_manager=FIELD_MANAGER,
        )
        _track("create", "success", start_time)
        return created
    except client.exceptions.ApiException as e:
        _track("create", "error", start_time)
        if e.status == 409:
            raise ConflictError(f"Secret {namespace}/{secret_name} already exists") from e
        raise


def replace_secret(
    api: client.CoreV1Api,
    secret: client.V1Secret,
) -> client.V1Secret:
    """Replace a secret, guarded by the resourceVersion it was read with.

    Raises:
        ConflictError: If the secret was modified since it was read
    """
    namespace = secret.metadata.namespace
    secret_name = secret.metadata.name

    start_time = time.time()
    try:
        replaced = api.replace_namespaced_secret(
            name=secret_name,
            namespace=namespace,
            body=secret,
            field_manager=FIELD_MANAGER,
        )
        _track("update", "success", start_time)
        return replaced
    except client.exceptions.ApiException as e:
        _track("update", "error", start_time)
        if e.status == 409:
            raise ConflictError(f"Secret {namespace}/{secret_name} was modified concurrently") from e
        raise


def delete_secret(
    api: client.CoreV1Api,
    namespace: str,
    secret_name: str,
) -> bool:
    """Delete a Kubernetes secret.

    Returns:
        True if the secret was deleted, False if it was already gone
    """
    start_time = time.time()
    try:
        api.delete_namespaced_secret(name=secret_name, namespace=namespace)
        _track("delete", "success", start_time)
        return True
    except client.exceptions.ApiException as e:
        if e.status == 404:
            _track("delete", "not_found", start_time)
            return False
        _track("delete", "error", start_time)
        raise
