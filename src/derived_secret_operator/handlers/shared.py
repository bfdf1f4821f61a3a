"""Shared utilities for handlers."""

from __future__ import annotations

import logging
import time
from typing import Any

from kubernetes import client, config

from .. import metrics
from ..constants import (
    ANNOTATION_RECONCILE_TRIGGER,
    API_GROUP,
    API_VERSION,
    MASTER_PASSWORD_KEY,
    PLURAL_DERIVED_SECRETS,
    PLURAL_MASTER_PASSWORDS,
)
from ..exceptions import MasterSecretUnavailableError
from ..models import default_backing_secret_name
from ..utils.secrets import decode_secret_data, read_secret

logger = logging.getLogger(__name__)

_config_loaded = False


def _load_config() -> None:
    global _config_loaded
    if _config_loaded:
        return
    try:
        config.load_incluster_config()
    except config.ConfigException:
        config.load_kube_config()
    _config_loaded = True


def get_k8s_client() -> client.CustomObjectsApi:
    """Get Kubernetes CustomObjectsApi client.

    Returns:
        CustomObjectsApi instance
    """
    _load_config()
    return client.CustomObjectsApi()


def get_core_client() -> client.CoreV1Api:
    """Get Kubernetes CoreV1Api client."""
    _load_config()
    return client.CoreV1Api()


def _timed_call(operation: str, fn: Any, **kwargs: Any) -> Any:
    start_time = time.time()
    try:
        result = fn(**kwargs)
        metrics.api_call_total.labels(api_type="k8s", operation=operation, result="success").inc()
        return result
    except Exception:
        metrics.api_call_total.labels(api_type="k8s", operation=operation, result="error").inc()
        raise
    finally:
        duration = time.time() - start_time
        metrics.api_call_duration_seconds.labels(api_type="k8s", operation=operation).observe(duration)


def list_master_passwords(api: client.CustomObjectsApi) -> list[dict[str, Any]]:
    """List all MasterPassword objects in the cluster."""
    result = _timed_call(
        "list_master_passwords",
        api.list_cluster_custom_object,
        group=API_GROUP,
        version=API_VERSION,
        plural=PLURAL_MASTER_PASSWORDS,
    )
    return result.get("items", [])


def list_derived_secrets(api: client.CustomObjectsApi) -> list[dict[str, Any]]:
    """List DerivedSecret objects across all namespaces."""
    result = _timed_call(
        "list_derived_secrets",
        api.list_cluster_custom_object,
        group=API_GROUP,
        version=API_VERSION,
        plural=PLURAL_DERIVED_SECRETS,
    )
    return result.get("items", [])


def resolve_backing_secret_name(master_password: dict[str, Any]) -> str:
    """Return the backing secret name of a raw MasterPassword object."""
    spec = master_password.get("spec") or {}
    secret_name = (spec.get("secret") or {}).get("name")
    return secret_name or default_backing_secret_name(master_password["metadata"]["name"])


def get_master_password(
    custom_api: client.CustomObjectsApi,
    core_api: client.CoreV1Api,
    name: str,
    operator_namespace: str,
) -> str:
    """Fetch the value of a master password.

    Args:
        custom_api: Kubernetes CustomObjectsApi instance
        core_api: Kubernetes CoreV1Api instance
        name: MasterPassword name
        operator_namespace: Namespace holding backing secrets

    Returns:
        The decoded master password value

    Raises:
        MasterSecretUnavailableError: If the MasterPassword, its backing secret
            or the value inside it does not exist
    """
    try:
        master_password = _timed_call(
            "get_master_password",
            custom_api.get_cluster_custom_object,
            group=API_GROUP,
            version=API_VERSION,
            plural=PLURAL_MASTER_PASSWORDS,
            name=name,
        )
    except client.exceptions.ApiException as e:
        if e.status == 404:
            raise MasterSecretUnavailableError(f"MasterPassword {name} not found") from e
        raise

    secret_name = resolve_backing_secret_name(master_password)
    secret = read_secret(core_api, operator_namespace, secret_name)
    if secret is None:
        raise MasterSecretUnavailableError(
            f"Secret {operator_namespace}/{secret_name} for MasterPassword {name} not found"
        )

    value = decode_secret_data(secret).get(MASTER_PASSWORD_KEY)
    if not value:
        raise MasterSecretUnavailableError(
            f"Secret {operator_namespace}/{secret_name} has no {MASTER_PASSWORD_KEY} key"
        )
    return value


def request_reconcile(
    api: client.CustomObjectsApi,
    plural: str,
    name: str,
    namespace: str | None = None,
    token: str = "",
    source: str = "secret_watch",
) -> bool:
    """Ask kopf to reconcile an object by touching its trigger annotation.

    Objects that disappeared in the meantime are skipped.

    Args:
        api: Kubernetes CustomObjectsApi instance
        plural: Resource plural
        name: Object name
        namespace: Object namespace, None for cluster-scoped kinds
        token: Annotation value; it must differ from the previous one to fire an update
        source: Origin of the request, used as a metric label

    Returns:
        True if the request was delivered
    """
    body = {"metadata": {"annotations": {ANNOTATION_RECONCILE_TRIGGER: token or str(time.time())}}}
    try:
        if namespace is None:
            api.patch_cluster_custom_object(
                group=API_GROUP,
                version=API_VERSION,
                plural=plural,
                name=name,
                body=body,
            )
        else:
            api.patch_namespaced_custom_object(
                group=API_GROUP,
                version=API_VERSION,
                namespace=namespace,
                plural=plural,
                name=name,
                body=body,
            )
    except client.exceptions.ApiException as e:
        if e.status == 404:
            logger.debug(f"Skipping reconcile request for vanished {plural} {namespace}/{name}")
            return False
        raise

    metrics.reconcile_requests_total.labels(kind=plural, source=source).inc()
    return True
