"""Handler for MasterPassword CRD."""

from __future__ import annotations

from typing import Any

import kopf
from kubernetes import client

from .. import metrics
from ..builders.derived_secret import find_dependents
from ..builders.master_password import create_master_password_config_from_spec
from ..config import OPERATOR_NAMESPACE
from ..constants import (
    API_GROUP_VERSION,
    KIND_MASTER_PASSWORD,
    LABEL_MANAGED_BY,
    MANAGED_BY_VALUE,
    MASTER_PASSWORD_KEY,
    PLURAL_DERIVED_SECRETS,
    REASON_INVALID_SPEC,
    REASON_SECRET_RECONCILIATION_FAILED,
)
from ..exceptions import ConflictError, DerivedSecretOperatorError, SecretReconciliationError
from ..models import MasterPasswordConfig
from ..services.derivation import generate_random_secret
from ..tracing import trace_span
from ..utils.conditions import set_ready_condition
from ..utils.events import emit_master_password_generated, emit_secret_updated, emit_validate_failed
from ..utils.secrets import create_secret, read_secret, replace_secret
from .base import BaseHandler
from .shared import get_core_client, get_k8s_client, list_derived_secrets, request_reconcile


class MasterPasswordHandler(BaseHandler):
    """Handler for MasterPassword resources.

    Keeps the backing secret in the operator namespace in place and tells
    dependent DerivedSecrets when the master value they derive from changed.
    """

    def __init__(self):
        """Initialize master password handler."""
        super().__init__(KIND_MASTER_PASSWORD)

    def reconcile(
        self,
        spec: dict[str, Any],
        meta: dict[str, Any],
        status: dict[str, Any],
        patch: kopf.Patch,
        body: dict[str, Any],
    ) -> None:
        """Reconcile MasterPassword resource."""
        name = meta.get("name", "unknown")

        with trace_span("reconcile_master_password", kind=KIND_MASTER_PASSWORD, attributes={"masterpassword.name": name}):
            try:
                mp_config = create_master_password_config_from_spec(spec, meta)
            except DerivedSecretOperatorError as e:
                emit_validate_failed(body, str(e))
                self.report_failure(meta, status, patch, e, reason=REASON_INVALID_SPEC)
                raise

            custom_api = get_k8s_client()
            core_api = get_core_client()
            secret_name = mp_config.resolved_secret_name

            try:
                secret = self.reconcile_secret(core_api, mp_config, meta, body)
            except (DerivedSecretOperatorError, client.exceptions.ApiException) as e:
                if isinstance(e, ConflictError):
                    raise
                # A missing backing secret is a version change too
                status_data = {"secretName": secret_name, "secretNamespace": OPERATOR_NAMESPACE}
                try:
                    status_data.update(self.propagate(custom_api, name, status, ""))
                except client.exceptions.ApiException as propagate_error:
                    self.log_warning(
                        meta,
                        "Could not notify dependents of missing master secret",
                        error=str(propagate_error),
                    )
                self.report_failure(
                    meta,
                    status,
                    patch,
                    e,
                    reason=REASON_SECRET_RECONCILIATION_FAILED,
                    status_data=status_data,
                )
                raise

            version = secret.metadata.resource_version or ""
            status_data = self.propagate(custom_api, name, status, version)

            generation = meta.get("generation", 0)
            conditions = set_ready_condition(
                list(status.get("conditions", [])),
                True,
                f"Master password stored in {OPERATOR_NAMESPACE}/{secret_name}",
                observed_generation=generation,
            )
            self.update_resource_status(
                patch,
                meta,
                ready=True,
                status_data={
                    "secretName": secret_name,
                    "secretNamespace": OPERATOR_NAMESPACE,
                    "ready": True,
                    "conditions": conditions,
                    **status_data,
                },
            )

    def reconcile_secret(
        self,
        core_api: client.CoreV1Api,
        mp_config: MasterPasswordConfig,
        meta: dict[str, Any],
        body: dict[str, Any],
    ) -> client.V1Secret:
        """Ensure the backing secret exists and carries the declared annotations.

        Returns:
            The current backing secret

        Raises:
            SecretReconciliationError: If the secret is missing and may not be
                created, or exists without a master password value
        """
        secret_name = mp_config.resolved_secret_name
        secret_ref = f"{OPERATOR_NAMESPACE}/{secret_name}"

        secret = read_secret(core_api, OPERATOR_NAMESPACE, secret_name)
        if secret is None:
            if not mp_config.create:
                raise SecretReconciliationError(
                    f"Secret {secret_ref} does not exist and secret.create is false"
                )

            try:
                secret = create_secret(
                    core_api,
                    OPERATOR_NAMESPACE,
                    secret_name,
                    {MASTER_PASSWORD_KEY: generate_random_secret(mp_config.length)},
                    labels={LABEL_MANAGED_BY: MANAGED_BY_VALUE},
                    annotations=mp_config.annotations,
                )
            except client.exceptions.ApiException as e:
                raise SecretReconciliationError(f"Failed to create secret {secret_ref}: {e.reason}") from e

            self.log_info(
                meta,
                f"Generated master password in {secret_ref}",
                event="create",
                reason="MasterPasswordGenerated",
            )
            emit_master_password_generated(body, secret_ref)
            return secret

        if MASTER_PASSWORD_KEY not in (secret.data or {}):
            raise SecretReconciliationError(f"Secret {secret_ref} has no {MASTER_PASSWORD_KEY} key")

        current = dict(secret.metadata.annotations or {})
        merged = {**current, **mp_config.annotations}
        if merged != current:
            secret.metadata.annotations = merged
            secret = replace_secret(core_api, secret)
            self.log_info(meta, f"Updated annotations of {secret_ref}", event="update", reason="SecretUpdated")
            emit_secret_updated(body, secret_ref)

        return secret

    def propagate(
        self,
        custom_api: client.CustomObjectsApi,
        name: str,
        status: dict[str, Any],
        version: str,
    ) -> dict[str, Any]:
        """Count dependents and nudge them if the backing secret version moved.

        Args:
            custom_api: Kubernetes CustomObjectsApi instance
            name: MasterPassword name
            status: Current MasterPassword status
            version: resourceVersion of the backing secret, empty if it is missing

        Returns:
            Status fields describing dependents and the observed version
        """
        dependents = find_dependents(name, list_derived_secrets(custom_api))
        metrics.dependent_secrets.labels(master_password=name).set(len(dependents))

        if version != status.get("observedSecretVersion", ""):
            token = f"{name}:{version or 'missing'}"
            for dep_namespace, dep_name in dependents:
                request_reconcile(
                    custom_api,
                    PLURAL_DERIVED_SECRETS,
                    dep_name,
                    namespace=dep_namespace,
                    token=token,
                    source="master_password",
                )
            if dependents:
                self.logger.info(
                    f"Master password {name} changed, requested reconcile of {len(dependents)} dependents"
                )

        return {"dependentSecrets": len(dependents), "observedSecretVersion": version}


# Global handler instance
_handler = MasterPasswordHandler()


@kopf.on.create(API_GROUP_VERSION, KIND_MASTER_PASSWORD)
@kopf.on.update(API_GROUP_VERSION, KIND_MASTER_PASSWORD)
@kopf.on.resume(API_GROUP_VERSION, KIND_MASTER_PASSWORD)
def handle_master_password(
    spec: dict[str, Any],
    meta: dict[str, Any],
    status: dict[str, Any],
    patch: kopf.Patch,
    body: dict[str, Any],
    retry: int = 0,
    **kwargs: Any,
) -> None:
    """Handle MasterPassword resource reconciliation."""
    _handler.reconcile_with_metrics(
        body,
        lambda: _handler.reconcile(spec, meta, status, patch, body),
        retry=retry,
    )
