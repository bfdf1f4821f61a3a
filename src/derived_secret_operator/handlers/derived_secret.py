"""Handler for DerivedSecret CRD."""

from __future__ import annotations

from typing import Any

import kopf
from kubernetes import client

from ..builders.derived_secret import create_derived_secret_config_from_spec
from ..config import OPERATOR_NAMESPACE
from ..constants import (
    API_GROUP_VERSION,
    FINALIZER,
    KIND_DERIVED_SECRET,
    REASON_RECONCILIATION_FAILED,
)
from ..exceptions import ConflictError, DerivedSecretOperatorError
from ..models import DerivedSecretConfig, LifecycleState, lifecycle_state
from ..services.derivation import build_context, derive_secret, get_secret_length, key_hash
from ..tracing import trace_span
from ..utils.conditions import set_ready_condition
from ..utils.events import (
    emit_secret_created,
    emit_secret_deleted,
    emit_secret_updated,
    emit_validate_failed,
)
from ..utils.secrets import (
    create_secret,
    decode_secret_data,
    delete_secret,
    encode_secret_data,
    read_secret,
    replace_secret,
)
from .base import BaseHandler, now_iso
from .shared import get_core_client, get_k8s_client, get_master_password

SECRET_CREATED = "created"
SECRET_UPDATED = "updated"
SECRET_UNCHANGED = "unchanged"


def build_owner_reference(meta: dict[str, Any]) -> dict[str, Any]:
    """Controller owner reference pointing at a DerivedSecret."""
    return {
        "apiVersion": API_GROUP_VERSION,
        "kind": KIND_DERIVED_SECRET,
        "name": meta.get("name"),
        "uid": meta.get("uid"),
        "controller": True,
        "blockOwnerDeletion": True,
    }


class DerivedSecretHandler(BaseHandler):
    """Handler for DerivedSecret resources."""

    def __init__(self):
        """Initialize derived secret handler."""
        super().__init__(KIND_DERIVED_SECRET)

    def reconcile(
        self,
        spec: dict[str, Any],
        meta: dict[str, Any],
        status: dict[str, Any],
        patch: kopf.Patch,
        body: dict[str, Any],
    ) -> None:
        """Reconcile DerivedSecret resource according to its lifecycle state.

        Raises:
            kopf.TemporaryError: Right after the finalizer was added, so the
                secret is materialized on the next pass
        """
        state = lifecycle_state(meta)

        if state is LifecycleState.TERMINATING:
            self.delete(meta, patch, body)
            return

        if state is LifecycleState.INITIALIZING:
            self.ensure_finalizer(meta, patch)
            self.log_info(meta, "Added finalizer", event="finalizer", reason="FinalizerAdded")
            raise kopf.TemporaryError("Finalizer added, requeueing", delay=0)

        self.materialize(spec, meta, status, patch, body)

    def materialize(
        self,
        spec: dict[str, Any],
        meta: dict[str, Any],
        status: dict[str, Any],
        patch: kopf.Patch,
        body: dict[str, Any],
    ) -> None:
        """Derive every declared key and write the resulting secret.

        On failure the Ready condition turns False and an existing secret is
        left as it was.
        """
        name = meta.get("name", "unknown")
        namespace = meta.get("namespace", "default")

        with trace_span(
            "reconcile_derived_secret",
            kind=KIND_DERIVED_SECRET,
            attributes={"derivedsecret.name": name, "derivedsecret.namespace": namespace},
        ):
            try:
                ds_config = create_derived_secret_config_from_spec(spec, meta)
                data = self.derive_all(ds_config)
                action = self.upsert_secret(ds_config, data, meta, body)
            except (DerivedSecretOperatorError, client.exceptions.ApiException) as e:
                if isinstance(e, ConflictError):
                    raise
                if isinstance(e, DerivedSecretOperatorError) and e.permanent:
                    emit_validate_failed(body, str(e))
                    self.report_failure(meta, status, patch, e)
                else:
                    self.report_failure(meta, status, patch, e, reason=REASON_RECONCILIATION_FAILED)
                raise

            last_updated = status.get("lastUpdated")
            if action != SECRET_UNCHANGED or not last_updated:
                last_updated = now_iso()

            generation = meta.get("generation", 0)
            conditions = set_ready_condition(
                list(status.get("conditions", [])),
                True,
                f"Secret {namespace}/{name} is up to date",
                observed_generation=generation,
            )
            self.update_resource_status(
                patch,
                meta,
                ready=True,
                status_data={
                    "secretName": name,
                    "ready": True,
                    "lastUpdated": last_updated,
                    "keyHashes": {key: key_hash(value) for key, value in data.items()},
                    "conditions": conditions,
                },
            )

    def derive_all(self, ds_config: DerivedSecretConfig) -> dict[str, str]:
        """Derive the value of every key before anything is written.

        Raises:
            MasterSecretUnavailableError: If a referenced master password is missing
            InvalidSpecError: If a derivation context is too short
            ReconciliationError: If derivation fails
        """
        custom_api = get_k8s_client()
        core_api = get_core_client()

        masters: dict[str, str] = {}
        data = {}
        for key_name, key_config in ds_config.keys.items():
            master_name = key_config.master_password
            if master_name not in masters:
                masters[master_name] = get_master_password(
                    custom_api, core_api, master_name, OPERATOR_NAMESPACE
                )

            context = build_context(ds_config.namespace, ds_config.name, key_name)
            length = get_secret_length(key_config.type, key_config.length)
            data[key_name] = derive_secret(masters[master_name], context, length)
        return data

    def upsert_secret(
        self,
        ds_config: DerivedSecretConfig,
        data: dict[str, str],
        meta: dict[str, Any],
        body: dict[str, Any],
    ) -> str:
        """Create the materialized secret or bring it in line with the declaration.

        Returns:
            One of "created", "updated" or "unchanged"
        """
        core_api = get_core_client()
        secret_ref = f"{ds_config.namespace}/{ds_config.name}"

        existing = read_secret(core_api, ds_config.namespace, ds_config.name)
        if existing is not None and (existing.type or "Opaque") != ds_config.type:
            # Secret type is immutable
            delete_secret(core_api, ds_config.namespace, ds_config.name)
            self.log_info(meta, f"Recreating secret {secret_ref} with type {ds_config.type}", event="update")
            existing = None

        if existing is None:
            create_secret(
                core_api,
                ds_config.namespace,
                ds_config.name,
                data,
                secret_type=ds_config.type,
                labels=ds_config.labels,
                annotations=ds_config.annotations,
                owner_references=[build_owner_reference(meta)],
            )
            self.log_info(meta, f"Created secret {secret_ref}", event="create", reason="SecretCreated")
            emit_secret_created(body, secret_ref)
            return SECRET_CREATED

        if (
            decode_secret_data(existing) == data
            and (existing.metadata.labels or {}) == ds_config.labels
            and (existing.metadata.annotations or {}) == ds_config.annotations
        ):
            return SECRET_UNCHANGED

        existing.data = encode_secret_data(data)
        existing.metadata.labels = ds_config.labels or None
        existing.metadata.annotations = ds_config.annotations or None
        replace_secret(core_api, existing)
        self.log_info(meta, f"Updated secret {secret_ref}", event="update", reason="SecretUpdated")
        emit_secret_updated(body, secret_ref)
        return SECRET_UPDATED

    def delete(
        self,
        meta: dict[str, Any],
        patch: kopf.Patch,
        body: dict[str, Any],
    ) -> None:
        """Delete the materialized secret, then release the finalizer."""
        if FINALIZER not in (meta.get("finalizers") or []):
            return

        name = meta.get("name", "unknown")
        namespace = meta.get("namespace", "default")
        secret_ref = f"{namespace}/{name}"

        with trace_span("delete_derived_secret", kind=KIND_DERIVED_SECRET, attributes={"derivedsecret.name": name}):
            if delete_secret(get_core_client(), namespace, name):
                self.log_info(meta, f"Deleted secret {secret_ref}", event="delete", reason="SecretDeleted")
                emit_secret_deleted(body, secret_ref)
            else:
                self.log_info(meta, f"Secret {secret_ref} already gone", event="delete", reason="SecretNotFound")

            self.remove_finalizer(meta, patch)


# Global handler instance
_handler = DerivedSecretHandler()


@kopf.on.create(API_GROUP_VERSION, KIND_DERIVED_SECRET)
@kopf.on.update(API_GROUP_VERSION, KIND_DERIVED_SECRET)
@kopf.on.resume(API_GROUP_VERSION, KIND_DERIVED_SECRET)
def handle_derived_secret(
    spec: dict[str, Any],
    meta: dict[str, Any],
    status: dict[str, Any],
    patch: kopf.Patch,
    body: dict[str, Any],
    retry: int = 0,
    **kwargs: Any,
) -> None:
    """Handle DerivedSecret resource reconciliation."""
    _handler.reconcile_with_metrics(
        body,
        lambda: _handler.reconcile(spec, meta, status, patch, body),
        retry=retry,
    )


@kopf.on.delete(API_GROUP_VERSION, KIND_DERIVED_SECRET)
def handle_derived_secret_delete(
    meta: dict[str, Any],
    patch: kopf.Patch,
    body: dict[str, Any],
    retry: int = 0,
    **kwargs: Any,
) -> None:
    """Handle DerivedSecret resource deletion."""
    _handler.reconcile_with_metrics(body, lambda: _handler.delete(meta, patch, body), retry=retry)
