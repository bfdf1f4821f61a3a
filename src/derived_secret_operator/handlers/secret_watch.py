"""Reverse watch: map Secret events back to the resources they belong to.

Two kinds of secrets matter to the operator. Backing secrets of master
passwords live in the operator namespace; materialized secrets are owned by
their DerivedSecret through a controller owner reference. Any change to
either one requests a reconcile of its owner, so drift is repaired and
master password changes reach the dependents.
"""

from __future__ import annotations

import logging
from typing import Any

import kopf

from ..config import OPERATOR_NAMESPACE
from ..constants import (
    API_GROUP,
    KIND_DERIVED_SECRET,
    LABEL_MANAGED_BY,
    PLURAL_DERIVED_SECRETS,
    PLURAL_MASTER_PASSWORDS,
)
from ..models import default_backing_secret_name
from ..utils.context import with_correlation_id
from .shared import get_k8s_client, list_master_passwords, request_reconcile, resolve_backing_secret_name

logger = logging.getLogger(__name__)


def map_secret_to_master_passwords(
    secret_meta: dict[str, Any],
    master_passwords: list[dict[str, Any]],
    operator_namespace: str,
) -> list[str]:
    """Return the names of MasterPasswords backed by a secret.

    A secret qualifies only if it lives in the operator namespace and either
    carries the managed-by label or follows the ``<name>-mp`` convention.

    Args:
        secret_meta: Secret metadata
        master_passwords: Raw MasterPassword objects
        operator_namespace: Namespace holding backing secrets

    Returns:
        Names of the matching MasterPasswords
    """
    if secret_meta.get("namespace") != operator_namespace:
        return []

    secret_name = secret_meta.get("name")
    labelled = LABEL_MANAGED_BY in (secret_meta.get("labels") or {})

    names = []
    for obj in master_passwords:
        mp_name = obj.get("metadata", {}).get("name")
        if not mp_name or resolve_backing_secret_name(obj) != secret_name:
            continue
        if labelled or secret_name == default_backing_secret_name(mp_name):
            names.append(mp_name)
    return names


def map_secret_to_derived_secret(secret_meta: dict[str, Any]) -> tuple[str, str] | None:
    """Return (namespace, name) of the DerivedSecret controlling a secret, if any."""
    for ref in secret_meta.get("ownerReferences") or []:
        if (
            ref.get("controller")
            and ref.get("kind") == KIND_DERIVED_SECRET
            and (ref.get("apiVersion") or "").split("/")[0] == API_GROUP
        ):
            return secret_meta.get("namespace"), ref.get("name")
    return None


@kopf.on.event("v1", "secrets")
def handle_secret_event(
    event: dict[str, Any],
    meta: dict[str, Any],
    **kwargs: Any,
) -> None:
    """Request reconciles for the owners of a changed secret."""
    event_type = event.get("type")
    if event_type is None:
        # Initial listing; resume handlers already cover existing objects
        return

    namespace = meta.get("namespace")
    name = meta.get("name")
    token = f"{event_type}:{meta.get('resourceVersion', '')}"

    with with_correlation_id():
        owner = map_secret_to_derived_secret(meta)
        if owner is not None:
            owner_namespace, owner_name = owner
            logger.debug(f"Secret {namespace}/{name} {event_type}, requesting reconcile of DerivedSecret {owner_namespace}/{owner_name}")
            request_reconcile(
                get_k8s_client(),
                PLURAL_DERIVED_SECRETS,
                owner_name,
                namespace=owner_namespace,
                token=token,
            )

        if namespace != OPERATOR_NAMESPACE:
            return

        api = get_k8s_client()
        for mp_name in map_secret_to_master_passwords(meta, list_master_passwords(api), OPERATOR_NAMESPACE):
            logger.debug(f"Secret {namespace}/{name} {event_type}, requesting reconcile of MasterPassword {mp_name}")
            request_reconcile(api, PLURAL_MASTER_PASSWORDS, mp_name, token=token)
