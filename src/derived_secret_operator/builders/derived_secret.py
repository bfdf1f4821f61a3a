"""Builder for DerivedSecret configurations."""

from __future__ import annotations

from typing import Any

from ..constants import (
    DEFAULT_MASTER_PASSWORD_NAME,
    DEFAULT_SECRET_TYPE,
    SECRET_TYPE_CUSTOM,
    SECRET_TYPE_PASSWORD,
)
from ..exceptions import InvalidSpecError
from ..models import DerivedKeyConfig, DerivedSecretConfig
from ..services.derivation import validate_length


def create_derived_key_config(key_name: str, key_spec: dict[str, Any]) -> DerivedKeyConfig:
    """Create the configuration of a single derived key.

    Raises:
        InvalidLengthError: If a custom length is outside 22..256
    """
    secret_type = key_spec.get("type") or SECRET_TYPE_PASSWORD
    length = key_spec.get("length") or 0
    if secret_type == SECRET_TYPE_CUSTOM and length:
        validate_length(length)

    return DerivedKeyConfig(
        name=key_name,
        type=secret_type,
        master_password=key_spec.get("masterPassword") or DEFAULT_MASTER_PASSWORD_NAME,
        length=length,
    )


def create_derived_secret_config_from_spec(
    spec: dict[str, Any],
    meta: dict[str, Any],
) -> DerivedSecretConfig:
    """Create a DerivedSecret configuration from CRD spec.

    Args:
        spec: DerivedSecret CRD spec
        meta: DerivedSecret metadata

    Returns:
        Parsed configuration

    Raises:
        InvalidSpecError: If no keys are declared
        InvalidLengthError: If a custom length is out of range
    """
    keys_spec = spec.get("keys") or {}
    if not keys_spec:
        raise InvalidSpecError("spec.keys must declare at least one key")

    keys = {
        key_name: create_derived_key_config(key_name, key_spec or {})
        for key_name, key_spec in keys_spec.items()
    }

    return DerivedSecretConfig(
        name=meta["name"],
        namespace=meta.get("namespace", "default"),
        keys=keys,
        type=spec.get("type") or DEFAULT_SECRET_TYPE,
        labels=dict(spec.get("labels") or {}),
        annotations=dict(spec.get("annotations") or {}),
    )


def find_dependents(
    master_password_name: str,
    derived_secrets: list[dict[str, Any]],
) -> list[tuple[str, str]]:
    """Return (namespace, name) of every DerivedSecret that uses a MasterPassword."""
    dependents = []
    for obj in derived_secrets:
        keys = (obj.get("spec") or {}).get("keys") or {}
        for key_spec in keys.values():
            name = (key_spec or {}).get("masterPassword") or DEFAULT_MASTER_PASSWORD_NAME
            if name == master_password_name:
                metadata = obj.get("metadata", {})
                dependents.append((metadata.get("namespace", "default"), metadata.get("name")))
                break
    return dependents
