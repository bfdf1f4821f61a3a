"""Builder for MasterPassword configurations."""

from __future__ import annotations

from typing import Any

from ..constants import DEFAULT_MASTER_PASSWORD_LENGTH
from ..models import MasterPasswordConfig
from ..services.derivation import validate_length


def create_master_password_config_from_spec(
    spec: dict[str, Any],
    meta: dict[str, Any],
) -> MasterPasswordConfig:
    """Create a MasterPassword configuration from CRD spec.

    Args:
        spec: MasterPassword CRD spec
        meta: MasterPassword metadata

    Returns:
        Parsed configuration

    Raises:
        InvalidLengthError: If spec.length is outside 22..256
    """
    length = spec.get("length") or DEFAULT_MASTER_PASSWORD_LENGTH
    validate_length(length)

    secret_ref = spec.get("secret") or {}
    create = secret_ref.get("create")

    return MasterPasswordConfig(
        name=meta["name"],
        length=length,
        secret_name=secret_ref.get("name") or None,
        # an omitted flag means "create"
        create=True if create is None else bool(create),
        annotations=dict(spec.get("annotations") or {}),
    )
