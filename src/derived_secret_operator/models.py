"""Typed views of the operator's custom resources."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any

from .constants import (
    DEFAULT_MASTER_PASSWORD_LENGTH,
    DEFAULT_MASTER_PASSWORD_NAME,
    DEFAULT_SECRET_TYPE,
    FINALIZER,
    MASTER_PASSWORD_SECRET_SUFFIX,
    SECRET_TYPE_PASSWORD,
)


class LifecycleState(enum.Enum):
    """Lifecycle of a DerivedSecret as seen by its reconciler."""

    INITIALIZING = "Initializing"
    ACTIVE = "Active"
    TERMINATING = "Terminating"


def lifecycle_state(meta: dict[str, Any], finalizer: str = FINALIZER) -> LifecycleState:
    """Classify a resource by its finalizers and deletion timestamp."""
    if meta.get("deletionTimestamp"):
        return LifecycleState.TERMINATING
    if finalizer not in (meta.get("finalizers") or []):
        return LifecycleState.INITIALIZING
    return LifecycleState.ACTIVE


@dataclass
class MasterPasswordConfig:
    """Desired state of a MasterPassword."""

    name: str
    length: int = DEFAULT_MASTER_PASSWORD_LENGTH
    secret_name: str | None = None
    create: bool = True
    annotations: dict[str, str] = field(default_factory=dict)

    @property
    def resolved_secret_name(self) -> str:
        """Name of the backing secret, ``<name>-mp`` unless overridden."""
        return self.secret_name or default_backing_secret_name(self.name)


def default_backing_secret_name(master_password_name: str) -> str:
    return f"{master_password_name}{MASTER_PASSWORD_SECRET_SUFFIX}"


@dataclass
class DerivedKeyConfig:
    """How one key of a DerivedSecret is derived."""

    name: str
    type: str = SECRET_TYPE_PASSWORD
    master_password: str = DEFAULT_MASTER_PASSWORD_NAME
    length: int = 0


@dataclass
class DerivedSecretConfig:
    """Desired state of a DerivedSecret."""

    name: str
    namespace: str
    keys: dict[str, DerivedKeyConfig]
    type: str = DEFAULT_SECRET_TYPE
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)
