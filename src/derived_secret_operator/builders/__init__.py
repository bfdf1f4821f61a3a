"""Builders that turn CRD specs into typed configurations."""

from .derived_secret import create_derived_secret_config_from_spec
from .master_password import create_master_password_config_from_spec

__all__ = [
    "create_derived_secret_config_from_spec",
    "create_master_password_config_from_spec",
]
