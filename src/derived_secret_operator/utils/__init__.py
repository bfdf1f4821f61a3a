"""Utility functions for the Derived Secret Operator."""

from .conditions import set_ready_condition, update_condition
from .context import get_context_dict, get_correlation_id, with_correlation_id
from .events import emit_event
from .secrets import (
    create_secret,
    decode_secret_data,
    delete_secret,
    encode_secret_data,
    read_secret,
    replace_secret,
)

__all__ = [
    "update_condition",
    "set_ready_condition",
    "emit_event",
    "read_secret",
    "create_secret",
    "replace_secret",
    "delete_secret",
    "encode_secret_data",
    "decode_secret_data",
    "get_correlation_id",
    "with_correlation_id",
    "get_context_dict",
]
