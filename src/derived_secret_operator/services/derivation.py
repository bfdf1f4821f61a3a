"""Deterministic secret derivation using Argon2id."""

from __future__ import annotations

import secrets
import string
import time

from argon2.exceptions import HashingError
from argon2.low_level import ARGON2_VERSION, Type, hash_secret_raw

from .. import metrics
from ..constants import SECRET_TYPE_CUSTOM, SECRET_TYPE_ENCRYPTION_KEY, SECRET_TYPE_PASSWORD
from ..exceptions import InvalidLengthError, InvalidSpecError, ReconciliationError

# Argon2id parameters. Changing any of them changes every derived value.
ARGON2_TIME_COST = 4
ARGON2_MEMORY_COST = 64 * 1024  # KiB, i.e. 64 MiB
ARGON2_PARALLELISM = 1
ARGON2_KEY_LENGTH = 32

# Argon2 rejects salts shorter than this
MIN_CONTEXT_BYTES = 8

MIN_SECRET_LENGTH = 22
MAX_SECRET_LENGTH = 256

BASE62_ALPHABET = string.digits + string.ascii_uppercase + string.ascii_lowercase

PASSWORD_LENGTH = 26
ENCRYPTION_KEY_LENGTH = 48


def validate_length(length: int) -> None:
    """Ensure a secret length is within the supported range.

    Raises:
        InvalidLengthError: If length is outside 22..256
    """
    if length < MIN_SECRET_LENGTH or length > MAX_SECRET_LENGTH:
        raise InvalidLengthError(
            f"length must be between {MIN_SECRET_LENGTH} and {MAX_SECRET_LENGTH}, got {length}"
        )


def _kdf(secret: bytes, salt: bytes) -> bytes:
    start_time = time.time()
    try:
        return hash_secret_raw(
            secret=secret,
            salt=salt,
            time_cost=ARGON2_TIME_COST,
            memory_cost=ARGON2_MEMORY_COST,
            parallelism=ARGON2_PARALLELISM,
            hash_len=ARGON2_KEY_LENGTH,
            type=Type.ID,
            version=ARGON2_VERSION,
        )
    except HashingError as e:
        raise ReconciliationError(f"key derivation failed: {e}") from e
    finally:
        metrics.derivation_duration_seconds.observe(time.time() - start_time)


def derive_secret(master_password: str, context: str, length: int) -> str:
    """Derive a printable secret from a master password and a context.

    The context is the Argon2id salt. Each output character combines two
    neighbouring bytes of the current key block to soften modulo bias; once a
    block is used up the KDF is re-run with ``context || previous_block`` as
    salt, so long outputs are a chain rather than a repeating cycle.

    Args:
        master_password: Master password value
        context: Derivation context, see build_context()
        length: Number of characters to produce (22..256)

    Returns:
        Base62 string of exactly ``length`` characters

    Raises:
        InvalidLengthError: If length is out of range
        InvalidSpecError: If the context is too short to be an Argon2 salt
        ReconciliationError: If the KDF fails
    """
    validate_length(length)

    salt = context.encode("utf-8")
    if len(salt) < MIN_CONTEXT_BYTES:
        raise InvalidSpecError(
            f"derivation context must be at least {MIN_CONTEXT_BYTES} bytes, got {len(salt)}"
        )

    secret = master_password.encode("utf-8")
    derived_key = _kdf(secret, salt)
    alphabet_len = len(BASE62_ALPHABET)

    result = []
    for i in range(length):
        index = derived_key[i % ARGON2_KEY_LENGTH] % alphabet_len
        if i + 1 < ARGON2_KEY_LENGTH:
            index = (index + derived_key[(i + 1) % ARGON2_KEY_LENGTH]) % alphabet_len
        result.append(BASE62_ALPHABET[index])

        if i > 0 and i % ARGON2_KEY_LENGTH == 0:
            derived_key = _kdf(secret, salt + derived_key)

    return "".join(result)


def generate_random_secret(length: int) -> str:
    """Generate a random Base62 secret from a cryptographically secure source.

    Used only for master password values, never for derived keys.

    Raises:
        InvalidLengthError: If length is out of range
    """
    validate_length(length)
    return "".join(secrets.choice(BASE62_ALPHABET) for _ in range(length))


def get_secret_length(secret_type: str, custom_length: int = 0) -> int:
    """Return the output length for a derived key type."""
    if secret_type == SECRET_TYPE_PASSWORD:
        return PASSWORD_LENGTH
    if secret_type == SECRET_TYPE_ENCRYPTION_KEY:
        return ENCRYPTION_KEY_LENGTH
    if secret_type == SECRET_TYPE_CUSTOM and custom_length and custom_length > 0:
        return custom_length
    return PASSWORD_LENGTH


def build_context(namespace: str, name: str, key: str) -> str:
    """Build the derivation context for one key of one DerivedSecret."""
    return f"{namespace}/{name}/{key}"


def key_hash(value: str | bytes) -> int:
    """Return a lossy 0..999 fingerprint of a derived value.

    Enough to tell that a key changed without revealing anything about it.
    """
    if isinstance(value, str):
        value = value.encode("utf-8")
    return sum(value) % 1000
