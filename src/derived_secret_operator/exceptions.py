"""Custom exceptions for the Derived Secret Operator.

Every failure the reconcilers can report maps to one class here. The handler
layer translates them into kopf retry semantics: permanent errors stop
retrying until the declaration changes, conflicts retry at once, everything
else retries with exponential backoff.
"""


class DerivedSecretOperatorError(Exception):
    """Base exception for all operator errors."""

    permanent = False


class InvalidLengthError(DerivedSecretOperatorError, ValueError):
    """Raised when a requested secret length is outside 22..256.

    Not retried: the declaration has to change first.
    """

    permanent = True


class InvalidSpecError(DerivedSecretOperatorError, ValueError):
    """Raised when a declaration is malformed (for example no keys)."""

    permanent = True


class MasterSecretUnavailableError(DerivedSecretOperatorError):
    """Raised when a referenced MasterPassword or its backing secret is missing.

    Retried, since the master material may appear later.
    """


class SecretReconciliationError(DerivedSecretOperatorError):
    """Raised when a master password backing secret is malformed or cannot be created."""


class ReconciliationError(DerivedSecretOperatorError):
    """Raised when deriving or upserting a materialized secret fails."""


class ConflictError(DerivedSecretOperatorError):
    """Raised on an optimistic-concurrency write collision.

    Retried immediately: it signals contention, not failure.
    """
