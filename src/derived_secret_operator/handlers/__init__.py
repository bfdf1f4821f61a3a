"""Handler modules for CRD resources."""

# Import handlers to register them - all handlers register themselves via @kopf decorators
from . import derived_secret  # noqa: F401
from . import master_password  # noqa: F401
from . import secret_watch  # noqa: F401
