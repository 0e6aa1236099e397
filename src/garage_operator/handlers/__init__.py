"""Handler modules for CRD resources."""

# Import handlers to register them - all handlers register themselves via @kopf decorators
from . import bucket  # noqa: F401
from . import key  # noqa: F401
from . import key_access  # noqa: F401
from . import provider_config  # noqa: F401
