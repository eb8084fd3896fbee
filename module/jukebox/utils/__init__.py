# Utils module
from .errors import (
    JukeboxError,
    NotFoundError,
    ValidationError,
    PlaybackError,
    PersistenceWarning,
    StartupFatalError,
)
from .decorators import handle_errors, log_operation, error_response

__all__ = [
    # Errors
    "JukeboxError",
    "NotFoundError",
    "ValidationError",
    "PlaybackError",
    "PersistenceWarning",
    "StartupFatalError",
    # Decorators
    "handle_errors",
    "log_operation",
    "error_response",
]
