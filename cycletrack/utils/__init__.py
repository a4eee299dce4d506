"""
Utility modules for the cycle tracker.
"""
from .logging_config import setup_logging
from .errors import (
    ErrorCode,
    error_response,
    unauthorized,
    forbidden,
    not_found,
    conflict
)
from .exceptions import (
    CycleTrackError,
    SourceUnavailable,
    SourceProtocolError,
    UpdateRejected,
    StoreUnavailable,
    CycleResolutionError,
    SyncAlreadyRunning,
    ConfigurationError
)
