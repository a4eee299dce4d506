"""
Custom exceptions for the cycle reconciliation engine.

These exceptions separate failures of the commerce platform, of the
platform's validation and of local persistence, so the drivers can decide
which ones abort a run and which ones are recorded per order.
"""


class CycleTrackError(Exception):
    """Base exception for all cycle tracking errors."""

    def __init__(self, message: str, code: str = "CYCLETRACK_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class SourceUnavailable(CycleTrackError):
    """Shopify could not be reached (transport failure, timeout, HTTP error status)."""

    def __init__(self, message: str, original_error: Exception = None):
        self.original_error = original_error
        super().__init__(message, "SOURCE_UNAVAILABLE")


class SourceProtocolError(CycleTrackError):
    """Shopify answered with a GraphQL error payload or a malformed body."""

    def __init__(self, message: str, errors=None):
        self.errors = errors or []
        super().__init__(message, "SOURCE_PROTOCOL_ERROR")


class UpdateRejected(CycleTrackError):
    """Shopify rejected a mutation with field-level user errors."""

    def __init__(self, user_errors: list):
        self.user_errors = user_errors or []
        if self.user_errors:
            message = self.user_errors[0].get('message') or str(self.user_errors[0])
        else:
            message = "Update rejected"
        super().__init__(message, "UPDATE_REJECTED")


class StoreUnavailable(CycleTrackError):
    """The cycle store (database) failed."""

    def __init__(self, message: str, original_error: Exception = None):
        self.original_error = original_error
        super().__init__(message, "STORE_UNAVAILABLE")


class CycleResolutionError(CycleTrackError):
    """A cycle could not be computed for an order."""

    def __init__(self, message: str):
        super().__init__(message, "CYCLE_RESOLUTION_ERROR")


class SyncAlreadyRunning(CycleTrackError):
    """Another batch sync holds the run lock for this shop."""

    def __init__(self, shop: str, run_id: int = None):
        self.shop = shop
        self.run_id = run_id
        super().__init__(f"A cycle sync is already running for {shop}", "SYNC_ALREADY_RUNNING")


class ConfigurationError(CycleTrackError):
    """Application configuration error."""

    def __init__(self, message: str):
        super().__init__(message, "CONFIGURATION_ERROR")
