"""Error taxonomy for the marketplace core.

Every error carries the HTTP status the REST boundary maps it to and a short
machine-readable code, so views never need to know which component raised it.
"""


class MarketplaceError(Exception):
    """Base class for errors raised by the marketplace services."""
    status_code = 500
    error_code = "marketplace_error"
    default_message = "Marketplace operation failed"

    def __init__(self, message: str = ""):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class ValidationError(MarketplaceError):
    """Raised when a command is malformed or references unknown input."""
    status_code = 400
    error_code = "validation_error"
    default_message = "Invalid input"


class NotFoundError(MarketplaceError):
    """Raised when a referenced request, offer or provider does not exist."""
    status_code = 404
    error_code = "not_found"
    default_message = "Not found"


class InvalidTransitionError(MarketplaceError):
    """Raised when a request status change is not permitted."""
    status_code = 400
    error_code = "invalid_transition"
    default_message = "Status transition not permitted"


class InvalidStatusError(InvalidTransitionError, ValidationError):
    """Raised when a requested status is not a recognised request status."""
    status_code = 400
    error_code = "invalid_status"
    default_message = "Invalid Request Status Provided"


class InvalidStateError(MarketplaceError):
    """Raised when an offer operation conflicts with the request's current state."""
    status_code = 409
    error_code = "invalid_state"
    default_message = "Request is not open for this operation"


class InsufficientTokensError(MarketplaceError):
    """Raised when a provider cannot pay the platform token cost of an offer."""
    status_code = 402
    error_code = "insufficient_tokens"
    default_message = "Not enough platform tokens"


class PersistenceError(MarketplaceError):
    """Raised when the repository fails; the message never carries internals."""
    status_code = 500
    error_code = "persistence_error"
    default_message = "Internal server error"
