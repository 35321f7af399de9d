"""
Services package - Business logic layer.

This package contains the marketplace core. It operates on Django models but
is decoupled from the HTTP/WebSocket layer.

Modules:
    - request_lifecycle: Request state machine
    - matching: Capability index and offer arbitration
    - marketplace: Root orchestrator for external commands
    - repository: Persistence contract over the ORM
    - billing: Platform token ledger interface
    - exceptions: Error taxonomy
"""

from .exceptions import (
    MarketplaceError,
    ValidationError,
    NotFoundError,
    InvalidTransitionError,
    InvalidStatusError,
    InvalidStateError,
    InsufficientTokensError,
    PersistenceError,
)

__all__ = [
    "MarketplaceError",
    "ValidationError",
    "NotFoundError",
    "InvalidTransitionError",
    "InvalidStatusError",
    "InvalidStateError",
    "InsufficientTokensError",
    "PersistenceError",
]
