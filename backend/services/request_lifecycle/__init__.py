"""
Request lifecycle service - the request state machine.

This module handles:
    - Creating service requests
    - Status transitions (pending -> assigned -> closed)
    - Administrative deletion
    - Querying active requests
"""

from .lifecycle import (
    RequestLifecycle,
    ALLOWED_TRANSITIONS,
    VALID_STATUSES,
    can_transition,
    normalize_status,
)

__all__ = [
    "RequestLifecycle",
    "ALLOWED_TRANSITIONS",
    "VALID_STATUSES",
    "can_transition",
    "normalize_status",
]
