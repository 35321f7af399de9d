"""
Provider matching and offer arbitration.

This module handles:
    - Looking up which providers serve a service category
    - Submitting offers against open requests
    - Accepting one offer per request
"""

from .capability_index import CapabilityIndex
from .arbitration import OfferArbitration

__all__ = [
    "CapabilityIndex",
    "OfferArbitration",
]
