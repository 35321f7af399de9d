"""
Capability index: which providers can serve which service categories.

Derived from each ProviderProfile's services_array. Read-only; provider
capabilities are managed by account management, never by the marketplace core.
"""

import logging
from typing import Optional, Set

from ..repository import MarketplaceRepositories

logger = logging.getLogger(__name__)


class CapabilityIndex:
    """Lookups between service categories and provider ids."""

    def __init__(self, repositories: Optional[MarketplaceRepositories] = None):
        self.repositories = repositories or MarketplaceRepositories()

    def providers_for(self, service_id) -> Set[int]:
        """
        Provider user ids registered for ``service_id``.

        Returns an empty set (not an error) when nobody serves the category.
        """
        provider_ids = self.repositories.providers.user_ids_for_service(service_id)
        logger.debug("%d provider(s) registered for service %s", len(provider_ids), service_id)
        return provider_ids

    def categories_for(self, provider_id) -> Set[int]:
        """Service category ids a provider is registered for (their subscription set)."""
        return self.repositories.providers.service_ids(provider_id)
