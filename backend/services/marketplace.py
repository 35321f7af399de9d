"""
Marketplace service - the entry point for external commands.

Wires the request lifecycle, offer arbitration, capability index, token
ledger and notification dispatcher together. The HTTP views and management
code talk only to this class.
"""

import logging
from typing import List, Optional

from django.conf import settings

from service_requests.models import Offer, ServiceRequest
from .billing import ProfileTokenLedger, TokenLedger
from .commands import CreateRequestCommand, SubmitOfferCommand, TransitionCommand
from .matching import CapabilityIndex, OfferArbitration
from .repository import MarketplaceRepositories
from .request_lifecycle import RequestLifecycle

logger = logging.getLogger(__name__)


class MarketplaceService:
    """
    Orchestrates request and offer commands.

    Args:
        repositories: persistence bundle shared by every component
        dispatcher: NotificationDispatcher; None disables notifications
        capability_index: CapabilityIndex (built from ``repositories`` if omitted)
        ledger: TokenLedger charged for offers
        offer_cost: platform tokens per submitted offer
    """

    def __init__(
        self,
        repositories: Optional[MarketplaceRepositories] = None,
        dispatcher=None,
        capability_index: Optional[CapabilityIndex] = None,
        ledger: Optional[TokenLedger] = None,
        offer_cost: int = 0,
    ):
        self.repositories = repositories or MarketplaceRepositories()
        self.dispatcher = dispatcher
        self.capability_index = capability_index or CapabilityIndex(self.repositories)
        self.lifecycle = RequestLifecycle(self.repositories, dispatcher)
        self.arbitration = OfferArbitration(
            self.lifecycle,
            self.repositories,
            dispatcher=dispatcher,
            ledger=ledger,
            offer_cost=offer_cost,
        )

    # ===================== Requests =====================

    def create_request(self, command: CreateRequestCommand) -> ServiceRequest:
        return self.lifecycle.create_request(command)

    def get_request(self, request_id) -> ServiceRequest:
        return self.lifecycle.get_request(request_id)

    def update_request_status(self, command: TransitionCommand) -> ServiceRequest:
        return self.lifecycle.transition(command.request_id, command.status)

    def close_request(self, request_id) -> ServiceRequest:
        """Manual close / cancel from PENDING or ASSIGNED."""
        return self.lifecycle.transition(request_id, ServiceRequest.CLOSED)

    def delete_request(self, request_id) -> bool:
        return self.lifecycle.delete_request(request_id)

    def list_active_requests(self) -> List[ServiceRequest]:
        return self.lifecycle.list_active_requests()

    def list_active_requests_for_consumer(self, consumer_id) -> List[ServiceRequest]:
        return self.lifecycle.list_active_for_consumer(consumer_id)

    def list_active_requests_for_provider(self, provider_id) -> List[ServiceRequest]:
        return self.lifecycle.list_active_for_provider(provider_id)

    def provider_candidates(self, service_id) -> int:
        """How many providers a new request in this category fans out to."""
        return len(self.capability_index.providers_for(service_id))

    # ===================== Offers =====================

    def submit_offer(self, command: SubmitOfferCommand) -> Offer:
        return self.arbitration.submit_offer(command)

    def accept_offer(self, offer_id) -> Offer:
        return self.arbitration.accept_offer(offer_id)

    def list_offers(self, request_id) -> List[Offer]:
        return self.arbitration.list_offers(request_id)


def build_marketplace_service(channel_layer=None) -> MarketplaceService:
    """Build the service from settings.MARKETPLACE and the configured channel layer."""
    from channels.layers import get_channel_layer
    from realtime.dispatcher import NotificationDispatcher
    from realtime.topics import TopicRegistry

    config = getattr(settings, "MARKETPLACE", {})
    channel_layer = channel_layer or get_channel_layer()
    if channel_layer is None:
        logger.warning("No channel layer configured; realtime notifications are disabled")

    dispatcher = NotificationDispatcher(
        channel_layer=channel_layer,
        topics=TopicRegistry(channel_layer),
        use_celery=config.get("NOTIFY_VIA_CELERY", False),
    )

    return MarketplaceService(
        repositories=MarketplaceRepositories(),
        dispatcher=dispatcher,
        ledger=ProfileTokenLedger(),
        offer_cost=int(config.get("OFFER_TOKEN_COST", 0)),
    )
