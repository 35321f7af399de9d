"""
Offer arbitration.

Decides which offer gets the job. Submission and acceptance are both checked
against the parent request's status while holding a row lock on that request,
so an offer can never slip in after assignment and two offers can never be
accepted for the same request.
"""

import logging
from typing import List, Optional

from django.db import IntegrityError, transaction
from django.utils import timezone

from service_requests.models import Offer, ServiceRequest
from ..billing import TokenLedger
from ..commands import SubmitOfferCommand
from ..exceptions import (
    InvalidStateError,
    InvalidTransitionError,
    NotFoundError,
    PersistenceError,
)
from ..repository import MarketplaceRepositories

logger = logging.getLogger(__name__)


class OfferArbitration:
    """
    Offer creation and acceptance rules.

    Args:
        lifecycle: RequestLifecycle used for the PENDING -> ASSIGNED move
        repositories: persistence bundle
        dispatcher: NotificationDispatcher (optional)
        ledger: TokenLedger charged per submitted offer (optional)
        offer_cost: platform tokens charged per offer; 0 disables charging
    """

    def __init__(
        self,
        lifecycle,
        repositories: Optional[MarketplaceRepositories] = None,
        dispatcher=None,
        ledger: Optional[TokenLedger] = None,
        offer_cost: int = 0,
    ):
        self.lifecycle = lifecycle
        self.repositories = repositories or lifecycle.repositories
        self.dispatcher = dispatcher
        self.ledger = ledger
        self.offer_cost = offer_cost

    # ===================== Provider Operations =====================

    @transaction.atomic
    def submit_offer(self, command: SubmitOfferCommand) -> Offer:
        """
        Place a SUBMITTED offer on an open request.

        The remaining token balance (when a ledger is configured) is exposed
        as ``offer.platform_tokens``.

        Raises:
            ValidationError: budget not a positive amount in cents, or blank timeframe
            NotFoundError: unknown request or provider
            InvalidStateError: request is not PENDING, or provider already has an open offer on it
            InsufficientTokensError: provider cannot pay for the offer
        """
        command.validate()

        request = self.repositories.requests.lock(command.request_id)
        if request is None:
            raise NotFoundError("Request not found")

        if request.status != ServiceRequest.PENDING:
            raise InvalidStateError(
                f"Request is {request.status}; offers can only be made on pending requests"
            )

        if not self.repositories.providers.exists(user_id=command.provider_id):
            raise NotFoundError("Provider not found")

        if self.repositories.offers.exists(
            request_id=request.id,
            provider_id=command.provider_id,
            status=Offer.SUBMITTED,
        ):
            raise InvalidStateError("You already have an open offer on this request")

        remaining_tokens = None
        if self.ledger is not None and self.offer_cost:
            remaining_tokens = self.ledger.charge(command.provider_id, self.offer_cost)

        offer = self.repositories.offers.create(
            request=request,
            provider_id=command.provider_id,
            budget=command.budget,
            timeframe=command.timeframe.strip(),
            status=Offer.SUBMITTED,
        )
        offer.platform_tokens = remaining_tokens

        logger.info(
            "Provider %s offered %s (%s) on request %s",
            command.provider_id, command.budget, offer.timeframe, request.id
        )

        if self.dispatcher is not None:
            self.dispatcher.publish_status_change(request, offer)

        return offer

    # ===================== Consumer Operations =====================

    def accept_offer(self, offer_id) -> Offer:
        """
        Accept one offer: offer ACCEPTED, siblings REJECTED, request ASSIGNED.

        All three effects are applied in one transaction; any failure leaves
        the offer, its siblings and the request exactly as they were.

        Raises:
            NotFoundError: unknown offer or request
            InvalidStateError: request not PENDING (including losing a race
                against a concurrent acceptance), or offer no longer open
        """
        try:
            return self._accept_offer(offer_id)
        except PersistenceError as exc:
            if isinstance(exc.__cause__, IntegrityError):
                raise InvalidStateError("Another offer was already accepted for this request") from exc
            raise

    @transaction.atomic
    def _accept_offer(self, offer_id) -> Offer:
        offer = self.repositories.offers.get_one(pk=offer_id)
        if offer is None:
            raise NotFoundError("Offer not found")

        # Serialise acceptances per request
        request = self.repositories.requests.lock(offer.request_id)
        if request is None:
            raise NotFoundError("Request not found")

        if request.status != ServiceRequest.PENDING:
            raise InvalidStateError(
                f"Request is {request.status}; offers can only be accepted on pending requests"
            )

        now = timezone.now()
        if not self.repositories.offers.update_where(
            offer.id,
            {"status": Offer.SUBMITTED},
            status=Offer.ACCEPTED,
            responded_at=now,
        ):
            raise InvalidStateError("This offer is no longer open")

        rejected = self.repositories.offers.update_all(
            {"status": Offer.REJECTED, "responded_at": now},
            exclude={"pk": offer.id},
            request_id=request.id,
            status=Offer.SUBMITTED,
        )

        try:
            request = self.lifecycle.assign(request.id)
        except InvalidTransitionError as exc:
            raise InvalidStateError("Request was updated concurrently and is no longer pending") from exc

        offer = self.repositories.offers.get_one(pk=offer.id)
        logger.info(
            "Accepted offer %s on request %s (%d sibling offer(s) rejected)",
            offer.id, request.id, rejected
        )

        if self.dispatcher is not None:
            self.dispatcher.publish_status_change(request, offer)

        return offer

    # ===================== Queries =====================

    def list_offers(self, request_id) -> List[Offer]:
        if not self.repositories.requests.exists(pk=request_id):
            raise NotFoundError("Request not found")
        return self.repositories.offers.get_all(request_id=request_id)
