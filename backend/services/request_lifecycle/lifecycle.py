"""
Core request lifecycle operations.

Owns the request state machine:

    pending ──► assigned ──► closed
       └──────────────────────▲

``closed`` is terminal. ``pending -> assigned`` only happens through offer
acceptance (see services.matching.arbitration), which calls ``assign``.
Every status write is a conditional update on the status that was read, so a
concurrent writer can never be silently overwritten.
"""

import logging
from typing import List, Optional

from django.db import transaction
from django.utils import timezone

from service_requests.models import Offer, ServiceRequest
from ..commands import CreateRequestCommand
from ..exceptions import (
    InvalidStatusError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from ..repository import MarketplaceRepositories

logger = logging.getLogger(__name__)

PENDING = ServiceRequest.PENDING
ASSIGNED = ServiceRequest.ASSIGNED
CLOSED = ServiceRequest.CLOSED

VALID_STATUSES = (PENDING, ASSIGNED, CLOSED)

ALLOWED_TRANSITIONS = {
    PENDING: frozenset({ASSIGNED, CLOSED}),
    ASSIGNED: frozenset({CLOSED}),
    CLOSED: frozenset(),
}


def normalize_status(value) -> str:
    """Return the canonical status for ``value`` or raise InvalidStatusError."""
    if isinstance(value, str) and value.strip().lower() in VALID_STATUSES:
        return value.strip().lower()
    raise InvalidStatusError()


def can_transition(current: str, target: str) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


class RequestLifecycle:
    """
    Request Lifecycle Manager.

    The only component that writes ServiceRequest rows.

    Args:
        repositories: persistence bundle
        dispatcher: NotificationDispatcher (optional; events are skipped without one)
    """

    def __init__(self, repositories: Optional[MarketplaceRepositories] = None, dispatcher=None):
        self.repositories = repositories or MarketplaceRepositories()
        self.dispatcher = dispatcher

    # ===================== Creation =====================

    @transaction.atomic
    def create_request(self, command: CreateRequestCommand) -> ServiceRequest:
        """
        Persist a new PENDING request and announce it to the category topic.

        Raises:
            ValidationError: consumer or service missing / unknown
        """
        if not command.consumer_id:
            raise ValidationError("consumer_id is required")
        if not command.service_id:
            raise ValidationError("service_id is required")

        service = self.repositories.services.get_one(pk=command.service_id)
        if service is None:
            raise ValidationError("Invalid service_id provided")

        if not self.repositories.users.exists(pk=command.consumer_id):
            raise ValidationError("Invalid consumer_id provided")

        request = self.repositories.requests.create(
            consumer_id=command.consumer_id,
            service=service,
            title=command.title,
            description=command.description,
            budget=command.budget,
            timeframe=command.timeframe,
            location=command.location,
            status=PENDING,
        )
        logger.info("Created request %s for consumer %s (%s)", request.id, command.consumer_id, service.name)

        if self.dispatcher is not None:
            self.dispatcher.publish_new_request(request, service)

        return request

    # ===================== Queries =====================

    def get_request(self, request_id) -> ServiceRequest:
        request = self.repositories.requests.get_one(pk=request_id)
        if request is None:
            raise NotFoundError("Request not found")
        return request

    def list_active_requests(self) -> List[ServiceRequest]:
        return self.repositories.requests.get_all(status=PENDING)

    def list_active_for_consumer(self, consumer_id) -> List[ServiceRequest]:
        return self.repositories.requests.get_all(consumer_id=consumer_id, status=PENDING)

    def list_active_for_provider(self, provider_id) -> List[ServiceRequest]:
        """PENDING requests in any category the provider is registered for."""
        if not self.repositories.providers.exists(user_id=provider_id):
            raise NotFoundError("Provider not found")

        service_ids = self.repositories.providers.service_ids(provider_id)
        if not service_ids:
            return []
        return self.repositories.requests.get_all(status=PENDING, service_id__in=service_ids)

    # ===================== Transitions =====================

    def transition(self, request_id, target_status) -> ServiceRequest:
        """
        Move a request to ``target_status``.

        Assignment is refused here: a request only becomes ``assigned`` when an
        offer is accepted, otherwise it would be assigned with no accepted offer.

        Raises:
            InvalidStatusError: unknown status value
            NotFoundError: request does not exist
            InvalidTransitionError: move not permitted from the current status
        """
        target = normalize_status(target_status)
        if target == ASSIGNED:
            request = self.get_request(request_id)
            raise InvalidTransitionError(
                f"Cannot move request from {request.status} to {ASSIGNED}: accept an offer instead"
            )
        return self._apply(request_id, target, publish=True)

    def assign(self, request_id) -> ServiceRequest:
        """PENDING -> ASSIGNED; reserved for offer arbitration, which publishes the event itself."""
        return self._apply(request_id, ASSIGNED, publish=False)

    @transaction.atomic
    def _apply(self, request_id, target: str, publish: bool) -> ServiceRequest:
        request = self.get_request(request_id)
        current = request.status

        if not can_transition(current, target):
            raise InvalidTransitionError(f"Cannot move request from {current} to {target}")

        now = timezone.now()
        patch = {"status": target}
        if target == ASSIGNED:
            patch["assigned_at"] = now
        elif target == CLOSED:
            patch["closed_at"] = now

        if not self.repositories.requests.update_where(request_id, {"status": current}, **patch):
            raise InvalidTransitionError("Request status changed concurrently, please retry")

        if current == PENDING and target == CLOSED:
            # Closed before assignment: no offer stays live against it
            rejected = self.repositories.offers.update_all(
                {"status": Offer.REJECTED, "responded_at": now},
                request_id=request_id,
                status=Offer.SUBMITTED,
            )
            if rejected:
                logger.debug("Rejected %d open offer(s) on closed request %s", rejected, request_id)

        request = self.get_request(request_id)
        logger.info("Request %s: %s -> %s", request_id, current, target)

        if publish and self.dispatcher is not None:
            self.dispatcher.publish_status_change(request)

        return request

    # ===================== Administrative =====================

    @transaction.atomic
    def delete_request(self, request_id) -> bool:
        """Remove a request and its offers entirely (distinct from closing it)."""
        if not self.repositories.requests.delete(request_id):
            raise NotFoundError("Request not found")
        logger.info("Deleted request %s and its offers", request_id)
        return True
