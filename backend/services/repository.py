"""
Repository layer over the Django ORM.

Each repository wraps one model and exposes the narrow persistence contract
the marketplace services depend on. Lookups return None / False for
"not found" instead of raising; database failures are re-raised as
PersistenceError so callers never see driver-level exceptions.
"""

import logging
from dataclasses import dataclass, field
from functools import wraps
from typing import Any, Dict, List, Optional

from django.contrib.auth import get_user_model
from django.db import DatabaseError

from providers.models import ProviderProfile
from service_requests.models import Offer, Service, ServiceRequest
from .exceptions import PersistenceError

logger = logging.getLogger(__name__)


def _guard(method):
    """Translate database failures into PersistenceError."""

    @wraps(method)
    def wrapper(self, *args, **kwargs):
        try:
            return method(self, *args, **kwargs)
        except DatabaseError as exc:
            logger.exception("%s.%s failed", type(self).__name__, method.__name__)
            raise PersistenceError() from exc

    return wrapper


class Repository:
    """Generic persistence for one model."""

    model = None
    select_related: tuple = ()

    def __init__(self, model=None):
        if model is not None:
            self.model = model

    def _queryset(self):
        qs = self.model.objects.all()
        if self.select_related:
            qs = qs.select_related(*self.select_related)
        return qs

    @_guard
    def create(self, **fields):
        return self.model.objects.create(**fields)

    @_guard
    def get_one(self, **filters) -> Optional[Any]:
        return self._queryset().filter(**filters).first()

    @_guard
    def get_all(self, order_by: Optional[List[str]] = None, **filters) -> List[Any]:
        qs = self._queryset().filter(**filters)
        if order_by:
            qs = qs.order_by(*order_by)
        return list(qs)

    @_guard
    def exists(self, **filters) -> bool:
        return self.model.objects.filter(**filters).exists()

    @_guard
    def lock(self, entity_id) -> Optional[Any]:
        """Fetch a row with a write lock; must run inside transaction.atomic()."""
        return self.model.objects.select_for_update().filter(pk=entity_id).first()

    @_guard
    def update(self, entity_id, **patch) -> Optional[Any]:
        updated = self.model.objects.filter(pk=entity_id).update(**patch)
        if not updated:
            return None
        return self._queryset().get(pk=entity_id)

    @_guard
    def update_where(self, entity_id, expected: Dict[str, Any], **patch) -> bool:
        """
        Conditional update (compare-and-swap).

        Applies ``patch`` only if the row still matches ``expected``.
        Returns True when the row was changed.
        """
        return self.model.objects.filter(pk=entity_id, **expected).update(**patch) == 1

    @_guard
    def update_all(self, patch: Dict[str, Any], exclude: Optional[Dict[str, Any]] = None, **filters) -> int:
        qs = self.model.objects.filter(**filters)
        if exclude:
            qs = qs.exclude(**exclude)
        return qs.update(**patch)

    @_guard
    def delete(self, entity_id) -> bool:
        deleted, _ = self.model.objects.filter(pk=entity_id).delete()
        return deleted > 0


class ServiceRequestRepository(Repository):
    model = ServiceRequest
    select_related = ('service', 'consumer')


class OfferRepository(Repository):
    model = Offer
    select_related = ('request', 'provider')


class ServiceRepository(Repository):
    model = Service


class ProviderRepository(Repository):
    model = ProviderProfile
    select_related = ('user',)

    @_guard
    def service_ids(self, user_id) -> set:
        """The provider's services_array as a set of category ids."""
        return set(
            Service.objects
            .filter(providers__user_id=user_id)
            .values_list('id', flat=True)
        )

    @_guard
    def user_ids_for_service(self, service_id) -> set:
        return set(
            ProviderProfile.objects
            .filter(services__id=service_id)
            .values_list('user_id', flat=True)
        )


@dataclass
class MarketplaceRepositories:
    """The repositories the marketplace core reads and writes through."""
    requests: ServiceRequestRepository = field(default_factory=ServiceRequestRepository)
    offers: OfferRepository = field(default_factory=OfferRepository)
    services: ServiceRepository = field(default_factory=ServiceRepository)
    providers: ProviderRepository = field(default_factory=ProviderRepository)
    users: Repository = field(default_factory=lambda: Repository(get_user_model()))
