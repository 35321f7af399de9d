"""Plain helpers that build marketplace rows for tests."""

from decimal import Decimal
from itertools import count

from django.contrib.auth import get_user_model

from providers.models import ProviderProfile
from service_requests.models import Offer, Service, ServiceRequest

User = get_user_model()

_sequence = count(1)


def make_service(name=None):
    return Service.objects.create(name=name or f"Service {next(_sequence)}")


def make_consumer(username=None):
    return User.objects.create_user(
        username=username or f"consumer_{next(_sequence)}",
        password='pass1234',
        role=User.ROLE_CONSUMER,
    )


def make_provider(services=(), tokens=10, username=None):
    user = User.objects.create_user(
        username=username or f"provider_{next(_sequence)}",
        password='pass1234',
        role=User.ROLE_PROVIDER,
    )
    profile = ProviderProfile.objects.create(user=user, platform_tokens=tokens)
    profile.services.set(services)
    return user


def make_request(consumer, service, status=ServiceRequest.PENDING, **fields):
    fields.setdefault('title', 'Fix the kitchen sink')
    fields.setdefault('budget', Decimal('150.00'))
    return ServiceRequest.objects.create(consumer=consumer, service=service, status=status, **fields)


def make_offer(request, provider, budget='120.00', status=Offer.SUBMITTED, timeframe='2 days'):
    return Offer.objects.create(
        request=request,
        provider=provider,
        budget=Decimal(budget),
        timeframe=timeframe,
        status=status,
    )
