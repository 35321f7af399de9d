"""
Validated command structs for the marketplace operations.

Each command enumerates its required and optional fields explicitly. The
``from_payload`` constructors run the request body through the matching DRF
input serializer (service_requests.serializers) and raise ValidationError
with the first field error for anything missing or malformed.
"""

from dataclasses import asdict, dataclass
from decimal import Decimal
from typing import Any, Mapping, Optional

from service_requests.serializers import (
    OfferCreateSerializer,
    RequestCreateSerializer,
    StatusUpdateSerializer,
)
from .exceptions import ValidationError


def _validated(serializer_class, data) -> dict:
    serializer = serializer_class(data=data)
    if serializer.is_valid():
        return serializer.validated_data

    field, messages = next(iter(serializer.errors.items()))
    if isinstance(messages, dict):
        messages = next(iter(messages.values()))
    message = str(messages[0]) if isinstance(messages, list) else str(messages)
    if field == 'non_field_errors' or field in message:
        raise ValidationError(message)
    raise ValidationError(f"{field}: {message}")


@dataclass(frozen=True)
class CreateRequestCommand:
    consumer_id: int
    service_id: int
    title: str = ""
    description: str = ""
    budget: Optional[Decimal] = None
    timeframe: Optional[str] = None
    location: Optional[str] = None

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> "CreateRequestCommand":
        validated = _validated(RequestCreateSerializer, data)
        return cls(
            consumer_id=validated['consumer_id'],
            service_id=validated['service_id'],
            title=validated['title'],
            description=validated['description'],
            budget=validated['budget'],
            timeframe=validated['timeframe'] or None,
            location=validated['location'] or None,
        )


@dataclass(frozen=True)
class SubmitOfferCommand:
    request_id: int
    provider_id: int
    budget: Decimal
    timeframe: str

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> "SubmitOfferCommand":
        return cls(**_validated(OfferCreateSerializer, data))

    def validate(self) -> None:
        """Business validation; also applied to directly constructed commands."""
        _validated(OfferCreateSerializer, asdict(self))


@dataclass(frozen=True)
class TransitionCommand:
    request_id: int
    status: str

    @classmethod
    def from_payload(cls, request_id: int, data: Mapping[str, Any]) -> "TransitionCommand":
        validated = _validated(StatusUpdateSerializer, data)
        return cls(request_id=int(request_id), status=validated['status'])
