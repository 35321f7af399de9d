"""
Platform token ledger.

The marketplace charges providers a small token cost per submitted offer.
The ledger itself belongs to account management; the core only talks to it
through ``TokenLedger.charge``.
"""

import logging
from typing import Protocol

from django.db.models import F

from providers.models import ProviderProfile
from .exceptions import InsufficientTokensError, NotFoundError

logger = logging.getLogger(__name__)


class TokenLedger(Protocol):
    def charge(self, provider_id: int, amount: int) -> int:
        """Deduct ``amount`` tokens and return the remaining balance."""
        ...


class ProfileTokenLedger:
    """Token balances stored on ProviderProfile.platform_tokens."""

    def charge(self, provider_id: int, amount: int) -> int:
        if amount <= 0:
            return self.balance(provider_id)

        # Conditional decrement: concurrent charges can never push the balance below zero
        updated = ProviderProfile.objects.filter(
            user_id=provider_id,
            platform_tokens__gte=amount,
        ).update(platform_tokens=F('platform_tokens') - amount)

        if not updated:
            if not ProviderProfile.objects.filter(user_id=provider_id).exists():
                raise NotFoundError("Provider not found")
            raise InsufficientTokensError(
                f"Submitting an offer costs {amount} platform token(s)"
            )

        remaining = self.balance(provider_id)
        logger.info("Charged provider %s %s token(s); %s left", provider_id, amount, remaining)
        return remaining

    def balance(self, provider_id: int) -> int:
        tokens = (
            ProviderProfile.objects
            .filter(user_id=provider_id)
            .values_list('platform_tokens', flat=True)
            .first()
        )
        if tokens is None:
            raise NotFoundError("Provider not found")
        return tokens
