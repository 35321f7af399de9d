from decimal import Decimal
from unittest.mock import MagicMock, patch

from django.db import IntegrityError
from django.test import TestCase

from providers.models import ProviderProfile
from service_requests.models import Offer, ServiceRequest
from services.billing import ProfileTokenLedger
from services.commands import SubmitOfferCommand
from services.exceptions import (
    InsufficientTokensError,
    InvalidStateError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from services.matching import OfferArbitration
from services.request_lifecycle import RequestLifecycle
from .factories import make_consumer, make_offer, make_provider, make_request, make_service


class ArbitrationTestCase(TestCase):
    def setUp(self):
        self.dispatcher = MagicMock()
        self.lifecycle = RequestLifecycle(dispatcher=self.dispatcher)
        self.arbitration = OfferArbitration(
            self.lifecycle,
            dispatcher=self.dispatcher,
            ledger=ProfileTokenLedger(),
            offer_cost=1,
        )
        self.consumer = make_consumer()
        self.service = make_service('Electrical')
        self.provider_one = make_provider([self.service], tokens=3)
        self.provider_two = make_provider([self.service], tokens=3)
        self.request = make_request(self.consumer, self.service)

    def offer_command(self, provider, budget='100.00', timeframe='3 days', request=None):
        return SubmitOfferCommand(
            request_id=(request or self.request).id,
            provider_id=provider.id,
            budget=Decimal(budget),
            timeframe=timeframe,
        )


class SubmitOfferTests(ArbitrationTestCase):
    def test_submit_offer_charges_a_token(self):
        offer = self.arbitration.submit_offer(self.offer_command(self.provider_one, timeframe='  3 days '))

        self.assertEqual(offer.status, Offer.SUBMITTED)
        self.assertEqual(offer.timeframe, '3 days')
        self.assertEqual(offer.platform_tokens, 2)
        self.assertEqual(ProviderProfile.objects.get(user=self.provider_one).platform_tokens, 2)
        self.dispatcher.publish_status_change.assert_called_once_with(self.request, offer)

    def test_budget_must_be_positive(self):
        for budget in ('0', '-5'):
            with self.assertRaises(ValidationError):
                self.arbitration.submit_offer(self.offer_command(self.provider_one, budget=budget))

        self.assertFalse(Offer.objects.exists())

    def test_budget_below_one_cent_is_refused(self):
        with self.assertRaises(ValidationError):
            self.arbitration.submit_offer(self.offer_command(self.provider_one, budget='0.001'))

        self.assertFalse(Offer.objects.exists())

    def test_timeframe_is_required(self):
        with self.assertRaises(ValidationError):
            self.arbitration.submit_offer(self.offer_command(self.provider_one, timeframe='   '))

    def test_unknown_request(self):
        command = SubmitOfferCommand(request_id=9999, provider_id=self.provider_one.id,
                                     budget=Decimal('10'), timeframe='today')
        with self.assertRaises(NotFoundError):
            self.arbitration.submit_offer(command)

    def test_unknown_provider(self):
        command = SubmitOfferCommand(request_id=self.request.id, provider_id=9999,
                                     budget=Decimal('10'), timeframe='today')
        with self.assertRaises(NotFoundError):
            self.arbitration.submit_offer(command)

    def test_offer_on_closed_request_is_refused(self):
        self.lifecycle.transition(self.request.id, 'closed')

        with self.assertRaises(InvalidStateError):
            self.arbitration.submit_offer(self.offer_command(self.provider_one))

        self.assertEqual(ProviderProfile.objects.get(user=self.provider_one).platform_tokens, 3)

    def test_one_open_offer_per_provider(self):
        self.arbitration.submit_offer(self.offer_command(self.provider_one))

        with self.assertRaises(InvalidStateError):
            self.arbitration.submit_offer(self.offer_command(self.provider_one, budget='90.00'))

        self.assertEqual(Offer.objects.filter(provider=self.provider_one).count(), 1)

    def test_insufficient_tokens_creates_no_offer(self):
        broke = make_provider([self.service], tokens=0)

        with self.assertRaises(InsufficientTokensError):
            self.arbitration.submit_offer(self.offer_command(broke))

        self.assertFalse(Offer.objects.filter(provider=broke).exists())
        self.assertEqual(ProviderProfile.objects.get(user=broke).platform_tokens, 0)

    def test_free_offers_without_cost(self):
        free = OfferArbitration(self.lifecycle, ledger=ProfileTokenLedger(), offer_cost=0)
        broke = make_provider([self.service], tokens=0)

        offer = free.submit_offer(self.offer_command(broke))

        self.assertIsNone(offer.platform_tokens)
        self.assertEqual(offer.status, Offer.SUBMITTED)


class AcceptOfferTests(ArbitrationTestCase):
    def setUp(self):
        super().setUp()
        self.offer_one = make_offer(self.request, self.provider_one, budget='100.00')
        self.offer_two = make_offer(self.request, self.provider_two, budget='95.00')

    def test_accept_assigns_request_and_rejects_siblings(self):
        accepted = self.arbitration.accept_offer(self.offer_one.id)

        self.assertEqual(accepted.status, Offer.ACCEPTED)
        self.assertIsNotNone(accepted.responded_at)

        self.offer_two.refresh_from_db()
        self.assertEqual(self.offer_two.status, Offer.REJECTED)

        self.request.refresh_from_db()
        self.assertEqual(self.request.status, ServiceRequest.ASSIGNED)
        self.assertIsNotNone(self.request.assigned_at)

        self.dispatcher.publish_status_change.assert_called_once()
        published_request, published_offer = self.dispatcher.publish_status_change.call_args[0]
        self.assertEqual(published_request.status, ServiceRequest.ASSIGNED)
        self.assertEqual(published_offer.id, self.offer_one.id)

    def test_only_one_offer_can_win(self):
        self.arbitration.accept_offer(self.offer_one.id)

        with self.assertRaises(InvalidStateError):
            self.arbitration.accept_offer(self.offer_two.id)

        self.assertEqual(
            Offer.objects.filter(request=self.request, status=Offer.ACCEPTED).count(), 1
        )

    def test_offer_after_assignment_is_refused(self):
        self.arbitration.accept_offer(self.offer_one.id)
        latecomer = make_provider([self.service], tokens=3)

        with self.assertRaises(InvalidStateError):
            self.arbitration.submit_offer(self.offer_command(latecomer))

    def test_accept_on_closed_request(self):
        self.lifecycle.transition(self.request.id, 'closed')

        with self.assertRaises(InvalidStateError):
            self.arbitration.accept_offer(self.offer_one.id)

    def test_unknown_offer(self):
        with self.assertRaises(NotFoundError):
            self.arbitration.accept_offer(9999)

    def test_failed_assignment_rolls_everything_back(self):
        with patch.object(self.lifecycle, 'assign', side_effect=RuntimeError('database went away')):
            with self.assertRaises(RuntimeError):
                self.arbitration.accept_offer(self.offer_one.id)

        self.offer_one.refresh_from_db()
        self.offer_two.refresh_from_db()
        self.request.refresh_from_db()
        self.assertEqual(self.offer_one.status, Offer.SUBMITTED)
        self.assertEqual(self.offer_two.status, Offer.SUBMITTED)
        self.assertEqual(self.request.status, ServiceRequest.PENDING)
        self.dispatcher.publish_status_change.assert_not_called()

    def test_stale_pending_snapshot_loses_the_race(self):
        # The lock hands back a row read before another acceptance assigned the request
        stale = ServiceRequest.objects.get(pk=self.request.id)
        ServiceRequest.objects.filter(pk=self.request.id).update(status=ServiceRequest.ASSIGNED)

        with patch.object(self.arbitration.repositories.requests, 'lock', return_value=stale):
            with self.assertRaises(InvalidStateError):
                self.arbitration.accept_offer(self.offer_one.id)

        self.offer_one.refresh_from_db()
        self.offer_two.refresh_from_db()
        self.assertEqual(self.offer_one.status, Offer.SUBMITTED)
        self.assertEqual(self.offer_two.status, Offer.SUBMITTED)
        self.request.refresh_from_db()
        self.assertEqual(self.request.status, ServiceRequest.ASSIGNED)
        self.dispatcher.publish_status_change.assert_not_called()

    def test_unique_accepted_offer_violation_is_a_conflict(self):
        def duplicate(*args, **kwargs):
            raise PersistenceError() from IntegrityError('unique_accepted_offer_per_request')

        with patch.object(self.arbitration.repositories.offers, 'update_where', side_effect=duplicate):
            with self.assertRaises(InvalidStateError):
                self.arbitration.accept_offer(self.offer_one.id)

    def test_list_offers(self):
        self.assertEqual(self.arbitration.list_offers(self.request.id), [self.offer_one, self.offer_two])

        with self.assertRaises(NotFoundError):
            self.arbitration.list_offers(9999)
