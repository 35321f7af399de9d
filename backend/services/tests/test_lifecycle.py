from decimal import Decimal
from itertools import product
from unittest.mock import MagicMock, patch

from django.test import TestCase

from service_requests.models import Offer, ServiceRequest
from services.commands import CreateRequestCommand
from services.exceptions import (
    InvalidStatusError,
    InvalidTransitionError,
    MarketplaceError,
    NotFoundError,
    ValidationError,
)
from services.request_lifecycle import RequestLifecycle, can_transition, normalize_status
from .factories import make_consumer, make_offer, make_provider, make_request, make_service


class StatusRulesTests(TestCase):
    def test_normalize_status_is_case_insensitive(self):
        self.assertEqual(normalize_status('CLOSED'), 'closed')
        self.assertEqual(normalize_status(' Pending '), 'pending')

    def test_unknown_status_is_rejected(self):
        for value in ('DONE', '', None, 3):
            with self.assertRaises(InvalidStatusError):
                normalize_status(value)

    def test_invalid_status_counts_as_validation_error(self):
        with self.assertRaises(ValidationError):
            normalize_status('DONE')

    def test_allowed_moves(self):
        self.assertTrue(can_transition('pending', 'assigned'))
        self.assertTrue(can_transition('pending', 'closed'))
        self.assertTrue(can_transition('assigned', 'closed'))
        self.assertFalse(can_transition('assigned', 'pending'))
        self.assertFalse(can_transition('closed', 'pending'))
        self.assertFalse(can_transition('closed', 'assigned'))
        self.assertFalse(can_transition('pending', 'pending'))


class RequestCreationTests(TestCase):
    def setUp(self):
        self.dispatcher = MagicMock()
        self.lifecycle = RequestLifecycle(dispatcher=self.dispatcher)
        self.consumer = make_consumer()
        self.plumbing = make_service('Plumbing')

    def test_create_request_starts_pending_and_notifies_category(self):
        command = CreateRequestCommand(
            consumer_id=self.consumer.id,
            service_id=self.plumbing.id,
            title='Leaking tap',
            budget=Decimal('80.00'),
        )

        request = self.lifecycle.create_request(command)

        self.assertEqual(request.status, ServiceRequest.PENDING)
        self.assertEqual(request.consumer_id, self.consumer.id)
        self.assertIsNone(request.assigned_at)
        self.dispatcher.publish_new_request.assert_called_once_with(request, self.plumbing)

    def test_unknown_service_persists_nothing(self):
        command = CreateRequestCommand(consumer_id=self.consumer.id, service_id=9999)

        with self.assertRaises(ValidationError):
            self.lifecycle.create_request(command)

        self.assertFalse(ServiceRequest.objects.exists())
        self.dispatcher.publish_new_request.assert_not_called()

    def test_unknown_consumer_is_rejected(self):
        command = CreateRequestCommand(consumer_id=9999, service_id=self.plumbing.id)

        with self.assertRaises(ValidationError):
            self.lifecycle.create_request(command)

        self.assertFalse(ServiceRequest.objects.exists())


class RequestTransitionTests(TestCase):
    def setUp(self):
        self.dispatcher = MagicMock()
        self.lifecycle = RequestLifecycle(dispatcher=self.dispatcher)
        self.consumer = make_consumer()
        self.service = make_service()
        self.request = make_request(self.consumer, self.service)

    def test_close_pending_request(self):
        closed = self.lifecycle.transition(self.request.id, 'closed')

        self.assertEqual(closed.status, ServiceRequest.CLOSED)
        self.assertIsNotNone(closed.closed_at)
        self.dispatcher.publish_status_change.assert_called_once_with(closed)

    def test_closing_pending_request_rejects_open_offers(self):
        provider = make_provider([self.service])
        offer = make_offer(self.request, provider)

        self.lifecycle.transition(self.request.id, 'CLOSED')

        offer.refresh_from_db()
        self.assertEqual(offer.status, Offer.REJECTED)
        self.assertIsNotNone(offer.responded_at)

    def test_unknown_status_leaves_request_unchanged(self):
        with self.assertRaises(InvalidStatusError):
            self.lifecycle.transition(self.request.id, 'DONE')

        self.request.refresh_from_db()
        self.assertEqual(self.request.status, ServiceRequest.PENDING)
        self.dispatcher.publish_status_change.assert_not_called()

    def test_status_is_validated_before_lookup(self):
        with self.assertRaises(InvalidStatusError):
            self.lifecycle.transition(9999, 'DONE')

        with self.assertRaises(NotFoundError):
            self.lifecycle.transition(9999, 'closed')

    def test_direct_assignment_is_refused(self):
        with self.assertRaises(InvalidTransitionError):
            self.lifecycle.transition(self.request.id, 'assigned')

        self.request.refresh_from_db()
        self.assertEqual(self.request.status, ServiceRequest.PENDING)

    def test_assign_then_close(self):
        assigned = self.lifecycle.assign(self.request.id)
        self.assertEqual(assigned.status, ServiceRequest.ASSIGNED)
        self.assertIsNotNone(assigned.assigned_at)
        # Arbitration publishes the assignment together with the offer
        self.dispatcher.publish_status_change.assert_not_called()

        closed = self.lifecycle.transition(self.request.id, 'closed')
        self.assertEqual(closed.status, ServiceRequest.CLOSED)

    def test_closed_is_terminal(self):
        self.lifecycle.transition(self.request.id, 'closed')

        with self.assertRaises(InvalidTransitionError):
            self.lifecycle.transition(self.request.id, 'closed')
        with self.assertRaises(InvalidTransitionError):
            self.lifecycle.transition(self.request.id, 'pending')
        with self.assertRaises(InvalidTransitionError):
            self.lifecycle.assign(self.request.id)

    def test_stale_write_is_refused(self):
        # The conditional update finds the row no longer in the status that was read
        with patch.object(self.lifecycle.repositories.requests, 'update_where', return_value=False):
            with self.assertRaises(InvalidTransitionError):
                self.lifecycle.transition(self.request.id, 'closed')

        self.request.refresh_from_db()
        self.assertEqual(self.request.status, ServiceRequest.PENDING)
        self.dispatcher.publish_status_change.assert_not_called()

    def test_observed_statuses_follow_the_state_machine(self):
        allowed_paths = (
            ['pending', 'assigned', 'closed'],
            ['pending', 'closed'],
        )
        targets = ('pending', 'assigned', 'closed', 'DONE')

        for sequence in product(targets, repeat=3):
            request = make_request(self.consumer, self.service)
            history = [request.status]

            for target in sequence:
                try:
                    if target == 'assigned':
                        updated = self.lifecycle.assign(request.id)
                    else:
                        updated = self.lifecycle.transition(request.id, target)
                except MarketplaceError:
                    continue
                history.append(updated.status)

            self.assertTrue(
                any(path[:len(history)] == history for path in allowed_paths),
                f"{sequence} produced {history}"
            )


class RequestQueryTests(TestCase):
    def setUp(self):
        self.lifecycle = RequestLifecycle()
        self.consumer = make_consumer()
        self.plumbing = make_service('Plumbing')
        self.painting = make_service('Painting')

    def test_active_lists_only_pending_newest_first(self):
        first = make_request(self.consumer, self.plumbing)
        second = make_request(self.consumer, self.painting)
        make_request(self.consumer, self.plumbing, status=ServiceRequest.CLOSED)

        self.assertEqual(self.lifecycle.list_active_requests(), [second, first])
        self.assertEqual(self.lifecycle.list_active_for_consumer(self.consumer.id), [second, first])

    def test_provider_sees_only_registered_categories(self):
        plumber = make_provider([self.plumbing])
        wanted = make_request(self.consumer, self.plumbing)
        make_request(self.consumer, self.painting)

        self.assertEqual(self.lifecycle.list_active_for_provider(plumber.id), [wanted])

    def test_provider_without_categories_sees_nothing(self):
        idle = make_provider([])
        make_request(self.consumer, self.plumbing)

        self.assertEqual(self.lifecycle.list_active_for_provider(idle.id), [])

    def test_unknown_provider(self):
        with self.assertRaises(NotFoundError):
            self.lifecycle.list_active_for_provider(9999)

    def test_delete_request_removes_offers(self):
        request = make_request(self.consumer, self.plumbing)
        make_offer(request, make_provider([self.plumbing]))

        self.assertTrue(self.lifecycle.delete_request(request.id))

        self.assertFalse(ServiceRequest.objects.filter(pk=request.id).exists())
        self.assertFalse(Offer.objects.filter(request_id=request.id).exists())
        with self.assertRaises(NotFoundError):
            self.lifecycle.delete_request(request.id)
