from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

from django.test import TestCase, override_settings

from service_requests.models import Offer, ServiceRequest
from services.billing import ProfileTokenLedger
from services.commands import CreateRequestCommand, SubmitOfferCommand, TransitionCommand
from services.exceptions import InvalidStatusError
from services.marketplace import MarketplaceService, build_marketplace_service
from .factories import make_consumer, make_provider, make_service


class MarketplaceServiceTests(TestCase):
    """End-to-end flows through the public entry point with a real dispatcher."""

    def setUp(self):
        self.channel_layer = MagicMock()
        self.channel_layer.group_send = AsyncMock()
        self.marketplace = build_marketplace_service(channel_layer=self.channel_layer)

        self.consumer = make_consumer()
        self.plumbing = make_service('Plumbing')
        self.plumber = make_provider([self.plumbing], tokens=5)
        self.other_plumber = make_provider([self.plumbing], tokens=5)

    def sent_groups(self):
        return [call.args[0] for call in self.channel_layer.group_send.call_args_list]

    def test_build_from_settings(self):
        self.assertIsInstance(self.marketplace, MarketplaceService)
        self.assertIsInstance(self.marketplace.arbitration.ledger, ProfileTokenLedger)
        self.assertEqual(self.marketplace.arbitration.offer_cost, 1)
        self.assertFalse(self.marketplace.dispatcher.use_celery)

    @override_settings(MARKETPLACE={'OFFER_TOKEN_COST': 0, 'NOTIFY_VIA_CELERY': True})
    def test_build_reads_marketplace_settings(self):
        marketplace = build_marketplace_service(channel_layer=self.channel_layer)

        self.assertEqual(marketplace.arbitration.offer_cost, 0)
        self.assertTrue(marketplace.dispatcher.use_celery)

    def test_full_request_flow(self):
        with self.captureOnCommitCallbacks(execute=True):
            request = self.marketplace.create_request(CreateRequestCommand(
                consumer_id=self.consumer.id,
                service_id=self.plumbing.id,
                title='Burst pipe',
                budget=Decimal('200.00'),
            ))

        self.assertEqual(self.sent_groups(), [f'new_request_{self.plumbing.id}'])
        group, message = self.channel_layer.group_send.call_args.args
        self.assertEqual(message['type'], 'new_request')
        self.assertEqual(message['title'], 'Burst pipe')
        self.assertEqual(message['budget'], 200.0)
        self.assertEqual(message['request']['id'], request.id)
        self.assertEqual(self.marketplace.provider_candidates(self.plumbing.id), 2)

        with self.captureOnCommitCallbacks(execute=True):
            winning = self.marketplace.submit_offer(SubmitOfferCommand(
                request_id=request.id, provider_id=self.plumber.id,
                budget=Decimal('180.00'), timeframe='tomorrow',
            ))
            losing = self.marketplace.submit_offer(SubmitOfferCommand(
                request_id=request.id, provider_id=self.other_plumber.id,
                budget=Decimal('150.00'), timeframe='next week',
            ))

        self.assertEqual(winning.platform_tokens, 4)
        self.assertEqual(len(self.marketplace.list_offers(request.id)), 2)

        self.channel_layer.group_send.reset_mock()
        with self.captureOnCommitCallbacks(execute=True):
            self.marketplace.accept_offer(winning.id)

        self.assertEqual(
            sorted(self.sent_groups()),
            sorted([f'request_{request.id}', f'user_{self.consumer.id}'])
        )
        message = self.channel_layer.group_send.call_args.args[1]
        self.assertEqual(message['type'], 'request_status')
        self.assertEqual(message['requestId'], request.id)
        self.assertEqual(message['status'], ServiceRequest.ASSIGNED)
        self.assertEqual(message['offer']['id'], winning.id)

        losing.refresh_from_db()
        self.assertEqual(losing.status, Offer.REJECTED)
        self.assertEqual(self.marketplace.list_active_requests(), [])

        closed = self.marketplace.close_request(request.id)
        self.assertEqual(closed.status, ServiceRequest.CLOSED)

    def test_status_update_command(self):
        request = self.marketplace.create_request(CreateRequestCommand(
            consumer_id=self.consumer.id, service_id=self.plumbing.id,
        ))

        with self.assertRaises(InvalidStatusError):
            self.marketplace.update_request_status(TransitionCommand(request.id, 'DONE'))

        updated = self.marketplace.update_request_status(TransitionCommand(request.id, 'Closed'))
        self.assertEqual(updated.status, ServiceRequest.CLOSED)

    def test_notification_failure_does_not_fail_the_command(self):
        self.channel_layer.group_send.side_effect = RuntimeError('redis down')

        with self.assertLogs('realtime.dispatcher', level='ERROR'):
            with self.captureOnCommitCallbacks(execute=True):
                request = self.marketplace.create_request(CreateRequestCommand(
                    consumer_id=self.consumer.id, service_id=self.plumbing.id,
                ))

        self.assertTrue(ServiceRequest.objects.filter(pk=request.id).exists())

    def test_rolled_back_command_publishes_nothing(self):
        request = self.marketplace.create_request(CreateRequestCommand(
            consumer_id=self.consumer.id, service_id=self.plumbing.id,
        ))
        offer = self.marketplace.submit_offer(SubmitOfferCommand(
            request_id=request.id, provider_id=self.plumber.id,
            budget=Decimal('99.00'), timeframe='today',
        ))
        self.channel_layer.group_send.reset_mock()

        with patch.object(self.marketplace.lifecycle, 'assign', side_effect=RuntimeError('boom')):
            with self.captureOnCommitCallbacks(execute=True) as callbacks:
                with self.assertRaises(RuntimeError):
                    self.marketplace.accept_offer(offer.id)

        self.assertEqual(callbacks, [])
        self.channel_layer.group_send.assert_not_called()
