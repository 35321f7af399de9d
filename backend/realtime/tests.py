from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

from channels.layers import get_channel_layer
from channels.testing import WebsocketCommunicator
from django.contrib.auth.models import AnonymousUser
from django.test import SimpleTestCase, TestCase, TransactionTestCase

from services.tests.factories import make_consumer, make_request, make_service
from .consumers import ProviderConsumer, RequestConsumer
from .dispatcher import NotificationDispatcher
from .tasks import deliver_notification_task
from .topics import TopicRegistry


def stub_user(user_id, role):
    return SimpleNamespace(id=user_id, role=role, is_anonymous=False)


class TopicRegistryTests(SimpleTestCase):
    def test_topic_names(self):
        topics = TopicRegistry()

        self.assertEqual(topics.category_topic(4), 'new_request_4')
        self.assertEqual(topics.request_topic('12'), 'request_12')
        self.assertEqual(topics.user_topic(7), 'user_7')

    async def test_join_categories(self):
        channel_layer = MagicMock()
        channel_layer.group_add = AsyncMock()
        topics = TopicRegistry(channel_layer)

        joined = await topics.join_categories([1, 2, 2], 'channel-a')

        self.assertEqual(joined, {'new_request_1', 'new_request_2'})
        self.assertEqual(channel_layer.group_add.await_count, 2)


class NotificationDispatcherTests(TestCase):
    def setUp(self):
        self.channel_layer = MagicMock()
        self.channel_layer.group_send = AsyncMock()
        self.dispatcher = NotificationDispatcher(channel_layer=self.channel_layer)

        self.consumer = make_consumer()
        self.service = make_service('Roofing')
        self.request = make_request(self.consumer, self.service, title='Missing tiles')

    def test_new_request_goes_to_category_topic_after_commit(self):
        with self.captureOnCommitCallbacks(execute=False) as callbacks:
            self.dispatcher.publish_new_request(self.request, self.service)

        self.channel_layer.group_send.assert_not_called()
        self.assertEqual(len(callbacks), 1)

        callbacks[0]()

        group, message = self.channel_layer.group_send.call_args.args
        self.assertEqual(group, f'new_request_{self.service.id}')
        self.assertEqual(message['type'], 'new_request')
        self.assertEqual(message['service'], 'Roofing')
        self.assertEqual(message['title'], 'Missing tiles')
        self.assertEqual(message['budget'], 150.0)
        self.assertEqual(message['request']['id'], self.request.id)

    def test_new_request_without_budget(self):
        open_budget = make_request(self.consumer, self.service, budget=None)

        with self.captureOnCommitCallbacks(execute=True):
            self.dispatcher.publish_new_request(open_budget, self.service)

        message = self.channel_layer.group_send.call_args.args[1]
        self.assertIsNone(message['budget'])
        self.assertIsNone(message['request']['budget'])

    def test_status_change_goes_to_request_and_owner(self):
        with self.captureOnCommitCallbacks(execute=True):
            self.dispatcher.publish_status_change(self.request)

        groups = [call.args[0] for call in self.channel_layer.group_send.call_args_list]
        self.assertEqual(groups, [f'request_{self.request.id}', f'user_{self.consumer.id}'])
        message = self.channel_layer.group_send.call_args.args[1]
        self.assertEqual(message, {
            'type': 'request_status',
            'requestId': self.request.id,
            'status': 'pending',
        })

    def test_delivery_failure_is_logged_and_dropped(self):
        self.channel_layer.group_send.side_effect = RuntimeError('connection refused')

        with self.assertLogs('realtime.dispatcher', level='ERROR') as logs:
            with self.captureOnCommitCallbacks(execute=True):
                self.dispatcher.publish_status_change(self.request)

        self.assertIn('Failed to dispatch request_status', logs.output[0])

    @patch('realtime.tasks.deliver_notification_task.delay')
    def test_celery_delivery(self, mock_delay):
        dispatcher = NotificationDispatcher(channel_layer=self.channel_layer, use_celery=True)

        with self.captureOnCommitCallbacks(execute=True):
            dispatcher.publish_new_request(self.request, self.service)

        mock_delay.assert_called_once()
        group, message = mock_delay.call_args.args
        self.assertEqual(group, f'new_request_{self.service.id}')
        self.assertEqual(message['type'], 'new_request')
        self.channel_layer.group_send.assert_not_called()


class DeliverNotificationTaskTests(SimpleTestCase):
    @patch('realtime.tasks.get_channel_layer')
    def test_delivers_to_group(self, mock_get_layer):
        mock_get_layer.return_value.group_send = AsyncMock()

        self.assertTrue(deliver_notification_task('request_3', {'type': 'request_status'}))
        mock_get_layer.return_value.group_send.assert_awaited_once_with('request_3', {'type': 'request_status'})

    @patch('realtime.tasks.get_channel_layer')
    def test_failure_returns_false(self, mock_get_layer):
        mock_get_layer.return_value.group_send = AsyncMock(side_effect=RuntimeError('boom'))

        with self.assertLogs('realtime.tasks', level='ERROR'):
            self.assertFalse(deliver_notification_task('request_3', {'type': 'request_status'}))


# Consumers close stale database connections around every message, so the
# websocket tests need database access even with the ORM helpers patched.
class ProviderConsumerTests(TransactionTestCase):
    async def connect(self, user):
        communicator = WebsocketCommunicator(ProviderConsumer.as_asgi(), '/ws/provider/')
        communicator.scope['user'] = user
        connected, _ = await communicator.connect()
        return communicator, connected

    async def test_anonymous_connection_is_refused(self):
        _, connected = await self.connect(AnonymousUser())
        self.assertFalse(connected)

    async def test_consumer_role_is_refused(self):
        communicator, connected = await self.connect(stub_user(5, 'consumer'))
        self.assertTrue(connected)

        message = await communicator.receive_json_from()
        self.assertEqual(message['type'], 'error')
        closed = await communicator.receive_output()
        self.assertEqual(closed['type'], 'websocket.close')

    @patch.object(ProviderConsumer, '_get_categories', new_callable=AsyncMock, return_value={41})
    async def test_provider_receives_requests_for_its_categories(self, mock_categories):
        communicator, connected = await self.connect(stub_user(6, 'provider'))
        self.assertTrue(connected)

        established = await communicator.receive_json_from()
        self.assertEqual(established['type'], 'connection_established')
        self.assertEqual(established['categories'], [41])

        channel_layer = get_channel_layer()
        await channel_layer.group_send('new_request_42', {'type': 'new_request', 'title': 'Not for you'})
        await channel_layer.group_send('new_request_41', {
            'type': 'new_request',
            'service': 'Cleaning',
            'title': 'Deep clean',
            'budget': 60.0,
            'request': {'id': 1},
        })

        message = await communicator.receive_json_from()
        self.assertEqual(message['title'], 'Deep clean')
        self.assertEqual(message['budget'], 60.0)
        self.assertTrue(await communicator.receive_nothing())

        await communicator.disconnect()

    @patch.object(ProviderConsumer, '_get_categories', new_callable=AsyncMock)
    async def test_refresh_subscriptions(self, mock_categories):
        mock_categories.side_effect = [{1}, {2}]
        communicator, _ = await self.connect(stub_user(8, 'provider'))
        await communicator.receive_json_from()

        await communicator.send_json_to({'type': 'refresh_subscriptions'})
        updated = await communicator.receive_json_from()
        self.assertEqual(updated, {'type': 'subscriptions_updated', 'categories': [2]})

        channel_layer = get_channel_layer()
        await channel_layer.group_send('new_request_1', {'type': 'new_request', 'title': 'Dropped'})
        await channel_layer.group_send('new_request_2', {'type': 'new_request', 'title': 'Kept'})

        message = await communicator.receive_json_from()
        self.assertEqual(message['title'], 'Kept')

        await communicator.disconnect()

    @patch.object(ProviderConsumer, '_get_categories', new_callable=AsyncMock, return_value=set())
    async def test_owner_status_updates_on_personal_topic(self, mock_categories):
        communicator, _ = await self.connect(stub_user(9, 'provider'))
        await communicator.receive_json_from()

        await get_channel_layer().group_send('user_9', {
            'type': 'request_status',
            'requestId': 3,
            'status': 'closed',
        })

        message = await communicator.receive_json_from()
        self.assertEqual(message, {'type': 'request_status', 'requestId': 3, 'status': 'closed'})

        await communicator.disconnect()


class RequestConsumerTests(TransactionTestCase):
    async def connect(self, user):
        communicator = WebsocketCommunicator(RequestConsumer.as_asgi(), '/ws/requests/')
        communicator.scope['user'] = user
        connected, _ = await communicator.connect()
        self.assertTrue(connected)
        await communicator.receive_json_from()
        return communicator

    @patch.object(RequestConsumer, '_is_participant', new_callable=AsyncMock, return_value=True)
    async def test_watch_request(self, mock_participant):
        communicator = await self.connect(stub_user(11, 'consumer'))

        await communicator.send_json_to({'type': 'watch_request', 'request_id': 77})
        self.assertEqual(
            await communicator.receive_json_from(),
            {'type': 'watching_request', 'request_id': 77}
        )

        await get_channel_layer().group_send('request_77', {
            'type': 'request_status',
            'requestId': 77,
            'status': 'assigned',
            'offer': {'id': 5},
        })
        message = await communicator.receive_json_from()
        self.assertEqual(message['status'], 'assigned')
        self.assertEqual(message['offer'], {'id': 5})

        await communicator.send_json_to({'type': 'unwatch_request', 'request_id': 77})
        self.assertEqual(
            await communicator.receive_json_from(),
            {'type': 'stopped_watching_request', 'request_id': 77}
        )

        await communicator.disconnect()

    @patch.object(RequestConsumer, '_is_participant', new_callable=AsyncMock, return_value=False)
    async def test_outsiders_cannot_watch(self, mock_participant):
        communicator = await self.connect(stub_user(12, 'provider'))

        await communicator.send_json_to({'type': 'watch_request', 'request_id': 78})
        message = await communicator.receive_json_from()
        self.assertEqual(message['type'], 'error')

        await communicator.disconnect()

    async def test_message_validation(self):
        communicator = await self.connect(stub_user(13, 'consumer'))

        await communicator.send_json_to({'request_id': 1})
        self.assertEqual((await communicator.receive_json_from())['message'], 'Message type is required')

        await communicator.send_json_to({'type': 'watch_request'})
        self.assertEqual((await communicator.receive_json_from())['type'], 'error')

        await communicator.send_json_to({'type': 'dance'})
        self.assertEqual((await communicator.receive_json_from())['message'], 'Unknown message type: dance')

        await communicator.disconnect()
