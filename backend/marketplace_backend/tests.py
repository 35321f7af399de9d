from unittest.mock import patch

from django.test import TestCase
from rest_framework.test import APIClient


class HealthCheckTests(TestCase):
    def setUp(self):
        self.client = APIClient()

    @patch('marketplace_backend.views.redis.Redis.from_url')
    def test_healthy(self, mock_from_url):
        mock_from_url.return_value.ping.return_value = True

        response = self.client.get('/health/')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['status'], 'healthy')
        self.assertEqual(set(response.data['services']), {'database', 'redis', 'channels', 'celery'})

    @patch('marketplace_backend.views.redis.Redis.from_url')
    def test_redis_down(self, mock_from_url):
        mock_from_url.return_value.ping.side_effect = ConnectionError('refused')

        response = self.client.get('/health/')

        self.assertEqual(response.status_code, 503)
        self.assertTrue(response.data['services']['redis'].startswith('unhealthy'))
