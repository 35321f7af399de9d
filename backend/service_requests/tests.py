from decimal import Decimal
from unittest.mock import patch

from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from providers.models import ProviderProfile
from services.tests.factories import (
    make_consumer,
    make_offer,
    make_provider,
    make_request,
    make_service,
)
from .models import Offer, ServiceRequest


class ServiceRequestAPITests(APITestCase):
    def setUp(self):
        self.consumer = make_consumer('consumer')
        self.plumbing = make_service('Plumbing')
        self.painting = make_service('Painting')
        self.plumber = make_provider([self.plumbing], tokens=2, username='plumber')
        self.painter = make_provider([self.painting], tokens=2, username='painter')

    def test_create_request(self):
        response = self.client.post(reverse('service_requests:create-request'), {
            'user_id': self.consumer.id,
            'service_id': self.plumbing.id,
            'title': 'Blocked drain',
            'description': 'Kitchen drain is blocked',
            'budget': '75.50',
            'timeframe': 'this week',
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], 'pending')
        self.assertEqual(response.data['service_name'], 'Plumbing')
        self.assertEqual(response.data['budget'], '75.50')
        self.assertEqual(response.data['provider_candidates'], 1)

    def test_create_request_with_unknown_service(self):
        response = self.client.post(reverse('service_requests:create-request'), {
            'consumer_id': self.consumer.id,
            'service_id': 9999,
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'validation_error')
        self.assertFalse(ServiceRequest.objects.exists())

    def test_create_request_budget_validation(self):
        url = reverse('service_requests:create-request')
        for budget in ('0.001', '1e15', '-1', 'cheap'):
            response = self.client.post(url, {
                'consumer_id': self.consumer.id,
                'service_id': self.plumbing.id,
                'budget': budget,
            }, format='json')
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST, budget)

        self.assertFalse(ServiceRequest.objects.exists())

    def test_create_request_without_budget(self):
        response = self.client.post(reverse('service_requests:create-request'), {
            'consumer_id': self.consumer.id,
            'service_id': self.plumbing.id,
            'budget': '',
            'timeframe': '  ',
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertIsNone(response.data['budget'])
        self.assertIsNone(response.data['timeframe'])

    def test_create_request_requires_consumer(self):
        response = self.client.post(reverse('service_requests:create-request'), {
            'service_id': self.plumbing.id,
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_get_request(self):
        service_request = make_request(self.consumer, self.plumbing)

        response = self.client.get(reverse('service_requests:request-detail', args=[service_request.id]))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['id'], service_request.id)

        response = self.client.get(reverse('service_requests:request-detail', args=[9999]))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_delete_request_removes_offers(self):
        service_request = make_request(self.consumer, self.plumbing)
        make_offer(service_request, self.plumber)
        url = reverse('service_requests:request-detail', args=[service_request.id])

        response = self.client.delete(url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(Offer.objects.exists())

        response = self.client.delete(url)
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_update_status(self):
        service_request = make_request(self.consumer, self.plumbing)
        url = reverse('service_requests:request-status', args=[service_request.id])

        response = self.client.patch(url, {'status': 'DONE'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['message'], 'Invalid Request Status Provided')
        service_request.refresh_from_db()
        self.assertEqual(service_request.status, 'pending')

        response = self.client.patch(url, {'status': 'assigned'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'invalid_transition')

        response = self.client.patch(url, {'status': 'closed'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'closed')

        response = self.client.put(url, {'status': 'pending'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_update_status_checks_value_before_existence(self):
        url = reverse('service_requests:request-status', args=[9999])

        self.assertEqual(self.client.patch(url, {'status': 'DONE'}, format='json').status_code, 400)
        self.assertEqual(self.client.patch(url, {'status': 'closed'}, format='json').status_code, 404)

    def test_close_request(self):
        service_request = make_request(self.consumer, self.plumbing)
        url = reverse('service_requests:close-request', args=[service_request.id])

        response = self.client.post(url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'closed')

        response = self.client.post(url)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_active_lists_return_404_when_empty(self):
        self.assertEqual(self.client.get(reverse('service_requests:active-requests')).status_code, 404)
        self.assertEqual(
            self.client.get(reverse('service_requests:consumer-active-requests', args=[self.consumer.id])).status_code,
            404
        )

    def test_active_lists(self):
        plumbing_job = make_request(self.consumer, self.plumbing)
        painting_job = make_request(self.consumer, self.painting)
        make_request(self.consumer, self.plumbing, status=ServiceRequest.CLOSED)

        response = self.client.get(reverse('service_requests:active-requests'))
        self.assertEqual([item['id'] for item in response.data], [painting_job.id, plumbing_job.id])

        response = self.client.get(reverse('service_requests:provider-active-requests', args=[self.plumber.id]))
        self.assertEqual([item['id'] for item in response.data], [plumbing_job.id])

        response = self.client.get(reverse('service_requests:consumer-active-requests', args=[self.consumer.id]))
        self.assertEqual(len(response.data), 2)

    def test_provider_list_for_unknown_provider(self):
        make_request(self.consumer, self.plumbing)

        response = self.client.get(reverse('service_requests:provider-active-requests', args=[self.consumer.id]))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_unexpected_error_is_a_generic_500(self):
        with patch('services.marketplace.MarketplaceService.list_active_requests', side_effect=RuntimeError('secret')):
            response = self.client.get(reverse('service_requests:active-requests'))

        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertNotIn('secret', response.data['message'])


class OfferAPITests(APITestCase):
    def setUp(self):
        self.consumer = make_consumer('consumer')
        self.service = make_service('Carpentry')
        self.carpenter = make_provider([self.service], tokens=2, username='carpenter')
        self.joiner = make_provider([self.service], tokens=2, username='joiner')
        self.service_request = make_request(self.consumer, self.service)

    def submit(self, provider, budget='120', timeframe='2 days'):
        return self.client.post(reverse('service_requests:submit-offer'), {
            'request_id': self.service_request.id,
            'provider_id': provider.id,
            'budget': budget,
            'timeframe': timeframe,
        }, format='json')

    def test_submit_offer(self):
        response = self.submit(self.carpenter)

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], 'submitted')
        self.assertEqual(response.data['platform_tokens'], 1)
        self.assertEqual(ProviderProfile.objects.get(user=self.carpenter).platform_tokens, 1)

    def test_submit_offer_validation(self):
        self.assertEqual(self.submit(self.carpenter, budget='0').status_code, 400)
        self.assertEqual(self.submit(self.carpenter, budget='abc').status_code, 400)
        self.assertEqual(self.submit(self.carpenter, timeframe='  ').status_code, 400)
        self.assertFalse(Offer.objects.exists())

    def test_budget_must_fit_the_money_column(self):
        for budget in ('0.001', '12.345', '1e15', '10000000000.00'):
            response = self.submit(self.carpenter, budget=budget)
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST, budget)
            self.assertEqual(response.data['error'], 'validation_error')

        self.assertFalse(Offer.objects.exists())
        self.assertEqual(ProviderProfile.objects.get(user=self.carpenter).platform_tokens, 2)

    def test_submit_offer_without_tokens(self):
        broke = make_provider([self.service], tokens=0, username='broke')

        response = self.submit(broke)

        self.assertEqual(response.status_code, status.HTTP_402_PAYMENT_REQUIRED)
        self.assertEqual(response.data['error'], 'insufficient_tokens')

    def test_accept_offer(self):
        first = self.submit(self.carpenter).data
        second = self.submit(self.joiner).data

        response = self.client.post(reverse('service_requests:accept-offer', args=[first['id']]))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'accepted')

        self.service_request.refresh_from_db()
        self.assertEqual(self.service_request.status, 'assigned')
        self.assertEqual(Offer.objects.get(pk=second['id']).status, 'rejected')

        response = self.client.post(reverse('service_requests:accept-offer', args=[second['id']]))
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_submit_after_assignment_is_a_conflict(self):
        offer = make_offer(self.service_request, self.carpenter, budget='100.00')
        self.client.post(reverse('service_requests:accept-offer', args=[offer.id]))

        response = self.submit(self.joiner)

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error'], 'invalid_state')
        self.assertEqual(ProviderProfile.objects.get(user=self.joiner).platform_tokens, 2)

    def test_accept_unknown_offer(self):
        response = self.client.post(reverse('service_requests:accept-offer', args=[9999]))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_request_offers(self):
        make_offer(self.service_request, self.carpenter, budget='100.00')
        make_offer(self.service_request, self.joiner, budget=str(Decimal('90.00')))

        response = self.client.get(reverse('service_requests:request-offers', args=[self.service_request.id]))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([item['budget'] for item in response.data], ['100.00', '90.00'])
