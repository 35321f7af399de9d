import logging
from functools import wraps

from django.apps import apps
from rest_framework import status
from rest_framework.decorators import api_view
from rest_framework.exceptions import APIException
from rest_framework.response import Response

from services.commands import CreateRequestCommand, SubmitOfferCommand, TransitionCommand
from services.exceptions import MarketplaceError
from .serializers import OfferSerializer, ServiceRequestSerializer

logger = logging.getLogger(__name__)


def get_marketplace():
    return apps.get_app_config('service_requests').get_marketplace()


def marketplace_command(view):
    """Map marketplace errors to responses; anything else becomes a generic 500."""

    @wraps(view)
    def wrapper(request, *args, **kwargs):
        try:
            return view(request, *args, **kwargs)
        except APIException:
            raise
        except MarketplaceError as exc:
            return Response(
                {'error': exc.error_code, 'message': exc.message},
                status=exc.status_code
            )
        except Exception:
            logger.exception("Unhandled error in %s", view.__name__)
            return Response(
                {'error': 'internal_error', 'message': 'Internal server error'},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR
            )

    return wrapper


def _list_or_404(items, message):
    if not items:
        return Response({'error': 'not_found', 'message': message}, status=status.HTTP_404_NOT_FOUND)
    return Response(ServiceRequestSerializer(items, many=True).data)


# ==================== Request APIs ====================

@api_view(['POST'])
@marketplace_command
def create_request(request):
    """Consumer posts a new service request; qualified providers are notified."""
    marketplace = get_marketplace()
    command = CreateRequestCommand.from_payload(request.data)
    service_request = marketplace.create_request(command)

    return Response({
        **ServiceRequestSerializer(service_request).data,
        'provider_candidates': marketplace.provider_candidates(service_request.service_id),
    }, status=status.HTTP_201_CREATED)


@api_view(['GET', 'DELETE'])
@marketplace_command
def request_detail(request, request_id):
    """GET a request by id, or DELETE it (administrative removal, offers included)."""
    marketplace = get_marketplace()

    if request.method == 'DELETE':
        marketplace.delete_request(request_id)
        return Response({'message': 'Request deleted successfully'})

    return Response(ServiceRequestSerializer(marketplace.get_request(request_id)).data)


@api_view(['PATCH', 'PUT'])
@marketplace_command
def update_request_status(request, request_id):
    command = TransitionCommand.from_payload(request_id, request.data)
    service_request = get_marketplace().update_request_status(command)
    return Response(ServiceRequestSerializer(service_request).data)


@api_view(['POST'])
@marketplace_command
def close_request(request, request_id):
    """Consumer closes / cancels a pending or assigned request."""
    service_request = get_marketplace().close_request(request_id)
    return Response(ServiceRequestSerializer(service_request).data)


@api_view(['GET'])
@marketplace_command
def active_requests(request):
    return _list_or_404(get_marketplace().list_active_requests(), 'No Active Requests Found')


@api_view(['GET'])
@marketplace_command
def active_requests_for_provider(request, provider_id):
    """Open requests in the categories the provider is registered for."""
    return _list_or_404(
        get_marketplace().list_active_requests_for_provider(provider_id),
        'No Active Requests Found'
    )


@api_view(['GET'])
@marketplace_command
def active_requests_for_consumer(request, consumer_id):
    return _list_or_404(
        get_marketplace().list_active_requests_for_consumer(consumer_id),
        'No Active Requests Found'
    )


@api_view(['GET'])
@marketplace_command
def request_offers(request, request_id):
    offers = get_marketplace().list_offers(request_id)
    return Response(OfferSerializer(offers, many=True).data)


# ==================== Offer APIs ====================

@api_view(['POST'])
@marketplace_command
def submit_offer(request):
    """Provider bids on an open request; costs platform tokens when configured."""
    command = SubmitOfferCommand.from_payload(request.data)
    offer = get_marketplace().submit_offer(command)

    data = dict(OfferSerializer(offer).data)
    platform_tokens = getattr(offer, 'platform_tokens', None)
    if platform_tokens is not None:
        data['platform_tokens'] = platform_tokens
    return Response(data, status=status.HTTP_201_CREATED)


@api_view(['POST'])
@marketplace_command
def accept_offer(request, offer_id):
    """Consumer picks the winning offer; the request becomes assigned."""
    offer = get_marketplace().accept_offer(offer_id)
    return Response(OfferSerializer(offer).data)
