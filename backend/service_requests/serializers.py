from collections.abc import Mapping
from decimal import Decimal

from rest_framework import serializers

from .models import Offer, ServiceRequest


class ServiceRequestSerializer(serializers.ModelSerializer):
    """Serializer for Service Requests"""
    service_name = serializers.CharField(source='service.name', read_only=True)

    class Meta:
        model = ServiceRequest
        fields = ['id', 'consumer', 'service', 'service_name', 'title', 'description',
                  'budget', 'timeframe', 'location', 'status', 'created_at',
                  'assigned_at', 'closed_at']
        read_only_fields = fields


class OfferSerializer(serializers.ModelSerializer):
    """Serializer for Offers"""

    class Meta:
        model = Offer
        fields = ['id', 'request', 'provider', 'budget', 'timeframe', 'status',
                  'created_at', 'responded_at']
        read_only_fields = fields


# ==================== Input Serializers ====================

class RequestCreateSerializer(serializers.Serializer):
    """Serializer for creating service requests"""
    consumer_id = serializers.IntegerField(min_value=1, required=False)
    # Older clients send the consumer as user_id
    user_id = serializers.IntegerField(min_value=1, required=False, write_only=True)
    service_id = serializers.IntegerField(min_value=1)
    title = serializers.CharField(max_length=200, required=False, allow_blank=True, default='')
    description = serializers.CharField(required=False, allow_blank=True, default='')
    budget = serializers.DecimalField(
        max_digits=12, decimal_places=2, min_value=Decimal('0'),
        required=False, allow_null=True, default=None
    )
    timeframe = serializers.CharField(max_length=100, required=False, allow_blank=True, allow_null=True, default=None)
    location = serializers.CharField(max_length=255, required=False, allow_blank=True, allow_null=True, default=None)

    def to_internal_value(self, data):
        # An empty budget field means "no budget given"
        if isinstance(data, Mapping) and data.get('budget') == '':
            data = {key: data.get(key) for key in data if key != 'budget'}
        return super().to_internal_value(data)

    def validate(self, attrs):
        user_id = attrs.pop('user_id', None)
        if attrs.get('consumer_id') is None:
            if user_id is None:
                raise serializers.ValidationError({'consumer_id': 'consumer_id is required'})
            attrs['consumer_id'] = user_id
        return attrs


class OfferCreateSerializer(serializers.Serializer):
    """Serializer for submitting offers"""
    request_id = serializers.IntegerField(min_value=1)
    provider_id = serializers.IntegerField(min_value=1)
    budget = serializers.DecimalField(
        max_digits=12, decimal_places=2, min_value=Decimal('0.01'),
        error_messages={'required': 'Please enter a valid budget amount',
                        'null': 'Please enter a valid budget amount',
                        'min_value': 'Please enter a valid budget amount'}
    )
    timeframe = serializers.CharField(
        max_length=100,
        error_messages={'required': 'Please enter a timeframe',
                        'blank': 'Please enter a timeframe',
                        'null': 'Please enter a timeframe'}
    )


class StatusUpdateSerializer(serializers.Serializer):
    """Serializer for request status updates"""
    status = serializers.CharField(max_length=20)
