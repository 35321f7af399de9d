from django.urls import path
from . import views

app_name = 'service_requests'

urlpatterns = [
    # Requests
    path('requests/', views.create_request, name='create-request'),
    path('requests/active/', views.active_requests, name='active-requests'),
    path('requests/active/provider/<int:provider_id>/', views.active_requests_for_provider, name='provider-active-requests'),
    path('requests/active/consumer/<int:consumer_id>/', views.active_requests_for_consumer, name='consumer-active-requests'),
    path('requests/<int:request_id>/', views.request_detail, name='request-detail'),
    path('requests/<int:request_id>/status/', views.update_request_status, name='request-status'),
    path('requests/<int:request_id>/close/', views.close_request, name='close-request'),
    path('requests/<int:request_id>/offers/', views.request_offers, name='request-offers'),

    # Offers
    path('offers/', views.submit_offer, name='submit-offer'),
    path('offers/<int:offer_id>/accept/', views.accept_offer, name='accept-offer'),
]
