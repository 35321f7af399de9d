from django.contrib import admin
from django.urls import path, include

from .views import health_check

urlpatterns = [
    path('admin/', admin.site.urls),
    path("health/", health_check), # Health check endpoint

    # Marketplace endpoints (requests + offers at /api/)
    path('api/', include('service_requests.urls')),
]
