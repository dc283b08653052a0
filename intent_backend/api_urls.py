"""
API URL routing for intent_backend.
All API endpoints are prefixed with /api/v1/
"""
from django.urls import path, include

from .views import health_check

urlpatterns = [
    # Health check (no auth) - GET /api/v1/health/
    path('health/', health_check),
    # Search intent analysis
    path('intents/', include('intents.urls')),
]
