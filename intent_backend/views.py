"""
Project-level views (e.g. health check).
"""
from django.http import JsonResponse
from django.views.decorators.http import require_GET

from ai.providers import is_configured
from intents.gate import get_gate


@require_GET
def health_check(request):
    """
    Liveness check for load balancers and monitoring.
    GET /api/v1/health/ - returns 200 if the app is running, with the
    analysis slot usage and whether an AI provider is configured.
    No authentication required.
    """
    return JsonResponse({
        "status": "ok",
        "service": "intent-backend",
        "ai_configured": is_configured(),
        "analysis_slots": get_gate().stats(),
    })
