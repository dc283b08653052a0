"""
Search intent analysis endpoint.

POST /api/v1/intents/analyze/ - classify phrases, find quick wins,
                                cannibalization and URL-variant issues
"""
import logging

from django.conf import settings
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes, throttle_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from ai import providers
from ai.intent_services import build_curator, build_refiner, discover_intentions, discovery_sample
from .engine import AnalysisConfig, AnalysisError, run_analysis
from .engine.seams import call_seam
from .engine.utils import split_branded
from .gate import GateTimeout, get_gate
from .serializers import AnalyzeRequestSerializer
from .throttling import AnalysisRateThrottle

logger = logging.getLogger(__name__)


def get_analysis_config() -> AnalysisConfig:
    """Engine config with settings.INTENT_ANALYSIS overrides applied."""
    return AnalysisConfig.from_mapping(getattr(settings, 'INTENT_ANALYSIS', None))


@api_view(['POST'])
@permission_classes([AllowAny])
@throttle_classes([AnalysisRateThrottle])
def analyze(request):
    """
    Run a full intent analysis on one dataset snapshot.

    POST /api/v1/intents/analyze/
    {
        "records": [{"phrase": "...", "clicks": 3, "impressions": 120,
                     "ctr": 0.025, "position": 7.4, "pages": [...]}],
        "intentions": [{"name": "...", "examples": [...], "linguistic_signal": "..."}],
        "brand": "...", "sector": "...",
        "refine": true, "curate": true, "discover": true
    }

    Intentions are discovered by the AI provider when omitted.
    Refinement and curation are skipped when no provider is configured.
    """
    serializer = AnalyzeRequestSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(
            {'error': 'Invalid analysis request', 'detail': serializer.errors},
            status=status.HTTP_400_BAD_REQUEST
        )

    try:
        with get_gate().slot():
            return _run(serializer)
    except GateTimeout as e:
        return Response(
            {'error': 'Service busy', 'detail': str(e)},
            status=status.HTTP_503_SERVICE_UNAVAILABLE
        )
    except Exception as e:
        logger.exception("Intent analysis failed")
        return Response(
            {'error': 'Failed to analyze queries', 'detail': str(e)},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR
        )


def _run(serializer):
    data = serializer.validated_data
    config = get_analysis_config()
    ai_ready = providers.is_configured()

    intentions = serializer.to_intentions()
    discovery = None
    if intentions is None and data['discover'] and ai_ready:
        records = serializer.to_records()
        non_branded, _ = split_branded(records, data.get('brand'))
        result = call_seam(
            'discovery', discover_intentions,
            discovery_sample(non_branded), data.get('brand'), data.get('sector'),
            timeout=config.seam_timeout,
        )
        if not result.ok:
            return Response(
                {
                    'error': 'Intention discovery failed',
                    'detail': result.detail,
                    'error_kind': result.error_kind.value if result.error_kind else None,
                },
                status=status.HTTP_502_BAD_GATEWAY
            )
        discovery = result.value
        intentions = tuple(discovery.intentions)

    analyze_request = serializer.to_request(
        intentions=intentions,
        site_theme=discovery.site_theme if discovery else None,
    )

    refiner = build_refiner(sector=analyze_request.sector) if data['refine'] and ai_ready else None
    curator = build_curator(brand=analyze_request.brand, sector=analyze_request.sector) if data['curate'] and ai_ready else None

    try:
        result = run_analysis(analyze_request, config=config, refiner=refiner, curator=curator)
    except AnalysisError as e:
        return Response(
            {'error': 'Intentions required', 'detail': str(e)},
            status=status.HTTP_400_BAD_REQUEST
        )

    body = result.to_dict()
    body['intentions'] = [i.to_dict() for i in analyze_request.intentions]
    if discovery:
        body['discovery'] = discovery.to_dict()
    return Response(body)
