"""
Per-IP rate limit for the analysis endpoint.
"""
from django.conf import settings
from rest_framework.throttling import SimpleRateThrottle


class AnalysisRateThrottle(SimpleRateThrottle):
    """
    Limits analyses per client IP. X-Forwarded-For is read only when
    REST_FRAMEWORK["NUM_PROXIES"] is above 0 (deployments behind a proxy).
    Rate comes from settings.ANALYSIS_THROTTLE_RATE, e.g. "3/day";
    None disables the limit.
    """
    scope = 'analysis'

    def get_rate(self):
        return getattr(settings, 'ANALYSIS_THROTTLE_RATE', None)

    def get_cache_key(self, request, view):
        return self.cache_format % {
            'scope': self.scope,
            'ident': self.get_ident(request),
        }
