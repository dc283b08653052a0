"""
Custom middleware for intent_backend.
"""
from django.middleware.common import CommonMiddleware
from django.urls import is_valid_path


class APICommonMiddleware(CommonMiddleware):
    """
    CommonMiddleware that never answers an API call with an APPEND_SLASH redirect.

    /api/ paths missing their trailing slash are rewritten in place to the
    slashed route when it exists, so POST /api/v1/intents/analyze keeps its body.
    """
    def process_request(self, request):
        path_info = request.path_info
        if path_info.startswith('/api/') and not path_info.endswith('/'):
            urlconf = getattr(request, 'urlconf', None)
            if not is_valid_path(path_info, urlconf) and is_valid_path(path_info + '/', urlconf):
                request.path_info = path_info + '/'
                request.path = request.path + '/'
        return super().process_request(request)

    def should_redirect_with_slash(self, request):
        if request.path_info.startswith('/api/'):
            return False
        return super().should_redirect_with_slash(request)
