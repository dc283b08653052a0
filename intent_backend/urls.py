"""
URL configuration for intent_backend project.

Every error leaves as JSON with the same {"error", "detail"} body the
analysis endpoint uses.
"""
from django.http import JsonResponse
from django.urls import path, include


def _json_error(status, error, detail):
    return JsonResponse({'error': error, 'detail': detail, 'status': status}, status=status)


def bad_request(request, exception=None):
    return _json_error(400, 'Bad request', 'The request could not be understood.')


def not_found(request, exception=None):
    return _json_error(404, 'Not found', f'No API route matches {request.path}.')


def server_error(request):
    return _json_error(500, 'Internal server error', 'An unexpected error occurred.')


urlpatterns = [
    path('api/v1/', include('intent_backend.api_urls')),
]

handler400 = bad_request
handler404 = not_found
handler500 = server_error
