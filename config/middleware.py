from django.conf import settings
from django.db import close_old_connections
from django.http import HttpResponse


class CloseDbConnectionsMiddleware:
    """
    Ensures Django drops any stale DB connections at the start of each request.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        close_old_connections()
        response = self.get_response(request)
        return response


class CorsMiddleware:
    """
    Minimal CORS handling for the browser client.

    Only origins listed in CORS_ALLOWED_ORIGINS are echoed back, and
    credentials are allowed so the bank officer cookie can travel.
    """

    ALLOWED_METHODS = 'GET, POST, PUT, PATCH, DELETE, OPTIONS'
    ALLOWED_HEADERS = 'Authorization, Content-Type, X-Requested-With'

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        origin = request.META.get('HTTP_ORIGIN')
        allowed = origin and origin in settings.CORS_ALLOWED_ORIGINS

        if request.method == 'OPTIONS' and 'HTTP_ACCESS_CONTROL_REQUEST_METHOD' in request.META:
            response = HttpResponse(status=204)
        else:
            response = self.get_response(request)

        if allowed:
            response['Access-Control-Allow-Origin'] = origin
            response['Access-Control-Allow-Credentials'] = 'true'
            response['Access-Control-Allow-Methods'] = self.ALLOWED_METHODS
            response['Access-Control-Allow-Headers'] = self.ALLOWED_HEADERS
            response['Vary'] = 'Origin'
        return response
