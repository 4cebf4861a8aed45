"""config URL Configuration

The `urlpatterns` list routes URLs to views. For more information please see:
    https://docs.djangoproject.com/en/4.2/topics/http/urls/
"""
from django.contrib import admin
from django.urls import path
from django.views.decorators.csrf import csrf_exempt
from django.conf import settings
from graphene_django.views import GraphQLView
from documents.views import upload_document_view, download_document_view
from marketplace.views import upload_product_files_view
from .views import health_view
import json
import logging

admin.site.site_header = "Hex-Port Admin"
admin.site.site_title = "Hex-Port Admin Portal"
admin.site.index_title = "Welcome to Hex-Port Administration"

logger = logging.getLogger(__name__)


class LoggingGraphQLView(GraphQLView):
    def get_context(self, request):
        context = super().get_context(request)
        user = getattr(context, 'user', None)
        bank_user = getattr(context, 'bank_user', None)
        logger.info(f"GraphQL Context - User: {user}, Bank user: {bank_user}")
        return context

    def dispatch(self, request, *args, **kwargs):
        if request.method == 'POST' and request.content_type == 'application/json':
            try:
                body = json.loads(request.body)
                logger.info("GraphQL operation: %s", body.get('operationName') or '<anonymous>')
                logger.debug("GraphQL Query: %s", body.get('query', ''))
            except (ValueError, UnicodeDecodeError):
                logger.warning("GraphQL request body is not valid JSON")

        response = super().dispatch(request, *args, **kwargs)

        # Bank officer login/logout mutations ask for the auth cookie to change
        cookie_name = settings.BANK_AUTH_COOKIE_NAME
        token = getattr(request, 'bank_auth_cookie', None)
        if token:
            response.set_cookie(
                cookie_name,
                token,
                max_age=settings.BANK_ACCESS_TOKEN_EXPIRY_HOURS * 3600,
                httponly=True,
                secure=not settings.DEBUG,
                samesite='Lax',
            )
        elif getattr(request, 'bank_auth_cookie_clear', False):
            response.delete_cookie(cookie_name)
        return response


urlpatterns = [
    path('admin/', admin.site.urls),
    path('graphql/', csrf_exempt(LoggingGraphQLView.as_view(graphiql=settings.DEBUG))),
    path('health/', health_view, name='health'),
    path('api/documents/upload/', upload_document_view, name='document-upload'),
    path('api/documents/<str:cid>/download/', download_document_view, name='document-download'),
    path('api/products/upload/', upload_product_files_view, name='product-upload'),
]
