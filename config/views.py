from django.db import connection
from django.http import JsonResponse
from django.utils import timezone
from django.views.decorators.http import require_GET
from django.conf import settings
import logging

logger = logging.getLogger(__name__)


@require_GET
def health_view(request):
    """Liveness probe with a cheap database round-trip"""
    database = 'ok'
    try:
        with connection.cursor() as cursor:
            cursor.execute('SELECT 1')
    except Exception as e:
        logger.error(f"Health check database error: {e}")
        database = 'error'

    status = 200 if database == 'ok' else 503
    return JsonResponse({
        'status': 'ok' if status == 200 else 'degraded',
        'database': database,
        'network': settings.HEDERA_NETWORK,
        'timestamp': timezone.now().isoformat(),
    }, status=status)
