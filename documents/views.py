from django.conf import settings
from django.http import HttpResponse, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST
import logging

from config.errors import ServiceError
from users.decorators import jwt_view_required
from . import services

logger = logging.getLogger(__name__)


def _document_payload(document):
    return {
        'id': document.id,
        'filename': document.filename,
        'cid': document.cid,
        'url': document.url,
        'sha256': document.sha256,
        'mimeType': document.mime_type,
        'size': document.size,
        'documentType': document.document_type,
        'status': document.status,
        'orderId': document.order_id,
        'createdAt': document.created_at.isoformat(),
    }


@csrf_exempt
@require_POST
@jwt_view_required
def upload_document_view(request):
    """POST multipart ``file`` with optional ``orderId`` and ``documentType``"""
    upload = request.FILES.get('file')
    if upload is None:
        return JsonResponse({'success': False, 'message': 'file required'}, status=400)
    if upload.size > settings.UPLOAD_MAX_FILE_SIZE:
        return JsonResponse({'success': False, 'message': 'File too large'}, status=413)

    try:
        document = services.save_document_for_user(
            request.user,
            upload.name,
            upload.read(),
            mime_type=upload.content_type,
            order_id=request.POST.get('orderId') or None,
            document_type=request.POST.get('documentType') or request.POST.get('typeKey'),
        )
    except ServiceError as e:
        return JsonResponse({'success': False, 'message': str(e)}, status=e.status)

    return JsonResponse({'success': True, 'data': _document_payload(document)}, status=201)


@require_GET
def download_document_view(request, cid):
    try:
        content = services.fetch_document_bytes(cid)
    except ServiceError as e:
        return JsonResponse({'success': False, 'message': str(e)}, status=e.status)

    response = HttpResponse(content, content_type='application/octet-stream')
    response['Content-Disposition'] = f'attachment; filename="{cid}"'
    return response
