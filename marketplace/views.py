from django.conf import settings
from django.core.files.storage import default_storage
from django.http import JsonResponse
from django.utils.crypto import get_random_string
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST
import logging
import os

from users.decorators import jwt_view_required
from .models import Product

logger = logging.getLogger(__name__)

UPLOAD_KINDS = {
    'images': 'uploads/images',
    'documents': 'uploads/documents',
}


def _store(upload, directory):
    _, ext = os.path.splitext(upload.name)
    stored_name = default_storage.save(
        f"{directory}/{get_random_string(16)}{ext.lower()}",
        upload,
    )
    return {
        'filename': os.path.basename(stored_name),
        'originalName': upload.name,
        'size': upload.size,
        'mime': upload.content_type,
        'path': f"{settings.MEDIA_URL}{stored_name}",
    }


@csrf_exempt
@require_POST
@jwt_view_required
def upload_product_files_view(request):
    """Multipart ``images`` and ``documents`` files, optionally attached to ``productId``"""
    product = None
    product_id = request.POST.get('productId')
    if product_id:
        product = Product.objects.filter(id=product_id, producer=request.user).first()
        if product is None:
            return JsonResponse({'success': False, 'message': 'Product not found'}, status=404)

    uploads = {kind: request.FILES.getlist(kind) for kind in UPLOAD_KINDS}
    if not any(uploads.values()):
        return JsonResponse({'success': False, 'message': 'No files uploaded'}, status=400)

    for files in uploads.values():
        for upload in files:
            if upload.size > settings.UPLOAD_MAX_FILE_SIZE:
                return JsonResponse({'success': False, 'message': f'{upload.name} is too large'}, status=413)

    stored = {
        kind: [_store(upload, UPLOAD_KINDS[kind]) for upload in files]
        for kind, files in uploads.items()
    }

    if product is not None:
        product.images = list(product.images or []) + stored['images']
        product.documents = list(product.documents or []) + stored['documents']
        product.save(update_fields=['images', 'documents', 'updated_at'])

    logger.info(
        f"User {request.user.id} uploaded {len(stored['images'])} images and "
        f"{len(stored['documents'])} documents"
    )
    return JsonResponse({'success': True, 'data': stored}, status=201)
