import hashlib
import logging

from config.errors import ServiceError, NotFoundError
from orders.services import get_accessible_order
from .ipfs import IPFSError, get_ipfs_client
from .models import Document

logger = logging.getLogger(__name__)


class DocumentError(ServiceError):
    pass


def _resolve_order(user, order_id):
    if not order_id:
        return None
    try:
        return get_accessible_order(user, order_id)
    except NotFoundError:
        raise NotFoundError("Order not found or not accessible")


def _document_type(document_type):
    document_type = (document_type or 'OTHER').upper()
    if document_type not in dict(Document.DOCUMENT_TYPES):
        raise DocumentError(f"Invalid document type {document_type}")
    return document_type


def save_document_for_user(user, filename, content, mime_type='', order_id=None, document_type=None):
    """Hash, pin on IPFS and record an uploaded file"""
    if not content:
        raise DocumentError("file required")

    order = _resolve_order(user, order_id)
    document_type = _document_type(document_type)
    sha256 = hashlib.sha256(content).hexdigest()

    try:
        cid = get_ipfs_client().add(content, filename)
    except IPFSError as e:
        raise DocumentError(str(e), status=502)

    document = Document.objects.create(
        uploader=user,
        order=order,
        filename=filename,
        cid=cid,
        url=f"ipfs://{cid}",
        sha256=sha256,
        mime_type=mime_type or '',
        size=len(content),
        document_type=document_type,
    )
    logger.info(f"Document {document.id} ({cid}) uploaded by user {user.id}")
    return document


def submit_document(user, filename, cid, order_id=None, document_type=None):
    """Record content that is already pinned"""
    if not filename or not cid:
        raise DocumentError("filename and cid are required")

    return Document.objects.create(
        uploader=user,
        order=_resolve_order(user, order_id),
        filename=filename,
        cid=cid,
        url=f"ipfs://{cid}",
        document_type=_document_type(document_type),
    )


def list_user_documents(user):
    return Document.objects.filter(uploader=user).select_related('order').order_by('-created_at')


def fetch_document_bytes(cid):
    try:
        return get_ipfs_client().cat(cid)
    except IPFSError as e:
        raise NotFoundError(str(e))
