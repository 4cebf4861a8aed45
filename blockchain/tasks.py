from celery import shared_task
from django.db import transaction
from django.utils import timezone
import logging

from .hedera import get_hedera_client
from .models import AuditEvent

logger = logging.getLogger(__name__)


@shared_task(bind=True, max_retries=0, ignore_result=True)
def submit_audit_event(self, audit_event_id):
    """Mirror a stored audit event to the HCS topic"""
    try:
        event = AuditEvent.objects.get(id=audit_event_id)
    except AuditEvent.DoesNotExist:
        logger.warning(f"Audit event {audit_event_id} not found")
        return

    if event.status == 'SUBMITTED':
        return

    client = get_hedera_client()
    if not client.is_configured() or not client.topic_id:
        event.status = 'SKIPPED'
        event.save(update_fields=['status'])
        return

    transaction_id = client.submit_order_event(
        event.event_type,
        event.reference_id,
        event.reference_code,
        event.details,
    )
    if transaction_id:
        event.status = 'SUBMITTED'
        event.transaction_id = transaction_id
        event.submitted_at = timezone.now()
    else:
        event.status = 'FAILED'
        event.error_message = 'HCS submission returned no transaction id'
    event.save(update_fields=['status', 'transaction_id', 'submitted_at', 'error_message'])


def record_audit_event(event_type, reference_id, reference_code='', details=None):
    """Store an audit event and submit it to HCS once the current transaction commits.

    Never raises: the audit trail must not block the write it describes.
    """
    try:
        with transaction.atomic():
            event = AuditEvent.objects.create(
                event_type=event_type,
                reference_id=str(reference_id),
                reference_code=reference_code or '',
                details=details or {},
            )
    except Exception as e:
        logger.error(f"Could not record audit event {event_type} for {reference_code}: {e}")
        return None

    def _dispatch():
        try:
            submit_audit_event.delay(event.id)
        except Exception as e:
            logger.warning(f"Could not queue audit event {event.id}: {e}")

    transaction.on_commit(_dispatch)
    return event
