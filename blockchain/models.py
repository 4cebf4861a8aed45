from django.db import models


class AuditEvent(models.Model):
    """Order lifecycle event mirrored to the Hedera Consensus Service topic"""

    STATUS_CHOICES = [
        ('PENDING', 'Pending'),
        ('SUBMITTED', 'Submitted'),
        ('SKIPPED', 'Skipped'),
        ('FAILED', 'Failed'),
    ]

    EVENT_TYPES = [
        ('ORDER_CREATED', 'Order created'),
        ('PAYMENT_RECEIVED', 'Payment received'),
        ('ESCROW_DEPLOYED', 'Escrow deployed'),
        ('BANK_APPROVED', 'Bank approved'),
        ('PAYMENT_RELEASED', 'Payment released'),
        ('ORDER_SHIPPED', 'Order shipped'),
        ('ORDER_DELIVERED', 'Order delivered'),
        ('ORDER_CANCELLED', 'Order cancelled'),
        ('DOCUMENT_VALIDATED', 'Document validated'),
        ('DISPUTE_CREATED', 'Dispute created'),
        ('DISPUTE_RESOLVED', 'Dispute resolved'),
        ('KYC_VERIFIED', 'KYC verified'),
    ]

    event_type = models.CharField(max_length=30, choices=EVENT_TYPES)
    reference_id = models.CharField(max_length=64, help_text="Order id (or user id for KYC events)")
    reference_code = models.CharField(max_length=100, blank=True)
    details = models.JSONField(default=dict, blank=True)
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default='PENDING')
    transaction_id = models.CharField(max_length=100, blank=True)
    error_message = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    submitted_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['reference_id', 'event_type'], name='audit_ref_event_idx'),
            models.Index(fields=['status'], name='audit_status_idx'),
        ]

    def __str__(self):
        return f"{self.event_type} {self.reference_code or self.reference_id} ({self.status})"
