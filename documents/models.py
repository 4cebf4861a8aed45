from django.conf import settings
from django.db import models


class Document(models.Model):
    """Trade document pinned on IPFS, optionally attached to an order"""

    DOCUMENT_TYPES = [
        ('INVOICE', 'Invoice'),
        ('BILL_OF_LADING', 'Bill of lading'),
        ('CERTIFICATE_OF_ORIGIN', 'Certificate of origin'),
        ('PACKING_LIST', 'Packing list'),
        ('INSURANCE', 'Insurance'),
        ('INSPECTION', 'Inspection'),
        ('OTHER', 'Other'),
    ]

    STATUS_CHOICES = [
        ('PENDING', 'Pending'),
        ('VALIDATED', 'Validated'),
        ('REJECTED', 'Rejected'),
    ]

    uploader = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='documents'
    )
    order = models.ForeignKey(
        'orders.Order',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='documents'
    )
    filename = models.CharField(max_length=255)
    cid = models.CharField(max_length=100, db_index=True)
    url = models.CharField(max_length=200, help_text="ipfs://<cid>")
    sha256 = models.CharField(max_length=64, blank=True)
    mime_type = models.CharField(max_length=100, blank=True)
    size = models.PositiveBigIntegerField(default=0)
    document_type = models.CharField(max_length=25, choices=DOCUMENT_TYPES, default='OTHER')
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default='PENDING')
    validated_by = models.ForeignKey(
        'banks.BankUser',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='validated_documents'
    )
    validated_at = models.DateTimeField(null=True, blank=True)
    rejection_reason = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['order', 'status'], name='document_order_status_idx'),
        ]

    def __str__(self):
        return f"{self.filename} ({self.cid})"
