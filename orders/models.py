from django.conf import settings
from django.db import models
from decimal import Decimal

from users.models import SoftDeleteModel


class OrderStatus:
    AWAITING_PAYMENT = 'AWAITING_PAYMENT'
    BANK_REVIEW = 'BANK_REVIEW'
    IN_TRANSIT = 'IN_TRANSIT'
    DELIVERED = 'DELIVERED'
    DISPUTED = 'DISPUTED'
    CANCELLED = 'CANCELLED'

    CHOICES = [
        (AWAITING_PAYMENT, 'Awaiting payment'),
        (BANK_REVIEW, 'Bank review'),
        (IN_TRANSIT, 'In transit'),
        (DELIVERED, 'Delivered'),
        (DISPUTED, 'Disputed'),
        (CANCELLED, 'Cancelled'),
    ]


# Allowed status moves. Anything not listed is refused.
ORDER_TRANSITIONS = {
    OrderStatus.AWAITING_PAYMENT: {OrderStatus.BANK_REVIEW, OrderStatus.CANCELLED},
    OrderStatus.BANK_REVIEW: {OrderStatus.IN_TRANSIT, OrderStatus.DISPUTED, OrderStatus.CANCELLED},
    OrderStatus.IN_TRANSIT: {OrderStatus.DELIVERED, OrderStatus.DISPUTED},
    OrderStatus.DELIVERED: {OrderStatus.DISPUTED},
    OrderStatus.DISPUTED: {OrderStatus.DELIVERED, OrderStatus.CANCELLED},
    OrderStatus.CANCELLED: set(),
}

# Targets a buyer may request directly; the rest are driven by banks
BUYER_DRIVEN_TARGETS = {OrderStatus.CANCELLED, OrderStatus.DISPUTED}


def can_transition(current, target):
    return target in ORDER_TRANSITIONS.get(current, set())


class Order(SoftDeleteModel):
    """Checkout of a buyer's cart, settled through a per-order escrow"""

    code = models.CharField(max_length=20, unique=True, help_text="ORD-<year>-<6-digit yearly sequence>")
    buyer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='orders'
    )
    status = models.CharField(max_length=20, choices=OrderStatus.CHOICES, default=OrderStatus.AWAITING_PAYMENT)
    subtotal = models.DecimalField(max_digits=18, decimal_places=2, default=Decimal('0'))
    shipping = models.DecimalField(max_digits=18, decimal_places=2, default=Decimal('0'))
    total = models.DecimalField(max_digits=18, decimal_places=2, default=Decimal('0'))

    buyer_bank = models.ForeignKey(
        'banks.Bank',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='buyer_orders'
    )
    seller_bank = models.ForeignKey(
        'banks.Bank',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='seller_orders'
    )
    buyer_bank_approved = models.BooleanField(default=False)
    seller_bank_approved = models.BooleanField(default=False)

    escrow_address = models.CharField(max_length=42, blank=True, null=True)
    escrow_deploy_tx = models.CharField(max_length=66, blank=True, null=True)
    arbiter_address = models.CharField(max_length=42, blank=True, null=True)
    payment_transaction_id = models.CharField(max_length=100, blank=True, null=True)
    shipment_tracking_id = models.CharField(max_length=100, blank=True, null=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['buyer', 'status'], name='order_buyer_status_idx'),
            models.Index(fields=['status', 'created_at'], name='order_status_created_idx'),
        ]

    def __str__(self):
        return self.code

    @property
    def half_total(self):
        return (self.total / 2).quantize(Decimal('0.01'))

    @property
    def producers(self):
        from users.models import User
        return User.objects.filter(products__orderitem__order=self).distinct()


class OrderItem(models.Model):
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name='items')
    product = models.ForeignKey('marketplace.Product', on_delete=models.PROTECT)
    quantity = models.PositiveIntegerField()
    unit_price = models.DecimalField(max_digits=18, decimal_places=2)
    line_total = models.DecimalField(max_digits=18, decimal_places=2)

    class Meta:
        ordering = ['id']

    def __str__(self):
        return f"{self.quantity} x {self.product_id} on {self.order_id}"


class PaymentRelease(models.Model):
    """One escrow tranche: PARTIAL50 once both banks approve, FULL100 on delivery"""

    TYPE_CHOICES = [
        ('PARTIAL50', 'First 50%'),
        ('FULL100', 'Final 50%'),
    ]

    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name='payment_releases')
    type = models.CharField(max_length=10, choices=TYPE_CHOICES)
    amount = models.DecimalField(max_digits=18, decimal_places=2)
    released = models.BooleanField(default=False)
    released_at = models.DateTimeField(null=True, blank=True)
    transaction_id = models.CharField(max_length=100, blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['created_at']
        constraints = [
            models.UniqueConstraint(fields=['order', 'type'], name='unique_release_type_per_order'),
        ]

    def __str__(self):
        return f"{self.type} {self.amount} for {self.order_id}"


class Dispute(models.Model):
    STATUS_CHOICES = [
        ('OPEN', 'Open'),
        ('UNDER_REVIEW', 'Under review'),
        ('RESOLVED', 'Resolved'),
    ]

    PRIORITY_CHOICES = [
        ('LOW', 'Low'),
        ('MEDIUM', 'Medium'),
        ('HIGH', 'High'),
    ]

    OUTCOME_CHOICES = [
        ('release_to_seller', 'Release to seller'),
        ('refund_buyer', 'Refund buyer'),
    ]

    order = models.OneToOneField(Order, on_delete=models.CASCADE, related_name='dispute')
    initiator = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name='disputes_opened'
    )
    reason = models.TextField()
    status = models.CharField(max_length=15, choices=STATUS_CHOICES, default='OPEN')
    priority = models.CharField(max_length=10, choices=PRIORITY_CHOICES, default='MEDIUM')
    resolution_outcome = models.CharField(max_length=20, choices=OUTCOME_CHOICES, blank=True)
    resolved_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"Dispute on {self.order_id} ({self.status})"


class DisputeRuling(models.Model):
    dispute = models.ForeignKey(Dispute, on_delete=models.CASCADE, related_name='rulings')
    officer = models.ForeignKey(
        'banks.BankUser',
        on_delete=models.SET_NULL,
        null=True,
        related_name='rulings'
    )
    ruling = models.TextField()
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['created_at']

    def __str__(self):
        return f"Ruling on dispute {self.dispute_id}"
