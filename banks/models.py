from django.conf import settings
from django.contrib.auth.hashers import check_password, make_password
from django.db import models


class Bank(models.Model):
    """Partner bank (buyer-side or seller-side)"""

    code = models.CharField(max_length=50, unique=True)
    name = models.CharField(max_length=200)
    logo = models.CharField(max_length=500, blank=True, help_text="Logo URL or static path")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['name']

    def __str__(self):
        return self.name


class BankUser(models.Model):
    """Bank officer. Authenticates with email/password, separate from wallet users."""

    ROLE_CHOICES = [
        ('BANK_USER', 'Bank user'),
        ('BANK_ADMIN', 'Bank admin'),
    ]

    email = models.EmailField(unique=True)
    password_hash = models.CharField(max_length=255)
    name = models.CharField(max_length=200, blank=True)
    phone = models.CharField(max_length=30, blank=True)
    role = models.CharField(max_length=12, choices=ROLE_CHOICES, default='BANK_USER')
    bank = models.ForeignKey(
        Bank,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='officers'
    )
    is_banned = models.BooleanField(default=False)
    last_login_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['email']

    def __str__(self):
        return f"{self.name or self.email} ({self.bank or 'no bank'})"

    # Bank officers are never Django users, but views and resolvers
    # check them the same way.
    is_authenticated = True

    @property
    def is_admin(self):
        return self.role == 'BANK_ADMIN'

    def set_password(self, raw_password):
        self.password_hash = make_password(raw_password)

    def check_password(self, raw_password):
        return check_password(raw_password, self.password_hash)


class KycReview(models.Model):
    """Audit trail of KYC decisions taken by bank officers"""

    client = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='kyc_reviews'
    )
    action = models.CharField(max_length=20)
    reason = models.TextField(blank=True)
    reviewer = models.ForeignKey(
        BankUser,
        on_delete=models.SET_NULL,
        null=True,
        related_name='kyc_reviews'
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"KYC {self.action} for {self.client_id}"


class BankReview(models.Model):
    """A bank's decision on an order: approval or a request for documents"""

    ACTION_CHOICES = [
        ('approve', 'Approve'),
        ('request_docs', 'Request documents'),
    ]

    order = models.ForeignKey(
        'orders.Order',
        on_delete=models.CASCADE,
        related_name='bank_reviews'
    )
    bank = models.ForeignKey(
        Bank,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='reviews'
    )
    reviewer = models.ForeignKey(
        BankUser,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='order_reviews'
    )
    action = models.CharField(max_length=20, choices=ACTION_CHOICES)
    side = models.CharField(max_length=10, blank=True, help_text="buyer or seller")
    comments = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.action} on order {self.order_id} by bank {self.bank_id}"


class PaymentApproval(models.Model):
    """Officer approval or rejection of a payment release"""

    ACTION_CHOICES = [
        ('APPROVE', 'Approve'),
        ('REJECT', 'Reject'),
    ]

    payment_release = models.ForeignKey(
        'orders.PaymentRelease',
        on_delete=models.CASCADE,
        related_name='approvals'
    )
    actor = models.ForeignKey(
        BankUser,
        on_delete=models.SET_NULL,
        null=True,
        related_name='payment_approvals'
    )
    action = models.CharField(max_length=10, choices=ACTION_CHOICES)
    comments = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.action} release {self.payment_release_id}"
