from django.contrib.auth.models import AbstractUser, UserManager
from django.db import models
from django.conf import settings
from django.utils import timezone
from datetime import timedelta
import logging
import uuid

logger = logging.getLogger(__name__)


class SoftDeleteManager(models.Manager):
    """Manager that filters out soft-deleted objects by default"""

    def get_queryset(self):
        return super().get_queryset().filter(deleted_at__isnull=True)

    def with_deleted(self):
        """Return queryset including soft-deleted objects"""
        return super().get_queryset()

    def only_deleted(self):
        """Return queryset with only soft-deleted objects"""
        return super().get_queryset().filter(deleted_at__isnull=False)


class SoftDeleteModel(models.Model):
    """Base model with soft delete functionality"""

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    deleted_at = models.DateTimeField(null=True, blank=True, help_text="Soft delete timestamp")

    objects = SoftDeleteManager()
    all_objects = models.Manager()  # Access to all objects including deleted

    class Meta:
        abstract = True

    def soft_delete(self):
        """Soft delete the object"""
        self.deleted_at = timezone.now()
        self.save(update_fields=['deleted_at'])

    def restore(self):
        """Restore a soft-deleted object"""
        self.deleted_at = None
        self.save(update_fields=['deleted_at'])

    def hard_delete(self):
        """Permanently delete the object"""
        super().delete()

    @property
    def is_deleted(self):
        """Check if object is soft-deleted"""
        return self.deleted_at is not None


class WalletUserManager(UserManager):
    """User manager that hides soft-deleted users"""

    def get_queryset(self):
        return super().get_queryset().filter(deleted_at__isnull=True)


class User(AbstractUser, SoftDeleteModel):
    """Marketplace participant identified by a wallet address.

    The wallet address doubles as the Django username so that
    django-graphql-jwt can resolve users from token payloads.
    """

    WALLET_TYPES = [
        ('metamask', 'MetaMask'),
        ('hashpack', 'HashPack'),
    ]

    USER_TYPES = [
        ('PRODUCER', 'Producer'),
        ('BUYER', 'Buyer'),
        ('ADMIN', 'Admin'),
    ]

    KYC_STATUS_CHOICES = [
        ('PENDING', 'Pending'),
        ('VERIFIED', 'Verified'),
        ('REJECTED', 'Rejected'),
    ]

    wallet_address = models.CharField(max_length=66, unique=True)
    wallet_type = models.CharField(max_length=10, choices=WALLET_TYPES, default='metamask')
    user_type = models.CharField(max_length=10, choices=USER_TYPES, default='PRODUCER')

    # Sign-in challenge
    nonce = models.CharField(max_length=128, blank=True, null=True)
    nonce_issued_at = models.DateTimeField(null=True, blank=True)
    public_key_hex = models.CharField(
        max_length=130,
        blank=True,
        null=True,
        help_text="Raw ED25519 public key (HashPack) used to verify signatures"
    )

    # Core identity
    full_name = models.CharField(max_length=200, blank=True)
    phone_number = models.CharField(max_length=30, blank=True)
    location = models.CharField(max_length=200, blank=True)

    # Progressive profile
    profile_image = models.URLField(max_length=500, blank=True)
    business_name = models.CharField(max_length=200, blank=True)
    business_desc = models.TextField(blank=True)

    hedera_account_id = models.CharField(max_length=32, blank=True, null=True)
    is_verified = models.BooleanField(default=False)
    kyc_status = models.CharField(max_length=10, choices=KYC_STATUS_CHOICES, default='PENDING')
    kyc_expiry = models.DateTimeField(null=True, blank=True)
    last_login_at = models.DateTimeField(null=True, blank=True)

    objects = WalletUserManager()
    all_objects = models.Manager()

    class Meta:
        ordering = ['-updated_at']
        indexes = [
            models.Index(fields=['user_type', 'kyc_status'], name='user_type_kyc_idx'),
        ]

    def __str__(self):
        return self.full_name or self.wallet_address

    def save(self, *args, **kwargs):
        if not self.username:
            self.username = self.wallet_address
        super().save(*args, **kwargs)

    @property
    def is_producer(self):
        return self.user_type == 'PRODUCER'

    @property
    def is_buyer(self):
        return self.user_type == 'BUYER'

    def nonce_is_valid(self, expiration_minutes=None):
        """Nonces are only accepted for a short window after issuance"""
        if not self.nonce or not self.nonce_issued_at:
            return False
        minutes = expiration_minutes or settings.WALLET_NONCE_TTL_MINUTES
        return timezone.now() < self.nonce_issued_at + timedelta(minutes=minutes)


def default_session_expiry():
    return timezone.now() + timedelta(days=settings.JWT_REFRESH_EXPIRES_DAYS)


class AuthSession(models.Model):
    """Server-side record of an issued token pair; revoking it revokes the tokens"""

    session_id = models.UUIDField(default=uuid.uuid4, unique=True, editable=False)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='auth_sessions'
    )
    token = models.TextField()
    refresh_token = models.TextField()
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.CharField(max_length=500, blank=True)
    is_active = models.BooleanField(default=True)
    expires_at = models.DateTimeField(default=default_session_expiry)
    last_used_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['user', 'is_active'], name='session_user_active_idx'),
        ]

    def __str__(self):
        state = 'active' if self.is_active else 'revoked'
        return f"Session {self.session_id} for {self.user} ({state})"

    @property
    def is_usable(self):
        return self.is_active and self.expires_at > timezone.now()

    def invalidate(self):
        self.is_active = False
        self.save(update_fields=['is_active', 'updated_at'])


class DID(models.Model):
    """Hedera decentralized identifier issued to a verified user"""

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='did'
    )
    did = models.CharField(max_length=200, unique=True)
    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'DID'
        verbose_name_plural = 'DIDs'

    def __str__(self):
        return self.did


class BankAccount(SoftDeleteModel):
    """Bank account a marketplace user gets paid into (or pays from)"""

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='bank_accounts'
    )
    bank_code = models.CharField(max_length=50)
    bank = models.ForeignKey(
        'banks.Bank',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='accounts',
        help_text="Resolved from bank_code when the bank is known"
    )
    rib = models.CharField(max_length=20, help_text="20-digit relevé d'identité bancaire")
    holder_name = models.CharField(max_length=80)
    phone_number = models.CharField(max_length=12)
    email = models.EmailField()
    tax_identification_number = models.CharField(max_length=12, blank=True, null=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.holder_name} - {self.bank_code} ({self.rib[-4:]})"
