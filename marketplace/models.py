from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from decimal import Decimal

from users.models import SoftDeleteModel


class Product(SoftDeleteModel):
    """Goods listed by a producer, optionally tokenized as a Hedera NFT collection"""

    NFT_STATUS_CHOICES = [
        ('PENDING', 'Pending'),
        ('MINTED', 'Minted'),
        ('FAILED', 'Failed'),
    ]

    producer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='products'
    )
    name = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    category = models.CharField(max_length=100, blank=True)
    unit = models.CharField(max_length=30, default='kg')
    price_per_unit = models.DecimalField(
        max_digits=18,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0'))]
    )
    quantity = models.PositiveIntegerField(default=0, help_text="Units in stock")
    min_order_qty = models.PositiveIntegerField(default=1)
    country_of_origin = models.CharField(max_length=100, blank=True)
    hs_code = models.CharField(max_length=20, blank=True, help_text="Harmonized System tariff code")
    images = models.JSONField(default=list, blank=True)
    documents = models.JSONField(default=list, blank=True)

    hedera_token_id = models.CharField(max_length=32, blank=True, null=True)
    hedera_serials = models.PositiveIntegerField(default=0, help_text="Number of minted serials")
    nft_status = models.CharField(max_length=10, choices=NFT_STATUS_CHOICES, default='PENDING')
    nft_error = models.TextField(blank=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['category'], name='product_category_idx'),
            models.Index(fields=['producer', 'created_at'], name='product_producer_created_idx'),
        ]

    def __str__(self):
        return f"{self.name} ({self.producer_id})"


class CartItem(models.Model):
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='cart_items'
    )
    product = models.ForeignKey(
        Product,
        on_delete=models.CASCADE,
        related_name='cart_items'
    )
    quantity = models.PositiveIntegerField(default=1)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['created_at']
        constraints = [
            models.UniqueConstraint(fields=['user', 'product'], name='unique_cart_item_per_user_product'),
        ]

    def __str__(self):
        return f"{self.quantity} x {self.product_id} for {self.user_id}"

    @property
    def line_total(self):
        return self.product.price_per_unit * self.quantity
