from django.contrib import admin

from .models import Order, OrderItem, PaymentRelease, Dispute, DisputeRuling


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    readonly_fields = ['product', 'quantity', 'unit_price', 'line_total']


class PaymentReleaseInline(admin.TabularInline):
    model = PaymentRelease
    extra = 0
    readonly_fields = ['type', 'amount', 'released', 'released_at', 'transaction_id']


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ['code', 'buyer', 'status', 'total', 'buyer_bank_approved', 'seller_bank_approved', 'escrow_address', 'created_at']
    list_filter = ['status', 'buyer_bank_approved', 'seller_bank_approved', 'created_at']
    search_fields = ['code', 'buyer__wallet_address', 'escrow_address', 'payment_transaction_id']
    readonly_fields = ['code', 'subtotal', 'shipping', 'total', 'escrow_address', 'escrow_deploy_tx', 'arbiter_address', 'created_at', 'updated_at']
    inlines = [OrderItemInline, PaymentReleaseInline]

    def get_queryset(self, request):
        return super().get_queryset(request).select_related('buyer', 'buyer_bank', 'seller_bank')


class DisputeRulingInline(admin.TabularInline):
    model = DisputeRuling
    extra = 0


@admin.register(Dispute)
class DisputeAdmin(admin.ModelAdmin):
    list_display = ['order', 'status', 'priority', 'resolution_outcome', 'initiator', 'created_at']
    list_filter = ['status', 'priority', 'resolution_outcome']
    search_fields = ['order__code', 'reason']
    inlines = [DisputeRulingInline]
