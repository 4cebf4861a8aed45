from django.contrib import admin

from .models import Bank, BankUser, KycReview, BankReview, PaymentApproval


@admin.register(Bank)
class BankAdmin(admin.ModelAdmin):
    list_display = ['name', 'code', 'officers_count', 'created_at']
    search_fields = ['name', 'code']

    def officers_count(self, obj):
        return obj.officers.count()
    officers_count.short_description = "Officers"


@admin.register(BankUser)
class BankUserAdmin(admin.ModelAdmin):
    list_display = ['email', 'name', 'role', 'bank', 'is_banned', 'last_login_at', 'created_at']
    list_filter = ['role', 'is_banned', 'bank']
    search_fields = ['email', 'name']
    exclude = ['password_hash']
    readonly_fields = ['last_login_at', 'created_at', 'updated_at']
    actions = ['ban_selected', 'unban_selected']

    def ban_selected(self, request, queryset):
        updated = queryset.update(is_banned=True)
        self.message_user(request, f"Banned {updated} bank user(s).")
    ban_selected.short_description = "Ban selected bank users"

    def unban_selected(self, request, queryset):
        updated = queryset.update(is_banned=False)
        self.message_user(request, f"Unbanned {updated} bank user(s).")
    unban_selected.short_description = "Unban selected bank users"


@admin.register(KycReview)
class KycReviewAdmin(admin.ModelAdmin):
    list_display = ['client', 'action', 'reviewer', 'created_at']
    list_filter = ['action', 'created_at']
    search_fields = ['client__wallet_address', 'reviewer__email']


@admin.register(BankReview)
class BankReviewAdmin(admin.ModelAdmin):
    list_display = ['order', 'bank', 'side', 'action', 'reviewer', 'created_at']
    list_filter = ['action', 'side', 'bank']
    search_fields = ['order__code']

    def get_queryset(self, request):
        return super().get_queryset(request).select_related('order', 'bank', 'reviewer')


@admin.register(PaymentApproval)
class PaymentApprovalAdmin(admin.ModelAdmin):
    list_display = ['payment_release', 'action', 'actor', 'created_at']
    list_filter = ['action', 'created_at']
