from django.contrib import admin, messages
from django.urls import reverse
from django.utils import timezone
from django.utils.html import format_html

from .models import User, AuthSession, DID, BankAccount


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ('wallet_address', 'wallet_type', 'user_type', 'full_name', 'email', 'kyc_status_display', 'sessions_count', 'soft_delete_status', 'created_at')
    list_filter = ('wallet_type', 'user_type', 'kyc_status', 'is_verified', 'created_at', 'deleted_at')
    search_fields = ('wallet_address', 'email', 'full_name', 'business_name', 'hedera_account_id')
    readonly_fields = ('nonce', 'nonce_issued_at', 'last_login_at', 'created_at', 'updated_at')
    actions = ('soft_delete_selected',)

    fieldsets = (
        ('Wallet', {
            'fields': ('wallet_address', 'wallet_type', 'user_type', 'public_key_hex', 'hedera_account_id')
        }),
        ('Identity', {
            'fields': ('full_name', 'email', 'phone_number', 'location', 'is_verified', 'kyc_status', 'kyc_expiry')
        }),
        ('Business', {
            'fields': ('business_name', 'business_desc', 'profile_image'),
            'classes': ('collapse',)
        }),
        ('Sign-in', {
            'fields': ('nonce', 'nonce_issued_at', 'last_login_at'),
            'classes': ('collapse',)
        }),
        ('Permissions', {
            'fields': ('is_active', 'is_staff', 'is_superuser'),
            'classes': ('collapse',)
        }),
        ('Timestamps', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )

    def kyc_status_display(self, obj):
        colors = {
            'VERIFIED': 'green',
            'PENDING': 'orange',
            'REJECTED': 'red',
        }
        return format_html(
            '<span style="color: {};">{}</span>',
            colors.get(obj.kyc_status, 'black'),
            obj.get_kyc_status_display()
        )
    kyc_status_display.short_description = "KYC"

    def sessions_count(self, obj):
        count = obj.auth_sessions.filter(is_active=True).count()
        url = reverse('admin:users_authsession_changelist') + f'?user__id__exact={obj.id}'
        return format_html('<a href="{}">{} active</a>', url, count)
    sessions_count.short_description = "Sessions"

    def soft_delete_status(self, obj):
        if obj.deleted_at:
            return format_html('<span style="color: red;">Deleted<br><small>{}</small></span>', timezone.localtime(obj.deleted_at).strftime('%Y-%m-%d %H:%M'))
        return format_html('<span style="color: green;">Active</span>')
    soft_delete_status.short_description = "Status"
    soft_delete_status.admin_order_field = 'deleted_at'

    def get_queryset(self, request):
        qs = self.model.all_objects.get_queryset()
        ordering = self.get_ordering(request)
        if ordering:
            qs = qs.order_by(*ordering)
        return qs

    def get_actions(self, request):
        actions = super().get_actions(request)
        # Orders reference buyers with PROTECT; only soft deletes from the list view
        actions.pop('delete_selected', None)
        return actions

    def soft_delete_selected(self, request, queryset):
        deleted = 0
        for user in queryset:
            if not user.deleted_at:
                user.soft_delete()
                deleted += 1
        if deleted:
            self.message_user(request, f"Soft-deleted {deleted} user(s).", level=messages.SUCCESS)
        else:
            self.message_user(request, "No users were soft-deleted (they may already be deleted).", level=messages.INFO)
    soft_delete_selected.short_description = "Soft delete selected users"


@admin.register(AuthSession)
class AuthSessionAdmin(admin.ModelAdmin):
    list_display = ('session_id', 'user', 'ip_address', 'is_active', 'expires_at', 'last_used_at', 'created_at')
    list_filter = ('is_active', 'created_at')
    search_fields = ('session_id', 'user__wallet_address', 'ip_address')
    readonly_fields = ('session_id', 'token', 'refresh_token', 'created_at', 'updated_at', 'last_used_at')
    actions = ('invalidate_selected',)

    def invalidate_selected(self, request, queryset):
        updated = queryset.filter(is_active=True).update(is_active=False, updated_at=timezone.now())
        self.message_user(request, f"Invalidated {updated} session(s).")
    invalidate_selected.short_description = "Invalidate selected sessions"


@admin.register(DID)
class DIDAdmin(admin.ModelAdmin):
    list_display = ('did', 'user', 'created_at')
    search_fields = ('did', 'user__wallet_address')
    readonly_fields = ('created_at', 'updated_at')


@admin.register(BankAccount)
class BankAccountAdmin(admin.ModelAdmin):
    list_display = ('holder_name', 'user', 'bank_code', 'bank', 'masked_rib', 'created_at')
    list_filter = ('bank_code', 'created_at')
    search_fields = ('holder_name', 'rib', 'user__wallet_address', 'email')

    def masked_rib(self, obj):
        return f"****{obj.rib[-4:]}" if obj.rib else "-"
    masked_rib.short_description = "RIB"
