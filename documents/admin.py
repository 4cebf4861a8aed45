from django.contrib import admin

from .models import Document


@admin.register(Document)
class DocumentAdmin(admin.ModelAdmin):
    list_display = ['filename', 'document_type', 'status', 'uploader', 'order', 'cid', 'created_at']
    list_filter = ['document_type', 'status', 'created_at']
    search_fields = ['filename', 'cid', 'sha256', 'order__code']
    readonly_fields = ['cid', 'url', 'sha256', 'size', 'validated_by', 'validated_at', 'created_at', 'updated_at']
