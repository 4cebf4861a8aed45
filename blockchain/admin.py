from django.contrib import admin
from .models import AuditEvent
from .tasks import submit_audit_event


@admin.register(AuditEvent)
class AuditEventAdmin(admin.ModelAdmin):
    list_display = ['event_type', 'reference_code', 'status', 'transaction_id', 'created_at', 'submitted_at']
    list_filter = ['event_type', 'status', 'created_at']
    search_fields = ['reference_code', 'reference_id', 'transaction_id']
    readonly_fields = ['created_at', 'submitted_at']
    ordering = ['-created_at']
    actions = ['resubmit_events']

    def resubmit_events(self, request, queryset):
        count = 0
        for event in queryset.exclude(status='SUBMITTED'):
            submit_audit_event.delay(event.id)
            count += 1
        self.message_user(request, f"Queued {count} audit event(s) for HCS submission.")
    resubmit_events.short_description = "Resubmit selected events to HCS"
