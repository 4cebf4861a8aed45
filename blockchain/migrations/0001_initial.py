# Generated manually for the consensus audit log

from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
    ]

    operations = [
        migrations.CreateModel(
            name='AuditEvent',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('event_type', models.CharField(choices=[('ORDER_CREATED', 'Order created'), ('PAYMENT_RECEIVED', 'Payment received'), ('ESCROW_DEPLOYED', 'Escrow deployed'), ('BANK_APPROVED', 'Bank approved'), ('PAYMENT_RELEASED', 'Payment released'), ('ORDER_SHIPPED', 'Order shipped'), ('ORDER_DELIVERED', 'Order delivered'), ('ORDER_CANCELLED', 'Order cancelled'), ('DOCUMENT_VALIDATED', 'Document validated'), ('DISPUTE_CREATED', 'Dispute created'), ('DISPUTE_RESOLVED', 'Dispute resolved'), ('KYC_VERIFIED', 'KYC verified')], max_length=30)),
                ('reference_id', models.CharField(help_text='Order id (or user id for KYC events)', max_length=64)),
                ('reference_code', models.CharField(blank=True, max_length=100)),
                ('details', models.JSONField(blank=True, default=dict)),
                ('status', models.CharField(choices=[('PENDING', 'Pending'), ('SUBMITTED', 'Submitted'), ('SKIPPED', 'Skipped'), ('FAILED', 'Failed')], default='PENDING', max_length=10)),
                ('transaction_id', models.CharField(blank=True, max_length=100)),
                ('error_message', models.TextField(blank=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('submitted_at', models.DateTimeField(blank=True, null=True)),
            ],
            options={
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['reference_id', 'event_type'], name='audit_ref_event_idx'),
                    models.Index(fields=['status'], name='audit_status_idx'),
                ],
            },
        ),
    ]
