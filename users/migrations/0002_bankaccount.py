# Generated manually for user bank accounts

from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    dependencies = [
        ('banks', '0001_initial'),
        ('users', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='BankAccount',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('deleted_at', models.DateTimeField(blank=True, help_text='Soft delete timestamp', null=True)),
                ('bank_code', models.CharField(max_length=50)),
                ('rib', models.CharField(help_text="20-digit relevé d'identité bancaire", max_length=20)),
                ('holder_name', models.CharField(max_length=80)),
                ('phone_number', models.CharField(max_length=12)),
                ('email', models.EmailField(max_length=254)),
                ('tax_identification_number', models.CharField(blank=True, max_length=12, null=True)),
                ('bank', models.ForeignKey(blank=True, help_text='Resolved from bank_code when the bank is known', null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='accounts', to='banks.bank')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='bank_accounts', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['-created_at'],
            },
        ),
    ]
