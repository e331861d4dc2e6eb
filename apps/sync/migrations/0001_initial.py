# Generated manually for the sync app

import uuid
from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='SyncOperation',
            fields=[
                ('id', models.BigAutoField(primary_key=True, serialize=False)),
                ('operation_id', models.UUIDField(default=uuid.uuid4, editable=False, unique=True)),
                ('kind', models.CharField(choices=[('create', 'Create'), ('update', 'Update'), ('toggle_payment', 'Toggle payment'), ('soft_delete', 'Soft delete'), ('hard_delete', 'Hard delete'), ('restore', 'Restore')], max_length=20)),
                ('entity_type', models.CharField(choices=[('installment', 'Installment'), ('payment', 'Payment')], default='installment', max_length=20)),
                ('entity_id', models.UUIDField(db_index=True)),
                ('target_id', models.UUIDField(blank=True, null=True)),
                ('payload', models.JSONField(blank=True, default=dict)),
                ('state', models.CharField(choices=[('pending', 'Pending'), ('in_flight', 'In flight'), ('failed_retryable', 'Failed (will retry)'), ('failed_permanent', 'Failed permanently')], default='pending', max_length=20)),
                ('retries', models.PositiveIntegerField(default=0)),
                ('last_error', models.TextField(blank=True)),
                ('next_attempt_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('owner', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='sync_operations', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'sync_operations',
                'ordering': ['id'],
                'indexes': [
                    models.Index(fields=['owner', 'state'], name='sync_operat_owner_i_3e7c52_idx'),
                    models.Index(fields=['state', 'next_attempt_at'], name='sync_operat_state_a90b14_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='CacheEntry',
            fields=[
                ('owner', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, primary_key=True, related_name='cache_entry', serialize=False, to=settings.AUTH_USER_MODEL)),
                ('stamped_at', models.DateTimeField()),
            ],
            options={
                'db_table': 'cache_entries',
                'verbose_name_plural': 'cache entries',
            },
        ),
    ]
