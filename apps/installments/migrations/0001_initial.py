# Generated manually for the installments app

import uuid
from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone


LIFECYCLE_CHOICES = [('active', 'Active'), ('soft_deleted', 'Soft deleted'), ('purged', 'Purged')]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Installment',
            fields=[
                ('lifecycle', models.CharField(choices=LIFECYCLE_CHOICES, default='active', max_length=20)),
                ('deleted_at', models.DateTimeField(blank=True, null=True)),
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('creditor_name', models.CharField(max_length=200)),
                ('item_description', models.CharField(blank=True, max_length=500)),
                ('total_amount', models.PositiveBigIntegerField()),
                ('installment_amount', models.PositiveBigIntegerField(blank=True, null=True)),
                ('start_date', models.DateField()),
                ('start_date_jalali', models.CharField(max_length=10)),
                ('installment_count', models.PositiveIntegerField(default=1, validators=[MinValueValidator(1)])),
                ('recurrence', models.CharField(choices=[('daily', 'Daily'), ('weekly', 'Weekly'), ('monthly', 'Monthly'), ('yearly', 'Yearly'), ('never', 'Never')], default='monthly', max_length=10)),
                ('payment_time', models.TimeField(blank=True, null=True)),
                ('reminder_days', models.PositiveIntegerField(default=3)),
                ('notes', models.TextField(blank=True)),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('updated_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('owner', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='installments', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'installments',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['owner', 'lifecycle'], name='installment_owner_i_6a1f2c_idx'),
                    models.Index(fields=['owner', 'created_at'], name='installment_owner_i_b83d0e_idx'),
                    models.Index(fields=['lifecycle', 'deleted_at'], name='installment_lifecyc_4c9a71_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Payment',
            fields=[
                ('lifecycle', models.CharField(choices=LIFECYCLE_CHOICES, default='active', max_length=20)),
                ('deleted_at', models.DateTimeField(blank=True, null=True)),
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('due_date', models.DateField()),
                ('due_date_jalali', models.CharField(max_length=10)),
                ('amount', models.PositiveBigIntegerField()),
                ('is_paid', models.BooleanField(default=False)),
                ('paid_date', models.DateField(blank=True, null=True)),
                ('installment', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='payments', to='installments.installment')),
            ],
            options={
                'db_table': 'installment_payments',
                'ordering': ['due_date'],
                'indexes': [
                    models.Index(fields=['installment', 'due_date'], name='installment_install_e0d5b8_idx'),
                    models.Index(fields=['due_date', 'is_paid'], name='installment_due_dat_71f3aa_idx'),
                ],
            },
        ),
    ]
