# Generated manually for the notifications app

import uuid
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='ReminderLog',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('payment_id', models.UUIDField()),
                ('user_id', models.UUIDField(db_index=True)),
                ('kind', models.CharField(choices=[('upcoming', 'Upcoming'), ('due', 'Due today')], max_length=10)),
                ('sent_on', models.DateField()),
                ('delivered', models.PositiveIntegerField(default=0)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
            ],
            options={
                'db_table': 'reminder_logs',
                'ordering': ['-sent_on', '-created_at'],
            },
        ),
        migrations.AddConstraint(
            model_name='reminderlog',
            constraint=models.UniqueConstraint(fields=('payment_id', 'kind', 'sent_on'), name='unique_reminder_per_day'),
        ),
    ]
