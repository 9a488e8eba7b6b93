# Generated manually for the MHD action log and notification runs

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('core', '0001_initial'),
        ('catalog', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='ExpiryAction',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('action_type', models.CharField(choices=[('labeled', 'Labeled (reduced)'), ('removed', 'Removed from shelf'), ('date_updated', 'Expiry date updated'), ('undone', 'Undone')], db_index=True, max_length=20)),
                ('expiry_date', models.DateField(blank=True, null=True)),
                ('previous_expiry_date', models.DateField(blank=True, null=True)),
                ('days_until_expiry', models.IntegerField(blank=True, null=True)),
                ('excluded_from_check', models.BooleanField(default=False)),
                ('note', models.TextField(blank=True)),
                ('metadata', models.JSONField(blank=True, default=dict)),
                ('is_undone', models.BooleanField(default=False)),
                ('undone_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('admin', models.ForeignKey(null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='expiry_actions', to=settings.AUTH_USER_MODEL)),
                ('previous_action', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='undo_entries', to='expiry.expiryaction')),
                ('product', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='expiry_actions', to='catalog.product')),
                ('undone_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'expiry_actions',
                'ordering': ['-created_at', '-id'],
                'indexes': [models.Index(fields=['product', 'is_undone', '-created_at'], name='idx_expiryaction_product')],
            },
        ),
        migrations.CreateModel(
            name='ExpiryNotificationRun',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('job_type', models.CharField(choices=[('daily_reminder', 'Daily reminder'), ('completion_report', 'Completion report')], max_length=30)),
                ('run_date', models.DateField()),
                ('product_count', models.IntegerField(default=0)),
                ('recipient_count', models.IntegerField(default=0)),
                ('details', models.JSONField(blank=True, default=dict)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
            ],
            options={
                'db_table': 'expiry_notification_runs',
                'ordering': ['-run_date'],
                'unique_together': {('job_type', 'run_date')},
            },
        ),
    ]
