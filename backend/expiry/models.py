from django.db import models
from backend.core.models import User
from backend.catalog.models import Product


class ExpiryAction(models.Model):
    """
    Append-only log of what an admin did about a product close to its best-before date.
    Rows are never deleted; undoing flags the action and appends an 'undone' entry.
    """
    ACTION_TYPE_CHOICES = [
        ('labeled', 'Labeled (reduced)'),
        ('removed', 'Removed from shelf'),
        ('date_updated', 'Expiry date updated'),
        ('undone', 'Undone'),
    ]

    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='expiry_actions')
    admin = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, related_name='expiry_actions')
    action_type = models.CharField(max_length=20, choices=ACTION_TYPE_CHOICES, db_index=True)
    expiry_date = models.DateField(null=True, blank=True)  # resulting date
    previous_expiry_date = models.DateField(null=True, blank=True)
    days_until_expiry = models.IntegerField(null=True, blank=True)
    excluded_from_check = models.BooleanField(default=False)
    note = models.TextField(blank=True)
    metadata = models.JSONField(default=dict, blank=True)
    is_undone = models.BooleanField(default=False)
    undone_at = models.DateTimeField(null=True, blank=True)
    undone_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    previous_action = models.ForeignKey('self', on_delete=models.SET_NULL, null=True, blank=True,
                                        related_name='undo_entries')
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    def __str__(self):
        return f"{self.action_type} product={self.product_id}"

    class Meta:
        db_table = 'expiry_actions'
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['product', 'is_undone', '-created_at'], name='idx_expiryaction_product'),
        ]


class ExpiryNotificationRun(models.Model):
    """Marks a daily MHD job as done for a store-local date"""
    JOB_TYPE_CHOICES = [
        ('daily_reminder', 'Daily reminder'),
        ('completion_report', 'Completion report'),
    ]

    job_type = models.CharField(max_length=30, choices=JOB_TYPE_CHOICES)
    run_date = models.DateField()
    product_count = models.IntegerField(default=0)
    recipient_count = models.IntegerField(default=0)
    details = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.job_type} {self.run_date}"

    class Meta:
        db_table = 'expiry_notification_runs'
        unique_together = ['job_type', 'run_date']
        ordering = ['-run_date']
