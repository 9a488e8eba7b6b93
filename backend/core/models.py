from decimal import Decimal
from django.contrib.auth.models import AbstractUser
from django.core.cache import cache
from django.db import models


def default_user_permissions():
    return []


def default_order_id_format():
    return {
        'prefix': 'GS',
        'separator': '-',
        'dateFormat': 'YYYYMMDD',
        'numberFormat': 'sequential',
        'numberPadding': 4,
        'resetPeriod': 'daily',
        'caseTransform': 'uppercase',
        'startFrom': 1,
    }


def default_shipping_rules():
    return [
        {'min': 0, 'max': 49.99, 'fee': 4.99},
        {'min': 50, 'max': None, 'fee': 0},
    ]


def default_email_notification_settings():
    return {
        'adminEmail': '',
        'notifyOnNewOrder': True,
        'notifyOnOrderStatus': {
            'accepted': True,
            'preparing': True,
            'shipped': True,
            'delivered': True,
            'cancelled': True,
        },
    }


def default_barcode_label_settings():
    return {
        'nameFontSize': 18,
        'priceFontSize': 32,
        'unitFontSize': 12,
        'barcodeFontSize': 12,
        'width': 400,
        'height': 240,
    }


def default_expiry_management_settings():
    return {
        'enabled': True,
        'warningDays': 3,
        'criticalDays': 0,
        'processingDeadline': '20:00',
    }


class User(AbstractUser):
    """Store user: customers shop, admins work the back office"""
    ROLE_CHOICES = [
        ('customer', 'Customer'),
        ('admin', 'Admin'),
        ('superadmin', 'Super Admin'),
    ]

    PERMISSION_CHOICES = [
        ('expiry_management_view', 'View MHD management'),
        ('expiry_management_action', 'Process MHD tasks'),
        ('expiry_management_settings', 'Change MHD settings'),
        ('product_management', 'Manage products'),
        ('order_management', 'Manage orders'),
        ('campaign_management', 'Manage campaigns'),
        ('coupon_management', 'Manage coupons'),
        ('notification_management', 'Manage notifications and email templates'),
        ('settings_management', 'Manage store settings'),
        ('activity_log_view', 'View activity log'),
    ]

    email = models.EmailField(unique=True)
    phone = models.CharField(max_length=20, blank=True, null=True)
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default='customer')
    permissions = models.JSONField(default=default_user_permissions, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'users'

    @property
    def is_admin(self):
        return self.role in ('admin', 'superadmin')

    def has_admin_permission(self, code):
        if not self.is_active:
            return False
        if self.role == 'superadmin':
            return True
        return self.role == 'admin' and code in (self.permissions or [])

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip() or self.username


class StoreSettings(models.Model):
    """Store-wide settings, a single row per tenant database"""
    CACHE_KEY = 'store_settings:singleton'
    CACHE_TTL = 300

    guest_can_view_products = models.BooleanField(default=True)
    order_id_format = models.JSONField(default=default_order_id_format)
    min_order_amount = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))
    free_shipping_threshold = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    shipping_rules = models.JSONField(default=default_shipping_rules)
    email_notification_settings = models.JSONField(default=default_email_notification_settings)
    email_templates = models.JSONField(default=dict, blank=True)
    barcode_label_settings = models.JSONField(default=default_barcode_label_settings)
    expiry_management_settings = models.JSONField(default=default_expiry_management_settings)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'store_settings'
        verbose_name_plural = 'Store settings'

    def __str__(self):
        return 'Store settings'

    def save(self, *args, **kwargs):
        self.pk = 1
        super().save(*args, **kwargs)
        cache.delete(self.CACHE_KEY)

    @classmethod
    def load(cls):
        """Return the settings row, creating it with defaults on first access"""
        instance = cache.get(cls.CACHE_KEY)
        if instance is None:
            instance, _ = cls.objects.get_or_create(pk=1)
            cache.set(cls.CACHE_KEY, instance, cls.CACHE_TTL)
        return instance


class ActivityLog(models.Model):
    """Activity log for admin operations"""
    ACTION_CHOICES = [
        ('create', 'Create'),
        ('update', 'Update'),
        ('delete', 'Delete'),
        ('price_change', 'Price Change'),
        ('bulk_price_update', 'Bulk Price Update'),
        ('bulk_price_revert', 'Bulk Price Revert'),
        ('order_status_change', 'Order Status Change'),
        ('settings_update', 'Settings Update'),
        ('email_template_update', 'Email Template Update'),
        ('expiry_label', 'MHD Labeled'),
        ('expiry_remove', 'MHD Removed'),
        ('expiry_date_update', 'MHD Date Updated'),
        ('expiry_undo', 'MHD Action Undone'),
        ('expiry_settings_update', 'MHD Settings Updated'),
        ('expiry_notify', 'MHD Notification Sent'),
        ('task_ignore', 'Task Ignored'),
    ]

    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, related_name='activity_logs')
    action = models.CharField(max_length=50, choices=ACTION_CHOICES)
    entity_type = models.CharField(max_length=100)
    entity_id = models.CharField(max_length=100, blank=True)
    entity_name = models.CharField(max_length=255, blank=True, null=True)
    details = models.JSONField(default=dict, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'activity_logs'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['-created_at'], name='idx_activity_created'),
            models.Index(fields=['action'], name='idx_activity_action'),
            models.Index(fields=['entity_type'], name='idx_activity_entity_type'),
        ]

    def __str__(self):
        return f"{self.action} {self.entity_type}#{self.entity_id}"
