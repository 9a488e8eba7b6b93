from django.db import models
from django.utils.text import slugify
from decimal import Decimal
from backend.core.models import User


def unique_slug(model, value, instance_pk=None, max_length=220):
    """Slugify value and append -2, -3, ... until it is unique for model"""
    base = slugify(value)[:max_length - 10] or 'item'
    slug = base
    counter = 2
    queryset = model.objects.all()
    if instance_pk:
        queryset = queryset.exclude(pk=instance_pk)
    while queryset.filter(slug=slug).exists():
        slug = f"{base}-{counter}"
        counter += 1
    return slug


def default_image_urls():
    return []


class Category(models.Model):
    """Product categories"""
    name = models.CharField(max_length=200, db_index=True)
    slug = models.SlugField(max_length=220, unique=True, blank=True)
    description = models.TextField(blank=True)
    image_url = models.URLField(blank=True)
    sort_order = models.IntegerField(default=0)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    def save(self, *args, **kwargs):
        if not self.slug:
            self.slug = unique_slug(Category, self.name, self.pk)
        super().save(*args, **kwargs)

    class Meta:
        db_table = 'categories'
        verbose_name_plural = 'categories'
        ordering = ['sort_order', 'name']


class Product(models.Model):
    """Product master, including the best-before date tracked by MHD management"""
    UNIT_CHOICES = [
        ('piece', 'Stück'),
        ('kg', 'kg'),
        ('g', 'g'),
        ('l', 'l'),
        ('ml', 'ml'),
        ('pack', 'Packung'),
        ('bunch', 'Bund'),
    ]

    name = models.CharField(max_length=200, db_index=True)
    slug = models.SlugField(max_length=220, unique=True, blank=True)
    description = models.TextField(blank=True)
    category = models.ForeignKey(Category, on_delete=models.SET_NULL, null=True, blank=True, related_name='products')
    brand = models.CharField(max_length=200, blank=True)
    price = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    original_price = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    tax_rate = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal('7.00'))  # e.g., 7.00 for 7%
    stock = models.IntegerField(default=0)
    unit = models.CharField(max_length=20, choices=UNIT_CHOICES, default='piece')
    barcode = models.CharField(max_length=64, blank=True, null=True, db_index=True)
    image_urls = models.JSONField(default=default_image_urls, blank=True)
    is_active = models.BooleanField(default=True, db_index=True)
    is_featured = models.BooleanField(default=False)
    expiry_date = models.DateField(null=True, blank=True, db_index=True)
    exclude_from_expiry_check = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.name} ({self.barcode or 'NO-BARCODE'})"

    def save(self, *args, **kwargs):
        if not self.slug:
            self.slug = unique_slug(Product, self.name, self.pk)
        super().save(*args, **kwargs)

    @property
    def main_image(self):
        return self.image_urls[0] if self.image_urls else None

    class Meta:
        db_table = 'products'
        indexes = [
            models.Index(fields=['expiry_date', 'exclude_from_expiry_check'], name='idx_product_expiry'),
            models.Index(fields=['category', 'is_active'], name='idx_product_category_active'),
        ]


class ProductTaskIgnore(models.Model):
    """A missing-info task the admins decided to ignore for a product"""
    CATEGORY_CHOICES = [
        ('price', 'Missing price'),
        ('image', 'Missing image'),
        ('stock', 'Out of stock'),
        ('barcode', 'Missing barcode'),
    ]

    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='task_ignores')
    category = models.CharField(max_length=20, choices=CATEGORY_CHOICES)
    ignored_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='ignored_tasks')
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.product.name} - {self.category}"

    class Meta:
        db_table = 'product_task_ignores'
        unique_together = [['product', 'category']]


class BulkPriceUpdate(models.Model):
    """Log of bulk price updates, with enough detail to revert them"""
    UPDATE_TYPE_CHOICES = [
        ('increase_percent', 'Increase by %'),
        ('decrease_percent', 'Decrease by %'),
        ('increase_amount', 'Increase by Amount'),
        ('decrease_amount', 'Decrease by Amount'),
        ('set_price', 'Set Price'),
    ]

    update_type = models.CharField(max_length=20, choices=UPDATE_TYPE_CHOICES)
    value = models.DecimalField(max_digits=10, decimal_places=2)
    filters = models.JSONField(default=dict)  # category, product_ids, search
    affected_count = models.IntegerField(default=0)
    changes = models.JSONField(default=list)  # [{"product_id", "name", "old", "new"}]
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, related_name='bulk_price_updates')
    created_at = models.DateTimeField(auto_now_add=True)
    reverted_at = models.DateTimeField(null=True, blank=True)
    reverted_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='reverted_price_updates')

    class Meta:
        db_table = 'bulk_price_updates'
        ordering = ['-created_at']


class BarcodeLabel(models.Model):
    """Printable shelf label (name, price, unit and barcode)"""
    product = models.ForeignKey(Product, on_delete=models.SET_NULL, null=True, blank=True, related_name='shelf_labels')
    name = models.CharField(max_length=200)
    price = models.DecimalField(max_digits=10, decimal_places=2)
    unit = models.CharField(max_length=50, blank=True)
    barcode = models.CharField(max_length=64)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.name} ({self.barcode})"

    class Meta:
        db_table = 'barcode_labels'
        ordering = ['-created_at']
