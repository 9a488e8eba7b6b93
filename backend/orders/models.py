from django.db import models
from decimal import Decimal
from backend.core.models import User
from backend.catalog.models import Product


def default_status_history():
    return []


class CartItem(models.Model):
    """A product in a customer's cart"""
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='cart_items')
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='cart_items')
    quantity = models.PositiveIntegerField(default=1)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'cart_items'
        unique_together = [['user', 'product']]
        ordering = ['created_at']


class Order(models.Model):
    """Customer order"""
    TYPE_CHOICES = [
        ('delivery', 'Delivery'),
        ('pickup', 'Pickup'),
    ]

    STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('accepted', 'Accepted'),
        ('preparing', 'Preparing'),
        ('shipped', 'Shipped'),
        ('delivered', 'Delivered'),
        ('cancelled', 'Cancelled'),
    ]

    PAYMENT_CHOICES = [
        ('none', 'None'),
        ('cash', 'Cash'),
        ('card_on_delivery', 'Card on delivery'),
    ]

    order_no = models.CharField(max_length=64, unique=True)
    user = models.ForeignKey(User, on_delete=models.PROTECT, related_name='orders')
    type = models.CharField(max_length=20, choices=TYPE_CHOICES, default='delivery')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pending', db_index=True)
    address = models.JSONField(null=True, blank=True)  # snapshot of the delivery address
    subtotal = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))
    campaign_discount = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))
    coupon = models.ForeignKey('promotions.Coupon', on_delete=models.SET_NULL, null=True, blank=True, related_name='orders')
    coupon_code = models.CharField(max_length=50, blank=True)
    coupon_discount = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))
    delivery_fee = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))
    total = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))
    payment_type = models.CharField(max_length=30, choices=PAYMENT_CHOICES, default='none')
    note = models.TextField(blank=True)
    cancel_reason = models.TextField(blank=True)
    status_history = models.JSONField(default=default_status_history, blank=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.order_no

    class Meta:
        db_table = 'orders'
        ordering = ['-created_at']


class OrderItem(models.Model):
    """Order line with a snapshot of the product at order time"""
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name='items')
    product = models.ForeignKey(Product, on_delete=models.SET_NULL, null=True, related_name='order_items')
    product_name = models.CharField(max_length=200)
    brand = models.CharField(max_length=200, blank=True)
    unit = models.CharField(max_length=20, blank=True)
    quantity = models.PositiveIntegerField()
    unit_price = models.DecimalField(max_digits=10, decimal_places=2)
    discount = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))
    line_total = models.DecimalField(max_digits=10, decimal_places=2)
    campaign_name = models.CharField(max_length=200, blank=True)

    def __str__(self):
        return f"{self.product_name} x {self.quantity}"

    class Meta:
        db_table = 'order_items'
