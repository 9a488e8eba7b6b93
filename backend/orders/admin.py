from django.contrib import admin
from .models import CartItem, Order, OrderItem


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    readonly_fields = ['product', 'product_name', 'unit', 'quantity', 'unit_price', 'discount', 'line_total', 'campaign_name']


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ['order_no', 'user', 'type', 'status', 'total', 'payment_type', 'created_at']
    list_filter = ['status', 'type', 'payment_type', 'created_at']
    search_fields = ['order_no', 'user__email', 'user__username']
    ordering = ['-created_at']
    readonly_fields = ['order_no', 'subtotal', 'campaign_discount', 'coupon_discount', 'delivery_fee',
                       'total', 'status_history', 'created_at', 'updated_at']
    inlines = [OrderItemInline]


@admin.register(CartItem)
class CartItemAdmin(admin.ModelAdmin):
    list_display = ['user', 'product', 'quantity', 'updated_at']
    search_fields = ['user__email', 'product__name']
