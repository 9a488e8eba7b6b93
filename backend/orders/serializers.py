from rest_framework import serializers
from .models import Order, OrderItem


class OrderItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderItem
        fields = ['id', 'product', 'product_name', 'brand', 'unit', 'quantity', 'unit_price',
                  'discount', 'line_total', 'campaign_name']


class OrderSerializer(serializers.ModelSerializer):
    items = OrderItemSerializer(many=True, read_only=True)
    customer_name = serializers.CharField(source='user.full_name', read_only=True)
    customer_email = serializers.CharField(source='user.email', read_only=True)

    class Meta:
        model = Order
        fields = ['id', 'order_no', 'user', 'customer_name', 'customer_email', 'type', 'status',
                  'address', 'subtotal', 'campaign_discount', 'coupon_code', 'coupon_discount',
                  'delivery_fee', 'total', 'payment_type', 'note', 'cancel_reason', 'status_history',
                  'items', 'created_at', 'updated_at']
        read_only_fields = fields


class OrderCreateSerializer(serializers.Serializer):
    type = serializers.ChoiceField(choices=Order.TYPE_CHOICES, default='delivery')
    items = serializers.ListField(child=serializers.DictField(), required=False, allow_empty=False)
    address = serializers.DictField(required=False, allow_null=True)
    payment_type = serializers.ChoiceField(choices=Order.PAYMENT_CHOICES, default='none')
    note = serializers.CharField(required=False, allow_blank=True, default='')
    coupon_code = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class OrderStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Order.STATUS_CHOICES)
    note = serializers.CharField(required=False, allow_blank=True, default='')


class CartItemWriteSerializer(serializers.Serializer):
    product_id = serializers.IntegerField()
    quantity = serializers.IntegerField(min_value=1, default=1)
