from rest_framework import serializers
from .discounts import get_campaign_badge
from .models import Campaign, Coupon


def _validate_id_list(value, label):
    if value in (None, ''):
        return []
    if not isinstance(value, list) or not all(isinstance(item, int) for item in value):
        raise serializers.ValidationError({label: 'Must be a list of ids'})
    return value


class CampaignSerializer(serializers.ModelSerializer):
    badge = serializers.SerializerMethodField()

    class Meta:
        model = Campaign
        fields = ['id', 'name', 'slug', 'description', 'type', 'discount_percent', 'discount_amount',
                  'buy_quantity', 'get_quantity', 'min_purchase', 'max_discount', 'start_date', 'end_date',
                  'is_active', 'priority', 'usage_limit', 'usage_count', 'apply_to_all', 'category_ids',
                  'product_ids', 'banner_image', 'badge', 'created_at', 'updated_at']
        read_only_fields = ['usage_count', 'created_at', 'updated_at']
        extra_kwargs = {'slug': {'required': False}}

    def get_badge(self, obj):
        return get_campaign_badge(obj)

    def validate(self, attrs):
        def value(field):
            if field in attrs:
                return attrs[field]
            return getattr(self.instance, field, None) if self.instance else None

        start, end = value('start_date'), value('end_date')
        if start and end and start >= end:
            raise serializers.ValidationError({'end_date': 'End date must be after start date'})

        campaign_type = value('type')
        if campaign_type == 'PERCENTAGE':
            percent = value('discount_percent')
            if percent is None or percent <= 0 or percent > 100:
                raise serializers.ValidationError({'discount_percent': 'Percentage must be between 0 and 100'})
        elif campaign_type == 'FIXED_AMOUNT':
            amount = value('discount_amount')
            if amount is None or amount <= 0:
                raise serializers.ValidationError({'discount_amount': 'Amount must be greater than 0'})
        elif campaign_type == 'BUY_X_GET_Y':
            buy, get = value('buy_quantity'), value('get_quantity')
            if not buy or not get:
                raise serializers.ValidationError({'buy_quantity': 'Buy and pay quantities must be greater than 0'})
            if get >= buy:
                raise serializers.ValidationError({'get_quantity': 'Pay quantity must be smaller than buy quantity'})

        if 'category_ids' in attrs:
            attrs['category_ids'] = _validate_id_list(attrs['category_ids'], 'category_ids')
        if 'product_ids' in attrs:
            attrs['product_ids'] = _validate_id_list(attrs['product_ids'], 'product_ids')
        return attrs

    def validate_slug(self, value):
        queryset = Campaign.objects.filter(slug=value)
        if self.instance:
            queryset = queryset.exclude(pk=self.instance.pk)
        if value and queryset.exists():
            raise serializers.ValidationError('This slug is already in use')
        return value


class CouponSerializer(serializers.ModelSerializer):
    class Meta:
        model = Coupon
        fields = ['id', 'code', 'name', 'description', 'type', 'discount_percent', 'discount_amount',
                  'min_purchase', 'max_discount', 'start_date', 'end_date', 'usage_limit', 'usage_count',
                  'user_usage_limit', 'apply_to_all', 'user_ids', 'category_ids', 'product_ids',
                  'is_active', 'created_at', 'updated_at']
        read_only_fields = ['usage_count', 'created_at', 'updated_at']
        # Uniqueness is checked on the upper-cased code below
        extra_kwargs = {'code': {'validators': []}}

    def validate_code(self, value):
        code = (value or '').strip().upper()
        if not code:
            raise serializers.ValidationError('Coupon code is required')
        queryset = Coupon.objects.filter(code=code)
        if self.instance:
            queryset = queryset.exclude(pk=self.instance.pk)
        if queryset.exists():
            raise serializers.ValidationError('This coupon code is already in use')
        return code

    def validate(self, attrs):
        def value(field):
            if field in attrs:
                return attrs[field]
            return getattr(self.instance, field, None) if self.instance else None

        coupon_type = value('type')
        if coupon_type == 'PERCENTAGE':
            percent = value('discount_percent')
            if percent is None or percent <= 0 or percent > 100:
                raise serializers.ValidationError({'discount_percent': 'Enter a valid discount percentage (0-100)'})
        elif coupon_type == 'FIXED_AMOUNT':
            amount = value('discount_amount')
            if amount is None or amount <= 0:
                raise serializers.ValidationError({'discount_amount': 'Enter a valid discount amount'})

        start, end = value('start_date'), value('end_date')
        if start and end and start >= end:
            raise serializers.ValidationError({'end_date': 'End date must be after start date'})

        for field in ('user_ids', 'category_ids', 'product_ids'):
            if field in attrs:
                attrs[field] = _validate_id_list(attrs[field], field)
        return attrs


class CouponValidateSerializer(serializers.Serializer):
    code = serializers.CharField(max_length=50)
