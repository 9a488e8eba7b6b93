from rest_framework import serializers
from django.utils import timezone
from .models import Category, Product, ProductTaskIgnore, BulkPriceUpdate, BarcodeLabel


class CategorySerializer(serializers.ModelSerializer):
    product_count = serializers.SerializerMethodField()

    class Meta:
        model = Category
        fields = ['id', 'name', 'slug', 'description', 'image_url', 'sort_order', 'is_active',
                  'product_count', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']
        extra_kwargs = {'slug': {'required': False}}

    def get_product_count(self, obj):
        annotated = getattr(obj, 'annotated_product_count', None)
        if annotated is not None:
            return annotated
        return obj.products.filter(is_active=True).count()


class ProductSerializer(serializers.ModelSerializer):
    """Full product representation for the admin panel"""
    category_name = serializers.CharField(source='category.name', read_only=True, default=None)
    days_until_expiry = serializers.SerializerMethodField()

    class Meta:
        model = Product
        fields = ['id', 'name', 'slug', 'description', 'category', 'category_name', 'brand',
                  'price', 'original_price', 'tax_rate', 'stock', 'unit', 'barcode', 'image_urls',
                  'is_active', 'is_featured', 'expiry_date', 'exclude_from_expiry_check',
                  'days_until_expiry', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']
        extra_kwargs = {'slug': {'required': False}}

    def get_days_until_expiry(self, obj):
        if not obj.expiry_date:
            return None
        return (obj.expiry_date - timezone.localdate()).days

    def validate_price(self, value):
        if value is not None and value < 0:
            raise serializers.ValidationError('Price cannot be negative')
        return value

    def validate_stock(self, value):
        if value < 0:
            raise serializers.ValidationError('Stock cannot be negative')
        return value

    def validate_image_urls(self, value):
        if not isinstance(value, list) or not all(isinstance(url, str) for url in value):
            raise serializers.ValidationError('image_urls must be a list of URLs')
        return value

    def validate_barcode(self, value):
        if value:
            value = value.strip()
            queryset = Product.objects.filter(barcode=value)
            if self.instance:
                queryset = queryset.exclude(pk=self.instance.pk)
            if queryset.exists():
                raise serializers.ValidationError('Another product already uses this barcode')
        return value or None


class ProductListSerializer(serializers.ModelSerializer):
    """Storefront product representation with campaign pricing"""
    category_name = serializers.CharField(source='category.name', read_only=True, default=None)
    image = serializers.CharField(source='main_image', read_only=True)
    pricing = serializers.SerializerMethodField()

    class Meta:
        model = Product
        fields = ['id', 'name', 'slug', 'category', 'category_name', 'brand', 'price', 'original_price',
                  'unit', 'stock', 'image', 'image_urls', 'is_featured', 'pricing']

    def get_pricing(self, obj):
        calculator = self.context.get('calculator')
        if calculator is None or obj.price is None:
            return None
        return calculator.product_pricing(obj)


class ProductTaskIgnoreSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source='product.name', read_only=True)

    class Meta:
        model = ProductTaskIgnore
        fields = ['id', 'product', 'product_name', 'category', 'ignored_by', 'created_at']
        read_only_fields = ['ignored_by', 'created_at']


class BulkPriceRequestSerializer(serializers.Serializer):
    update_type = serializers.ChoiceField(choices=BulkPriceUpdate.UPDATE_TYPE_CHOICES)
    value = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0)
    filters = serializers.DictField(required=False, default=dict)


class BulkPriceUpdateSerializer(serializers.ModelSerializer):
    created_by_name = serializers.CharField(source='created_by.username', read_only=True, default=None)

    class Meta:
        model = BulkPriceUpdate
        fields = ['id', 'update_type', 'value', 'filters', 'affected_count', 'changes',
                  'created_by', 'created_by_name', 'created_at', 'reverted_at', 'reverted_by']
        read_only_fields = fields


class BarcodeLabelSerializer(serializers.ModelSerializer):
    class Meta:
        model = BarcodeLabel
        fields = ['id', 'product', 'name', 'price', 'unit', 'barcode', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']

    def validate_barcode(self, value):
        value = (value or '').strip()
        if not value:
            raise serializers.ValidationError('Barcode is required')
        if len(value) > 48:
            raise serializers.ValidationError('Barcode is too long for a shelf label')
        return value
