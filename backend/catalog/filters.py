import django_filters
from django.db.models import Q
from .models import Product


class ProductFilter(django_filters.FilterSet):
    """
    Product list filters shared by the storefront and the admin panel
    """
    search = django_filters.CharFilter(method='filter_search', label='Search')
    category = django_filters.NumberFilter(field_name='category_id', lookup_expr='exact')
    category_slug = django_filters.CharFilter(field_name='category__slug', lookup_expr='exact')
    is_active = django_filters.BooleanFilter(field_name='is_active')
    is_featured = django_filters.BooleanFilter(field_name='is_featured')
    in_stock = django_filters.BooleanFilter(method='filter_in_stock', label='In Stock')
    has_expiry = django_filters.BooleanFilter(method='filter_has_expiry', label='Has expiry date')
    expiry_before = django_filters.DateFilter(field_name='expiry_date', lookup_expr='lte')
    min_price = django_filters.NumberFilter(field_name='price', lookup_expr='gte')
    max_price = django_filters.NumberFilter(field_name='price', lookup_expr='lte')
    ordering = django_filters.OrderingFilter(
        fields=(
            ('name', 'name'),
            ('price', 'price'),
            ('stock', 'stock'),
            ('expiry_date', 'expiry_date'),
            ('created_at', 'created_at'),
            ('updated_at', 'updated_at'),
        )
    )

    class Meta:
        model = Product
        fields = ['search', 'category', 'is_active', 'is_featured']

    def filter_search(self, queryset, name, value):
        value = (value or '').strip()
        if not value:
            return queryset
        return queryset.filter(
            Q(name__icontains=value) |
            Q(brand__icontains=value) |
            Q(barcode__iexact=value) |
            Q(description__icontains=value)
        )

    def filter_in_stock(self, queryset, name, value):
        if value is None:
            return queryset
        return queryset.filter(stock__gt=0) if value else queryset.filter(stock__lte=0)

    def filter_has_expiry(self, queryset, name, value):
        if value is None:
            return queryset
        return queryset.filter(expiry_date__isnull=not value)
