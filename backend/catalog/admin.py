from django.contrib import admin
from .models import Category, Product, ProductTaskIgnore, BulkPriceUpdate, BarcodeLabel


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ['name', 'slug', 'sort_order', 'is_active', 'created_at']
    list_filter = ['is_active']
    search_fields = ['name', 'slug']
    ordering = ['sort_order', 'name']
    prepopulated_fields = {'slug': ('name',)}


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ['name', 'category', 'price', 'stock', 'unit', 'barcode', 'expiry_date',
                    'exclude_from_expiry_check', 'is_active']
    list_filter = ['category', 'is_active', 'is_featured', 'exclude_from_expiry_check', 'unit']
    search_fields = ['name', 'brand', 'barcode', 'slug']
    ordering = ['name']
    readonly_fields = ['created_at', 'updated_at']
    date_hierarchy = 'expiry_date'
    fieldsets = (
        ('Basic Information', {
            'fields': ('name', 'slug', 'description', 'category', 'brand', 'image_urls')
        }),
        ('Pricing & Stock', {
            'fields': ('price', 'original_price', 'tax_rate', 'stock', 'unit', 'barcode')
        }),
        ('Best-before date', {
            'fields': ('expiry_date', 'exclude_from_expiry_check')
        }),
        ('Status', {
            'fields': ('is_active', 'is_featured', 'created_at', 'updated_at')
        }),
    )


@admin.register(ProductTaskIgnore)
class ProductTaskIgnoreAdmin(admin.ModelAdmin):
    list_display = ['product', 'category', 'ignored_by', 'created_at']
    list_filter = ['category']
    search_fields = ['product__name']
    ordering = ['-created_at']


@admin.register(BulkPriceUpdate)
class BulkPriceUpdateAdmin(admin.ModelAdmin):
    list_display = ['id', 'update_type', 'value', 'affected_count', 'created_by', 'created_at', 'reverted_at']
    list_filter = ['update_type', 'created_at']
    ordering = ['-created_at']
    readonly_fields = ['update_type', 'value', 'filters', 'affected_count', 'changes', 'created_by',
                       'created_at', 'reverted_at', 'reverted_by']


@admin.register(BarcodeLabel)
class BarcodeLabelAdmin(admin.ModelAdmin):
    list_display = ['name', 'price', 'unit', 'barcode', 'created_at']
    search_fields = ['name', 'barcode']
    ordering = ['-created_at']
