from django.contrib import admin
from .models import Campaign, Coupon, CouponUsage


@admin.register(Campaign)
class CampaignAdmin(admin.ModelAdmin):
    list_display = ['name', 'type', 'start_date', 'end_date', 'is_active', 'priority', 'usage_count', 'usage_limit']
    list_filter = ['type', 'is_active', 'apply_to_all']
    search_fields = ['name', 'slug']
    ordering = ['-priority', '-created_at']
    readonly_fields = ['usage_count', 'created_at', 'updated_at']


class CouponUsageInline(admin.TabularInline):
    model = CouponUsage
    extra = 0
    readonly_fields = ['user', 'order', 'discount', 'created_at']


@admin.register(Coupon)
class CouponAdmin(admin.ModelAdmin):
    list_display = ['code', 'type', 'discount_percent', 'discount_amount', 'start_date', 'end_date',
                    'usage_count', 'usage_limit', 'is_active']
    list_filter = ['type', 'is_active']
    search_fields = ['code', 'name']
    ordering = ['-created_at']
    readonly_fields = ['usage_count', 'created_at', 'updated_at']
    inlines = [CouponUsageInline]
