from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from .models import User, StoreSettings, ActivityLog


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ['username', 'email', 'first_name', 'last_name', 'role', 'is_active', 'date_joined']
    list_filter = ['role', 'is_active', 'is_superuser', 'date_joined']
    search_fields = ['username', 'email', 'first_name', 'last_name']
    ordering = ['username']
    fieldsets = BaseUserAdmin.fieldsets + (
        ('Store access', {'fields': ('phone', 'role', 'permissions')}),
    )
    add_fieldsets = BaseUserAdmin.add_fieldsets + (
        ('Store access', {'fields': ('email', 'phone', 'role')}),
    )


@admin.register(StoreSettings)
class StoreSettingsAdmin(admin.ModelAdmin):
    list_display = ['__str__', 'guest_can_view_products', 'min_order_amount', 'free_shipping_threshold', 'updated_at']
    readonly_fields = ['updated_at']

    def has_add_permission(self, request):
        return not StoreSettings.objects.exists()

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(ActivityLog)
class ActivityLogAdmin(admin.ModelAdmin):
    list_display = ['user', 'action', 'entity_type', 'entity_id', 'entity_name', 'ip_address', 'created_at']
    list_filter = ['action', 'entity_type', 'created_at']
    search_fields = ['user__username', 'entity_type', 'entity_id', 'entity_name']
    ordering = ['-created_at']
    readonly_fields = ['user', 'action', 'entity_type', 'entity_id', 'entity_name', 'details', 'ip_address', 'created_at']
