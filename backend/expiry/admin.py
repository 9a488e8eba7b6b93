from django.contrib import admin
from .models import ExpiryAction, ExpiryNotificationRun


@admin.register(ExpiryAction)
class ExpiryActionAdmin(admin.ModelAdmin):
    list_display = ['product', 'action_type', 'expiry_date', 'previous_expiry_date', 'admin', 'is_undone', 'created_at']
    list_filter = ['action_type', 'is_undone', 'created_at']
    search_fields = ['product__name', 'product__barcode', 'admin__username', 'note']
    ordering = ['-created_at']
    readonly_fields = [field.name for field in ExpiryAction._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(ExpiryNotificationRun)
class ExpiryNotificationRunAdmin(admin.ModelAdmin):
    list_display = ['job_type', 'run_date', 'product_count', 'recipient_count', 'created_at']
    list_filter = ['job_type']
    ordering = ['-run_date']
    readonly_fields = ['created_at']
