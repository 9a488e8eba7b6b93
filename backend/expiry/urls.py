from django.urls import path
from .views import (
    expiry_settings, expiry_dashboard, critical_products, warning_products,
    label_product, remove_product, update_expiry_date,
    action_history, undo_action, daily_reminder, check_and_notify,
)

urlpatterns = [
    path('admin/expiry/settings/', expiry_settings, name='expiry-settings'),
    path('admin/expiry/dashboard/', expiry_dashboard, name='expiry-dashboard'),
    path('admin/expiry/critical/', critical_products, name='expiry-critical'),
    path('admin/expiry/warning/', warning_products, name='expiry-warning'),

    # Actions
    path('admin/expiry/label/<int:product_id>/', label_product, name='expiry-label'),
    path('admin/expiry/remove/<int:product_id>/', remove_product, name='expiry-remove'),
    path('admin/expiry/update-date/<int:product_id>/', update_expiry_date, name='expiry-update-date'),
    path('admin/expiry/history/', action_history, name='expiry-history'),
    path('admin/expiry/undo/<int:action_id>/', undo_action, name='expiry-undo'),

    # Daily jobs, manual trigger
    path('admin/expiry/daily-reminder/', daily_reminder, name='expiry-daily-reminder'),
    path('admin/expiry/check-and-notify/', check_and_notify, name='expiry-check-and-notify'),
]
