from django.urls import path
from .views import (
    notification_list, notification_unread_count, notification_mark_read,
    notification_mark_all_read, notification_delete, notification_send,
    email_template_list, email_template_detail, email_template_preview,
    email_log_list, email_log_detail,
)

urlpatterns = [
    # Own notifications
    path('notifications/', notification_list, name='notification-list'),
    path('notifications/unread-count/', notification_unread_count, name='notification-unread-count'),
    path('notifications/read-all/', notification_mark_all_read, name='notification-read-all'),
    path('notifications/<int:pk>/read/', notification_mark_read, name='notification-read'),
    path('notifications/<int:pk>/', notification_delete, name='notification-delete'),

    # Admin
    path('admin/notifications/send/', notification_send, name='notification-send'),
    path('admin/email-templates/', email_template_list, name='email-template-list'),
    path('admin/email-templates/<slug:name>/', email_template_detail, name='email-template-detail'),
    path('admin/email-templates/<slug:name>/preview/', email_template_preview, name='email-template-preview'),
    path('admin/email-logs/', email_log_list, name='email-log-list'),
    path('admin/email-logs/<int:pk>/', email_log_detail, name='email-log-detail'),
]
