from django.contrib import admin
from .models import Notification, EmailLog


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ['title', 'user', 'type', 'is_read', 'created_at']
    list_filter = ['type', 'is_read', 'created_at']
    search_fields = ['title', 'message', 'user__username', 'user__email']
    ordering = ['-created_at']


@admin.register(EmailLog)
class EmailLogAdmin(admin.ModelAdmin):
    list_display = ['to_email', 'template', 'subject', 'status', 'attempts', 'created_at', 'sent_at']
    list_filter = ['status', 'template', 'created_at']
    search_fields = ['to_email', 'subject', 'message_id']
    ordering = ['-created_at']
    readonly_fields = ['to_email', 'subject', 'template', 'context', 'status', 'error',
                       'attempts', 'message_id', 'created_at', 'sent_at']
