import logging

from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from backend.core.models import StoreSettings
from backend.core.permissions import HasAdminPermission
from backend.core.utils import create_activity_log, paginated_response_data, parse_bool
from .email import TEMPLATES, default_body, render_email, get_template_overrides
from .models import Notification, EmailLog
from .serializers import (
    NotificationSerializer, BulkNotificationSerializer,
    EmailTemplateSerializer, EmailPreviewSerializer, EmailLogSerializer
)
from . import services

logger = logging.getLogger(__name__)


# User notifications
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def notification_list(request):
    """Own notifications, newest first; ?unread=true for unread only"""
    queryset = Notification.objects.filter(user=request.user)
    if parse_bool(request.query_params.get('unread')):
        queryset = queryset.filter(is_read=False)
    data = paginated_response_data(request, queryset.order_by('-created_at'), NotificationSerializer)
    data['unread_count'] = services.get_unread_count(request.user)
    return Response(data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def notification_unread_count(request):
    return Response({'count': services.get_unread_count(request.user)})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def notification_mark_read(request, pk):
    notification = services.mark_as_read(request.user, pk)
    return Response(NotificationSerializer(notification).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def notification_mark_all_read(request):
    updated = services.mark_all_as_read(request.user)
    return Response({'success': True, 'updated': updated})


@api_view(['DELETE'])
@permission_classes([IsAuthenticated])
def notification_delete(request, pk):
    services.delete_notification(request.user, pk)
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([HasAdminPermission('notification_management')])
def notification_send(request):
    """Send an in-app notification to users or to all admins"""
    serializer = BulkNotificationSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data
    if data.get('to_admins'):
        created = services.notify_admins(None, data['title'], data['message'], data['type'], data['link'])
    else:
        created = services.bulk_create_notifications(data['user_ids'], data['title'], data['message'],
                                                     data['type'], data['link'])
    return Response({'success': True, 'created': created}, status=status.HTTP_201_CREATED)


# Email templates
def _template_payload(name, overrides):
    override = overrides.get(name) or {}
    definition = TEMPLATES[name]
    return {
        'name': name,
        'description': definition['description'],
        'subject': override.get('subject') or definition['subject'],
        'body': override.get('body') or default_body(name),
        'is_customized': bool(override.get('subject') or override.get('body')),
        'sample_context': definition['sample'],
    }


@api_view(['GET'])
@permission_classes([HasAdminPermission('notification_management')])
def email_template_list(request):
    overrides = get_template_overrides()
    return Response([
        {k: v for k, v in _template_payload(name, overrides).items() if k not in ('body', 'sample_context')}
        for name in TEMPLATES
    ])


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([HasAdminPermission('notification_management')])
def email_template_detail(request, name):
    """Get, override or reset (DELETE) a template"""
    if name not in TEMPLATES:
        return Response({'success': False, 'message': f"Email template '{name}' not found"},
                        status=status.HTTP_404_NOT_FOUND)

    store_settings = StoreSettings.load()
    overrides = dict(store_settings.email_templates or {})

    if request.method == 'GET':
        return Response(_template_payload(name, overrides))

    if request.method == 'PUT':
        serializer = EmailTemplateSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        overrides[name] = {**(overrides.get(name) or {}), **serializer.validated_data}
        action = 'update'
    else:
        overrides.pop(name, None)
        action = 'reset'

    store_settings.email_templates = overrides
    store_settings.save()
    create_activity_log(request=request, action='email_template_update', entity_type='EmailTemplate',
                        entity_id=name, entity_name=name, details={'action': action})
    return Response(_template_payload(name, overrides))


@api_view(['POST'])
@permission_classes([HasAdminPermission('notification_management')])
def email_template_preview(request, name):
    """Render a template with sample data; unsaved subject/body may be passed"""
    if name not in TEMPLATES:
        return Response({'success': False, 'message': f"Email template '{name}' not found"},
                        status=status.HTTP_404_NOT_FOUND)
    serializer = EmailPreviewSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data

    overrides = get_template_overrides()
    draft = {key: data[key] for key in ('subject', 'body') if data.get(key)}
    if draft:
        overrides = {**overrides, name: {**(overrides.get(name) or {}), **draft}}
    context = {**TEMPLATES[name]['sample'], **data['context']}
    subject, html = render_email(name, context, overrides=overrides)
    return Response({'subject': subject, 'html': html})


@api_view(['GET'])
@permission_classes([HasAdminPermission('notification_management')])
def email_log_list(request):
    queryset = EmailLog.objects.all()
    for param in ('status', 'template'):
        value = request.query_params.get(param)
        if value:
            queryset = queryset.filter(**{param: value})
    to_email = request.query_params.get('to')
    if to_email:
        queryset = queryset.filter(to_email__icontains=to_email)
    return Response(paginated_response_data(request, queryset.order_by('-created_at'), EmailLogSerializer))


@api_view(['GET'])
@permission_classes([HasAdminPermission('notification_management')])
def email_log_detail(request, pk):
    email_log = get_object_or_404(EmailLog, pk=pk)
    return Response(EmailLogSerializer(email_log).data)
