from django.template import TemplateSyntaxError
from rest_framework import serializers

from backend.core.models import User
from .email import validate_template_source
from .models import Notification, EmailLog


class NotificationSerializer(serializers.ModelSerializer):
    class Meta:
        model = Notification
        fields = ['id', 'title', 'message', 'type', 'link', 'is_read', 'read_at', 'created_at']
        read_only_fields = fields


class BulkNotificationSerializer(serializers.Serializer):
    """Admin broadcast: explicit users or every admin"""
    user_ids = serializers.ListField(child=serializers.IntegerField(), required=False, allow_empty=False)
    to_admins = serializers.BooleanField(default=False)
    title = serializers.CharField(max_length=200)
    message = serializers.CharField(required=False, allow_blank=True, default='')
    type = serializers.ChoiceField(choices=Notification.TYPE_CHOICES, default='info')
    link = serializers.CharField(required=False, allow_blank=True, default='', max_length=255)

    def validate(self, attrs):
        if not attrs.get('user_ids') and not attrs.get('to_admins'):
            raise serializers.ValidationError('Either user_ids or to_admins is required.')
        if attrs.get('user_ids'):
            found = User.objects.filter(id__in=attrs['user_ids']).count()
            if found != len(set(attrs['user_ids'])):
                raise serializers.ValidationError({'user_ids': 'Unknown user id(s).'})
        return attrs


class EmailTemplateSerializer(serializers.Serializer):
    """Subject and/or body override for one template"""
    subject = serializers.CharField(required=False, allow_blank=True, max_length=255)
    body = serializers.CharField(required=False, allow_blank=True)

    def _validate_source(self, value):
        try:
            validate_template_source(value)
        except TemplateSyntaxError as e:
            raise serializers.ValidationError(f"Template syntax error: {str(e)}")
        return value

    def validate_subject(self, value):
        return self._validate_source(value)

    def validate_body(self, value):
        return self._validate_source(value)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError('Provide a subject or a body.')
        return attrs


class EmailPreviewSerializer(serializers.Serializer):
    context = serializers.DictField(required=False, default=dict)
    subject = serializers.CharField(required=False, allow_blank=True)
    body = serializers.CharField(required=False, allow_blank=True)


class EmailLogSerializer(serializers.ModelSerializer):
    class Meta:
        model = EmailLog
        fields = ['id', 'to_email', 'subject', 'template', 'context', 'status', 'error',
                  'attempts', 'message_id', 'created_at', 'sent_at']
        read_only_fields = fields
