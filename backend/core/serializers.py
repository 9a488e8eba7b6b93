from decimal import Decimal
from rest_framework import serializers
from django.contrib.auth.password_validation import validate_password
from .models import User, StoreSettings, ActivityLog

PERMISSION_CODES = [code for code, _ in User.PERMISSION_CHOICES]


class UserSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ['id', 'username', 'email', 'first_name', 'last_name', 'phone', 'role',
                  'permissions', 'is_active', 'created_at', 'updated_at']
        read_only_fields = ['role', 'permissions', 'created_at', 'updated_at']


class UserCreateSerializer(serializers.ModelSerializer):
    password = serializers.CharField(write_only=True, validators=[validate_password])
    password_confirm = serializers.CharField(write_only=True)

    class Meta:
        model = User
        fields = ['username', 'email', 'password', 'password_confirm', 'first_name', 'last_name', 'phone']

    def validate(self, attrs):
        if attrs['password'] != attrs['password_confirm']:
            raise serializers.ValidationError({"password": "Passwords don't match"})
        return attrs

    def create(self, validated_data):
        validated_data.pop('password_confirm')
        password = validated_data.pop('password')
        user = User.objects.create(**validated_data, role='customer', is_active=True)
        user.set_password(password)
        user.save()
        return user


class AdminUserSerializer(serializers.ModelSerializer):
    """Admin-side user management including role and permission assignment"""
    password = serializers.CharField(write_only=True, required=False, validators=[validate_password])

    class Meta:
        model = User
        fields = ['id', 'username', 'email', 'password', 'first_name', 'last_name', 'phone', 'role',
                  'permissions', 'is_active', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']

    def validate_permissions(self, value):
        if not isinstance(value, list):
            raise serializers.ValidationError('Permissions must be a list')
        unknown = [code for code in value if code not in PERMISSION_CODES]
        if unknown:
            raise serializers.ValidationError(f"Unknown permissions: {', '.join(map(str, unknown))}")
        return sorted(set(value))

    def create(self, validated_data):
        password = validated_data.pop('password', None)
        user = User(**validated_data)
        if password:
            user.set_password(password)
        else:
            user.set_unusable_password()
        user.save()
        return user

    def update(self, instance, validated_data):
        password = validated_data.pop('password', None)
        for field, value in validated_data.items():
            setattr(instance, field, value)
        if password:
            instance.set_password(password)
        instance.save()
        return instance


class StoreSettingsSerializer(serializers.ModelSerializer):
    class Meta:
        model = StoreSettings
        fields = ['guest_can_view_products', 'order_id_format', 'min_order_amount',
                  'free_shipping_threshold', 'shipping_rules', 'email_notification_settings',
                  'barcode_label_settings', 'expiry_management_settings', 'updated_at']
        # MHD settings are validated by the expiry endpoints
        read_only_fields = ['expiry_management_settings', 'updated_at']

    def validate_min_order_amount(self, value):
        if value < Decimal('0'):
            raise serializers.ValidationError('Minimum order amount cannot be negative')
        return value

    def validate_shipping_rules(self, value):
        if not isinstance(value, list):
            raise serializers.ValidationError('Shipping rules must be a list')
        for rule in value:
            if not isinstance(rule, dict) or 'min' not in rule or 'fee' not in rule:
                raise serializers.ValidationError('Each shipping rule needs "min" and "fee"')
            try:
                if float(rule['min']) < 0 or float(rule['fee']) < 0:
                    raise serializers.ValidationError('Shipping rule values cannot be negative')
                if rule.get('max') is not None and float(rule['max']) < float(rule['min']):
                    raise serializers.ValidationError('Shipping rule "max" must not be below "min"')
            except (TypeError, ValueError):
                raise serializers.ValidationError('Shipping rule values must be numbers')
        return value

    def validate_order_id_format(self, value):
        from backend.orders.order_numbers import validate_order_id_format
        try:
            return validate_order_id_format(value)
        except ValueError as e:
            raise serializers.ValidationError(str(e))

    def update(self, instance, validated_data):
        # JSON settings are merged so partial updates keep untouched keys
        for field in ('order_id_format', 'email_notification_settings', 'barcode_label_settings'):
            if field in validated_data and isinstance(validated_data[field], dict):
                merged = dict(getattr(instance, field) or {})
                merged.update(validated_data[field])
                validated_data[field] = merged
        return super().update(instance, validated_data)


class ActivityLogSerializer(serializers.ModelSerializer):
    user = UserSerializer(read_only=True)

    class Meta:
        model = ActivityLog
        fields = ['id', 'user', 'action', 'entity_type', 'entity_id', 'entity_name',
                  'details', 'ip_address', 'created_at']
