from rest_framework import serializers

from backend.catalog.models import Product
from .models import ExpiryAction


class ExpiryAdminSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    first_name = serializers.CharField()
    email = serializers.EmailField()


class ExpiryActionProductSerializer(serializers.ModelSerializer):
    class Meta:
        model = Product
        fields = ['id', 'name', 'slug', 'barcode', 'expiry_date', 'exclude_from_expiry_check']


class ExpiryActionSerializer(serializers.ModelSerializer):
    product = ExpiryActionProductSerializer(read_only=True)
    admin = ExpiryAdminSerializer(read_only=True)
    undone_by = ExpiryAdminSerializer(read_only=True)

    class Meta:
        model = ExpiryAction
        fields = [
            'id', 'product', 'admin', 'action_type', 'expiry_date', 'previous_expiry_date',
            'days_until_expiry', 'excluded_from_check', 'note', 'metadata',
            'is_undone', 'undone_at', 'undone_by', 'previous_action', 'created_at'
        ]
        read_only_fields = fields


class ExpiryProductSerializer(serializers.ModelSerializer):
    """Product in the critical/warning lists, annotated by the expiry services"""
    category = serializers.SerializerMethodField()
    days_until_expiry = serializers.IntegerField(read_only=True)
    last_action = serializers.SerializerMethodField()

    class Meta:
        model = Product
        fields = [
            'id', 'name', 'slug', 'barcode', 'brand', 'stock', 'unit', 'price', 'category',
            'expiry_date', 'days_until_expiry', 'last_action'
        ]
        read_only_fields = fields

    def get_category(self, obj):
        if obj.category is None:
            return None
        return {'id': obj.category.id, 'name': obj.category.name}

    def get_last_action(self, obj):
        action = getattr(obj, 'last_action', None)
        if action is None:
            return None
        return {
            'id': action.id,
            'action_type': action.action_type,
            'expiry_date': action.expiry_date,
            'created_at': action.created_at,
            'admin': ExpiryAdminSerializer(action.admin).data if action.admin else None,
        }


class LabelRequestSerializer(serializers.Serializer):
    note = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class RemoveRequestSerializer(serializers.Serializer):
    SCENARIO_CHOICES = ['out_of_stock', 'new_stock', 'expired', 'damaged', 'other']

    excludeFromCheck = serializers.BooleanField(required=False, default=False)
    note = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    newExpiryDate = serializers.DateField(required=False, allow_null=True)
    action = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    mode = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    scenario = serializers.ChoiceField(choices=SCENARIO_CHOICES, required=False, allow_null=True)


class UpdateDateRequestSerializer(serializers.Serializer):
    newExpiryDate = serializers.DateField()
    note = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class NotifyRequestSerializer(serializers.Serializer):
    date = serializers.DateField(required=False, allow_null=True)
    force = serializers.BooleanField(required=False, default=False)
