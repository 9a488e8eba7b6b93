import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from backend.core.exceptions import ForbiddenError, ValidationError
from backend.core.permissions import HasAdminPermission
from backend.core.utils import create_activity_log
from . import services
from .serializers import (
    ExpiryActionSerializer, ExpiryProductSerializer,
    LabelRequestSerializer, RemoveRequestSerializer,
    UpdateDateRequestSerializer, NotifyRequestSerializer
)

logger = logging.getLogger(__name__)


def _log_action(request, log_action, action, extra=None):
    create_activity_log(
        request=request,
        action=log_action,
        entity_type='Product',
        entity_id=action.product_id,
        entity_name=action.product.name,
        details={
            'expiry_action_id': action.id,
            'action_type': action.action_type,
            'expiry_date': action.expiry_date.isoformat() if action.expiry_date else None,
            'previous_expiry_date': action.previous_expiry_date.isoformat() if action.previous_expiry_date else None,
            **(extra or {}),
        },
    )


@api_view(['GET', 'PUT'])
@permission_classes([HasAdminPermission('expiry_management_view')])
def expiry_settings(request):
    """Get or update the MHD settings (warningDays, criticalDays, processingDeadline, enabled)"""
    if request.method == 'GET':
        return Response(services.get_expiry_settings())

    if not request.user.has_admin_permission('expiry_management_settings'):
        raise ForbiddenError('Missing permission: expiry_management_settings')
    updated = services.update_expiry_settings(request.data)
    create_activity_log(request=request, action='expiry_settings_update', entity_type='StoreSettings',
                        entity_id=1, entity_name='MHD settings', details=updated)
    return Response(updated)


@api_view(['GET'])
@permission_classes([HasAdminPermission('expiry_management_view')])
def expiry_dashboard(request):
    """Daily worklist; ?previewDate=YYYY-MM-DD shows another day"""
    preview_date = request.query_params.get('previewDate')
    today = services.parse_date_value(preview_date, 'previewDate') if preview_date else None
    return Response(services.get_expiry_dashboard(today))


@api_view(['GET'])
@permission_classes([HasAdminPermission('expiry_management_view')])
def critical_products(request):
    products = services.get_critical_products()
    return Response(ExpiryProductSerializer(products, many=True).data)


@api_view(['GET'])
@permission_classes([HasAdminPermission('expiry_management_view')])
def warning_products(request):
    products = services.get_warning_products()
    return Response(ExpiryProductSerializer(products, many=True).data)


@api_view(['POST'])
@permission_classes([HasAdminPermission('expiry_management_action')])
def label_product(request, product_id):
    """Mark a product as labeled with a reduced price"""
    serializer = LabelRequestSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    action = services.label_product(product_id, request.user, serializer.validated_data.get('note'))
    _log_action(request, 'expiry_label', action)
    return Response(ExpiryActionSerializer(action).data, status=status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([HasAdminPermission('expiry_management_action')])
def remove_product(request, product_id):
    """Take a product off the shelf; scenario 'out_of_stock' always excludes it from checks"""
    serializer = RemoveRequestSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data

    scenario = data.get('scenario')
    exclude = True if scenario == 'out_of_stock' else data['excludeFromCheck']
    action = services.remove_product(
        product_id,
        request.user,
        exclude_from_check=exclude,
        note=data.get('note'),
        new_expiry_date=data.get('newExpiryDate'),
        context={'action': data.get('action') or data.get('mode'), 'scenario': scenario},
    )
    _log_action(request, 'expiry_remove', action, {'excluded_from_check': exclude, 'scenario': scenario})
    return Response(ExpiryActionSerializer(action).data, status=status.HTTP_201_CREATED)


@api_view(['PUT'])
@permission_classes([HasAdminPermission('expiry_management_action')])
def update_expiry_date(request, product_id):
    serializer = UpdateDateRequestSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    action = services.update_expiry_date(product_id, request.user, serializer.validated_data['newExpiryDate'],
                                         serializer.validated_data.get('note'))
    _log_action(request, 'expiry_date_update', action)
    return Response(ExpiryActionSerializer(action).data)


@api_view(['GET'])
@permission_classes([HasAdminPermission('expiry_management_view')])
def action_history(request):
    """Action log filtered by adminId, productId, actionType and date"""
    params = request.query_params
    history = services.get_action_history({
        'admin_id': params.get('adminId'),
        'product_id': params.get('productId'),
        'action_type': params.get('actionType'),
        'date': params.get('date'),
        'limit': params.get('limit'),
        'offset': params.get('offset'),
    })
    history['actions'] = ExpiryActionSerializer(history['actions'], many=True).data
    return Response(history)


@api_view(['POST'])
@permission_classes([HasAdminPermission('expiry_management_action')])
def undo_action(request, action_id):
    undo_entry = services.undo_action(action_id, request.user)
    _log_action(request, 'expiry_undo', undo_entry, {'undone_action_id': undo_entry.previous_action_id})
    return Response(ExpiryActionSerializer(undo_entry).data, status=status.HTTP_201_CREATED)


def _notify_params(request):
    serializer = NotifyRequestSerializer(data=request.data)
    if not serializer.is_valid():
        raise ValidationError('Invalid request', details=serializer.errors)
    return serializer.validated_data.get('date'), serializer.validated_data['force']


@api_view(['POST'])
@permission_classes([HasAdminPermission('expiry_management_action')])
def daily_reminder(request):
    """Send the morning reminder now (skipped if already sent today unless force=true)"""
    run_date, force = _notify_params(request)
    result = services.notify_daily_expiry_products(run_date, force=force)
    create_activity_log(request=request, action='expiry_notify', entity_type='ExpiryNotificationRun',
                        entity_name='daily_reminder', details={k: result[k] for k in ('message', 'count')})
    return Response(result)


@api_view(['POST'])
@permission_classes([HasAdminPermission('expiry_management_action')])
def check_and_notify(request):
    """Send the completion report of today's actions"""
    run_date, force = _notify_params(request)
    result = services.check_expired_products_and_notify_admins(run_date, force=force)
    create_activity_log(request=request, action='expiry_notify', entity_type='ExpiryNotificationRun',
                        entity_name='completion_report', details={k: result[k] for k in ('message', 'count')})
    return Response(result)
