from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.db.models import Q

from backend.core.permissions import HasAdminPermission
from backend.core.utils import create_activity_log, paginated_response_data
from .models import Order
from .serializers import OrderSerializer, OrderCreateSerializer, OrderStatusSerializer, CartItemWriteSerializer
from . import services


# Cart views
@api_view(['GET', 'POST', 'DELETE'])
@permission_classes([IsAuthenticated])
def cart(request):
    """Get the cart, add a product to it, or clear it"""
    if request.method == 'POST':
        serializer = CartItemWriteSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        services.add_to_cart(request.user, serializer.validated_data['product_id'],
                             serializer.validated_data['quantity'])
        return Response(services.serialize_cart(services.get_cart_summary(request.user)),
                        status=status.HTTP_201_CREATED)
    if request.method == 'DELETE':
        services.clear_cart(request.user)
    return Response(services.serialize_cart(services.get_cart_summary(request.user)))


@api_view(['PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def cart_item(request, pk):
    """Change the quantity of a cart line or remove it"""
    if request.method == 'PATCH':
        services.update_cart_item(request.user, pk, request.data.get('quantity'))
    else:
        services.remove_cart_item(request.user, pk)
    return Response(services.serialize_cart(services.get_cart_summary(request.user)))


# Customer order views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def order_list_create(request):
    """List the current user's orders or place a new order"""
    if request.method == 'GET':
        orders = Order.objects.filter(user=request.user).prefetch_related('items').select_related('user')
        status_filter = request.query_params.get('status')
        if status_filter:
            orders = orders.filter(status=status_filter)
        return Response(paginated_response_data(request, orders, OrderSerializer, default_limit=10))

    serializer = OrderCreateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data
    order = services.create_order(
        request.user,
        order_type=data['type'],
        items=data.get('items'),
        address=data.get('address'),
        payment_type=data['payment_type'],
        note=data.get('note', ''),
        coupon_code=data.get('coupon_code'),
    )
    return Response(OrderSerializer(order).data, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def order_detail(request, pk):
    """Retrieve one of the current user's orders"""
    order = services.get_order_for_user(pk, request.user)
    return Response(OrderSerializer(order).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def order_cancel(request, pk):
    """Customer cancellation while the order is pending or accepted"""
    order = services.cancel_order_by_customer(pk, request.user, request.data.get('reason', ''))
    return Response(OrderSerializer(order).data)


# Admin order views
@api_view(['GET'])
@permission_classes([HasAdminPermission('order_management')])
def admin_order_list(request):
    """List all orders with filtering"""
    orders = Order.objects.select_related('user').prefetch_related('items')
    status_filter = request.query_params.get('status')
    if status_filter:
        orders = orders.filter(status=status_filter)
    type_filter = request.query_params.get('type')
    if type_filter:
        orders = orders.filter(type=type_filter)
    search = request.query_params.get('search')
    if search:
        orders = orders.filter(
            Q(order_no__icontains=search) | Q(user__email__icontains=search) |
            Q(user__first_name__icontains=search) | Q(user__last_name__icontains=search)
        )
    date_from = request.query_params.get('date_from')
    date_to = request.query_params.get('date_to')
    if date_from:
        orders = orders.filter(created_at__date__gte=date_from)
    if date_to:
        orders = orders.filter(created_at__date__lte=date_to)
    return Response(paginated_response_data(request, orders, OrderSerializer, default_limit=20))


@api_view(['GET'])
@permission_classes([HasAdminPermission('order_management')])
def admin_order_detail(request, pk):
    order = services.get_order_for_user(pk, request.user)
    return Response(OrderSerializer(order).data)


@api_view(['PUT', 'PATCH'])
@permission_classes([HasAdminPermission('order_management')])
def admin_order_status(request, pk):
    """Change an order's status"""
    serializer = OrderStatusSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    old_status = Order.objects.filter(pk=pk).values_list('status', flat=True).first()
    order = services.update_order_status(pk, serializer.validated_data['status'], request.user,
                                         serializer.validated_data['note'])
    create_activity_log(request=request, action='order_status_change', entity_type='Order',
                        entity_id=order.id, entity_name=order.order_no,
                        details={'from': old_status, 'to': order.status})
    return Response(OrderSerializer(order).data)


@api_view(['GET'])
@permission_classes([HasAdminPermission('order_management')])
def admin_order_stats(request):
    return Response(services.get_order_stats())
