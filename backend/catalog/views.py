import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import AllowAny
from django.db.models import Count, Q
from django.http import HttpResponse
from django.shortcuts import get_object_or_404

from backend.core.models import StoreSettings
from backend.core.permissions import HasAdminPermission, AdminPermissionOrReadOnly
from backend.core.cache_utils import get_cached_products_list, cache_products_list
from backend.core.utils import create_activity_log, paginated_response_data, parse_bool
from backend.promotions.discounts import DiscountCalculator
from backend.promotions.services import get_active_campaigns
from .filters import ProductFilter
from .label_generator import generate_shelf_label, label_data_url
from .models import Category, Product, ProductTaskIgnore, BulkPriceUpdate, BarcodeLabel
from .pricing import preview_bulk_price_update, apply_bulk_price_update, revert_bulk_price_update
from .serializers import (
    CategorySerializer, ProductSerializer, ProductListSerializer, ProductTaskIgnoreSerializer,
    BulkPriceRequestSerializer, BulkPriceUpdateSerializer, BarcodeLabelSerializer
)
from .task_board import get_product_tasks, ignore_task, remove_ignore

logger = logging.getLogger(__name__)


def _is_catalog_admin(user):
    return bool(user and user.is_authenticated and user.has_admin_permission('product_management'))


def _guest_blocked(request):
    return not request.user.is_authenticated and not StoreSettings.load().guest_can_view_products


# Category views
@api_view(['GET', 'POST'])
@permission_classes([AdminPermissionOrReadOnly('product_management')])
def category_list_create(request):
    """List categories or create a new category"""
    if request.method == 'GET':
        categories = Category.objects.annotate(
            annotated_product_count=Count('products', filter=Q(products__is_active=True))
        )
        if not _is_catalog_admin(request.user) or not parse_bool(request.query_params.get('include_inactive'), False):
            categories = categories.filter(is_active=True)
        serializer = CategorySerializer(categories.order_by('sort_order', 'name'), many=True)
        return Response(serializer.data)
    else:  # POST
        serializer = CategorySerializer(data=request.data)
        if serializer.is_valid():
            category = serializer.save()
            create_activity_log(request=request, action='create', entity_type='Category',
                                entity_id=category.id, entity_name=category.name)
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([AdminPermissionOrReadOnly('product_management')])
def category_detail(request, pk):
    """Retrieve, update or delete a category"""
    category = get_object_or_404(Category, pk=pk)

    if request.method == 'GET':
        return Response(CategorySerializer(category).data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = CategorySerializer(category, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            create_activity_log(request=request, action='update', entity_type='Category',
                                entity_id=category.id, entity_name=category.name)
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        create_activity_log(request=request, action='delete', entity_type='Category',
                            entity_id=category.id, entity_name=category.name)
        category.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


# Product views
@api_view(['GET', 'POST'])
@permission_classes([AdminPermissionOrReadOnly('product_management')])
def product_list_create(request):
    """List products (storefront or admin view) or create a new product"""
    if request.method == 'POST':
        serializer = ProductSerializer(data=request.data)
        if serializer.is_valid():
            product = serializer.save()
            create_activity_log(request=request, action='create', entity_type='Product',
                                entity_id=product.id, entity_name=product.name)
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    if _guest_blocked(request):
        return Response({'success': False, 'message': 'Please log in to view products'},
                        status=status.HTTP_401_UNAUTHORIZED)

    queryset = Product.objects.select_related('category')
    if _is_catalog_admin(request.user):
        filterset = ProductFilter(request.query_params, queryset=queryset)
        queryset = filterset.qs
        if not queryset.query.order_by:
            queryset = queryset.order_by('-updated_at', '-created_at')
        return Response(paginated_response_data(request, queryset, ProductSerializer))

    # Storefront: active products only, cached per filter combination
    filters_dict = {key: request.query_params.get(key) for key in sorted(request.query_params.keys())}
    cached_data, cache_key = get_cached_products_list(filters_dict)
    if cached_data is not None:
        return Response(cached_data)

    filterset = ProductFilter(request.query_params, queryset=queryset.filter(is_active=True))
    queryset = filterset.qs
    if not queryset.query.order_by:
        queryset = queryset.order_by('-is_featured', 'name')
    context = {'request': request, 'calculator': DiscountCalculator(get_active_campaigns())}
    data = paginated_response_data(request, queryset, ProductListSerializer, context=context)
    cache_products_list(cache_key, data)
    return Response(data)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([AdminPermissionOrReadOnly('product_management')])
def product_detail(request, pk):
    """Retrieve, update or delete a product"""
    product = get_object_or_404(Product.objects.select_related('category'), pk=pk)

    if request.method == 'GET':
        if _is_catalog_admin(request.user):
            return Response(ProductSerializer(product).data)
        if not product.is_active or _guest_blocked(request):
            return Response({'success': False, 'message': 'Product not found'}, status=status.HTTP_404_NOT_FOUND)
        context = {'request': request, 'calculator': DiscountCalculator(get_active_campaigns())}
        return Response(ProductListSerializer(product, context=context).data)
    elif request.method in ('PUT', 'PATCH'):
        old_price = product.price
        old_expiry = product.expiry_date
        serializer = ProductSerializer(product, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            product = serializer.save()
            create_activity_log(request=request, action='update', entity_type='Product',
                                entity_id=product.id, entity_name=product.name,
                                details={'fields': sorted(request.data.keys())})
            if old_price != product.price:
                create_activity_log(request=request, action='price_change', entity_type='Product',
                                    entity_id=product.id, entity_name=product.name,
                                    details={'old': str(old_price), 'new': str(product.price)})
            if old_expiry != product.expiry_date:
                logger.info(f"Expiry date of product {product.id} changed from {old_expiry} to {product.expiry_date} via product edit")
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        create_activity_log(request=request, action='delete', entity_type='Product',
                            entity_id=product.id, entity_name=product.name)
        product.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET'])
@permission_classes([AllowAny])
def product_by_slug(request, slug):
    """Storefront product detail by slug"""
    product = get_object_or_404(Product.objects.select_related('category'), slug=slug, is_active=True)
    if _guest_blocked(request):
        return Response({'success': False, 'message': 'Please log in to view products'},
                        status=status.HTTP_401_UNAUTHORIZED)
    context = {'request': request, 'calculator': DiscountCalculator(get_active_campaigns())}
    return Response(ProductListSerializer(product, context=context).data)


# Task board
@api_view(['GET'])
@permission_classes([HasAdminPermission('product_management')])
def product_tasks(request):
    """Products with missing price, image, stock or barcode"""
    return Response(get_product_tasks(request.query_params.get('category') or None))


@api_view(['GET', 'POST'])
@permission_classes([HasAdminPermission('product_management')])
def task_ignore_list_create(request):
    """List ignored tasks or ignore a task for a product"""
    if request.method == 'GET':
        ignores = ProductTaskIgnore.objects.select_related('product').order_by('-created_at')
        category = request.query_params.get('category')
        if category:
            ignores = ignores.filter(category=category)
        return Response(ProductTaskIgnoreSerializer(ignores, many=True).data)

    ignore, created = ignore_task(request.data.get('product_id') or request.data.get('product'),
                                  request.data.get('category'), user=request.user)
    if created:
        create_activity_log(request=request, action='task_ignore', entity_type='Product',
                            entity_id=ignore.product_id, entity_name=ignore.product.name,
                            details={'category': ignore.category})
    return Response(ProductTaskIgnoreSerializer(ignore).data,
                    status=status.HTTP_201_CREATED if created else status.HTTP_200_OK)


@api_view(['DELETE'])
@permission_classes([HasAdminPermission('product_management')])
def task_ignore_delete(request, pk):
    """Stop ignoring a task"""
    remove_ignore(pk)
    return Response(status=status.HTTP_204_NO_CONTENT)


# Bulk pricing
@api_view(['POST'])
@permission_classes([HasAdminPermission('product_management')])
def bulk_price_update_preview(request):
    """Preview bulk price update without writing"""
    serializer = BulkPriceRequestSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data
    return Response(preview_bulk_price_update(data['update_type'], data['value'], data['filters']))


@api_view(['POST'])
@permission_classes([HasAdminPermission('product_management')])
def bulk_price_update_commit(request):
    """Apply bulk price update and log it"""
    serializer = BulkPriceRequestSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data
    log = apply_bulk_price_update(data['update_type'], data['value'], data['filters'], user=request.user)
    create_activity_log(request=request, action='bulk_price_update', entity_type='BulkPriceUpdate',
                        entity_id=log.id, details={'update_type': log.update_type, 'value': str(log.value),
                                                   'affected_count': log.affected_count})
    return Response(BulkPriceUpdateSerializer(log).data, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([HasAdminPermission('product_management')])
def bulk_price_update_list(request):
    """History of bulk price updates"""
    logs = BulkPriceUpdate.objects.select_related('created_by').order_by('-created_at')
    return Response(paginated_response_data(request, logs, BulkPriceUpdateSerializer, default_limit=20))


@api_view(['POST'])
@permission_classes([HasAdminPermission('product_management')])
def bulk_price_update_revert(request, pk):
    """Restore the prices recorded by a bulk update"""
    log, restored = revert_bulk_price_update(pk, user=request.user)
    create_activity_log(request=request, action='bulk_price_revert', entity_type='BulkPriceUpdate',
                        entity_id=log.id, details={'restored': restored})
    return Response({'update': BulkPriceUpdateSerializer(log).data, 'restored': restored})


# Shelf labels
@api_view(['GET', 'POST'])
@permission_classes([HasAdminPermission('product_management')])
def barcode_label_list_create(request):
    """List shelf labels or create one"""
    if request.method == 'GET':
        labels = BarcodeLabel.objects.all()
        search = request.query_params.get('search')
        if search:
            labels = labels.filter(Q(name__icontains=search) | Q(barcode__icontains=search))
        return Response(BarcodeLabelSerializer(labels, many=True).data)
    serializer = BarcodeLabelSerializer(data=request.data)
    if serializer.is_valid():
        serializer.save()
        return Response(serializer.data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([HasAdminPermission('product_management')])
def barcode_label_detail(request, pk):
    """Retrieve, update or delete a shelf label"""
    label = get_object_or_404(BarcodeLabel, pk=pk)

    if request.method == 'GET':
        return Response(BarcodeLabelSerializer(label).data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = BarcodeLabelSerializer(label, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        label.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET'])
@permission_classes([HasAdminPermission('product_management')])
def barcode_label_image(request, pk):
    """Render a shelf label as PNG (or as a base64 data URL with ?as=base64)"""
    label = get_object_or_404(BarcodeLabel, pk=pk)
    png = generate_shelf_label(
        name=label.name,
        price=label.price,
        barcode_value=label.barcode,
        unit=label.unit,
        label_settings=StoreSettings.load().barcode_label_settings,
    )
    if request.query_params.get('as') == 'base64':
        return Response({'id': label.id, 'image': label_data_url(png)})
    response = HttpResponse(png, content_type='image/png')
    response['Content-Disposition'] = f'inline; filename="label-{label.barcode}.png"'
    return response
