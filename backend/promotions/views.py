from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import AllowAny, IsAuthenticated
from django.shortcuts import get_object_or_404

from backend.core.permissions import HasAdminPermission
from backend.core.utils import create_activity_log, paginated_response_data
from .discounts import campaign_summary
from .models import Campaign, Coupon
from .serializers import CampaignSerializer, CouponSerializer, CouponValidateSerializer
from .services import (
    get_active_campaigns, validate_coupon, generate_coupon_code, delete_coupon, get_coupon_stats
)


# Campaign views
@api_view(['GET'])
@permission_classes([AllowAny])
def active_campaign_list(request):
    """Campaigns currently running in the storefront"""
    return Response(CampaignSerializer(get_active_campaigns(), many=True).data)


@api_view(['GET'])
@permission_classes([AllowAny])
def campaign_by_slug(request, slug):
    """Public campaign detail page"""
    campaign = get_object_or_404(Campaign, slug=slug, is_active=True)
    return Response(CampaignSerializer(campaign).data)


@api_view(['GET', 'POST'])
@permission_classes([HasAdminPermission('campaign_management')])
def campaign_list_create(request):
    """List all campaigns or create a new campaign"""
    if request.method == 'GET':
        campaigns = Campaign.objects.all()
        is_active = request.query_params.get('is_active')
        if is_active is not None:
            campaigns = campaigns.filter(is_active=is_active.lower() == 'true')
        campaign_type = request.query_params.get('type')
        if campaign_type:
            campaigns = campaigns.filter(type=campaign_type)
        return Response(paginated_response_data(request, campaigns, CampaignSerializer))
    serializer = CampaignSerializer(data=request.data)
    if serializer.is_valid():
        campaign = serializer.save(created_by=request.user)
        create_activity_log(request=request, action='create', entity_type='Campaign',
                            entity_id=campaign.id, entity_name=campaign.name)
        return Response(serializer.data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([HasAdminPermission('campaign_management')])
def campaign_detail(request, pk):
    """Retrieve, update or delete a campaign"""
    campaign = get_object_or_404(Campaign, pk=pk)

    if request.method == 'GET':
        return Response(CampaignSerializer(campaign).data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = CampaignSerializer(campaign, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            create_activity_log(request=request, action='update', entity_type='Campaign',
                                entity_id=campaign.id, entity_name=campaign.name)
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        create_activity_log(request=request, action='delete', entity_type='Campaign',
                            entity_id=campaign.id, entity_name=campaign.name)
        campaign.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


# Coupon views
@api_view(['GET', 'POST'])
@permission_classes([HasAdminPermission('coupon_management')])
def coupon_list_create(request):
    """List all coupons or create a new coupon"""
    if request.method == 'GET':
        coupons = Coupon.objects.all()
        search = request.query_params.get('search')
        if search:
            coupons = coupons.filter(code__icontains=search.strip())
        return Response(paginated_response_data(request, coupons, CouponSerializer))
    serializer = CouponSerializer(data=request.data)
    if serializer.is_valid():
        coupon = serializer.save(created_by=request.user)
        create_activity_log(request=request, action='create', entity_type='Coupon',
                            entity_id=coupon.id, entity_name=coupon.code)
        return Response(serializer.data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([HasAdminPermission('coupon_management')])
def coupon_detail(request, pk):
    """Retrieve, update or delete a coupon"""
    coupon = get_object_or_404(Coupon, pk=pk)

    if request.method == 'GET':
        return Response(CouponSerializer(coupon).data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = CouponSerializer(coupon, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            create_activity_log(request=request, action='update', entity_type='Coupon',
                                entity_id=coupon.id, entity_name=coupon.code)
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        delete_coupon(coupon)
        create_activity_log(request=request, action='delete', entity_type='Coupon',
                            entity_id=pk, entity_name=coupon.code)
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET'])
@permission_classes([HasAdminPermission('coupon_management')])
def coupon_stats(request, pk):
    """Usage statistics of a coupon"""
    coupon = get_object_or_404(Coupon, pk=pk)
    return Response(get_coupon_stats(coupon))


@api_view(['POST'])
@permission_classes([HasAdminPermission('coupon_management')])
def coupon_generate_code(request):
    """Suggest a random unused coupon code"""
    length = request.data.get('length', 8)
    try:
        length = min(max(int(length), 4), 20)
    except (TypeError, ValueError):
        length = 8
    return Response({'code': generate_coupon_code(length)})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def coupon_validate(request):
    """Check a coupon code against the current user's cart"""
    serializer = CouponValidateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    from backend.orders.services import get_cart_summary
    cart = get_cart_summary(request.user)
    cart_items = [(line['product'], line['quantity']) for line in cart['lines']]
    result = validate_coupon(serializer.validated_data['code'], request.user, cart_items,
                             cart['discounted_subtotal'])
    coupon = result['coupon']
    return Response({
        'valid': True,
        'code': coupon.code,
        'name': coupon.name,
        'type': coupon.type,
        'discount': str(result['discount']),
        'applied_campaigns': [campaign_summary(c) for c in cart['applied_campaigns']],
    })
