"""
Campaign and coupon business rules
"""
import logging
import secrets
import string
from decimal import Decimal

from django.db.models import F, Q, Sum, Count
from django.utils import timezone

from backend.core.exceptions import NotFoundError, ValidationError
from .discounts import to_money, ZERO
from .models import Campaign, Coupon, CouponUsage

logger = logging.getLogger(__name__)


def get_active_campaigns(now=None):
    """Active campaigns inside their date window and below their usage limit, best priority first"""
    now = now or timezone.now()
    return list(
        Campaign.objects.filter(is_active=True, start_date__lte=now, end_date__gte=now)
        .filter(Q(usage_limit__isnull=True) | Q(usage_count__lt=F('usage_limit')))
        .order_by('-priority', '-created_at')
    )


def increment_campaign_usage(campaigns):
    ids = [campaign.id for campaign in campaigns]
    if ids:
        Campaign.objects.filter(id__in=ids).update(usage_count=F('usage_count') + 1)


def _cart_matches(coupon, cart_items):
    if coupon.apply_to_all:
        return True
    category_ids = set(coupon.category_ids or [])
    product_ids = set(coupon.product_ids or [])
    for product, _quantity in cart_items:
        if product.id in product_ids or (product.category_id and product.category_id in category_ids):
            return True
    return False


def calculate_coupon_discount(coupon, subtotal):
    subtotal = Decimal(subtotal)
    if coupon.type == 'PERCENTAGE':
        discount = subtotal * Decimal(coupon.discount_percent or 0) / Decimal('100')
        if coupon.max_discount is not None and discount > coupon.max_discount:
            discount = Decimal(coupon.max_discount)
    else:
        discount = min(Decimal(coupon.discount_amount or 0), subtotal)
    return to_money(max(discount, ZERO))


def validate_coupon(code, user, cart_items, subtotal, now=None):
    """
    Check a coupon code against the cart and the user's history.

    cart_items: iterable of (product, quantity)
    Returns {'coupon': Coupon, 'discount': Decimal}; raises NotFoundError/ValidationError.
    """
    now = now or timezone.now()
    code = (code or '').strip().upper()
    coupon = Coupon.objects.filter(code=code).first()
    if coupon is None:
        raise NotFoundError('Coupon code not found')
    if not coupon.is_active:
        raise ValidationError('This coupon code is not active')
    if now < coupon.start_date or now > coupon.end_date:
        raise ValidationError('This coupon code is not valid at this time')
    if coupon.usage_limit is not None and coupon.usage_count >= coupon.usage_limit:
        raise ValidationError('This coupon code has reached its usage limit')
    if user is not None and coupon.user_usage_limit:
        used = CouponUsage.objects.filter(coupon=coupon, user=user).count()
        if used >= coupon.user_usage_limit:
            raise ValidationError('You cannot use this coupon code any more')
    if coupon.user_ids and (user is None or user.id not in coupon.user_ids):
        raise ValidationError('This coupon code is not assigned to you')
    subtotal = to_money(subtotal)
    if coupon.min_purchase and subtotal < coupon.min_purchase:
        raise ValidationError(f"Minimum purchase for this coupon is {to_money(coupon.min_purchase)} €")
    cart_items = list(cart_items)
    if not _cart_matches(coupon, cart_items):
        raise ValidationError('This coupon code does not apply to the products in your cart')

    return {'coupon': coupon, 'discount': calculate_coupon_discount(coupon, subtotal)}


def record_coupon_usage(coupon, user, order, discount):
    CouponUsage.objects.create(coupon=coupon, user=user, order=order, discount=discount)
    Coupon.objects.filter(pk=coupon.pk).update(usage_count=F('usage_count') + 1)


def generate_coupon_code(length=8):
    """Random unused code of uppercase letters and digits"""
    alphabet = string.ascii_uppercase + string.digits
    while True:
        code = ''.join(secrets.choice(alphabet) for _ in range(length))
        if not Coupon.objects.filter(code=code).exists():
            return code


def delete_coupon(coupon):
    if coupon.usages.exists():
        raise ValidationError('This coupon has been used and cannot be deleted')
    logger.info(f"Coupon {coupon.code} deleted")
    coupon.delete()


def get_coupon_stats(coupon):
    aggregates = coupon.usages.aggregate(
        total_usage=Count('id'),
        total_orders=Count('order', distinct=True),
        total_discount=Sum('discount'),
    )
    return {
        'coupon_id': coupon.id,
        'code': coupon.code,
        'total_usage': aggregates['total_usage'] or 0,
        'total_orders': aggregates['total_orders'] or 0,
        'total_discount': str(to_money(aggregates['total_discount'] or 0)),
        'remaining': (coupon.usage_limit - coupon.usage_count) if coupon.usage_limit is not None else None,
    }
