"""
Bulk price updates: preview, apply and revert
"""
import logging
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation

from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from backend.core.cache_signals import suspend_cache_signals
from backend.core.cache_utils import invalidate_cache_pattern, PRODUCTS_LIST_PREFIX
from backend.core.exceptions import ValidationError, NotFoundError
from .models import Product, BulkPriceUpdate

logger = logging.getLogger(__name__)

UPDATE_TYPES = [choice for choice, _ in BulkPriceUpdate.UPDATE_TYPE_CHOICES]
CENT = Decimal('0.01')


def to_money(value):
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def compute_new_price(old_price, update_type, value):
    """Apply one bulk update rule to a price; never returns a negative price"""
    old_price = Decimal(old_price or 0)
    if update_type == 'increase_percent':
        new_price = old_price * (Decimal('1') + value / Decimal('100'))
    elif update_type == 'decrease_percent':
        new_price = old_price * (Decimal('1') - value / Decimal('100'))
    elif update_type == 'increase_amount':
        new_price = old_price + value
    elif update_type == 'decrease_amount':
        new_price = old_price - value
    elif update_type == 'set_price':
        new_price = value
    else:
        raise ValidationError(f"Invalid update type: {update_type}")
    return max(to_money(new_price), Decimal('0.00'))


def _validate_request(update_type, value):
    if update_type not in UPDATE_TYPES:
        raise ValidationError(f"Invalid update type. Must be one of: {', '.join(UPDATE_TYPES)}")
    try:
        value = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError('Value must be a number')
    if value < 0:
        raise ValidationError('Value cannot be negative')
    if update_type == 'decrease_percent' and value > 100:
        raise ValidationError('Percentage decrease cannot exceed 100')
    return value


def filter_products(filters):
    """Products targeted by a bulk update"""
    filters = filters or {}
    queryset = Product.objects.all()
    if filters.get('category'):
        queryset = queryset.filter(category_id=filters['category'])
    if filters.get('product_ids'):
        queryset = queryset.filter(id__in=filters['product_ids'])
    if filters.get('search'):
        search = filters['search']
        queryset = queryset.filter(Q(name__icontains=search) | Q(barcode__icontains=search) | Q(brand__icontains=search))
    if filters.get('is_active') is not None:
        queryset = queryset.filter(is_active=bool(filters['is_active']))
    return queryset.order_by('name')


def _planned_changes(update_type, value, filters):
    products = filter_products(filters)
    if update_type != 'set_price':
        # Relative updates need an existing price
        products = products.exclude(price__isnull=True)
    changes = []
    for product in products:
        new_price = compute_new_price(product.price, update_type, value)
        if product.price is not None and to_money(product.price) == new_price:
            continue
        changes.append({
            'product_id': product.id,
            'name': product.name,
            'old': str(product.price) if product.price is not None else None,
            'new': str(new_price),
        })
    return changes


def preview_bulk_price_update(update_type, value, filters=None):
    value = _validate_request(update_type, value)
    changes = _planned_changes(update_type, value, filters)
    return {
        'update_type': update_type,
        'value': str(value),
        'filters': filters or {},
        'affected_count': len(changes),
        'changes': changes,
    }


def apply_bulk_price_update(update_type, value, filters=None, user=None):
    value = _validate_request(update_type, value)
    with transaction.atomic(), suspend_cache_signals():
        changes = _planned_changes(update_type, value, filters)
        if not changes:
            raise ValidationError('No products match the update')
        products = Product.objects.select_for_update().in_bulk([c['product_id'] for c in changes])
        for change in changes:
            product = products[change['product_id']]
            product.price = Decimal(change['new'])
            product.save(update_fields=['price', 'updated_at'])
        log = BulkPriceUpdate.objects.create(
            update_type=update_type,
            value=value,
            filters=filters or {},
            affected_count=len(changes),
            changes=changes,
            created_by=user,
        )
    invalidate_cache_pattern(PRODUCTS_LIST_PREFIX)
    logger.info(f"Bulk price update {log.id} ({update_type} {value}) changed {len(changes)} products")
    return log


def revert_bulk_price_update(update_id, user=None):
    """Restore the recorded old prices; an update can be reverted once"""
    with transaction.atomic(), suspend_cache_signals():
        try:
            log = BulkPriceUpdate.objects.select_for_update().get(pk=update_id)
        except BulkPriceUpdate.DoesNotExist:
            raise NotFoundError('Bulk price update not found')
        if log.reverted_at:
            raise ValidationError('This price update has already been reverted')

        products = Product.objects.select_for_update().in_bulk([c['product_id'] for c in log.changes])
        restored = 0
        for change in log.changes:
            product = products.get(change['product_id'])
            if product is None:
                continue
            product.price = Decimal(change['old']) if change['old'] is not None else None
            product.save(update_fields=['price', 'updated_at'])
            restored += 1

        log.reverted_at = timezone.now()
        log.reverted_by = user
        log.save(update_fields=['reverted_at', 'reverted_by'])
    invalidate_cache_pattern(PRODUCTS_LIST_PREFIX)
    logger.info(f"Bulk price update {log.id} reverted ({restored} products restored)")
    return log, restored
