"""
Cache invalidation signals
Storefront caches are dropped when catalog or campaign data changes
"""
from django.db.models.signals import post_save, post_delete
from django.dispatch import receiver
import logging
import threading
from contextlib import contextmanager

from .cache_utils import invalidate_cache_pattern, PRODUCTS_LIST_PREFIX

logger = logging.getLogger(__name__)

_thread_locals = threading.local()


@contextmanager
def suspend_cache_signals():
    """
    Temporarily suspend cache invalidation signals.
    Used by bulk operations, which invalidate once afterwards.
    """
    try:
        _thread_locals.suspended = True
        yield
    finally:
        _thread_locals.suspended = False


def is_suspended():
    return getattr(_thread_locals, 'suspended', False)


@receiver([post_save, post_delete], sender='catalog.Product')
def invalidate_product_cache(sender, instance, **kwargs):
    if is_suspended():
        return
    logger.debug(f"Product {instance.pk} changed, invalidating product list cache")
    invalidate_cache_pattern(PRODUCTS_LIST_PREFIX)


@receiver([post_save, post_delete], sender='catalog.Category')
def invalidate_category_cache(sender, instance, **kwargs):
    if is_suspended():
        return
    invalidate_cache_pattern(PRODUCTS_LIST_PREFIX)


@receiver([post_save, post_delete], sender='promotions.Campaign')
def invalidate_campaign_cache(sender, instance, **kwargs):
    # Product list prices include campaign discounts
    if is_suspended():
        return
    invalidate_cache_pattern(PRODUCTS_LIST_PREFIX)
