"""
Missing-information task board: products lacking a price, image, stock or barcode
"""
from django.db.models import Q

from backend.core.exceptions import ValidationError, NotFoundError
from .models import Product, ProductTaskIgnore

TASK_CATEGORIES = [choice for choice, _ in ProductTaskIgnore.CATEGORY_CHOICES]

TASK_CONDITIONS = {
    'price': Q(price__isnull=True) | Q(price=0),
    'image': Q(image_urls=[]) | Q(image_urls__isnull=True),
    'stock': Q(stock__lte=0),
    'barcode': Q(barcode__isnull=True) | Q(barcode=''),
}


def _task_product(product):
    return {
        'id': product.id,
        'name': product.name,
        'slug': product.slug,
        'barcode': product.barcode,
        'price': product.price,
        'stock': product.stock,
        'category': product.category.name if product.category else None,
        'image': product.main_image,
    }


def get_product_tasks(category=None):
    """
    Group products with missing information by task category,
    skipping (product, category) pairs the admins chose to ignore.
    """
    if category is not None and category not in TASK_CATEGORIES:
        raise ValidationError(f"Invalid task category. Must be one of: {', '.join(TASK_CATEGORIES)}")

    categories = [category] if category else TASK_CATEGORIES
    result = {}
    for task_category in categories:
        ignored_ids = ProductTaskIgnore.objects.filter(category=task_category).values_list('product_id', flat=True)
        products = (Product.objects.filter(is_active=True)
                    .filter(TASK_CONDITIONS[task_category])
                    .exclude(id__in=ignored_ids)
                    .select_related('category')
                    .order_by('name'))
        items = [_task_product(p) for p in products]
        result[task_category] = {'count': len(items), 'products': items}
    result['total'] = sum(result[c]['count'] for c in categories)
    return result


def ignore_task(product_id, category, user=None):
    """Ignore a task for a product; ignoring twice returns the existing entry"""
    if category not in TASK_CATEGORIES:
        raise ValidationError(f"Invalid task category. Must be one of: {', '.join(TASK_CATEGORIES)}")
    try:
        product = Product.objects.get(pk=product_id)
    except (Product.DoesNotExist, ValueError, TypeError):
        raise NotFoundError('Product not found')
    ignore, created = ProductTaskIgnore.objects.get_or_create(
        product=product, category=category, defaults={'ignored_by': user}
    )
    return ignore, created


def remove_ignore(ignore_id):
    deleted, _ = ProductTaskIgnore.objects.filter(pk=ignore_id).delete()
    if not deleted:
        raise NotFoundError('Ignored task not found')
