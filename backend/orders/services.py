"""
Cart and order business logic
"""
import logging
from decimal import Decimal

from django.conf import settings
from django.db import transaction, IntegrityError
from django.db.models import Count, F, Sum
from django.utils import timezone

from backend.catalog.models import Product
from backend.core.exceptions import NotFoundError, ValidationError, ForbiddenError
from backend.core.models import StoreSettings
from backend.promotions.discounts import DiscountCalculator, to_money, ZERO, campaign_summary
from backend.promotions.services import (
    get_active_campaigns, validate_coupon, record_coupon_usage, increment_campaign_usage
)
from .models import CartItem, Order, OrderItem
from .order_numbers import generate_order_number

logger = logging.getLogger(__name__)

DEFAULT_DELIVERY_FEE = Decimal('5.00')
CUSTOMER_CANCELLABLE = ('pending', 'accepted')
ALLOWED_TRANSITIONS = {
    'pending': ('accepted', 'cancelled'),
    'accepted': ('preparing', 'cancelled'),
    'preparing': ('shipped', 'delivered', 'cancelled'),
    'shipped': ('delivered', 'cancelled'),
    'delivered': (),
    'cancelled': (),
}
STATUS_LABELS = {
    'pending': 'Eingegangen',
    'accepted': 'Angenommen',
    'preparing': 'In Vorbereitung',
    'shipped': 'Unterwegs',
    'delivered': 'Zugestellt',
    'cancelled': 'Storniert',
}
REQUIRED_ADDRESS_FIELDS = ('street', 'zip_code', 'city')


# Cart
def _get_product(product_id):
    try:
        return Product.objects.get(pk=product_id)
    except (Product.DoesNotExist, ValueError, TypeError):
        raise NotFoundError('Product not found')


def _parse_quantity(quantity, allow_zero=False):
    try:
        quantity = int(quantity)
    except (TypeError, ValueError):
        raise ValidationError('Quantity must be a whole number')
    if quantity < 0 or (quantity == 0 and not allow_zero):
        raise ValidationError('Quantity must be at least 1')
    return quantity


def get_cart_summary(user, calculator=None):
    """Cart lines priced with the active campaigns"""
    items = list(CartItem.objects.filter(user=user).select_related('product', 'product__category'))
    calculator = calculator or DiscountCalculator(get_active_campaigns())
    priced = calculator.calculate_cart(
        [(item.product, item.quantity) for item in items if item.product.price is not None]
    )
    lines_by_product = {line['product'].id: line for line in priced['items']}
    lines = []
    for item in items:
        line = lines_by_product.get(item.product_id)
        if line is None:
            continue
        lines.append({**line, 'item_id': item.id})
    return {
        'lines': lines,
        'item_count': sum(line['quantity'] for line in lines),
        'subtotal': priced['subtotal'],
        'discount': priced['discount'],
        'discounted_subtotal': priced['discounted_subtotal'],
        'applied_campaigns': priced['applied_campaigns'],
        'free_shipping_campaign': priced['free_shipping_campaign'],
    }


def add_to_cart(user, product_id, quantity=1):
    """Add a product to the cart, merging with an existing line"""
    quantity = _parse_quantity(quantity)
    product = _get_product(product_id)
    if not product.is_active:
        raise ValidationError('This product is not available')
    if product.price is None:
        raise ValidationError('This product has no price yet')
    item = CartItem.objects.filter(user=user, product=product).first()
    new_quantity = quantity + (item.quantity if item else 0)
    if new_quantity > product.stock:
        raise ValidationError(f"Only {product.stock} of {product.name} in stock")
    if item:
        item.quantity = new_quantity
        item.save(update_fields=['quantity', 'updated_at'])
    else:
        item = CartItem.objects.create(user=user, product=product, quantity=quantity)
    return item


def update_cart_item(user, item_id, quantity):
    """Set a cart line's quantity; zero removes the line"""
    quantity = _parse_quantity(quantity, allow_zero=True)
    item = CartItem.objects.filter(user=user, pk=item_id).select_related('product').first()
    if item is None:
        raise NotFoundError('Cart item not found')
    if quantity == 0:
        item.delete()
        return None
    if quantity > item.product.stock:
        raise ValidationError(f"Only {item.product.stock} of {item.product.name} in stock")
    item.quantity = quantity
    item.save(update_fields=['quantity', 'updated_at'])
    return item


def remove_cart_item(user, item_id):
    deleted, _ = CartItem.objects.filter(user=user, pk=item_id).delete()
    if not deleted:
        raise NotFoundError('Cart item not found')


def clear_cart(user):
    CartItem.objects.filter(user=user).delete()


# Pricing
def calculate_delivery_fee(order_type, subtotal, store_settings=None, free_shipping_campaign=None):
    """Delivery fee from free-shipping campaign, threshold and shipping rules"""
    if order_type != 'delivery':
        return ZERO
    if free_shipping_campaign is not None:
        return ZERO
    store_settings = store_settings or StoreSettings.load()
    if store_settings.free_shipping_threshold is not None and subtotal >= store_settings.free_shipping_threshold:
        return ZERO
    rules = store_settings.shipping_rules or []
    if not rules:
        return DEFAULT_DELIVERY_FEE
    for rule in sorted(rules, key=lambda r: Decimal(str(r.get('min') or 0))):
        minimum = Decimal(str(rule.get('min') or 0))
        maximum = rule.get('max')
        if subtotal >= minimum and (maximum is None or subtotal <= Decimal(str(maximum))):
            return to_money(Decimal(str(rule.get('fee') or 0)))
    return DEFAULT_DELIVERY_FEE


def _normalize_items(user, items):
    """[(product_id, quantity)] from the request, or from the cart when omitted"""
    if items is None:
        items = [{'product_id': item.product_id, 'quantity': item.quantity}
                 for item in CartItem.objects.filter(user=user)]
    if not items:
        raise ValidationError('Order must contain at least one item')
    merged = {}
    for item in items:
        product_id = item.get('product_id') or item.get('product')
        if not product_id:
            raise ValidationError('Each item needs a product_id')
        try:
            product_id = int(product_id)
        except (TypeError, ValueError):
            raise ValidationError('Each item needs a numeric product_id')
        merged[product_id] = merged.get(product_id, 0) + _parse_quantity(item.get('quantity', 1))
    return merged


def _validate_address(order_type, address):
    if order_type != 'delivery':
        return None
    if not isinstance(address, dict):
        raise ValidationError('A delivery address is required for delivery orders')
    missing = [field for field in REQUIRED_ADDRESS_FIELDS if not str(address.get(field) or '').strip()]
    if missing:
        raise ValidationError(f"Address is missing: {', '.join(missing)}")
    return address


def _append_history(order, status, user=None, note=''):
    history = list(order.status_history or [])
    history.append({
        'status': status,
        'at': timezone.now().isoformat(),
        'by': user.id if user else None,
        'note': note,
    })
    order.status_history = history


def create_order(user, order_type='delivery', items=None, address=None, payment_type='none',
                 note='', coupon_code=None):
    """
    Create an order from explicit items or the user's cart.

    Stock is checked and decremented inside one transaction; the ordered
    products are removed from the cart afterwards.
    """
    if order_type not in dict(Order.TYPE_CHOICES):
        raise ValidationError('Order type must be delivery or pickup')
    if payment_type not in dict(Order.PAYMENT_CHOICES):
        raise ValidationError('Invalid payment type')
    address = _validate_address(order_type, address)
    quantities = _normalize_items(user, items)
    store_settings = StoreSettings.load()

    with transaction.atomic():
        products = Product.objects.select_for_update().in_bulk(list(quantities.keys()))
        lines = []
        for product_id, quantity in quantities.items():
            product = products.get(product_id)
            if product is None:
                raise NotFoundError(f"Product {product_id} not found")
            if not product.is_active or product.price is None:
                raise ValidationError(f"{product.name} is not available")
            if product.stock < quantity:
                raise ValidationError(f"Only {product.stock} of {product.name} in stock")
            lines.append((product, quantity))

        calculator = DiscountCalculator(get_active_campaigns())
        priced = calculator.calculate_cart(lines)
        discounted_subtotal = priced['discounted_subtotal']

        if store_settings.min_order_amount and discounted_subtotal < store_settings.min_order_amount:
            raise ValidationError(f"Minimum order amount is {to_money(store_settings.min_order_amount)} €")

        coupon, coupon_discount = None, ZERO
        if coupon_code:
            result = validate_coupon(coupon_code, user, lines, discounted_subtotal)
            coupon, coupon_discount = result['coupon'], result['discount']

        delivery_fee = calculate_delivery_fee(order_type, discounted_subtotal, store_settings,
                                              priced['free_shipping_campaign'])
        total = to_money(max(discounted_subtotal - coupon_discount, ZERO) + delivery_fee)

        order = None
        for attempt in range(5):
            try:
                with transaction.atomic():
                    order = Order.objects.create(
                        order_no=generate_order_number(store_settings.order_id_format),
                        user=user,
                        type=order_type,
                        status='pending',
                        address=address,
                        subtotal=priced['subtotal'],
                        campaign_discount=priced['discount'],
                        coupon=coupon,
                        coupon_code=coupon.code if coupon else '',
                        coupon_discount=coupon_discount,
                        delivery_fee=delivery_fee,
                        total=total,
                        payment_type=payment_type,
                        note=note or '',
                        status_history=[{'status': 'pending', 'at': timezone.now().isoformat(),
                                         'by': user.id, 'note': ''}],
                    )
                break
            except IntegrityError:
                logger.warning(f"Order number collision, retrying (attempt {attempt + 1})")
        if order is None:
            raise ValidationError('Could not allocate an order number, please try again')

        OrderItem.objects.bulk_create([
            OrderItem(
                order=order,
                product=line['product'],
                product_name=line['product'].name,
                brand=line['product'].brand,
                unit=line['product'].get_unit_display(),
                quantity=line['quantity'],
                unit_price=line['unit_price'],
                discount=line['discount'],
                line_total=line['final_total'],
                campaign_name=line['campaign'].name if line['campaign'] else '',
            )
            for line in priced['items']
        ])

        for product, quantity in lines:
            Product.objects.filter(pk=product.pk).update(stock=F('stock') - quantity)

        if coupon:
            record_coupon_usage(coupon, user, order, coupon_discount)
        increment_campaign_usage(priced['applied_campaigns'])
        CartItem.objects.filter(user=user, product_id__in=list(quantities.keys())).delete()

        transaction.on_commit(lambda: _run_notification(_notify_order_created, order.pk))

    logger.info(f"Order {order.order_no} created for user {user.id} (total {order.total})")
    return order


def _restock(order):
    for item in order.items.all():
        if item.product_id:
            Product.objects.filter(pk=item.product_id).update(stock=F('stock') + item.quantity)


def update_order_status(order_id, new_status, admin=None, note=''):
    """Admin status change; cancelling puts the items back into stock"""
    if new_status not in ALLOWED_TRANSITIONS:
        raise ValidationError('Invalid order status')
    with transaction.atomic():
        try:
            order = Order.objects.select_for_update().get(pk=order_id)
        except Order.DoesNotExist:
            raise NotFoundError('Order not found')
        old_status = order.status
        if new_status == old_status:
            return order
        if new_status not in ALLOWED_TRANSITIONS[old_status]:
            raise ValidationError(f"Cannot change order from {old_status} to {new_status}")
        if new_status == 'cancelled':
            _restock(order)
            order.cancel_reason = note or order.cancel_reason
        order.status = new_status
        _append_history(order, new_status, admin, note)
        order.save(update_fields=['status', 'status_history', 'cancel_reason', 'updated_at'])
        transaction.on_commit(lambda: _run_notification(_notify_status_changed, order.pk, old_status))
    logger.info(f"Order {order.order_no} status {old_status} -> {new_status}")
    return order


def cancel_order_by_customer(order_id, user, reason=''):
    with transaction.atomic():
        order = Order.objects.select_for_update().filter(pk=order_id).first()
        if order is None or order.user_id != user.id:
            raise NotFoundError('Order not found')
        if order.status not in CUSTOMER_CANCELLABLE:
            raise ValidationError('This order can no longer be cancelled')
        _restock(order)
        old_status = order.status
        order.status = 'cancelled'
        order.cancel_reason = reason or ''
        _append_history(order, 'cancelled', user, reason)
        order.save(update_fields=['status', 'status_history', 'cancel_reason', 'updated_at'])
        transaction.on_commit(lambda: _run_notification(_notify_status_changed, order.pk, old_status, by_customer=True))
    logger.info(f"Order {order.order_no} cancelled by customer {user.id}")
    return order


def get_order_for_user(order_id, user):
    order = Order.objects.prefetch_related('items').filter(pk=order_id).first()
    if order is None:
        raise NotFoundError('Order not found')
    if order.user_id != user.id and not user.has_admin_permission('order_management'):
        raise ForbiddenError('You cannot view this order')
    return order


def get_order_stats():
    today = timezone.localdate()
    by_status = dict(Order.objects.values_list('status').annotate(count=Count('id')))
    active = Order.objects.exclude(status='cancelled')
    today_orders = active.filter(created_at__date=today)
    return {
        'total_orders': sum(by_status.values()),
        'by_status': {status: by_status.get(status, 0) for status, _ in Order.STATUS_CHOICES},
        'pending_orders': by_status.get('pending', 0),
        'today_orders': today_orders.count(),
        'today_revenue': str(to_money(today_orders.aggregate(total=Sum('total'))['total'] or 0)),
        'total_revenue': str(to_money(active.filter(status='delivered').aggregate(total=Sum('total'))['total'] or 0)),
    }


# Notifications
def _run_notification(func, *args, **kwargs):
    """Mail and in-app notifications must not fail the order operation"""
    try:
        func(*args, **kwargs)
    except Exception as e:
        logger.error(f"Order notification {func.__name__} failed: {str(e)}", exc_info=True)


def order_email_context(order):
    items = [{
        'name': item.product_name,
        'quantity': item.quantity,
        'unit_price': f"{item.unit_price:.2f}",
        'line_total': f"{item.line_total:.2f}",
    } for item in order.items.all()]
    return {
        'store_name': settings.STORE_NAME,
        'order_no': order.order_no,
        'customer_name': order.user.full_name,
        'order_type': order.get_type_display(),
        'status': order.status,
        'status_label': STATUS_LABELS.get(order.status, order.status),
        'items': items,
        'subtotal': f"{order.subtotal:.2f}",
        'discount': f"{order.campaign_discount + order.coupon_discount:.2f}",
        'delivery_fee': f"{order.delivery_fee:.2f}",
        'total': f"{order.total:.2f}",
        'address': order.address or {},
        'cancel_reason': order.cancel_reason,
        'order_url': f"{settings.FRONTEND_URL}/orders/{order.id}",
    }


def _notify_order_created(order_id):
    from backend.notifications.services import queue_email, notify_admins, get_notification_settings

    order = Order.objects.select_related('user').get(pk=order_id)
    context = order_email_context(order)
    if order.user.email:
        queue_email(order.user.email, 'order-received', context)
    notification_settings = get_notification_settings()
    if notification_settings.get('notifyOnNewOrder', True) and notification_settings.get('adminEmail'):
        queue_email(notification_settings['adminEmail'], 'order-notification-admin', context)
    notify_admins('order_management', f"Neue Bestellung {order.order_no}",
                  f"{context['customer_name']} hat für {context['total']} € bestellt.",
                  notification_type='order', link=f"/admin/orders/{order.id}")


def _notify_status_changed(order_id, old_status, by_customer=False):
    from backend.notifications.services import (
        queue_email, create_notification, notify_admins, get_notification_settings
    )

    order = Order.objects.select_related('user').get(pk=order_id)
    context = {**order_email_context(order), 'old_status': old_status,
               'old_status_label': STATUS_LABELS.get(old_status, old_status)}
    if by_customer:
        notify_admins('order_management', f"Bestellung {order.order_no} storniert",
                      'Der Kunde hat die Bestellung storniert.', notification_type='order',
                      link=f"/admin/orders/{order.id}")
    else:
        create_notification(order.user, f"Bestellung {order.order_no}",
                            f"Status: {context['status_label']}", notification_type='order',
                            link=f"/orders/{order.id}")

    enabled = get_notification_settings().get('notifyOnOrderStatus', {})
    if order.user.email and enabled.get(order.status, False):
        template = 'order-cancelled' if order.status == 'cancelled' else 'order-status-changed'
        queue_email(order.user.email, template, context)


def serialize_cart(summary):
    """Plain representation of get_cart_summary for the API"""
    return {
        'items': [{
            'id': line['item_id'],
            'product_id': line['product'].id,
            'name': line['product'].name,
            'slug': line['product'].slug,
            'image': line['product'].main_image,
            'unit': line['product'].get_unit_display(),
            'stock': line['product'].stock,
            'quantity': line['quantity'],
            'unit_price': str(line['unit_price']),
            'line_total': str(line['line_total']),
            'discount': str(line['discount']),
            'final_total': str(line['final_total']),
            'campaign': campaign_summary(line['campaign']),
        } for line in summary['lines']],
        'item_count': summary['item_count'],
        'subtotal': str(summary['subtotal']),
        'discount': str(summary['discount']),
        'discounted_subtotal': str(summary['discounted_subtotal']),
        'applied_campaigns': [campaign_summary(c) for c in summary['applied_campaigns']],
        'free_shipping': summary['free_shipping_campaign'] is not None,
    }
