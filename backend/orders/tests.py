"""
Test suite for orders
Tests: cart, delivery fee, order creation, status changes, order numbers, API
"""
from datetime import datetime
from decimal import Decimal

from django.core import mail
from django.utils import timezone
from rest_framework import status

from backend.core.exceptions import NotFoundError, ValidationError, ForbiddenError
from backend.core.models import StoreSettings
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient, StoreTestCase
from backend.notifications.models import Notification
from backend.orders import services
from backend.orders.models import CartItem, Order
from backend.orders.order_numbers import generate_order_number, validate_order_id_format
from backend.promotions.models import CouponUsage

ADDRESS = {'street': 'Hauptstraße 1', 'zip_code': '10115', 'city': 'Berlin'}


class CartTests(StoreTestCase):
    """Test cart services"""

    def setUp(self):
        super().setUp()
        self.user = TestDataFactory.create_user()
        self.product = TestDataFactory.create_product(price=Decimal('2.00'), stock=5)

    def test_add_merges_lines(self):
        services.add_to_cart(self.user, self.product.id, 2)
        item = services.add_to_cart(self.user, self.product.id, 1)
        self.assertEqual(item.quantity, 3)
        self.assertEqual(CartItem.objects.filter(user=self.user).count(), 1)

    def test_add_beyond_stock(self):
        with self.assertRaises(ValidationError):
            services.add_to_cart(self.user, self.product.id, 6)

    def test_add_unavailable(self):
        inactive = TestDataFactory.create_product(is_active=False)
        without_price = TestDataFactory.create_product(price=None)
        with self.assertRaises(ValidationError):
            services.add_to_cart(self.user, inactive.id)
        with self.assertRaises(ValidationError):
            services.add_to_cart(self.user, without_price.id)
        with self.assertRaises(NotFoundError):
            services.add_to_cart(self.user, 999999)

    def test_update_to_zero_removes(self):
        item = services.add_to_cart(self.user, self.product.id, 2)
        self.assertIsNone(services.update_cart_item(self.user, item.id, 0))
        self.assertFalse(CartItem.objects.filter(pk=item.pk).exists())

    def test_other_users_item(self):
        item = services.add_to_cart(self.user, self.product.id, 1)
        with self.assertRaises(NotFoundError):
            services.remove_cart_item(TestDataFactory.create_user(), item.id)

    def test_summary_applies_campaigns(self):
        TestDataFactory.create_campaign('BUY_X_GET_Y')
        services.add_to_cart(self.user, self.product.id, 3)
        summary = services.get_cart_summary(self.user)
        self.assertEqual(summary['item_count'], 3)
        self.assertEqual(summary['subtotal'], Decimal('6.00'))
        self.assertEqual(summary['discounted_subtotal'], Decimal('4.00'))


class DeliveryFeeTests(StoreTestCase):
    """Test delivery fee rules"""

    def test_default_rules(self):
        self.assertEqual(services.calculate_delivery_fee('delivery', Decimal('20.00')), Decimal('4.99'))
        self.assertEqual(services.calculate_delivery_fee('delivery', Decimal('50.00')), Decimal('0.00'))

    def test_pickup_is_free(self):
        self.assertEqual(services.calculate_delivery_fee('pickup', Decimal('1.00')), Decimal('0.00'))

    def test_threshold_and_campaign(self):
        store_settings = StoreSettings.load()
        store_settings.free_shipping_threshold = Decimal('30.00')
        self.assertEqual(services.calculate_delivery_fee('delivery', Decimal('30.00'), store_settings), Decimal('0.00'))
        campaign = TestDataFactory.create_campaign('FREE_SHIPPING')
        self.assertEqual(services.calculate_delivery_fee('delivery', Decimal('5.00'), free_shipping_campaign=campaign),
                         Decimal('0.00'))

    def test_no_rules_uses_default_fee(self):
        store_settings = StoreSettings.load()
        store_settings.shipping_rules = []
        self.assertEqual(services.calculate_delivery_fee('delivery', Decimal('100.00'), store_settings),
                         services.DEFAULT_DELIVERY_FEE)


class OrderNumberTests(StoreTestCase):
    """Test order number formats"""

    def test_default_format(self):
        now = timezone.make_aware(datetime(2025, 1, 1, 12, 0))
        self.assertEqual(generate_order_number(now=now), 'GS-20250101-0001')

    def test_sequence_continues(self):
        user = TestDataFactory.create_user()
        fmt = {'prefix': 'bio', 'dateFormat': 'none', 'caseTransform': 'lowercase', 'resetPeriod': 'never'}
        Order.objects.create(order_no='bio-0007', user=user)
        self.assertEqual(generate_order_number(fmt), 'bio-0008')

    def test_start_from(self):
        fmt = {'dateFormat': 'none', 'startFrom': 100, 'numberPadding': 6}
        self.assertEqual(generate_order_number(fmt), 'GS-000100')

    def test_random_numbers(self):
        fmt = {'dateFormat': 'YYMM', 'numberFormat': 'random', 'numberPadding': 5}
        order_no = generate_order_number(fmt)
        self.assertRegex(order_no, r'^GS-\d{4}-\d{5}$')

    def test_invalid_format(self):
        with self.assertRaises(ValueError):
            validate_order_id_format({'resetPeriod': 'hourly'})
        with self.assertRaises(ValueError):
            validate_order_id_format({'numberPadding': 0})


class OrderServiceTests(StoreTestCase):
    """Test order creation and status changes"""

    def setUp(self):
        super().setUp()
        self.user = TestDataFactory.create_user(first_name='Eva')
        self.admin = TestDataFactory.create_admin(permissions=['order_management'])
        self.product = TestDataFactory.create_product(name='Kaffee', price=Decimal('10.00'), stock=10)

    def test_create_from_cart(self):
        services.add_to_cart(self.user, self.product.id, 2)
        order = services.create_order(self.user, address=ADDRESS)
        self.assertEqual(order.status, 'pending')
        self.assertEqual(order.subtotal, Decimal('20.00'))
        self.assertEqual(order.delivery_fee, Decimal('4.99'))
        self.assertEqual(order.total, Decimal('24.99'))
        self.assertEqual(order.items.get().product_name, 'Kaffee')
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock, 8)
        self.assertFalse(CartItem.objects.filter(user=self.user).exists())

    def test_campaign_and_coupon(self):
        TestDataFactory.create_campaign('PERCENTAGE')
        coupon = TestDataFactory.create_coupon(code='KAFFEE10')
        order = services.create_order(self.user, items=[{'product_id': self.product.id, 'quantity': 2}],
                                      address=ADDRESS, coupon_code='kaffee10')
        self.assertEqual(order.campaign_discount, Decimal('2.00'))
        self.assertEqual(order.coupon_discount, Decimal('1.80'))
        self.assertEqual(order.total, Decimal('21.19'))
        self.assertTrue(CouponUsage.objects.filter(coupon=coupon, order=order).exists())
        coupon.refresh_from_db()
        self.assertEqual(coupon.usage_count, 1)

    def test_pickup_needs_no_address(self):
        order = services.create_order(self.user, order_type='pickup', items=[{'product_id': self.product.id}])
        self.assertEqual(order.delivery_fee, Decimal('0.00'))
        self.assertIsNone(order.address)

    def test_validation_errors(self):
        with self.assertRaises(ValidationError):
            services.create_order(self.user, address=ADDRESS)
        with self.assertRaises(ValidationError):
            services.create_order(self.user, items=[{'product_id': self.product.id}], address={'city': 'Berlin'})
        with self.assertRaises(ValidationError):
            services.create_order(self.user, items=[{'product_id': self.product.id, 'quantity': 11}], address=ADDRESS)

    def test_min_order_amount(self):
        store_settings = StoreSettings.load()
        store_settings.min_order_amount = Decimal('15.00')
        store_settings.save()
        with self.assertRaises(ValidationError):
            services.create_order(self.user, items=[{'product_id': self.product.id}], address=ADDRESS)

    def test_creation_sends_notifications(self):
        with self.captureOnCommitCallbacks(execute=True):
            order = services.create_order(self.user, items=[{'product_id': self.product.id}], address=ADDRESS)
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, [self.user.email])
        self.assertIn(order.order_no, mail.outbox[0].subject)
        self.assertTrue(Notification.objects.filter(user=self.admin, type='order').exists())

    def test_status_flow(self):
        order = services.create_order(self.user, items=[{'product_id': self.product.id, 'quantity': 3}],
                                      address=ADDRESS)
        with self.captureOnCommitCallbacks(execute=True):
            services.update_order_status(order.id, 'accepted', self.admin)
        order.refresh_from_db()
        self.assertEqual([entry['status'] for entry in order.status_history], ['pending', 'accepted'])
        self.assertEqual(len(mail.outbox), 1)
        self.assertIn('Angenommen', mail.outbox[0].subject)
        self.assertTrue(Notification.objects.filter(user=self.user).exists())

        with self.assertRaises(ValidationError):
            services.update_order_status(order.id, 'pending', self.admin)

    def test_admin_cancel_restocks(self):
        order = services.create_order(self.user, items=[{'product_id': self.product.id, 'quantity': 4}],
                                      address=ADDRESS)
        services.update_order_status(order.id, 'cancelled', self.admin, note='Nicht lieferbar')
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock, 10)
        order.refresh_from_db()
        self.assertEqual(order.cancel_reason, 'Nicht lieferbar')

    def test_customer_cancel(self):
        order = services.create_order(self.user, items=[{'product_id': self.product.id}], address=ADDRESS)
        with self.assertRaises(NotFoundError):
            services.cancel_order_by_customer(order.id, TestDataFactory.create_user())
        services.update_order_status(order.id, 'accepted')
        services.update_order_status(order.id, 'preparing')
        with self.assertRaises(ValidationError):
            services.cancel_order_by_customer(order.id, self.user)

    def test_order_visibility(self):
        order = services.create_order(self.user, items=[{'product_id': self.product.id}], address=ADDRESS)
        self.assertEqual(services.get_order_for_user(order.id, self.admin), order)
        with self.assertRaises(ForbiddenError):
            services.get_order_for_user(order.id, TestDataFactory.create_user())

    def test_stats(self):
        services.create_order(self.user, items=[{'product_id': self.product.id}], address=ADDRESS)
        stats = services.get_order_stats()
        self.assertEqual(stats['total_orders'], 1)
        self.assertEqual(stats['pending_orders'], 1)
        self.assertEqual(stats['today_orders'], 1)


class OrderAPITests(StoreTestCase):
    """Test cart and order endpoints"""

    def setUp(self):
        super().setUp()
        self.user = TestDataFactory.create_user()
        self.product = TestDataFactory.create_product(price=Decimal('3.50'), stock=4)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_cart_requires_login(self):
        response = AuthenticatedAPIClient().get('/api/v1/cart/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_cart_and_checkout(self):
        response = self.client.post('/api/v1/cart/', {'product_id': self.product.id, 'quantity': 2}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['subtotal'], '7.00')

        response = self.client.post('/api/v1/orders/', {'type': 'delivery', 'address': ADDRESS}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['total'], '11.99')
        self.assertEqual(len(response.data['items']), 1)

        response = self.client.get('/api/v1/orders/')
        self.assertEqual(response.data['count'], 1)

    def test_checkout_rejects_non_numeric_product_id(self):
        response = self.client.post('/api/v1/orders/', {
            'type': 'pickup', 'items': [{'product_id': 'abc', 'quantity': 1}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['message'], 'Each item needs a numeric product_id')

    def test_cart_stock_error_shape(self):
        response = self.client.post('/api/v1/cart/', {'product_id': self.product.id, 'quantity': 5}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(response.data['success'])

    def test_customer_cancel_endpoint(self):
        order = services.create_order(self.user, items=[{'product_id': self.product.id}], address=ADDRESS)
        response = self.client.post(f'/api/v1/orders/{order.id}/cancel/', {'reason': 'Doppelt bestellt'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'cancelled')

    def test_admin_status_endpoint(self):
        order = services.create_order(self.user, items=[{'product_id': self.product.id}], address=ADDRESS)
        admin = TestDataFactory.create_admin(permissions=['order_management'])
        client = AuthenticatedAPIClient().authenticate_user(admin)
        response = client.patch(f'/api/v1/admin/orders/{order.id}/status/', {'status': 'accepted'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'accepted')

        response = client.patch(f'/api/v1/admin/orders/{order.id}/status/', {'status': 'pending'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_customer_cannot_list_all_orders(self):
        response = self.client.get('/api/v1/admin/orders/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
