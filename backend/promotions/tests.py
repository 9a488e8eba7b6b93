"""
Test suite for promotions
Tests: campaign discounts, coupon validation, admin endpoints
"""
from datetime import timedelta
from decimal import Decimal

from django.utils import timezone
from rest_framework import status

from backend.core.exceptions import NotFoundError, ValidationError
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient, StoreTestCase
from backend.orders.services import add_to_cart
from backend.promotions.discounts import DiscountCalculator, get_campaign_badge, line_discount
from backend.promotions.models import Campaign, Coupon, CouponUsage
from backend.promotions.services import (
    get_active_campaigns, calculate_coupon_discount, validate_coupon, record_coupon_usage,
    generate_coupon_code, delete_coupon, get_coupon_stats
)


class CampaignDiscountTests(StoreTestCase):
    """Test campaign discount math"""

    def setUp(self):
        super().setUp()
        self.category = TestDataFactory.create_category(name='Getränke')
        self.water = TestDataFactory.create_product(name='Wasser', category=self.category, price=Decimal('1.00'))
        self.bread = TestDataFactory.create_product(name='Brot', price=Decimal('3.00'))

    def test_badges(self):
        self.assertEqual(get_campaign_badge(TestDataFactory.create_campaign('PERCENTAGE')), '-10%')
        self.assertEqual(get_campaign_badge(TestDataFactory.create_campaign('FIXED_AMOUNT')), '-1,00 €')
        self.assertEqual(get_campaign_badge(TestDataFactory.create_campaign('BUY_X_GET_Y')), '3 für 2')
        self.assertEqual(get_campaign_badge(TestDataFactory.create_campaign('FREE_SHIPPING')), 'Gratis Versand')

    def test_buy_x_get_y_per_line(self):
        campaign = TestDataFactory.create_campaign('BUY_X_GET_Y')
        self.assertEqual(line_discount(campaign, Decimal('1.00'), 2), Decimal('0.00'))
        self.assertEqual(line_discount(campaign, Decimal('1.00'), 3), Decimal('1.00'))
        self.assertEqual(line_discount(campaign, Decimal('1.00'), 7), Decimal('2.00'))

    def test_fixed_amount_never_exceeds_price(self):
        campaign = TestDataFactory.create_campaign('FIXED_AMOUNT', discount_amount=Decimal('5.00'))
        self.assertEqual(line_discount(campaign, Decimal('1.00'), 2), Decimal('2.00'))

    def test_max_discount_caps(self):
        campaign = TestDataFactory.create_campaign('PERCENTAGE', discount_percent=Decimal('50.00'),
                                                   max_discount=Decimal('1.00'))
        self.assertEqual(line_discount(campaign, Decimal('10.00'), 1), Decimal('1.00'))

    def test_best_campaign_wins(self):
        small = TestDataFactory.create_campaign('PERCENTAGE', discount_percent=Decimal('5.00'))
        big = TestDataFactory.create_campaign('FIXED_AMOUNT', discount_amount=Decimal('0.50'))
        campaign, discount = DiscountCalculator([small, big]).best_campaign(self.water)
        self.assertEqual(campaign, big)
        self.assertEqual(discount, Decimal('0.50'))

    def test_category_targeting(self):
        campaign = TestDataFactory.create_campaign('PERCENTAGE', apply_to_all=False, category_ids=[self.category.id])
        calculator = DiscountCalculator([campaign])
        self.assertEqual(calculator.applicable_campaigns(self.water), [campaign])
        self.assertEqual(calculator.applicable_campaigns(self.bread), [])

    def test_calculate_cart_with_free_shipping(self):
        percent = TestDataFactory.create_campaign('PERCENTAGE')
        shipping = TestDataFactory.create_campaign('FREE_SHIPPING', min_purchase=Decimal('10.00'))
        cart = DiscountCalculator([percent, shipping]).calculate_cart([(self.water, 2), (self.bread, 4)])
        self.assertEqual(cart['subtotal'], Decimal('14.00'))
        self.assertEqual(cart['discount'], Decimal('1.40'))
        self.assertEqual(cart['discounted_subtotal'], Decimal('12.60'))
        self.assertEqual(cart['free_shipping_campaign'], shipping)

    def test_active_campaigns_filter(self):
        active = TestDataFactory.create_campaign('PERCENTAGE')
        TestDataFactory.create_campaign('PERCENTAGE', is_active=False)
        TestDataFactory.create_campaign('PERCENTAGE', start_date=timezone.now() + timedelta(days=1))
        TestDataFactory.create_campaign('PERCENTAGE', usage_limit=1, usage_count=1)
        self.assertEqual(get_active_campaigns(), [active])


class CouponTests(StoreTestCase):
    """Test coupon validation and usage"""

    def setUp(self):
        super().setUp()
        self.user = TestDataFactory.create_user()
        self.product = TestDataFactory.create_product(price=Decimal('10.00'))
        self.cart = [(self.product, 3)]

    def test_code_is_upper_cased(self):
        coupon = TestDataFactory.create_coupon(code=' sommer10 ')
        self.assertEqual(coupon.code, 'SOMMER10')
        result = validate_coupon('sommer10', self.user, self.cart, Decimal('30.00'))
        self.assertEqual(result['coupon'], coupon)
        self.assertEqual(result['discount'], Decimal('3.00'))

    def test_unknown_code(self):
        with self.assertRaises(NotFoundError):
            validate_coupon('GIBTSNICHT', self.user, self.cart, Decimal('30.00'))

    def test_expired_and_inactive(self):
        TestDataFactory.create_coupon(code='ALT', end_date=timezone.now() - timedelta(hours=1),
                                      start_date=timezone.now() - timedelta(days=2))
        TestDataFactory.create_coupon(code='AUS', is_active=False)
        with self.assertRaises(ValidationError):
            validate_coupon('ALT', self.user, self.cart, Decimal('30.00'))
        with self.assertRaises(ValidationError):
            validate_coupon('AUS', self.user, self.cart, Decimal('30.00'))

    def test_min_purchase(self):
        TestDataFactory.create_coupon(code='AB50', min_purchase=Decimal('50.00'))
        with self.assertRaises(ValidationError):
            validate_coupon('AB50', self.user, self.cart, Decimal('30.00'))

    def test_user_usage_limit(self):
        coupon = TestDataFactory.create_coupon(code='EINMAL')
        record_coupon_usage(coupon, self.user, None, Decimal('3.00'))
        coupon.refresh_from_db()
        self.assertEqual(coupon.usage_count, 1)
        with self.assertRaises(ValidationError):
            validate_coupon('EINMAL', self.user, self.cart, Decimal('30.00'))
        other = TestDataFactory.create_user()
        self.assertTrue(validate_coupon('EINMAL', other, self.cart, Decimal('30.00')))

    def test_assigned_users_only(self):
        TestDataFactory.create_coupon(code='VIP', user_ids=[self.user.id])
        with self.assertRaises(ValidationError):
            validate_coupon('VIP', TestDataFactory.create_user(), self.cart, Decimal('30.00'))

    def test_product_targeting(self):
        TestDataFactory.create_coupon(code='NURBROT', apply_to_all=False, product_ids=[self.product.id + 1000])
        with self.assertRaises(ValidationError):
            validate_coupon('NURBROT', self.user, self.cart, Decimal('30.00'))

    def test_discount_calculation(self):
        fixed = TestDataFactory.create_coupon(code='FUENF', coupon_type='FIXED_AMOUNT')
        capped = TestDataFactory.create_coupon(code='HALB', discount_percent=Decimal('50.00'), max_discount=Decimal('4.00'))
        self.assertEqual(calculate_coupon_discount(fixed, Decimal('3.00')), Decimal('3.00'))
        self.assertEqual(calculate_coupon_discount(capped, Decimal('30.00')), Decimal('4.00'))

    def test_used_coupon_cannot_be_deleted(self):
        coupon = TestDataFactory.create_coupon()
        record_coupon_usage(coupon, self.user, None, Decimal('1.50'))
        with self.assertRaises(ValidationError):
            delete_coupon(coupon)
        stats = get_coupon_stats(coupon)
        self.assertEqual(stats['total_usage'], 1)
        self.assertEqual(stats['total_discount'], '1.50')

    def test_generate_code(self):
        code = generate_coupon_code(10)
        self.assertEqual(len(code), 10)
        self.assertEqual(code, code.upper())


class PromotionAPITests(StoreTestCase):
    """Test campaign and coupon endpoints"""

    def setUp(self):
        super().setUp()
        self.admin = TestDataFactory.create_admin(permissions=['campaign_management', 'coupon_management'])
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)
        self.now = timezone.now()

    def test_create_campaign(self):
        response = self.client.post('/api/v1/admin/campaigns/', {
            'name': 'Wochenangebot',
            'type': 'PERCENTAGE',
            'discount_percent': '15.00',
            'start_date': self.now.isoformat(),
            'end_date': (self.now + timedelta(days=7)).isoformat(),
            'apply_to_all': True,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['slug'], 'wochenangebot')
        self.assertEqual(response.data['badge'], '-15%')
        self.assertEqual(Campaign.objects.get().created_by, self.admin)

    def test_campaign_validation(self):
        response = self.client.post('/api/v1/admin/campaigns/', {
            'name': 'Kaputt',
            'type': 'BUY_X_GET_Y',
            'buy_quantity': 2,
            'get_quantity': 3,
            'start_date': self.now.isoformat(),
            'end_date': (self.now + timedelta(days=7)).isoformat(),
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('get_quantity', response.data)

    def test_active_campaigns_public(self):
        TestDataFactory.create_campaign('PERCENTAGE')
        response = AuthenticatedAPIClient().get('/api/v1/campaigns/active/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)

    def test_create_coupon_duplicate_code(self):
        TestDataFactory.create_coupon(code='HERBST')
        response = self.client.post('/api/v1/admin/coupons/', {
            'code': 'herbst',
            'type': 'FIXED_AMOUNT',
            'discount_amount': '2.00',
            'start_date': self.now.isoformat(),
            'end_date': (self.now + timedelta(days=7)).isoformat(),
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('code', response.data)

    def test_delete_used_coupon_rejected(self):
        coupon = TestDataFactory.create_coupon()
        CouponUsage.objects.create(coupon=coupon, user=self.admin, discount=Decimal('1.00'))
        response = self.client.delete(f'/api/v1/admin/coupons/{coupon.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertTrue(Coupon.objects.filter(pk=coupon.pk).exists())

    def test_validate_against_cart(self):
        customer = TestDataFactory.create_user()
        product = TestDataFactory.create_product(price=Decimal('20.00'))
        add_to_cart(customer, product.id, 1)
        TestDataFactory.create_coupon(code='ZEHN')

        client = AuthenticatedAPIClient().authenticate_user(customer)
        response = client.post('/api/v1/coupons/validate/', {'code': 'zehn'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['discount'], '2.00')

    def test_customer_cannot_manage(self):
        self.client.authenticate_user(TestDataFactory.create_user())
        response = self.client.get('/api/v1/admin/coupons/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
