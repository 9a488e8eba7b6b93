"""
Test utilities and factories for creating test data
"""
from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.test import TestCase
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken
from backend.catalog.models import Category, Product
from backend.promotions.models import Campaign, Coupon
from decimal import Decimal
from datetime import timedelta
from django.utils import timezone
import random
import string

User = get_user_model()

ALL_PERMISSIONS = [code for code, _ in User.PERMISSION_CHOICES]


class TestDataFactory:
    """Factory class for creating test data"""

    @staticmethod
    def random_string(length=10):
        """Generate a random string"""
        return ''.join(random.choices(string.ascii_letters + string.digits, k=length))

    @staticmethod
    def create_user(username=None, email=None, password='testpass123', role='customer', permissions=None, **extra):
        """Create a test user (a customer unless role says otherwise)"""
        if not username:
            username = f'testuser_{TestDataFactory.random_string(6)}'
        if not email:
            email = f'{username}@test.com'
        return User.objects.create_user(
            username=username,
            email=email,
            password=password,
            role=role,
            permissions=permissions or [],
            **extra
        )

    @staticmethod
    def create_admin(permissions=None, username=None, email=None, **extra):
        """Create an admin; holds every permission unless a list is given"""
        return TestDataFactory.create_user(
            username=username or f'admin_{TestDataFactory.random_string(6)}',
            email=email,
            role='admin',
            permissions=ALL_PERMISSIONS if permissions is None else permissions,
            **extra
        )

    @staticmethod
    def create_category(name=None, **extra):
        """Create a test category"""
        if not name:
            name = f'Category_{TestDataFactory.random_string(6)}'
        return Category.objects.create(name=name, **extra)

    @staticmethod
    def create_product(name=None, category=None, price=Decimal('2.49'), stock=10, expiry_date=None, **extra):
        """Create a test product"""
        if not name:
            name = f'Product_{TestDataFactory.random_string(6)}'
        return Product.objects.create(
            name=name,
            category=category,
            price=price,
            stock=stock,
            expiry_date=expiry_date,
            **extra
        )

    @staticmethod
    def create_expiring_product(days, **extra):
        """Create a product whose best-before date is `days` away from today"""
        return TestDataFactory.create_product(
            expiry_date=timezone.localdate() + timedelta(days=days),
            **extra
        )

    @staticmethod
    def create_campaign(campaign_type='PERCENTAGE', name=None, **extra):
        """Create a campaign running from yesterday to next week"""
        now = timezone.now()
        defaults = {
            'start_date': now - timedelta(days=1),
            'end_date': now + timedelta(days=7),
            'apply_to_all': True,
        }
        if campaign_type == 'PERCENTAGE':
            defaults['discount_percent'] = Decimal('10.00')
        elif campaign_type == 'FIXED_AMOUNT':
            defaults['discount_amount'] = Decimal('1.00')
        elif campaign_type == 'BUY_X_GET_Y':
            defaults['buy_quantity'] = 3
            defaults['get_quantity'] = 2
        defaults.update(extra)
        return Campaign.objects.create(
            name=name or f'Campaign_{TestDataFactory.random_string(6)}',
            type=campaign_type,
            **defaults
        )

    @staticmethod
    def create_coupon(code=None, coupon_type='PERCENTAGE', **extra):
        """Create a coupon valid from yesterday to next week"""
        now = timezone.now()
        defaults = {
            'start_date': now - timedelta(days=1),
            'end_date': now + timedelta(days=7),
        }
        if coupon_type == 'PERCENTAGE':
            defaults['discount_percent'] = Decimal('10.00')
        else:
            defaults['discount_amount'] = Decimal('5.00')
        defaults.update(extra)
        return Coupon.objects.create(
            code=code or f'TEST{TestDataFactory.random_string(6).upper()}',
            type=coupon_type,
            **defaults
        )


class AuthenticatedAPIClient(APIClient):
    """APIClient with authentication helper"""

    def authenticate_user(self, user):
        """Authenticate the client with a user"""
        refresh = RefreshToken.for_user(user)
        self.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
        return self

    def logout(self):
        """Remove authentication"""
        self.credentials()


class StoreTestCase(TestCase):
    """TestCase that starts every test with an empty cache (settings and product lists are cached)"""

    def setUp(self):
        super().setUp()
        cache.clear()
