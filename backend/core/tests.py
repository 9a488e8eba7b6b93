"""
Test suite for the core module
Tests: authentication, user management, store settings, activity log, error responses
"""
from datetime import timedelta
from decimal import Decimal
from io import StringIO

from django.core.management import call_command
from django.db import connection
from django.db.migrations.loader import MigrationLoader
from django.utils import timezone
from rest_framework import status

from backend.core.exceptions import NotFoundError, ValidationError
from backend.core.models import User, StoreSettings, ActivityLog
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient, StoreTestCase
from backend.core.utils import create_activity_log


class UserModelTests(StoreTestCase):
    """Test role and permission helpers"""

    def test_customer_has_no_admin_permission(self):
        user = TestDataFactory.create_user(permissions=['order_management'])
        self.assertFalse(user.is_admin)
        self.assertFalse(user.has_admin_permission('order_management'))

    def test_admin_permission_requires_code(self):
        admin = TestDataFactory.create_admin(permissions=['expiry_management_view'])
        self.assertTrue(admin.has_admin_permission('expiry_management_view'))
        self.assertFalse(admin.has_admin_permission('expiry_management_action'))

    def test_superadmin_holds_everything(self):
        superadmin = TestDataFactory.create_user(role='superadmin')
        self.assertTrue(superadmin.has_admin_permission('settings_management'))

    def test_inactive_admin_has_no_permission(self):
        admin = TestDataFactory.create_admin(is_active=False)
        self.assertFalse(admin.has_admin_permission('order_management'))


class AuthAPITests(StoreTestCase):
    """Test registration, login and profile endpoints"""

    def setUp(self):
        super().setUp()
        self.client = AuthenticatedAPIClient()

    def test_register_creates_customer(self):
        data = {
            'username': 'lena',
            'email': 'lena@test.com',
            'password': 'sicher-123',
            'password_confirm': 'sicher-123',
            'role': 'superadmin',
        }
        response = self.client.post('/api/v1/auth/register/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertIn('access', response.data)
        self.assertEqual(User.objects.get(username='lena').role, 'customer')

    def test_register_password_mismatch(self):
        data = {'username': 'lena', 'email': 'lena@test.com', 'password': 'sicher-123', 'password_confirm': 'anders-123'}
        response = self.client.post('/api/v1/auth/register/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_login_returns_role_and_permissions(self):
        TestDataFactory.create_admin(username='chef', permissions=['order_management'])
        response = self.client.post('/api/v1/auth/login/', {'username': 'chef', 'password': 'testpass123'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['user']['role'], 'admin')
        self.assertEqual(response.data['user']['permissions'], ['order_management'])

    def test_me_requires_authentication(self):
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_me_cannot_change_role(self):
        user = TestDataFactory.create_user()
        self.client.authenticate_user(user)
        response = self.client.patch('/api/v1/auth/me/', {'first_name': 'Max', 'role': 'admin'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        user.refresh_from_db()
        self.assertEqual(user.first_name, 'Max')
        self.assertEqual(user.role, 'customer')


class UserManagementAPITests(StoreTestCase):
    """Test admin user management"""

    def setUp(self):
        super().setUp()
        self.admin = TestDataFactory.create_admin(permissions=['settings_management'])
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)

    def test_create_admin_user(self):
        data = {
            'username': 'mitarbeiter',
            'email': 'mitarbeiter@test.com',
            'password': 'sicher-123',
            'role': 'admin',
            'permissions': ['expiry_management_view', 'expiry_management_action'],
        }
        response = self.client.post('/api/v1/admin/users/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        user = User.objects.get(username='mitarbeiter')
        self.assertTrue(user.check_password('sicher-123'))
        self.assertTrue(ActivityLog.objects.filter(action='create', entity_type='User').exists())

    def test_unknown_permission_code_rejected(self):
        data = {'username': 'x', 'email': 'x@test.com', 'password': 'sicher-123', 'role': 'admin',
                'permissions': ['launch_rockets']}
        response = self.client.post('/api/v1/admin/users/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_cannot_delete_self(self):
        response = self.client.delete(f'/api/v1/admin/users/{self.admin.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_admin_without_permission_forbidden(self):
        other = TestDataFactory.create_admin(permissions=['order_management'])
        self.client.authenticate_user(other)
        response = self.client.get('/api/v1/admin/users/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class StoreSettingsTests(StoreTestCase):
    """Test the settings singleton and its endpoints"""

    def setUp(self):
        super().setUp()
        self.admin = TestDataFactory.create_admin(permissions=['settings_management'])
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)

    def test_load_creates_defaults(self):
        store_settings = StoreSettings.load()
        self.assertEqual(store_settings.pk, 1)
        self.assertEqual(store_settings.expiry_management_settings['warningDays'], 3)
        self.assertEqual(store_settings.order_id_format['prefix'], 'GS')

    def test_save_keeps_single_row(self):
        StoreSettings().save()
        StoreSettings().save()
        self.assertEqual(StoreSettings.objects.count(), 1)

    def test_public_settings_for_guests(self):
        response = AuthenticatedAPIClient().get('/api/v1/settings/public/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('shipping_rules', response.data)

    def test_partial_update_merges_json(self):
        response = self.client.patch('/api/v1/admin/settings/', {
            'order_id_format': {'prefix': 'BIO'},
            'min_order_amount': '15.00',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        store_settings = StoreSettings.load()
        self.assertEqual(store_settings.order_id_format['prefix'], 'BIO')
        self.assertEqual(store_settings.order_id_format['separator'], '-')
        self.assertEqual(store_settings.min_order_amount, Decimal('15.00'))

    def test_invalid_shipping_rules(self):
        response = self.client.patch('/api/v1/admin/settings/', {
            'shipping_rules': [{'min': 10, 'max': 5, 'fee': 1}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_invalid_order_id_format(self):
        response = self.client.patch('/api/v1/admin/settings/', {
            'order_id_format': {'dateFormat': 'WEEKDAY'},
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class ActivityLogTests(StoreTestCase):
    """Test the activity log helper and endpoints"""

    def setUp(self):
        super().setUp()
        self.admin = TestDataFactory.create_admin(permissions=['activity_log_view'])
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)

    def test_helper_skips_missing_fields(self):
        self.assertIsNone(create_activity_log(user=self.admin, action=None, entity_type='Product'))
        self.assertEqual(ActivityLog.objects.count(), 0)

    def test_list_filters_by_action(self):
        create_activity_log(user=self.admin, action='expiry_label', entity_type='Product', entity_id=1)
        create_activity_log(user=self.admin, action='settings_update', entity_type='StoreSettings', entity_id=1)
        response = self.client.get('/api/v1/admin/activity-logs/', {'action': 'expiry_label'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['entity_type'], 'Product')

    def test_list_is_paginated(self):
        for i in range(5):
            create_activity_log(user=self.admin, action='update', entity_type='Product', entity_id=i)
        response = self.client.get('/api/v1/admin/activity-logs/', {'limit': 2, 'page': 2})
        self.assertEqual(len(response.data['results']), 2)
        self.assertEqual(response.data['total_pages'], 3)
        self.assertEqual(response.data['previous'], 1)


class ExceptionHandlerTests(StoreTestCase):
    """Test error response shape"""

    def test_not_found_shape(self):
        admin = TestDataFactory.create_admin()
        client = AuthenticatedAPIClient().authenticate_user(admin)
        response = client.get('/api/v1/admin/activity-logs/999999/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data, {'success': False, 'message': 'Resource not found'})

    def test_app_error_carries_status(self):
        self.assertEqual(NotFoundError().status_code, 404)
        error = ValidationError('Bad', details={'field': 'x'})
        self.assertEqual(error.status_code, 400)
        self.assertEqual(error.details, {'field': 'x'})


class ManagementCommandTests(StoreTestCase):
    """Test create_admin and clean_old_logs"""

    def test_create_admin(self):
        call_command('create_admin', username='boss', email='boss@test.com', password='sicher-123',
                     permissions='order_management', stdout=StringIO())
        user = User.objects.get(username='boss')
        self.assertEqual(user.role, 'admin')
        self.assertEqual(user.permissions, ['order_management'])

    def test_clean_old_logs(self):
        old = create_activity_log(user=None, action='update', entity_type='Product', entity_id=1)
        ActivityLog.objects.filter(pk=old.pk).update(created_at=timezone.now() - timedelta(days=120))
        create_activity_log(user=None, action='update', entity_type='Product', entity_id=2)

        call_command('clean_old_logs', days=90, stdout=StringIO())
        self.assertEqual(ActivityLog.objects.count(), 1)


class MigrationTests(StoreTestCase):
    """Test that every app's migrations are loaded"""

    def test_all_app_migrations_in_graph(self):
        loader = MigrationLoader(connection)
        for app_label in ('core', 'catalog', 'expiry', 'promotions', 'orders', 'notifications'):
            self.assertIn((app_label, '0001_initial'), loader.graph.nodes, app_label)
        self.assertIn(('promotions', '0002_couponusage_order'), loader.graph.nodes)
