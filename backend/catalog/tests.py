"""
Test suite for the catalog
Tests: product API, storefront pricing, task board, bulk price updates, shelf labels
"""
from decimal import Decimal

from rest_framework import status

from backend.core.exceptions import NotFoundError, ValidationError
from backend.core.cache_utils import get_cached_products_list, cache_products_list
from backend.core.models import StoreSettings, ActivityLog
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient, StoreTestCase
from backend.catalog.label_generator import barcode_symbology, format_price, generate_shelf_label, label_data_url
from backend.catalog.models import BulkPriceUpdate, ProductTaskIgnore, BarcodeLabel
from backend.catalog.pricing import (
    compute_new_price, preview_bulk_price_update, apply_bulk_price_update, revert_bulk_price_update
)
from backend.catalog.task_board import get_product_tasks, ignore_task, remove_ignore


class ProductModelTests(StoreTestCase):
    """Test slugs and helpers"""

    def test_slug_is_unique(self):
        first = TestDataFactory.create_product(name='Bio Milch')
        second = TestDataFactory.create_product(name='Bio Milch')
        self.assertEqual(first.slug, 'bio-milch')
        self.assertEqual(second.slug, 'bio-milch-2')

    def test_main_image(self):
        product = TestDataFactory.create_product(image_urls=['https://cdn.test/a.jpg', 'https://cdn.test/b.jpg'])
        self.assertEqual(product.main_image, 'https://cdn.test/a.jpg')
        self.assertIsNone(TestDataFactory.create_product().main_image)


class ProductAPITests(StoreTestCase):
    """Test storefront and admin product endpoints"""

    def setUp(self):
        super().setUp()
        self.client = AuthenticatedAPIClient()
        self.category = TestDataFactory.create_category(name='Molkerei')
        self.product = TestDataFactory.create_product(name='Joghurt', category=self.category, price=Decimal('1.00'))
        self.hidden = TestDataFactory.create_product(name='Altbestand', is_active=False)

    def test_storefront_lists_active_products(self):
        response = self.client.get('/api/v1/products/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([p['name'] for p in response.data['results']], ['Joghurt'])

    def test_storefront_shows_campaign_price(self):
        TestDataFactory.create_campaign('PERCENTAGE', discount_percent=Decimal('20.00'))
        response = self.client.get(f'/api/v1/products/{self.product.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['pricing']['discounted_price'], '0.80')
        self.assertEqual(response.data['pricing']['campaign']['badge'], '-20%')

    def test_inactive_product_hidden_from_customers(self):
        response = self.client.get(f'/api/v1/products/{self.hidden.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_guest_blocked_when_disabled(self):
        store_settings = StoreSettings.load()
        store_settings.guest_can_view_products = False
        store_settings.save()
        response = self.client.get('/api/v1/products/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_product_by_slug(self):
        response = self.client.get(f'/api/v1/products/slug/{self.product.slug}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['id'], self.product.id)

    def test_customer_cannot_create(self):
        self.client.authenticate_user(TestDataFactory.create_user())
        response = self.client.post('/api/v1/products/', {'name': 'Käse', 'price': '3.99'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_admin_creates_product(self):
        self.client.authenticate_user(TestDataFactory.create_admin(permissions=['product_management']))
        response = self.client.post('/api/v1/products/', {
            'name': 'Käse', 'price': '3.99', 'stock': 5, 'category': self.category.id,
            'expiry_date': '2030-01-31', 'barcode': '4001234567890',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['slug'], 'kase')
        self.assertTrue(ActivityLog.objects.filter(action='create', entity_type='Product').exists())

    def test_duplicate_barcode_rejected(self):
        TestDataFactory.create_product(barcode='4001234567890')
        self.client.authenticate_user(TestDataFactory.create_admin(permissions=['product_management']))
        response = self.client.post('/api/v1/products/', {'name': 'Kopie', 'barcode': '4001234567890'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_admin_list_includes_inactive(self):
        self.client.authenticate_user(TestDataFactory.create_admin(permissions=['product_management']))
        response = self.client.get('/api/v1/products/', {'is_active': 'false'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([p['id'] for p in response.data['results']], [self.hidden.id])

    def test_price_change_is_logged(self):
        self.client.authenticate_user(TestDataFactory.create_admin(permissions=['product_management']))
        response = self.client.patch(f'/api/v1/products/{self.product.id}/', {'price': '1.29'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        log = ActivityLog.objects.get(action='price_change')
        self.assertEqual(log.details, {'old': '1.00', 'new': '1.29'})

    def test_category_change_drops_cached_product_list(self):
        _, cache_key = get_cached_products_list({'category': self.category.id})
        cache_products_list(cache_key, {'results': []})
        self.category.name = 'Milchprodukte'
        self.category.save()
        self.assertEqual(get_cached_products_list({'category': self.category.id}), (None, cache_key))

    def test_category_product_count(self):
        response = self.client.get('/api/v1/categories/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data[0]['product_count'], 1)


class TaskBoardTests(StoreTestCase):
    """Test the missing-information task board"""

    def setUp(self):
        super().setUp()
        self.no_price = TestDataFactory.create_product(name='Ohne Preis', price=None, barcode='111',
                                                       image_urls=['https://cdn.test/x.jpg'])
        self.no_stock = TestDataFactory.create_product(name='Ausverkauft', stock=0, barcode='222',
                                                       image_urls=['https://cdn.test/y.jpg'])

    def test_groups_products_by_task(self):
        tasks = get_product_tasks()
        self.assertEqual([p['id'] for p in tasks['price']['products']], [self.no_price.id])
        self.assertEqual([p['id'] for p in tasks['stock']['products']], [self.no_stock.id])
        self.assertEqual(tasks['image']['count'], 0)
        self.assertEqual(tasks['total'], 2)

    def test_ignored_task_is_hidden(self):
        ignore, created = ignore_task(self.no_price.id, 'price')
        self.assertTrue(created)
        self.assertEqual(get_product_tasks('price')['price']['count'], 0)
        _, created = ignore_task(self.no_price.id, 'price')
        self.assertFalse(created)

        remove_ignore(ignore.id)
        self.assertEqual(get_product_tasks('price')['price']['count'], 1)

    def test_invalid_category(self):
        with self.assertRaises(ValidationError):
            get_product_tasks('colour')
        with self.assertRaises(NotFoundError):
            ignore_task(999999, 'price')

    def test_task_endpoints(self):
        client = AuthenticatedAPIClient().authenticate_user(TestDataFactory.create_admin(permissions=['product_management']))
        response = client.post('/api/v1/admin/tasks/ignore/', {'product_id': self.no_stock.id, 'category': 'stock'},
                               format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(ProductTaskIgnore.objects.filter(product=self.no_stock, category='stock').exists())

        response = client.get('/api/v1/admin/tasks/', {'category': 'stock'})
        self.assertEqual(response.data['stock']['count'], 0)


class BulkPriceUpdateTests(StoreTestCase):
    """Test preview, apply and revert of bulk price updates"""

    def setUp(self):
        super().setUp()
        self.category = TestDataFactory.create_category(name='Obst')
        self.apple = TestDataFactory.create_product(name='Apfel', category=self.category, price=Decimal('2.00'))
        self.pear = TestDataFactory.create_product(name='Birne', category=self.category, price=Decimal('3.00'))
        self.bread = TestDataFactory.create_product(name='Brot', price=Decimal('4.00'))

    def test_compute_new_price(self):
        self.assertEqual(compute_new_price(Decimal('2.00'), 'increase_percent', Decimal('10')), Decimal('2.20'))
        self.assertEqual(compute_new_price(Decimal('2.00'), 'decrease_amount', Decimal('5')), Decimal('0.00'))
        self.assertEqual(compute_new_price(Decimal('2.00'), 'set_price', Decimal('1.49')), Decimal('1.49'))

    def test_preview_does_not_write(self):
        preview = preview_bulk_price_update('increase_amount', '0.50', {'category': self.category.id})
        self.assertEqual(preview['affected_count'], 2)
        self.apple.refresh_from_db()
        self.assertEqual(self.apple.price, Decimal('2.00'))

    def test_apply_and_revert(self):
        log = apply_bulk_price_update('decrease_percent', '50', {'category': self.category.id})
        self.assertEqual(log.affected_count, 2)
        self.apple.refresh_from_db()
        self.bread.refresh_from_db()
        self.assertEqual(self.apple.price, Decimal('1.00'))
        self.assertEqual(self.bread.price, Decimal('4.00'))

        _, restored = revert_bulk_price_update(log.id)
        self.assertEqual(restored, 2)
        self.apple.refresh_from_db()
        self.assertEqual(self.apple.price, Decimal('2.00'))
        with self.assertRaises(ValidationError):
            revert_bulk_price_update(log.id)

    def test_rejects_invalid_request(self):
        with self.assertRaises(ValidationError):
            preview_bulk_price_update('decrease_percent', '150')
        with self.assertRaises(ValidationError):
            preview_bulk_price_update('double', '1')
        with self.assertRaises(ValidationError):
            apply_bulk_price_update('set_price', '9.99', {'search': 'Nichts passt'})

    def test_apply_endpoint(self):
        client = AuthenticatedAPIClient().authenticate_user(TestDataFactory.create_admin(permissions=['product_management']))
        response = client.post('/api/v1/admin/bulk-price/apply/', {
            'update_type': 'set_price', 'value': '0.99', 'filters': {'product_ids': [self.bread.id]},
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(BulkPriceUpdate.objects.count(), 1)
        response = client.post(f"/api/v1/admin/bulk-price/{response.data['id']}/revert/")
        self.assertEqual(response.data['restored'], 1)


class ShelfLabelTests(StoreTestCase):
    """Test shelf label rendering"""

    def test_format_price(self):
        self.assertEqual(format_price(Decimal('1234.5')), '1.234,50 €')
        self.assertEqual(format_price(None), '0,00 €')

    def test_barcode_symbology(self):
        self.assertEqual(barcode_symbology('4001234567890'), 'ean13')
        self.assertEqual(barcode_symbology('ABC-123'), 'code128')

    def test_generate_png(self):
        png = generate_shelf_label('Vollkornbrot', Decimal('2.99'), '4001234567890', unit='500 g')
        self.assertTrue(png.startswith(b'\x89PNG'))
        self.assertTrue(label_data_url(png).startswith('data:image/png;base64,'))

    def test_label_image_endpoint(self):
        label = BarcodeLabel.objects.create(name='Butter', price=Decimal('2.19'), barcode='LAB-1')
        client = AuthenticatedAPIClient().authenticate_user(TestDataFactory.create_admin(permissions=['product_management']))
        response = client.get(f'/api/v1/admin/barcode-labels/{label.id}/image/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response['Content-Type'], 'image/png')
