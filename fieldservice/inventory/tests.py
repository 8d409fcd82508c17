"""
Test suite for the inventory module
Tests: stock status, filters, categories, part allocations, stock adjustment
"""
from decimal import Decimal

from django.test import TestCase
from rest_framework import status
from fieldservice.core.models import AuditLog
from fieldservice.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from fieldservice.inventory.models import InventoryItem
from fieldservice.jobs.models import JobItem


class InventoryItemModelTests(TestCase):
    """Test stock status properties"""

    def test_out_of_stock(self):
        item = TestDataFactory.create_inventory_item(stock_level=0)
        self.assertTrue(item.is_out_of_stock)
        self.assertFalse(item.is_low_stock)
        self.assertEqual(item.stock_status, 'out')

    def test_negative_stock_is_out(self):
        item = TestDataFactory.create_inventory_item(stock_level=-2)
        self.assertEqual(item.stock_status, 'out')

    def test_low_stock_at_threshold(self):
        item = TestDataFactory.create_inventory_item(stock_level=5, low_stock_threshold=5)
        self.assertTrue(item.is_low_stock)
        self.assertEqual(item.stock_status, 'low')

    def test_ok_above_threshold(self):
        item = TestDataFactory.create_inventory_item(stock_level=6, low_stock_threshold=5)
        self.assertFalse(item.is_low_stock)
        self.assertEqual(item.stock_status, 'ok')


class InventoryAPITests(TestCase):
    """Test inventory endpoints"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(TestDataFactory.create_user())

    def test_create_part(self):
        response = self.client.post('/api/v1/inventory/', {
            'sku': 'LNR-001',
            'name': 'Silicone liner',
            'category': 'Liners',
            'sell_price': '18.50',
            'stock_level': 40,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['low_stock_threshold'], 5)
        self.assertEqual(response.data['stock_status'], 'ok')

    def test_duplicate_sku_rejected(self):
        TestDataFactory.create_inventory_item(sku='LNR-001')
        response = self.client.post('/api/v1/inventory/', {'sku': 'LNR-001', 'name': 'Copy'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_negative_price_rejected(self):
        response = self.client.post('/api/v1/inventory/', {'sku': 'X-1', 'name': 'Bad', 'sell_price': '-1'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_stock_filters(self):
        TestDataFactory.create_inventory_item(sku='OUT', stock_level=0)
        TestDataFactory.create_inventory_item(sku='LOW', stock_level=2)
        TestDataFactory.create_inventory_item(sku='OK', stock_level=50)

        out = self.client.get('/api/v1/inventory/?stock=out')
        self.assertEqual([i['sku'] for i in out.data], ['OUT'])
        low = self.client.get('/api/v1/inventory/?stock=low')
        self.assertEqual([i['sku'] for i in low.data], ['LOW'])

    def test_search_matches_sku_name_category(self):
        TestDataFactory.create_inventory_item(sku='PUL-9', name='Pulsator', category='Pulsation')
        TestDataFactory.create_inventory_item(sku='LNR-2', name='Liner', category='Liners')
        self.assertEqual(len(self.client.get('/api/v1/inventory/?search=pul').data), 1)
        self.assertEqual(len(self.client.get('/api/v1/inventory/?search=LNR').data), 1)

    def test_categories_distinct_sorted(self):
        TestDataFactory.create_inventory_item(category='Pumps')
        TestDataFactory.create_inventory_item(category='Liners')
        TestDataFactory.create_inventory_item(category='Liners')
        TestDataFactory.create_inventory_item(category='')
        response = self.client.get('/api/v1/inventory/categories/')
        self.assertEqual(response.data, ['Liners', 'Pumps'])

    def test_price_change_is_audited(self):
        item = TestDataFactory.create_inventory_item(sell_price=Decimal('10.00'))
        response = self.client.patch(f'/api/v1/inventory/{item.id}/', {'sell_price': '12.00'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        log = AuditLog.objects.get(model_name='InventoryItem', action='update')
        self.assertEqual(log.changes['sell_price'], {'old': '10.00', 'new': '12.00'})

    def test_delete_part_keeps_job_items(self):
        item = TestDataFactory.create_inventory_item()
        job_item = TestDataFactory.create_job_item(TestDataFactory.create_job(), inventory=item)
        response = self.client.delete(f'/api/v1/inventory/{item.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        job_item.refresh_from_db()
        self.assertIsNone(job_item.inventory_id)

    def test_allocations_lists_parts_only(self):
        item = TestDataFactory.create_inventory_item(name='Claw piece')
        job = TestDataFactory.create_job(customer=TestDataFactory.create_customer(name='Moor Farm'))
        TestDataFactory.create_job_item(job, inventory=item)
        TestDataFactory.create_job_item(job, description='Labour', type=JobItem.TYPE_LABOR)

        response = self.client.get('/api/v1/inventory/allocations/')
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['inventory_name'], 'Claw piece')
        self.assertEqual(response.data[0]['customer_name'], 'Moor Farm')
        self.assertEqual(response.data[0]['job_number'], job.job_number)

    def test_adjust_stock(self):
        item = TestDataFactory.create_inventory_item(stock_level=10)
        response = self.client.post(f'/api/v1/inventory/{item.id}/adjust-stock/', {'quantity': -3, 'reason': 'Used on call'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['stock_level'], 7)
        self.assertEqual(InventoryItem.objects.get(pk=item.pk).stock_level, 7)
        self.assertTrue(AuditLog.objects.filter(action='stock_adjust', object_reference=item.sku).exists())

    def test_adjust_stock_rejects_zero_and_garbage(self):
        item = TestDataFactory.create_inventory_item()
        self.assertEqual(
            self.client.post(f'/api/v1/inventory/{item.id}/adjust-stock/', {'quantity': 0}, format='json').status_code,
            status.HTTP_400_BAD_REQUEST
        )
        self.assertEqual(
            self.client.post(f'/api/v1/inventory/{item.id}/adjust-stock/', {'quantity': 'many'}, format='json').status_code,
            status.HTTP_400_BAD_REQUEST
        )
