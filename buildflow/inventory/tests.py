"""
Test suite for the inventory module
Tests: material CRUD, purchases, usage with stock checks, history and ledger reconciliation
"""
from decimal import Decimal
from io import StringIO

from django.core.management import call_command
from django.test import TestCase
from rest_framework import status

from buildflow.core.models import Activity
from buildflow.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from buildflow.inventory.models import Material, MaterialPurchase, MaterialUsage
from buildflow.inventory.services import (
    InsufficientStock, reconcile_material, record_purchase, record_usage,
)


class MaterialModelTests(TestCase):

    def setUp(self):
        self.company = TestDataFactory.create_company()

    def test_remaining_qty(self):
        material = TestDataFactory.create_material(self.company, purchased_qty=Decimal('10'), used_qty=Decimal('3.5'))
        self.assertEqual(material.remaining_qty, Decimal('6.5'))

    def test_low_stock_needs_threshold(self):
        material = TestDataFactory.create_material(self.company, purchased_qty=Decimal('1'))
        self.assertFalse(material.is_low_stock)
        material.min_stock_level = Decimal('2')
        self.assertTrue(material.is_low_stock)


class MaterialServiceTests(TestCase):

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.company = self.user.company
        self.material = TestDataFactory.create_material(self.company, name='Cement', unit='bag',
                                                        min_stock_level=Decimal('5'))

    def test_purchase_increments_stock(self):
        purchase = record_purchase(self.material, Decimal('20'), Decimal('12.50'), user=self.user,
                                   supplier_name='Quarry Co')
        self.material.refresh_from_db()
        self.assertEqual(self.material.purchased_qty, Decimal('20'))
        self.assertEqual(purchase.total_cost, Decimal('250.00'))
        self.assertEqual(self.material.unit_cost, Decimal('12.50'))

    def test_usage_beyond_remaining_rejected(self):
        record_purchase(self.material, Decimal('4'), Decimal('10'))
        with self.assertRaises(InsufficientStock) as ctx:
            record_usage(self.material, Decimal('5'))
        self.assertEqual(str(ctx.exception), 'Insufficient stock. Only 4 bag(s) remaining.')
        self.assertFalse(MaterialUsage.objects.exists())

    def test_usage_below_threshold_writes_alert(self):
        record_purchase(self.material, Decimal('10'), Decimal('10'))
        with self.assertLogs('buildflow.inventory', level='WARNING'):
            record_usage(self.material, Decimal('6'), user=self.user, used_for='Foundation pour')
        self.material.refresh_from_db()
        self.assertEqual(self.material.remaining_qty, Decimal('4'))
        self.assertTrue(Activity.objects.filter(company=self.company, type='low_stock_alert').exists())

    def test_usage_above_threshold_no_alert(self):
        record_purchase(self.material, Decimal('10'), Decimal('10'))
        record_usage(self.material, Decimal('2'))
        self.assertFalse(Activity.objects.filter(type='low_stock_alert').exists())

    def test_reconcile_reports_and_fixes_drift(self):
        record_purchase(self.material, Decimal('10'), Decimal('10'))
        record_usage(self.material, Decimal('3'))
        Material.objects.filter(pk=self.material.pk).update(purchased_qty=Decimal('99'))
        self.material.refresh_from_db()

        result = reconcile_material(self.material)
        self.assertFalse(result['in_sync'])
        self.assertFalse(result['fixed'])

        result = reconcile_material(self.material, fix=True)
        self.assertTrue(result['fixed'])
        self.material.refresh_from_db()
        self.assertEqual(self.material.purchased_qty, Decimal('10'))
        self.assertEqual(self.material.used_qty, Decimal('3'))


class MaterialAPITests(TestCase):

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.user = TestDataFactory.create_user()
        self.company = self.user.company
        self.client.authenticate_user(self.user)
        self.material = TestDataFactory.create_material(self.company, name='Rebar 12mm', sku='RB-12', unit='rod')

    def test_list_is_company_scoped(self):
        TestDataFactory.create_material(TestDataFactory.create_company(), name='Elsewhere')
        response = self.client.get('/api/inventory/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([m['name'] for m in response.data], ['Rebar 12mm'])

    def test_search_filter(self):
        TestDataFactory.create_material(self.company, name='Cement', sku='CM-50')
        response = self.client.get('/api/inventory/', {'search': 'cem'})
        self.assertEqual([m['name'] for m in response.data], ['Cement'])
        response = self.client.get('/api/inventory/', {'sku': 'rb-12'})
        self.assertEqual([m['name'] for m in response.data], ['Rebar 12mm'])

    def test_create_material(self):
        response = self.client.post('/api/inventory/', {
            'name': 'Plywood 18mm', 'sku': 'PLY-18', 'unit': 'sheet', 'unitCost': '42.00', 'minStockLevel': '10',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(Decimal(response.data['remainingQty']), Decimal('0'))
        self.assertTrue(Material.objects.filter(company=self.company, sku='PLY-18').exists())

    def test_duplicate_sku_rejected(self):
        response = self.client.post('/api/inventory/', {'name': 'Rebar copy', 'sku': 'RB-12', 'unit': 'rod'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'SKU already exists')

    def test_same_sku_allowed_in_other_company(self):
        other_user = TestDataFactory.create_user()
        self.client.authenticate_user(other_user)
        response = self.client.post('/api/inventory/', {'name': 'Rebar', 'sku': 'RB-12', 'unit': 'rod'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def test_update_and_delete(self):
        response = self.client.patch(f'/api/inventory/{self.material.id}/', {'description': 'Grade 60'},
                                     format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['description'], 'Grade 60')
        response = self.client.delete(f'/api/inventory/{self.material.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Material.objects.filter(pk=self.material.id).exists())

    def test_other_company_material_not_found(self):
        other = TestDataFactory.create_material(TestDataFactory.create_company())
        response = self.client.get(f'/api/inventory/{other.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_purchase_endpoint(self):
        response = self.client.post(f'/api/inventory/{self.material.id}/purchase/', {
            'quantity': '50', 'unitCost': '8.25', 'supplierName': 'SteelWorks', 'invoiceNumber': 'INV-7',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(Decimal(response.data['purchase']['totalCost']), Decimal('412.50'))
        self.assertEqual(Decimal(response.data['material']['purchasedQty']), Decimal('50'))

    def test_purchase_requires_positive_quantity(self):
        response = self.client.post(f'/api/inventory/{self.material.id}/purchase/',
                                    {'quantity': '0', 'unitCost': '8.25'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(MaterialPurchase.objects.exists())

    def test_usage_endpoint_checks_stock(self):
        record_purchase(self.material, Decimal('3'), Decimal('8'))
        response = self.client.post(f'/api/inventory/{self.material.id}/usage/', {'quantity': '4'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Insufficient stock. Only 3 rod(s) remaining.')

        response = self.client.post(f'/api/inventory/{self.material.id}/usage/',
                                    {'quantity': '2', 'usedFor': 'Column C4'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(Decimal(response.data['material']['remainingQty']), Decimal('1'))

    def test_history_newest_first(self):
        record_purchase(self.material, Decimal('10'), Decimal('8'), purchase_date='2026-01-05')
        record_usage(self.material, Decimal('2'), usage_date='2026-02-01')
        record_purchase(self.material, Decimal('5'), Decimal('8'), purchase_date='2026-01-20')

        response = self.client.get(f'/api/inventory/{self.material.id}/history/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        history = response.data['history']
        self.assertEqual([e['type'] for e in history], ['usage', 'purchase', 'purchase'])
        self.assertEqual([e['date'] for e in history], ['2026-02-01', '2026-01-20', '2026-01-05'])


class CheckInventorySyncCommandTests(TestCase):

    def setUp(self):
        self.company = TestDataFactory.create_company()
        self.material = TestDataFactory.create_material(self.company, name='Sand', unit='ton')
        record_purchase(self.material, Decimal('8'), Decimal('30'))
        Material.objects.filter(pk=self.material.pk).update(used_qty=Decimal('2'))

    def test_reports_without_fixing(self):
        out = StringIO()
        call_command('check_inventory_sync', stdout=out)
        self.assertIn('1 material(s) out of sync', out.getvalue())
        self.material.refresh_from_db()
        self.assertEqual(self.material.used_qty, Decimal('2'))

    def test_fix_repairs_totals(self):
        out = StringIO()
        call_command('check_inventory_sync', '--fix', stdout=out)
        self.assertIn('1 of 1 material(s) repaired', out.getvalue())
        self.material.refresh_from_db()
        self.assertEqual(self.material.used_qty, Decimal('0'))
