"""
Test suite for the parties module
Tests: customers, account balance recomputation, customer history, engineers, balance repair command
"""
from decimal import Decimal
from io import StringIO

from django.core.management import call_command
from django.test import TestCase
from rest_framework import status
from fieldservice.billing.models import Invoice
from fieldservice.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from fieldservice.jobs.models import Job, JobItem
from fieldservice.parties.models import Customer, Engineer
from fieldservice.parties.utils import compute_customer_balance, recalculate_customer_balance


class CustomerBalanceTests(TestCase):
    """Test the balance formula: completed jobs + standalone invoices - payments"""

    def setUp(self):
        self.customer = TestDataFactory.create_customer()

    def test_new_customer_has_zero_balance(self):
        self.assertEqual(recalculate_customer_balance(self.customer), Decimal('0.00'))

    def test_only_completed_jobs_count(self):
        scheduled = TestDataFactory.create_job(customer=self.customer)
        TestDataFactory.create_job_item(scheduled, unit_price=Decimal('500.00'))
        completed = TestDataFactory.create_job(customer=self.customer, status=Job.STATUS_COMPLETED)
        TestDataFactory.create_job_item(completed, quantity=Decimal('2'), unit_price=Decimal('60.00'))

        self.assertEqual(recalculate_customer_balance(self.customer), Decimal('120.00'))
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.account_balance, Decimal('120.00'))

    def test_standalone_invoices_add_and_payments_subtract(self):
        # 100 net + 13.5% VAT = 113.50
        TestDataFactory.create_invoice(customer=self.customer, amount_paid=Decimal('50.00'))
        self.assertEqual(compute_customer_balance(self.customer), Decimal('63.50'))

    def test_job_invoice_not_double_counted(self):
        job = TestDataFactory.create_job(customer=self.customer, status=Job.STATUS_COMPLETED)
        TestDataFactory.create_job_item(job, unit_price=Decimal('200.00'))
        TestDataFactory.create_invoice(job=job, amount_paid=Decimal('20.00'))
        self.assertEqual(compute_customer_balance(self.customer), Decimal('180.00'))

    def test_void_invoices_ignored(self):
        TestDataFactory.create_invoice(customer=self.customer, status=Invoice.STATUS_VOID, amount_paid=Decimal('10.00'))
        self.assertEqual(compute_customer_balance(self.customer), Decimal('0.00'))

    def test_recalculate_accepts_pk_and_none(self):
        self.assertIsNone(recalculate_customer_balance(None))
        TestDataFactory.create_invoice(customer=self.customer)
        self.assertEqual(recalculate_customer_balance(self.customer.pk), Decimal('113.50'))


class CustomerAPITests(TestCase):
    """Test customer endpoints"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(TestDataFactory.create_user())

    def test_create_customer(self):
        response = self.client.post('/api/v1/customers/', {
            'name': 'Riverside Farm',
            'contact_person': 'Mary Walsh',
            'phone': '0861112222',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['payment_terms'], 'Net 30')
        self.assertEqual(Decimal(response.data['account_balance']), Decimal('0.00'))

    def test_create_customer_requires_name(self):
        response = self.client.post('/api/v1/customers/', {'name': '  '}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_account_balance_is_read_only(self):
        customer = TestDataFactory.create_customer()
        self.client.patch(f'/api/v1/customers/{customer.id}/', {'account_balance': '999.00'}, format='json')
        customer.refresh_from_db()
        self.assertEqual(customer.account_balance, Decimal('0.00'))

    def test_search_customers(self):
        TestDataFactory.create_customer(name='Kilbrack Dairy')
        TestDataFactory.create_customer(name='Other Farm')
        response = self.client.get('/api/v1/customers/?search=kilbrack')
        self.assertEqual(len(response.data), 1)

    def test_delete_customer_with_invoice_blocked(self):
        customer = TestDataFactory.create_customer()
        TestDataFactory.create_invoice(customer=customer)
        response = self.client.delete(f'/api/v1/customers/{customer.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertTrue(Customer.objects.filter(pk=customer.pk).exists())

    def test_delete_customer_without_documents(self):
        customer = TestDataFactory.create_customer()
        TestDataFactory.create_job(customer=customer)
        response = self.client.delete(f'/api/v1/customers/{customer.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Job.objects.filter(customer_id=customer.id).exists())

    def test_recalculate_balance_endpoint(self):
        customer = TestDataFactory.create_customer()
        job = TestDataFactory.create_job(customer=customer, status=Job.STATUS_COMPLETED)
        TestDataFactory.create_job_item(job, unit_price=Decimal('75.00'))
        Customer.objects.filter(pk=customer.pk).update(account_balance=Decimal('1.00'))

        response = self.client.post(f'/api/v1/customers/{customer.id}/recalculate-balance/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['account_balance'], Decimal('75.00'))
        self.assertEqual(response.data['previous_balance'], Decimal('1.00'))

    def test_history_stats(self):
        customer = TestDataFactory.create_customer()
        job = TestDataFactory.create_job(customer=customer, status=Job.STATUS_COMPLETED)
        TestDataFactory.create_job_item(job, unit_price=Decimal('40.00'), type=JobItem.TYPE_PART)
        TestDataFactory.create_job_item(job, description='Labour', unit_price=Decimal('60.00'), type=JobItem.TYPE_LABOR)
        TestDataFactory.create_job(customer=customer)

        response = self.client.get(f'/api/v1/customers/{customer.id}/history/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['stats']['total_jobs'], 1)
        self.assertEqual(response.data['stats']['total_revenue'], Decimal('100.00'))
        self.assertEqual(response.data['stats']['parts_purchased'], Decimal('40.00'))
        self.assertEqual(len(response.data['jobs']), 2)

    def test_history_documents_for_office(self):
        customer = TestDataFactory.create_customer()
        TestDataFactory.create_invoice(customer=customer)
        TestDataFactory.create_quote(customer=customer)

        response = self.client.get(f'/api/v1/customers/{customer.id}/history/')
        self.assertEqual(response.data['invoices'], [])
        self.assertEqual(response.data['quotes'], [])

        self.client.authenticate_user(TestDataFactory.create_office_user())
        response = self.client.get(f'/api/v1/customers/{customer.id}/history/')
        self.assertEqual(len(response.data['invoices']), 1)
        self.assertEqual(len(response.data['quotes']), 1)

    def test_engineer_history_is_scoped(self):
        customer = TestDataFactory.create_customer()
        own = TestDataFactory.create_job(customer=customer, engineer_name='Sean Murphy', status=Job.STATUS_COMPLETED)
        TestDataFactory.create_job_item(own, unit_price=Decimal('40.00'))
        other = TestDataFactory.create_job(customer=customer, engineer_name='Aoife Ryan', status=Job.STATUS_COMPLETED)
        TestDataFactory.create_job_item(other, unit_price=Decimal('500.00'))
        TestDataFactory.create_invoice(customer=customer, job=own)
        TestDataFactory.create_quote(customer=customer)

        self.client.authenticate_user(TestDataFactory.create_engineer_user(first_name='Sean', last_name='Murphy'))
        response = self.client.get(f'/api/v1/customers/{customer.id}/history/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([j['id'] for j in response.data['jobs']], [own.id])
        self.assertEqual(response.data['stats']['total_jobs'], 1)
        self.assertEqual(response.data['stats']['total_revenue'], Decimal('40.00'))
        self.assertEqual(response.data['invoices'], [])
        self.assertEqual(response.data['quotes'], [])


class EngineerAPITests(TestCase):
    """Test team endpoints"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()

    def test_admin_adds_engineer(self):
        self.client.authenticate_user(TestDataFactory.create_admin())
        response = self.client.post('/api/v1/engineers/', {'name': 'Padraig Byrne'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['role'], 'Engineer')
        self.assertEqual(response.data['status'], 'active')

    def test_non_admin_cannot_add_engineer(self):
        self.client.authenticate_user(TestDataFactory.create_user())
        response = self.client.post('/api/v1/engineers/', {'name': 'Padraig Byrne'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_filter_by_status(self):
        TestDataFactory.create_engineer(name='Active One')
        TestDataFactory.create_engineer(name='Gone One', status='inactive')
        self.client.authenticate_user(TestDataFactory.create_user())
        response = self.client.get('/api/v1/engineers/?status=active')
        self.assertEqual([e['name'] for e in response.data], ['Active One'])

    def test_admin_removes_engineer(self):
        engineer = TestDataFactory.create_engineer()
        self.client.authenticate_user(TestDataFactory.create_admin())
        response = self.client.delete(f'/api/v1/engineers/{engineer.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Engineer.objects.filter(pk=engineer.pk).exists())


class RepairBalancesCommandTests(TestCase):
    """Test the repair_customer_balances command"""

    def setUp(self):
        self.customer = TestDataFactory.create_customer()
        TestDataFactory.create_invoice(customer=self.customer)
        Customer.objects.filter(pk=self.customer.pk).update(account_balance=Decimal('5.00'))

    def test_dry_run_changes_nothing(self):
        call_command('repair_customer_balances', '--dry-run', stdout=StringIO())
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.account_balance, Decimal('5.00'))

    def test_repair_fixes_balance(self):
        out = StringIO()
        call_command('repair_customer_balances', stdout=out)
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.account_balance, Decimal('113.50'))
