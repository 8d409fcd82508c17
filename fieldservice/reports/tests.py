"""
Test suite for the reports module
Tests: dashboard KPIs, notifications, revenue, parts usage, customer spend, engineer performance, overdue accounts
"""
from datetime import date, timedelta
from decimal import Decimal

from django.test import TestCase
from django.utils import timezone
from rest_framework import status
from fieldservice.billing.models import Invoice
from fieldservice.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from fieldservice.jobs.models import Job, JobItem


class DashboardKPITests(TestCase):
    """Test dashboard KPIs"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(TestDataFactory.create_office_user())
        self.customer = TestDataFactory.create_customer()

    def test_kpis(self):
        TestDataFactory.create_job(customer=self.customer)
        TestDataFactory.create_job(customer=self.customer, status=Job.STATUS_IN_PROGRESS)
        TestDataFactory.create_job(customer=self.customer, status=Job.STATUS_COMPLETED)
        TestDataFactory.create_inventory_item(stock_level=0)
        TestDataFactory.create_inventory_item(stock_level=3)
        TestDataFactory.create_inventory_item(stock_level=30)
        TestDataFactory.create_invoice(customer=self.customer, amount_paid=Decimal('13.50'))
        TestDataFactory.create_invoice(
            customer=self.customer,
            date_issued=timezone.localdate() - timedelta(days=40),
            due_date=timezone.localdate() - timedelta(days=10),
        )
        TestDataFactory.create_invoice(customer=self.customer, status=Invoice.STATUS_VOID)

        response = self.client.get('/api/v1/reports/dashboard-kpis/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['active_jobs'], 2)
        self.assertEqual(response.data['completed_jobs'], 1)
        self.assertEqual(response.data['low_stock_items'], 2)
        self.assertEqual(response.data['out_of_stock_items'], 1)
        self.assertEqual(response.data['overdue_invoices'], 1)
        self.assertEqual(response.data['outstanding_balance'], 213.5)
        self.assertEqual(len(response.data['recent_jobs']), 3)

    def test_custom_period_filters_jobs_by_schedule(self):
        TestDataFactory.create_job(customer=self.customer, date_scheduled=date(2025, 1, 10))
        TestDataFactory.create_job(customer=self.customer, date_scheduled=date(2025, 6, 10))
        response = self.client.get('/api/v1/reports/dashboard-kpis/?period=custom&date_from=2025-01-01&date_to=2025-01-31')
        self.assertEqual(response.data['active_jobs'], 1)
        self.assertEqual(response.data['period']['from'], '2025-01-01')

    def test_bad_period_and_dates(self):
        response = self.client.get('/api/v1/reports/dashboard-kpis/?period=week')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self.client.get('/api/v1/reports/dashboard-kpis/?period=custom&date_from=01/01/2025')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_engineer_sees_own_jobs_without_billing(self):
        engineer = TestDataFactory.create_engineer_user(first_name='Sean', last_name='Murphy')
        TestDataFactory.create_job(customer=self.customer, engineer_name='Sean Murphy')
        TestDataFactory.create_job(customer=self.customer, engineer_name='Aoife Ryan')
        self.client.authenticate_user(engineer)
        response = self.client.get('/api/v1/reports/dashboard-kpis/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['active_jobs'], 1)
        self.assertNotIn('outstanding_balance', response.data)

    def test_user_without_role_gets_no_billing_figures(self):
        TestDataFactory.create_invoice(customer=self.customer)
        self.client.authenticate_user(TestDataFactory.create_user())
        response = self.client.get('/api/v1/reports/dashboard-kpis/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertNotIn('outstanding_balance', response.data)
        self.assertNotIn('overdue_invoices', response.data)


class NotificationTests(TestCase):
    """Test the notification feed"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(TestDataFactory.create_office_user())

    def test_notification_types(self):
        TestDataFactory.create_inventory_item(name='Vacuum gauge', stock_level=0)
        TestDataFactory.create_inventory_item(name='Filter sock', stock_level=2)
        customer = TestDataFactory.create_customer()
        TestDataFactory.create_invoice(
            customer=customer,
            date_issued=timezone.localdate() - timedelta(days=45),
            due_date=timezone.localdate() - timedelta(days=15),
        )
        TestDataFactory.create_job(customer=customer, date_scheduled=timezone.localdate())
        TestDataFactory.create_job(customer=customer, date_scheduled=timezone.localdate(), status=Job.STATUS_CANCELLED)

        response = self.client.get('/api/v1/reports/notifications/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['counts'], {'error': 2, 'warning': 1, 'info': 1})
        categories = [n['category'] for n in response.data['results']]
        self.assertEqual(sorted(categories), ['invoice', 'job', 'stock', 'stock'])

    def test_empty_feed(self):
        response = self.client.get('/api/v1/reports/notifications/')
        self.assertEqual(response.data['count'], 0)

    def test_overdue_invoices_only_for_office(self):
        TestDataFactory.create_invoice(
            customer=TestDataFactory.create_customer(),
            date_issued=timezone.localdate() - timedelta(days=45),
            due_date=timezone.localdate() - timedelta(days=15),
        )
        self.client.authenticate_user(TestDataFactory.create_user())
        response = self.client.get('/api/v1/reports/notifications/')
        self.assertEqual(response.data['count'], 0)


class ReportTests(TestCase):
    """Test the office reports"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(TestDataFactory.create_office_user())

    def test_revenue_by_month(self):
        customer = TestDataFactory.create_customer()
        TestDataFactory.create_invoice(customer=customer, date_issued=date(2025, 3, 5), amount_paid=Decimal('100.00'))
        TestDataFactory.create_invoice(customer=customer, date_issued=date(2025, 3, 20))
        TestDataFactory.create_invoice(customer=customer, date_issued=date(2025, 7, 1), status=Invoice.STATUS_VOID, amount_paid=Decimal('50.00'))

        response = self.client.get('/api/v1/reports/revenue/?year=2025')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['months']), 12)
        march = response.data['months'][2]
        self.assertEqual(march['invoiced'], 227.0)
        self.assertEqual(march['received'], 100.0)
        self.assertEqual(march['invoice_count'], 2)
        self.assertEqual(response.data['months'][6]['received'], 0.0)
        self.assertEqual(response.data['total_received'], 100.0)

    def test_parts_usage(self):
        liner = TestDataFactory.create_inventory_item(name='Liner')
        pump = TestDataFactory.create_inventory_item(name='Pump')
        job_a = TestDataFactory.create_job()
        job_b = TestDataFactory.create_job()
        TestDataFactory.create_job_item(job_a, inventory=liner, quantity=Decimal('4'), unit_price=Decimal('10.00'))
        TestDataFactory.create_job_item(job_b, inventory=liner, quantity=Decimal('4'), unit_price=Decimal('10.00'))
        TestDataFactory.create_job_item(job_a, inventory=pump, quantity=Decimal('1'), unit_price=Decimal('300.00'))
        TestDataFactory.create_job_item(job_a, description='Labour', type=JobItem.TYPE_LABOR)

        results = self.client.get('/api/v1/reports/parts-usage/').data['results']
        self.assertEqual([r['name'] for r in results], ['Liner', 'Pump'])
        self.assertEqual(results[0]['quantity'], 8.0)
        self.assertEqual(results[0]['revenue'], 80.0)
        self.assertEqual(results[0]['job_count'], 2)

    def test_customer_spend(self):
        big = TestDataFactory.create_customer(name='Big Farm')
        small = TestDataFactory.create_customer(name='Small Farm')
        job = TestDataFactory.create_job(customer=big, status=Job.STATUS_COMPLETED)
        TestDataFactory.create_job_item(job, unit_price=Decimal('500.00'))
        TestDataFactory.create_job_item(TestDataFactory.create_job(customer=small), unit_price=Decimal('900.00'))
        TestDataFactory.create_invoice(customer=small)

        results = self.client.get('/api/v1/reports/customer-spend/').data['results']
        self.assertEqual([r['name'] for r in results], ['Big Farm', 'Small Farm'])
        self.assertEqual(results[0]['total_spend'], 500.0)
        self.assertEqual(results[1]['total_spend'], 113.5)

        limited = self.client.get('/api/v1/reports/customer-spend/?limit=1').data['results']
        self.assertEqual(len(limited), 1)

    def test_engineer_performance(self):
        customer = TestDataFactory.create_customer()
        done = TestDataFactory.create_job(customer=customer, engineer_name='Sean', status=Job.STATUS_COMPLETED)
        TestDataFactory.create_job_item(done, unit_price=Decimal('120.00'))
        TestDataFactory.create_job_item(done, unit_price=Decimal('30.00'))
        TestDataFactory.create_job(customer=customer, engineer_name='Sean', status=Job.STATUS_IN_PROGRESS)
        TestDataFactory.create_job(customer=customer, engineer_name='Aoife', status=Job.STATUS_CANCELLED)
        TestDataFactory.create_job(customer=customer)

        results = self.client.get('/api/v1/reports/engineer-performance/').data['results']
        self.assertEqual([r['engineer_name'] for r in results], ['Sean', 'Aoife'])
        sean = results[0]
        self.assertEqual(sean['total_jobs'], 2)
        self.assertEqual(sean['completed'], 1)
        self.assertEqual(sean['completion_rate'], 50.0)
        self.assertEqual(sean['revenue'], 150.0)

    def test_overdue_accounts(self):
        late = TestDataFactory.create_customer(name='Late Farm')
        today = timezone.localdate()
        TestDataFactory.create_invoice(customer=late, date_issued=today - timedelta(days=70), due_date=today - timedelta(days=40))
        TestDataFactory.create_invoice(customer=late, date_issued=today - timedelta(days=40), due_date=today - timedelta(days=10),
                                       amount_paid=Decimal('13.50'))
        TestDataFactory.create_invoice(customer=TestDataFactory.create_customer(name='Good Farm'))

        response = self.client.get('/api/v1/reports/overdue-accounts/')
        results = response.data['results']
        self.assertEqual(len(results), 1)
        self.assertEqual(results[0]['name'], 'Late Farm')
        self.assertEqual(results[0]['amount_overdue'], 213.5)
        self.assertEqual(results[0]['invoice_count'], 2)
        self.assertEqual(results[0]['days_overdue'], 40)
        self.assertEqual(response.data['total_overdue'], 213.5)

    def test_engineer_blocked_from_reports(self):
        self.client.authenticate_user(TestDataFactory.create_engineer_user())
        for url in ('revenue', 'parts-usage', 'customer-spend', 'engineer-performance', 'overdue-accounts'):
            response = self.client.get(f'/api/v1/reports/{url}/')
            self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_bad_query_params_rejected(self):
        response = self.client.get('/api/v1/reports/parts-usage/?limit=abc')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self.client.get('/api/v1/reports/parts-usage/?date_from=2025-02-30')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self.client.get('/api/v1/reports/customer-spend/?limit=abc')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self.client.get('/api/v1/reports/revenue/?year=0')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_non_positive_limit_clamped_to_one(self):
        TestDataFactory.create_invoice(customer=TestDataFactory.create_customer(name='First Farm'))
        TestDataFactory.create_invoice(customer=TestDataFactory.create_customer(name='Second Farm'))
        response = self.client.get('/api/v1/reports/customer-spend/?limit=0')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['results']), 1)
        response = self.client.get('/api/v1/reports/parts-usage/?limit=-1')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_user_without_role_blocked_from_reports(self):
        self.client.authenticate_user(TestDataFactory.create_user())
        response = self.client.get('/api/v1/reports/revenue/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
