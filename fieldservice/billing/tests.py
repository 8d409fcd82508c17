"""
Test suite for the billing module
Tests: money helpers, document numbering, invoices, payments, statements, quotes, PDFs, reminders
"""
from datetime import date, timedelta
from decimal import Decimal
from unittest import mock

import requests
from django.db import IntegrityError
from django.test import TestCase
from django.utils import timezone
from rest_framework import status
from fieldservice.billing.models import Invoice, Payment, Quote, Statement
from fieldservice.billing.views import PaymentRejected, record_payment
from fieldservice.billing.utils import (
    INVOICE_PREFIX, calculate_totals, create_numbered, format_document_number, format_money, money,
    next_document_number, split_gross,
)
from fieldservice.core.models import AuditLog, CompanySettings
from fieldservice.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from fieldservice.jobs.models import Job


class MoneyTests(TestCase):
    """Test VAT arithmetic"""

    def test_money_rounds_half_up(self):
        self.assertEqual(money(Decimal('2.345')), Decimal('2.35'))
        self.assertEqual(money(Decimal('2.344')), Decimal('2.34'))

    def test_calculate_totals_adds_vat(self):
        totals = calculate_totals([(Decimal('2'), Decimal('50.00')), (Decimal('1'), Decimal('0.99'))])
        self.assertEqual(totals['subtotal'], Decimal('100.99'))
        self.assertEqual(totals['vat_rate'], Decimal('13.5'))
        self.assertEqual(totals['vat_amount'], Decimal('13.63'))
        self.assertEqual(totals['total_amount'], Decimal('114.62'))

    def test_calculate_totals_custom_rate(self):
        totals = calculate_totals([(1, Decimal('100'))], vat_rate=Decimal('23'))
        self.assertEqual(totals['total_amount'], Decimal('123.00'))

    def test_split_gross(self):
        totals = split_gross(Decimal('113.50'))
        self.assertEqual(totals['subtotal'], Decimal('100.00'))
        self.assertEqual(totals['vat_amount'], Decimal('13.50'))
        self.assertEqual(totals['subtotal'] + totals['vat_amount'], totals['total_amount'])

    def test_format_money(self):
        self.assertEqual(format_money(Decimal('1234.5')), '€1,234.50')


class DocumentNumberTests(TestCase):
    """Test PREFIX-YEAR-NNN numbering"""

    def test_format_pads_to_three_digits(self):
        self.assertEqual(format_document_number('INV', 2026, 7), 'INV-2026-007')
        self.assertEqual(format_document_number('QT', 2026, 1234), 'QT-2026-1234')

    def test_first_number_of_year(self):
        self.assertEqual(next_document_number(Invoice, 'invoice_number', 'INV', year=2031), 'INV-2031-001')

    def test_increments_last_number(self):
        invoice = TestDataFactory.create_invoice(customer=TestDataFactory.create_customer())
        Invoice.objects.filter(pk=invoice.pk).update(invoice_number='INV-2025-014')
        self.assertEqual(next_document_number(Invoice, 'invoice_number', 'INV', year=2025), 'INV-2025-015')

    def test_other_years_ignored(self):
        invoice = TestDataFactory.create_invoice(customer=TestDataFactory.create_customer())
        Invoice.objects.filter(pk=invoice.pk).update(invoice_number='INV-2024-099')
        self.assertEqual(next_document_number(Invoice, 'invoice_number', 'INV', year=2025), 'INV-2025-001')

    def test_factory_numbers_are_sequential(self):
        customer = TestDataFactory.create_customer()
        first = TestDataFactory.create_invoice(customer=customer)
        second = TestDataFactory.create_invoice(customer=customer)
        year = timezone.localdate().year
        self.assertEqual(first.invoice_number, f'INV-{year}-001')
        self.assertEqual(second.invoice_number, f'INV-{year}-002')

    def test_sequence_compares_numerically(self):
        customer = TestDataFactory.create_customer()
        first = TestDataFactory.create_invoice(customer=customer)
        second = TestDataFactory.create_invoice(customer=customer)
        Invoice.objects.filter(pk=first.pk).update(invoice_number='INV-2025-999')
        Invoice.objects.filter(pk=second.pk).update(invoice_number='INV-2025-1000')
        self.assertEqual(next_document_number(Invoice, 'invoice_number', 'INV', year=2025), 'INV-2025-1001')

    def test_create_numbered_retries_taken_number(self):
        customer = TestDataFactory.create_customer()
        taken = TestDataFactory.create_invoice(customer=customer)
        year = timezone.localdate().year
        with mock.patch('fieldservice.billing.utils.next_document_number',
                        side_effect=[taken.invoice_number, f'INV-{year}-050']) as next_number:
            invoice = create_numbered(Invoice, 'invoice_number', INVOICE_PREFIX, customer=customer)
        self.assertEqual(next_number.call_count, 2)
        self.assertEqual(invoice.invoice_number, f'INV-{year}-050')
        self.assertEqual(Invoice.objects.filter(invoice_number=taken.invoice_number).count(), 1)

    def test_create_numbered_gives_up_after_last_attempt(self):
        customer = TestDataFactory.create_customer()
        taken = TestDataFactory.create_invoice(customer=customer)
        with mock.patch('fieldservice.billing.utils.next_document_number',
                        return_value=taken.invoice_number) as next_number:
            with self.assertRaises(IntegrityError):
                create_numbered(Invoice, 'invoice_number', INVOICE_PREFIX, attempts=3, customer=customer)
        self.assertEqual(next_number.call_count, 3)
        self.assertEqual(Invoice.objects.count(), 1)

    def test_next_number_endpoint(self):
        client = AuthenticatedAPIClient()
        client.authenticate_user(TestDataFactory.create_office_user())
        year = timezone.localdate().year
        response = client.get('/api/v1/invoices/next-number/?type=quote')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['number'], f'QT-{year}-001')
        response = client.get('/api/v1/invoices/next-number/?type=receipt')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class InvoiceAPITests(TestCase):
    """Test invoice endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_office_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.customer = TestDataFactory.create_customer(name='Derrynane Farm')

    def test_create_standalone_invoice(self):
        response = self.client.post('/api/v1/invoices/', {
            'customer': self.customer.id,
            'date_issued': '2026-03-02',
            'items': [{'description': 'Teat cup liners', 'quantity': '2', 'unit_price': '50.00'}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['invoice_number'].startswith('INV-'))
        self.assertEqual(response.data['status'], 'draft')
        self.assertEqual(Decimal(response.data['subtotal']), Decimal('100.00'))
        self.assertEqual(Decimal(response.data['vat_amount']), Decimal('13.50'))
        self.assertEqual(Decimal(response.data['total_amount']), Decimal('113.50'))
        self.assertEqual(response.data['due_date'], '2026-04-01')
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.account_balance, Decimal('113.50'))

    def test_invoice_requires_items_and_customer(self):
        response = self.client.post('/api/v1/invoices/', {'customer': self.customer.id, 'items': []}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self.client.post('/api/v1/invoices/', {
            'items': [{'description': 'x', 'quantity': '1', 'unit_price': '1'}]
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_update_replaces_items_and_recalculates(self):
        invoice = TestDataFactory.create_invoice(customer=self.customer)
        response = self.client.patch(f'/api/v1/invoices/{invoice.id}/', {
            'items': [{'description': 'Pump', 'quantity': '1', 'unit_price': '200.00'}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(Decimal(response.data['total_amount']), Decimal('227.00'))
        self.assertEqual(len(response.data['items']), 1)
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.account_balance, Decimal('227.00'))

    def test_list_filters(self):
        TestDataFactory.create_invoice(customer=self.customer, status=Invoice.STATUS_SENT)
        TestDataFactory.create_invoice(customer=self.customer, status=Invoice.STATUS_PAID)
        other = TestDataFactory.create_customer(name='Elsewhere')
        TestDataFactory.create_invoice(customer=other)

        response = self.client.get('/api/v1/invoices/?status=paid')
        self.assertEqual(response.data['count'], 1)
        response = self.client.get(f'/api/v1/invoices/?customer={self.customer.id}')
        self.assertEqual(response.data['count'], 2)
        response = self.client.get('/api/v1/invoices/?search=derrynane')
        self.assertEqual(response.data['count'], 2)

    def test_overdue_filter(self):
        TestDataFactory.create_invoice(
            customer=self.customer,
            date_issued=timezone.localdate() - timedelta(days=60),
            due_date=timezone.localdate() - timedelta(days=30),
        )
        TestDataFactory.create_invoice(customer=self.customer)
        response = self.client.get('/api/v1/invoices/?status=overdue')
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['days_overdue'], 30)

    def test_invoice_from_completed_job(self):
        job = TestDataFactory.create_job(customer=self.customer, status=Job.STATUS_COMPLETED, service_type='Parlour service')
        TestDataFactory.create_job_item(job, quantity=Decimal('2'), unit_price=Decimal('100.00'))
        response = self.client.post('/api/v1/invoices/from-job/', {'job': job.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], 'sent')
        self.assertEqual(response.data['job'], job.id)
        self.assertEqual(response.data['custom_description'], 'Parlour service')
        self.assertEqual(Decimal(response.data['subtotal']), Decimal('200.00'))
        self.assertEqual(Decimal(response.data['total_amount']), Decimal('227.00'))
        self.assertEqual(len(response.data['items']), 1)

    def test_invoice_from_open_job_rejected(self):
        job = TestDataFactory.create_job(customer=self.customer)
        TestDataFactory.create_job_item(job)
        response = self.client.post('/api/v1/invoices/from-job/', {'job': job.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_one_time_invoice(self):
        response = self.client.post('/api/v1/invoices/one-time/', {
            'customer_name': 'Passing Farmer',
            'labour_hours': '2',
            'labour_rate': '40.00',
            'parts_cost': '25.00',
            'additional': '8.50',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertIsNone(response.data['customer'])
        self.assertEqual(response.data['customer_name'], 'Passing Farmer')
        self.assertEqual(response.data['status'], 'paid')
        self.assertEqual(Decimal(response.data['total_amount']), Decimal('113.50'))
        self.assertEqual(Decimal(response.data['subtotal']), Decimal('100.00'))
        self.assertEqual(Decimal(response.data['amount_paid']), Decimal('113.50'))
        self.assertEqual(len(response.data['items']), 3)

    def test_one_time_invoice_needs_positive_total(self):
        response = self.client.post('/api/v1/invoices/one-time/', {'customer_name': 'Nobody'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_mark_paid_records_payment(self):
        invoice = TestDataFactory.create_invoice(customer=self.customer, amount_paid=Decimal('13.50'))
        response = self.client.post(f'/api/v1/invoices/{invoice.id}/status/', {'status': 'paid'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'paid')
        self.assertEqual(Decimal(response.data['amount_paid']), Decimal('113.50'))
        self.assertEqual(Payment.objects.get(invoice=invoice).amount, Decimal('100.00'))
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.account_balance, Decimal('0.00'))

    def test_void_excludes_from_balance(self):
        invoice = TestDataFactory.create_invoice(customer=self.customer)
        self.client.post(f'/api/v1/invoices/{invoice.id}/void/')
        invoice.refresh_from_db()
        self.assertEqual(invoice.status, Invoice.STATUS_VOID)
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.account_balance, Decimal('0.00'))
        self.assertTrue(AuditLog.objects.filter(action='invoice_void', object_reference=invoice.invoice_number).exists())

    def test_void_invoice_cannot_reopen(self):
        invoice = TestDataFactory.create_invoice(customer=self.customer, status=Invoice.STATUS_VOID)
        response = self.client.post(f'/api/v1/invoices/{invoice.id}/status/', {'status': 'sent'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_delete_recalculates_balance(self):
        invoice = TestDataFactory.create_invoice(customer=self.customer)
        self.client.post(f'/api/v1/customers/{self.customer.id}/recalculate-balance/')
        response = self.client.delete(f'/api/v1/invoices/{invoice.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.account_balance, Decimal('0.00'))

    def test_invoice_pdf(self):
        invoice = TestDataFactory.create_invoice(customer=self.customer)
        response = self.client.get(f'/api/v1/invoices/{invoice.id}/pdf/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response['Content-Type'], 'application/pdf')
        self.assertTrue(response['Content-Disposition'].startswith('inline'))
        self.assertTrue(response.content.startswith(b'%PDF'))

    def test_payment_due_calendar(self):
        TestDataFactory.create_invoice(customer=self.customer, date_issued=date(2026, 6, 1), due_date=date(2026, 6, 10))
        TestDataFactory.create_invoice(customer=self.customer, date_issued=date(2026, 6, 1), due_date=date(2026, 6, 10))
        TestDataFactory.create_invoice(customer=self.customer, date_issued=date(2026, 6, 1), due_date=date(2026, 6, 20), status=Invoice.STATUS_PAID)
        response = self.client.get('/api/v1/invoices/calendar/?year=2026&month=6')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['days']), 1)
        self.assertEqual(response.data['days'][0]['date'], '2026-06-10')
        self.assertEqual(response.data['days'][0]['total_due'], Decimal('227.00'))
        self.assertEqual(response.data['total_outstanding'], Decimal('227.00'))

    def test_calendar_rejects_invalid_month(self):
        for query in ('year=0&month=6', 'year=2026&month=13', 'year=2026&month=0', 'year=abc'):
            response = self.client.get(f'/api/v1/invoices/calendar/?{query}')
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST, query)

    def test_list_limit_is_at_least_one(self):
        TestDataFactory.create_invoice(customer=self.customer)
        TestDataFactory.create_invoice(customer=self.customer)
        for limit in ('0', '-1'):
            response = self.client.get(f'/api/v1/invoices/?limit={limit}')
            self.assertEqual(response.status_code, status.HTTP_200_OK)
            self.assertEqual(response.data['page_size'], 1)
            self.assertEqual(len(response.data['results']), 1)
            self.assertEqual(response.data['total_pages'], 2)

    def test_list_bad_page_falls_back_to_first(self):
        TestDataFactory.create_invoice(customer=self.customer)
        response = self.client.get('/api/v1/invoices/?page=abc')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['page'], 1)
        self.assertEqual(response.data['count'], 1)

    def test_list_non_numeric_limit_rejected(self):
        response = self.client.get('/api/v1/invoices/?limit=abc')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_edit_after_payment_reopens_paid_invoice(self):
        invoice = TestDataFactory.create_invoice(customer=self.customer)
        self.client.post(f'/api/v1/invoices/{invoice.id}/status/', {'status': 'paid'}, format='json')

        response = self.client.patch(f'/api/v1/invoices/{invoice.id}/', {
            'items': [{'description': 'Vacuum pump', 'quantity': '5', 'unit_price': '100.00'}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'sent')
        self.assertEqual(Decimal(response.data['total_amount']), Decimal('567.50'))
        self.assertEqual(Decimal(response.data['amount_paid']), Decimal('113.50'))
        self.assertEqual(Decimal(response.data['balance_due']), Decimal('454.00'))
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.account_balance, Decimal('454.00'))

    def test_edit_below_amount_paid_rejected(self):
        invoice = TestDataFactory.create_invoice(customer=self.customer)
        self.client.post(f'/api/v1/invoices/{invoice.id}/status/', {'status': 'paid'}, format='json')

        response = self.client.patch(f'/api/v1/invoices/{invoice.id}/', {
            'items': [{'description': 'Filter socks', 'quantity': '1', 'unit_price': '10.00'}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('items', response.data)

        invoice.refresh_from_db()
        self.assertEqual(invoice.status, Invoice.STATUS_PAID)
        self.assertEqual(invoice.total_amount, Decimal('113.50'))
        self.assertEqual(invoice.amount_paid, Decimal('113.50'))
        self.assertEqual(list(invoice.items.values_list('description', flat=True)), ['Service call'])

    def test_edit_back_to_amount_paid_marks_paid(self):
        invoice = TestDataFactory.create_invoice(
            customer=self.customer, lines=[('Pump', Decimal('2'), Decimal('100.00'))]
        )
        self.client.post(f'/api/v1/invoices/{invoice.id}/payments/', {'amount': '113.50'}, format='json')
        invoice.refresh_from_db()
        self.assertEqual(invoice.status, Invoice.STATUS_SENT)

        response = self.client.patch(f'/api/v1/invoices/{invoice.id}/', {
            'items': [{'description': 'Pump', 'quantity': '1', 'unit_price': '100.00'}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'paid')
        self.assertEqual(Decimal(response.data['balance_due']), Decimal('0.00'))


class PaymentAPITests(TestCase):
    """Test recording payments"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(TestDataFactory.create_office_user())
        self.customer = TestDataFactory.create_customer()
        self.invoice = TestDataFactory.create_invoice(customer=self.customer)

    def test_partial_then_full_payment(self):
        response = self.client.post(f'/api/v1/invoices/{self.invoice.id}/payments/', {'amount': '50.00', 'method': 'cheque'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['invoice']['status'], 'sent')
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.account_balance, Decimal('63.50'))

        response = self.client.post(f'/api/v1/invoices/{self.invoice.id}/payments/', {'amount': '63.50'}, format='json')
        self.assertEqual(response.data['invoice']['status'], 'paid')
        self.assertEqual(Decimal(response.data['invoice']['balance_due']), Decimal('0.00'))
        self.assertEqual(len(self.client.get(f'/api/v1/invoices/{self.invoice.id}/payments/').data), 2)

    def test_overpayment_rejected(self):
        response = self.client.post(f'/api/v1/invoices/{self.invoice.id}/payments/', {'amount': '113.51'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(Payment.objects.exists())

    def test_non_positive_amount_rejected(self):
        response = self.client.post(f'/api/v1/invoices/{self.invoice.id}/payments/', {'amount': '0'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_void_invoice_rejects_payment(self):
        Invoice.objects.filter(pk=self.invoice.pk).update(status=Invoice.STATUS_VOID)
        response = self.client.post(f'/api/v1/invoices/{self.invoice.id}/payments/', {'amount': '10.00'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_record_payment_checks_locked_row(self):
        # The caller's copy is stale; the stored row already has most of the total paid
        Invoice.objects.filter(pk=self.invoice.pk).update(amount_paid=Decimal('100.00'))
        self.assertEqual(self.invoice.balance_due, Decimal('113.50'))
        with self.assertRaises(PaymentRejected):
            record_payment(self.invoice, Decimal('50.00'))
        self.assertFalse(Payment.objects.exists())

        payment, invoice = record_payment(self.invoice, Decimal('13.50'))
        self.assertEqual(payment.amount, Decimal('13.50'))
        self.assertEqual(invoice.status, Invoice.STATUS_PAID)

    def test_record_payment_rejects_invoice_voided_meanwhile(self):
        Invoice.objects.filter(pk=self.invoice.pk).update(status=Invoice.STATUS_VOID)
        with self.assertRaises(PaymentRejected):
            record_payment(self.invoice, Decimal('10.00'))
        self.assertFalse(Payment.objects.exists())

    def test_payment_list_totals(self):
        self.client.post(f'/api/v1/invoices/{self.invoice.id}/payments/', {'amount': '10.00', 'method': 'cash'}, format='json')
        self.client.post(f'/api/v1/invoices/{self.invoice.id}/payments/', {'amount': '20.00', 'method': 'card'}, format='json')
        response = self.client.get('/api/v1/payments/')
        self.assertEqual(response.data['count'], 2)
        self.assertEqual(response.data['total_received'], Decimal('30.00'))
        response = self.client.get('/api/v1/payments/?method=cash')
        self.assertEqual(response.data['count'], 1)


class ReminderTests(TestCase):
    """Test the payment reminder webhook"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(TestDataFactory.create_office_user())
        self.invoice = TestDataFactory.create_invoice(customer=TestDataFactory.create_customer(name='Late Payer'))

    def _configure(self):
        company = CompanySettings.load()
        company.webhook_url = 'https://hooks.example.com/reminders'
        company.save()

    def test_not_configured(self):
        response = self.client.post(f'/api/v1/invoices/{self.invoice.id}/remind/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    @mock.patch('fieldservice.billing.reminders.requests.post')
    def test_reminder_posts_payload(self, mock_post):
        self._configure()
        mock_post.return_value.raise_for_status.return_value = None
        response = self.client.post(f'/api/v1/invoices/{self.invoice.id}/remind/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        args, kwargs = mock_post.call_args
        self.assertEqual(args[0], 'https://hooks.example.com/reminders')
        payload = kwargs['json']
        self.assertEqual(payload['invoice_number'], self.invoice.invoice_number)
        self.assertEqual(payload['customer_name'], 'Late Payer')
        self.assertEqual(payload['balance_due'], '113.50')
        self.assertIn('timeout', kwargs)

        self.invoice.refresh_from_db()
        self.assertIsNotNone(self.invoice.last_reminder_sent)
        self.assertTrue(AuditLog.objects.filter(action='reminder_sent').exists())

    @mock.patch('fieldservice.billing.reminders.requests.post')
    def test_webhook_failure(self, mock_post):
        self._configure()
        mock_post.side_effect = requests.exceptions.ConnectionError('refused')
        response = self.client.post(f'/api/v1/invoices/{self.invoice.id}/remind/')
        self.assertEqual(response.status_code, status.HTTP_502_BAD_GATEWAY)
        self.invoice.refresh_from_db()
        self.assertIsNone(self.invoice.last_reminder_sent)

    def test_paid_invoice_not_reminded(self):
        Invoice.objects.filter(pk=self.invoice.pk).update(status=Invoice.STATUS_PAID)
        response = self.client.post(f'/api/v1/invoices/{self.invoice.id}/remind/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class StatementAPITests(TestCase):
    """Test statements of work"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(TestDataFactory.create_office_user())
        self.job = TestDataFactory.create_job(status=Job.STATUS_COMPLETED)
        TestDataFactory.create_job_item(self.job, quantity=Decimal('3'), unit_price=Decimal('20.00'))

    def test_create_statement(self):
        response = self.client.post('/api/v1/statements/', {'job': self.job.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['statement_number'].startswith('STMT-'))
        self.assertEqual(Decimal(response.data['total_amount']), Decimal('60.00'))
        self.assertEqual(response.data['customer'], self.job.customer_id)

    def test_statement_for_empty_job_rejected(self):
        job = TestDataFactory.create_job()
        response = self.client.post('/api/v1/statements/', {'job': job.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_statement_pdf(self):
        statement = TestDataFactory.create_statement(self.job)
        response = self.client.get(f'/api/v1/statements/{statement.id}/pdf/?action=download')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.content.startswith(b'%PDF'))
        self.assertIn(statement.statement_number, response['Content-Disposition'])

    def test_delete_statement(self):
        statement = TestDataFactory.create_statement(self.job)
        response = self.client.delete(f'/api/v1/statements/{statement.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Statement.objects.exists())


class QuoteAPITests(TestCase):
    """Test quotes and conversion to invoices"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(TestDataFactory.create_office_user())
        self.customer = TestDataFactory.create_customer()

    def test_create_quote(self):
        response = self.client.post('/api/v1/quotes/', {
            'customer': self.customer.id,
            'description': 'New parlour install',
            'date_issued': '2026-02-01',
            'items': [
                {'description': 'Milk meter', 'quantity': '4', 'unit_price': '250.00'},
                {'description': 'Installation', 'quantity': '1', 'unit_price': '500.00'},
            ],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['quote_number'].startswith('QT-'))
        self.assertEqual(Decimal(response.data['subtotal']), Decimal('1500.00'))
        self.assertEqual(Decimal(response.data['total_amount']), Decimal('1702.50'))
        self.assertEqual(response.data['valid_until'], '2026-03-03')
        self.assertEqual(response.data['status'], 'draft')

    def test_quote_requires_items(self):
        response = self.client.post('/api/v1/quotes/', {'customer': self.customer.id, 'items': []}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_update_replaces_items(self):
        quote = TestDataFactory.create_quote(customer=self.customer)
        response = self.client.put(f'/api/v1/quotes/{quote.id}/', {
            'customer': self.customer.id,
            'items': [{'description': 'Smaller job', 'quantity': '1', 'unit_price': '100.00'}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(Decimal(response.data['total_amount']), Decimal('113.50'))
        self.assertEqual(quote.items.count(), 1)

    def test_convert_quote(self):
        quote = TestDataFactory.create_quote(customer=self.customer)
        response = self.client.post(f'/api/v1/quotes/{quote.id}/convert/')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

        invoice = Invoice.objects.get(pk=response.data['invoice']['id'])
        self.assertEqual(invoice.status, Invoice.STATUS_DRAFT)
        self.assertEqual(invoice.total_amount, quote.total_amount)
        self.assertEqual(invoice.items.count(), quote.items.count())
        self.assertEqual(invoice.due_date, invoice.date_issued + timedelta(days=30))

        quote.refresh_from_db()
        self.assertEqual(quote.status, Quote.STATUS_ACCEPTED)
        self.assertEqual(quote.converted_invoice, invoice)
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.account_balance, invoice.total_amount)

    def test_convert_twice_rejected(self):
        quote = TestDataFactory.create_quote(customer=self.customer)
        self.client.post(f'/api/v1/quotes/{quote.id}/convert/')
        response = self.client.post(f'/api/v1/quotes/{quote.id}/convert/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(Invoice.objects.count(), 1)

    def test_rejected_quote_cannot_convert(self):
        quote = TestDataFactory.create_quote(customer=self.customer, status=Quote.STATUS_REJECTED)
        response = self.client.post(f'/api/v1/quotes/{quote.id}/convert/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(Invoice.objects.exists())

    def test_quote_status(self):
        quote = TestDataFactory.create_quote(customer=self.customer)
        response = self.client.post(f'/api/v1/quotes/{quote.id}/status/', {'status': 'rejected'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'rejected')

    def test_quote_pdf(self):
        quote = TestDataFactory.create_quote(customer=self.customer)
        response = self.client.get(f'/api/v1/quotes/{quote.id}/pdf/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.content.startswith(b'%PDF'))
