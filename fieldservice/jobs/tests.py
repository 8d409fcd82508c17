"""
Test suite for the jobs module
Tests: job numbering, items, status transitions, pipeline, calendar, engineer scope, deletion cleanup
"""
from datetime import date, timedelta
from decimal import Decimal
from unittest import mock

from django.db import DatabaseError, IntegrityError
from django.test import TestCase
from django.utils import timezone
from rest_framework import status
from fieldservice.billing.models import Statement
from fieldservice.core.models import AuditLog
from fieldservice.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from fieldservice.jobs.models import Job, JobItem
from fieldservice.jobs.utils import InvalidStatus, apply_status_change, delete_job_with_dependents


class JobModelTests(TestCase):
    """Test job numbering and totals"""

    def test_job_numbers_are_sequential(self):
        first = TestDataFactory.create_job()
        second = TestDataFactory.create_job()
        self.assertEqual(second.job_number, first.job_number + 1)

    def test_number_follows_highest_existing(self):
        job = TestDataFactory.create_job()
        Job.objects.filter(pk=job.pk).update(job_number=41)
        self.assertEqual(TestDataFactory.create_job().job_number, 42)

    def test_save_retries_taken_number(self):
        existing = TestDataFactory.create_job()
        customer = existing.customer
        with mock.patch.object(Job, 'next_job_number',
                               side_effect=[existing.job_number, existing.job_number + 5]) as next_number:
            job = Job.objects.create(customer=customer, date_scheduled=timezone.localdate())
        self.assertEqual(next_number.call_count, 2)
        self.assertEqual(job.job_number, existing.job_number + 5)
        self.assertEqual(Job.objects.count(), 2)

    def test_save_gives_up_after_last_attempt(self):
        existing = TestDataFactory.create_job()
        job = Job(customer=existing.customer, date_scheduled=timezone.localdate())
        with mock.patch.object(Job, 'next_job_number', return_value=existing.job_number) as next_number:
            with self.assertRaises(IntegrityError):
                job.save()
        self.assertEqual(next_number.call_count, 3)
        self.assertIsNone(job.job_number)
        self.assertEqual(Job.objects.count(), 1)

    def test_item_total_computed_on_save(self):
        item = TestDataFactory.create_job_item(TestDataFactory.create_job(), quantity=Decimal('2.5'), unit_price=Decimal('19.99'))
        self.assertEqual(item.total, Decimal('49.98'))

    def test_job_total_sums_items(self):
        job = TestDataFactory.create_job()
        TestDataFactory.create_job_item(job, unit_price=Decimal('10.00'))
        TestDataFactory.create_job_item(job, quantity=Decimal('3'), unit_price=Decimal('5.00'))
        self.assertEqual(job.total, Decimal('25.00'))
        self.assertEqual(Job.objects.with_totals().get(pk=job.pk).total, Decimal('25.00'))

    def test_empty_job_total_is_zero(self):
        job = TestDataFactory.create_job()
        self.assertEqual(Job.objects.with_totals().get(pk=job.pk).items_total, Decimal('0.00'))


class StatusTransitionTests(TestCase):
    """Test apply_status_change"""

    def setUp(self):
        self.customer = TestDataFactory.create_customer()
        self.job = TestDataFactory.create_job(customer=self.customer)
        TestDataFactory.create_job_item(self.job, unit_price=Decimal('150.00'))

    def test_completing_stamps_date_and_updates_balance(self):
        old = apply_status_change(self.job, Job.STATUS_COMPLETED)
        self.assertEqual(old, Job.STATUS_SCHEDULED)
        self.job.refresh_from_db()
        self.customer.refresh_from_db()
        self.assertIsNotNone(self.job.date_completed)
        self.assertEqual(self.customer.account_balance, Decimal('150.00'))

    def test_leaving_completed_clears_date_and_balance(self):
        apply_status_change(self.job, Job.STATUS_COMPLETED)
        apply_status_change(self.job, Job.STATUS_IN_PROGRESS)
        self.job.refresh_from_db()
        self.customer.refresh_from_db()
        self.assertIsNone(self.job.date_completed)
        self.assertEqual(self.customer.account_balance, Decimal('0.00'))

    def test_invalid_status_leaves_job_unchanged(self):
        with self.assertRaises(InvalidStatus):
            apply_status_change(self.job, 'archived')
        self.job.refresh_from_db()
        self.assertEqual(self.job.status, Job.STATUS_SCHEDULED)

    def test_failed_balance_update_rolls_back_status(self):
        with mock.patch('fieldservice.jobs.utils.recalculate_customer_balance', side_effect=DatabaseError('down')):
            with self.assertRaises(DatabaseError):
                apply_status_change(self.job, Job.STATUS_COMPLETED)
        self.assertEqual(Job.objects.get(pk=self.job.pk).status, Job.STATUS_SCHEDULED)


class JobAPITests(TestCase):
    """Test job endpoints for office users"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.customer = TestDataFactory.create_customer(name='Ballyhoura Farm')

    def test_create_job_with_items(self):
        part = TestDataFactory.create_inventory_item(name='Pulsator', sell_price=Decimal('85.00'))
        response = self.client.post('/api/v1/jobs/', {
            'customer': self.customer.id,
            'engineer_name': 'Sean Murphy',
            'service_type': 'Annual service',
            'date_scheduled': '2026-05-04',
            'items': [
                {'inventory': part.id, 'quantity': '2'},
                {'description': 'Labour', 'quantity': '1.5', 'unit_price': '60.00', 'type': 'labor'},
            ],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], Job.STATUS_SCHEDULED)
        self.assertEqual(Decimal(response.data['total']), Decimal('260.00'))
        self.assertEqual(response.data['items'][0]['description'], 'Pulsator')

    def test_create_completed_job_updates_balance(self):
        response = self.client.post('/api/v1/jobs/', {
            'customer': self.customer.id,
            'status': 'completed',
            'items': [{'description': 'Call-out', 'unit_price': '90.00'}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertIsNotNone(response.data['date_completed'])
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.account_balance, Decimal('90.00'))

    def test_item_without_description_rejected(self):
        job = TestDataFactory.create_job(customer=self.customer)
        response = self.client.post(f'/api/v1/jobs/{job.id}/items/', {'unit_price': '5.00'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_filters(self):
        TestDataFactory.create_job(customer=self.customer, engineer_name='Aoife')
        TestDataFactory.create_job(customer=self.customer, status=Job.STATUS_COMPLETED, engineer_name='Sean')
        self.assertEqual(len(self.client.get('/api/v1/jobs/?status=all').data), 2)
        self.assertEqual(len(self.client.get('/api/v1/jobs/?status=completed').data), 1)
        self.assertEqual(len(self.client.get('/api/v1/jobs/?engineer=Aoife').data), 1)
        self.assertEqual(len(self.client.get('/api/v1/jobs/?search=ballyhoura').data), 2)

    def test_list_ordered_by_date_scheduled_desc(self):
        older = TestDataFactory.create_job(customer=self.customer, date_scheduled=date(2026, 1, 5))
        newer = TestDataFactory.create_job(customer=self.customer, date_scheduled=date(2026, 3, 5))
        ids = [j['id'] for j in self.client.get('/api/v1/jobs/').data]
        self.assertEqual(ids, [newer.id, older.id])

    def test_patch_cannot_change_status(self):
        job = TestDataFactory.create_job(customer=self.customer)
        response = self.client.patch(f'/api/v1/jobs/{job.id}/', {'status': 'completed'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_status_endpoint(self):
        job = TestDataFactory.create_job(customer=self.customer)
        TestDataFactory.create_job_item(job, unit_price=Decimal('40.00'))
        response = self.client.post(f'/api/v1/jobs/{job.id}/status/', {'status': 'completed'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'completed')
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.account_balance, Decimal('40.00'))
        self.assertTrue(AuditLog.objects.filter(action='job_status', object_reference=str(job.job_number)).exists())

    def test_status_endpoint_rejects_unknown_status(self):
        job = TestDataFactory.create_job(customer=self.customer)
        response = self.client.post(f'/api/v1/jobs/{job.id}/status/', {'status': 'archived'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        job.refresh_from_db()
        self.assertEqual(job.status, Job.STATUS_SCHEDULED)

    def test_item_change_on_completed_job_updates_balance(self):
        job = TestDataFactory.create_job(customer=self.customer, status=Job.STATUS_COMPLETED)
        item = TestDataFactory.create_job_item(job, unit_price=Decimal('10.00'))
        response = self.client.patch(f'/api/v1/jobs/{job.id}/items/{item.id}/', {'unit_price': '25.00'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.account_balance, Decimal('25.00'))

        self.client.delete(f'/api/v1/jobs/{job.id}/items/{item.id}/')
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.account_balance, Decimal('0.00'))

    def test_pipeline_columns(self):
        TestDataFactory.create_job(customer=self.customer)
        TestDataFactory.create_job(customer=self.customer, status=Job.STATUS_IN_PROGRESS)
        TestDataFactory.create_job(customer=self.customer, status=Job.STATUS_IN_PROGRESS)
        response = self.client.get('/api/v1/jobs/pipeline/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(
            [c['status'] for c in response.data['columns']],
            ['scheduled', 'in_progress', 'completed', 'cancelled']
        )
        self.assertEqual(response.data['counts']['in_progress'], 2)
        self.assertEqual(response.data['total'], 3)

    def test_pipeline_newest_first(self):
        first = TestDataFactory.create_job(customer=self.customer)
        second = TestDataFactory.create_job(customer=self.customer)
        Job.objects.filter(pk=first.pk).update(created_at=timezone.now() - timedelta(days=1))
        column = self.client.get('/api/v1/jobs/pipeline/').data['columns'][0]
        self.assertEqual([j['id'] for j in column['jobs']], [second.id, first.id])

    def test_calendar_month_grid(self):
        TestDataFactory.create_job(customer=self.customer, date_scheduled=date(2026, 4, 15))
        response = self.client.get('/api/v1/jobs/calendar/?year=2026&month=4')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        # 1 April 2026 is a Wednesday
        self.assertEqual(response.data['leading_blanks'], 3)
        self.assertEqual(response.data['days_in_month'], 30)
        self.assertEqual(len(response.data['days']), 30)
        self.assertEqual(len(response.data['days'][14]['jobs']), 1)

    def test_calendar_upcoming_skips_cancelled(self):
        today = timezone.localdate()
        live = TestDataFactory.create_job(customer=self.customer, date_scheduled=today)
        TestDataFactory.create_job(customer=self.customer, date_scheduled=today, status=Job.STATUS_CANCELLED)
        response = self.client.get('/api/v1/jobs/calendar/')
        self.assertEqual([j['id'] for j in response.data['upcoming']], [live.id])

    def test_calendar_single_day(self):
        job = TestDataFactory.create_job(customer=self.customer, date_scheduled=date(2026, 4, 15))
        response = self.client.get('/api/v1/jobs/calendar/?date=2026-04-15')
        self.assertEqual([j['id'] for j in response.data['jobs']], [job.id])

    def test_calendar_bad_month(self):
        response = self.client.get('/api/v1/jobs/calendar/?year=2026&month=13')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self.client.get('/api/v1/jobs/calendar/?year=0&month=1')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_calendar_bad_day(self):
        for value in ('2025-13-40', '2025-02-30', 'tomorrow'):
            response = self.client.get(f'/api/v1/jobs/calendar/?date={value}')
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST, value)

    def test_service_report_pdf(self):
        job = TestDataFactory.create_job(customer=self.customer, engineer_name='Sean Murphy')
        TestDataFactory.create_job_item(job)
        response = self.client.get(f'/api/v1/jobs/{job.id}/service-report/?action=download')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response['Content-Type'], 'application/pdf')
        self.assertTrue(response['Content-Disposition'].startswith('attachment'))
        self.assertTrue(response.content.startswith(b'%PDF'))


class JobDeletionTests(TestCase):
    """Test job deletion with dependent cleanup"""

    def setUp(self):
        self.customer = TestDataFactory.create_customer()
        self.job = TestDataFactory.create_job(customer=self.customer, status=Job.STATUS_COMPLETED)
        TestDataFactory.create_job_item(self.job, unit_price=Decimal('100.00'))
        self.invoice = TestDataFactory.create_invoice(job=self.job)
        TestDataFactory.create_statement(self.job)

    def test_delete_unlinks_invoices_and_removes_statements(self):
        client = AuthenticatedAPIClient()
        client.authenticate_user(TestDataFactory.create_user())
        response = client.delete(f'/api/v1/jobs/{self.job.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)

        self.assertFalse(Job.objects.filter(pk=self.job.pk).exists())
        self.assertFalse(JobItem.objects.filter(job_id=self.job.pk).exists())
        self.assertFalse(Statement.objects.exists())
        self.invoice.refresh_from_db()
        self.assertIsNone(self.invoice.job_id)

        # The unlinked invoice now counts as standalone
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.account_balance, Decimal('113.50'))

    def test_failed_step_is_reported(self):
        with mock.patch('fieldservice.billing.models.Statement.objects.filter', side_effect=DatabaseError('locked')):
            failures = delete_job_with_dependents(self.job)
        self.assertEqual(failures, ['statements'])
        self.assertFalse(Job.objects.filter(pk=self.job.pk).exists())


class EngineerScopeTests(TestCase):
    """Test that engineers only reach their own jobs"""

    def setUp(self):
        self.engineer = TestDataFactory.create_engineer_user(first_name='Sean', last_name='Murphy')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.engineer)
        customer = TestDataFactory.create_customer()
        self.own_job = TestDataFactory.create_job(customer=customer, engineer_name='Sean Murphy')
        self.other_job = TestDataFactory.create_job(customer=customer, engineer_name='Aoife Ryan')

    def test_list_shows_own_jobs(self):
        response = self.client.get('/api/v1/jobs/')
        self.assertEqual([j['id'] for j in response.data], [self.own_job.id])

    def test_other_job_forbidden(self):
        response = self.client.get(f'/api/v1/jobs/{self.other_job.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        response = self.client.post(f'/api/v1/jobs/{self.other_job.id}/status/', {'status': 'in_progress'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_engineer_moves_own_job(self):
        response = self.client.post(f'/api/v1/jobs/{self.own_job.id}/status/', {'status': 'in_progress'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_engineer_cannot_create_or_delete(self):
        response = self.client.post('/api/v1/jobs/', {'customer': self.own_job.customer_id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        response = self.client.delete(f'/api/v1/jobs/{self.own_job.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_pipeline_scoped(self):
        response = self.client.get('/api/v1/jobs/pipeline/')
        self.assertEqual(response.data['total'], 1)

    def test_engineer_blocked_from_billing(self):
        response = self.client.get('/api/v1/invoices/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
