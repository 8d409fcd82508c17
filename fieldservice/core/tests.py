"""
Test suite for the core module
Tests: authentication, users and roles, company settings, audit logs, global search, caching
"""
from unittest import mock

from django.core.cache import cache
from django.test import TestCase, override_settings
from rest_framework import status
from fieldservice.core.cache_utils import (
    cache_dashboard_kpis, get_cached_dashboard_kpis, invalidate_dashboard_cache, make_cache_key,
)
from fieldservice.core.models import AuditLog, CompanySettings, User
from fieldservice.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from fieldservice.core.utils import (
    ENGINEER_GROUP, OFFICE_GROUP, create_audit_log, engineer_scope, is_admin_user, is_engineer_user, is_office_user,
)


class RoleHelperTests(TestCase):
    """Test admin/engineer role detection"""

    def test_admin_group_is_admin(self):
        user = TestDataFactory.create_admin()
        self.assertTrue(is_admin_user(user))
        self.assertFalse(is_engineer_user(user))
        self.assertIsNone(engineer_scope(user))

    def test_superuser_without_group_is_admin(self):
        user = TestDataFactory.create_user(is_superuser=True)
        self.assertTrue(is_admin_user(user))

    def test_engineer_scope_is_display_name(self):
        user = TestDataFactory.create_engineer_user(first_name='Sean', last_name='Murphy')
        self.assertTrue(is_engineer_user(user))
        self.assertFalse(is_admin_user(user))
        self.assertEqual(engineer_scope(user), 'Sean Murphy')

    def test_plain_user_has_full_job_scope(self):
        user = TestDataFactory.create_user()
        self.assertFalse(is_admin_user(user))
        self.assertFalse(is_engineer_user(user))
        self.assertIsNone(engineer_scope(user))
        self.assertFalse(is_office_user(user))

    def test_office_group_is_office_not_admin(self):
        user = TestDataFactory.create_office_user()
        self.assertTrue(is_office_user(user))
        self.assertFalse(is_admin_user(user))
        self.assertIsNone(engineer_scope(user))

    def test_admin_and_engineer_office_access(self):
        self.assertTrue(is_office_user(TestDataFactory.create_admin()))
        self.assertFalse(is_office_user(TestDataFactory.create_engineer_user()))

    def test_display_name_falls_back_to_username(self):
        user = TestDataFactory.create_user(username='jdoe')
        self.assertEqual(user.display_name, 'jdoe')


class AuthTests(TestCase):
    """Test JWT login and the current-user endpoint"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()

    def test_login_returns_tokens(self):
        TestDataFactory.create_user(username='office', password='testpass123')
        response = self.client.post('/api/v1/auth/login/', {'username': 'office', 'password': 'testpass123'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)
        self.assertIn('refresh', response.data)

    def test_login_wrong_password(self):
        TestDataFactory.create_user(username='office', password='testpass123')
        response = self.client.post('/api/v1/auth/login/', {'username': 'office', 'password': 'nope'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_unauthenticated_request_rejected(self):
        response = self.client.get('/api/v1/customers/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_me_for_engineer(self):
        user = TestDataFactory.create_engineer_user(first_name='Aoife', last_name='Ryan')
        self.client.authenticate_user(user)
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['is_engineer'])
        self.assertEqual(response.data['engineer_scope'], 'Aoife Ryan')
        self.assertFalse(response.data['can_access_billing'])
        self.assertFalse(response.data['can_access_settings'])

    def test_me_for_admin(self):
        self.client.authenticate_user(TestDataFactory.create_admin())
        response = self.client.get('/api/v1/auth/me/')
        self.assertTrue(response.data['is_admin'])
        self.assertTrue(response.data['can_access_settings'])
        self.assertIn('Admin', response.data['groups'])

    def test_register_creates_inactive_user_without_tokens(self):
        response = self.client.post('/api/v1/auth/register/', {
            'username': 'newcomer',
            'email': 'newcomer@test.com',
            'password': 'Parlour-Pump-2024',
            'password_confirm': 'Parlour-Pump-2024',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertNotIn('access', response.data)
        self.assertNotIn('refresh', response.data)

        user = User.objects.get(username='newcomer')
        self.assertFalse(user.is_active)
        self.assertFalse(user.groups.exists())
        self.assertFalse(is_office_user(user))

    def test_registered_user_cannot_log_in_until_approved(self):
        self.client.post('/api/v1/auth/register/', {
            'username': 'newcomer',
            'password': 'Parlour-Pump-2024',
            'password_confirm': 'Parlour-Pump-2024',
        }, format='json')
        credentials = {'username': 'newcomer', 'password': 'Parlour-Pump-2024'}
        response = self.client.post('/api/v1/auth/login/', credentials, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

        User.objects.filter(username='newcomer').update(is_active=True)
        response = self.client.post('/api/v1/auth/login/', credentials, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_register_ignores_role_and_active_flag(self):
        self.client.post('/api/v1/auth/register/', {
            'username': 'sneaky',
            'password': 'Parlour-Pump-2024',
            'password_confirm': 'Parlour-Pump-2024',
            'role': 'admin',
            'is_active': True,
        }, format='json')
        user = User.objects.get(username='sneaky')
        self.assertFalse(user.is_active)
        self.assertFalse(is_admin_user(user))

    def test_me_for_office_user(self):
        self.client.authenticate_user(TestDataFactory.create_office_user())
        response = self.client.get('/api/v1/auth/me/')
        self.assertTrue(response.data['is_office'])
        self.assertTrue(response.data['can_access_billing'])
        self.assertTrue(response.data['can_access_reports'])
        self.assertFalse(response.data['can_access_settings'])

    def test_me_for_user_without_role(self):
        self.client.authenticate_user(TestDataFactory.create_user())
        response = self.client.get('/api/v1/auth/me/')
        self.assertFalse(response.data['is_office'])
        self.assertFalse(response.data['can_access_billing'])
        self.assertFalse(response.data['can_access_reports'])


class UserManagementTests(TestCase):
    """Test admin-only user endpoints"""

    def setUp(self):
        self.admin = TestDataFactory.create_admin()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)

    def test_admin_lists_users(self):
        response = self.client.get('/api/v1/users/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_non_admin_forbidden(self):
        self.client.authenticate_user(TestDataFactory.create_user())
        response = self.client.get('/api/v1/users/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_admin_cannot_delete_self(self):
        response = self.client.delete(f'/api/v1/users/{self.admin.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertTrue(User.objects.filter(pk=self.admin.pk).exists())

    def test_admin_creates_office_user(self):
        response = self.client.post('/api/v1/users/', {
            'username': 'maura',
            'password': 'Parlour-Pump-2024',
            'password_confirm': 'Parlour-Pump-2024',
            'role': 'office',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['groups'], [OFFICE_GROUP])
        user = User.objects.get(username='maura')
        self.assertTrue(user.is_active)
        self.assertTrue(is_office_user(user))
        self.assertFalse(is_admin_user(user))

    def test_admin_changes_role(self):
        user = TestDataFactory.create_office_user()
        response = self.client.patch(f'/api/v1/users/{user.id}/', {'role': 'engineer'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(list(user.groups.values_list('name', flat=True)), [ENGINEER_GROUP])
        self.assertFalse(is_office_user(user))


class BillingAccessTests(TestCase):
    """Test that billing needs the Office or Admin role"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.invoice = TestDataFactory.create_invoice(customer=TestDataFactory.create_customer())

    def test_user_without_role_is_forbidden(self):
        self.client.authenticate_user(TestDataFactory.create_user())
        response = self.client.get('/api/v1/invoices/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        response = self.client.post(f'/api/v1/invoices/{self.invoice.id}/void/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        response = self.client.get('/api/v1/reports/revenue/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.invoice.refresh_from_db()
        self.assertNotEqual(self.invoice.status, 'void')

    def test_office_user_allowed(self):
        self.client.authenticate_user(TestDataFactory.create_office_user())
        response = self.client.get('/api/v1/invoices/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_admin_allowed(self):
        self.client.authenticate_user(TestDataFactory.create_admin())
        response = self.client.get('/api/v1/invoices/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)


class CompanySettingsTests(TestCase):
    """Test the settings singleton and its endpoint"""

    def test_load_creates_single_row(self):
        first = CompanySettings.load()
        second = CompanySettings.load()
        self.assertEqual(first.pk, second.pk)
        self.assertEqual(CompanySettings.objects.count(), 1)

    def test_save_keeps_singleton(self):
        CompanySettings(company_name='Other').save()
        self.assertEqual(CompanySettings.objects.count(), 1)
        self.assertEqual(CompanySettings.load().company_name, 'Other')

    def test_anyone_can_read_settings(self):
        client = AuthenticatedAPIClient()
        client.authenticate_user(TestDataFactory.create_engineer_user())
        response = client.get('/api/v1/settings/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('iban', response.data)

    def test_only_admin_updates_settings(self):
        client = AuthenticatedAPIClient()
        client.authenticate_user(TestDataFactory.create_user())
        response = client.patch('/api/v1/settings/', {'company_name': 'X'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        client.authenticate_user(TestDataFactory.create_admin())
        response = client.patch('/api/v1/settings/', {'iban': 'IE29AIBK93115212345678'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(CompanySettings.load().iban, 'IE29AIBK93115212345678')
        self.assertTrue(AuditLog.objects.filter(model_name='CompanySettings', action='update').exists())


class AuditLogTests(TestCase):
    """Test audit log creation and visibility"""

    def test_create_audit_log_without_request(self):
        log = create_audit_log(action='create', model_name='Customer', object_id='1', object_name='Farm')
        self.assertIsNotNone(log)
        self.assertEqual(log.action, 'create')

    def test_non_admin_sees_own_logs(self):
        user = TestDataFactory.create_user()
        other = TestDataFactory.create_user()
        create_audit_log(action='create', model_name='Customer', object_id='1', user=user)
        create_audit_log(action='create', model_name='Customer', object_id='2', user=other)

        client = AuthenticatedAPIClient()
        client.authenticate_user(user)
        response = client.get('/api/v1/audit-logs/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)

    def test_customer_create_is_logged(self):
        client = AuthenticatedAPIClient()
        client.authenticate_user(TestDataFactory.create_user())
        client.post('/api/v1/customers/', {'name': 'Hillside Farm'}, format='json')
        self.assertTrue(AuditLog.objects.filter(model_name='Customer', object_name='Hillside Farm').exists())


class GlobalSearchTests(TestCase):
    """Test cross-entity search"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(TestDataFactory.create_user())

    def test_empty_query_returns_empty_lists(self):
        response = self.client.get('/api/v1/search/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['customers'], [])
        self.assertEqual(response.data['jobs'], [])

    def test_search_matches_customer_and_jobs(self):
        customer = TestDataFactory.create_customer(name='Glenview Dairy')
        TestDataFactory.create_job(customer=customer)
        TestDataFactory.create_inventory_item(name='Glenview pulsator')
        response = self.client.get('/api/v1/search/?q=glenview')
        self.assertEqual(len(response.data['customers']), 1)
        self.assertEqual(len(response.data['jobs']), 1)
        self.assertEqual(len(response.data['inventory']), 1)

    def test_search_by_job_number(self):
        job = TestDataFactory.create_job()
        response = self.client.get(f'/api/v1/search/?q={job.job_number}')
        self.assertIn(job.id, [j['id'] for j in response.data['jobs']])

    def test_engineer_search_hides_invoices(self):
        customer = TestDataFactory.create_customer(name='Glenview Dairy')
        TestDataFactory.create_invoice(customer=customer)
        self.client.authenticate_user(TestDataFactory.create_engineer_user())
        response = self.client.get('/api/v1/search/?q=glenview')
        self.assertEqual(response.data['invoices'], [])

    def test_office_search_finds_invoices(self):
        customer = TestDataFactory.create_customer(name='Glenview Dairy')
        TestDataFactory.create_invoice(customer=customer)
        response = self.client.get('/api/v1/search/?q=glenview')
        self.assertEqual(response.data['invoices'], [])

        self.client.authenticate_user(TestDataFactory.create_office_user())
        response = self.client.get('/api/v1/search/?q=glenview')
        self.assertEqual(len(response.data['invoices']), 1)


@override_settings(CACHES={'default': {'BACKEND': 'django.core.cache.backends.locmem.LocMemCache'}})
class CacheUtilsTests(TestCase):
    """Test dashboard cache helpers"""

    def setUp(self):
        cache.clear()

    def test_cache_key_is_stable(self):
        self.assertEqual(make_cache_key('x', 1, a=2), make_cache_key('x', 1, a=2))
        self.assertNotEqual(make_cache_key('x', 1), make_cache_key('x', 2))

    def test_cache_round_trip_and_invalidate(self):
        data, key = get_cached_dashboard_kpis('all', None, None)
        self.assertIsNone(data)
        cache_dashboard_kpis(key, {'active_jobs': 3})
        data, _ = get_cached_dashboard_kpis('all', None, None)
        self.assertEqual(data, {'active_jobs': 3})

        invalidate_dashboard_cache()
        data, _ = get_cached_dashboard_kpis('all', None, None)
        self.assertIsNone(data)

    def test_job_save_schedules_invalidation(self):
        with mock.patch('fieldservice.core.cache_signals.transaction.on_commit') as on_commit:
            TestDataFactory.create_job()
        self.assertTrue(on_commit.called)

    def test_dashboard_cache_separates_billing_view(self):
        _, office_key = get_cached_dashboard_kpis('all', None, None, None, True)
        cache_dashboard_kpis(office_key, {'outstanding_balance': 10.0})
        data, plain_key = get_cached_dashboard_kpis('all', None, None, None, False)
        self.assertIsNone(data)
        self.assertNotEqual(office_key, plain_key)
