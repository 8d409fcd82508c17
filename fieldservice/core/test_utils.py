"""
Test utilities and factories for creating test data
"""
from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken
from fieldservice.core.utils import ADMIN_GROUP, ENGINEER_GROUP, OFFICE_GROUP
from fieldservice.parties.models import Customer, Engineer
from fieldservice.inventory.models import InventoryItem
from fieldservice.jobs.models import Job, JobItem
from fieldservice.billing.models import Invoice, InvoiceItem, Statement, Quote, QuoteItem
from fieldservice.billing.utils import (
    INVOICE_PREFIX, STATEMENT_PREFIX, QUOTE_PREFIX,
    calculate_totals, create_numbered,
)
from decimal import Decimal
from datetime import timedelta
from django.utils import timezone
import random
import string

User = get_user_model()


class TestDataFactory:
    """Factory class for creating test data"""

    @staticmethod
    def random_string(length=10):
        """Generate a random string"""
        return ''.join(random.choices(string.ascii_letters + string.digits, k=length))

    @staticmethod
    def create_user(username=None, email=None, password='testpass123', is_staff=False, is_superuser=False,
                    first_name='', last_name=''):
        """Create a test user"""
        if not username:
            username = f'testuser_{TestDataFactory.random_string(6)}'
        if not email:
            email = f'{username}@test.com'
        user = User.objects.create_user(
            username=username,
            email=email,
            password=password,
            is_staff=is_staff,
            is_superuser=is_superuser,
            first_name=first_name,
            last_name=last_name,
        )
        return user

    @staticmethod
    def create_admin(username=None):
        """Create a user in the Admin group"""
        user = TestDataFactory.create_user(username=username)
        group, _ = Group.objects.get_or_create(name=ADMIN_GROUP)
        user.groups.add(group)
        return user

    @staticmethod
    def create_office_user(username=None):
        """Create a user in the Office group (billing and reports)"""
        user = TestDataFactory.create_user(username=username)
        group, _ = Group.objects.get_or_create(name=OFFICE_GROUP)
        user.groups.add(group)
        return user

    @staticmethod
    def create_engineer_user(first_name='Sean', last_name='Murphy', username=None):
        """Create a user in the Engineer group; their display name scopes their jobs"""
        user = TestDataFactory.create_user(username=username, first_name=first_name, last_name=last_name)
        group, _ = Group.objects.get_or_create(name=ENGINEER_GROUP)
        user.groups.add(group)
        return user

    @staticmethod
    def create_customer(name=None, phone=None, email=None, address=None):
        """Create a test customer"""
        if not name:
            name = f'Farm_{TestDataFactory.random_string(6)}'
        return Customer.objects.create(
            name=name,
            phone=phone or '0871234567',
            email=email or f'{name.lower()}@test.com',
            address=address or f'Townland {name}, Co. Cork',
            contact_person='Test Contact',
        )

    @staticmethod
    def create_engineer(name=None, status='active'):
        """Create a team member record"""
        if not name:
            name = f'Engineer_{TestDataFactory.random_string(6)}'
        return Engineer.objects.create(name=name, email=f'{name.lower()}@test.com', status=status)

    @staticmethod
    def create_inventory_item(sku=None, name=None, stock_level=10, sell_price=None, cost_price=None,
                              category='Liners', low_stock_threshold=5):
        """Create a test part"""
        if not sku:
            sku = f'SKU_{TestDataFactory.random_string(8)}'
        if not name:
            name = f'Part_{TestDataFactory.random_string(6)}'
        return InventoryItem.objects.create(
            sku=sku,
            name=name,
            category=category,
            stock_level=stock_level,
            sell_price=sell_price if sell_price is not None else Decimal('25.00'),
            cost_price=cost_price if cost_price is not None else Decimal('12.50'),
            low_stock_threshold=low_stock_threshold,
        )

    @staticmethod
    def create_job(customer=None, status=Job.STATUS_SCHEDULED, engineer_name='', service_type='Milking machine service',
                   date_scheduled=None):
        """Create a test job; completed jobs get a completion stamp"""
        if not customer:
            customer = TestDataFactory.create_customer()
        job = Job.objects.create(
            customer=customer,
            status=status,
            engineer_name=engineer_name,
            service_type=service_type,
            date_scheduled=date_scheduled or timezone.localdate(),
        )
        if status == Job.STATUS_COMPLETED:
            job.date_completed = timezone.now()
            job.save(update_fields=['date_completed'])
        return job

    @staticmethod
    def create_job_item(job, description='Liner set', quantity=None, unit_price=None, inventory=None,
                        type=JobItem.TYPE_PART):
        """Create a line on a job"""
        return JobItem.objects.create(
            job=job,
            inventory=inventory,
            description=description,
            quantity=quantity if quantity is not None else Decimal('1'),
            unit_price=unit_price if unit_price is not None else Decimal('100.00'),
            type=type,
        )

    @staticmethod
    def create_invoice(customer=None, job=None, lines=None, status=Invoice.STATUS_SENT, amount_paid=None,
                       due_date=None, date_issued=None, user=None):
        """
        Create an invoice with VAT on top of its lines.

        lines: list of (description, quantity, unit_price); defaults to one 100.00 line.
        """
        if customer is None and job is not None:
            customer = job.customer
        lines = lines or [('Service call', Decimal('1'), Decimal('100.00'))]
        date_issued = date_issued or timezone.localdate()
        totals = calculate_totals((q, p) for _, q, p in lines)
        invoice = create_numbered(
            Invoice, 'invoice_number', INVOICE_PREFIX,
            customer=customer,
            job=job,
            date_issued=date_issued,
            due_date=due_date or date_issued + timedelta(days=30),
            status=status,
            amount_paid=amount_paid if amount_paid is not None else Decimal('0.00'),
            created_by=user,
            **totals
        )
        for description, quantity, unit_price in lines:
            InvoiceItem.objects.create(invoice=invoice, description=description, quantity=quantity, unit_price=unit_price)
        return invoice

    @staticmethod
    def create_quote(customer=None, lines=None, status=Quote.STATUS_PENDING):
        """Create a quote with VAT on top of its lines"""
        if not customer:
            customer = TestDataFactory.create_customer()
        lines = lines or [('Vacuum pump overhaul', Decimal('1'), Decimal('400.00'))]
        totals = calculate_totals((q, p) for _, q, p in lines)
        quote = create_numbered(
            Quote, 'quote_number', QUOTE_PREFIX,
            customer=customer,
            description='Test quote',
            valid_until=timezone.localdate() + timedelta(days=30),
            status=status,
            **totals
        )
        for description, quantity, unit_price in lines:
            QuoteItem.objects.create(quote=quote, description=description, quantity=quantity, unit_price=unit_price)
        return quote

    @staticmethod
    def create_statement(job):
        """Create a statement of work for a job"""
        return create_numbered(
            Statement, 'statement_number', STATEMENT_PREFIX,
            customer=job.customer,
            job=job,
            total_amount=job.total,
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
