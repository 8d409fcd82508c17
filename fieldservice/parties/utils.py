"""Customer account balance calculation"""
import logging
from decimal import Decimal

from django.db import transaction
from django.db.models import Sum

from .models import Customer

logger = logging.getLogger(__name__)

ZERO = Decimal('0.00')


def compute_customer_balance(customer):
    """
    Balance owed by a customer:

        sum(item totals of completed jobs)
        + sum(totals of non-void invoices not linked to a job)
        - sum(amount paid on non-void invoices)

    Job invoices are counted through their job so the work is not billed twice.
    """
    from fieldservice.jobs.models import Job, JobItem
    from fieldservice.billing.models import Invoice

    completed_jobs_total = JobItem.objects.filter(
        job__customer=customer,
        job__status=Job.STATUS_COMPLETED,
    ).aggregate(total=Sum('total'))['total'] or ZERO

    live_invoices = Invoice.objects.filter(customer=customer).exclude(status=Invoice.STATUS_VOID)

    standalone_total = live_invoices.filter(job__isnull=True).aggregate(
        total=Sum('total_amount')
    )['total'] or ZERO

    paid_total = live_invoices.aggregate(total=Sum('amount_paid'))['total'] or ZERO

    return (completed_jobs_total + standalone_total - paid_total).quantize(Decimal('0.01'))


def recalculate_customer_balance(customer):
    """Recompute and store a customer's account balance. Returns the new balance."""
    if customer is None:
        return None
    customer_id = customer.pk if isinstance(customer, Customer) else customer

    with transaction.atomic():
        locked = Customer.objects.select_for_update().get(pk=customer_id)
        new_balance = compute_customer_balance(locked)
        if locked.account_balance != new_balance:
            logger.info(f"Customer {locked.pk} balance {locked.account_balance} -> {new_balance}")
            locked.account_balance = new_balance
            locked.save(update_fields=['account_balance', 'updated_at'])

    if isinstance(customer, Customer):
        customer.account_balance = new_balance
    return new_balance
