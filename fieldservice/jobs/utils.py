"""Job status transitions and dependent-record cleanup"""
import logging

from django.db import DatabaseError, transaction
from django.utils import timezone

from fieldservice.parties.utils import recalculate_customer_balance
from .models import Job

logger = logging.getLogger(__name__)


class InvalidStatus(ValueError):
    pass


def apply_status_change(job, new_status):
    """
    Move a job to new_status and persist it.

    Entering 'completed' stamps date_completed; leaving it clears the stamp.
    The customer's balance is recomputed whenever completed is entered or left,
    since only completed jobs count towards it. Returns the old status.
    """
    valid = dict(Job.STATUS_CHOICES)
    if new_status not in valid:
        raise InvalidStatus(f"Invalid status '{new_status}'. Choose one of: {', '.join(valid)}")

    old_status = job.status
    if old_status == new_status:
        return old_status

    with transaction.atomic():
        job.status = new_status
        if new_status == Job.STATUS_COMPLETED:
            job.date_completed = timezone.now()
        elif old_status == Job.STATUS_COMPLETED:
            job.date_completed = None
        job.save(update_fields=['status', 'date_completed'])

        if Job.STATUS_COMPLETED in (old_status, new_status):
            recalculate_customer_balance(job.customer)

    logger.info(f"Job #{job.job_number} status {old_status} -> {new_status}")
    return old_status


def delete_job_with_dependents(job):
    """
    Delete a job after clearing its dependents one by one.

    Each dependent step runs in its own savepoint; a failing step is logged
    and the remaining steps still run. Returns the list of steps that failed.
    """
    from fieldservice.billing.models import Invoice, Statement

    failures = []
    steps = [
        ('job items', lambda: job.items.all().delete()),
        ('statements', lambda: Statement.objects.filter(job=job).delete()),
        ('invoice links', lambda: Invoice.objects.filter(job=job).update(job=None)),
    ]

    customer = job.customer
    job_number = job.job_number

    with transaction.atomic():
        for label, step in steps:
            try:
                with transaction.atomic():
                    step()
            except DatabaseError as e:
                failures.append(label)
                logger.error(f"Could not remove {label} of job #{job_number}: {e}", exc_info=True)

        job.delete()

        # Unlinked invoices now count as standalone
        recalculate_customer_balance(customer)

    logger.info(f"Deleted job #{job_number}" + (f" (cleanup failed for: {', '.join(failures)})" if failures else ""))
    return failures
