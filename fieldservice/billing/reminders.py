"""
Payment reminder notifications.

The reminder is a JSON POST of invoice and customer fields to the webhook URL
configured in the company settings (falling back to REMINDER_WEBHOOK_URL),
so an automation service can email or text the customer.
"""
import logging
import os

import requests
from django.conf import settings
from django.utils import timezone

logger = logging.getLogger(__name__)


class ReminderError(Exception):
    """Reminder could not be delivered"""


class ReminderNotConfigured(ReminderError):
    """No webhook URL is configured"""


def get_webhook_url(company):
    return company.webhook_url or getattr(settings, 'REMINDER_WEBHOOK_URL', os.getenv('REMINDER_WEBHOOK_URL', ''))


def build_reminder_payload(invoice, company):
    customer = invoice.customer
    return {
        'event': 'invoice.payment_reminder',
        'invoice_id': invoice.id,
        'invoice_number': invoice.invoice_number,
        'customer_name': invoice.customer_display_name,
        'customer_email': customer.email if customer else '',
        'customer_phone': customer.phone if customer else '',
        'total_amount': str(invoice.total_amount),
        'amount_paid': str(invoice.amount_paid),
        'balance_due': str(invoice.balance_due),
        'date_issued': invoice.date_issued.isoformat() if invoice.date_issued else None,
        'due_date': invoice.due_date.isoformat() if invoice.due_date else None,
        'days_overdue': invoice.days_overdue,
        'status': invoice.status,
        'company_name': company.company_name,
        'company_email': company.company_email,
        'sent_at': timezone.now().isoformat(),
    }


def send_payment_reminder(invoice, company):
    """
    POST the reminder payload and stamp invoice.last_reminder_sent.

    Raises ReminderNotConfigured without a webhook URL and ReminderError when
    the webhook cannot be reached or answers with an error status.
    """
    url = get_webhook_url(company)
    if not url:
        raise ReminderNotConfigured('No reminder webhook URL is configured in settings')

    payload = build_reminder_payload(invoice, company)
    timeout = getattr(settings, 'REMINDER_WEBHOOK_TIMEOUT', 10)
    try:
        response = requests.post(url, json=payload, timeout=timeout)
        response.raise_for_status()
    except requests.exceptions.Timeout:
        logger.warning(f"Reminder webhook timed out for invoice {invoice.invoice_number}")
        raise ReminderError('Reminder webhook timed out')
    except requests.exceptions.RequestException as e:
        logger.warning(f"Reminder webhook failed for invoice {invoice.invoice_number}: {str(e)}")
        raise ReminderError(f'Reminder webhook failed: {str(e)}')

    invoice.last_reminder_sent = timezone.now()
    invoice.save(update_fields=['last_reminder_sent', 'updated_at'])
    logger.info(f"Payment reminder sent for invoice {invoice.invoice_number}")
    return payload
