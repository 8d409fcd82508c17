"""
Cache invalidation signals
Automatically invalidate dashboard and report caches when data changes
"""
from django.db import transaction
from django.db.models.signals import post_save, post_delete
from django.dispatch import receiver
import logging

from .cache_utils import invalidate_dashboard_cache

logger = logging.getLogger(__name__)

# Models whose changes affect dashboard KPIs and reports
DASHBOARD_MODELS = {'Job', 'JobItem', 'Invoice', 'InvoiceItem', 'Payment', 'InventoryItem', 'Quote'}


@receiver([post_save, post_delete])
def invalidate_dashboard_on_change(sender, instance, **kwargs):
    """Invalidate dashboard cache after jobs, invoices, payments or stock change"""
    if sender.__name__ not in DASHBOARD_MODELS:
        return
    if sender._meta.app_label not in ('jobs', 'billing', 'inventory'):
        return

    try:
        transaction.on_commit(invalidate_dashboard_cache)
    except Exception as e:
        logger.warning(f"Error in invalidate_dashboard_on_change signal: {e}")
