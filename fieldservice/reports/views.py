import logging
from datetime import date, datetime
from decimal import Decimal

from django.db.models import Count, DecimalField, ExpressionWrapper, F, Min, Q, Sum
from django.db.models.functions import TruncMonth
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from fieldservice.billing.models import Invoice
from fieldservice.core.cache_utils import (
    cache_dashboard_kpis, cache_report, get_cached_dashboard_kpis, get_cached_report,
)
from fieldservice.core.permissions import IsOfficeUser
from fieldservice.core.utils import engineer_scope, is_office_user
from fieldservice.inventory.models import InventoryItem
from fieldservice.jobs.models import Job, JobItem
from fieldservice.jobs.serializers import JobListSerializer
from fieldservice.parties.models import Customer

logger = logging.getLogger('fieldservice.reports')

ZERO = Decimal('0.00')

BALANCE_DUE = ExpressionWrapper(F('total_amount') - F('amount_paid'), output_field=DecimalField(max_digits=12, decimal_places=2))


def _parse_date(value):
    return datetime.strptime(value, '%Y-%m-%d').date()


def _parse_limit(request, default):
    """?limit= as a row count of at least 1"""
    return max(int(request.query_params.get('limit', default)), 1)


def _period_range(period, date_from, date_to):
    """(start, end) for a dashboard period; (None, None) means all time"""
    today = timezone.localdate()
    if period == 'month':
        return today.replace(day=1), today
    if period == 'year':
        return date(today.year, 1, 1), today
    if period == 'custom':
        start = _parse_date(date_from) if date_from else None
        end = _parse_date(date_to) if date_to else None
        return start, end
    return None, None


def _overdue_invoices():
    today = timezone.localdate()
    return Invoice.objects.exclude(status__in=Invoice.SETTLED_STATUSES).filter(
        Q(due_date__lt=today) | Q(status=Invoice.STATUS_OVERDUE)
    )


def _low_stock_items():
    return InventoryItem.objects.filter(stock_level__lte=F('low_stock_threshold'))


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def dashboard_kpis(request):
    """Dashboard KPIs for a period: all, month, year or custom date range"""
    period = request.query_params.get('period', 'all')
    date_from = request.query_params.get('date_from', None)
    date_to = request.query_params.get('date_to', None)
    if period not in ('all', 'month', 'year', 'custom'):
        return Response({'error': 'period must be one of all, month, year, custom'}, status=status.HTTP_400_BAD_REQUEST)

    try:
        start, end = _period_range(period, date_from, date_to)
    except ValueError:
        return Response({'error': 'Dates must be YYYY-MM-DD'}, status=status.HTTP_400_BAD_REQUEST)

    engineer = engineer_scope(request.user)
    include_billing = is_office_user(request.user)
    cached, cache_key = get_cached_dashboard_kpis(period, start, end, engineer, include_billing)
    if cached is not None:
        return Response(cached)

    jobs = Job.objects.select_related('customer').for_engineer(engineer)
    if start:
        jobs = jobs.filter(date_scheduled__gte=start)
    if end:
        jobs = jobs.filter(date_scheduled__lte=end)

    job_counts = jobs.aggregate(
        active=Count('id', filter=Q(status__in=Job.ACTIVE_STATUSES)),
        completed=Count('id', filter=Q(status=Job.STATUS_COMPLETED)),
        total=Count('id'),
    )
    recent_jobs = jobs.with_totals().order_by('-created_at')[:5]

    low_stock = _low_stock_items()
    data = {
        'period': {
            'name': period,
            'from': start.isoformat() if start else None,
            'to': end.isoformat() if end else None,
        },
        'active_jobs': job_counts['active'],
        'completed_jobs': job_counts['completed'],
        'total_jobs': job_counts['total'],
        'low_stock_items': low_stock.count(),
        'out_of_stock_items': low_stock.filter(stock_level__lte=0).count(),
        'recent_jobs': JobListSerializer(recent_jobs, many=True).data,
    }

    # Billing figures are office-only
    if include_billing:
        invoices = Invoice.objects.exclude(status=Invoice.STATUS_VOID)
        if start:
            invoices = invoices.filter(date_issued__gte=start)
        if end:
            invoices = invoices.filter(date_issued__lte=end)
        totals = invoices.aggregate(
            invoiced=Sum('total_amount'),
            received=Sum('amount_paid'),
        )
        outstanding = invoices.exclude(status=Invoice.STATUS_PAID).aggregate(total=Sum(BALANCE_DUE))['total'] or ZERO
        overdue = _overdue_invoices()
        if start:
            overdue = overdue.filter(date_issued__gte=start)
        if end:
            overdue = overdue.filter(date_issued__lte=end)

        data.update({
            'total_invoiced': float(totals['invoiced'] or ZERO),
            'total_received': float(totals['received'] or ZERO),
            'outstanding_balance': float(outstanding),
            'overdue_invoices': overdue.count(),
            'customer_count': Customer.objects.count(),
        })

    cache_dashboard_kpis(cache_key, data)
    return Response(data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def notifications(request):
    """Stock, overdue invoice and today's job alerts"""
    engineer = engineer_scope(request.user)
    today = timezone.localdate()
    items = []

    for item in _low_stock_items().order_by('stock_level', 'name'):
        if item.is_out_of_stock:
            items.append({
                'type': 'error',
                'category': 'stock',
                'title': 'Out of stock',
                'message': f"{item.name} ({item.sku}) is out of stock",
                'object_id': item.id,
            })
        else:
            items.append({
                'type': 'warning',
                'category': 'stock',
                'title': 'Low stock',
                'message': f"{item.name} ({item.sku}) has {item.stock_level} left",
                'object_id': item.id,
            })

    if is_office_user(request.user):
        for invoice in _overdue_invoices().select_related('customer').order_by('due_date'):
            items.append({
                'type': 'error',
                'category': 'invoice',
                'title': 'Overdue invoice',
                'message': (
                    f"{invoice.invoice_number} for {invoice.customer_display_name} is "
                    f"{invoice.days_overdue} days overdue ({invoice.balance_due} due)"
                ),
                'object_id': invoice.id,
            })

    todays_jobs = (
        Job.objects.select_related('customer').for_engineer(engineer)
        .filter(date_scheduled=today, status__in=Job.ACTIVE_STATUSES)
        .order_by('created_at')
    )
    for job in todays_jobs:
        items.append({
            'type': 'info',
            'category': 'job',
            'title': 'Job today',
            'message': f"Job #{job.job_number}: {job.service_type or 'Service'} at {job.customer.name}",
            'object_id': job.id,
        })

    counts = {level: sum(1 for n in items if n['type'] == level) for level in ('error', 'warning', 'info')}
    return Response({'count': len(items), 'counts': counts, 'results': items})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsOfficeUser])
def revenue_report(request):
    """Monthly invoiced and received totals for a year"""
    try:
        year = int(request.query_params.get('year', timezone.localdate().year))
    except ValueError:
        return Response({'error': 'year must be a number'}, status=status.HTTP_400_BAD_REQUEST)
    if not date.min.year <= year <= date.max.year:
        return Response({'error': 'year is out of range'}, status=status.HTTP_400_BAD_REQUEST)

    cached, cache_key = get_cached_report('revenue', year=year)
    if cached is not None:
        return Response(cached)

    monthly = (
        Invoice.objects.exclude(status=Invoice.STATUS_VOID)
        .filter(date_issued__year=year)
        .annotate(month=TruncMonth('date_issued'))
        .values('month')
        .annotate(invoiced=Sum('total_amount'), received=Sum('amount_paid'), count=Count('id'))
        .order_by('month')
    )
    by_month = {row['month'].month: row for row in monthly}

    months = []
    for month in range(1, 13):
        row = by_month.get(month, {})
        months.append({
            'month': month,
            'label': date(year, month, 1).strftime('%b'),
            'invoiced': float(row.get('invoiced') or ZERO),
            'received': float(row.get('received') or ZERO),
            'invoice_count': row.get('count', 0),
        })

    data = {
        'year': year,
        'months': months,
        'total_invoiced': sum(m['invoiced'] for m in months),
        'total_received': sum(m['received'] for m in months),
    }
    cache_report(cache_key, data)
    return Response(data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsOfficeUser])
def parts_usage(request):
    """Parts used on jobs, most used first"""
    try:
        limit = _parse_limit(request, 20)
        date_from = _parse_date(request.query_params['date_from']) if request.query_params.get('date_from') else None
        date_to = _parse_date(request.query_params['date_to']) if request.query_params.get('date_to') else None
    except ValueError:
        return Response({'error': 'limit must be a number and dates YYYY-MM-DD'}, status=status.HTTP_400_BAD_REQUEST)

    items = JobItem.objects.filter(type=JobItem.TYPE_PART, inventory__isnull=False).exclude(job__status=Job.STATUS_CANCELLED)
    if date_from:
        items = items.filter(job__date_scheduled__gte=date_from)
    if date_to:
        items = items.filter(job__date_scheduled__lte=date_to)

    usage = (
        items.values('inventory__id', 'inventory__name', 'inventory__sku', 'inventory__stock_level')
        .annotate(quantity=Sum('quantity'), revenue=Sum('total'), job_count=Count('job', distinct=True))
        .order_by('-quantity', 'inventory__name')[:limit]
    )

    return Response({
        'results': [
            {
                'inventory_id': row['inventory__id'],
                'name': row['inventory__name'],
                'sku': row['inventory__sku'],
                'stock_level': row['inventory__stock_level'],
                'quantity': float(row['quantity'] or ZERO),
                'revenue': float(row['revenue'] or ZERO),
                'job_count': row['job_count'],
            }
            for row in usage
        ]
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsOfficeUser])
def customer_spend(request):
    """Top customers by completed job value plus standalone invoices"""
    try:
        limit = _parse_limit(request, 10)
    except ValueError:
        return Response({'error': 'limit must be a number'}, status=status.HTTP_400_BAD_REQUEST)

    job_totals = dict(
        JobItem.objects.filter(job__status=Job.STATUS_COMPLETED)
        .values('job__customer_id')
        .annotate(total=Sum('total'))
        .values_list('job__customer_id', 'total')
    )
    invoice_totals = dict(
        Invoice.objects.filter(job__isnull=True, customer__isnull=False)
        .exclude(status=Invoice.STATUS_VOID)
        .values('customer_id')
        .annotate(total=Sum('total_amount'))
        .values_list('customer_id', 'total')
    )

    customer_ids = set(job_totals) | set(invoice_totals)
    customers = Customer.objects.in_bulk(customer_ids)

    results = []
    for customer_id in customer_ids:
        jobs_total = job_totals.get(customer_id) or ZERO
        invoices_total = invoice_totals.get(customer_id) or ZERO
        results.append({
            'customer_id': customer_id,
            'name': customers[customer_id].name,
            'jobs_total': float(jobs_total),
            'invoices_total': float(invoices_total),
            'total_spend': float(jobs_total + invoices_total),
        })
    results.sort(key=lambda r: (-r['total_spend'], r['name']))

    return Response({'results': results[:limit]})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsOfficeUser])
def engineer_performance(request):
    """Job counts, completion rate and completed-job revenue per engineer"""
    counts = (
        Job.objects.exclude(engineer_name='')
        .values('engineer_name')
        .annotate(
            total_jobs=Count('id'),
            completed=Count('id', filter=Q(status=Job.STATUS_COMPLETED)),
            in_progress=Count('id', filter=Q(status=Job.STATUS_IN_PROGRESS)),
            cancelled=Count('id', filter=Q(status=Job.STATUS_CANCELLED)),
        )
    )
    revenue = dict(
        JobItem.objects.filter(job__status=Job.STATUS_COMPLETED)
        .exclude(job__engineer_name='')
        .values('job__engineer_name')
        .annotate(total=Sum('total'))
        .values_list('job__engineer_name', 'total')
    )

    results = []
    for row in counts:
        total = row['total_jobs']
        results.append({
            'engineer_name': row['engineer_name'],
            'total_jobs': total,
            'completed': row['completed'],
            'in_progress': row['in_progress'],
            'cancelled': row['cancelled'],
            'completion_rate': round(row['completed'] * 100 / total, 1) if total else 0,
            'revenue': float(revenue.get(row['engineer_name']) or ZERO),
        })
    results.sort(key=lambda r: (-r['revenue'], r['engineer_name']))
    return Response({'results': results})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsOfficeUser])
def overdue_accounts(request):
    """Customers with overdue invoices, largest amount first"""
    today = timezone.localdate()
    rows = (
        _overdue_invoices().filter(customer__isnull=False)
        .values('customer_id', 'customer__name', 'customer__email', 'customer__phone')
        .annotate(amount_overdue=Sum(BALANCE_DUE), oldest_due_date=Min('due_date'), invoice_count=Count('id'))
        .order_by('-amount_overdue')
    )

    results = []
    for row in rows:
        oldest = row['oldest_due_date']
        results.append({
            'customer_id': row['customer_id'],
            'name': row['customer__name'],
            'email': row['customer__email'],
            'phone': row['customer__phone'],
            'amount_overdue': float(row['amount_overdue'] or ZERO),
            'invoice_count': row['invoice_count'],
            'oldest_due_date': oldest.isoformat() if oldest else None,
            'days_overdue': max((today - oldest).days, 0) if oldest else 0,
        })

    return Response({
        'results': results,
        'total_overdue': sum(r['amount_overdue'] for r in results),
    })
