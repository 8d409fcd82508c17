import calendar
import logging
from datetime import date, timedelta

from django.db import transaction
from django.db.models import Q
from django.shortcuts import get_object_or_404
from django.utils import timezone
from django.utils.dateparse import parse_date
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from fieldservice.billing.pdf import build_service_report_pdf, pdf_response
from fieldservice.core.models import CompanySettings
from fieldservice.core.utils import create_audit_log, engineer_scope, is_engineer_user
from fieldservice.parties.utils import recalculate_customer_balance
from .models import Job, JobItem
from .serializers import JobItemSerializer, JobListSerializer, JobSerializer, JobStatusSerializer
from .utils import InvalidStatus, apply_status_change, delete_job_with_dependents

logger = logging.getLogger(__name__)


def _scoped_jobs(request):
    """Jobs visible to the requesting user; engineers only see their own"""
    return Job.objects.select_related('customer').for_engineer(engineer_scope(request.user))


def _forbidden_for_engineer(request, job=None):
    """403 response when an engineer reaches a job (or action) outside their scope"""
    scope = engineer_scope(request.user)
    if scope is None:
        return None
    if job is None or job.engineer_name != scope:
        return Response({'error': 'You do not have access to this job'}, status=status.HTTP_403_FORBIDDEN)
    return None


def _job_audit(request, job, action, changes=None):
    create_audit_log(
        request=request,
        action=action,
        model_name='Job',
        object_id=str(job.id),
        object_name=f"Job #{job.job_number}",
        object_reference=str(job.job_number),
        changes=changes,
    )


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def job_list_create(request):
    """List jobs with status/engineer/customer/search filters or create a job"""
    if request.method == 'GET':
        queryset = _scoped_jobs(request).with_totals()
        status_filter = request.query_params.get('status', None)
        engineer = request.query_params.get('engineer', None)
        customer = request.query_params.get('customer', None)
        search = request.query_params.get('search', None)

        if status_filter and status_filter != 'all':
            queryset = queryset.filter(status=status_filter)
        if engineer:
            queryset = queryset.filter(engineer_name=engineer)
        if customer:
            queryset = queryset.filter(customer_id=customer)
        if search:
            search_q = (
                Q(customer__name__icontains=search) |
                Q(service_type__icontains=search) |
                Q(engineer_name__icontains=search)
            )
            if search.strip().lstrip('#').isdigit():
                search_q |= Q(job_number=int(search.strip().lstrip('#')))
            queryset = queryset.filter(search_q)

        serializer = JobListSerializer(queryset.order_by('-date_scheduled', '-created_at'), many=True)
        return Response(serializer.data)
    else:
        if is_engineer_user(request.user):
            return Response({'error': 'Engineers cannot create jobs'}, status=status.HTTP_403_FORBIDDEN)

        serializer = JobSerializer(data=request.data)
        if serializer.is_valid():
            with transaction.atomic():
                job = serializer.save()
                if job.status == Job.STATUS_COMPLETED:
                    job.date_completed = timezone.now()
                    job.save(update_fields=['date_completed'])
                    recalculate_customer_balance(job.customer)
            _job_audit(request, job, 'create', {
                'customer': job.customer.name,
                'status': job.status,
                'engineer_name': job.engineer_name,
            })
            logger.info(f"Created job #{job.job_number} for {job.customer.name}")
            return Response(JobSerializer(job).data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def job_detail(request, pk):
    """Retrieve, update or delete a job"""
    job = get_object_or_404(Job.objects.select_related('customer'), pk=pk)
    denied = _forbidden_for_engineer(request, job)
    if denied:
        return denied

    if request.method == 'GET':
        return Response(JobSerializer(job).data)
    elif request.method in ('PUT', 'PATCH'):
        old_customer = job.customer
        serializer = JobSerializer(job, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            job = serializer.save()
            if job.status == Job.STATUS_COMPLETED and old_customer.pk != job.customer_id:
                recalculate_customer_balance(old_customer)
                recalculate_customer_balance(job.customer)
            _job_audit(request, job, 'update', {'fields': sorted(request.data.keys())})
            return Response(JobSerializer(job).data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        if is_engineer_user(request.user):
            return Response({'error': 'Engineers cannot delete jobs'}, status=status.HTTP_403_FORBIDDEN)
        job_number = job.job_number
        failures = delete_job_with_dependents(job)
        create_audit_log(
            request=request,
            action='delete',
            model_name='Job',
            object_id=str(pk),
            object_name=f"Job #{job_number}",
            object_reference=str(job_number),
            changes={'cleanup_failures': failures} if failures else None,
        )
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def job_items(request, pk):
    """List or add items on a job"""
    job = get_object_or_404(Job.objects.select_related('customer'), pk=pk)
    denied = _forbidden_for_engineer(request, job)
    if denied:
        return denied

    if request.method == 'GET':
        items = job.items.select_related('inventory').all()
        return Response(JobItemSerializer(items, many=True).data)

    serializer = JobItemSerializer(data=request.data)
    if serializer.is_valid():
        with transaction.atomic():
            item = serializer.save(job=job)
            if job.status == Job.STATUS_COMPLETED:
                recalculate_customer_balance(job.customer)
        return Response(JobItemSerializer(item).data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def job_item_detail(request, pk, item_id):
    """Retrieve, update or remove a single job item"""
    job = get_object_or_404(Job.objects.select_related('customer'), pk=pk)
    denied = _forbidden_for_engineer(request, job)
    if denied:
        return denied
    item = get_object_or_404(JobItem, pk=item_id, job=job)

    if request.method == 'GET':
        return Response(JobItemSerializer(item).data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = JobItemSerializer(item, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            with transaction.atomic():
                item = serializer.save()
                if job.status == Job.STATUS_COMPLETED:
                    recalculate_customer_balance(job.customer)
            return Response(JobItemSerializer(item).data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        with transaction.atomic():
            item.delete()
            if job.status == Job.STATUS_COMPLETED:
                recalculate_customer_balance(job.customer)
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def job_status(request, pk):
    """
    Move a job to another pipeline column.

    On any error the stored status is left as it was, so the board can
    revert its optimistic move.
    """
    job = get_object_or_404(Job.objects.select_related('customer'), pk=pk)
    denied = _forbidden_for_engineer(request, job)
    if denied:
        return denied

    serializer = JobStatusSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    try:
        old_status = apply_status_change(job, serializer.validated_data['status'])
    except InvalidStatus as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

    if old_status != job.status:
        _job_audit(request, job, 'job_status', {'status': {'old': old_status, 'new': job.status}})

    job.refresh_from_db()
    return Response(JobSerializer(job).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def job_pipeline(request):
    """Kanban board: one column per status, newest first"""
    queryset = _scoped_jobs(request).with_totals()
    engineer = request.query_params.get('engineer', None)
    if engineer:
        queryset = queryset.filter(engineer_name=engineer)

    labels = dict(Job.STATUS_CHOICES)
    columns = []
    for job_status_value in Job.PIPELINE_ORDER:
        jobs = queryset.filter(status=job_status_value).order_by('-created_at')
        data = JobListSerializer(jobs, many=True).data
        columns.append({
            'status': job_status_value,
            'label': labels[job_status_value],
            'count': len(data),
            'jobs': data,
        })

    return Response({
        'columns': columns,
        'counts': {column['status']: column['count'] for column in columns},
        'total': sum(column['count'] for column in columns),
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def job_calendar(request):
    """
    Job calendar.

    ?date=YYYY-MM-DD returns the jobs of that day; otherwise ?year=&month=
    (default current month) returns a month grid with a leading blank count
    (Sunday = 0) and up to 5 upcoming jobs.
    """
    queryset = _scoped_jobs(request).with_totals()
    today = timezone.localdate()

    day_param = request.query_params.get('date', None)
    if day_param:
        try:
            day = parse_date(day_param)
        except ValueError:
            day = None
        if day is None:
            return Response({'error': 'date must be YYYY-MM-DD'}, status=status.HTTP_400_BAD_REQUEST)
        jobs = queryset.filter(date_scheduled=day).order_by('created_at')
        return Response({'date': day.isoformat(), 'jobs': JobListSerializer(jobs, many=True).data})

    try:
        year = int(request.query_params.get('year', today.year))
        month = int(request.query_params.get('month', today.month))
        first_day = date(year, month, 1)
    except ValueError:
        return Response({'error': 'year and month must form a valid month'}, status=status.HTTP_400_BAD_REQUEST)

    days_in_month = calendar.monthrange(year, month)[1]
    last_day = first_day + timedelta(days=days_in_month - 1)
    month_jobs = list(
        queryset.filter(date_scheduled__gte=first_day, date_scheduled__lte=last_day)
        .order_by('date_scheduled', 'created_at')
    )

    by_day = {}
    for job in month_jobs:
        by_day.setdefault(job.date_scheduled, []).append(job)

    days = []
    for offset in range(days_in_month):
        day = first_day + timedelta(days=offset)
        day_jobs = by_day.get(day, [])
        days.append({
            'date': day.isoformat(),
            'day': day.day,
            'is_today': day == today,
            'jobs': JobListSerializer(day_jobs, many=True).data,
        })

    upcoming = [
        job for job in month_jobs
        if job.date_scheduled >= today and job.status != Job.STATUS_CANCELLED
    ][:5]

    return Response({
        'year': year,
        'month': month,
        'month_name': calendar.month_name[month],
        'leading_blanks': (first_day.weekday() + 1) % 7,
        'days_in_month': days_in_month,
        'days': days,
        'upcoming': JobListSerializer(upcoming, many=True).data,
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def job_service_report(request, pk):
    """Service report PDF for a job"""
    job = get_object_or_404(Job.objects.select_related('customer'), pk=pk)
    denied = _forbidden_for_engineer(request, job)
    if denied:
        return denied

    pdf_bytes = build_service_report_pdf(job, CompanySettings.load())
    create_audit_log(
        request=request,
        action='document_generate',
        model_name='Job',
        object_id=str(job.id),
        object_name=f"Service report for job #{job.job_number}",
        object_reference=str(job.job_number),
    )
    return pdf_response(pdf_bytes, f"service-report-{job.job_number}.pdf", request.query_params.get('action', 'preview'))
