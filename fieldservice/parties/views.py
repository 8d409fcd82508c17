import logging
from decimal import Decimal

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.db.models import Q, Sum, ProtectedError
from django.shortcuts import get_object_or_404

from fieldservice.core.utils import create_audit_log, engineer_scope, is_admin_user, is_office_user
from .models import Customer, Engineer
from .serializers import CustomerSerializer, EngineerSerializer
from .utils import recalculate_customer_balance

logger = logging.getLogger(__name__)


# Customer views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def customer_list_create(request):
    """List all customers or create a new customer"""
    if request.method == 'GET':
        queryset = Customer.objects.all().order_by('name')
        search = request.query_params.get('search', None)
        if search:
            queryset = queryset.filter(
                Q(name__icontains=search) |
                Q(contact_person__icontains=search) |
                Q(address__icontains=search) |
                Q(email__icontains=search) |
                Q(phone__icontains=search)
            )
        serializer = CustomerSerializer(queryset, many=True)
        return Response(serializer.data)
    else:
        serializer = CustomerSerializer(data=request.data)
        if serializer.is_valid():
            customer = serializer.save()
            create_audit_log(
                request=request,
                action='create',
                model_name='Customer',
                object_id=str(customer.id),
                object_name=customer.name,
            )
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def customer_detail(request, pk):
    """Retrieve, update or delete a customer"""
    customer = get_object_or_404(Customer, pk=pk)

    if request.method == 'GET':
        serializer = CustomerSerializer(customer)
        return Response(serializer.data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = CustomerSerializer(customer, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        try:
            customer.delete()
        except ProtectedError:
            return Response(
                {'error': 'Customer has invoices, quotes or statements and cannot be deleted'},
                status=status.HTTP_400_BAD_REQUEST
            )
        create_audit_log(
            request=request,
            action='delete',
            model_name='Customer',
            object_id=str(pk),
            object_name=customer.name,
        )
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def customer_balance(request, pk):
    """Get customer account balance"""
    customer = get_object_or_404(Customer, pk=pk)
    return Response({'account_balance': customer.account_balance, 'payment_terms': customer.payment_terms})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def customer_recalculate_balance(request, pk):
    """Recompute the stored account balance from jobs, invoices and payments"""
    customer = get_object_or_404(Customer, pk=pk)
    old_balance = customer.account_balance
    new_balance = recalculate_customer_balance(customer)
    create_audit_log(
        request=request,
        action='balance_recalculate',
        model_name='Customer',
        object_id=str(customer.id),
        object_name=customer.name,
        changes={'account_balance': {'old': str(old_balance), 'new': str(new_balance)}}
    )
    return Response({'account_balance': new_balance, 'previous_balance': old_balance})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def customer_history(request, pk):
    """Job history, documents and lifetime stats for a customer"""
    from fieldservice.jobs.models import Job, JobItem
    from fieldservice.jobs.serializers import JobListSerializer
    from fieldservice.billing.models import Invoice, Quote
    from fieldservice.billing.serializers import InvoiceListSerializer, QuoteListSerializer

    customer = get_object_or_404(Customer, pk=pk)
    scope = engineer_scope(request.user)

    customer_jobs = Job.objects.for_engineer(scope).filter(customer=customer)
    completed_jobs = customer_jobs.filter(status=Job.STATUS_COMPLETED)
    jobs = customer_jobs.with_totals().select_related('customer').order_by('-date_scheduled', '-created_at')
    completed_items = JobItem.objects.filter(job__in=completed_jobs)

    stats = {
        'total_jobs': completed_jobs.count(),
        'total_revenue': completed_items.aggregate(total=Sum('total'))['total'] or Decimal('0.00'),
        'parts_purchased': completed_items.filter(type='part').aggregate(total=Sum('total'))['total'] or Decimal('0.00'),
    }

    # Billing documents are for office users only
    invoices = Invoice.objects.none()
    quotes = Quote.objects.none()
    if is_office_user(request.user):
        invoices = Invoice.objects.select_related('customer', 'job').filter(customer=customer).order_by('-date_issued', '-created_at')
        quotes = Quote.objects.select_related('customer').filter(customer=customer).order_by('-date_issued', '-created_at')

    return Response({
        'customer': CustomerSerializer(customer).data,
        'stats': stats,
        'jobs': JobListSerializer(jobs, many=True).data,
        'invoices': InvoiceListSerializer(invoices, many=True).data,
        'quotes': QuoteListSerializer(quotes, many=True).data,
    })


# Engineer (team) views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def engineer_list_create(request):
    """List the team or add an engineer"""
    if request.method == 'GET':
        queryset = Engineer.objects.all().order_by('name')
        search = request.query_params.get('search', None)
        status_filter = request.query_params.get('status', None)
        if search:
            queryset = queryset.filter(Q(name__icontains=search) | Q(email__icontains=search))
        if status_filter:
            queryset = queryset.filter(status=status_filter)
        serializer = EngineerSerializer(queryset, many=True)
        return Response(serializer.data)

    if not is_admin_user(request.user):
        return Response({'error': 'Only Admin users can manage the team'}, status=status.HTTP_403_FORBIDDEN)
    serializer = EngineerSerializer(data=request.data)
    if serializer.is_valid():
        engineer = serializer.save()
        create_audit_log(
            request=request,
            action='create',
            model_name='Engineer',
            object_id=str(engineer.id),
            object_name=engineer.name,
        )
        return Response(serializer.data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def engineer_detail(request, pk):
    """Retrieve, update or remove an engineer"""
    engineer = get_object_or_404(Engineer, pk=pk)

    if request.method == 'GET':
        return Response(EngineerSerializer(engineer).data)

    if not is_admin_user(request.user):
        return Response({'error': 'Only Admin users can manage the team'}, status=status.HTTP_403_FORBIDDEN)

    if request.method in ('PUT', 'PATCH'):
        serializer = EngineerSerializer(engineer, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        engineer.delete()
        logger.info(f"Engineer {pk} ({engineer.name}) removed by {request.user}")
        return Response(status=status.HTTP_204_NO_CONTENT)
