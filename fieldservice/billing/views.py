import calendar
import logging
from collections import OrderedDict
from datetime import date, timedelta

from django.conf import settings
from django.core.paginator import Paginator
from django.db import transaction
from django.db.models import Q, Sum
from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from fieldservice.core.models import CompanySettings
from fieldservice.core.permissions import IsOfficeUser
from fieldservice.core.utils import create_audit_log
from fieldservice.parties.utils import recalculate_customer_balance
from .models import Invoice, InvoiceItem, Payment, Statement, Quote
from .pdf import build_invoice_pdf, build_quote_pdf, build_statement_pdf, pdf_response
from .reminders import ReminderError, ReminderNotConfigured, send_payment_reminder
from .serializers import (
    InvoiceListSerializer, InvoiceSerializer, InvoiceFromJobSerializer, OneTimeInvoiceSerializer,
    InvoiceStatusSerializer, PaymentSerializer, StatementSerializer,
    QuoteListSerializer, QuoteSerializer, QuoteStatusSerializer, NextNumberSerializer,
)
from .utils import (
    INVOICE_PREFIX, STATEMENT_PREFIX, QUOTE_PREFIX, ZERO,
    create_numbered, next_document_number,
)

logger = logging.getLogger(__name__)


def _parse_month(request):
    """First day of the year/month query params, defaulting to the current month"""
    today = timezone.localdate()
    year = int(request.query_params.get('year', today.year))
    month = int(request.query_params.get('month', today.month))
    return date(year, month, 1)


def _page_params(request, default_limit=50):
    """Raw page string for Paginator.get_page and a limit of at least 1"""
    limit = int(request.query_params.get('limit', default_limit))
    return request.query_params.get('page', 1), max(limit, 1)


def _invoice_audit(request, invoice, action, changes=None):
    create_audit_log(
        request=request,
        action=action,
        model_name='Invoice',
        object_id=str(invoice.id),
        object_name=f"Invoice {invoice.invoice_number}",
        object_reference=invoice.invoice_number,
        changes=changes or {
            'invoice_number': invoice.invoice_number,
            'status': invoice.status,
            'total_amount': str(invoice.total_amount),
            'customer': invoice.customer_display_name,
        }
    )


class PaymentRejected(ValueError):
    pass


def record_payment(invoice, amount, user=None, **details):
    """
    Apply money received to an invoice.

    amount_paid accumulates and the invoice becomes paid once nothing is owed.
    Raises PaymentRejected for void invoices and amounts above the balance due.
    """
    with transaction.atomic():
        invoice = Invoice.objects.select_for_update().get(pk=invoice.pk)
        if invoice.status == Invoice.STATUS_VOID:
            raise PaymentRejected('Cannot record a payment on a void invoice')
        if amount > invoice.balance_due:
            raise PaymentRejected(f'Payment of {amount} exceeds the balance due of {invoice.balance_due}')
        payment = Payment.objects.create(invoice=invoice, amount=amount, created_by=user, **details)
        invoice.amount_paid = invoice.amount_paid + amount
        if invoice.balance_due <= ZERO:
            invoice.status = Invoice.STATUS_PAID
        invoice.save(update_fields=['amount_paid', 'status', 'updated_at'])
        recalculate_customer_balance(invoice.customer)
    return payment, invoice


def change_invoice_status(invoice, new_status, user=None):
    """Paid settles the outstanding amount as a payment; void drops the invoice from balances"""
    old_status = invoice.status
    if old_status == new_status:
        return invoice
    if old_status == Invoice.STATUS_VOID:
        raise ValueError('A void invoice cannot be reopened')

    if new_status == Invoice.STATUS_PAID:
        outstanding = invoice.balance_due
        if outstanding > ZERO:
            _, invoice = record_payment(invoice, outstanding, user=user, method='other', notes='Marked as paid')
            return invoice

    with transaction.atomic():
        invoice.status = new_status
        invoice.save(update_fields=['status', 'updated_at'])
        recalculate_customer_balance(invoice.customer)
    return invoice


# Invoice views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsOfficeUser])
def invoice_list_create(request):
    """List invoices or create a standalone invoice"""
    if request.method == 'GET':
        queryset = Invoice.objects.select_related('customer', 'job').all()
        status_filter = request.query_params.get('status', None)
        customer = request.query_params.get('customer', None)
        job = request.query_params.get('job', None)
        date_from = request.query_params.get('date_from', None)
        date_to = request.query_params.get('date_to', None)
        search = request.query_params.get('search', None)

        if status_filter == 'overdue':
            queryset = queryset.exclude(status__in=Invoice.SETTLED_STATUSES).filter(
                Q(due_date__lt=timezone.localdate()) | Q(status=Invoice.STATUS_OVERDUE)
            )
        elif status_filter == 'unpaid':
            queryset = queryset.exclude(status__in=Invoice.SETTLED_STATUSES)
        elif status_filter and status_filter != 'all':
            queryset = queryset.filter(status=status_filter)
        if customer:
            queryset = queryset.filter(customer_id=customer)
        if job:
            queryset = queryset.filter(job_id=job)
        if date_from:
            queryset = queryset.filter(date_issued__gte=date_from)
        if date_to:
            queryset = queryset.filter(date_issued__lte=date_to)
        if search:
            queryset = queryset.filter(
                Q(invoice_number__icontains=search) |
                Q(customer__name__icontains=search) |
                Q(guest_name__icontains=search)
            )

        queryset = queryset.order_by('-date_issued', '-created_at')

        try:
            page, limit = _page_params(request)
        except ValueError:
            return Response({'error': 'limit must be a number'}, status=status.HTTP_400_BAD_REQUEST)
        paginator = Paginator(queryset, limit)
        page_obj = paginator.get_page(page)

        serializer = InvoiceListSerializer(page_obj, many=True)
        return Response({
            'results': serializer.data,
            'count': paginator.count,
            'next': page_obj.next_page_number() if page_obj.has_next() else None,
            'previous': page_obj.previous_page_number() if page_obj.has_previous() else None,
            'page': page_obj.number,
            'page_size': limit,
            'total_pages': paginator.num_pages,
        })
    else:  # POST
        serializer = InvoiceSerializer(data=request.data)
        if serializer.is_valid():
            invoice = serializer.save(created_by=request.user)
            recalculate_customer_balance(invoice.customer)
            _invoice_audit(request, invoice, 'invoice_create')
            return Response(InvoiceSerializer(invoice).data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsOfficeUser])
def invoice_from_job(request):
    """Create an invoice from a completed job's items"""
    serializer = InvoiceFromJobSerializer(data=request.data)
    if serializer.is_valid():
        invoice = serializer.save(created_by=request.user)
        recalculate_customer_balance(invoice.customer)
        _invoice_audit(request, invoice, 'invoice_create')
        logger.info(f"Invoice {invoice.invoice_number} created from job #{invoice.job.job_number}")
        return Response(InvoiceSerializer(invoice).data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsOfficeUser])
def invoice_one_time(request):
    """Create a paid invoice for a customer without an account"""
    serializer = OneTimeInvoiceSerializer(data=request.data)
    if serializer.is_valid():
        invoice = serializer.save(created_by=request.user)
        _invoice_audit(request, invoice, 'invoice_create')
        return Response(InvoiceSerializer(invoice).data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsOfficeUser])
def invoice_detail(request, pk):
    """Retrieve, update or delete an invoice"""
    invoice = get_object_or_404(Invoice.objects.select_related('customer', 'job', 'created_by'), pk=pk)

    if request.method == 'GET':
        return Response(InvoiceSerializer(invoice).data)
    elif request.method in ('PUT', 'PATCH'):
        if invoice.status == Invoice.STATUS_VOID:
            return Response({'error': 'A void invoice cannot be edited'}, status=status.HTTP_400_BAD_REQUEST)
        old_total = invoice.total_amount
        serializer = InvoiceSerializer(invoice, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            old_customer = invoice.customer
            invoice = serializer.save()
            recalculate_customer_balance(invoice.customer)
            if old_customer and old_customer != invoice.customer:
                recalculate_customer_balance(old_customer)
            _invoice_audit(request, invoice, 'invoice_update', {
                'total_amount': {'old': str(old_total), 'new': str(invoice.total_amount)},
                'fields': sorted(request.data.keys()),
            })
            return Response(InvoiceSerializer(invoice).data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        customer = invoice.customer
        number = invoice.invoice_number
        with transaction.atomic():
            Quote.objects.filter(converted_invoice=invoice).update(converted_invoice=None)
            invoice.delete()
            recalculate_customer_balance(customer)
        create_audit_log(
            request=request,
            action='delete',
            model_name='Invoice',
            object_id=str(pk),
            object_name=f"Invoice {number}",
            object_reference=number,
        )
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsOfficeUser])
def invoice_status(request, pk):
    """Change an invoice's status"""
    invoice = get_object_or_404(Invoice, pk=pk)
    serializer = InvoiceStatusSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    old_status = invoice.status
    try:
        invoice = change_invoice_status(invoice, serializer.validated_data['status'], user=request.user)
    except ValueError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

    _invoice_audit(request, invoice, 'invoice_void' if invoice.status == Invoice.STATUS_VOID else 'invoice_update', {
        'status': {'old': old_status, 'new': invoice.status},
        'amount_paid': str(invoice.amount_paid),
    })
    return Response(InvoiceSerializer(invoice).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsOfficeUser])
def invoice_void(request, pk):
    """Void an invoice"""
    invoice = get_object_or_404(Invoice, pk=pk)
    old_status = invoice.status
    try:
        invoice = change_invoice_status(invoice, Invoice.STATUS_VOID, user=request.user)
    except ValueError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    _invoice_audit(request, invoice, 'invoice_void', {
        'status': {'old': old_status, 'new': invoice.status},
        'total_amount': str(invoice.total_amount),
    })
    return Response({'status': 'voided'})


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsOfficeUser])
def invoice_payments(request, pk):
    """List an invoice's payments or record a new one"""
    invoice = get_object_or_404(Invoice, pk=pk)

    if request.method == 'GET':
        payments = invoice.payments.select_related('created_by').all()
        return Response(PaymentSerializer(payments, many=True).data)

    serializer = PaymentSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    amount = serializer.validated_data.pop('amount')
    old_paid = invoice.amount_paid
    old_status = invoice.status
    try:
        payment, invoice = record_payment(invoice, amount, user=request.user, **serializer.validated_data)
    except PaymentRejected as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

    create_audit_log(
        request=request,
        action='payment_add',
        model_name='Payment',
        object_id=str(payment.id),
        object_name=f"Payment for Invoice {invoice.invoice_number}",
        object_reference=invoice.invoice_number,
        changes={
            'invoice_id': invoice.id,
            'amount': str(payment.amount),
            'method': payment.method,
            'invoice_status': {'old': old_status, 'new': invoice.status},
            'amount_paid': {'old': str(old_paid), 'new': str(invoice.amount_paid)},
            'balance_due': str(invoice.balance_due),
        }
    )
    return Response({
        'payment': PaymentSerializer(payment).data,
        'invoice': InvoiceListSerializer(invoice).data,
    }, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsOfficeUser])
def payment_list(request):
    """All payments received, newest first"""
    queryset = Payment.objects.select_related('invoice', 'invoice__customer', 'created_by').all()
    search = request.query_params.get('search', None)
    method = request.query_params.get('method', None)
    date_from = request.query_params.get('date_from', None)
    date_to = request.query_params.get('date_to', None)

    if search:
        queryset = queryset.filter(
            Q(invoice__invoice_number__icontains=search) |
            Q(invoice__customer__name__icontains=search) |
            Q(invoice__guest_name__icontains=search) |
            Q(reference__icontains=search)
        )
    if method:
        queryset = queryset.filter(method=method)
    if date_from:
        queryset = queryset.filter(date_received__gte=date_from)
    if date_to:
        queryset = queryset.filter(date_received__lte=date_to)

    queryset = queryset.order_by('-date_received', '-created_at')
    total = queryset.aggregate(total=Sum('amount'))['total'] or ZERO
    return Response({
        'results': PaymentSerializer(queryset, many=True).data,
        'count': queryset.count(),
        'total_received': total,
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsOfficeUser])
def invoice_pdf(request, pk):
    """Tax invoice PDF; ?action=download for an attachment"""
    invoice = get_object_or_404(Invoice.objects.select_related('customer', 'job'), pk=pk)
    pdf_bytes = build_invoice_pdf(invoice, CompanySettings.load())
    return pdf_response(pdf_bytes, f"{invoice.invoice_number}.pdf", request.query_params.get('action', 'preview'))


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsOfficeUser])
def invoice_remind(request, pk):
    """Send a payment reminder through the configured webhook"""
    invoice = get_object_or_404(Invoice.objects.select_related('customer'), pk=pk)
    if invoice.status in Invoice.SETTLED_STATUSES:
        return Response({'error': f'Invoice is {invoice.status}; no reminder needed'}, status=status.HTTP_400_BAD_REQUEST)

    try:
        payload = send_payment_reminder(invoice, CompanySettings.load())
    except ReminderNotConfigured as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    except ReminderError as e:
        return Response({'error': str(e)}, status=status.HTTP_502_BAD_GATEWAY)

    create_audit_log(
        request=request,
        action='reminder_sent',
        model_name='Invoice',
        object_id=str(invoice.id),
        object_name=f"Invoice {invoice.invoice_number}",
        object_reference=invoice.invoice_number,
        changes={'balance_due': payload['balance_due'], 'days_overdue': payload['days_overdue']}
    )
    return Response({
        'detail': f'Reminder sent for {invoice.invoice_number}',
        'last_reminder_sent': invoice.last_reminder_sent,
        'payload': payload,
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsOfficeUser])
def next_number(request):
    """Preview the next document number"""
    serializer = NextNumberSerializer(data=request.query_params)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    doc_type = serializer.validated_data['type']
    model, field, prefix = {
        'invoice': (Invoice, 'invoice_number', INVOICE_PREFIX),
        'statement': (Statement, 'statement_number', STATEMENT_PREFIX),
        'quote': (Quote, 'quote_number', QUOTE_PREFIX),
    }[doc_type]
    return Response({'type': doc_type, 'number': next_document_number(model, field, prefix)})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsOfficeUser])
def invoice_calendar(request):
    """Payment-due calendar: unpaid invoices grouped by due date for a month"""
    try:
        first_day = _parse_month(request)
    except ValueError:
        return Response({'error': 'year and month must form a valid month'}, status=status.HTTP_400_BAD_REQUEST)

    year, month = first_day.year, first_day.month
    last_day = date(year, month, calendar.monthrange(year, month)[1])
    today = timezone.localdate()

    invoices = (
        Invoice.objects.select_related('customer')
        .exclude(status__in=Invoice.SETTLED_STATUSES)
        .filter(due_date__gte=first_day, due_date__lte=last_day)
        .order_by('due_date', 'invoice_number')
    )

    days = OrderedDict()
    month_total = ZERO
    for invoice in invoices:
        key = invoice.due_date.isoformat()
        day = days.setdefault(key, {'date': key, 'invoices': [], 'total_due': ZERO, 'is_past': invoice.due_date < today})
        day['invoices'].append(InvoiceListSerializer(invoice).data)
        day['total_due'] += invoice.balance_due
        month_total += invoice.balance_due

    return Response({
        'year': year,
        'month': month,
        'leading_blanks': (first_day.weekday() + 1) % 7,
        'days_in_month': last_day.day,
        'days': list(days.values()),
        'total_outstanding': month_total,
        'invoice_count': invoices.count(),
    })


# Statement views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsOfficeUser])
def statement_list_create(request):
    """List statements or generate one for a job"""
    if request.method == 'GET':
        queryset = Statement.objects.select_related('customer', 'job').all()
        customer = request.query_params.get('customer', None)
        job = request.query_params.get('job', None)
        search = request.query_params.get('search', None)
        if customer:
            queryset = queryset.filter(customer_id=customer)
        if job:
            queryset = queryset.filter(job_id=job)
        if search:
            queryset = queryset.filter(Q(statement_number__icontains=search) | Q(customer__name__icontains=search))
        serializer = StatementSerializer(queryset.order_by('-date_generated', '-created_at'), many=True)
        return Response(serializer.data)
    else:
        serializer = StatementSerializer(data=request.data)
        if serializer.is_valid():
            statement = serializer.save()
            create_audit_log(
                request=request,
                action='statement_create',
                model_name='Statement',
                object_id=str(statement.id),
                object_name=f"Statement {statement.statement_number}",
                object_reference=statement.statement_number,
                changes={'job_number': statement.job.job_number, 'total_amount': str(statement.total_amount)}
            )
            return Response(StatementSerializer(statement).data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'DELETE'])
@permission_classes([IsAuthenticated, IsOfficeUser])
def statement_detail(request, pk):
    """Retrieve or delete a statement"""
    statement = get_object_or_404(Statement.objects.select_related('customer', 'job'), pk=pk)
    if request.method == 'GET':
        return Response(StatementSerializer(statement).data)
    statement.delete()
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsOfficeUser])
def statement_pdf(request, pk):
    """Statement of work PDF"""
    statement = get_object_or_404(Statement.objects.select_related('customer', 'job'), pk=pk)
    pdf_bytes = build_statement_pdf(statement, CompanySettings.load())
    return pdf_response(pdf_bytes, f"{statement.statement_number}.pdf", request.query_params.get('action', 'preview'))


# Quote views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsOfficeUser])
def quote_list_create(request):
    """List quotes or create a quote with its lines"""
    if request.method == 'GET':
        queryset = Quote.objects.select_related('customer', 'converted_invoice').all()
        status_filter = request.query_params.get('status', None)
        customer = request.query_params.get('customer', None)
        search = request.query_params.get('search', None)
        if status_filter and status_filter != 'all':
            queryset = queryset.filter(status=status_filter)
        if customer:
            queryset = queryset.filter(customer_id=customer)
        if search:
            queryset = queryset.filter(
                Q(quote_number__icontains=search) |
                Q(customer__name__icontains=search) |
                Q(description__icontains=search)
            )
        serializer = QuoteListSerializer(queryset.order_by('-date_issued', '-created_at'), many=True)
        return Response(serializer.data)
    else:
        serializer = QuoteSerializer(data=request.data)
        if serializer.is_valid():
            quote = serializer.save()
            create_audit_log(
                request=request,
                action='create',
                model_name='Quote',
                object_id=str(quote.id),
                object_name=f"Quote {quote.quote_number}",
                object_reference=quote.quote_number,
                changes={'total_amount': str(quote.total_amount), 'customer': quote.customer.name}
            )
            return Response(QuoteSerializer(quote).data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsOfficeUser])
def quote_detail(request, pk):
    """Retrieve, update or delete a quote"""
    quote = get_object_or_404(Quote.objects.select_related('customer', 'converted_invoice'), pk=pk)

    if request.method == 'GET':
        return Response(QuoteSerializer(quote).data)
    elif request.method in ('PUT', 'PATCH'):
        if quote.converted_invoice_id:
            return Response({'error': 'Quote has been converted to an invoice and cannot be edited'}, status=status.HTTP_400_BAD_REQUEST)
        serializer = QuoteSerializer(quote, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            quote = serializer.save()
            return Response(QuoteSerializer(quote).data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        quote.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsOfficeUser])
def quote_status(request, pk):
    """Change a quote's status"""
    quote = get_object_or_404(Quote, pk=pk)
    serializer = QuoteStatusSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    new_status = serializer.validated_data['status']
    if quote.converted_invoice_id and new_status != Quote.STATUS_ACCEPTED:
        return Response({'error': 'Quote has been converted to an invoice'}, status=status.HTTP_400_BAD_REQUEST)
    quote.status = new_status
    quote.save(update_fields=['status'])
    return Response(QuoteSerializer(quote).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsOfficeUser])
def quote_convert(request, pk):
    """Turn a quote into an invoice due in 30 days and mark it accepted"""
    quote = get_object_or_404(Quote.objects.select_related('customer'), pk=pk)
    if quote.status == Quote.STATUS_REJECTED:
        return Response({'error': 'A rejected quote cannot be converted'}, status=status.HTTP_400_BAD_REQUEST)
    if quote.converted_invoice_id:
        return Response({'error': f'Quote already converted to {quote.converted_invoice.invoice_number}'}, status=status.HTTP_400_BAD_REQUEST)

    date_issued = timezone.localdate()
    with transaction.atomic():
        invoice = create_numbered(
            Invoice, 'invoice_number', INVOICE_PREFIX,
            customer=quote.customer,
            date_issued=date_issued,
            due_date=date_issued + timedelta(days=settings.DEFAULT_PAYMENT_DAYS),
            subtotal=quote.subtotal,
            vat_rate=quote.vat_rate,
            vat_amount=quote.vat_amount,
            total_amount=quote.total_amount,
            custom_description=quote.description,
            notes=f"Converted from quote {quote.quote_number}",
            status=Invoice.STATUS_DRAFT,
            created_by=request.user,
        )
        for item in quote.items.all():
            InvoiceItem.objects.create(
                invoice=invoice,
                description=item.description,
                quantity=item.quantity,
                unit_price=item.unit_price,
            )
        quote.status = Quote.STATUS_ACCEPTED
        quote.converted_invoice = invoice
        quote.save(update_fields=['status', 'converted_invoice'])
        recalculate_customer_balance(quote.customer)

    create_audit_log(
        request=request,
        action='quote_convert',
        model_name='Quote',
        object_id=str(quote.id),
        object_name=f"Quote {quote.quote_number}",
        object_reference=quote.quote_number,
        changes={'invoice_number': invoice.invoice_number, 'total_amount': str(invoice.total_amount)}
    )
    return Response({
        'quote': QuoteSerializer(quote).data,
        'invoice': InvoiceSerializer(invoice).data,
    }, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsOfficeUser])
def quote_pdf(request, pk):
    """Quotation PDF"""
    quote = get_object_or_404(Quote.objects.select_related('customer'), pk=pk)
    pdf_bytes = build_quote_pdf(quote, CompanySettings.load())
    return pdf_response(pdf_bytes, f"{quote.quote_number}.pdf", request.query_params.get('action', 'preview'))
