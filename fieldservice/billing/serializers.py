from datetime import timedelta
from decimal import Decimal

from django.conf import settings
from django.db import transaction
from django.utils import timezone
from rest_framework import serializers

from fieldservice.jobs.models import Job
from .models import Invoice, InvoiceItem, Payment, Statement, Quote, QuoteItem
from .utils import (
    INVOICE_PREFIX, STATEMENT_PREFIX, QUOTE_PREFIX,
    ZERO, calculate_totals, split_gross, create_numbered, money,
)


def _default_due_date(date_issued):
    return date_issued + timedelta(days=settings.DEFAULT_PAYMENT_DAYS)


def _validate_vat_rate(value):
    if value is not None and not (Decimal('0') <= value <= Decimal('100')):
        raise serializers.ValidationError('VAT rate must be between 0 and 100.')
    return value


class LineItemMixin:
    """Shared checks for quantity/unit_price lines"""

    def validate_quantity(self, value):
        if value <= 0:
            raise serializers.ValidationError('Quantity must be greater than zero.')
        return value

    def validate_unit_price(self, value):
        if value < 0:
            raise serializers.ValidationError('Unit price cannot be negative.')
        return value


class InvoiceItemSerializer(LineItemMixin, serializers.ModelSerializer):
    class Meta:
        model = InvoiceItem
        fields = ['id', 'inventory', 'description', 'quantity', 'unit_price', 'total']
        read_only_fields = ['total']


class InvoiceListSerializer(serializers.ModelSerializer):
    customer_name = serializers.CharField(source='customer_display_name', read_only=True)
    job_number = serializers.IntegerField(source='job.job_number', read_only=True, default=None)
    balance_due = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)
    is_overdue = serializers.BooleanField(read_only=True)
    days_overdue = serializers.IntegerField(read_only=True)

    class Meta:
        model = Invoice
        fields = [
            'id', 'invoice_number', 'customer', 'customer_name', 'guest_name', 'job', 'job_number',
            'date_issued', 'due_date', 'subtotal', 'vat_rate', 'vat_amount', 'total_amount',
            'amount_paid', 'balance_due', 'status', 'is_overdue', 'days_overdue',
            'last_reminder_sent', 'created_at'
        ]


class InvoiceSerializer(serializers.ModelSerializer):
    """Standalone invoice with its lines; VAT is added on top of the net lines"""
    customer_name = serializers.CharField(source='customer_display_name', read_only=True)
    job_number = serializers.IntegerField(source='job.job_number', read_only=True, default=None)
    balance_due = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)
    is_overdue = serializers.BooleanField(read_only=True)
    days_overdue = serializers.IntegerField(read_only=True)
    items = InvoiceItemSerializer(many=True, required=False)
    vat_rate = serializers.DecimalField(max_digits=5, decimal_places=2, required=False, validators=[_validate_vat_rate])
    created_by_username = serializers.CharField(source='created_by.username', read_only=True, default=None)

    class Meta:
        model = Invoice
        fields = [
            'id', 'invoice_number', 'customer', 'customer_name', 'guest_name', 'job', 'job_number',
            'date_issued', 'due_date', 'subtotal', 'vat_rate', 'vat_amount', 'total_amount',
            'amount_paid', 'balance_due', 'custom_description', 'notes', 'status', 'is_overdue',
            'days_overdue', 'last_reminder_sent', 'items', 'created_by_username', 'created_at', 'updated_at'
        ]
        read_only_fields = [
            'invoice_number', 'job', 'subtotal', 'vat_amount', 'total_amount', 'amount_paid',
            'status', 'last_reminder_sent', 'created_at', 'updated_at'
        ]

    def validate(self, attrs):
        if self.instance is None:
            if not attrs.get('customer') and not attrs.get('guest_name', '').strip():
                raise serializers.ValidationError({'customer': 'Select a customer or enter a name.'})
            if not attrs.get('items'):
                raise serializers.ValidationError({'items': 'Add at least one line item.'})
        date_issued = attrs.get('date_issued') or (self.instance.date_issued if self.instance else timezone.localdate())
        due_date = attrs.get('due_date')
        if due_date and due_date < date_issued:
            raise serializers.ValidationError({'due_date': 'Due date cannot be before the issue date.'})
        return attrs

    def _apply_totals(self, invoice, vat_rate):
        totals = calculate_totals(((i.quantity, i.unit_price) for i in invoice.items.all()), vat_rate)
        for field, value in totals.items():
            setattr(invoice, field, value)

        # Money already received bounds the new total and decides paid vs sent
        if invoice.amount_paid > invoice.total_amount:
            raise serializers.ValidationError({
                'items': f'Invoice total of {invoice.total_amount} is below the {invoice.amount_paid} already paid.'
            })
        if invoice.status == Invoice.STATUS_PAID and invoice.balance_due > ZERO:
            invoice.status = Invoice.STATUS_SENT
        elif invoice.amount_paid > ZERO and invoice.balance_due <= ZERO:
            invoice.status = Invoice.STATUS_PAID
        invoice.save()

    def create(self, validated_data):
        items_data = validated_data.pop('items', [])
        vat_rate = validated_data.pop('vat_rate', None)
        validated_data.setdefault('date_issued', timezone.localdate())
        if not validated_data.get('due_date'):
            validated_data['due_date'] = _default_due_date(validated_data['date_issued'])

        with transaction.atomic():
            invoice = create_numbered(Invoice, 'invoice_number', INVOICE_PREFIX, **validated_data)
            for item_data in items_data:
                InvoiceItem.objects.create(invoice=invoice, **item_data)
            self._apply_totals(invoice, vat_rate)
        return invoice

    def update(self, instance, validated_data):
        items_data = validated_data.pop('items', None)
        vat_rate = validated_data.pop('vat_rate', instance.vat_rate)

        with transaction.atomic():
            instance = super().update(instance, validated_data)
            if items_data is not None:
                instance.items.all().delete()
                for item_data in items_data:
                    InvoiceItem.objects.create(invoice=instance, **item_data)
            self._apply_totals(instance, vat_rate)
        return instance


class InvoiceFromJobSerializer(serializers.Serializer):
    """Invoice a completed job: lines copied from its items, VAT on top"""
    job = serializers.PrimaryKeyRelatedField(queryset=Job.objects.select_related('customer'))
    description = serializers.CharField(required=False, allow_blank=True)
    vat_rate = serializers.DecimalField(max_digits=5, decimal_places=2, required=False, validators=[_validate_vat_rate])
    status = serializers.ChoiceField(choices=[Invoice.STATUS_DRAFT, Invoice.STATUS_SENT], default=Invoice.STATUS_SENT)
    date_issued = serializers.DateField(required=False)
    due_date = serializers.DateField(required=False)
    notes = serializers.CharField(required=False, allow_blank=True)

    def validate_job(self, job):
        if job.status != Job.STATUS_COMPLETED:
            raise serializers.ValidationError('Only completed jobs can be invoiced.')
        if not job.items.exists():
            raise serializers.ValidationError('Job has no items to invoice.')
        return job

    def create(self, validated_data):
        job = validated_data['job']
        date_issued = validated_data.get('date_issued') or timezone.localdate()
        job_items = list(job.items.all())
        totals = calculate_totals(((i.quantity, i.unit_price) for i in job_items), validated_data.get('vat_rate'))

        with transaction.atomic():
            invoice = create_numbered(
                Invoice, 'invoice_number', INVOICE_PREFIX,
                customer=job.customer,
                job=job,
                date_issued=date_issued,
                due_date=validated_data.get('due_date') or _default_due_date(date_issued),
                custom_description=validated_data.get('description') or job.service_type,
                notes=validated_data.get('notes', ''),
                status=validated_data['status'],
                created_by=validated_data.get('created_by'),
                **totals
            )
            for item in job_items:
                InvoiceItem.objects.create(
                    invoice=invoice,
                    inventory=item.inventory,
                    description=item.description,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                )
        return invoice


class OneTimeInvoiceSerializer(serializers.Serializer):
    """
    Paid invoice for a walk-in customer with no account.

    The total (labour + parts + extras) is VAT-inclusive and split into net and VAT.
    """
    customer_name = serializers.CharField(max_length=200)
    description = serializers.CharField(required=False, allow_blank=True)
    labour_hours = serializers.DecimalField(max_digits=8, decimal_places=2, default=Decimal('0'), min_value=Decimal('0'))
    labour_rate = serializers.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0'), min_value=Decimal('0'))
    parts_cost = serializers.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0'), min_value=Decimal('0'))
    additional = serializers.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0'), min_value=Decimal('0'))
    vat_rate = serializers.DecimalField(max_digits=5, decimal_places=2, required=False, validators=[_validate_vat_rate])
    date = serializers.DateField(required=False)
    notes = serializers.CharField(required=False, allow_blank=True)

    def validate_customer_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError('Customer name is required.')
        return value

    def validate(self, attrs):
        if self._gross(attrs) <= 0:
            raise serializers.ValidationError('Invoice total must be greater than zero.')
        return attrs

    @staticmethod
    def _gross(attrs):
        return money(attrs['labour_hours'] * attrs['labour_rate'] + attrs['parts_cost'] + attrs['additional'])

    def create(self, validated_data):
        date_issued = validated_data.get('date') or timezone.localdate()
        gross = self._gross(validated_data)
        totals = split_gross(gross, validated_data.get('vat_rate'))

        lines = []
        if validated_data['labour_hours'] and validated_data['labour_rate']:
            lines.append((f"Labour ({validated_data['labour_hours'].normalize():f} hrs)", validated_data['labour_hours'], validated_data['labour_rate']))
        if validated_data['parts_cost']:
            lines.append(('Parts', Decimal('1'), validated_data['parts_cost']))
        if validated_data['additional']:
            lines.append(('Additional charges', Decimal('1'), validated_data['additional']))

        with transaction.atomic():
            invoice = create_numbered(
                Invoice, 'invoice_number', INVOICE_PREFIX,
                customer=None,
                guest_name=validated_data['customer_name'],
                date_issued=date_issued,
                due_date=date_issued,
                custom_description=validated_data.get('description', ''),
                notes=validated_data.get('notes', ''),
                status=Invoice.STATUS_PAID,
                amount_paid=totals['total_amount'],
                created_by=validated_data.get('created_by'),
                **totals
            )
            for description, quantity, unit_price in lines:
                InvoiceItem.objects.create(invoice=invoice, description=description, quantity=quantity, unit_price=unit_price)
        return invoice


class InvoiceStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Invoice.STATUS_CHOICES)


class PaymentSerializer(serializers.ModelSerializer):
    invoice_number = serializers.CharField(source='invoice.invoice_number', read_only=True)
    customer_name = serializers.CharField(source='invoice.customer_display_name', read_only=True)
    created_by_username = serializers.CharField(source='created_by.username', read_only=True, default=None)

    class Meta:
        model = Payment
        fields = [
            'id', 'invoice', 'invoice_number', 'customer_name', 'amount', 'method', 'reference',
            'notes', 'date_received', 'created_by_username', 'created_at'
        ]
        read_only_fields = ['invoice', 'created_at']

    def validate_amount(self, value):
        if value <= 0:
            raise serializers.ValidationError('Payment amount must be greater than zero.')
        return value


class StatementSerializer(serializers.ModelSerializer):
    customer_name = serializers.CharField(source='customer.name', read_only=True)
    job_number = serializers.IntegerField(source='job.job_number', read_only=True)
    service_type = serializers.CharField(source='job.service_type', read_only=True)

    class Meta:
        model = Statement
        fields = [
            'id', 'statement_number', 'customer', 'customer_name', 'job', 'job_number',
            'service_type', 'date_generated', 'total_amount', 'created_at'
        ]
        read_only_fields = ['statement_number', 'customer', 'total_amount', 'created_at']

    def validate_job(self, job):
        if not job.items.exists():
            raise serializers.ValidationError('Job has no items to include on a statement.')
        return job

    def create(self, validated_data):
        job = validated_data['job']
        return create_numbered(
            Statement, 'statement_number', STATEMENT_PREFIX,
            customer=job.customer,
            job=job,
            date_generated=validated_data.get('date_generated') or timezone.localdate(),
            total_amount=job.total,
        )


class QuoteItemSerializer(LineItemMixin, serializers.ModelSerializer):
    class Meta:
        model = QuoteItem
        fields = ['id', 'description', 'quantity', 'unit_price', 'total']
        read_only_fields = ['total']


class QuoteListSerializer(serializers.ModelSerializer):
    customer_name = serializers.CharField(source='customer.name', read_only=True)
    converted_invoice_number = serializers.CharField(source='converted_invoice.invoice_number', read_only=True, default=None)

    class Meta:
        model = Quote
        fields = [
            'id', 'quote_number', 'customer', 'customer_name', 'description', 'date_issued',
            'valid_until', 'subtotal', 'vat_rate', 'vat_amount', 'total_amount', 'status',
            'converted_invoice', 'converted_invoice_number', 'created_at'
        ]


class QuoteSerializer(serializers.ModelSerializer):
    customer_name = serializers.CharField(source='customer.name', read_only=True)
    converted_invoice_number = serializers.CharField(source='converted_invoice.invoice_number', read_only=True, default=None)
    items = QuoteItemSerializer(many=True)
    vat_rate = serializers.DecimalField(max_digits=5, decimal_places=2, required=False, validators=[_validate_vat_rate])

    class Meta:
        model = Quote
        fields = [
            'id', 'quote_number', 'customer', 'customer_name', 'description', 'date_issued',
            'valid_until', 'subtotal', 'vat_rate', 'vat_amount', 'total_amount', 'status', 'notes',
            'items', 'converted_invoice', 'converted_invoice_number', 'created_at'
        ]
        read_only_fields = [
            'quote_number', 'subtotal', 'vat_amount', 'total_amount', 'converted_invoice', 'created_at'
        ]

    def validate_items(self, value):
        if not value:
            raise serializers.ValidationError('Add at least one line item.')
        return value

    def validate(self, attrs):
        date_issued = attrs.get('date_issued') or (self.instance.date_issued if self.instance else timezone.localdate())
        valid_until = attrs.get('valid_until')
        if valid_until and valid_until < date_issued:
            raise serializers.ValidationError({'valid_until': 'Valid until cannot be before the issue date.'})
        return attrs

    def _replace_items(self, quote, items_data, vat_rate):
        quote.items.all().delete()
        for item_data in items_data:
            QuoteItem.objects.create(quote=quote, **item_data)
        totals = calculate_totals(((i['quantity'], i['unit_price']) for i in items_data), vat_rate)
        for field, value in totals.items():
            setattr(quote, field, value)
        quote.save()

    def create(self, validated_data):
        items_data = validated_data.pop('items')
        vat_rate = validated_data.pop('vat_rate', None)
        validated_data.setdefault('date_issued', timezone.localdate())
        if not validated_data.get('valid_until'):
            validated_data['valid_until'] = validated_data['date_issued'] + timedelta(days=30)

        with transaction.atomic():
            quote = create_numbered(Quote, 'quote_number', QUOTE_PREFIX, **validated_data)
            self._replace_items(quote, items_data, vat_rate)
        return quote

    def update(self, instance, validated_data):
        items_data = validated_data.pop('items', None)
        vat_rate = validated_data.pop('vat_rate', instance.vat_rate)

        with transaction.atomic():
            instance = super().update(instance, validated_data)
            if items_data is not None:
                self._replace_items(instance, items_data, vat_rate)
            elif vat_rate != instance.vat_rate:
                totals = calculate_totals(((i.quantity, i.unit_price) for i in instance.items.all()), vat_rate)
                for field, value in totals.items():
                    setattr(instance, field, value)
                instance.save()
        return instance


class QuoteStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Quote.STATUS_CHOICES)


class NextNumberSerializer(serializers.Serializer):
    type = serializers.ChoiceField(choices=['invoice', 'statement', 'quote'], default='invoice')
