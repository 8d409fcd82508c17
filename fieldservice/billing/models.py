from decimal import Decimal

from django.db import models
from django.utils import timezone

from fieldservice.core.models import User
from fieldservice.parties.models import Customer
from fieldservice.inventory.models import InventoryItem
from fieldservice.jobs.models import Job


class Invoice(models.Model):
    """Tax invoice, either for a completed job or standalone"""
    STATUS_DRAFT = 'draft'
    STATUS_SENT = 'sent'
    STATUS_PAID = 'paid'
    STATUS_OVERDUE = 'overdue'
    STATUS_VOID = 'void'
    STATUS_CHOICES = [
        (STATUS_DRAFT, 'Draft'),
        (STATUS_SENT, 'Sent'),
        (STATUS_PAID, 'Paid'),
        (STATUS_OVERDUE, 'Overdue'),
        (STATUS_VOID, 'Void'),
    ]
    # Statuses that no longer owe anything
    SETTLED_STATUSES = [STATUS_PAID, STATUS_VOID]

    invoice_number = models.CharField(max_length=50, unique=True)
    customer = models.ForeignKey(Customer, on_delete=models.PROTECT, null=True, blank=True, related_name='invoices')
    guest_name = models.CharField(max_length=200, blank=True, help_text="Customer name for one-time invoices without a customer record")
    job = models.ForeignKey(Job, on_delete=models.SET_NULL, null=True, blank=True, related_name='invoices')
    date_issued = models.DateField(default=timezone.localdate)
    due_date = models.DateField(null=True, blank=True)
    subtotal = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    vat_rate = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal('13.50'))
    vat_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    amount_paid = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    custom_description = models.TextField(blank=True)
    notes = models.TextField(blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_DRAFT)
    last_reminder_sent = models.DateTimeField(null=True, blank=True)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='invoices')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.invoice_number

    @property
    def customer_display_name(self):
        if self.customer_id:
            return self.customer.name
        return self.guest_name or 'Guest'

    @property
    def balance_due(self):
        return self.total_amount - self.amount_paid

    @property
    def is_overdue(self):
        if self.status in self.SETTLED_STATUSES:
            return False
        if self.status == self.STATUS_OVERDUE:
            return True
        return bool(self.due_date and self.due_date < timezone.localdate())

    @property
    def days_overdue(self):
        if not self.is_overdue or not self.due_date:
            return 0
        return max((timezone.localdate() - self.due_date).days, 0)

    class Meta:
        db_table = 'invoices'
        ordering = ['-date_issued', '-created_at']
        indexes = [
            models.Index(fields=['status'], name='invoices_status_7a2c1d_idx'),
            models.Index(fields=['due_date'], name='invoices_due_dat_e41b0f_idx'),
            models.Index(fields=['date_issued'], name='invoices_date_is_3f9d82_idx'),
        ]


class InvoiceItem(models.Model):
    """Line on an invoice"""
    invoice = models.ForeignKey(Invoice, on_delete=models.CASCADE, related_name='items')
    inventory = models.ForeignKey(InventoryItem, on_delete=models.SET_NULL, null=True, blank=True, related_name='invoice_items')
    description = models.CharField(max_length=255)
    quantity = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('1.00'))
    unit_price = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))
    total = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))

    def __str__(self):
        return f"{self.invoice.invoice_number} - {self.description}"

    def save(self, *args, **kwargs):
        self.total = (self.quantity * self.unit_price).quantize(Decimal('0.01'))
        super().save(*args, **kwargs)

    class Meta:
        db_table = 'invoice_items'
        ordering = ['id']


class Payment(models.Model):
    """Money received against an invoice"""
    METHOD_CHOICES = [
        ('bank_transfer', 'Bank Transfer'),
        ('cheque', 'Cheque'),
        ('cash', 'Cash'),
        ('card', 'Card'),
        ('other', 'Other'),
    ]

    invoice = models.ForeignKey(Invoice, on_delete=models.CASCADE, related_name='payments')
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    method = models.CharField(max_length=20, choices=METHOD_CHOICES, default='bank_transfer')
    reference = models.CharField(max_length=100, blank=True)
    notes = models.TextField(blank=True)
    date_received = models.DateField(default=timezone.localdate)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='payments')
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.invoice.invoice_number} - {self.amount}"

    class Meta:
        db_table = 'payments'
        ordering = ['-date_received', '-created_at']


class Statement(models.Model):
    """Parts and labour breakdown for a job; not a tax invoice"""
    statement_number = models.CharField(max_length=50, unique=True)
    customer = models.ForeignKey(Customer, on_delete=models.PROTECT, related_name='statements')
    job = models.ForeignKey(Job, on_delete=models.CASCADE, related_name='statements')
    date_generated = models.DateField(default=timezone.localdate)
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.statement_number

    class Meta:
        db_table = 'statements'
        ordering = ['-date_generated', '-created_at']


class Quote(models.Model):
    """Priced proposal that can be converted into an invoice"""
    STATUS_DRAFT = 'draft'
    STATUS_PENDING = 'pending'
    STATUS_ACCEPTED = 'accepted'
    STATUS_REJECTED = 'rejected'
    STATUS_CHOICES = [
        (STATUS_DRAFT, 'Draft'),
        (STATUS_PENDING, 'Pending'),
        (STATUS_ACCEPTED, 'Accepted'),
        (STATUS_REJECTED, 'Rejected'),
    ]

    quote_number = models.CharField(max_length=50, unique=True)
    customer = models.ForeignKey(Customer, on_delete=models.PROTECT, related_name='quotes')
    description = models.TextField(blank=True)
    date_issued = models.DateField(default=timezone.localdate)
    valid_until = models.DateField(null=True, blank=True)
    subtotal = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    vat_rate = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal('13.50'))
    vat_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_DRAFT)
    notes = models.TextField(blank=True)
    converted_invoice = models.ForeignKey(Invoice, on_delete=models.SET_NULL, null=True, blank=True, related_name='source_quotes')
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.quote_number

    class Meta:
        db_table = 'quotes'
        ordering = ['-date_issued', '-created_at']


class QuoteItem(models.Model):
    """Line on a quote"""
    quote = models.ForeignKey(Quote, on_delete=models.CASCADE, related_name='items')
    description = models.CharField(max_length=255)
    quantity = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('1.00'))
    unit_price = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))
    total = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))

    def __str__(self):
        return f"{self.quote.quote_number} - {self.description}"

    def save(self, *args, **kwargs):
        self.total = (self.quantity * self.unit_price).quantize(Decimal('0.01'))
        super().save(*args, **kwargs)

    class Meta:
        db_table = 'quote_items'
        ordering = ['id']
