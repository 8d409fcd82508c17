from django.contrib import admin
from .models import Invoice, InvoiceItem, Payment, Statement, Quote, QuoteItem


class InvoiceItemInline(admin.TabularInline):
    model = InvoiceItem
    extra = 0
    readonly_fields = ['total']


class PaymentInline(admin.TabularInline):
    model = Payment
    extra = 0
    readonly_fields = ['created_by', 'created_at']


@admin.register(Invoice)
class InvoiceAdmin(admin.ModelAdmin):
    list_display = ['invoice_number', 'customer', 'guest_name', 'job', 'status', 'total_amount', 'amount_paid', 'due_date', 'date_issued']
    list_filter = ['status', 'date_issued', 'due_date']
    search_fields = ['invoice_number', 'customer__name', 'guest_name']
    ordering = ['-date_issued', '-created_at']
    inlines = [InvoiceItemInline, PaymentInline]
    readonly_fields = ['invoice_number', 'subtotal', 'vat_amount', 'total_amount', 'amount_paid', 'last_reminder_sent', 'created_at', 'updated_at']


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ['invoice', 'amount', 'method', 'reference', 'date_received', 'created_by']
    list_filter = ['method', 'date_received']
    search_fields = ['invoice__invoice_number', 'reference']
    ordering = ['-date_received']


@admin.register(Statement)
class StatementAdmin(admin.ModelAdmin):
    list_display = ['statement_number', 'customer', 'job', 'total_amount', 'date_generated']
    search_fields = ['statement_number', 'customer__name']
    ordering = ['-date_generated']


class QuoteItemInline(admin.TabularInline):
    model = QuoteItem
    extra = 0
    readonly_fields = ['total']


@admin.register(Quote)
class QuoteAdmin(admin.ModelAdmin):
    list_display = ['quote_number', 'customer', 'status', 'total_amount', 'valid_until', 'converted_invoice']
    list_filter = ['status', 'date_issued']
    search_fields = ['quote_number', 'customer__name', 'description']
    ordering = ['-date_issued']
    inlines = [QuoteItemInline]
    readonly_fields = ['quote_number', 'subtotal', 'vat_amount', 'total_amount', 'converted_invoice', 'created_at']
