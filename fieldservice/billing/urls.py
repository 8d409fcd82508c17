from django.urls import path
from .views import (
    invoice_list_create, invoice_from_job, invoice_one_time, invoice_detail,
    invoice_status, invoice_void, invoice_payments, invoice_pdf, invoice_remind,
    invoice_calendar, next_number, payment_list,
    statement_list_create, statement_detail, statement_pdf,
    quote_list_create, quote_detail, quote_status, quote_convert, quote_pdf,
)

urlpatterns = [
    # Invoice endpoints
    path('invoices/', invoice_list_create, name='invoice-list-create'),
    path('invoices/from-job/', invoice_from_job, name='invoice-from-job'),
    path('invoices/one-time/', invoice_one_time, name='invoice-one-time'),
    path('invoices/next-number/', next_number, name='invoice-next-number'),
    path('invoices/calendar/', invoice_calendar, name='invoice-calendar'),
    path('invoices/<int:pk>/', invoice_detail, name='invoice-detail'),
    path('invoices/<int:pk>/status/', invoice_status, name='invoice-status'),
    path('invoices/<int:pk>/void/', invoice_void, name='invoice-void'),
    path('invoices/<int:pk>/payments/', invoice_payments, name='invoice-payments'),
    path('invoices/<int:pk>/pdf/', invoice_pdf, name='invoice-pdf'),
    path('invoices/<int:pk>/remind/', invoice_remind, name='invoice-remind'),

    # Payment endpoints
    path('payments/', payment_list, name='payment-list'),

    # Statement endpoints
    path('statements/', statement_list_create, name='statement-list-create'),
    path('statements/<int:pk>/', statement_detail, name='statement-detail'),
    path('statements/<int:pk>/pdf/', statement_pdf, name='statement-pdf'),

    # Quote endpoints
    path('quotes/', quote_list_create, name='quote-list-create'),
    path('quotes/<int:pk>/', quote_detail, name='quote-detail'),
    path('quotes/<int:pk>/status/', quote_status, name='quote-status'),
    path('quotes/<int:pk>/convert/', quote_convert, name='quote-convert'),
    path('quotes/<int:pk>/pdf/', quote_pdf, name='quote-pdf'),
]
