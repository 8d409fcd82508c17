"""
PDF documents: tax invoices, quotations, statements of work and job service reports.

Every builder returns the PDF as bytes; pdf_response() wraps them for preview
(inline) or download (attachment).
"""
import html
import io

from django.http import HttpResponse
from django.utils import timezone
from reportlab.lib import colors
from reportlab.lib.enums import TA_RIGHT
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from .utils import format_money

BRAND_COLOR = colors.HexColor('#1e3a8a')
MUTED_COLOR = colors.HexColor('#475569')
PAID_COLOR = colors.HexColor('#16a34a')
PENDING_COLOR = colors.HexColor('#ea580c')
HEADER_FILL = colors.HexColor('#e2e8f0')

TAGLINE = 'Dairy Equipment Sales, Service & Repairs'


def _text(value):
    return html.escape(str(value)) if value not in (None, '') else ''


def _multiline(value):
    return _text(value).replace('\n', '<br/>')


def _number(value):
    """2.00 -> 2, 13.50 -> 13.5"""
    return f"{value.normalize():f}"


def _date(value):
    return value.strftime('%d/%m/%Y') if value else ''


def _styles():
    styles = getSampleStyleSheet()
    styles.add(ParagraphStyle(name='Muted', parent=styles['Normal'], textColor=MUTED_COLOR, fontSize=9, leading=12))
    styles.add(ParagraphStyle(name='BodySmall', parent=styles['Normal'], fontSize=10, leading=13))
    styles.add(ParagraphStyle(name='Company', parent=styles['Normal'], fontName='Helvetica-Bold', fontSize=16, leading=20, textColor=BRAND_COLOR))
    styles.add(ParagraphStyle(name='DocTitle', parent=styles['Normal'], fontName='Helvetica-Bold', fontSize=18, leading=22, alignment=TA_RIGHT))
    styles.add(ParagraphStyle(name='RightSmall', parent=styles['Normal'], fontSize=10, leading=13, alignment=TA_RIGHT))
    styles.add(ParagraphStyle(name='Banner', parent=styles['Normal'], fontName='Helvetica-Bold', fontSize=12, textColor=colors.white, alignment=1))
    return styles


def _new_document(buffer, title):
    return SimpleDocTemplate(
        buffer,
        pagesize=A4,
        leftMargin=18 * mm,
        rightMargin=18 * mm,
        topMargin=16 * mm,
        bottomMargin=16 * mm,
        title=title,
    )


def _header(doc, styles, company, title, number, detail_lines):
    """Company block on the left, document title, number and dates on the right"""
    company_lines = [
        Paragraph(_text(company.company_name), styles['Company']),
        Paragraph(TAGLINE, styles['Muted']),
    ]
    if company.company_address:
        company_lines.append(Paragraph(_multiline(company.company_address), styles['Muted']))
    contact = ' | '.join(filter(None, [company.company_phone, company.company_email]))
    if contact:
        company_lines.append(Paragraph(_text(contact), styles['Muted']))
    if company.vat_reg_number:
        company_lines.append(Paragraph(f"VAT Reg: {_text(company.vat_reg_number)}", styles['Muted']))

    right = [Paragraph(title, styles['DocTitle']), Paragraph(f"<b>{_text(number)}</b>", styles['RightSmall'])]
    for label, value in detail_lines:
        right.append(Paragraph(f"{label}: {_text(value)}", styles['RightSmall']))

    table = Table([[company_lines, right]], colWidths=[doc.width * 0.58, doc.width * 0.42])
    table.setStyle(TableStyle([
        ('VALIGN', (0, 0), (-1, -1), 'TOP'),
        ('LINEBELOW', (0, 0), (-1, 0), 1.5, BRAND_COLOR),
        ('BOTTOMPADDING', (0, 0), (-1, -1), 8),
        ('LEFTPADDING', (0, 0), (-1, -1), 0),
        ('RIGHTPADDING', (0, 0), (-1, -1), 0),
    ]))
    return table


def _status_banner(doc, styles, label, paid):
    table = Table([[Paragraph(_text(label.upper()), styles['Banner'])]], colWidths=[doc.width])
    table.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (-1, -1), PAID_COLOR if paid else PENDING_COLOR),
        ('TOPPADDING', (0, 0), (-1, -1), 4),
        ('BOTTOMPADDING', (0, 0), (-1, -1), 4),
    ]))
    return table


def _bill_to(styles, heading, lines):
    text = '<br/>'.join(_multiline(line) for line in lines if line)
    return [
        Paragraph(f"<b>{heading}</b>", styles['BodySmall']),
        Paragraph(text or '-', styles['BodySmall']),
    ]


def _items_table(doc, styles, headers, rows, ratios):
    data = [headers]
    for row in rows:
        data.append([cell if isinstance(cell, Paragraph) else Paragraph(_text(cell), styles['BodySmall']) for cell in row])
    if len(data) == 1:
        data.append([Paragraph('No items', styles['Muted'])] + [''] * (len(headers) - 1))

    table = Table(data, colWidths=[doc.width * r for r in ratios], repeatRows=1)
    table.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (-1, 0), HEADER_FILL),
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, 0), 10),
        ('ALIGN', (1, 0), (-1, -1), 'RIGHT'),
        ('VALIGN', (0, 0), (-1, -1), 'TOP'),
        ('GRID', (0, 0), (-1, -1), 0.5, colors.grey),
        ('LEFTPADDING', (0, 0), (-1, -1), 6),
        ('RIGHTPADDING', (0, 0), (-1, -1), 6),
    ]))
    return table


def _totals_table(doc, styles, rows):
    """rows: (label, amount, bold)"""
    data = []
    for label, amount, bold in rows:
        if bold:
            data.append([Paragraph(f"<b>{label}</b>", styles['RightSmall']), Paragraph(f"<b>{format_money(amount)}</b>", styles['RightSmall'])])
        else:
            data.append([Paragraph(label, styles['RightSmall']), Paragraph(format_money(amount), styles['RightSmall'])])
    table = Table(data, colWidths=[doc.width * 0.75, doc.width * 0.25])
    table.setStyle(TableStyle([
        ('LINEABOVE', (0, -1), (-1, -1), 1, BRAND_COLOR),
        ('TOPPADDING', (0, 0), (-1, -1), 2),
        ('BOTTOMPADDING', (0, 0), (-1, -1), 2),
    ]))
    return table


def _footer(styles, company, note=None):
    parts = [Spacer(1, 14)]
    if note:
        parts.append(Paragraph(note, styles['BodySmall']))
        parts.append(Spacer(1, 6))
    bank = []
    if company.bank_name:
        bank.append(f"Bank: {_text(company.bank_name)}")
    if company.account_name:
        bank.append(f"Account: {_text(company.account_name)}")
    if company.iban:
        bank.append(f"IBAN: {_text(company.iban)}")
    if company.bic:
        bank.append(f"BIC: {_text(company.bic)}")
    if bank:
        parts.append(Paragraph('<b>Payment details</b>', styles['BodySmall']))
        parts.append(Paragraph(' | '.join(bank), styles['Muted']))
    parts.append(Spacer(1, 6))
    parts.append(Paragraph(
        f"Generated {timezone.localtime().strftime('%d/%m/%Y %H:%M')} - Thank you for your business.",
        styles['Muted']
    ))
    return parts


def _render(title, story):
    buffer = io.BytesIO()
    doc = _new_document(buffer, title)
    doc.build(story(doc))
    return buffer.getvalue()


def _line_rows(items):
    return [
        [item.description, _number(item.quantity), format_money(item.unit_price), format_money(item.total)]
        for item in items
    ]


def build_invoice_pdf(invoice, company):
    """Tax invoice with net, VAT and gross totals"""
    styles = _styles()
    paid = invoice.status == invoice.STATUS_PAID

    def story(doc):
        customer = invoice.customer
        if customer:
            bill_lines = [customer.name, customer.contact_person, customer.address, customer.email, customer.phone]
        else:
            bill_lines = [invoice.guest_name or 'Guest']

        parts = [
            _header(doc, styles, company, 'TAX INVOICE', invoice.invoice_number, [
                ('Date', _date(invoice.date_issued)),
                ('Due', _date(invoice.due_date)),
            ]),
            Spacer(1, 8),
            _status_banner(doc, styles, 'Paid' if paid else invoice.get_status_display(), paid),
            Spacer(1, 10),
            *_bill_to(styles, 'Bill To', bill_lines),
        ]
        if invoice.job_id:
            parts.append(Paragraph(f"Job #{invoice.job.job_number} - {_text(invoice.job.service_type)}", styles['Muted']))
        if invoice.custom_description:
            parts += [Spacer(1, 6), Paragraph(_multiline(invoice.custom_description), styles['BodySmall'])]

        parts += [
            Spacer(1, 10),
            _items_table(doc, styles, ['Description', 'Qty', 'Unit Price', 'Total'],
                         _line_rows(invoice.items.all()), [0.52, 0.12, 0.18, 0.18]),
            Spacer(1, 8),
        ]
        totals = [
            ('Subtotal (net)', invoice.subtotal, False),
            (f"VAT @ {_number(invoice.vat_rate)}%", invoice.vat_amount, False),
        ]
        if invoice.amount_paid:
            totals.append(('Amount Paid', invoice.amount_paid, False))
            totals.append(('Balance Due', invoice.balance_due, True))
        else:
            totals.append(('Total Due', invoice.total_amount, True))
        parts.append(_totals_table(doc, styles, totals))
        if invoice.notes:
            parts += [Spacer(1, 8), Paragraph(_multiline(invoice.notes), styles['Muted'])]
        parts += _footer(styles, company, None if paid else 'Payment due within 30 days. Please quote the invoice number with your payment.')
        return parts

    return _render(f"Invoice {invoice.invoice_number}", story)


def build_quote_pdf(quote, company):
    """Quotation with VAT totals and validity"""
    styles = _styles()

    def story(doc):
        customer = quote.customer
        parts = [
            _header(doc, styles, company, 'QUOTATION', quote.quote_number, [
                ('Date', _date(quote.date_issued)),
                ('Valid until', _date(quote.valid_until) or '30 Days'),
            ]),
            Spacer(1, 10),
            *_bill_to(styles, 'Prepared For', [customer.name, customer.contact_person, customer.address, customer.email]),
        ]
        if quote.description:
            parts += [Spacer(1, 6), Paragraph(_multiline(quote.description), styles['BodySmall'])]
        parts += [
            Spacer(1, 10),
            _items_table(doc, styles, ['Description', 'Qty', 'Unit Price', 'Total'],
                         _line_rows(quote.items.all()), [0.52, 0.12, 0.18, 0.18]),
            Spacer(1, 8),
            _totals_table(doc, styles, [
                ('Subtotal (net)', quote.subtotal, False),
                (f"VAT @ {_number(quote.vat_rate)}%", quote.vat_amount, False),
                ('Total', quote.total_amount, True),
            ]),
        ]
        if quote.notes:
            parts += [Spacer(1, 8), Paragraph('<b>Terms &amp; Notes</b>', styles['BodySmall']), Paragraph(_multiline(quote.notes), styles['BodySmall'])]
        parts += _footer(styles, company, 'This quotation is valid for 30 days unless stated otherwise.')
        return parts

    return _render(f"Quote {quote.quote_number}", story)


def build_statement_pdf(statement, company):
    """Statement of work: itemised parts and labour for a job"""
    styles = _styles()
    job = statement.job

    def story(doc):
        customer = statement.customer
        rows = [
            [item.description, item.get_type_display(), _number(item.quantity), format_money(item.unit_price), format_money(item.total)]
            for item in job.items.all()
        ]
        parts = [
            _header(doc, styles, company, 'STATEMENT OF WORK', statement.statement_number, [
                ('Date', _date(statement.date_generated)),
                ('Job', f"#{job.job_number}"),
            ]),
            Spacer(1, 10),
            *_bill_to(styles, 'Customer', [customer.name, customer.contact_person, customer.address]),
            Spacer(1, 4),
            Paragraph(f"Service: {_text(job.service_type) or '-'} | Engineer: {_text(job.engineer_name) or '-'} | "
                      f"Scheduled: {_date(job.date_scheduled) or '-'}", styles['Muted']),
            Spacer(1, 10),
            _items_table(doc, styles, ['Description', 'Type', 'Qty', 'Price', 'Total'], rows, [0.42, 0.14, 0.1, 0.17, 0.17]),
            Spacer(1, 8),
            _totals_table(doc, styles, [('Total', statement.total_amount, True)]),
        ]
        parts += _footer(styles, company, '<i>This statement is a record of work carried out and is not a tax invoice.</i>')
        return parts

    return _render(f"Statement {statement.statement_number}", story)


def build_service_report_pdf(job, company):
    """Job service report with items and sign-off lines"""
    styles = _styles()

    def story(doc):
        customer = job.customer
        rows = [
            [item.description, item.get_type_display(), _number(item.quantity), format_money(item.unit_price), format_money(item.total)]
            for item in job.items.all()
        ]
        parts = [
            _header(doc, styles, company, 'SERVICE REPORT', f"Job #{job.job_number}", [
                ('Scheduled', _date(job.date_scheduled)),
                ('Status', job.get_status_display()),
            ]),
            Spacer(1, 10),
            *_bill_to(styles, 'Customer', [customer.name, customer.contact_person, customer.address, customer.phone]),
            Spacer(1, 6),
            Paragraph(f"<b>Engineer:</b> {_text(job.engineer_name) or '-'}", styles['BodySmall']),
            Paragraph(f"<b>Service:</b> {_text(job.service_type) or '-'}", styles['BodySmall']),
        ]
        if job.notes:
            parts += [Spacer(1, 6), Paragraph('<b>Notes</b>', styles['BodySmall']), Paragraph(_multiline(job.notes), styles['BodySmall'])]
        parts += [
            Spacer(1, 10),
            _items_table(doc, styles, ['Description', 'Type', 'Qty', 'Price', 'Total'], rows, [0.42, 0.14, 0.1, 0.17, 0.17]),
            Spacer(1, 8),
            _totals_table(doc, styles, [('Job Total (ex VAT)', job.total, True)]),
            Spacer(1, 36),
        ]
        signatures = Table(
            [['_' * 34, '_' * 34], ['Engineer signature', 'Customer signature']],
            colWidths=[doc.width * 0.5, doc.width * 0.5],
        )
        signatures.setStyle(TableStyle([
            ('FONTSIZE', (0, 1), (-1, 1), 9),
            ('TEXTCOLOR', (0, 1), (-1, 1), MUTED_COLOR),
        ]))
        parts.append(signatures)
        parts += _footer(styles, company)
        return parts

    return _render(f"Service report job {job.job_number}", story)


def pdf_response(pdf_bytes, filename, action='preview'):
    """Inline for preview, attachment for download"""
    response = HttpResponse(pdf_bytes, content_type='application/pdf')
    disposition = 'attachment' if action == 'download' else 'inline'
    response['Content-Disposition'] = f'{disposition}; filename="{filename}"'
    response['Content-Length'] = str(len(pdf_bytes))
    return response
