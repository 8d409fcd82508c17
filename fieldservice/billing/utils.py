"""Money arithmetic and sequential document numbers"""
import logging
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation

from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone

logger = logging.getLogger(__name__)

TWO_PLACES = Decimal('0.01')
ZERO = Decimal('0.00')

INVOICE_PREFIX = 'INV'
STATEMENT_PREFIX = 'STMT'
QUOTE_PREFIX = 'QT'


def to_decimal(value, default=ZERO):
    """Coerce request input to Decimal; None/blank become default"""
    if value is None or value == '':
        return default
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise ValueError(f"'{value}' is not a valid number")


def money(value):
    """Round half-up to 2 decimal places"""
    return Decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def format_money(value):
    return f"€{money(value or ZERO):,.2f}"


def default_vat_rate():
    return Decimal(str(settings.DEFAULT_VAT_RATE))


def calculate_totals(lines, vat_rate=None):
    """
    VAT on top of net lines.

    lines: iterable of (quantity, unit_price) pairs
    Returns dict with subtotal, vat_rate, vat_amount, total_amount.
    """
    rate = default_vat_rate() if vat_rate is None else Decimal(vat_rate)
    subtotal = money(sum((Decimal(q) * Decimal(p) for q, p in lines), ZERO))
    vat_amount = money(subtotal * rate / Decimal('100'))
    return {
        'subtotal': subtotal,
        'vat_rate': rate,
        'vat_amount': vat_amount,
        'total_amount': subtotal + vat_amount,
    }


def split_gross(total, vat_rate=None):
    """Split a VAT-inclusive total into net and VAT parts"""
    rate = default_vat_rate() if vat_rate is None else Decimal(vat_rate)
    total = money(total)
    subtotal = money(total / (Decimal('1') + rate / Decimal('100')))
    return {
        'subtotal': subtotal,
        'vat_rate': rate,
        'vat_amount': total - subtotal,
        'total_amount': total,
    }


def format_document_number(prefix, year, sequence):
    return f"{prefix}-{year}-{sequence:03d}"


def next_document_number(model, field, prefix, year=None):
    """
    Next number in the PREFIX-YEAR-NNN sequence.

    Takes the highest trailing segment issued for this prefix and year and
    increments it; with none issued yet the sequence starts at 001. Segments
    compare as integers, so 1000 follows 999. Uniqueness is left to the
    database constraint.
    """
    year = year or timezone.localdate().year
    pattern = f"{prefix}-{year}-"

    numbers = model.objects.filter(**{f"{field}__startswith": pattern}).values_list(field, flat=True)

    last_sequence = 0
    for number in numbers.iterator():
        try:
            last_sequence = max(last_sequence, int(number[len(pattern):]))
        except ValueError:
            logger.warning(f"Unparseable document number '{number}' in {pattern} sequence")
    return format_document_number(prefix, year, last_sequence + 1)


def create_numbered(model, field, prefix, attempts=3, **fields):
    """Create a record under the next document number, retrying on a number collision"""
    for attempt in range(attempts):
        number = next_document_number(model, field, prefix)
        try:
            with transaction.atomic():
                return model.objects.create(**{field: number}, **fields)
        except IntegrityError:
            logger.warning(f"Document number {number} already taken (attempt {attempt + 1}/{attempts})")
            if attempt == attempts - 1:
                raise
