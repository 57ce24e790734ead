"""
Row Validator — raw CSV record → typed performance row.

Pure: no DB, no I/O. A row either validates completely or raises a single
RowValidationError; there is no partial-row acceptance.
"""
import uuid
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Dict, Optional, Any

from adloop.config import PLATFORMS, LOCALES

TWO_PLACES = Decimal('0.01')

# Upper bounds of the performance_rows columns (BigInteger, Integer, Numeric(14, 2))
MAX_BIG_COUNT = 2 ** 63 - 1
MAX_COUNT = 2 ** 31 - 1
MAX_AMOUNT = Decimal('999999999999.99')


class RowValidationError(ValueError):
    """A CSV row failed validation. code is stable, message is human-readable."""

    def __init__(self, code: str, message: str):
        self.code = code
        self.message = message
        super().__init__(message)


@dataclass(frozen=True)
class ValidatedRow:
    variant_id: str
    impressions: int
    clicks: int
    conversions: int
    spend: Decimal
    revenue: Decimal
    platform: Optional[str] = None
    locale: Optional[str] = None
    date_start: Optional[date] = None
    date_end: Optional[date] = None


def _clean(record: Dict[str, Any], name: str) -> str:
    value = record.get(name)
    if value is None:
        return ''
    return str(value).strip()


def _required(record, name):
    value = _clean(record, name)
    if not value:
        raise RowValidationError('missing_field', f"{name} is required")
    return value


def parse_identifier(raw: str) -> str:
    try:
        return str(uuid.UUID(raw))
    except (ValueError, AttributeError, TypeError):
        raise RowValidationError('invalid_identifier', f"angle_id '{raw}' is not a valid UUID")


def _to_decimal(name, raw, code):
    try:
        value = Decimal(raw)
    except (InvalidOperation, ValueError):
        raise RowValidationError(code, f"{name} must be a number, got '{raw}'")
    if not value.is_finite():
        raise RowValidationError(code, f"{name} must be a finite number, got '{raw}'")
    return value


def parse_count(name: str, raw: str, upper: int = MAX_BIG_COUNT) -> int:
    """Non-negative integer no larger than upper; integral decimals like '10.0' are accepted."""
    value = _to_decimal(name, raw, 'invalid_integer')
    if value != value.to_integral_value():
        raise RowValidationError('invalid_integer', f"{name} must be a whole number, got '{raw}'")
    if value < 0:
        raise RowValidationError('negative_value', f"{name} must be >= 0, got {raw}")
    if value > upper:
        raise RowValidationError('value_out_of_range', f"{name} must be <= {upper}, got {raw}")
    return int(value)


def parse_amount(name: str, raw: str) -> Decimal:
    """Non-negative money amount, quantized to cents."""
    value = _to_decimal(name, raw, 'invalid_decimal')
    if value < 0:
        raise RowValidationError('negative_value', f"{name} must be >= 0, got {raw}")
    try:
        value = value.quantize(TWO_PLACES)
    except InvalidOperation:
        value = None
    if value is None or value > MAX_AMOUNT:
        raise RowValidationError('value_out_of_range', f"{name} must be <= {MAX_AMOUNT}, got {raw}")
    return value


def _optional_choice(record, name, choices, code):
    value = _clean(record, name)
    if not value:
        return None
    if value not in choices:
        raise RowValidationError(code, f"{name} '{value}' is not one of: {', '.join(choices)}")
    return value


def _optional_date(record, name):
    value = _clean(record, name)
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise RowValidationError('invalid_date', f"{name} '{value}' is not an ISO date (YYYY-MM-DD)")


def validate_row(record: Dict[str, Any]) -> ValidatedRow:
    """
    Validate one CSV record (header name → cell text).

    Raises:
        RowValidationError: on the first problem found; the row is rejected whole.
    """
    variant_id = parse_identifier(_required(record, 'angle_id'))

    impressions = parse_count('impressions', _required(record, 'impressions'))
    clicks = parse_count('clicks', _required(record, 'clicks'))
    conversions = parse_count('conversions', _required(record, 'conversions'), upper=MAX_COUNT)
    spend = parse_amount('spend', _required(record, 'spend'))
    revenue = parse_amount('revenue', _required(record, 'revenue'))

    platform = _optional_choice(record, 'platform', PLATFORMS, 'invalid_platform')
    locale = _optional_choice(record, 'locale', LOCALES, 'invalid_locale')

    date_start = _optional_date(record, 'date_start')
    date_end = _optional_date(record, 'date_end')
    if date_start and date_end and date_end < date_start:
        raise RowValidationError(
            'invalid_date_range', f"date_end {date_end} is before date_start {date_start}"
        )

    return ValidatedRow(
        variant_id=variant_id,
        impressions=impressions,
        clicks=clicks,
        conversions=conversions,
        spend=spend,
        revenue=revenue,
        platform=platform,
        locale=locale,
        date_start=date_start,
        date_end=date_end,
    )
