"""
Lenient value parsers shared by the CSV importers and query-string filters.

Every parser returns None for blank input. Unparseable input also returns
None unless strict=True, in which case ValueError is raised so callers can
report the row.
"""

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import List, Optional

BLANK_VALUES = ('', '.', '-', 'nan', 'NaN', 'null', 'None')

DATE_FORMATS = [
    '%Y-%m-%d',  # ISO format
    '%d/%m/%Y',  # UK format
    '%d-%m-%Y',
    '%m/%d/%Y',  # US format
    '%Y%m%d',    # Compact format
]


def _clean(value) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    if text in BLANK_VALUES:
        return None
    return text


def parse_int(value, strict: bool = False) -> Optional[int]:
    """Parse '3', '3.0' or '1,200' to an int."""
    text = _clean(value)
    if text is None:
        return None
    try:
        number = float(text.replace(',', ''))
        if number != int(number):
            raise ValueError(f"Not a whole number: {value}")
        return int(number)
    except (ValueError, OverflowError):
        if strict:
            raise ValueError(f"Invalid integer: {value}")
        return None


def parse_decimal(value, strict: bool = False) -> Optional[Decimal]:
    """Parse currency-ish strings ('£1,250.00', '$99') to Decimal."""
    text = _clean(value)
    if text is None:
        return None
    clean_value = text.replace(',', '').replace('£', '').replace('$', '').replace('€', '').strip()
    try:
        number = Decimal(clean_value)
        if not number.is_finite():
            raise InvalidOperation
        return number
    except (InvalidOperation, ValueError):
        if strict:
            raise ValueError(f"Invalid number: {value}")
        return None


def parse_float(value, strict: bool = False) -> Optional[float]:
    number = parse_decimal(value, strict=strict)
    return float(number) if number is not None else None


def parse_date(value, strict: bool = False) -> Optional[date]:
    """Parse a date in any of DATE_FORMATS."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = _clean(value)
    if text is None:
        return None

    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue

    if strict:
        raise ValueError(f"Invalid date: {value}")
    return None


def parse_bool(value) -> bool:
    """Parse boolean values."""
    if isinstance(value, bool):
        return value
    if not value:
        return False
    return str(value).lower().strip() in ('true', 'yes', '1', 't', 'y', 'on')


def split_list(value, separator: str = ',') -> List[str]:
    """Split 'a, b,,c' into ['a', 'b', 'c']; lists pass through trimmed."""
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        items = value
    else:
        items = str(value).split(separator)
    return [str(item).strip() for item in items if str(item).strip()]
