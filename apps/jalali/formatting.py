"""Formatting and parsing helpers for Persian dates, digits and currency."""

import re

from .conversion import validate_jalali
from .exceptions import InvalidDateError


PERSIAN_MONTHS = (
    'فروردین',
    'اردیبهشت',
    'خرداد',
    'تیر',
    'مرداد',
    'شهریور',
    'مهر',
    'آبان',
    'آذر',
    'دی',
    'بهمن',
    'اسفند',
)

PERSIAN_WEEKDAYS = ('شنبه', 'یکشنبه', 'دوشنبه', 'سه‌شنبه', 'چهارشنبه', 'پنج‌شنبه', 'جمعه')

# Iranian national holidays, keyed by Jalali YYYY-MM-DD
IRANIAN_HOLIDAYS = {
    '1403-01-01': 'نوروز',
    '1403-01-02': 'نوروز',
    '1403-01-03': 'نوروز',
    '1403-01-04': 'نوروز',
    '1403-01-12': 'روز جمهوری اسلامی',
    '1403-01-13': 'سیزده‌به‌در',
    '1403-02-14': 'رحلت حضرت امام خمینی',
    '1403-03-15': 'قیام ۱۵ خرداد',
    '1403-11-22': 'پیروزی انقلاب اسلامی',
    '1403-12-29': 'روز ملی شدن صنعت نفت',
}

PERSIAN_DIGITS = '۰۱۲۳۴۵۶۷۸۹'
ARABIC_DIGITS = '٠١٢٣٤٥٦٧٨٩'

_TO_PERSIAN = str.maketrans('0123456789', PERSIAN_DIGITS)
_TO_ENGLISH = str.maketrans(PERSIAN_DIGITS + ARABIC_DIGITS, '0123456789' * 2)
_NON_DIGITS = re.compile(r'[^0-9]')
_DATE_PATTERN = re.compile(r'^\s*(\d{1,4})/(\d{1,2})/(\d{1,2})\s*$')


def to_persian_digits(value) -> str:
    """Replace ASCII digits with Persian digits, leaving other characters intact."""
    if value is None:
        return ''
    return str(value).translate(_TO_PERSIAN)


def to_english_digits(value) -> str:
    """Replace Persian and Arabic-Indic digits with ASCII digits."""
    if not value:
        return ''
    return str(value).translate(_TO_ENGLISH)


def format_persian_date(year: int, month: int, day: int) -> str:
    """Format a Jalali date as zero-padded ``YYYY/MM/DD``."""
    return f"{year}/{month:02d}/{day:02d}"


def parse_persian_date(value: str) -> tuple[int, int, int]:
    """
    Parse a ``YYYY/MM/DD`` Jalali string (ASCII or Persian digits).

    Raises:
        InvalidDateError: If the string is malformed or names a date that
            does not exist.
    """
    if not isinstance(value, str):
        raise InvalidDateError(f"Jalali date must be a string, got {value!r}")
    match = _DATE_PATTERN.match(to_english_digits(value))
    if not match:
        raise InvalidDateError(f"Expected YYYY/MM/DD, got {value!r}")
    year, month, day = (int(part) for part in match.groups())
    validate_jalali(year, month, day)
    return year, month, day


def format_jalali_label(value: str, persian_digits: bool = True) -> str:
    """Render ``1403/01/05`` as ``۵ فروردین ۱۴۰۳``."""
    year, month, day = parse_persian_date(value)
    label = f"{day} {PERSIAN_MONTHS[month - 1]} {year}"
    return to_persian_digits(label) if persian_digits else label


def format_currency_persian(amount: int) -> str:
    """Format an integer amount with thousands separators in Persian digits."""
    return to_persian_digits(f"{amount:,}")


def parse_currency_input(value) -> int:
    """
    Parse user currency input back to an integer.

    Digits are normalised to ASCII and every other character (separators,
    spaces, currency words) is dropped. Empty input parses to 0.
    """
    cleaned = _NON_DIGITS.sub('', to_english_digits(value))
    return int(cleaned) if cleaned else 0


def holiday_name(year: int, month: int, day: int):
    """Return the holiday name for a Jalali date, or None."""
    return IRANIAN_HOLIDAYS.get(f"{year}-{month:02d}-{day:02d}")
