"""
Jalali <-> Gregorian conversion on top of ``jdatetime``.

``jdatetime`` uses the arithmetic 33-year cycle (eight leap years per cycle).
The rest of the engine only talks to the tuple-based functions below, so for
every valid Jalali date::

    gregorian_to_jalali(*jalali_to_gregorian(y, m, d)) == (y, m, d)

The cycle matches the observed calendar for the years in everyday use
(roughly 1178-1633 AP); far past and far future dates may drift by a day.
"""

from datetime import date

import jdatetime

from .exceptions import InvalidDateError


MIN_JALALI_YEAR = 1
MAX_JALALI_YEAR = 3177


def _is_int(value):
    return isinstance(value, int) and not isinstance(value, bool)


def _to_jdate(year, month, day):
    try:
        return jdatetime.date(year, month, day)
    except ValueError as exc:
        raise InvalidDateError(f"{year}/{month}/{day}: {exc}") from exc


def is_leap_jalali_year(year: int) -> bool:
    """Return True when Esfand (month 12) of ``year`` has 30 days."""
    if not _is_int(year):
        raise InvalidDateError(f"Jalali year must be an integer, got {year!r}")
    if not MIN_JALALI_YEAR <= year <= MAX_JALALI_YEAR:
        raise InvalidDateError(f"Jalali year {year} is outside the supported range")
    return _to_jdate(year, 1, 1).isleap()


def get_persian_month_days(year: int, month: int) -> int:
    """
    Return the number of days in a Jalali month.

    Farvardin..Shahrivar have 31 days, Mehr..Bahman 30, and Esfand 29 or 30
    depending on the leap-year rule.

    Raises:
        InvalidDateError: If the month is outside 1-12.
    """
    if not _is_int(month) or not 1 <= month <= 12:
        raise InvalidDateError(f"Jalali month must be between 1 and 12, got {month!r}")
    if month == 12 and is_leap_jalali_year(year):
        return 30
    return jdatetime.j_days_in_month[month - 1]


def validate_jalali(year: int, month: int, day: int) -> None:
    """Raise InvalidDateError unless (year, month, day) is a real Jalali date."""
    if not all(_is_int(part) for part in (year, month, day)):
        raise InvalidDateError(f"Jalali date parts must be integers: {year!r}/{month!r}/{day!r}")
    if not MIN_JALALI_YEAR <= year <= MAX_JALALI_YEAR:
        raise InvalidDateError(f"Jalali year {year} is outside the supported range")
    month_days = get_persian_month_days(year, month)
    if not 1 <= day <= month_days:
        raise InvalidDateError(
            f"Day {day} does not exist in {year}/{month:02d} ({month_days} days)"
        )


def jalali_to_gregorian(year: int, month: int, day: int) -> tuple[int, int, int]:
    """
    Convert a Jalali date to a Gregorian (year, month, day) tuple.

    Raises:
        InvalidDateError: If the Jalali date does not exist.

    Example::

        >>> jalali_to_gregorian(1403, 1, 1)
        (2024, 3, 20)
    """
    validate_jalali(year, month, day)
    result = _to_jdate(year, month, day).togregorian()
    return result.year, result.month, result.day


def gregorian_to_jalali(year: int, month: int, day: int) -> tuple[int, int, int]:
    """
    Convert a Gregorian date to a Jalali (year, month, day) tuple.

    Raises:
        InvalidDateError: If the Gregorian date does not exist or falls
            outside the supported Jalali years.
    """
    if not all(_is_int(part) for part in (year, month, day)):
        raise InvalidDateError(f"Gregorian date parts must be integers: {year!r}-{month!r}-{day!r}")
    try:
        target = date(year, month, day)
    except ValueError as exc:
        raise InvalidDateError(str(exc)) from exc

    # jdatetime only knows years from 1 AP onwards
    if year < 622:
        raise InvalidDateError(f"{target.isoformat()} predates the Jalali calendar")
    try:
        result = jdatetime.date.fromgregorian(date=target)
    except ValueError as exc:
        raise InvalidDateError(f"{target.isoformat()} predates the Jalali calendar") from exc
    if not MIN_JALALI_YEAR <= result.year <= MAX_JALALI_YEAR:
        raise InvalidDateError(f"{target.isoformat()} is outside the supported range")
    return result.year, result.month, result.day


def date_from_jalali(value: str) -> date:
    """Return the Gregorian ``date`` for a ``YYYY/MM/DD`` Jalali string."""
    from .formatting import parse_persian_date

    return date(*jalali_to_gregorian(*parse_persian_date(value)))


def jalali_from_date(value: date) -> str:
    """Return the ``YYYY/MM/DD`` Jalali string for a Gregorian ``date``."""
    from .formatting import format_persian_date

    return format_persian_date(*gregorian_to_jalali(value.year, value.month, value.day))


def jalali_weekday(year: int, month: int, day: int) -> int:
    """Day of the Persian week, 0 = Saturday (Shanbeh) .. 6 = Friday (Jomeh)."""
    validate_jalali(year, month, day)
    return _to_jdate(year, month, day).weekday()
