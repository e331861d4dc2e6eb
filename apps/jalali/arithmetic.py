"""
Date arithmetic in Jalali space.

Day steps go through Gregorian ordinals. Month and year steps keep the day of
month and clamp it to the target month's length, so ``1403/06/31`` plus one
month is ``1403/07/30`` and ``1403/12/30`` plus one year is ``1404/12/29``.
"""

from datetime import date, timedelta

from django.utils import timezone

from .conversion import (
    get_persian_month_days,
    gregorian_to_jalali,
    jalali_to_gregorian,
    jalali_weekday,
    validate_jalali,
)
from .formatting import (
    PERSIAN_MONTHS,
    PERSIAN_WEEKDAYS,
    format_persian_date,
    holiday_name,
    parse_persian_date,
)


def add_jalali_days(value: str, days: int) -> str:
    """Return the Jalali date ``days`` days after ``value`` (negative goes back)."""
    year, month, day = parse_persian_date(value)
    shifted = date(*jalali_to_gregorian(year, month, day)) + timedelta(days=days)
    return format_persian_date(*gregorian_to_jalali(shifted.year, shifted.month, shifted.day))


def add_jalali_months(value: str, months: int) -> str:
    """Return ``value`` moved by ``months`` months, clamping the day."""
    year, month, day = parse_persian_date(value)
    total = month + months
    target_year = year + (total - 1) // 12
    target_month = (total - 1) % 12 + 1
    target_day = min(day, get_persian_month_days(target_year, target_month))
    validate_jalali(target_year, target_month, target_day)
    return format_persian_date(target_year, target_month, target_day)


def add_jalali_years(value: str, years: int) -> str:
    """Return ``value`` moved by ``years`` years, clamping 30 Esfand in common years."""
    return add_jalali_months(value, years * 12)


def today_jalali(today=None) -> str:
    """Today's local date as a Jalali ``YYYY/MM/DD`` string."""
    today = today or timezone.localdate()
    return format_persian_date(*gregorian_to_jalali(today.year, today.month, today.day))


def month_remaining_days(today=None) -> int:
    """Days left in the current Jalali month, today included."""
    year, month, day = parse_persian_date(today_jalali(today))
    return get_persian_month_days(year, month) - day + 1


def jalali_month_bounds(year: int, month: int) -> tuple[date, date]:
    """First and last Gregorian dates of a Jalali month."""
    first = date(*jalali_to_gregorian(year, month, 1))
    last = date(*jalali_to_gregorian(year, month, get_persian_month_days(year, month)))
    return first, last


def describe_month(year: int, month: int) -> dict:
    """
    Describe a Jalali month for calendar grids.

    Returns:
        dict: ``year``, ``month``, ``name``, ``days`` (month length),
        ``first_weekday`` (0 = Saturday), and ``dates``, one entry per day with
        its Jalali and Gregorian forms, weekday name and holiday (or None).
    """
    days = get_persian_month_days(year, month)
    first_weekday = jalali_weekday(year, month, 1)
    first, _last = jalali_month_bounds(year, month)

    dates = []
    for offset in range(days):
        day = offset + 1
        weekday = (first_weekday + offset) % 7
        dates.append({
            'jalali': format_persian_date(year, month, day),
            'gregorian': (first + timedelta(days=offset)).isoformat(),
            'weekday': weekday,
            'weekday_name': PERSIAN_WEEKDAYS[weekday],
            'holiday': holiday_name(year, month, day),
        })

    return {
        'year': year,
        'month': month,
        'name': PERSIAN_MONTHS[month - 1],
        'days': days,
        'first_weekday': first_weekday,
        'dates': dates,
    }
