"""Domain exceptions for the Jalali calendar engine."""

from rest_framework.exceptions import APIException


class CalendarError(Exception):
    """Base exception for calendar engine errors."""
    pass


class InvalidDateError(CalendarError, ValueError):
    """Raised when a calendar date is out of range or malformed."""
    pass


class InvalidDateParameterError(APIException):
    """Date query parameter could not be understood."""
    status_code = 400
    default_detail = 'Invalid date.'
    default_code = 'invalid_date'
