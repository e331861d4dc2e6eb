"""
Domain exceptions for analytics app.

Exception Hierarchy:
    AnalyticsServiceError (base)
    └── InvalidLoanParametersError

Usage:
    from apps.analytics.exceptions import InvalidLoanParametersError

    if months <= 0:
        raise InvalidLoanParametersError("months must be positive")
"""


class AnalyticsServiceError(Exception):
    """
    Base exception for all analytics service errors.

    Views catch it and answer 400:

        try:
            data = loan_breakdown(principal, months, total_payback)
        except AnalyticsServiceError as e:
            return Response({'error': str(e)}, status=400)
    """

    pass


class InvalidLoanParametersError(AnalyticsServiceError):
    """
    Raised when the loan calculator cannot work with its inputs.

    Example:
        raise InvalidLoanParametersError("Provide total_payback or monthly_payment")
    """

    pass
