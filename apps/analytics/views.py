from datetime import timedelta

from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework import status
from django.utils import timezone
from drf_spectacular.utils import extend_schema, OpenApiParameter
from drf_spectacular.types import OpenApiTypes

from apps.sync.services import build_reconciler

from .analytics import WEEK_DAYS, DashboardQueries, loan_breakdown
from .exceptions import AnalyticsServiceError
from .serializers import (
    # Input serializers
    DashboardQuerySerializer,
    LoanCalculatorInputSerializer,
    # Response serializers
    DashboardResponseSerializer,
    LoanBreakdownSerializer,
    ErrorSerializer,
)


@extend_schema(
    parameters=[
        OpenApiParameter('date', OpenApiTypes.STR, description='Jalali reference day (YYYY/MM/DD), defaults to today'),
        OpenApiParameter('months', OpenApiTypes.INT, description='Jalali months in the breakdown', default=6),
    ],
    responses={
        200: DashboardResponseSerializer,
        400: ErrorSerializer,
    },
    description="Debt cards, this week's and overdue payments, and the monthly breakdown.",
    tags=['analytics'],
)
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def dashboard(request):
    """Dashboard for the current user - thin HTTP handler."""
    query_serializer = DashboardQuerySerializer(data=request.query_params)
    query_serializer.is_valid(raise_exception=True)
    params = query_serializer.validated_data

    user = request.user
    today = params.get('date') or timezone.localdate()

    # Same local-first read as the installment list
    with build_reconciler() as reconciler:
        reconciler.load_installments(user)

    data = {
        'summary': DashboardQueries.summary(user, today),
        'this_week': DashboardQueries.due_between(user, today, today + timedelta(days=WEEK_DAYS)),
        'overdue': DashboardQueries.overdue(user, today),
        'months': DashboardQueries.monthly_breakdown(user, today, months=params['months']),
    }
    return Response(DashboardResponseSerializer(data).data)


@extend_schema(
    request=LoanCalculatorInputSerializer,
    responses={
        200: LoanBreakdownSerializer,
        400: ErrorSerializer,
    },
    description="Total, annual and monthly profit of a loan offer. Amounts may use Persian digits and separators.",
    tags=['analytics'],
)
@api_view(['POST'])
@permission_classes([AllowAny])
def loan_calculator(request):
    serializer = LoanCalculatorInputSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    params = serializer.validated_data

    try:
        data = loan_breakdown(
            principal=params['principal'],
            months=params['months'],
            total_payback=params.get('total_payback'),
            monthly_payment=params.get('monthly_payment'),
        )
    except AnalyticsServiceError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

    return Response(LoanBreakdownSerializer(data).data)
