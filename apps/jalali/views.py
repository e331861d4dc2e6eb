from datetime import date

from django.utils import timezone
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from .arithmetic import describe_month, month_remaining_days
from .conversion import gregorian_to_jalali, jalali_to_gregorian, jalali_weekday
from .exceptions import InvalidDateError, InvalidDateParameterError
from .formatting import (
    PERSIAN_WEEKDAYS,
    format_jalali_label,
    format_persian_date,
    holiday_name,
    parse_persian_date,
)
from .serializers import (
    ConvertQuerySerializer,
    JalaliDateSerializer,
    MonthQuerySerializer,
    MonthSerializer,
    TodaySerializer,
)


def _describe_day(year, month, day):
    jalali = format_persian_date(year, month, day)
    weekday = jalali_weekday(year, month, day)
    return {
        'jalali': jalali,
        'gregorian': date(*jalali_to_gregorian(year, month, day)).isoformat(),
        'label': format_jalali_label(jalali),
        'weekday': weekday,
        'weekday_name': PERSIAN_WEEKDAYS[weekday],
        'holiday': holiday_name(year, month, day),
    }


@extend_schema(
    responses={200: TodaySerializer},
    description="Today's local date in the Jalali calendar.",
    tags=['calendar'],
)
@api_view(['GET'])
@permission_classes([AllowAny])
def today(request):
    """Today's Jalali date - thin HTTP handler."""
    local = timezone.localdate()
    data = _describe_day(*gregorian_to_jalali(local.year, local.month, local.day))
    data['month_remaining_days'] = month_remaining_days(local)
    return Response(data)


@extend_schema(
    parameters=[
        OpenApiParameter('jalali', OpenApiTypes.STR, description='Jalali date (YYYY/MM/DD)'),
        OpenApiParameter('gregorian', OpenApiTypes.DATE, description='Gregorian date (YYYY-MM-DD)'),
    ],
    responses={200: JalaliDateSerializer},
    description='Convert a date between the Jalali and Gregorian calendars.',
    tags=['calendar'],
)
@api_view(['GET'])
@permission_classes([AllowAny])
def convert(request):
    """Convert one date - thin HTTP handler."""
    query_serializer = ConvertQuerySerializer(data=request.query_params)
    query_serializer.is_valid(raise_exception=True)
    params = query_serializer.validated_data

    try:
        if params.get('jalali'):
            parts = parse_persian_date(params['jalali'])
        else:
            gregorian = params['gregorian']
            parts = gregorian_to_jalali(gregorian.year, gregorian.month, gregorian.day)
    except InvalidDateError as e:
        raise InvalidDateParameterError(str(e))

    return Response(_describe_day(*parts))


@extend_schema(
    parameters=[
        OpenApiParameter('year', OpenApiTypes.INT, required=True, description='Jalali year'),
        OpenApiParameter('month', OpenApiTypes.INT, required=True, description='Jalali month (1-12)'),
    ],
    responses={200: MonthSerializer},
    description='Day-by-day description of a Jalali month, with weekdays and holidays.',
    tags=['calendar'],
)
@api_view(['GET'])
@permission_classes([AllowAny])
def month(request):
    query_serializer = MonthQuerySerializer(data=request.query_params)
    query_serializer.is_valid(raise_exception=True)
    params = query_serializer.validated_data
    return Response(describe_month(params['year'], params['month']))
