"""
Serializers for the calendar endpoints.

Input serializers validate query parameters; the response serializers exist
for the OpenAPI schema.
"""

from rest_framework import serializers

from .conversion import MAX_JALALI_YEAR, MIN_JALALI_YEAR


# =============================================================================
# Input Serializers
# =============================================================================

class ConvertQuerySerializer(serializers.Serializer):
    """Exactly one of ``jalali`` (YYYY/MM/DD) or ``gregorian`` (YYYY-MM-DD)."""

    jalali = serializers.CharField(required=False, max_length=10)
    gregorian = serializers.DateField(required=False)

    def validate(self, attrs):
        has_jalali = bool(attrs.get('jalali'))
        has_gregorian = attrs.get('gregorian') is not None
        if has_jalali == has_gregorian:
            raise serializers.ValidationError(
                'Provide exactly one of "jalali" or "gregorian".'
            )
        return attrs


class MonthQuerySerializer(serializers.Serializer):
    year = serializers.IntegerField(min_value=MIN_JALALI_YEAR, max_value=MAX_JALALI_YEAR)
    month = serializers.IntegerField(min_value=1, max_value=12)


# =============================================================================
# Response Serializers
# =============================================================================

class JalaliDateSerializer(serializers.Serializer):
    jalali = serializers.CharField()
    gregorian = serializers.DateField()
    label = serializers.CharField()
    weekday = serializers.IntegerField()
    weekday_name = serializers.CharField()
    holiday = serializers.CharField(allow_null=True)


class TodaySerializer(JalaliDateSerializer):
    month_remaining_days = serializers.IntegerField()


class MonthDaySerializer(serializers.Serializer):
    jalali = serializers.CharField()
    gregorian = serializers.DateField()
    weekday = serializers.IntegerField()
    weekday_name = serializers.CharField()
    holiday = serializers.CharField(allow_null=True)


class MonthSerializer(serializers.Serializer):
    year = serializers.IntegerField()
    month = serializers.IntegerField()
    name = serializers.CharField()
    days = serializers.IntegerField()
    first_weekday = serializers.IntegerField()
    dates = MonthDaySerializer(many=True)
