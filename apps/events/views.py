from rest_framework import viewsets, status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from drf_spectacular.utils import extend_schema, OpenApiParameter
from drf_spectacular.types import OpenApiTypes

from apps.jalali.exceptions import InvalidDateError

from .models import CalendarEvent
from .serializers import EventInputSerializer, EventRangeQuerySerializer, EventSerializer
from .services import (
    create_event,
    update_event,
    delete_event,
    get_event,
    get_events_between,
    # Exceptions
    EventNotFoundError,
)


def _error(e, status_code):
    return Response({'error': str(e)}, status=status_code)


class EventViewSet(viewsets.GenericViewSet):
    """
    ViewSet for personal calendar events.

    list: Events between ``start`` and ``end``
    create: Create an event
    retrieve: Get one event
    update / partial_update: Edit an event
    destroy: Delete an event
    """

    serializer_class = EventSerializer
    permission_classes = [IsAuthenticated]

    def get_queryset(self):
        return CalendarEvent.objects.filter(owner=self.request.user)

    @extend_schema(
        parameters=[
            OpenApiParameter('start', OpenApiTypes.STR, required=True, description='First day, Jalali or Gregorian'),
            OpenApiParameter('end', OpenApiTypes.STR, required=True, description='Last day, Jalali or Gregorian'),
        ],
        responses={200: EventSerializer(many=True)},
        tags=['events'],
    )
    def list(self, request):
        query_serializer = EventRangeQuerySerializer(data=request.query_params)
        query_serializer.is_valid(raise_exception=True)

        events = get_events_between(
            user=request.user,
            start=query_serializer.validated_data['start'],
            end=query_serializer.validated_data['end'],
        )
        return Response(EventSerializer(events, many=True).data)

    @extend_schema(request=EventInputSerializer, responses={201: EventSerializer}, tags=['events'])
    def create(self, request):
        serializer = EventInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            event = create_event(owner=request.user, **serializer.validated_data)
        except InvalidDateError as e:
            return _error(e, status.HTTP_400_BAD_REQUEST)

        return Response(EventSerializer(event).data, status=status.HTTP_201_CREATED)

    @extend_schema(responses={200: EventSerializer}, tags=['events'])
    def retrieve(self, request, pk=None):
        try:
            event = get_event(event_id=pk, user=request.user)
        except EventNotFoundError as e:
            return _error(e, status.HTTP_404_NOT_FOUND)
        return Response(EventSerializer(event).data)

    def _update(self, request, pk, partial):
        serializer = EventInputSerializer(data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)

        try:
            event = update_event(event_id=pk, user=request.user, **serializer.validated_data)
        except EventNotFoundError as e:
            return _error(e, status.HTTP_404_NOT_FOUND)
        except InvalidDateError as e:
            return _error(e, status.HTTP_400_BAD_REQUEST)

        return Response(EventSerializer(event).data)

    @extend_schema(request=EventInputSerializer, responses={200: EventSerializer}, tags=['events'])
    def update(self, request, pk=None):
        return self._update(request, pk, partial=False)

    @extend_schema(request=EventInputSerializer, responses={200: EventSerializer}, tags=['events'])
    def partial_update(self, request, pk=None):
        return self._update(request, pk, partial=True)

    @extend_schema(responses={204: None}, tags=['events'])
    def destroy(self, request, pk=None):
        try:
            delete_event(event_id=pk, user=request.user)
        except EventNotFoundError as e:
            return _error(e, status.HTTP_404_NOT_FOUND)
        return Response(status=status.HTTP_204_NO_CONTENT)
