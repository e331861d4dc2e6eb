from contextlib import contextmanager
import logging

from django.conf import settings
from django.utils.crypto import constant_time_compare
from rest_framework import status
from rest_framework.decorators import api_view, authentication_classes, permission_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from drf_spectacular.utils import extend_schema
from drf_spectacular.types import OpenApiTypes

from apps.sync.exceptions import ConnectivityUnavailableError, RemoteRejectedError
from apps.sync.services import remote as remote_module

from .exceptions import NoSubscriptionsError, PushNotConfiguredError, PushUnavailable
from .models import ReminderLog
from .serializers import (
    DispatchReportSerializer,
    ReminderLogSerializer,
    SendNotificationSerializer,
    SubscriptionSerializer,
    UnsubscribeSerializer,
)
from .services import (
    build_notifier,
    dispatch_due_reminders,
    register_subscription,
    unregister_subscription,
)


logger = logging.getLogger(__name__)

REMOTE_ERRORS = (ConnectivityUnavailableError, RemoteRejectedError)


@contextmanager
def _remote_store():
    remote = remote_module.get_remote_store()
    if remote is None:
        raise PushUnavailable('No remote store is configured.')
    try:
        yield remote
    finally:
        remote.close()


def _notifier(remote):
    try:
        return build_notifier(remote)
    except PushNotConfiguredError as e:
        raise PushUnavailable(str(e))


@extend_schema(responses={200: OpenApiTypes.OBJECT, 503: None}, tags=['notifications'])
@api_view(['GET'])
@permission_classes([AllowAny])
def vapid_key(request):
    """Application server key the browser subscribes with."""
    public_key = getattr(settings, 'VAPID_PUBLIC_KEY', '')
    if not public_key:
        raise PushUnavailable('VAPID_PUBLIC_KEY is not set')
    return Response({'public_key': public_key})


@extend_schema(
    methods=['POST'],
    request=SubscriptionSerializer,
    responses={201: OpenApiTypes.OBJECT},
    description="Register this browser's push subscription for the current user.",
    tags=['notifications'],
)
@extend_schema(
    methods=['DELETE'],
    request=UnsubscribeSerializer,
    responses={204: None},
    description="Drop a push subscription of the current user.",
    tags=['notifications'],
)
@api_view(['POST', 'DELETE'])
@permission_classes([IsAuthenticated])
def subscriptions(request):
    if request.method == 'DELETE':
        serializer = UnsubscribeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        with _remote_store() as remote:
            try:
                unregister_subscription(
                    remote,
                    endpoint=serializer.validated_data['endpoint'],
                    user_id=request.user.id,
                )
            except REMOTE_ERRORS as e:
                raise PushUnavailable(str(e))
        return Response(status=status.HTTP_204_NO_CONTENT)

    serializer = SubscriptionSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    with _remote_store() as remote:
        try:
            register_subscription(
                remote,
                user_id=request.user.id,
                endpoint=data['endpoint'],
                p256dh=data['keys']['p256dh'],
                auth=data['keys']['auth'],
            )
        except REMOTE_ERRORS as e:
            raise PushUnavailable(str(e))
    return Response({'endpoint': data['endpoint']}, status=status.HTTP_201_CREATED)


@extend_schema(
    request=SendNotificationSerializer,
    responses={200: OpenApiTypes.OBJECT, 404: None},
    description="Push a notification to every device of the current user.",
    tags=['notifications'],
)
@api_view(['POST'])
@permission_classes([IsAuthenticated])
def send_notification(request):
    serializer = SendNotificationSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    with _remote_store() as remote:
        notifier = _notifier(remote)
        try:
            results = notifier.send_to_user(request.user.id, data['title'], data['body'], url=data['url'])
        except NoSubscriptionsError:
            return Response({'error': 'No subscriptions found'}, status=status.HTTP_404_NOT_FOUND)
        except REMOTE_ERRORS as e:
            raise PushUnavailable(str(e))

    return Response({
        'success': True,
        'sent': sum(1 for result in results if result.success),
        'removed': sum(1 for result in results if result.removed),
    })


@extend_schema(
    responses={200: DispatchReportSerializer, 401: None},
    description="Daily reminder scan. Requires `Authorization: Bearer <CRON_SECRET>`.",
    tags=['notifications'],
)
@api_view(['GET'])
@authentication_classes([])
@permission_classes([AllowAny])
def due_reminders(request):
    """Send today's upcoming and due reminders (called by a scheduler)."""
    secret = getattr(settings, 'CRON_SECRET', '')
    header = request.headers.get('Authorization', '')
    if not secret or not constant_time_compare(header, f'Bearer {secret}'):
        return Response({'error': 'Unauthorized'}, status=status.HTTP_401_UNAUTHORIZED)

    with _remote_store() as remote:
        notifier = _notifier(remote)
        try:
            report = dispatch_due_reminders(remote, notifier)
        except REMOTE_ERRORS as e:
            logger.error("Reminder scan failed: %s", e)
            raise PushUnavailable(str(e))

    return Response(DispatchReportSerializer(report).data)


@extend_schema(responses={200: ReminderLogSerializer(many=True)}, tags=['notifications'])
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def history(request):
    """Reminders delivered to the current user, newest first."""
    logs = ReminderLog.objects.filter(user_id=request.user.id)[:50]
    return Response(ReminderLogSerializer(logs, many=True).data)
