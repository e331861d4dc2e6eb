import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from drf_spectacular.utils import extend_schema

from .exceptions import (
    ConnectivityUnavailableError,
    OperationNotFailedError,
    OperationNotFoundError,
    RemoteRejectedError,
    RemoteStoreUnavailable,
)
from .models import CacheEntry, SyncOperation
from .serializers import (
    AcknowledgeSerializer,
    SyncOperationSerializer,
    SyncReportSerializer,
    SyncStatusSerializer,
)
from .services import (
    acknowledge_failure,
    build_reconciler,
    failed_operations,
    get_operation,
    get_queue,
    pending_count,
)


logger = logging.getLogger(__name__)


@extend_schema(
    responses={200: SyncStatusSerializer},
    description="Reachability, pending operation count and operations that need acknowledgement.",
    tags=['sync'],
)
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def sync_status(request):
    """Sync indicator for the current user."""
    with build_reconciler() as reconciler:
        reachable = reconciler.monitor.check()
        online_mode = reconciler.remote is not None

    entry = CacheEntry.objects.filter(owner=request.user).first()
    data = {
        'online_mode': online_mode,
        'reachable': reachable,
        'pending_count': pending_count(request.user),
        'cache_timestamp': entry.timestamp if entry else None,
        'failed_operations': SyncOperationSerializer(failed_operations(request.user), many=True).data,
    }
    return Response(data)


@extend_schema(
    request=None,
    responses={200: SyncReportSerializer, 503: None},
    description="Run one reconciliation cycle (drain the queue, pull, merge) for the current user.",
    tags=['sync'],
)
@api_view(['POST'])
@permission_classes([IsAuthenticated])
def run_sync(request):
    """Drain the current user's queue and refresh their snapshot."""
    with build_reconciler() as reconciler:
        if reconciler.remote is None:
            raise RemoteStoreUnavailable('No remote store is configured.')

        report = reconciler.run(request.user)
        if not report.aborted:
            try:
                reconciler.refresh(request.user)
            except (ConnectivityUnavailableError, RemoteRejectedError) as e:
                logger.warning("Refresh after sync failed for %s: %s", request.user, e)

    return Response({
        'applied': report.applied,
        'failed': report.failed,
        'skipped': report.skipped,
        'exhausted': [str(notice) for notice in report.exhausted],
        'aborted': report.aborted,
        'pending_count': pending_count(request.user),
    })


@extend_schema(
    responses={200: SyncOperationSerializer(many=True)},
    description="The current user's queued operations in FIFO order.",
    tags=['sync'],
)
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def operations(request):
    return Response(SyncOperationSerializer(get_queue(request.user), many=True).data)


@extend_schema(
    request=AcknowledgeSerializer,
    responses={200: SyncOperationSerializer, 204: None},
    description="Retry or discard an operation that failed permanently.",
    tags=['sync'],
)
@api_view(['POST'])
@permission_classes([IsAuthenticated])
def acknowledge(request, operation_id):
    """Resolve a permanently failed operation."""
    serializer = AcknowledgeSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    try:
        operation = get_operation(operation_id=operation_id, user=request.user)
        result = acknowledge_failure(operation, retry=serializer.validated_data['retry'])
    except OperationNotFoundError as e:
        return Response({'error': str(e)}, status=status.HTTP_404_NOT_FOUND)
    except OperationNotFailedError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

    if result is None:
        return Response(status=status.HTTP_204_NO_CONTENT)
    return Response(SyncOperationSerializer(result).data)
