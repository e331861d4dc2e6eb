from rest_framework import viewsets, status
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from drf_spectacular.utils import extend_schema, OpenApiParameter
from drf_spectacular.types import OpenApiTypes

from apps.jalali.exceptions import InvalidDateError
from apps.sync.services import build_reconciler, pending_count

from .serializers import (
    InstallmentInputSerializer,
    InstallmentListQuerySerializer,
    InstallmentSerializer,
    PaymentSerializer,
    TogglePaymentSerializer,
)
from .services import (
    create_installment,
    update_installment,
    get_installment,
    get_user_installments,
    get_trash,
    toggle_payment,
    soft_delete_installment,
    restore_installment,
    soft_delete_payment,
    restore_payment,
    purge_installment,
    empty_trash,
    # Exceptions
    InstallmentNotFoundError,
    PaymentNotFoundError,
    InvalidLifecycleTransitionError,
)


NOT_FOUND_ERRORS = (InstallmentNotFoundError, PaymentNotFoundError)
BAD_REQUEST_ERRORS = (InvalidLifecycleTransitionError, InvalidDateError)


def _error(e, status_code):
    return Response({'error': str(e)}, status=status_code)


class InstallmentViewSet(viewsets.GenericViewSet):
    """
    ViewSet for installments.

    All business logic is handled by services; reads are local-first.

    list: Installments from the local snapshot (refreshed when stale)
    create: Create an installment and its payment schedule
    retrieve: Get one installment
    update / partial_update: Edit, rebuilding the schedule if needed
    destroy: Move to the trash (soft delete)
    """

    serializer_class = InstallmentSerializer
    permission_classes = [IsAuthenticated]

    def get_queryset(self):
        return get_user_installments(user=self.request.user)

    @extend_schema(
        parameters=[
            OpenApiParameter('include_deleted', OpenApiTypes.BOOL, description='Include soft-deleted installments'),
        ],
        responses={200: InstallmentSerializer(many=True)},
        tags=['installments'],
    )
    def list(self, request):
        """List installments, refreshing the local snapshot when it is stale."""
        query_serializer = InstallmentListQuerySerializer(data=request.query_params)
        query_serializer.is_valid(raise_exception=True)

        with build_reconciler() as reconciler:
            reconciler.load_installments(request.user)

        installments = get_user_installments(
            user=request.user,
            include_deleted=query_serializer.validated_data['include_deleted'],
        )
        serializer = InstallmentSerializer(installments, many=True)
        return Response(
            serializer.data,
            headers={'X-Pending-Operations': str(pending_count(request.user))},
        )

    @extend_schema(request=InstallmentInputSerializer, responses={201: InstallmentSerializer}, tags=['installments'])
    def create(self, request):
        serializer = InstallmentInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            installment = create_installment(
                owner=request.user,
                creditor_name=data['creditor_name'],
                total_amount=data['total_amount'],
                start_date_jalali=data.get('start_date_jalali'),
                start_date=data.get('start_date'),
                installment_count=data['installment_count'],
                recurrence=data['recurrence'],
                installment_amount=data.get('installment_amount'),
                reminder_days=data['reminder_days'],
                item_description=data.get('item_description', ''),
                notes=data.get('notes', ''),
                payment_time=data.get('payment_time'),
                installment_id=data.get('id'),
            )
        except InvalidDateError as e:
            return _error(e, status.HTTP_400_BAD_REQUEST)

        output = InstallmentSerializer(installment)
        return Response(output.data, status=status.HTTP_201_CREATED)

    @extend_schema(responses={200: InstallmentSerializer}, tags=['installments'])
    def retrieve(self, request, pk=None):
        try:
            installment = get_installment(installment_id=pk, user=request.user)
        except NOT_FOUND_ERRORS as e:
            return _error(e, status.HTTP_404_NOT_FOUND)
        return Response(InstallmentSerializer(installment).data)

    def _update(self, request, pk, partial):
        serializer = InstallmentInputSerializer(data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        changes = dict(serializer.validated_data)
        changes.pop('id', None)
        if changes.get('installment_amount', 0) is None:
            changes.pop('installment_amount')

        try:
            installment = update_installment(installment_id=pk, user=request.user, **changes)
        except NOT_FOUND_ERRORS as e:
            return _error(e, status.HTTP_404_NOT_FOUND)
        except BAD_REQUEST_ERRORS as e:
            return _error(e, status.HTTP_400_BAD_REQUEST)

        return Response(InstallmentSerializer(installment).data)

    @extend_schema(request=InstallmentInputSerializer, responses={200: InstallmentSerializer}, tags=['installments'])
    def update(self, request, pk=None):
        return self._update(request, pk, partial=False)

    @extend_schema(request=InstallmentInputSerializer, responses={200: InstallmentSerializer}, tags=['installments'])
    def partial_update(self, request, pk=None):
        return self._update(request, pk, partial=True)

    @extend_schema(responses={204: None}, tags=['installments'])
    def destroy(self, request, pk=None):
        """Move an installment to the trash."""
        try:
            soft_delete_installment(installment_id=pk, user=request.user)
        except NOT_FOUND_ERRORS as e:
            return _error(e, status.HTTP_404_NOT_FOUND)
        except InvalidLifecycleTransitionError as e:
            return _error(e, status.HTTP_400_BAD_REQUEST)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(request=TogglePaymentSerializer, responses={200: PaymentSerializer}, tags=['installments'])
    @action(detail=True, methods=['post'], url_path='toggle-payment')
    def toggle_payment(self, request, pk=None):
        """Mark a payment paid/unpaid (flips when is_paid is omitted)."""
        serializer = TogglePaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            payment = toggle_payment(
                installment_id=pk,
                payment_id=serializer.validated_data['payment_id'],
                user=request.user,
                is_paid=serializer.validated_data.get('is_paid'),
            )
        except NOT_FOUND_ERRORS as e:
            return _error(e, status.HTTP_404_NOT_FOUND)
        except InvalidLifecycleTransitionError as e:
            return _error(e, status.HTTP_400_BAD_REQUEST)

        return Response(PaymentSerializer(payment).data)

    @extend_schema(request=None, responses={200: InstallmentSerializer}, tags=['installments'])
    @action(detail=True, methods=['post'])
    def restore(self, request, pk=None):
        """Bring an installment back from the trash."""
        try:
            installment = restore_installment(installment_id=pk, user=request.user)
        except NOT_FOUND_ERRORS as e:
            return _error(e, status.HTTP_404_NOT_FOUND)
        except InvalidLifecycleTransitionError as e:
            return _error(e, status.HTTP_400_BAD_REQUEST)
        return Response(InstallmentSerializer(installment).data)

    @extend_schema(request=None, responses={204: None}, tags=['installments'])
    @action(detail=True, methods=['post'])
    def purge(self, request, pk=None):
        """Permanently delete an installment that is in the trash."""
        try:
            purge_installment(installment_id=pk, user=request.user)
        except NOT_FOUND_ERRORS as e:
            return _error(e, status.HTTP_404_NOT_FOUND)
        except InvalidLifecycleTransitionError as e:
            return _error(e, status.HTTP_400_BAD_REQUEST)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(responses={200: InstallmentSerializer(many=True)}, tags=['installments'])
    @action(detail=False, methods=['get'])
    def trash(self, request):
        """Soft-deleted installments, most recently deleted first."""
        installments = get_trash(user=request.user).prefetch_related('payments')
        return Response(InstallmentSerializer(installments, many=True).data)

    @extend_schema(request=None, responses={200: OpenApiTypes.OBJECT}, tags=['installments'])
    @action(detail=False, methods=['post'], url_path='trash/empty')
    def empty_trash(self, request):
        purged = empty_trash(user=request.user)
        return Response({'purged': purged})

    @extend_schema(request=None, responses={200: PaymentSerializer}, tags=['installments'])
    @action(detail=True, methods=['post'], url_path=r'payments/(?P<payment_id>[^/.]+)/soft-delete')
    def soft_delete_payment(self, request, pk=None, payment_id=None):
        """Move one payment to the trash."""
        try:
            payment = soft_delete_payment(installment_id=pk, payment_id=payment_id, user=request.user)
        except NOT_FOUND_ERRORS as e:
            return _error(e, status.HTTP_404_NOT_FOUND)
        except InvalidLifecycleTransitionError as e:
            return _error(e, status.HTTP_400_BAD_REQUEST)
        return Response(PaymentSerializer(payment).data)

    @extend_schema(request=None, responses={200: PaymentSerializer}, tags=['installments'])
    @action(detail=True, methods=['post'], url_path=r'payments/(?P<payment_id>[^/.]+)/restore')
    def restore_payment(self, request, pk=None, payment_id=None):
        try:
            payment = restore_payment(installment_id=pk, payment_id=payment_id, user=request.user)
        except NOT_FOUND_ERRORS as e:
            return _error(e, status.HTTP_404_NOT_FOUND)
        except InvalidLifecycleTransitionError as e:
            return _error(e, status.HTTP_400_BAD_REQUEST)
        return Response(PaymentSerializer(payment).data)
