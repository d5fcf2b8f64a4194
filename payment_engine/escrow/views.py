from decimal import Decimal

from django.db.models import Count, Sum
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import generics, status, views
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from drf_yasg.utils import swagger_auto_schema
from drf_yasg import openapi

from accounts.permissions import IsOperator
from payments.pagination import PaymentsPagination
from payments.permissions import PaymentsEnabled
from payments.services import PaymentEngine
from . import serializers as my_serializers
from .models import EscrowTransaction

ESCROW_ID_PARAM = openapi.Parameter(
    'id',
    openapi.IN_PATH,
    description="Escrow transaction ID",
    type=openapi.TYPE_INTEGER,
)


class ListEscrowAPIView(generics.ListAPIView):
    """List escrows the current user is a party to. Operators see all of them."""

    serializer_class = my_serializers.EscrowTransactionSerializer
    permission_classes = [IsAuthenticated, PaymentsEnabled]
    pagination_class = PaymentsPagination
    filter_backends = [DjangoFilterBackend]
    filterset_fields = ['status']

    @swagger_auto_schema(
        operation_summary="List escrow transactions for the current user",
        responses={200: my_serializers.EscrowTransactionSerializer(many=True)}
    )
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)

    def get_queryset(self):
        return EscrowTransaction.objects.for_user(self.request.user).select_related('client', 'freelancer')


class RetrieveEscrowAPIView(views.APIView):
    permission_classes = [IsAuthenticated, PaymentsEnabled]

    @swagger_auto_schema(
        operation_summary="Retrieve a specific escrow transaction",
        manual_parameters=[ESCROW_ID_PARAM],
        responses={200: my_serializers.EscrowTransactionSerializer(), 404: "Not found"}
    )
    def get(self, request, id):
        escrow = PaymentEngine().get_escrow(id, request.user)
        return Response(my_serializers.EscrowTransactionSerializer(escrow).data)


class RetrieveContractEscrowAPIView(views.APIView):
    permission_classes = [IsAuthenticated, PaymentsEnabled]

    @swagger_auto_schema(
        operation_summary="Retrieve the escrow of a contract",
        responses={200: my_serializers.EscrowTransactionSerializer(), 404: "Not found"}
    )
    def get(self, request, contract_id):
        escrow = PaymentEngine().get_escrow_for_contract(contract_id, request.user)
        return Response(my_serializers.EscrowTransactionSerializer(escrow).data)


class EscrowActionAPIView(views.APIView):
    """
    Base for the escrow actions. Subclasses name the engine method and the
    message returned on success; authorization and state checks are left to
    the payment engine.
    """
    permission_classes = [IsAuthenticated, PaymentsEnabled]
    engine_method = None
    success_message = None

    def perform_action(self, request, id):
        escrow = getattr(PaymentEngine(), self.engine_method)(id, request.user)
        return Response({
            'message': self.success_message,
            'escrow': my_serializers.EscrowTransactionSerializer(escrow).data,
        }, status=status.HTTP_200_OK)


ACTION_RESPONSES = {
    200: my_serializers.EscrowActionResultSerializer(),
    403: "Forbidden",
    404: "Not found",
    409: "Action not allowed in the current state",
}


class ConfirmPaymentAPIView(EscrowActionAPIView):
    engine_method = 'confirm_payment'
    success_message = "Payment confirmed. Funds are held in escrow."

    @swagger_auto_schema(operation_summary="Confirm payment (client)",
                         manual_parameters=[ESCROW_ID_PARAM], responses=ACTION_RESPONSES)
    def post(self, request, id):
        return self.perform_action(request, id)


class MarkWorkCompletedAPIView(EscrowActionAPIView):
    engine_method = 'mark_work_completed'
    success_message = "Work marked as completed."

    @swagger_auto_schema(operation_summary="Mark work as completed (freelancer)",
                         manual_parameters=[ESCROW_ID_PARAM], responses=ACTION_RESPONSES)
    def post(self, request, id):
        return self.perform_action(request, id)


class ReleaseFundsAPIView(EscrowActionAPIView):
    engine_method = 'release_funds'
    success_message = "Funds released to the freelancer wallet."

    @swagger_auto_schema(operation_summary="Release escrow funds (client, or operator on a dispute)",
                         manual_parameters=[ESCROW_ID_PARAM], responses=ACTION_RESPONSES)
    def post(self, request, id):
        return self.perform_action(request, id)


class DisputeAPIView(EscrowActionAPIView):
    engine_method = 'dispute'
    success_message = "Dispute raised. An operator will review it."

    @swagger_auto_schema(operation_summary="Raise a dispute (client or freelancer)",
                         manual_parameters=[ESCROW_ID_PARAM], responses=ACTION_RESPONSES)
    def post(self, request, id):
        return self.perform_action(request, id)


class RefundAPIView(EscrowActionAPIView):
    engine_method = 'refund'
    success_message = "Escrow refunded to the client."

    @swagger_auto_schema(operation_summary="Refund a disputed escrow (operator)",
                         manual_parameters=[ESCROW_ID_PARAM], responses=ACTION_RESPONSES)
    def post(self, request, id):
        return self.perform_action(request, id)


class ListEscrowTransitionsAPIView(views.APIView):
    permission_classes = [IsAuthenticated, PaymentsEnabled]

    @swagger_auto_schema(
        operation_summary="History of applied transitions of an escrow",
        manual_parameters=[ESCROW_ID_PARAM],
        responses={200: my_serializers.EscrowTransitionSerializer(many=True), 404: "Not found"}
    )
    def get(self, request, id):
        escrow = PaymentEngine().get_escrow(id, request.user)
        transitions = escrow.transitions.select_related('actor')
        return Response(my_serializers.EscrowTransitionSerializer(transitions, many=True).data)


class EscrowStatsAPIView(views.APIView):
    permission_classes = [IsAuthenticated, PaymentsEnabled, IsOperator]

    @swagger_auto_schema(
        operation_summary="Escrow totals for operators",
        responses={200: my_serializers.EscrowStatsSerializer(), 403: "Forbidden"}
    )
    def get(self, request):
        zero = Decimal('0.00')
        by_status = {
            row['status']: row['count']
            for row in EscrowTransaction.objects.order_by().values('status').annotate(count=Count('id'))
        }
        released = EscrowTransaction.objects.filter(
            status=EscrowTransaction.FUNDS_RELEASED,
        ).aggregate(total=Sum('amount'))['total'] or zero
        held = EscrowTransaction.objects.filter(
            status__in=[
                EscrowTransaction.PAYMENT_RECEIVED,
                EscrowTransaction.WORK_COMPLETED,
                EscrowTransaction.DISPUTED,
            ],
        ).aggregate(total=Sum('amount'))['total'] or zero

        data = {
            'total': sum(by_status.values()),
            'total_released': released,
            'total_in_escrow': held,
            'active_disputes': by_status.get(EscrowTransaction.DISPUTED, 0),
            'by_status': by_status,
        }
        return Response(my_serializers.EscrowStatsSerializer(data).data)
