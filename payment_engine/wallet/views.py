from django.contrib.auth import get_user_model
from rest_framework import generics, views
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from drf_yasg.utils import swagger_auto_schema
from drf_yasg import openapi

from accounts.permissions import IsFreelancer, IsOperator
from payments.exceptions import NotFound
from payments.pagination import PaymentsPagination
from payments.permissions import PaymentsEnabled
from . import serializers as my_serializers
from .ledger import WalletLedger

User = get_user_model()


class WalletBalanceAPIView(views.APIView):
    permission_classes = [IsAuthenticated, PaymentsEnabled, IsFreelancer]

    @swagger_auto_schema(
        operation_summary="Current wallet balances of the freelancer",
        responses={200: my_serializers.WalletSerializer(), 403: "Forbidden"}
    )
    def get(self, request):
        wallet = WalletLedger().get_wallet(request.user)
        return Response(my_serializers.WalletSerializer(wallet).data)


class ListWalletTransactionsAPIView(generics.ListAPIView):
    """Ledger entries of the current freelancer, newest first."""

    serializer_class = my_serializers.WalletTransactionSerializer
    permission_classes = [IsAuthenticated, PaymentsEnabled, IsFreelancer]
    pagination_class = PaymentsPagination

    @swagger_auto_schema(
        operation_summary="Wallet ledger entries (newest first)",
        responses={200: my_serializers.WalletTransactionSerializer(many=True)}
    )
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)

    def get_queryset(self):
        return WalletLedger().history(self.request.user)


class ReconcileWalletAPIView(views.APIView):
    permission_classes = [IsAuthenticated, PaymentsEnabled, IsOperator]

    @swagger_auto_schema(
        operation_summary="Replay a wallet's ledger and compare it with the stored balances",
        manual_parameters=[
            openapi.Parameter('user_id', openapi.IN_QUERY, description="Wallet owner",
                              type=openapi.TYPE_INTEGER, required=True),
        ],
        responses={
            200: my_serializers.ReconcileReportSerializer(),
            404: "Not found",
            500: "Ledger inconsistency",
        }
    )
    def get(self, request):
        user_id = request.query_params.get('user_id')
        if not user_id or not user_id.isdigit():
            raise ValidationError({'user_id': "A numeric user_id is required."})

        user = User.objects.filter(pk=int(user_id)).first()
        if user is None:
            raise NotFound("User not found.")

        report = WalletLedger().reconcile(user)
        return Response(my_serializers.ReconcileReportSerializer(report).data)
