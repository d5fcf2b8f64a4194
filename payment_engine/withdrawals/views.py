from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import generics, status, views
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from drf_yasg.utils import swagger_auto_schema
from drf_yasg import openapi

from accounts.permissions import IsFreelancer, IsOperator
from payments.pagination import PaymentsPagination
from payments.permissions import PaymentsEnabled
from payments.services import PaymentEngine
from . import serializers as my_serializers
from .filters import WithdrawalRequestFilter
from .models import WithdrawalRequest

WITHDRAWAL_ID_PARAM = openapi.Parameter(
    'id',
    openapi.IN_PATH,
    description="Withdrawal request ID",
    type=openapi.TYPE_INTEGER,
)


class ListCreateWithdrawalAPIView(generics.ListAPIView):
    """
    Freelancers list their own withdrawal requests and create new ones.
    Creating a request reserves the amount from the available balance.
    """
    serializer_class = my_serializers.WithdrawalRequestSerializer
    permission_classes = [IsAuthenticated, PaymentsEnabled, IsFreelancer]
    pagination_class = PaymentsPagination

    @swagger_auto_schema(
        operation_summary="List my withdrawal requests",
        responses={200: my_serializers.WithdrawalRequestSerializer(many=True)}
    )
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)

    @swagger_auto_schema(
        operation_summary="Request a withdrawal",
        request_body=my_serializers.CreateWithdrawalSerializer,
        responses={
            201: my_serializers.WithdrawalRequestSerializer(),
            400: "Invalid amount or insufficient funds",
            409: "A withdrawal is already pending",
        }
    )
    def post(self, request):
        serializer = my_serializers.CreateWithdrawalSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        amount = data.pop('amount')

        withdrawal = PaymentEngine().request_withdrawal(request.user, amount, data)
        return Response({
            'detail': "Withdrawal request submitted.",
            'withdrawal': my_serializers.WithdrawalRequestSerializer(withdrawal).data,
        }, status=status.HTTP_201_CREATED)

    def get_queryset(self):
        return WithdrawalRequest.objects.filter(requester=self.request.user).select_related('requester', 'processed_by')


class OperatorListWithdrawalAPIView(generics.ListAPIView):
    serializer_class = my_serializers.WithdrawalRequestSerializer
    permission_classes = [IsAuthenticated, PaymentsEnabled, IsOperator]
    pagination_class = PaymentsPagination
    filter_backends = [DjangoFilterBackend]
    filterset_class = WithdrawalRequestFilter
    queryset = WithdrawalRequest.objects.select_related('requester', 'processed_by')

    @swagger_auto_schema(
        operation_summary="List all withdrawal requests (operator)",
        manual_parameters=[
            openapi.Parameter('status', openapi.IN_QUERY, description="Filter by status",
                              type=openapi.TYPE_STRING),
        ],
        responses={200: my_serializers.WithdrawalRequestSerializer(many=True)}
    )
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)


class MarkWithdrawalProcessingAPIView(views.APIView):
    permission_classes = [IsAuthenticated, PaymentsEnabled, IsOperator]

    @swagger_auto_schema(
        operation_summary="Mark a withdrawal request as processing (operator)",
        manual_parameters=[WITHDRAWAL_ID_PARAM],
        responses={200: my_serializers.WithdrawalRequestSerializer(), 404: "Not found", 409: "Conflict"}
    )
    def post(self, request, id):
        withdrawal = PaymentEngine().mark_withdrawal_processing(id, request.user)
        return Response(my_serializers.WithdrawalRequestSerializer(withdrawal).data)


class CompleteWithdrawalAPIView(views.APIView):
    permission_classes = [IsAuthenticated, PaymentsEnabled, IsOperator]

    @swagger_auto_schema(
        operation_summary="Complete a withdrawal request (operator)",
        manual_parameters=[WITHDRAWAL_ID_PARAM],
        request_body=my_serializers.OperatorNotesSerializer,
        responses={200: my_serializers.WithdrawalRequestSerializer(), 404: "Not found", 409: "Conflict"}
    )
    def post(self, request, id):
        serializer = my_serializers.OperatorNotesSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        withdrawal = PaymentEngine().complete_withdrawal(id, request.user, serializer.validated_data['notes'])
        return Response(my_serializers.WithdrawalRequestSerializer(withdrawal).data)


class RejectWithdrawalAPIView(views.APIView):
    permission_classes = [IsAuthenticated, PaymentsEnabled, IsOperator]

    @swagger_auto_schema(
        operation_summary="Reject a withdrawal request and return the funds (operator)",
        manual_parameters=[WITHDRAWAL_ID_PARAM],
        request_body=my_serializers.RejectWithdrawalSerializer,
        responses={200: my_serializers.WithdrawalRequestSerializer(), 404: "Not found", 409: "Conflict"}
    )
    def post(self, request, id):
        serializer = my_serializers.RejectWithdrawalSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        withdrawal = PaymentEngine().reject_withdrawal(id, request.user, serializer.validated_data['notes'])
        return Response(my_serializers.WithdrawalRequestSerializer(withdrawal).data)
