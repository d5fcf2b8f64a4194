from django.contrib.auth import get_user_model
from django.db.models import Q
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import generics, status, views
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from drf_yasg.utils import swagger_auto_schema
from drf_yasg import openapi

from accounts.permissions import IsClient
from payments.pagination import PaymentsPagination
from payments.permissions import PaymentsEnabled
from payments.services import PaymentEngine
from . import serializers as my_serializers
from .models import Contract

User = get_user_model()


class ListContractsAPIView(generics.ListAPIView):
    """
    Contracts the current user is a party to. Operators see all contracts.
    """
    serializer_class = my_serializers.ContractSerializer
    permission_classes = [IsAuthenticated, PaymentsEnabled]
    pagination_class = PaymentsPagination
    filter_backends = [DjangoFilterBackend]
    filterset_fields = ['status', 'project_id']

    @swagger_auto_schema(
        operation_summary="List contracts of the current user",
        manual_parameters=[
            openapi.Parameter('status', openapi.IN_QUERY, description="Filter by contract status",
                              type=openapi.TYPE_STRING),
        ],
        responses={200: my_serializers.ContractSerializer(many=True)}
    )
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)

    def get_queryset(self):
        user = self.request.user
        queryset = Contract.objects.select_related('client', 'freelancer', 'escrow')
        if user.is_operator:
            return queryset
        return queryset.filter(Q(client=user) | Q(freelancer=user))


class RetrieveContractAPIView(generics.RetrieveAPIView):
    serializer_class = my_serializers.ContractSerializer
    permission_classes = [IsAuthenticated, PaymentsEnabled]
    lookup_field = 'id'

    @swagger_auto_schema(
        operation_summary="Retrieve a contract",
        responses={200: my_serializers.ContractSerializer(), 404: "Not found"}
    )
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)

    def get_queryset(self):
        user = self.request.user
        queryset = Contract.objects.select_related('client', 'freelancer', 'escrow')
        if user.is_operator:
            return queryset
        return queryset.filter(Q(client=user) | Q(freelancer=user))


class AcceptProposalAPIView(views.APIView):
    """
    Accepting a proposal creates the contract and its escrow in one step.
    """
    permission_classes = [IsAuthenticated, PaymentsEnabled, IsClient]

    @swagger_auto_schema(
        operation_summary="Accept a proposal and open its escrow",
        request_body=my_serializers.AcceptProposalSerializer,
        responses={
            201: my_serializers.ContractSerializer(),
            400: "Validation error",
            403: "Forbidden",
            409: "Contract already exists",
        }
    )
    def post(self, request):
        serializer = my_serializers.AcceptProposalSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        contract = PaymentEngine().accept_proposal(
            project_id=data['project_id'],
            client=request.user,
            freelancer=User.objects.get(pk=data['freelancer_id']),
            amount=data['amount'],
            proposal_id=data.get('proposal_id'),
            start_date=data.get('start_date'),
            end_date=data.get('end_date'),
        )
        return Response({
            'detail': "Proposal accepted. Contract created.",
            'contract': my_serializers.ContractSerializer(contract).data,
        }, status=status.HTTP_201_CREATED)
