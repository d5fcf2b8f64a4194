from django.conf import settings
from rest_framework import serializers

from .models import Wallet, WalletTransaction


class WalletSerializer(serializers.ModelSerializer):
    currency = serializers.SerializerMethodField()

    class Meta:
        model = Wallet
        fields = (
            'id',
            'available_balance',
            'pending_balance',
            'total_earned',
            'currency',
            'updated_at',
        )
        read_only_fields = fields

    def get_currency(self, obj):
        return settings.PAYMENTS_CURRENCY


class WalletTransactionSerializer(serializers.ModelSerializer):
    class Meta:
        model = WalletTransaction
        fields = (
            'id',
            'type',
            'balance',
            'amount',
            'description',
            'reference_type',
            'reference_id',
            'balance_after',
            'created_at',
        )
        read_only_fields = fields


class ReconcileReportSerializer(serializers.Serializer):
    wallet_id = serializers.IntegerField()
    user_id = serializers.IntegerField()
    available_balance = serializers.DecimalField(max_digits=14, decimal_places=2)
    expected_available_balance = serializers.DecimalField(max_digits=14, decimal_places=2)
    pending_balance = serializers.DecimalField(max_digits=14, decimal_places=2)
    expected_pending_balance = serializers.DecimalField(max_digits=14, decimal_places=2)
    total_earned = serializers.DecimalField(max_digits=14, decimal_places=2)
    expected_total_earned = serializers.DecimalField(max_digits=14, decimal_places=2)
    reserved = serializers.DecimalField(max_digits=14, decimal_places=2)
