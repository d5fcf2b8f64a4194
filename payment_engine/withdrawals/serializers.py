from rest_framework import serializers

from .models import WithdrawalRequest


class WithdrawalRequestSerializer(serializers.ModelSerializer):
    requester_email = serializers.EmailField(source='requester.email', read_only=True)
    processed_by_email = serializers.EmailField(source='processed_by.email', read_only=True, default=None)

    class Meta:
        model = WithdrawalRequest
        fields = (
            'id',
            'requester_id',
            'requester_email',
            'amount',
            'bank_name',
            'account_number',
            'account_holder_name',
            'status',
            'operator_notes',
            'processed_by_email',
            'processed_at',
            'created_at',
            'updated_at',
        )
        read_only_fields = fields


class CreateWithdrawalSerializer(serializers.Serializer):
    # Parsed by the workflow so every amount goes through the same rules.
    amount = serializers.CharField()
    bank_name = serializers.CharField(max_length=100)
    account_number = serializers.CharField(max_length=50)
    account_holder_name = serializers.CharField(max_length=255)


class OperatorNotesSerializer(serializers.Serializer):
    notes = serializers.CharField(required=False, allow_blank=True, default='')


class RejectWithdrawalSerializer(serializers.Serializer):
    notes = serializers.CharField()
