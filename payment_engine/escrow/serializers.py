from rest_framework import serializers

from .models import EscrowTransaction, EscrowTransition


class EscrowTransitionSerializer(serializers.ModelSerializer):
    actor_email = serializers.EmailField(source="actor.email", read_only=True)

    class Meta:
        model = EscrowTransition
        fields = (
            "id",
            "action",
            "from_status",
            "to_status",
            "actor_email",
            "created_at",
        )
        read_only_fields = fields


class EscrowTransactionSerializer(serializers.ModelSerializer):
    contract_id = serializers.IntegerField(source="contract.id", read_only=True)
    client_email = serializers.EmailField(source="client.email", read_only=True)
    freelancer_email = serializers.EmailField(source="freelancer.email", read_only=True)

    class Meta:
        model = EscrowTransaction
        fields = (
            "id",
            "contract_id",
            "project_id",
            "client_id",
            "client_email",
            "freelancer_id",
            "freelancer_email",
            "amount",
            "status",
            "last_transition_at",
            "created_at",
            "updated_at",
        )
        read_only_fields = fields


class EscrowActionResultSerializer(serializers.Serializer):
    """Response body of every escrow action: the message plus the updated escrow."""

    message = serializers.CharField()
    escrow = EscrowTransactionSerializer()


class EscrowStatsSerializer(serializers.Serializer):
    total = serializers.IntegerField()
    total_released = serializers.DecimalField(max_digits=14, decimal_places=2)
    total_in_escrow = serializers.DecimalField(max_digits=14, decimal_places=2)
    active_disputes = serializers.IntegerField()
    by_status = serializers.DictField(child=serializers.IntegerField())
