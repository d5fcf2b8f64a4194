from rest_framework import serializers
from django.contrib.auth import get_user_model

from .models import Contract

User = get_user_model()


class ContractSerializer(serializers.ModelSerializer):
    client_email = serializers.EmailField(source='client.email', read_only=True)
    freelancer_email = serializers.EmailField(source='freelancer.email', read_only=True)
    escrow_id = serializers.SerializerMethodField()

    class Meta:
        model = Contract
        fields = (
            'id',
            'proposal_id',
            'project_id',
            'client_id',
            'client_email',
            'freelancer_id',
            'freelancer_email',
            'amount',
            'status',
            'start_date',
            'end_date',
            'escrow_id',
            'created_at',
            'updated_at',
        )
        read_only_fields = fields

    def get_escrow_id(self, obj):
        escrow = getattr(obj, 'escrow', None)
        return escrow.pk if escrow else None


class AcceptProposalSerializer(serializers.Serializer):
    """Proposal acceptance as handed over by the project/proposal service."""

    project_id = serializers.IntegerField(min_value=1)
    freelancer_id = serializers.IntegerField()
    amount = serializers.CharField()
    proposal_id = serializers.IntegerField(min_value=1, required=False, allow_null=True)
    start_date = serializers.DateField(required=False, allow_null=True)
    end_date = serializers.DateField(required=False, allow_null=True)

    def validate_freelancer_id(self, value):
        freelancer = User.objects.filter(pk=value, is_active=True).first()
        if freelancer is None:
            raise serializers.ValidationError("Freelancer not found.")
        if freelancer.user_type != 'freelancer':
            raise serializers.ValidationError("The selected user is not a freelancer.")
        return value

    def validate(self, attrs):
        start_date, end_date = attrs.get('start_date'), attrs.get('end_date')
        if start_date and end_date and end_date < start_date:
            raise serializers.ValidationError({'end_date': "End date cannot be before the start date."})
        return attrs
