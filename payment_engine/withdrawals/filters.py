import django_filters

from .models import WithdrawalRequest


class WithdrawalRequestFilter(django_filters.FilterSet):
    status = django_filters.ChoiceFilter(choices=WithdrawalRequest.STATUS_CHOICES)
    requester = django_filters.NumberFilter(field_name='requester_id')
    created_after = django_filters.DateTimeFilter(field_name='created_at', lookup_expr='gte')

    class Meta:
        model = WithdrawalRequest
        fields = ['status', 'requester', 'created_after']
