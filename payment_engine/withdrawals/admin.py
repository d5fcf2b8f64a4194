from django.contrib import admin

from .models import WithdrawalRequest


@admin.register(WithdrawalRequest)
class WithdrawalRequestAdmin(admin.ModelAdmin):
    """Resolve requests through the API so the wallet reservation is settled."""

    list_display = ('id', 'requester', 'amount', 'bank_name', 'status', 'processed_by', 'created_at')
    list_filter = ('status',)
    search_fields = ('requester__email', 'account_holder_name', 'bank_name')
    readonly_fields = (
        'requester', 'wallet', 'amount', 'bank_name', 'account_number', 'account_holder_name',
        'status', 'operator_notes', 'processed_by', 'processed_at', 'created_at', 'updated_at',
    )

    def has_add_permission(self, request):
        return False
