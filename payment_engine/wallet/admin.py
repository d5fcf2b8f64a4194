from django.contrib import admin

from .models import Wallet, WalletTransaction


@admin.register(Wallet)
class WalletAdmin(admin.ModelAdmin):
    list_display = ('id', 'user', 'available_balance', 'pending_balance', 'total_earned', 'updated_at')
    search_fields = ('user__email',)
    readonly_fields = ('user', 'available_balance', 'pending_balance', 'total_earned', 'created_at', 'updated_at')

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(WalletTransaction)
class WalletTransactionAdmin(admin.ModelAdmin):
    """The ledger is append-only: viewable, never editable."""

    list_display = ('id', 'wallet', 'type', 'balance', 'amount', 'reference_type', 'reference_id', 'created_at')
    list_filter = ('type', 'balance', 'reference_type')
    search_fields = ('wallet__user__email', 'description')

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
