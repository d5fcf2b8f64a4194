from django.contrib import admin

from .models import EscrowTransaction, EscrowTransition


class EscrowTransitionInline(admin.TabularInline):
    model = EscrowTransition
    extra = 0
    can_delete = False
    readonly_fields = ('action', 'from_status', 'to_status', 'actor', 'created_at')

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(EscrowTransaction)
class EscrowTransactionAdmin(admin.ModelAdmin):
    """Escrow status only changes through the payment engine, so everything is read-only here."""

    list_display = ('id', 'contract', 'client', 'freelancer', 'amount', 'status', 'last_transition_at')
    list_filter = ('status',)
    search_fields = ('client__email', 'freelancer__email', 'project_id')
    readonly_fields = (
        'contract', 'project_id', 'client', 'freelancer', 'amount', 'status', 'version',
        'last_actor', 'last_transition_at', 'created_at', 'updated_at',
    )
    inlines = [EscrowTransitionInline]

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
