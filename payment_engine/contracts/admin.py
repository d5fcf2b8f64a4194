from django.contrib import admin

from .models import Contract


@admin.register(Contract)
class ContractAdmin(admin.ModelAdmin):
    list_display = ('id', 'project_id', 'client', 'freelancer', 'amount', 'status', 'created_at')
    list_filter = ('status',)
    search_fields = ('client__email', 'freelancer__email', 'project_id', 'proposal_id')
    readonly_fields = ('amount', 'created_at', 'updated_at')
