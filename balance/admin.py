"""
Admin configuration for balance app. Read-only: every write goes through BalanceLedger.
"""
from django.contrib import admin
from .models import StudentBudget, BalanceTransaction


class ReadOnlyAdminMixin:
    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(StudentBudget)
class StudentBudgetAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ['student', 'organization', 'current_balance', 'currency', 'last_updated_at']
    list_filter = ['organization', 'currency']
    search_fields = ['student__user__email', 'student__user__last_name']


@admin.register(BalanceTransaction)
class BalanceTransactionAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ['budget', 'type', 'amount', 'balance_before', 'balance_after', 'lesson', 'payment', 'created_at']
    list_filter = ['type', 'created_at']
    search_fields = ['budget__student__user__email', 'description']
    ordering = ['-created_at', '-id']
