"""
Admin configuration for payments app
"""
from django.contrib import admin
from .models import Payment


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    """Status changes must go through PaymentService so deposits stay in the ledger."""
    list_display = ['receipt_no', 'student', 'amount', 'currency', 'status', 'due_at', 'paid_at', 'created_at']
    list_filter = ['status', 'payment_method', 'created_at']
    search_fields = ['receipt_no', 'student__user__email', 'student__user__last_name']
    readonly_fields = ['status', 'receipt_no', 'paid_at', 'created_at', 'updated_at']
    ordering = ['-created_at']
