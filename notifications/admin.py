from django.contrib import admin
from .models import Notification


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ['type', 'student', 'recipient', 'is_read', 'is_resolved', 'created_at']
    list_filter = ['type', 'is_read', 'is_resolved']
    search_fields = ['message', 'student__user__email']
    readonly_fields = ['created_at', 'resolved_at']
