"""
URLs for notifications app.
"""
from django.urls import path
from notifications.views import (
    notifications_view,
    notification_read_view,
    notification_resolve_view,
)

urlpatterns = [
    path('', notifications_view, name='notifications-list'),
    path('<int:notification_id>/read/', notification_read_view, name='notification-read'),
    path('<int:notification_id>/resolve/', notification_resolve_view, name='notification-resolve'),
]
