"""
Notification views for staff (admins and teachers).
"""
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework import status
from django.db.models import Q

from accounts.permissions import IsStaffMember
from core.container import get_services
from core.utils import filter_by_organization, belongs_to_user_organization
from notifications.models import Notification
from notifications.serializers import NotificationSerializer


def _staff_notifications(request):
    qs = Notification.objects.filter(is_resolved=False).select_related('student__user', 'lesson')
    qs = filter_by_organization(qs, request.user)
    # Alerts have no recipient; lesson notices are per user
    return qs.filter(Q(recipient__isnull=True) | Q(recipient=request.user))


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStaffMember])
def notifications_view(request):
    """
    GET /api/notifications/
    Active (unresolved) notifications for the user's organization.
    """
    qs = _staff_notifications(request).order_by('-created_at')
    return Response({
        'notifications': NotificationSerializer(qs, many=True).data,
        'unreadCount': qs.filter(is_read=False).count(),
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsStaffMember])
def notification_read_view(request, notification_id):
    """POST /api/notifications/{id}/read/"""
    try:
        notification = Notification.objects.get(id=notification_id)
    except Notification.DoesNotExist:
        return Response({'detail': 'Notification not found'}, status=status.HTTP_404_NOT_FOUND)
    if not belongs_to_user_organization(notification, request.user):
        return Response({'detail': 'Access denied'}, status=status.HTTP_403_FORBIDDEN)

    notification.is_read = True
    notification.save(update_fields=['is_read'])
    return Response({'detail': 'Marked as read'})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsStaffMember])
def notification_resolve_view(request, notification_id):
    """POST /api/notifications/{id}/resolve/"""
    try:
        notification = Notification.objects.get(id=notification_id)
    except Notification.DoesNotExist:
        return Response({'detail': 'Notification not found'}, status=status.HTTP_404_NOT_FOUND)
    if not belongs_to_user_organization(notification, request.user):
        return Response({'detail': 'Access denied'}, status=status.HTTP_403_FORBIDDEN)

    get_services().notifier.resolve(notification)
    return Response({'detail': 'Resolved'})
