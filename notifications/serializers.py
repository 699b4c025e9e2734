"""
Serializers for notifications.
"""
from rest_framework import serializers
from notifications.models import Notification


class NotificationSerializer(serializers.ModelSerializer):
    studentId = serializers.IntegerField(source='student.id', read_only=True, allow_null=True)
    studentName = serializers.CharField(source='student.full_name', read_only=True, allow_null=True)
    lessonId = serializers.IntegerField(source='lesson.id', read_only=True, allow_null=True)
    isRead = serializers.BooleanField(source='is_read', read_only=True)
    isResolved = serializers.BooleanField(source='is_resolved', read_only=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)
    resolvedAt = serializers.DateTimeField(source='resolved_at', read_only=True, allow_null=True)

    class Meta:
        model = Notification
        fields = [
            'id',
            'type',
            'studentId',
            'studentName',
            'lessonId',
            'message',
            'isRead',
            'isResolved',
            'createdAt',
            'resolvedAt',
        ]
