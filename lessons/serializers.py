"""
Serializers for lessons app
"""
from rest_framework import serializers
from .models import Lesson


class LessonSerializer(serializers.ModelSerializer):
    enrollmentId = serializers.IntegerField(source='enrollment_id', read_only=True)
    studentId = serializers.IntegerField(source='student_id', read_only=True)
    studentName = serializers.CharField(source='student.full_name', read_only=True)
    teacherId = serializers.IntegerField(source='teacher_id', read_only=True, allow_null=True)
    courseId = serializers.IntegerField(source='course_id', read_only=True, allow_null=True)
    scheduledAt = serializers.DateTimeField(source='scheduled_at', read_only=True)
    durationMinutes = serializers.IntegerField(source='duration_minutes', read_only=True)
    teacherRate = serializers.DecimalField(source='teacher_rate', max_digits=12, decimal_places=2,
                                           read_only=True, allow_null=True)
    completedAt = serializers.DateTimeField(source='completed_at', read_only=True, allow_null=True)
    cancelledAt = serializers.DateTimeField(source='cancelled_at', read_only=True, allow_null=True)
    cancellationReason = serializers.CharField(source='cancellation_reason', read_only=True, allow_null=True)
    confirmedByTeacherAt = serializers.DateTimeField(source='confirmed_by_teacher_at', read_only=True,
                                                     allow_null=True)

    class Meta:
        model = Lesson
        fields = [
            'id', 'title', 'status', 'enrollmentId', 'studentId', 'studentName', 'teacherId', 'courseId',
            'scheduledAt', 'durationMinutes', 'teacherRate', 'completedAt', 'cancelledAt',
            'cancellationReason', 'confirmedByTeacherAt',
        ]

    def to_representation(self, instance):
        data = super().to_representation(instance)
        if data.get('teacherRate') is not None:
            data['teacherRate'] = float(data['teacherRate'])
        return data


class LessonUpdateSerializer(serializers.Serializer):
    """PATCH body (frontend format). Only provided keys are changed."""
    title = serializers.CharField(max_length=255, required=False)
    scheduledAt = serializers.DateTimeField(required=False)
    durationMinutes = serializers.IntegerField(required=False, min_value=1)
    status = serializers.ChoiceField(choices=Lesson.STATUS_CHOICES, required=False)
    teacherRate = serializers.DecimalField(max_digits=12, decimal_places=2, required=False,
                                           allow_null=True, min_value=0)
    cancellationReason = serializers.CharField(required=False, allow_blank=True, allow_null=True)

    FIELD_MAP = {
        'title': 'title',
        'scheduledAt': 'scheduled_at',
        'durationMinutes': 'duration_minutes',
        'status': 'status',
        'teacherRate': 'teacher_rate',
        'cancellationReason': 'cancellation_reason',
    }

    def to_changes(self):
        return {self.FIELD_MAP[key]: value for key, value in self.validated_data.items()}
