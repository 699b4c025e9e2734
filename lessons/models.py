"""
Lesson model. Status transitions into and out of COMPLETED drive billing
(see lessons.services.lifecycle).
"""
from django.core.validators import MinValueValidator
from django.db import models
from students.models import StudentProfile, TeacherProfile
from courses.models import Course, StudentEnrollment


class Lesson(models.Model):
    STATUS_SCHEDULED = 'SCHEDULED'
    STATUS_CONFIRMED = 'CONFIRMED'
    STATUS_COMPLETED = 'COMPLETED'
    STATUS_CANCELLED = 'CANCELLED'
    STATUS_PENDING_CONFIRMATION = 'PENDING_CONFIRMATION'
    STATUS_NO_SHOW = 'NO_SHOW'

    STATUS_CHOICES = [
        (STATUS_SCHEDULED, 'Scheduled'),
        (STATUS_CONFIRMED, 'Confirmed'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_CANCELLED, 'Cancelled'),
        (STATUS_PENDING_CONFIRMATION, 'Pending confirmation'),
        (STATUS_NO_SHOW, 'No show'),
    ]

    organization = models.ForeignKey(
        'core.Organization',
        on_delete=models.CASCADE,
        related_name='lessons',
        db_column='organization_id',
    )
    enrollment = models.ForeignKey(
        StudentEnrollment,
        on_delete=models.PROTECT,
        related_name='lessons',
    )
    student = models.ForeignKey(
        StudentProfile,
        on_delete=models.CASCADE,
        related_name='lessons',
    )
    teacher = models.ForeignKey(
        TeacherProfile,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='lessons',
    )
    course = models.ForeignKey(
        Course,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='lessons',
    )
    title = models.CharField(max_length=255)
    scheduled_at = models.DateTimeField(db_index=True)
    duration_minutes = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    # Overrides course_type.price_per_lesson for PER_LESSON billing when set
    teacher_rate = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    status = models.CharField(
        max_length=30,
        choices=STATUS_CHOICES,
        default=STATUS_SCHEDULED,
        db_index=True,
    )
    completed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancellation_reason = models.TextField(blank=True, null=True)
    confirmed_by_teacher_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'lessons'
        verbose_name = 'Lesson'
        verbose_name_plural = 'Lessons'
        ordering = ['-scheduled_at']

    def __str__(self):
        return f"{self.title} - {self.scheduled_at:%Y-%m-%d %H:%M} ({self.status})"

    @property
    def is_completed(self):
        return self.status == self.STATUS_COMPLETED
