"""
Notification models for staff alerts (negative balance, lesson changes).
"""
from django.db import models
from accounts.models import User
from students.models import StudentProfile


class Notification(models.Model):
    """
    In-app notifications. BALANCE_NEGATIVE is an alert: at most one unresolved per student.
    """
    TYPE_LESSON_CANCELLED = "LESSON_CANCELLED"
    TYPE_LESSON_RESCHEDULED = "LESSON_RESCHEDULED"
    TYPE_LESSON_CONFIRMED = "LESSON_CONFIRMED"
    TYPE_BALANCE_NEGATIVE = "BALANCE_NEGATIVE"

    TYPE_CHOICES = [
        (TYPE_LESSON_CANCELLED, "Lesson cancelled"),
        (TYPE_LESSON_RESCHEDULED, "Lesson rescheduled"),
        (TYPE_LESSON_CONFIRMED, "Lesson confirmed"),
        (TYPE_BALANCE_NEGATIVE, "Balance negative"),
    ]

    organization = models.ForeignKey(
        'core.Organization',
        on_delete=models.CASCADE,
        related_name="notifications",
        db_column='organization_id',
    )
    type = models.CharField(max_length=50, choices=TYPE_CHOICES, db_index=True)
    recipient = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="notifications",
    )
    student = models.ForeignKey(
        StudentProfile,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="notifications",
    )
    lesson = models.ForeignKey(
        'lessons.Lesson',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="notifications",
    )
    message = models.TextField()
    is_read = models.BooleanField(default=False, db_index=True)
    is_resolved = models.BooleanField(default=False, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    resolved_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "notifications"
        verbose_name = "Notification"
        verbose_name_plural = "Notifications"
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["student", "type"],
                condition=models.Q(type="BALANCE_NEGATIVE", is_resolved=False),
                name="unique_open_balance_alert_per_student",
            ),
        ]
        indexes = [
            models.Index(fields=["type", "is_read", "is_resolved"], name="notif_type_read_resolved_idx"),
            models.Index(fields=["student", "is_resolved"], name="notif_student_resolved_idx"),
        ]

    def __str__(self):
        return f"{self.type} - {self.student.full_name if self.student else 'General'} - {self.created_at}"
