"""
Student and Teacher profiles.
StudentProfile carries the billing preferences used when a per-lesson payment is created.
"""
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from accounts.models import User


class StudentProfile(models.Model):
    """
    Student Profile: OneToOne with User (role=student).
    Soft delete: deleted_at set instead of row delete.
    """
    user = models.OneToOneField(
        User,
        on_delete=models.CASCADE,
        related_name='student_profile',
        limit_choices_to={'role': 'student'},
    )
    organization = models.ForeignKey(
        'core.Organization',
        on_delete=models.CASCADE,
        related_name='students',
        db_column='organization_id',
    )
    # Per-lesson payment due date: day of month wins over N days; neither means due immediately
    payment_due_day_of_month = models.PositiveSmallIntegerField(
        null=True,
        blank=True,
        validators=[MinValueValidator(1), MaxValueValidator(31)],
    )
    payment_due_days = models.PositiveIntegerField(null=True, blank=True)
    notes = models.TextField(blank=True, null=True)
    is_deleted = models.BooleanField(default=False, db_index=True)
    deleted_at = models.DateTimeField(null=True, blank=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'student_profiles'
        verbose_name = 'Student Profile'
        verbose_name_plural = 'Student Profiles'
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.user.full_name} ({self.user.email})"

    def save(self, *args, **kwargs):
        self.is_deleted = self.deleted_at is not None
        super().save(*args, **kwargs)

    @property
    def full_name(self):
        return self.user.full_name

    @property
    def email(self):
        return self.user.email


class TeacherProfile(models.Model):
    """Teacher Profile: OneToOne with User (role=teacher)."""
    user = models.OneToOneField(
        User,
        on_delete=models.CASCADE,
        related_name='teacher_profile',
        limit_choices_to={'role': 'teacher'},
    )
    organization = models.ForeignKey(
        'core.Organization',
        on_delete=models.CASCADE,
        related_name='teachers',
        db_column='organization_id',
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'teacher_profiles'
        verbose_name = 'Teacher Profile'
        verbose_name_plural = 'Teacher Profiles'

    def __str__(self):
        return str(self.user)
