"""
Course types, courses and student enrollments.
An enrollment decides how completed lessons are billed: from a pre-purchased
hour pool (PACKAGE) or one Payment per lesson (PER_LESSON).
"""
from decimal import Decimal
from django.core.validators import MinValueValidator
from django.db import models
from students.models import StudentProfile, TeacherProfile


class CourseType(models.Model):
    """Catalogue entry, e.g. "English B2 individual". Carries the default per-lesson price."""
    organization = models.ForeignKey(
        'core.Organization',
        on_delete=models.CASCADE,
        related_name='course_types',
        db_column='organization_id',
    )
    name = models.CharField(max_length=255)
    price_per_lesson = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00'),
        validators=[MinValueValidator(Decimal('0.00'))],
    )
    default_duration_minutes = models.PositiveIntegerField(default=60)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'course_types'
        verbose_name = 'Course Type'
        verbose_name_plural = 'Course Types'
        ordering = ['name']

    def __str__(self):
        return self.name


class Course(models.Model):
    organization = models.ForeignKey(
        'core.Organization',
        on_delete=models.CASCADE,
        related_name='courses',
        db_column='organization_id',
    )
    course_type = models.ForeignKey(
        CourseType,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='courses',
    )
    teacher = models.ForeignKey(
        TeacherProfile,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='courses',
    )
    name = models.CharField(max_length=255)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'courses'
        verbose_name = 'Course'
        verbose_name_plural = 'Courses'
        ordering = ['name']

    def __str__(self):
        return self.name


class StudentEnrollment(models.Model):
    """
    Student <-> Course membership with billing mode.
    PACKAGE: hours_used may never exceed hours_purchased (checked when a lesson completes).
    """
    PAYMENT_MODE_PACKAGE = 'PACKAGE'
    PAYMENT_MODE_PER_LESSON = 'PER_LESSON'

    PAYMENT_MODE_CHOICES = [
        (PAYMENT_MODE_PACKAGE, 'Package of hours'),
        (PAYMENT_MODE_PER_LESSON, 'Per lesson'),
    ]

    student = models.ForeignKey(
        StudentProfile,
        on_delete=models.CASCADE,
        related_name='enrollments',
    )
    course = models.ForeignKey(
        Course,
        on_delete=models.CASCADE,
        related_name='enrollments',
    )
    payment_mode = models.CharField(
        max_length=20,
        choices=PAYMENT_MODE_CHOICES,
        default=PAYMENT_MODE_PACKAGE,
        db_index=True,
    )
    hours_purchased = models.DecimalField(
        max_digits=10,
        decimal_places=4,
        default=Decimal('0'),
        validators=[MinValueValidator(Decimal('0'))],
    )
    hours_used = models.DecimalField(
        max_digits=10,
        decimal_places=4,
        default=Decimal('0'),
        validators=[MinValueValidator(Decimal('0'))],
    )
    is_active = models.BooleanField(default=True)
    enrolled_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'student_enrollments'
        verbose_name = 'Student Enrollment'
        verbose_name_plural = 'Student Enrollments'
        ordering = ['-enrolled_at']

    def __str__(self):
        return f"{self.student} - {self.course} ({self.payment_mode})"

    @property
    def remaining_hours(self):
        return (self.hours_purchased or Decimal('0')) - (self.hours_used or Decimal('0'))

    @property
    def is_package(self):
        return self.payment_mode == self.PAYMENT_MODE_PACKAGE
