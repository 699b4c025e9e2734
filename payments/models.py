"""
Payment models
"""
import uuid
from decimal import Decimal
from django.core.validators import MinValueValidator
from django.db import models
from accounts.models import User
from students.models import StudentProfile
from courses.models import StudentEnrollment


class Payment(models.Model):
    """
    Payment record. PER_LESSON enrollments get one automatically created
    PENDING payment per completed lesson; COMPLETED payments feed the student's
    balance ledger as deposits.
    """
    STATUS_PENDING = 'PENDING'
    STATUS_COMPLETED = 'COMPLETED'
    STATUS_FAILED = 'FAILED'
    STATUS_REFUNDED = 'REFUNDED'
    STATUS_CANCELLED = 'CANCELLED'

    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_FAILED, 'Failed'),
        (STATUS_REFUNDED, 'Refunded'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]
    # A lesson may carry at most one payment in one of these states
    NON_TERMINAL_STATUSES = (STATUS_PENDING, STATUS_COMPLETED)

    METHOD_CASH = 'CASH'
    METHOD_BANK_TRANSFER = 'BANK_TRANSFER'
    METHOD_STRIPE = 'STRIPE'

    METHOD_CHOICES = [
        (METHOD_CASH, 'Cash'),
        (METHOD_BANK_TRANSFER, 'Bank Transfer'),
        (METHOD_STRIPE, 'Stripe'),
    ]

    organization = models.ForeignKey(
        'core.Organization',
        on_delete=models.CASCADE,
        related_name='payments',
        db_column='organization_id',
    )
    student = models.ForeignKey(
        StudentProfile,
        on_delete=models.CASCADE,
        related_name='payments',
    )
    enrollment = models.ForeignKey(
        StudentEnrollment,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='payments',
    )
    lesson = models.ForeignKey(
        'lessons.Lesson',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='payments',
    )
    amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.00'))],
    )
    currency = models.CharField(max_length=3, default='PLN')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True)
    payment_method = models.CharField(max_length=20, choices=METHOD_CHOICES, default=METHOD_CASH)
    notes = models.TextField(blank=True, null=True)
    receipt_no = models.CharField(max_length=50, unique=True, blank=True, null=True)
    due_at = models.DateField(null=True, blank=True, db_index=True)
    paid_at = models.DateTimeField(null=True, blank=True)
    created_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='created_payments',
        db_column='created_by_id',
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'payments'
        verbose_name = 'Payment'
        verbose_name_plural = 'Payments'
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(
                fields=['lesson'],
                condition=models.Q(status__in=['PENDING', 'COMPLETED']),
                name='unique_open_payment_per_lesson',
            ),
        ]

    def __str__(self):
        return f"Payment {self.receipt_no or self.id} - {self.student} - {self.amount} ({self.status})"

    @property
    def is_completed(self):
        return self.status == self.STATUS_COMPLETED

    def save(self, *args, **kwargs):
        """Generate receipt number if not provided"""
        if not self.receipt_no:
            self.receipt_no = f"PAY-{uuid.uuid4().hex[:8].upper()}"
        super().save(*args, **kwargs)
