"""
Student budget (running balance) and its append-only transaction log.

current_balance may go negative (debt). Every change to it is written together
with one BalanceTransaction whose balance_before/balance_after chain onto the
previous row of the same budget.
"""
from decimal import Decimal
from django.db import models
from accounts.models import User
from students.models import StudentProfile


class StudentBudget(models.Model):
    """One per student; created lazily on first ledger use."""
    student = models.OneToOneField(
        StudentProfile,
        on_delete=models.CASCADE,
        related_name='budget',
    )
    organization = models.ForeignKey(
        'core.Organization',
        on_delete=models.CASCADE,
        related_name='student_budgets',
        db_column='organization_id',
    )
    current_balance = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00'),
        # No MinValueValidator: balance may go negative (debt)
    )
    currency = models.CharField(max_length=3, default='PLN')
    created_at = models.DateTimeField(auto_now_add=True)
    last_updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'student_budgets'
        verbose_name = 'Student Budget'
        verbose_name_plural = 'Student Budgets'

    def __str__(self):
        return f"{self.student} - {self.current_balance} {self.currency}"


class BalanceTransaction(models.Model):
    """
    Ledger row. amount is always stored positive; the sign comes from type
    (ADJUSTMENT: from metadata['adjustmentType']).
    A lesson can be charged again after it was refunded. lesson_cycle numbers
    those rounds (0, 1, ...); each round holds at most one LESSON_CHARGE and one
    LESSON_REFUND (unique constraints).
    """
    TYPE_DEPOSIT = 'DEPOSIT'
    TYPE_LESSON_CHARGE = 'LESSON_CHARGE'
    TYPE_LESSON_REFUND = 'LESSON_REFUND'
    TYPE_CANCELLATION_FEE = 'CANCELLATION_FEE'
    TYPE_ADJUSTMENT = 'ADJUSTMENT'
    TYPE_REFUND = 'REFUND'

    TYPE_CHOICES = [
        (TYPE_DEPOSIT, 'Deposit'),
        (TYPE_LESSON_CHARGE, 'Lesson charge'),
        (TYPE_LESSON_REFUND, 'Lesson refund'),
        (TYPE_CANCELLATION_FEE, 'Cancellation fee'),
        (TYPE_ADJUSTMENT, 'Manual adjustment'),
        (TYPE_REFUND, 'Deposit reverted'),
    ]

    CREDIT_TYPES = frozenset({TYPE_DEPOSIT, TYPE_LESSON_REFUND})
    DEBIT_TYPES = frozenset({TYPE_LESSON_CHARGE, TYPE_CANCELLATION_FEE, TYPE_REFUND})

    ADJUSTMENT_CREDIT = 'CREDIT'
    ADJUSTMENT_DEBIT = 'DEBIT'

    budget = models.ForeignKey(
        StudentBudget,
        on_delete=models.PROTECT,
        related_name='transactions',
    )
    type = models.CharField(max_length=30, choices=TYPE_CHOICES, db_index=True)
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    balance_before = models.DecimalField(max_digits=12, decimal_places=2)
    balance_after = models.DecimalField(max_digits=12, decimal_places=2)
    currency = models.CharField(max_length=3, default='PLN')
    lesson = models.ForeignKey(
        'lessons.Lesson',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='balance_transactions',
    )
    payment = models.ForeignKey(
        'payments.Payment',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='balance_transactions',
    )
    created_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='balance_transactions_created',
    )
    lesson_cycle = models.PositiveIntegerField(null=True, blank=True)
    description = models.CharField(max_length=500, blank=True, default='')
    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        db_table = 'balance_transactions'
        verbose_name = 'Balance Transaction'
        verbose_name_plural = 'Balance Transactions'
        ordering = ['-created_at', '-id']
        constraints = [
            models.UniqueConstraint(
                fields=['lesson', 'lesson_cycle'],
                condition=models.Q(type='LESSON_CHARGE'),
                name='unique_lesson_charge_per_cycle',
            ),
            models.UniqueConstraint(
                fields=['lesson', 'lesson_cycle'],
                condition=models.Q(type='LESSON_REFUND'),
                name='unique_lesson_refund_per_cycle',
            ),
            models.CheckConstraint(
                condition=models.Q(amount__gte=0),
                name='balance_transaction_amount_non_negative',
            ),
        ]

    def __str__(self):
        return f"{self.type} {self.amount} {self.currency} ({self.balance_before} -> {self.balance_after})"

    @property
    def signed_amount(self):
        """amount with the sign this transaction applied to the balance."""
        if self.type in self.CREDIT_TYPES:
            return self.amount
        if self.type in self.DEBIT_TYPES:
            return -self.amount
        if (self.metadata or {}).get('adjustmentType') == self.ADJUSTMENT_DEBIT:
            return -self.amount
        return self.amount
