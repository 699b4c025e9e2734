"""
Balance ledger: the only writer of StudentBudget.current_balance and BalanceTransaction rows.

Every mutating method takes a UnitOfWork, locks the student's budget row
(select_for_update) and writes the budget update and the new ledger row in one
atomic block, so concurrent calls for the same student apply one after another.
A lesson has at most one active charge: a new charge is written only once the
previous one was refunded. Checked after the lock is taken and backed by
per-cycle partial unique constraints.
"""
import logging
from datetime import date, datetime
from decimal import Decimal

from django.db import IntegrityError
from django.db.models import Count, Q

from balance.models import BalanceTransaction, StudentBudget
from balance.services.results import (
    BalanceUpdateResult,
    ChainBreak,
    ChainReport,
    LedgerOutcome,
)
from core.exceptions import BudgetNotFoundError, LedgerValidationError
from core.utils import to_money

logger = logging.getLogger(__name__)

MAX_HISTORY_LIMIT = 200


class BalanceLedger:

    def __init__(self, default_currency='PLN', recent_limit=10):
        self.default_currency = default_currency
        self.recent_limit = recent_limit

    # -- budget rows -------------------------------------------------------

    def get_or_create_budget(self, student_id, organization_id):
        """
        Return the student's budget, creating it with balance 0 on first use.
        A concurrent first use is resolved by get_or_create re-reading the row
        the other request inserted.
        """
        budget, created = StudentBudget.objects.get_or_create(
            student_id=student_id,
            defaults={
                'organization_id': organization_id,
                'current_balance': Decimal('0.00'),
                'currency': self.default_currency,
            },
        )
        if created:
            logger.info(f"[ledger] Created budget id={budget.id} for student_id={student_id}")
        return budget

    def _lock_budget(self, student_id):
        return StudentBudget.objects.select_for_update().filter(student_id=student_id).first()

    def _lock_or_create_budget(self, student_id, organization_id):
        budget = self._lock_budget(student_id)
        if budget is None:
            self.get_or_create_budget(student_id, organization_id)
            budget = self._lock_budget(student_id)
        return budget

    def _apply(self, budget, tx_type, amount, delta, description, **links):
        """Write the new balance and its ledger row. Caller holds the budget lock."""
        previous_balance = budget.current_balance
        new_balance = to_money(previous_balance + delta)
        budget.current_balance = new_balance
        budget.save(update_fields=['current_balance', 'last_updated_at'])

        transaction_row = BalanceTransaction.objects.create(
            budget=budget,
            type=tx_type,
            amount=amount,
            balance_before=previous_balance,
            balance_after=new_balance,
            currency=budget.currency,
            description=description,
            lesson_id=links.get('lesson_id'),
            payment_id=links.get('payment_id'),
            created_by_id=links.get('created_by_id'),
            lesson_cycle=links.get('lesson_cycle'),
            metadata=links.get('metadata') or {},
        )
        logger.info(
            f"[ledger] {tx_type}: budget_id={budget.id}, amount={amount}, "
            f"balance {previous_balance} -> {new_balance}, transaction_id={transaction_row.id}"
        )
        return BalanceUpdateResult(
            budget_id=budget.id,
            previous_balance=previous_balance,
            new_balance=new_balance,
            transaction_id=transaction_row.id,
        )

    @staticmethod
    def _positive(amount, what):
        value = to_money(amount)
        if value <= 0:
            raise LedgerValidationError(f'{what} must be greater than 0 (got {value})')
        return value

    # -- mutations ---------------------------------------------------------

    def add_deposit(self, uow, student_id, organization_id, amount, payment_id, description=None):
        """
        Increase the balance by amount and log a DEPOSIT tagged with payment_id.
        Does not deduplicate by payment_id: the payment service only calls this on
        a transition into COMPLETED.
        """
        amount = self._positive(amount, 'Deposit amount')
        with uow.atomic():
            budget = self._lock_or_create_budget(student_id, organization_id)
            return self._apply(
                budget,
                BalanceTransaction.TYPE_DEPOSIT,
                amount,
                amount,
                description or 'Deposit',
                payment_id=payment_id,
            )

    def charge_for_lesson(self, uow, student_id, organization_id, lesson_id, amount, lesson_title):
        """
        Decrease the balance (may go negative) unless the lesson has an active charge.
        A lesson refunded earlier is charged again as a new cycle.
        """
        amount = self._positive(amount, 'Lesson charge')
        try:
            with uow.atomic():
                budget = self._lock_or_create_budget(student_id, organization_id)
                charges, refunds = self._lesson_charge_counts(lesson_id)
                if charges > refunds:
                    logger.info(f"[ledger] Lesson {lesson_id} already charged, skipping")
                    return LedgerOutcome.already_applied(f'Lesson {lesson_id} already charged')
                result = self._apply(
                    budget,
                    BalanceTransaction.TYPE_LESSON_CHARGE,
                    amount,
                    -amount,
                    f'Lesson: {lesson_title}',
                    lesson_id=lesson_id,
                    lesson_cycle=charges,
                )
        except IntegrityError:
            # unique_lesson_charge_per_cycle: a concurrent request charged this cycle first
            if not self.is_lesson_charged(lesson_id):
                raise
            logger.info(f"[ledger] Lesson {lesson_id} charged concurrently, skipping")
            return LedgerOutcome.already_applied(f'Lesson {lesson_id} already charged')
        return LedgerOutcome.ok(result)

    def refund_lesson(self, uow, student_id, organization_id, lesson_id, lesson_title):
        """
        Give back exactly the active charge for lesson_id.
        NOT_FOUND if the lesson was never charged, ALREADY_APPLIED if its last charge is refunded.
        """
        try:
            with uow.atomic():
                budget = self._lock_budget(student_id)
                charges, refunds = self._lesson_charge_counts(lesson_id)
                if charges == 0:
                    logger.info(f"[ledger] No charge found for lesson {lesson_id}, skipping refund")
                    return LedgerOutcome.not_found(f'No charge found for lesson {lesson_id}')
                if refunds >= charges:
                    logger.info(f"[ledger] Lesson {lesson_id} already refunded, skipping")
                    return LedgerOutcome.already_applied(f'Lesson {lesson_id} already refunded')
                if budget is None:
                    raise BudgetNotFoundError(student_id, 'lesson refund')
                cycle = charges - 1
                original_charge = BalanceTransaction.objects.get(
                    lesson_id=lesson_id,
                    type=BalanceTransaction.TYPE_LESSON_CHARGE,
                    lesson_cycle=cycle,
                )
                result = self._apply(
                    budget,
                    BalanceTransaction.TYPE_LESSON_REFUND,
                    original_charge.amount,
                    original_charge.amount,
                    f'Refund for lesson: {lesson_title}',
                    lesson_id=lesson_id,
                    lesson_cycle=cycle,
                )
        except IntegrityError:
            if self.is_lesson_charged(lesson_id):
                raise
            logger.info(f"[ledger] Lesson {lesson_id} refunded concurrently, skipping")
            return LedgerOutcome.already_applied(f'Lesson {lesson_id} already refunded')
        return LedgerOutcome.ok(result)

    def charge_cancellation_fee(self, uow, student_id, organization_id, lesson_id, amount, lesson_title):
        amount = self._positive(amount, 'Cancellation fee')
        with uow.atomic():
            budget = self._lock_or_create_budget(student_id, organization_id)
            return self._apply(
                budget,
                BalanceTransaction.TYPE_CANCELLATION_FEE,
                amount,
                -amount,
                f'Cancellation fee: {lesson_title}',
                lesson_id=lesson_id,
            )

    def adjust_balance(self, uow, student_id, organization_id, amount, description, created_by_id=None):
        """Manual correction. Positive amount credits, negative debits; stored as abs(amount)."""
        amount = to_money(amount)
        if amount == 0:
            raise LedgerValidationError('Adjustment amount must not be 0')
        if not (description or '').strip():
            raise LedgerValidationError('Adjustment description is required')
        direction = (
            BalanceTransaction.ADJUSTMENT_CREDIT if amount > 0 else BalanceTransaction.ADJUSTMENT_DEBIT
        )
        with uow.atomic():
            budget = self._lock_or_create_budget(student_id, organization_id)
            return self._apply(
                budget,
                BalanceTransaction.TYPE_ADJUSTMENT,
                abs(amount),
                amount,
                description.strip(),
                created_by_id=created_by_id,
                metadata={'adjustmentType': direction},
            )

    def revert_deposit(self, uow, student_id, payment_id, description=None):
        """Take back the DEPOSIT recorded for payment_id. NOT_FOUND if there is none."""
        with uow.atomic():
            budget = self._lock_budget(student_id)
            original_deposit = BalanceTransaction.objects.filter(
                payment_id=payment_id,
                type=BalanceTransaction.TYPE_DEPOSIT,
            ).order_by('-created_at', '-id').first()
            if original_deposit is None:
                logger.info(f"[ledger] No deposit found for payment {payment_id}, skipping revert")
                return LedgerOutcome.not_found(f'No deposit found for payment {payment_id}')
            if budget is None:
                raise BudgetNotFoundError(student_id, 'deposit revert')
            result = self._apply(
                budget,
                BalanceTransaction.TYPE_REFUND,
                original_deposit.amount,
                -original_deposit.amount,
                description or 'Deposit reverted',
                payment_id=payment_id,
            )
        return LedgerOutcome.ok(result)

    # -- queries -----------------------------------------------------------

    def _lesson_charge_counts(self, lesson_id):
        counts = BalanceTransaction.objects.filter(lesson_id=lesson_id).aggregate(
            charges=Count('id', filter=Q(type=BalanceTransaction.TYPE_LESSON_CHARGE)),
            refunds=Count('id', filter=Q(type=BalanceTransaction.TYPE_LESSON_REFUND)),
        )
        return counts['charges'], counts['refunds']

    def is_lesson_charged(self, lesson_id):
        """True while the lesson's latest charge has not been refunded."""
        charges, refunds = self._lesson_charge_counts(lesson_id)
        return charges > refunds

    def get_student_balance(self, student_id, organization_id):
        from balance.serializers import BalanceTransactionSerializer

        budget = self.get_or_create_budget(student_id, organization_id)
        recent = budget.transactions.order_by('-created_at', '-id')[:self.recent_limit]
        return {
            'balance': float(budget.current_balance),
            'currency': budget.currency,
            'lastUpdatedAt': budget.last_updated_at,
            'recentTransactions': BalanceTransactionSerializer(recent, many=True).data,
        }

    def get_transaction_history(self, student_id, organization_id, limit=50, offset=0,
                                type=None, date_from=None, date_to=None):
        from balance.serializers import BalanceTransactionSerializer

        limit = max(1, min(int(limit), MAX_HISTORY_LIMIT))
        offset = max(0, int(offset))
        budget = self.get_or_create_budget(student_id, organization_id)

        qs = budget.transactions.all()
        if type:
            if type not in dict(BalanceTransaction.TYPE_CHOICES):
                raise LedgerValidationError(f'Unknown transaction type: {type}')
            qs = qs.filter(type=type)
        qs = self._filter_dates(qs, date_from, date_to)

        total = qs.count()
        page = list(qs.order_by('-created_at', '-id')[offset:offset + limit])
        return {
            'transactions': BalanceTransactionSerializer(page, many=True).data,
            'pagination': {
                'total': total,
                'limit': limit,
                'offset': offset,
                'hasMore': offset + len(page) < total,
            },
            'currentBalance': float(budget.current_balance),
            'currency': budget.currency,
        }

    @staticmethod
    def _filter_dates(qs, date_from, date_to):
        # datetime is a subclass of date, check it first
        if isinstance(date_from, datetime):
            qs = qs.filter(created_at__gte=date_from)
        elif isinstance(date_from, date):
            qs = qs.filter(created_at__date__gte=date_from)
        if isinstance(date_to, datetime):
            qs = qs.filter(created_at__lte=date_to)
        elif isinstance(date_to, date):
            qs = qs.filter(created_at__date__lte=date_to)
        return qs

    def verify_chain(self, student_id):
        """Walk the student's ledger oldest-first and report every break in the chain."""
        budget = StudentBudget.objects.filter(student_id=student_id).first()
        if budget is None:
            return ChainReport(budget_id=None)

        report = ChainReport(budget_id=budget.id, current_balance=budget.current_balance)
        previous = None
        for row in budget.transactions.order_by('created_at', 'id').iterator():
            report.transaction_count += 1
            expected_after = to_money(row.balance_before + row.signed_amount)
            if expected_after != row.balance_after:
                report.breaks.append(ChainBreak(
                    kind='arithmetic',
                    transaction_id=row.id,
                    previous_transaction_id=previous.id if previous else None,
                    expected=expected_after,
                    found=row.balance_after,
                ))
            expected_before = previous.balance_after if previous else Decimal('0.00')
            if row.balance_before != expected_before:
                report.breaks.append(ChainBreak(
                    kind='link',
                    transaction_id=row.id,
                    previous_transaction_id=previous.id if previous else None,
                    expected=expected_before,
                    found=row.balance_before,
                ))
            previous = row
        report.last_balance_after = previous.balance_after if previous else None
        return report
