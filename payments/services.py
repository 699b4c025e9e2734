"""
Payment service: payment records and their effect on the balance ledger.

A payment entering COMPLETED records a DEPOSIT; leaving COMPLETED reverts it.
Both happen in the same atomic block as the payment row update. Emails and
alert resolution run after commit and never fail the request.
"""
import logging
from collections import OrderedDict
from decimal import Decimal

from django.utils import timezone

from core.exceptions import (
    LedgerValidationError,
    PaymentLockedError,
    PaymentNotFoundError,
    StudentNotFoundError,
)
from core.utils import to_money
from payments.models import Payment
from students.models import StudentProfile

logger = logging.getLogger(__name__)

LESSON_PAYMENT_NOTE = 'Lesson payment - created automatically when the lesson was completed'
UPDATABLE_FIELDS = ('amount', 'status', 'payment_method', 'notes', 'paid_at', 'due_at')


class PaymentService:

    def __init__(self, ledger, notifier):
        self.ledger = ledger
        self.notifier = notifier

    def get_payment(self, payment_id, organization_id, lock=False):
        qs = Payment.objects.select_related('student__user')
        if lock:
            qs = qs.select_for_update(of=('self',))
        payment = qs.filter(id=payment_id, organization_id=organization_id).first()
        if payment is None:
            raise PaymentNotFoundError(payment_id)
        return payment

    def _record_deposit(self, uow, payment):
        amount = to_money(payment.amount)
        if amount <= 0:
            logger.info(f"[payments] Payment {payment.id} completed with amount 0, no deposit recorded")
            return None
        result = self.ledger.add_deposit(
            uow,
            student_id=payment.student_id,
            organization_id=payment.organization_id,
            amount=amount,
            payment_id=payment.id,
            description=payment.notes or 'Payment',
        )
        uow.on_commit(self.notifier.resolve_balance_alerts, 'resolve balance alerts', payment.student_id)
        uow.on_commit(self.notifier.send_payment_confirmation, 'payment confirmation email', payment.id)
        return result

    def create_payment(self, uow, organization_id, student_id, amount, payment_method=Payment.METHOD_CASH,
                       status=Payment.STATUS_PENDING, enrollment_id=None, currency=None, notes=None,
                       paid_at=None, due_at=None, created_by=None):
        amount = to_money(amount)
        if amount < 0:
            raise LedgerValidationError('Payment amount must not be negative')
        if not StudentProfile.objects.filter(
            id=student_id, organization_id=organization_id, is_deleted=False
        ).exists():
            raise StudentNotFoundError(student_id)

        with uow.atomic():
            if status == Payment.STATUS_COMPLETED and paid_at is None:
                paid_at = timezone.now()
            payment = Payment.objects.create(
                organization_id=organization_id,
                student_id=student_id,
                enrollment_id=enrollment_id,
                amount=amount,
                currency=currency or self.ledger.default_currency,
                status=status,
                payment_method=payment_method,
                notes=notes,
                paid_at=paid_at,
                due_at=due_at,
                created_by=created_by,
            )
            logger.info(
                f"[payments] Created payment id={payment.id}, student_id={student_id}, "
                f"amount={amount}, status={status}"
            )
            if payment.is_completed:
                self._record_deposit(uow, payment)
        return payment

    def create_lesson_payment(self, uow, enrollment, lesson_id, amount, due_at):
        """PENDING payment for one completed PER_LESSON lesson. Caller holds the enrollment lock."""
        with uow.atomic():
            payment = Payment.objects.create(
                organization_id=enrollment.student.organization_id,
                student_id=enrollment.student_id,
                enrollment=enrollment,
                lesson_id=lesson_id,
                amount=to_money(amount),
                currency=self.ledger.default_currency,
                status=Payment.STATUS_PENDING,
                payment_method=Payment.METHOD_CASH,
                notes=LESSON_PAYMENT_NOTE,
                due_at=due_at,
            )
        logger.info(
            f"[payments] Lesson payment id={payment.id} for lesson_id={lesson_id}, "
            f"amount={payment.amount}, due_at={due_at}"
        )
        return payment

    def update_payment(self, uow, payment_id, organization_id, changes):
        unknown = set(changes) - set(UPDATABLE_FIELDS)
        if unknown:
            raise LedgerValidationError(f"Unsupported payment fields: {', '.join(sorted(unknown))}")

        with uow.atomic():
            payment = self.get_payment(payment_id, organization_id, lock=True)
            previous_status = payment.status
            new_status = changes.get('status', previous_status)
            completing = new_status == Payment.STATUS_COMPLETED and previous_status != Payment.STATUS_COMPLETED
            uncompleting = previous_status == Payment.STATUS_COMPLETED and new_status != Payment.STATUS_COMPLETED

            if 'amount' in changes:
                new_amount = to_money(changes['amount'])
                if new_amount < 0:
                    raise LedgerValidationError('Payment amount must not be negative')
                if (
                    payment.lesson_id
                    and new_amount != payment.amount
                    and self.ledger.is_lesson_charged(payment.lesson_id)
                ):
                    raise PaymentLockedError(
                        'Amount of a lesson payment cannot be changed while the lesson is charged'
                    )
                if previous_status == Payment.STATUS_COMPLETED and not uncompleting and new_amount != payment.amount:
                    raise PaymentLockedError('Amount of a completed payment cannot be changed')
                changes = {**changes, 'amount': new_amount}

            for field, value in changes.items():
                setattr(payment, field, value)
            if completing and not changes.get('paid_at'):
                payment.paid_at = timezone.now()
            payment.save()

            if completing:
                self._record_deposit(uow, payment)
            elif uncompleting:
                outcome = self.ledger.revert_deposit(
                    uow,
                    student_id=payment.student_id,
                    payment_id=payment.id,
                    description=f'Deposit reverted (status: {new_status})',
                )
                if not outcome:
                    logger.info(f"[payments] Nothing to revert for payment {payment.id}: {outcome.reason}")

        logger.info(f"[payments] Updated payment id={payment.id}: {previous_status} -> {payment.status}")
        return payment

    def delete_payment(self, uow, payment_id, organization_id):
        with uow.atomic():
            payment = self.get_payment(payment_id, organization_id, lock=True)
            if payment.is_completed:
                raise PaymentLockedError('Completed payments cannot be deleted')
            payment.delete()
        logger.info(f"[payments] Deleted payment id={payment_id}")

    def get_debtors(self, organization_id, today=None):
        """
        Students with PENDING payments that are due (due_at null or not after today),
        highest total debt first.
        """
        from django.db.models import Q

        today = today or timezone.localdate()
        pending = Payment.objects.filter(
            organization_id=organization_id,
            status=Payment.STATUS_PENDING,
        ).filter(
            Q(due_at__isnull=True) | Q(due_at__lte=today)
        ).select_related('student__user').order_by('created_at', 'id')

        debtors = OrderedDict()
        for payment in pending:
            debtor = debtors.get(payment.student_id)
            if debtor is None:
                user = payment.student.user
                debtor = debtors[payment.student_id] = {
                    'studentId': payment.student_id,
                    'studentName': user.full_name,
                    'email': user.email,
                    'phone': user.phone,
                    'totalDebt': Decimal('0.00'),
                    'paymentsCount': 0,
                    'oldestPaymentDate': payment.created_at,
                    'payments': [],
                }
            debtor['totalDebt'] += payment.amount
            debtor['paymentsCount'] += 1
            debtor['oldestPaymentDate'] = min(debtor['oldestPaymentDate'], payment.created_at)
            debtor['payments'].append({
                'id': payment.id,
                'amount': float(payment.amount),
                'createdAt': payment.created_at,
                'dueAt': payment.due_at,
                'notes': payment.notes,
            })

        now = timezone.now()
        result = []
        for debtor in debtors.values():
            debtor['daysSinceOldest'] = (now - debtor['oldestPaymentDate']).days
            result.append(debtor)
        result.sort(key=lambda d: d['totalDebt'], reverse=True)
        for debtor in result:
            debtor['totalDebt'] = float(debtor['totalDebt'])
        return result
