"""
Payment service tests: deposits on completion, reverts, locks and debtors.
"""
from datetime import timedelta
from decimal import Decimal

from django.core import mail
from django.test import TestCase
from django.utils import timezone

from balance.models import BalanceTransaction, StudentBudget
from core.container import build_services
from core.exceptions import PaymentLockedError, PaymentNotFoundError, StudentNotFoundError
from core.uow import UnitOfWork
from courses.models import StudentEnrollment
from notifications.models import Notification
from payments.models import Payment
from tests.factories import make_enrollment, make_lesson, make_org, make_student


class PaymentServiceTestCase(TestCase):
    def setUp(self):
        self.services = build_services()
        self.payments = self.services.payments
        self.uow = UnitOfWork.begin()
        self.org = make_org()
        self.student = make_student(self.org)

    def balance(self, student=None):
        return StudentBudget.objects.get(student=student or self.student).current_balance


class CreatePaymentTests(PaymentServiceTestCase):
    def test_completed_payment_records_deposit(self):
        with self.captureOnCommitCallbacks(execute=True):
            payment = self.payments.create_payment(
                self.uow, self.org.id, self.student.id, Decimal('200.00'),
                status=Payment.STATUS_COMPLETED,
            )

        self.assertIsNotNone(payment.paid_at)
        self.assertTrue(payment.receipt_no.startswith('PAY-'))
        self.assertEqual(self.balance(), Decimal('200.00'))
        deposit = BalanceTransaction.objects.get(payment=payment)
        self.assertEqual(deposit.type, BalanceTransaction.TYPE_DEPOSIT)
        self.assertEqual(len(mail.outbox), 1)

    def test_pending_payment_does_not_touch_balance(self):
        self.payments.create_payment(self.uow, self.org.id, self.student.id, Decimal('200.00'))
        self.assertFalse(StudentBudget.objects.filter(student=self.student).exists())

    def test_student_from_other_organization_rejected(self):
        other_org = make_org("Other")
        with self.assertRaises(StudentNotFoundError):
            self.payments.create_payment(self.uow, other_org.id, self.student.id, Decimal('10'))
        self.assertFalse(Payment.objects.exists())


class UpdatePaymentTests(PaymentServiceTestCase):
    def test_pending_to_completed_deposits_and_resolves_alert(self):
        enrollment = make_enrollment(self.student, payment_mode=StudentEnrollment.PAYMENT_MODE_PER_LESSON)
        lesson = make_lesson(enrollment)
        with self.captureOnCommitCallbacks(execute=True):
            self.services.lifecycle.on_complete(self.uow, enrollment.id, 60, lesson.id)
        self.assertEqual(self.balance(), Decimal('-80.00'))
        self.assertTrue(Notification.objects.filter(
            student=self.student, type=Notification.TYPE_BALANCE_NEGATIVE, is_resolved=False
        ).exists())

        payment = Payment.objects.get(lesson=lesson)
        with self.captureOnCommitCallbacks(execute=True):
            updated = self.payments.update_payment(
                self.uow, payment.id, self.org.id, {'status': Payment.STATUS_COMPLETED}
            )

        self.assertIsNotNone(updated.paid_at)
        self.assertEqual(self.balance(), Decimal('0.00'))
        self.assertFalse(Notification.objects.filter(
            student=self.student, type=Notification.TYPE_BALANCE_NEGATIVE, is_resolved=False
        ).exists())

    def test_completed_to_refunded_reverts_deposit(self):
        payment = self.payments.create_payment(
            self.uow, self.org.id, self.student.id, Decimal('150.00'), status=Payment.STATUS_COMPLETED
        )
        self.payments.update_payment(self.uow, payment.id, self.org.id, {'status': Payment.STATUS_REFUNDED})

        self.assertEqual(self.balance(), Decimal('0.00'))
        self.assertTrue(
            BalanceTransaction.objects.filter(payment=payment, type=BalanceTransaction.TYPE_REFUND).exists()
        )

    def test_non_status_update_has_no_ledger_effect(self):
        payment = self.payments.create_payment(
            self.uow, self.org.id, self.student.id, Decimal('150.00'), status=Payment.STATUS_COMPLETED
        )
        self.payments.update_payment(self.uow, payment.id, self.org.id, {'notes': 'Paid at the desk'})
        self.assertEqual(BalanceTransaction.objects.filter(payment=payment).count(), 1)
        self.assertEqual(self.balance(), Decimal('150.00'))

    def test_amount_of_completed_payment_is_locked(self):
        payment = self.payments.create_payment(
            self.uow, self.org.id, self.student.id, Decimal('150.00'), status=Payment.STATUS_COMPLETED
        )
        with self.assertRaises(PaymentLockedError):
            self.payments.update_payment(self.uow, payment.id, self.org.id, {'amount': Decimal('10.00')})
        self.assertEqual(self.balance(), Decimal('150.00'))

    def test_amount_of_charged_lesson_payment_is_locked(self):
        enrollment = make_enrollment(
            self.student,
            payment_mode=StudentEnrollment.PAYMENT_MODE_PER_LESSON,
            price_per_lesson='80.00',
        )
        lesson = make_lesson(enrollment)
        self.services.lifecycle.on_complete(self.uow, enrollment.id, 60, lesson.id)
        payment = Payment.objects.get(lesson=lesson)

        with self.assertRaises(PaymentLockedError):
            self.payments.update_payment(self.uow, payment.id, self.org.id, {'amount': Decimal('50.00')})

        self.payments.update_payment(self.uow, payment.id, self.org.id, {'status': Payment.STATUS_COMPLETED})
        payment.refresh_from_db()
        self.assertEqual(payment.amount, Decimal('80.00'))
        self.assertEqual(self.balance(), Decimal('0.00'))

    def test_amount_of_uncharged_lesson_payment_can_change(self):
        enrollment = make_enrollment(
            self.student,
            payment_mode=StudentEnrollment.PAYMENT_MODE_PER_LESSON,
            price_per_lesson='0.00',
        )
        lesson = make_lesson(enrollment)
        self.services.lifecycle.on_complete(self.uow, enrollment.id, 60, lesson.id)
        payment = Payment.objects.get(lesson=lesson)

        updated = self.payments.update_payment(self.uow, payment.id, self.org.id, {'amount': Decimal('50.00')})
        self.assertEqual(updated.amount, Decimal('50.00'))

    def test_unknown_payment(self):
        with self.assertRaises(PaymentNotFoundError):
            self.payments.update_payment(self.uow, 999999, self.org.id, {'notes': 'x'})


class DeletePaymentTests(PaymentServiceTestCase):
    def test_completed_payment_cannot_be_deleted(self):
        payment = self.payments.create_payment(
            self.uow, self.org.id, self.student.id, Decimal('50.00'), status=Payment.STATUS_COMPLETED
        )
        with self.assertRaises(PaymentLockedError):
            self.payments.delete_payment(self.uow, payment.id, self.org.id)
        self.assertTrue(Payment.objects.filter(id=payment.id).exists())

    def test_pending_payment_deleted(self):
        payment = self.payments.create_payment(self.uow, self.org.id, self.student.id, Decimal('50.00'))
        self.payments.delete_payment(self.uow, payment.id, self.org.id)
        self.assertFalse(Payment.objects.filter(id=payment.id).exists())


class DebtorsTests(PaymentServiceTestCase):
    def test_debtors_grouped_and_sorted(self):
        today = timezone.localdate()
        other = make_student(self.org)
        self.payments.create_payment(self.uow, self.org.id, self.student.id, Decimal('50.00'))
        self.payments.create_payment(
            self.uow, self.org.id, self.student.id, Decimal('30.00'), due_at=today - timedelta(days=3)
        )
        self.payments.create_payment(self.uow, self.org.id, other.id, Decimal('100.00'), due_at=today)
        # not yet due / not pending
        self.payments.create_payment(
            self.uow, self.org.id, self.student.id, Decimal('500.00'), due_at=today + timedelta(days=5)
        )
        self.payments.create_payment(
            self.uow, self.org.id, self.student.id, Decimal('70.00'), status=Payment.STATUS_COMPLETED
        )

        debtors = self.payments.get_debtors(self.org.id)

        self.assertEqual([d['studentId'] for d in debtors], [other.id, self.student.id])
        self.assertEqual(debtors[0]['totalDebt'], 100.0)
        self.assertEqual(debtors[1]['totalDebt'], 80.0)
        self.assertEqual(debtors[1]['paymentsCount'], 2)

    def test_other_organization_excluded(self):
        other_org = make_org("Other")
        other_student = make_student(other_org)
        self.payments.create_payment(self.uow, other_org.id, other_student.id, Decimal('50.00'))
        self.assertEqual(self.payments.get_debtors(self.org.id), [])
