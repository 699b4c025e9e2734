"""
Lesson lifecycle coordinator tests.
- PACKAGE: 10h purchased, 9.5h used, 60 min lesson -> rejected, hours unchanged
- PACKAGE: 90 min complete/uncomplete round trip
- PER_LESSON: one PENDING payment priced from teacher_rate (fallback course type price)
- PER_LESSON: uncomplete deletes PENDING payment, keeps COMPLETED one
"""
from decimal import Decimal

from django.test import TestCase

from balance.models import BalanceTransaction, StudentBudget
from core.container import build_services
from core.exceptions import EnrollmentNotFoundError, InsufficientHoursError
from core.uow import UnitOfWork
from courses.models import StudentEnrollment
from payments.models import Payment
from tests.factories import make_enrollment, make_lesson, make_org, make_student


class PackageModeTests(TestCase):
    def setUp(self):
        self.services = build_services()
        self.lifecycle = self.services.lifecycle
        self.uow = UnitOfWork.begin()
        self.org = make_org()
        self.student = make_student(self.org)

    def test_insufficient_hours_rejected(self):
        enrollment = make_enrollment(self.student, hours_purchased='10', hours_used='9.5')
        lesson = make_lesson(enrollment, duration_minutes=60)

        with self.assertRaises(InsufficientHoursError) as ctx:
            self.lifecycle.on_complete(self.uow, enrollment.id, lesson.duration_minutes, lesson.id)

        self.assertEqual(ctx.exception.remaining_hours, Decimal('0.5'))
        self.assertEqual(ctx.exception.required_hours, Decimal('1'))
        enrollment.refresh_from_db()
        self.assertEqual(enrollment.hours_used, Decimal('9.5'))

    def test_exact_remaining_hours_allowed(self):
        enrollment = make_enrollment(self.student, hours_purchased='10', hours_used='9')
        lesson = make_lesson(enrollment, duration_minutes=60)

        self.lifecycle.on_complete(self.uow, enrollment.id, 60, lesson.id)
        enrollment.refresh_from_db()
        self.assertEqual(enrollment.hours_used, Decimal('10'))

    def test_complete_uncomplete_round_trip(self):
        enrollment = make_enrollment(self.student, hours_purchased='10', hours_used='2')
        lesson = make_lesson(enrollment, duration_minutes=90)

        effect = self.lifecycle.on_complete(self.uow, enrollment.id, 90, lesson.id)
        self.assertEqual(effect.hours, Decimal('1.5'))
        enrollment.refresh_from_db()
        self.assertEqual(enrollment.hours_used, Decimal('3.5'))

        self.lifecycle.on_uncomplete(self.uow, enrollment.id, 90, lesson.id)
        enrollment.refresh_from_db()
        self.assertEqual(enrollment.hours_used, Decimal('2'))

    def test_odd_duration_round_trip_is_exact(self):
        enrollment = make_enrollment(self.student, hours_purchased='10', hours_used='0')
        lesson = make_lesson(enrollment, duration_minutes=45)

        self.lifecycle.on_complete(self.uow, enrollment.id, 45, lesson.id)
        self.lifecycle.on_uncomplete(self.uow, enrollment.id, 45, lesson.id)
        enrollment.refresh_from_db()
        self.assertEqual(enrollment.hours_used, Decimal('0'))

    def test_package_mode_never_touches_ledger_or_payments(self):
        enrollment = make_enrollment(self.student)
        lesson = make_lesson(enrollment)
        self.lifecycle.on_complete(self.uow, enrollment.id, 60, lesson.id)
        self.assertFalse(Payment.objects.exists())
        self.assertFalse(BalanceTransaction.objects.exists())

    def test_missing_enrollment(self):
        with self.assertRaises(EnrollmentNotFoundError):
            self.lifecycle.on_complete(self.uow, 999999, 60, 1)


class PerLessonModeTests(TestCase):
    def setUp(self):
        self.services = build_services()
        self.lifecycle = self.services.lifecycle
        self.uow = UnitOfWork.begin()
        self.org = make_org()
        self.student = make_student(self.org)
        self.enrollment = make_enrollment(
            self.student,
            payment_mode=StudentEnrollment.PAYMENT_MODE_PER_LESSON,
            price_per_lesson='80.00',
        )

    def test_creates_pending_payment_priced_from_teacher_rate(self):
        lesson = make_lesson(self.enrollment, teacher_rate='120.00')
        effect = self.lifecycle.on_complete(self.uow, self.enrollment.id, 60, lesson.id)

        self.assertTrue(effect.payment_created)
        payment = Payment.objects.get(lesson=lesson)
        self.assertEqual(payment.status, Payment.STATUS_PENDING)
        self.assertEqual(payment.amount, Decimal('120.00'))
        self.assertEqual(payment.enrollment_id, self.enrollment.id)
        self.assertIsNotNone(payment.due_at)

    def test_falls_back_to_course_type_price(self):
        lesson = make_lesson(self.enrollment)
        self.lifecycle.on_complete(self.uow, self.enrollment.id, 60, lesson.id)
        self.assertEqual(Payment.objects.get(lesson=lesson).amount, Decimal('80.00'))

    def test_charges_ledger_for_lesson(self):
        lesson = make_lesson(self.enrollment)
        effect = self.lifecycle.on_complete(self.uow, self.enrollment.id, 60, lesson.id)

        self.assertTrue(effect.ledger)
        self.assertEqual(StudentBudget.objects.get(student=self.student).current_balance, Decimal('-80.00'))

    def test_completing_twice_creates_one_payment_and_one_charge(self):
        lesson = make_lesson(self.enrollment)
        self.lifecycle.on_complete(self.uow, self.enrollment.id, 60, lesson.id)
        second = self.lifecycle.on_complete(self.uow, self.enrollment.id, 60, lesson.id)

        self.assertFalse(second.payment_created)
        self.assertEqual(Payment.objects.filter(lesson=lesson).count(), 1)
        self.assertEqual(
            BalanceTransaction.objects.filter(lesson=lesson, type=BalanceTransaction.TYPE_LESSON_CHARGE).count(),
            1,
        )
        self.assertEqual(StudentBudget.objects.get(student=self.student).current_balance, Decimal('-80.00'))

    def test_zero_price_creates_payment_without_charge(self):
        enrollment = make_enrollment(
            self.student,
            payment_mode=StudentEnrollment.PAYMENT_MODE_PER_LESSON,
            price_per_lesson='0.00',
        )
        lesson = make_lesson(enrollment)
        self.lifecycle.on_complete(self.uow, enrollment.id, 60, lesson.id)

        self.assertEqual(Payment.objects.get(lesson=lesson).amount, Decimal('0.00'))
        self.assertFalse(BalanceTransaction.objects.exists())

    def test_uncomplete_deletes_pending_payment_and_refunds(self):
        lesson = make_lesson(self.enrollment)
        self.lifecycle.on_complete(self.uow, self.enrollment.id, 60, lesson.id)

        effect = self.lifecycle.on_uncomplete(self.uow, self.enrollment.id, 60, lesson.id)

        self.assertTrue(effect.payment_deleted)
        self.assertFalse(Payment.objects.filter(lesson=lesson).exists())
        self.assertEqual(StudentBudget.objects.get(student=self.student).current_balance, Decimal('0.00'))

    def test_uncomplete_keeps_completed_payment(self):
        lesson = make_lesson(self.enrollment)
        self.lifecycle.on_complete(self.uow, self.enrollment.id, 60, lesson.id)
        Payment.objects.filter(lesson=lesson).update(status=Payment.STATUS_COMPLETED)

        effect = self.lifecycle.on_uncomplete(self.uow, self.enrollment.id, 60, lesson.id)

        self.assertFalse(effect.payment_deleted)
        payment = Payment.objects.get(lesson=lesson)
        self.assertEqual(payment.status, Payment.STATUS_COMPLETED)

    def test_existing_completed_payment_blocks_new_payment(self):
        lesson = make_lesson(self.enrollment)
        Payment.objects.create(
            organization=self.org,
            student=self.student,
            enrollment=self.enrollment,
            lesson=lesson,
            amount=Decimal('80.00'),
            status=Payment.STATUS_COMPLETED,
        )
        effect = self.lifecycle.on_complete(self.uow, self.enrollment.id, 60, lesson.id)

        self.assertFalse(effect.payment_created)
        self.assertEqual(Payment.objects.filter(lesson=lesson).count(), 1)
