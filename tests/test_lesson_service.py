"""
Lesson service tests: status transitions, billing and after-commit side effects.
"""
from datetime import timedelta
from decimal import Decimal

from django.core import mail
from django.test import TestCase

from balance.models import StudentBudget
from core.container import build_services
from core.exceptions import InsufficientHoursError, InvalidLessonTransitionError, LessonNotFoundError
from core.uow import UnitOfWork
from courses.models import StudentEnrollment
from lessons.models import Lesson
from lessons.services.calendar import CalendarSync
from lessons.services.lessons import LessonService
from notifications.models import Notification
from payments.models import Payment
from tests.factories import make_enrollment, make_lesson, make_org, make_student, make_teacher


class RecordingCalendar:
    def __init__(self):
        self.calls = []

    def sync_lesson(self, lesson_id, action):
        self.calls.append((lesson_id, action))


class FailingCalendar:
    def sync_lesson(self, lesson_id, action):
        raise ConnectionError("calendar API unreachable")


class LessonServiceTestCase(TestCase):
    def setUp(self):
        self.services = build_services()
        self.calendar_backend = RecordingCalendar()
        self.lessons = LessonService(
            lifecycle=self.services.lifecycle,
            notifier=self.services.notifier,
            calendar=CalendarSync(self.calendar_backend),
        )
        self.uow = UnitOfWork.begin()
        self.org = make_org()
        self.teacher = make_teacher(self.org)
        self.student = make_student(self.org)


class UpdateLessonTests(LessonServiceTestCase):
    def test_complete_deducts_hours_and_sets_completed_at(self):
        enrollment = make_enrollment(self.student, hours_purchased='10', hours_used='0')
        lesson = make_lesson(enrollment, duration_minutes=90)

        updated = self.lessons.update_lesson(self.uow, lesson.id, self.org.id, {'status': Lesson.STATUS_COMPLETED})

        self.assertEqual(updated.status, Lesson.STATUS_COMPLETED)
        self.assertIsNotNone(updated.completed_at)
        enrollment.refresh_from_db()
        self.assertEqual(enrollment.hours_used, Decimal('1.5'))

    def test_insufficient_hours_leaves_lesson_unchanged(self):
        enrollment = make_enrollment(self.student, hours_purchased='10', hours_used='9.5')
        lesson = make_lesson(enrollment, duration_minutes=60)

        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            with self.assertRaises(InsufficientHoursError):
                self.lessons.update_lesson(
                    self.uow, lesson.id, self.org.id,
                    {'status': Lesson.STATUS_COMPLETED, 'title': 'Renamed'},
                )

        self.assertEqual(callbacks, [])
        lesson.refresh_from_db()
        self.assertEqual(lesson.status, Lesson.STATUS_SCHEDULED)
        self.assertEqual(lesson.title, 'Conversation practice')
        self.assertIsNone(lesson.completed_at)
        enrollment.refresh_from_db()
        self.assertEqual(enrollment.hours_used, Decimal('9.5'))

    def test_uncomplete_restores_hours_and_clears_completed_at(self):
        enrollment = make_enrollment(self.student, hours_purchased='10', hours_used='0')
        lesson = make_lesson(enrollment, duration_minutes=60)
        self.lessons.update_lesson(self.uow, lesson.id, self.org.id, {'status': Lesson.STATUS_COMPLETED})

        updated = self.lessons.update_lesson(self.uow, lesson.id, self.org.id, {'status': Lesson.STATUS_SCHEDULED})

        self.assertIsNone(updated.completed_at)
        enrollment.refresh_from_db()
        self.assertEqual(enrollment.hours_used, Decimal('0'))

    def test_repeated_completed_status_does_not_bill_twice(self):
        enrollment = make_enrollment(self.student, hours_purchased='10', hours_used='0')
        lesson = make_lesson(enrollment, duration_minutes=60)
        self.lessons.update_lesson(self.uow, lesson.id, self.org.id, {'status': Lesson.STATUS_COMPLETED})
        self.lessons.update_lesson(self.uow, lesson.id, self.org.id, {'status': Lesson.STATUS_COMPLETED})

        enrollment.refresh_from_db()
        self.assertEqual(enrollment.hours_used, Decimal('1'))

    def test_duration_of_completed_lesson_is_locked(self):
        enrollment = make_enrollment(self.student)
        lesson = make_lesson(enrollment, duration_minutes=60)
        self.lessons.update_lesson(self.uow, lesson.id, self.org.id, {'status': Lesson.STATUS_COMPLETED})

        with self.assertRaises(InvalidLessonTransitionError):
            self.lessons.update_lesson(self.uow, lesson.id, self.org.id, {'duration_minutes': 120})

    def test_lesson_from_other_organization_not_found(self):
        enrollment = make_enrollment(self.student)
        lesson = make_lesson(enrollment)
        other_org = make_org("Other")
        with self.assertRaises(LessonNotFoundError):
            self.lessons.update_lesson(self.uow, lesson.id, other_org.id, {'title': 'x'})

    def test_cancel_sets_cancelled_at_and_notifies_after_commit(self):
        enrollment = make_enrollment(self.student)
        lesson = make_lesson(enrollment, teacher=self.teacher)

        with self.captureOnCommitCallbacks(execute=True):
            updated = self.lessons.update_lesson(
                self.uow, lesson.id, self.org.id,
                {'status': Lesson.STATUS_CANCELLED, 'cancellation_reason': 'Student is ill'},
            )

        self.assertIsNotNone(updated.cancelled_at)
        self.assertTrue(
            Notification.objects.filter(lesson=lesson, type=Notification.TYPE_LESSON_CANCELLED).exists()
        )
        self.assertEqual(len(mail.outbox), 1)
        self.assertIn(self.student.email, mail.outbox[0].to)
        self.assertIn(self.teacher.user.email, mail.outbox[0].to)
        self.assertEqual(self.calendar_backend.calls, [(lesson.id, 'cancel')])

    def test_reschedule_notifies(self):
        enrollment = make_enrollment(self.student)
        lesson = make_lesson(enrollment)

        with self.captureOnCommitCallbacks(execute=True):
            self.lessons.update_lesson(
                self.uow, lesson.id, self.org.id,
                {'scheduled_at': lesson.scheduled_at + timedelta(days=2)},
            )

        self.assertTrue(
            Notification.objects.filter(lesson=lesson, type=Notification.TYPE_LESSON_RESCHEDULED).exists()
        )
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(self.calendar_backend.calls, [(lesson.id, 'update')])

    def test_side_effect_failure_does_not_fail_update(self):
        lessons = LessonService(
            lifecycle=self.services.lifecycle,
            notifier=self.services.notifier,
            calendar=CalendarSync(FailingCalendar()),
        )
        enrollment = make_enrollment(self.student, hours_purchased='10', hours_used='0')
        lesson = make_lesson(enrollment)

        with self.assertLogs('core.uow', level='ERROR') as logs:
            with self.captureOnCommitCallbacks(execute=True):
                lessons.update_lesson(self.uow, lesson.id, self.org.id, {'status': Lesson.STATUS_COMPLETED})

        self.assertIn('calendar sync', logs.output[0])
        lesson.refresh_from_db()
        self.assertEqual(lesson.status, Lesson.STATUS_COMPLETED)
        enrollment.refresh_from_db()
        self.assertEqual(enrollment.hours_used, Decimal('1'))


class PerLessonBillingTests(LessonServiceTestCase):
    """Balance returns to 0 once a delivered per-lesson lesson is paid, however often it was re-completed."""

    def setUp(self):
        super().setUp()
        self.payments = self.services.payments
        self.enrollment = make_enrollment(
            self.student,
            payment_mode=StudentEnrollment.PAYMENT_MODE_PER_LESSON,
            price_per_lesson='80.00',
        )
        self.lesson = make_lesson(self.enrollment)

    def set_status(self, status):
        return self.lessons.update_lesson(self.uow, self.lesson.id, self.org.id, {'status': status})

    def pay_open_payment(self):
        payment = Payment.objects.get(lesson=self.lesson, status=Payment.STATUS_PENDING)
        self.payments.update_payment(self.uow, payment.id, self.org.id, {'status': Payment.STATUS_COMPLETED})

    def balance(self):
        return StudentBudget.objects.get(student=self.student).current_balance

    def test_recompleted_lesson_is_charged_again(self):
        self.set_status(Lesson.STATUS_COMPLETED)
        self.set_status(Lesson.STATUS_SCHEDULED)
        self.assertEqual(self.balance(), Decimal('0.00'))

        self.set_status(Lesson.STATUS_COMPLETED)
        self.assertEqual(self.balance(), Decimal('-80.00'))

        self.pay_open_payment()
        self.assertEqual(self.balance(), Decimal('0.00'))
        self.assertEqual(Payment.objects.filter(lesson=self.lesson).count(), 1)

    def test_paid_lesson_recompleted_keeps_balance_settled(self):
        self.set_status(Lesson.STATUS_COMPLETED)
        self.pay_open_payment()
        self.assertEqual(self.balance(), Decimal('0.00'))

        self.set_status(Lesson.STATUS_SCHEDULED)
        self.assertEqual(self.balance(), Decimal('80.00'))

        self.set_status(Lesson.STATUS_COMPLETED)
        self.assertEqual(self.balance(), Decimal('0.00'))
        self.assertEqual(Payment.objects.filter(lesson=self.lesson).count(), 1)
        self.assertTrue(self.services.ledger.verify_chain(self.student.id).is_valid)


class ConfirmAndDeleteTests(LessonServiceTestCase):
    def test_confirm(self):
        lesson = make_lesson(make_enrollment(self.student))
        with self.captureOnCommitCallbacks(execute=True):
            confirmed = self.lessons.confirm_lesson(self.uow, lesson.id, self.org.id)

        self.assertEqual(confirmed.status, Lesson.STATUS_CONFIRMED)
        self.assertIsNotNone(confirmed.confirmed_by_teacher_at)
        self.assertTrue(
            Notification.objects.filter(lesson=lesson, type=Notification.TYPE_LESSON_CONFIRMED).exists()
        )
        self.assertEqual(len(mail.outbox), 1)

    def test_confirm_rejects_cancelled_and_completed(self):
        enrollment = make_enrollment(self.student)
        for lesson_status in (Lesson.STATUS_CANCELLED, Lesson.STATUS_COMPLETED):
            lesson = make_lesson(enrollment, status=lesson_status)
            with self.assertRaises(InvalidLessonTransitionError):
                self.lessons.confirm_lesson(self.uow, lesson.id, self.org.id)

    def test_delete_soft_cancels(self):
        lesson = make_lesson(make_enrollment(self.student))
        deleted = self.lessons.delete_lesson(self.uow, lesson.id, self.org.id)

        self.assertEqual(deleted.status, Lesson.STATUS_CANCELLED)
        self.assertEqual(deleted.cancellation_reason, 'Deleted by user')
        self.assertTrue(Lesson.objects.filter(id=lesson.id).exists())

    def test_completed_lesson_cannot_be_deleted(self):
        lesson = make_lesson(make_enrollment(self.student), status=Lesson.STATUS_COMPLETED)
        with self.assertRaises(InvalidLessonTransitionError):
            self.lessons.delete_lesson(self.uow, lesson.id, self.org.id)
