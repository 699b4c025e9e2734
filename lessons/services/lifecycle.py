"""
Lesson lifecycle: what completing or un-completing a lesson does to the
student's enrollment, payments and balance.

PACKAGE enrollments spend hours from the purchased pool and refuse to go below
zero. PER_LESSON enrollments get a PENDING payment plus a ledger charge per
lesson and never fail on affordability (debt is allowed).
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from core.exceptions import EnrollmentNotFoundError, InsufficientHoursError, LessonNotFoundError
from core.utils import HOURS_QUANTUM, minutes_to_hours, to_money
from courses.models import StudentEnrollment
from lessons.models import Lesson
from payments.due_dates import calculate_due_date
from payments.models import Payment

logger = logging.getLogger(__name__)


@dataclass
class LifecycleEffect:
    payment_mode: str
    hours: Decimal
    hours_used: Optional[Decimal] = None
    payment_id: Optional[int] = None
    payment_created: bool = False
    payment_deleted: bool = False
    ledger: object = None


class LessonLifecycleCoordinator:

    def __init__(self, ledger, payments, notifier):
        self.ledger = ledger
        self.payments = payments
        self.notifier = notifier

    @staticmethod
    def _lock_enrollment(enrollment_id):
        enrollment = (
            StudentEnrollment.objects
            .select_for_update(of=('self',))
            .select_related('student', 'course__course_type')
            .filter(id=enrollment_id)
            .first()
        )
        if enrollment is None:
            raise EnrollmentNotFoundError(enrollment_id)
        return enrollment

    @staticmethod
    def _lesson(lesson_id):
        lesson = Lesson.objects.filter(id=lesson_id).only('id', 'title', 'teacher_rate').first()
        if lesson is None:
            raise LessonNotFoundError(lesson_id)
        return lesson

    @staticmethod
    def _open_payment(lesson_id):
        return Payment.objects.filter(
            lesson_id=lesson_id,
            status__in=Payment.NON_TERMINAL_STATUSES,
        ).first()

    @staticmethod
    def lesson_price(lesson, enrollment):
        """teacher_rate of the lesson, else the course type's price, else 0."""
        if lesson.teacher_rate is not None:
            return to_money(lesson.teacher_rate)
        course_type = enrollment.course.course_type if enrollment.course_id else None
        if course_type is not None:
            return to_money(course_type.price_per_lesson)
        return Decimal('0.00')

    def on_complete(self, uow, enrollment_id, duration_minutes, lesson_id):
        """
        Bill a lesson that just became COMPLETED.
        Raises InsufficientHoursError (nothing written) when a PACKAGE pool is too small.
        """
        hours = minutes_to_hours(duration_minutes)
        with uow.atomic():
            enrollment = self._lock_enrollment(enrollment_id)
            if enrollment.is_package:
                return self._complete_package(enrollment, hours, lesson_id)
            return self._complete_per_lesson(uow, enrollment, hours, lesson_id)

    def _complete_package(self, enrollment, hours, lesson_id):
        remaining = enrollment.remaining_hours
        if remaining < hours:
            logger.info(
                f"[lifecycle] Lesson {lesson_id} rejected: enrollment {enrollment.id} "
                f"has {remaining}h left, needs {hours}h"
            )
            raise InsufficientHoursError(remaining, hours)

        previous = enrollment.hours_used
        enrollment.hours_used = (previous + hours).quantize(HOURS_QUANTUM)
        enrollment.save(update_fields=['hours_used', 'updated_at'])
        logger.info(
            f"[lifecycle] Lesson {lesson_id}: enrollment {enrollment.id} hours_used "
            f"{previous} -> {enrollment.hours_used}"
        )
        return LifecycleEffect(
            payment_mode=enrollment.payment_mode,
            hours=hours,
            hours_used=enrollment.hours_used,
        )

    def _complete_per_lesson(self, uow, enrollment, hours, lesson_id):
        lesson = self._lesson(lesson_id)
        effect = LifecycleEffect(payment_mode=enrollment.payment_mode, hours=hours)

        payment = self._open_payment(lesson_id)
        if payment is not None:
            logger.info(f"[lifecycle] Lesson {lesson_id} already has payment {payment.id} ({payment.status})")
        else:
            payment = self.payments.create_lesson_payment(
                uow,
                enrollment=enrollment,
                lesson_id=lesson_id,
                amount=self.lesson_price(lesson, enrollment),
                due_at=calculate_due_date(enrollment.student),
            )
            effect.payment_created = True
        effect.payment_id = payment.id

        if payment.amount > 0:
            outcome = self.ledger.charge_for_lesson(
                uow,
                student_id=enrollment.student_id,
                organization_id=enrollment.student.organization_id,
                lesson_id=lesson_id,
                amount=payment.amount,
                lesson_title=lesson.title,
            )
            effect.ledger = outcome
            if outcome:
                uow.on_commit(
                    self.notifier.check_negative_balance,
                    'negative balance check',
                    enrollment.student_id,
                )
        else:
            logger.info(f"[lifecycle] Lesson {lesson_id} priced at 0, no ledger charge")
        return effect

    def on_uncomplete(self, uow, enrollment_id, duration_minutes, lesson_id):
        """Undo on_complete for a lesson leaving COMPLETED."""
        hours = minutes_to_hours(duration_minutes)
        with uow.atomic():
            enrollment = self._lock_enrollment(enrollment_id)
            if enrollment.is_package:
                previous = enrollment.hours_used
                enrollment.hours_used = max(Decimal('0'), previous - hours).quantize(HOURS_QUANTUM)
                enrollment.save(update_fields=['hours_used', 'updated_at'])
                logger.info(
                    f"[lifecycle] Lesson {lesson_id} uncompleted: enrollment {enrollment.id} "
                    f"hours_used {previous} -> {enrollment.hours_used}"
                )
                return LifecycleEffect(
                    payment_mode=enrollment.payment_mode,
                    hours=hours,
                    hours_used=enrollment.hours_used,
                )
            return self._uncomplete_per_lesson(uow, enrollment, hours, lesson_id)

    def _uncomplete_per_lesson(self, uow, enrollment, hours, lesson_id):
        lesson = self._lesson(lesson_id)
        effect = LifecycleEffect(payment_mode=enrollment.payment_mode, hours=hours)

        payment = self._open_payment(lesson_id)
        if payment is not None:
            effect.payment_id = payment.id
            if payment.status == Payment.STATUS_PENDING:
                payment.delete()
                effect.payment_deleted = True
                logger.info(f"[lifecycle] Lesson {lesson_id} uncompleted: deleted pending payment {effect.payment_id}")
            else:
                # completed payments are financial records
                logger.info(f"[lifecycle] Lesson {lesson_id} uncompleted: keeping completed payment {payment.id}")

        outcome = self.ledger.refund_lesson(
            uow,
            student_id=enrollment.student_id,
            organization_id=enrollment.student.organization_id,
            lesson_id=lesson_id,
            lesson_title=lesson.title,
        )
        if not outcome:
            logger.info(f"[lifecycle] Lesson {lesson_id}: no refund ({outcome.status.value}: {outcome.reason})")
        effect.ledger = outcome
        return effect
