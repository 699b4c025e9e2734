"""
Notification services: lesson change notices, confirmation emails and
negative-balance alerts with auto-resolve on balance recovery.

Everything here runs after the ledger/lesson transaction has committed
(scheduled via UnitOfWork.on_commit), so methods take ids and re-read state.
"""
import logging
from decimal import Decimal

from django.conf import settings
from django.core.mail import send_mail
from django.db import IntegrityError, transaction
from django.template.loader import render_to_string
from django.utils import timezone

from accounts.models import User
from balance.models import StudentBudget
from lessons.models import Lesson
from notifications.models import Notification
from payments.models import Payment

logger = logging.getLogger(__name__)


class LessonNotifier:

    def __init__(self, from_email=None):
        self.from_email = from_email

    # -- email -------------------------------------------------------------

    def _send_email(self, template, subject, recipients, context):
        recipients = [r for r in recipients if r]
        if not recipients:
            logger.info(f"[notifications] No recipients for {template}, skipping email")
            return 0
        text_body = render_to_string(f'notifications/email/{template}.txt', context)
        html_body = render_to_string(f'notifications/email/{template}.html', context)
        sent = send_mail(
            subject,
            text_body,
            self.from_email or settings.DEFAULT_FROM_EMAIL,
            recipients,
            html_message=html_body,
        )
        logger.info(f"[notifications] Sent {template} email to {len(recipients)} recipient(s)")
        return sent

    @staticmethod
    def _lesson(lesson_id):
        return Lesson.objects.select_related('student__user', 'teacher__user', 'course').get(id=lesson_id)

    @staticmethod
    def _staff_recipients(organization_id):
        return User.objects.filter(
            organization_id=organization_id,
            role__in=[User.ROLE_ADMIN, User.ROLE_TEACHER],
            is_active=True,
        )

    def _notify_staff(self, lesson, notification_type, message):
        """One in-app notification per admin/teacher of the lesson's organization."""
        rows = [
            Notification(
                organization_id=lesson.organization_id,
                type=notification_type,
                recipient=user,
                student=lesson.student,
                lesson=lesson,
                message=message,
            )
            for user in self._staff_recipients(lesson.organization_id)
        ]
        Notification.objects.bulk_create(rows)
        return len(rows)

    # -- lesson changes ----------------------------------------------------

    def notify_lesson_cancelled(self, lesson_id):
        lesson = self._lesson(lesson_id)
        message = f"Lesson \"{lesson.title}\" on {lesson.scheduled_at:%Y-%m-%d %H:%M} was cancelled"
        if lesson.cancellation_reason:
            message += f" ({lesson.cancellation_reason})"
        count = self._notify_staff(lesson, Notification.TYPE_LESSON_CANCELLED, message)
        logger.info(f"[notifications] Lesson {lesson_id} cancelled, {count} notification(s) created")

        recipients = [lesson.student.email]
        if lesson.teacher_id:
            recipients.append(lesson.teacher.user.email)
        self._send_email(
            'lesson_cancelled',
            f'Lesson cancelled: {lesson.title}',
            recipients,
            {'lesson': lesson, 'student_name': lesson.student.full_name},
        )

    def notify_lesson_rescheduled(self, lesson_id, previous_scheduled_at):
        lesson = self._lesson(lesson_id)
        message = (
            f"Lesson \"{lesson.title}\" moved from {previous_scheduled_at:%Y-%m-%d %H:%M} "
            f"to {lesson.scheduled_at:%Y-%m-%d %H:%M}"
        )
        count = self._notify_staff(lesson, Notification.TYPE_LESSON_RESCHEDULED, message)
        logger.info(f"[notifications] Lesson {lesson_id} rescheduled, {count} notification(s) created")
        self._send_email(
            'lesson_rescheduled',
            f'Lesson rescheduled: {lesson.title}',
            [lesson.student.email],
            {
                'lesson': lesson,
                'student_name': lesson.student.full_name,
                'previous_scheduled_at': previous_scheduled_at,
            },
        )

    def notify_lesson_confirmed(self, lesson_id):
        lesson = self._lesson(lesson_id)
        message = f"Lesson \"{lesson.title}\" on {lesson.scheduled_at:%Y-%m-%d %H:%M} confirmed by teacher"
        count = self._notify_staff(lesson, Notification.TYPE_LESSON_CONFIRMED, message)
        logger.info(f"[notifications] Lesson {lesson_id} confirmed, {count} notification(s) created")
        self._send_email(
            'lesson_confirmed',
            f'Lesson confirmed: {lesson.title}',
            [lesson.student.email],
            {'lesson': lesson, 'student_name': lesson.student.full_name},
        )

    def send_payment_confirmation(self, payment_id):
        payment = Payment.objects.select_related('student__user', 'enrollment__course').get(id=payment_id)
        course = payment.enrollment.course if payment.enrollment_id else None
        self._send_email(
            'payment_confirmation',
            f'Payment received: {payment.amount} {payment.currency}',
            [payment.student.email],
            {
                'payment': payment,
                'student_name': payment.student.full_name,
                'payment_method': payment.get_payment_method_display(),
                'course_name': course.name if course else None,
            },
        )

    # -- balance alerts ----------------------------------------------------

    def create_balance_negative_notification(self, student_profile, balance):
        """
        Create the BALANCE_NEGATIVE alert for a student.
        Returns the existing unresolved alert if there is one.
        """
        existing = Notification.objects.filter(
            student=student_profile,
            type=Notification.TYPE_BALANCE_NEGATIVE,
            is_resolved=False,
        ).first()
        if existing:
            return existing

        message = f"Balance of {student_profile.full_name} dropped below zero ({balance})"
        try:
            with transaction.atomic():
                notification = Notification.objects.create(
                    organization_id=student_profile.organization_id,
                    type=Notification.TYPE_BALANCE_NEGATIVE,
                    student=student_profile,
                    message=message,
                )
        except IntegrityError:
            # unique_open_balance_alert_per_student: raised concurrently
            return Notification.objects.get(
                student=student_profile,
                type=Notification.TYPE_BALANCE_NEGATIVE,
                is_resolved=False,
            )
        logger.info(f"[notifications] Balance alert for student_id={student_profile.id}: {balance}")
        return notification

    def check_negative_balance(self, student_id):
        """Called after a lesson charge. Returns True if the balance is below zero."""
        budget = StudentBudget.objects.select_related('student__user').filter(student_id=student_id).first()
        if budget is None or budget.current_balance >= Decimal('0'):
            return False
        self.create_balance_negative_notification(budget.student, budget.current_balance)
        return True

    def resolve_balance_alerts(self, student_id):
        """
        Auto-resolve BALANCE_NEGATIVE alerts once the balance is back at zero or above.
        Called after a deposit.
        """
        balance = StudentBudget.objects.filter(student_id=student_id).values_list(
            'current_balance', flat=True
        ).first()
        if balance is None or balance < Decimal('0'):
            return 0
        updated = Notification.objects.filter(
            student_id=student_id,
            type=Notification.TYPE_BALANCE_NEGATIVE,
            is_resolved=False,
        ).update(
            is_read=True,
            is_resolved=True,
            resolved_at=timezone.now(),
        )
        if updated:
            logger.info(f"[notifications] Resolved {updated} balance alert(s) for student_id={student_id}")
        return updated

    def resolve(self, notification):
        notification.is_resolved = True
        notification.resolved_at = timezone.now()
        notification.save(update_fields=['is_resolved', 'resolved_at'])
        return notification
