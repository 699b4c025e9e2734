"""
Lesson service: update, confirm and delete lessons.

Status changes into and out of COMPLETED are billed through the lifecycle
coordinator inside the same transaction as the lesson row, so a rejected
completion (not enough package hours) leaves the lesson untouched.
Notifications and calendar sync are scheduled for after commit.
"""
import logging

from django.utils import timezone

from core.exceptions import InvalidLessonTransitionError, LessonNotFoundError
from lessons.models import Lesson
from lessons.services.calendar import ACTION_CANCEL, ACTION_UPDATE

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = (
    'title',
    'scheduled_at',
    'duration_minutes',
    'status',
    'teacher_rate',
    'cancellation_reason',
)
VALID_STATUSES = frozenset(value for value, _ in Lesson.STATUS_CHOICES)


class LessonService:

    def __init__(self, lifecycle, notifier, calendar):
        self.lifecycle = lifecycle
        self.notifier = notifier
        self.calendar = calendar

    @staticmethod
    def _lock_lesson(lesson_id, organization_id):
        lesson = Lesson.objects.select_for_update().filter(
            id=lesson_id,
            organization_id=organization_id,
        ).first()
        if lesson is None:
            raise LessonNotFoundError(lesson_id)
        return lesson

    def update_lesson(self, uow, lesson_id, organization_id, changes):
        unknown = set(changes) - set(UPDATABLE_FIELDS)
        if unknown:
            raise InvalidLessonTransitionError(f"Unsupported lesson fields: {', '.join(sorted(unknown))}")
        if 'status' in changes and changes['status'] not in VALID_STATUSES:
            raise InvalidLessonTransitionError(f"Unknown lesson status: {changes['status']}")

        with uow.atomic():
            lesson = self._lock_lesson(lesson_id, organization_id)
            previous_status = lesson.status
            previous_scheduled_at = lesson.scheduled_at
            previous_duration = lesson.duration_minutes
            new_status = changes.get('status', previous_status)

            completing = new_status == Lesson.STATUS_COMPLETED and previous_status != Lesson.STATUS_COMPLETED
            uncompleting = previous_status == Lesson.STATUS_COMPLETED and new_status != Lesson.STATUS_COMPLETED
            if (previous_status == Lesson.STATUS_COMPLETED and not uncompleting
                    and changes.get('duration_minutes', previous_duration) != previous_duration):
                raise InvalidLessonTransitionError('Duration of a completed lesson cannot be changed')

            for field, value in changes.items():
                setattr(lesson, field, value)

            now = timezone.now()
            if new_status == Lesson.STATUS_CANCELLED and not lesson.cancelled_at:
                lesson.cancelled_at = now
            if completing:
                self.lifecycle.on_complete(uow, lesson.enrollment_id, lesson.duration_minutes, lesson.id)
                lesson.completed_at = now
            elif uncompleting:
                self.lifecycle.on_uncomplete(uow, lesson.enrollment_id, previous_duration, lesson.id)
                lesson.completed_at = None
            lesson.save()

            cancelled = new_status == Lesson.STATUS_CANCELLED and previous_status != Lesson.STATUS_CANCELLED
            rescheduled = lesson.scheduled_at != previous_scheduled_at
            if cancelled:
                uow.on_commit(self.notifier.notify_lesson_cancelled, 'lesson cancelled notice', lesson.id)
            elif rescheduled:
                uow.on_commit(
                    self.notifier.notify_lesson_rescheduled,
                    'lesson rescheduled notice',
                    lesson.id,
                    previous_scheduled_at,
                )
            uow.on_commit(
                self.calendar.sync,
                'calendar sync',
                lesson.id,
                ACTION_CANCEL if cancelled else ACTION_UPDATE,
            )

        logger.info(f"[lifecycle] Updated lesson {lesson.id}: {previous_status} -> {lesson.status}")
        return lesson

    def confirm_lesson(self, uow, lesson_id, organization_id):
        with uow.atomic():
            lesson = self._lock_lesson(lesson_id, organization_id)
            if lesson.status == Lesson.STATUS_CANCELLED:
                raise InvalidLessonTransitionError('Cannot confirm cancelled lesson')
            if lesson.status == Lesson.STATUS_COMPLETED:
                raise InvalidLessonTransitionError('Lesson already completed')

            lesson.status = Lesson.STATUS_CONFIRMED
            lesson.confirmed_by_teacher_at = timezone.now()
            lesson.save(update_fields=['status', 'confirmed_by_teacher_at', 'updated_at'])

            uow.on_commit(self.notifier.notify_lesson_confirmed, 'lesson confirmed notice', lesson.id)
            uow.on_commit(self.calendar.sync, 'calendar sync', lesson.id, ACTION_UPDATE)

        logger.info(f"[lifecycle] Lesson {lesson.id} confirmed by teacher")
        return lesson

    def delete_lesson(self, uow, lesson_id, organization_id):
        """Soft delete: the lesson is cancelled, never removed."""
        with uow.atomic():
            lesson = self._lock_lesson(lesson_id, organization_id)
            if lesson.status == Lesson.STATUS_COMPLETED:
                raise InvalidLessonTransitionError('Cannot delete completed lesson')

            lesson.status = Lesson.STATUS_CANCELLED
            lesson.cancelled_at = timezone.now()
            lesson.cancellation_reason = 'Deleted by user'
            lesson.save(update_fields=['status', 'cancelled_at', 'cancellation_reason', 'updated_at'])

            uow.on_commit(self.calendar.sync, 'calendar sync', lesson.id, ACTION_CANCEL)

        logger.info(f"[lifecycle] Lesson {lesson.id} deleted (cancelled)")
        return lesson
