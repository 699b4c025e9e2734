"""
Domain errors shared by the balance, lessons and payments apps.

Raising one of these inside a service aborts the surrounding atomic block.
"Nothing to do" situations are not errors: the ledger returns a LedgerOutcome instead.
"""
from rest_framework import status


class DomainError(Exception):
    code = 'domain_error'
    http_status = status.HTTP_400_BAD_REQUEST

    def __init__(self, message=None):
        super().__init__(message or self.default_message())

    def default_message(self):
        return 'Operation rejected'

    def extra(self):
        """Additional fields merged into the API error payload."""
        return {}


class NotFoundError(DomainError):
    code = 'not_found'
    http_status = status.HTTP_404_NOT_FOUND


class BudgetNotFoundError(NotFoundError):
    code = 'budget_not_found'

    def __init__(self, student_id, operation):
        self.student_id = student_id
        self.operation = operation
        super().__init__(f'Budget not found for student {student_id} ({operation})')


class EnrollmentNotFoundError(NotFoundError):
    code = 'enrollment_not_found'

    def __init__(self, enrollment_id):
        self.enrollment_id = enrollment_id
        super().__init__(f'Enrollment {enrollment_id} not found')


class LessonNotFoundError(NotFoundError):
    code = 'lesson_not_found'

    def __init__(self, lesson_id):
        self.lesson_id = lesson_id
        super().__init__(f'Lesson {lesson_id} not found')


class PaymentNotFoundError(NotFoundError):
    code = 'payment_not_found'

    def __init__(self, payment_id):
        self.payment_id = payment_id
        super().__init__(f'Payment {payment_id} not found')


class StudentNotFoundError(NotFoundError):
    code = 'student_not_found'

    def __init__(self, student_id=None):
        self.student_id = student_id
        super().__init__(f'Student {student_id} not found' if student_id is not None else 'Student profile not found')


class InsufficientHoursError(DomainError):
    """PACKAGE enrollment has fewer remaining hours than the lesson needs."""
    code = 'insufficient_budget'
    http_status = status.HTTP_409_CONFLICT

    def __init__(self, remaining_hours, required_hours):
        self.remaining_hours = remaining_hours
        self.required_hours = required_hours
        super().__init__(
            f'Insufficient budget. Remaining hours: {remaining_hours:.2f}, Required: {required_hours:.2f}'
        )

    def extra(self):
        return {
            'remainingHours': float(self.remaining_hours),
            'requiredHours': float(self.required_hours),
        }


class InvalidLessonTransitionError(DomainError):
    code = 'invalid_transition'
    http_status = status.HTTP_409_CONFLICT


class PaymentLockedError(DomainError):
    code = 'payment_locked'
    http_status = status.HTTP_409_CONFLICT


class LedgerValidationError(DomainError):
    code = 'validation_error'
