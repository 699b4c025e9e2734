"""
Shared fixtures for ledger/lifecycle/payment tests.
"""
from datetime import timedelta
from decimal import Decimal
from itertools import count

from django.utils import timezone

from accounts.models import User
from core.models import Organization
from courses.models import Course, CourseType, StudentEnrollment
from lessons.models import Lesson
from students.models import StudentProfile, TeacherProfile

_seq = count(1)


def make_org(name="Test School"):
    n = next(_seq)
    return Organization.objects.create(name=f"{name} {n}", slug=f"test-school-{n}")


def make_user(org, role, first_name="Test"):
    n = next(_seq)
    return User.objects.create_user(
        email=f"{role}{n}@school.test",
        password="pass123",
        first_name=first_name,
        last_name=f"{role.title()} {n}",
        role=role,
        organization=org,
    )


def make_student(org, **extra):
    user = make_user(org, User.ROLE_STUDENT, first_name="Anna")
    return StudentProfile.objects.create(user=user, organization=org, **extra)


def make_teacher(org):
    user = make_user(org, User.ROLE_TEACHER, first_name="Piotr")
    return TeacherProfile.objects.create(user=user, organization=org)


def make_enrollment(student, payment_mode=StudentEnrollment.PAYMENT_MODE_PACKAGE,
                    hours_purchased="10", hours_used="0", price_per_lesson="80.00"):
    org = student.organization
    course_type = CourseType.objects.create(
        organization=org,
        name="English individual",
        price_per_lesson=Decimal(price_per_lesson),
    )
    course = Course.objects.create(organization=org, course_type=course_type, name="English B2")
    return StudentEnrollment.objects.create(
        student=student,
        course=course,
        payment_mode=payment_mode,
        hours_purchased=Decimal(hours_purchased),
        hours_used=Decimal(hours_used),
    )


def make_lesson(enrollment, duration_minutes=60, status=Lesson.STATUS_SCHEDULED, teacher=None,
                teacher_rate=None, title="Conversation practice"):
    return Lesson.objects.create(
        organization=enrollment.student.organization,
        enrollment=enrollment,
        student=enrollment.student,
        teacher=teacher,
        course=enrollment.course,
        title=title,
        scheduled_at=timezone.now() + timedelta(days=1),
        duration_minutes=duration_minutes,
        teacher_rate=Decimal(teacher_rate) if teacher_rate is not None else None,
        status=status,
    )
