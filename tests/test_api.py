"""
API tests: balance, lessons and payments endpoints, roles and error format.
"""
from decimal import Decimal

from django.test import TestCase
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import AccessToken

from accounts.models import User
from balance.models import StudentBudget
from courses.models import StudentEnrollment
from lessons.models import Lesson
from payments.models import Payment
from tests.factories import make_enrollment, make_lesson, make_org, make_student, make_user


class ApiTestCase(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.org = make_org()
        self.admin = make_user(self.org, User.ROLE_ADMIN)
        self.teacher = make_user(self.org, User.ROLE_TEACHER)
        self.student = make_student(self.org)

    def _auth_header(self, user: User) -> dict:
        token = str(AccessToken.for_user(user))
        return {"HTTP_AUTHORIZATION": f"Bearer {token}"}


class BalanceApiTests(ApiTestCase):
    def test_requires_authentication(self):
        response = self.client.get(f"/api/balance/{self.student.id}/")
        self.assertEqual(response.status_code, 401)

    def test_teacher_reads_student_balance(self):
        response = self.client.get(f"/api/balance/{self.student.id}/", **self._auth_header(self.teacher))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["balance"], 0.0)
        self.assertEqual(response.data["currency"], "PLN")
        self.assertEqual(response.data["recentTransactions"], [])

    def test_admin_adjusts_balance(self):
        response = self.client.post(
            f"/api/balance/{self.student.id}/adjust/",
            {"amount": "-25.50", "description": "Late cancellation"},
            format="json",
            **self._auth_header(self.admin),
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["newBalance"], -25.5)
        self.assertEqual(StudentBudget.objects.get(student=self.student).current_balance, Decimal("-25.50"))

    def test_teacher_cannot_adjust(self):
        response = self.client.post(
            f"/api/balance/{self.student.id}/adjust/",
            {"amount": "10", "description": "x"},
            format="json",
            **self._auth_header(self.teacher),
        )
        self.assertEqual(response.status_code, 403)

    def test_student_sees_own_history(self):
        self.client.post(
            f"/api/balance/{self.student.id}/adjust/",
            {"amount": "40", "description": "Welcome bonus"},
            format="json",
            **self._auth_header(self.admin),
        )
        response = self.client.get(
            "/api/balance/my/transactions/?limit=5&type=ADJUSTMENT", **self._auth_header(self.student.user)
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["pagination"]["total"], 1)
        self.assertEqual(response.data["transactions"][0]["signedAmount"], 40.0)

    def test_invalid_history_filter(self):
        response = self.client.get(
            f"/api/balance/{self.student.id}/transactions/?type=BOGUS", **self._auth_header(self.teacher)
        )
        self.assertEqual(response.status_code, 400)

    def test_student_cannot_use_staff_balance_endpoint(self):
        response = self.client.get(f"/api/balance/{self.student.id}/", **self._auth_header(self.student.user))
        self.assertEqual(response.status_code, 403)

    def test_student_of_other_organization_not_found(self):
        other = make_student(make_org("Other"))
        response = self.client.get(f"/api/balance/{other.id}/", **self._auth_header(self.teacher))
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.data["code"], "student_not_found")


class LessonApiTests(ApiTestCase):
    def test_insufficient_hours_returns_conflict(self):
        enrollment = make_enrollment(self.student, hours_purchased="10", hours_used="9.5")
        lesson = make_lesson(enrollment, duration_minutes=60)

        response = self.client.patch(
            f"/api/lessons/{lesson.id}/",
            {"status": "COMPLETED"},
            format="json",
            **self._auth_header(self.teacher),
        )

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.data["code"], "insufficient_budget")
        self.assertEqual(response.data["remainingHours"], 0.5)
        self.assertEqual(response.data["requiredHours"], 1.0)
        lesson.refresh_from_db()
        self.assertEqual(lesson.status, Lesson.STATUS_SCHEDULED)

    def test_complete_per_lesson_creates_payment(self):
        enrollment = make_enrollment(self.student, payment_mode=StudentEnrollment.PAYMENT_MODE_PER_LESSON)
        lesson = make_lesson(enrollment)

        response = self.client.patch(
            f"/api/lessons/{lesson.id}/",
            {"status": "COMPLETED"},
            format="json",
            **self._auth_header(self.teacher),
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["status"], "COMPLETED")
        self.assertEqual(Payment.objects.filter(lesson=lesson, status=Payment.STATUS_PENDING).count(), 1)

    def test_confirm_and_delete(self):
        lesson = make_lesson(make_enrollment(self.student))
        confirm = self.client.post(f"/api/lessons/{lesson.id}/confirm/", **self._auth_header(self.teacher))
        self.assertEqual(confirm.status_code, 200)
        self.assertEqual(confirm.data["status"], "CONFIRMED")

        delete = self.client.delete(f"/api/lessons/{lesson.id}/", **self._auth_header(self.teacher))
        self.assertEqual(delete.status_code, 200)
        lesson.refresh_from_db()
        self.assertEqual(lesson.status, Lesson.STATUS_CANCELLED)

    def test_completed_lesson_delete_conflict(self):
        lesson = make_lesson(make_enrollment(self.student), status=Lesson.STATUS_COMPLETED)
        response = self.client.delete(f"/api/lessons/{lesson.id}/", **self._auth_header(self.teacher))
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.data["code"], "invalid_transition")

    def test_student_cannot_update_lessons(self):
        lesson = make_lesson(make_enrollment(self.student))
        response = self.client.patch(
            f"/api/lessons/{lesson.id}/", {"status": "COMPLETED"}, format="json",
            **self._auth_header(self.student.user),
        )
        self.assertEqual(response.status_code, 403)


class PaymentApiTests(ApiTestCase):
    def test_create_completed_payment(self):
        response = self.client.post(
            "/api/payments/",
            {"studentId": self.student.id, "amount": "120.00", "status": "COMPLETED", "paymentMethod": "CASH"},
            format="json",
            **self._auth_header(self.teacher),
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["amount"], 120.0)
        self.assertEqual(StudentBudget.objects.get(student=self.student).current_balance, Decimal("120.00"))

    def test_completed_payment_delete_conflict(self):
        payment = Payment.objects.create(
            organization=self.org, student=self.student, amount=Decimal("10"), status=Payment.STATUS_COMPLETED
        )
        response = self.client.delete(f"/api/payments/{payment.id}/", **self._auth_header(self.teacher))
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.data["code"], "payment_locked")

    def test_debtors(self):
        Payment.objects.create(organization=self.org, student=self.student, amount=Decimal("60"))
        response = self.client.get("/api/payments/debtors/", **self._auth_header(self.teacher))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]["totalDebt"], 60.0)


class HealthApiTests(TestCase):
    def test_health(self):
        response = self.client.get("/api/health/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "ok")
