"""
Serializers for payments app
"""
from decimal import Decimal
from rest_framework import serializers
from django.core.validators import MinValueValidator
from .models import Payment


class PaymentSerializer(serializers.ModelSerializer):
    studentId = serializers.IntegerField(source='student_id', read_only=True)
    studentName = serializers.CharField(source='student.full_name', read_only=True)
    enrollmentId = serializers.IntegerField(source='enrollment_id', read_only=True, allow_null=True)
    lessonId = serializers.IntegerField(source='lesson_id', read_only=True, allow_null=True)
    paymentMethod = serializers.CharField(source='payment_method', read_only=True)
    paymentNumber = serializers.CharField(source='receipt_no', read_only=True)
    dueAt = serializers.DateField(source='due_at', read_only=True, allow_null=True)
    paidAt = serializers.DateTimeField(source='paid_at', read_only=True, allow_null=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)

    class Meta:
        model = Payment
        fields = [
            'id', 'studentId', 'studentName', 'enrollmentId', 'lessonId', 'amount', 'currency',
            'status', 'paymentMethod', 'notes', 'paymentNumber', 'dueAt', 'paidAt', 'createdAt',
        ]

    def to_representation(self, instance):
        data = super().to_representation(instance)
        if data.get('amount') is not None:
            data['amount'] = float(data['amount'])
        return data


class _NullableIntegerField(serializers.IntegerField):
    """Accepts empty string as None for optional IDs from frontend."""

    def to_internal_value(self, data):
        if data in (None, '', []) or (isinstance(data, str) and not str(data).strip()):
            return None
        return super().to_internal_value(data)


class PaymentCreateSerializer(serializers.Serializer):
    """Payment create body (frontend format)"""
    studentId = serializers.IntegerField()
    enrollmentId = _NullableIntegerField(required=False, allow_null=True)
    amount = serializers.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.01'))]
    )
    currency = serializers.CharField(max_length=3, required=False)
    status = serializers.ChoiceField(choices=Payment.STATUS_CHOICES, default=Payment.STATUS_PENDING)
    paymentMethod = serializers.ChoiceField(choices=Payment.METHOD_CHOICES, default=Payment.METHOD_CASH)
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    paidAt = serializers.DateTimeField(required=False, allow_null=True)
    dueAt = serializers.DateField(required=False, allow_null=True)

    def to_service_kwargs(self):
        data = self.validated_data
        return {
            'student_id': data['studentId'],
            'enrollment_id': data.get('enrollmentId'),
            'amount': data['amount'],
            'currency': data.get('currency'),
            'status': data['status'],
            'payment_method': data['paymentMethod'],
            'notes': data.get('notes'),
            'paid_at': data.get('paidAt'),
            'due_at': data.get('dueAt'),
        }


class PaymentUpdateSerializer(serializers.Serializer):
    """PATCH body. Only provided keys are changed."""
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, min_value=0)
    status = serializers.ChoiceField(choices=Payment.STATUS_CHOICES, required=False)
    paymentMethod = serializers.ChoiceField(choices=Payment.METHOD_CHOICES, required=False)
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    paidAt = serializers.DateTimeField(required=False, allow_null=True)
    dueAt = serializers.DateField(required=False, allow_null=True)

    FIELD_MAP = {
        'amount': 'amount',
        'status': 'status',
        'paymentMethod': 'payment_method',
        'notes': 'notes',
        'paidAt': 'paid_at',
        'dueAt': 'due_at',
    }

    def to_changes(self):
        return {self.FIELD_MAP[key]: value for key, value in self.validated_data.items()}
