"""
Serializers for balance app
"""
from datetime import datetime, time
from decimal import Decimal

from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime
from rest_framework import serializers

from .models import BalanceTransaction


class BalanceTransactionSerializer(serializers.ModelSerializer):
    """Ledger row as shown to the frontend. amount is unsigned; signedAmount carries the direction."""
    lessonId = serializers.IntegerField(source='lesson_id', read_only=True, allow_null=True)
    paymentId = serializers.IntegerField(source='payment_id', read_only=True, allow_null=True)
    balanceBefore = serializers.DecimalField(source='balance_before', max_digits=12, decimal_places=2, read_only=True)
    balanceAfter = serializers.DecimalField(source='balance_after', max_digits=12, decimal_places=2, read_only=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)
    createdById = serializers.IntegerField(source='created_by_id', read_only=True, allow_null=True)

    class Meta:
        model = BalanceTransaction
        fields = [
            'id', 'type', 'amount', 'balanceBefore', 'balanceAfter', 'currency',
            'description', 'lessonId', 'paymentId', 'createdById', 'metadata', 'createdAt',
        ]

    def to_representation(self, instance):
        data = super().to_representation(instance)
        for key in ('amount', 'balanceBefore', 'balanceAfter'):
            if data.get(key) is not None:
                data[key] = float(data[key])
        data['signedAmount'] = float(instance.signed_amount)
        return data


class BalanceAdjustSerializer(serializers.Serializer):
    """Manual adjustment: positive credits, negative debits."""
    amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    description = serializers.CharField(max_length=500)

    def validate_amount(self, value):
        if value == Decimal('0'):
            raise serializers.ValidationError("Amount must not be 0")
        return value

    def validate_description(self, value):
        if not value.strip():
            raise serializers.ValidationError("Description is required")
        return value.strip()


class _DateOrDateTimeField(serializers.CharField):
    """Accepts 2024-01-15 or an ISO datetime. Dates stay dates (whole-day filters)."""

    def to_internal_value(self, data):
        value = super().to_internal_value(data)
        parsed = parse_datetime(value)
        if parsed is not None:
            if timezone.is_naive(parsed):
                parsed = timezone.make_aware(parsed)
            return parsed
        parsed = parse_date(value)
        if parsed is not None:
            return parsed
        raise serializers.ValidationError("Expected a date (YYYY-MM-DD) or ISO datetime")


class TransactionHistoryQuerySerializer(serializers.Serializer):
    limit = serializers.IntegerField(required=False, min_value=1, default=50)
    offset = serializers.IntegerField(required=False, min_value=0, default=0)
    type = serializers.ChoiceField(choices=BalanceTransaction.TYPE_CHOICES, required=False)
    dateFrom = _DateOrDateTimeField(required=False)
    dateTo = _DateOrDateTimeField(required=False)

    def validate(self, attrs):
        date_from, date_to = attrs.get('dateFrom'), attrs.get('dateTo')
        if date_from and date_to and _as_datetime(date_from) > _as_datetime(date_to, end=True):
            raise serializers.ValidationError({'dateFrom': "dateFrom must not be after dateTo"})
        return attrs

    def to_history_kwargs(self):
        data = self.validated_data
        return {
            'limit': data['limit'],
            'offset': data['offset'],
            'type': data.get('type'),
            'date_from': data.get('dateFrom'),
            'date_to': data.get('dateTo'),
        }


def _as_datetime(value, end=False):
    if isinstance(value, datetime):
        return value
    return timezone.make_aware(datetime.combine(value, time.max if end else time.min))
