"""
Due date for automatically created lesson payments.

Student settings, in order of precedence:
- payment_due_day_of_month: next occurrence of that day (today if it is that day).
  Clamped to the month's last day, so 31 means "end of month" in short months.
- payment_due_days: today + N days.
- neither: due today.
"""
import calendar
from datetime import timedelta

from django.utils import timezone


def _clamped_day(year, month, day):
    return min(day, calendar.monthrange(year, month)[1])


def calculate_due_date(student, today=None):
    today = today or timezone.localdate()

    day_of_month = getattr(student, 'payment_due_day_of_month', None)
    if day_of_month:
        this_month_day = _clamped_day(today.year, today.month, day_of_month)
        if today.day <= this_month_day:
            return today.replace(day=this_month_day)
        year, month = (today.year + 1, 1) if today.month == 12 else (today.year, today.month + 1)
        return today.replace(year=year, month=month, day=_clamped_day(year, month, day_of_month))

    due_days = getattr(student, 'payment_due_days', None)
    if due_days:
        return today + timedelta(days=due_days)

    return today
