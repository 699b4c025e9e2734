"""
Service wiring. Built once in CoreConfig.ready() and shared by reference.
"""
from dataclasses import dataclass, fields

from django.apps import apps
from django.conf import settings


@dataclass(frozen=True)
class Services:
    ledger: object
    payments: object
    notifier: object
    calendar: object
    lifecycle: object
    lessons: object

    def names(self):
        return [f.name for f in fields(self)]


def build_services():
    from balance.services.ledger import BalanceLedger
    from payments.services import PaymentService
    from notifications.services import LessonNotifier
    from lessons.services.calendar import CalendarSync
    from lessons.services.lifecycle import LessonLifecycleCoordinator
    from lessons.services.lessons import LessonService

    ledger = BalanceLedger(
        default_currency=settings.LEDGER_DEFAULT_CURRENCY,
        recent_limit=settings.LEDGER_RECENT_TRANSACTIONS,
    )
    notifier = LessonNotifier()
    payments = PaymentService(ledger=ledger, notifier=notifier)
    calendar = CalendarSync.from_settings()
    lifecycle = LessonLifecycleCoordinator(ledger=ledger, payments=payments, notifier=notifier)
    lessons = LessonService(lifecycle=lifecycle, notifier=notifier, calendar=calendar)
    return Services(
        ledger=ledger,
        payments=payments,
        notifier=notifier,
        calendar=calendar,
        lifecycle=lifecycle,
        lessons=lessons,
    )


def get_services():
    return apps.get_app_config('core').services
