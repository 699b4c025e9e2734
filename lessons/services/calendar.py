"""
External calendar sync. The backend is a dotted path in CALENDAR_SYNC_BACKEND
to a class with ``sync_lesson(lesson_id, action)``; empty disables sync.
"""
import logging

from django.conf import settings
from django.utils.module_loading import import_string

logger = logging.getLogger(__name__)

ACTION_UPDATE = 'update'
ACTION_CANCEL = 'cancel'


class CalendarSync:

    def __init__(self, backend=None):
        self.backend = backend

    @classmethod
    def from_settings(cls):
        path = getattr(settings, 'CALENDAR_SYNC_BACKEND', '') or ''
        if not path:
            return cls()
        return cls(import_string(path)())

    @property
    def enabled(self):
        return self.backend is not None

    def sync(self, lesson_id, action=ACTION_UPDATE):
        if not self.enabled:
            logger.debug(f"[calendar] Sync disabled, skipping {action} for lesson {lesson_id}")
            return False
        self.backend.sync_lesson(lesson_id, action)
        logger.info(f"[calendar] Synced lesson {lesson_id} ({action})")
        return True
