"""
Admin configuration for lessons app
"""
from django.contrib import admin
from .models import Lesson


@admin.register(Lesson)
class LessonAdmin(admin.ModelAdmin):
    """Status is read-only here: status changes must go through LessonService to keep billing consistent."""
    list_display = ['title', 'student', 'teacher', 'scheduled_at', 'duration_minutes', 'status']
    list_filter = ['status', 'scheduled_at']
    search_fields = ['title', 'student__user__email', 'teacher__user__email']
    readonly_fields = ['status', 'completed_at', 'cancelled_at', 'created_at', 'updated_at']
    ordering = ['-scheduled_at']
