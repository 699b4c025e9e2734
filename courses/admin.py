"""
Admin configuration for courses app
"""
from django.contrib import admin
from .models import CourseType, Course, StudentEnrollment


@admin.register(CourseType)
class CourseTypeAdmin(admin.ModelAdmin):
    list_display = ['name', 'organization', 'price_per_lesson', 'default_duration_minutes', 'is_active']
    list_filter = ['is_active', 'organization']
    search_fields = ['name']


@admin.register(Course)
class CourseAdmin(admin.ModelAdmin):
    list_display = ['name', 'course_type', 'teacher', 'is_active', 'created_at']
    list_filter = ['is_active']
    search_fields = ['name']
    readonly_fields = ['created_at', 'updated_at']


@admin.register(StudentEnrollment)
class StudentEnrollmentAdmin(admin.ModelAdmin):
    """Hours counters are written by the lesson lifecycle; edit purchased hours only."""
    list_display = ['student', 'course', 'payment_mode', 'hours_purchased', 'hours_used', 'is_active']
    list_filter = ['payment_mode', 'is_active']
    search_fields = ['student__user__email', 'course__name']
    readonly_fields = ['hours_used', 'enrolled_at', 'updated_at']
