"""
Admin configuration for students app
"""
from django.contrib import admin
from .models import StudentProfile, TeacherProfile


@admin.register(StudentProfile)
class StudentProfileAdmin(admin.ModelAdmin):
    """Student Profile Admin"""
    list_display = ['user', 'organization', 'payment_due_day_of_month', 'payment_due_days', 'created_at', 'deleted_at']
    list_filter = ['organization', 'created_at']
    search_fields = ['user__email', 'user__first_name', 'user__last_name', 'user__phone']
    readonly_fields = ['created_at', 'updated_at']
    ordering = ['-created_at']


@admin.register(TeacherProfile)
class TeacherProfileAdmin(admin.ModelAdmin):
    list_display = ['user', 'organization', 'created_at']
    search_fields = ['user__email', 'user__first_name', 'user__last_name']
    readonly_fields = ['created_at', 'updated_at']
