"""
URLs for lessons app.
"""
from django.urls import path
from lessons.views import lesson_detail_view, lesson_confirm_view

urlpatterns = [
    path('<int:pk>/', lesson_detail_view, name='lesson-detail'),
    path('<int:pk>/confirm/', lesson_confirm_view, name='lesson-confirm'),
]
