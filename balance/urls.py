"""
URLs for balance app.
"""
from django.urls import path
from balance.views import (
    student_balance_view,
    student_transactions_view,
    balance_adjust_view,
    my_balance_view,
    my_transactions_view,
)

urlpatterns = [
    path('my/', my_balance_view, name='balance-my'),
    path('my/transactions/', my_transactions_view, name='balance-my-transactions'),
    path('<int:student_id>/', student_balance_view, name='balance-student'),
    path('<int:student_id>/transactions/', student_transactions_view, name='balance-student-transactions'),
    path('<int:student_id>/adjust/', balance_adjust_view, name='balance-adjust'),
]
