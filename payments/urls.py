"""
URLs for payments app.
"""
from django.urls import path
from payments.views import payments_view, payment_detail_view, debtors_view

urlpatterns = [
    path('', payments_view, name='payments'),
    path('debtors/', debtors_view, name='payments-debtors'),
    path('<int:pk>/', payment_detail_view, name='payment-detail'),
]
