"""
Payment API views. Ledger effects of status changes happen in PaymentService.
"""
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from accounts.permissions import IsStaffMember
from core.container import get_services
from core.uow import UnitOfWork
from core.utils import filter_by_organization, user_organization_id
from payments.models import Payment
from payments.serializers import PaymentCreateSerializer, PaymentSerializer, PaymentUpdateSerializer


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsStaffMember])
def payments_view(request):
    """
    GET /api/payments/?studentId=&status=
    POST /api/payments/
    """
    if request.method == 'GET':
        payments = filter_by_organization(Payment.objects.select_related('student__user'), request.user)
        student_id = request.query_params.get('studentId')
        status_filter = request.query_params.get('status')
        if student_id:
            payments = payments.filter(student_id=student_id)
        if status_filter:
            payments = payments.filter(status=status_filter)
        return Response(PaymentSerializer(payments, many=True).data)

    serializer = PaymentCreateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    payment = get_services().payments.create_payment(
        UnitOfWork.begin(),
        organization_id=user_organization_id(request.user),
        created_by=request.user,
        **serializer.to_service_kwargs(),
    )
    return Response(PaymentSerializer(payment).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsStaffMember])
def payment_detail_view(request, pk):
    """
    GET /api/payments/{id}/
    PATCH /api/payments/{id}/  - COMPLETED records a deposit, leaving COMPLETED reverts it
    DELETE /api/payments/{id}/ - completed payments cannot be deleted
    """
    services = get_services()
    org_id = user_organization_id(request.user)

    if request.method == 'GET':
        return Response(PaymentSerializer(services.payments.get_payment(pk, org_id)).data)

    if request.method == 'PATCH':
        serializer = PaymentUpdateSerializer(data=request.data, partial=True)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        payment = services.payments.update_payment(UnitOfWork.begin(), pk, org_id, serializer.to_changes())
        return Response(PaymentSerializer(payment).data)

    services.payments.delete_payment(UnitOfWork.begin(), pk, org_id)
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStaffMember])
def debtors_view(request):
    """GET /api/payments/debtors/ - students with due PENDING payments, highest debt first"""
    return Response(get_services().payments.get_debtors(user_organization_id(request.user)))
