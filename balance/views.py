"""
Balance API views: student balance, transaction history, manual adjustments.
"""
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from accounts.permissions import IsAdmin, IsStaffMember, IsStudent
from balance.serializers import BalanceAdjustSerializer, TransactionHistoryQuerySerializer
from core.container import get_services
from core.exceptions import StudentNotFoundError
from core.uow import UnitOfWork
from core.utils import filter_by_organization
from students.models import StudentProfile


def _get_student(request, student_id):
    qs = filter_by_organization(StudentProfile.objects.filter(is_deleted=False), request.user)
    student = qs.filter(id=student_id).first()
    if student is None:
        raise StudentNotFoundError(student_id)
    return student


def _own_student(request):
    student = StudentProfile.objects.filter(user=request.user, is_deleted=False).first()
    if student is None:
        raise StudentNotFoundError()
    return student


def _history_response(request, student):
    query = TransactionHistoryQuerySerializer(data=request.query_params)
    if not query.is_valid():
        return Response(query.errors, status=status.HTTP_400_BAD_REQUEST)
    history = get_services().ledger.get_transaction_history(
        student.id,
        student.organization_id,
        **query.to_history_kwargs(),
    )
    return Response(history)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStaffMember])
def student_balance_view(request, student_id):
    """
    GET /api/balance/{student_id}/
    Current balance and the most recent transactions.
    """
    student = _get_student(request, student_id)
    return Response(get_services().ledger.get_student_balance(student.id, student.organization_id))


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStaffMember])
def student_transactions_view(request, student_id):
    """
    GET /api/balance/{student_id}/transactions/?limit=&offset=&type=&dateFrom=&dateTo=
    """
    return _history_response(request, _get_student(request, student_id))


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdmin])
def balance_adjust_view(request, student_id):
    """
    POST /api/balance/{student_id}/adjust/
    Body: { amount, description }. Admin only.
    """
    student = _get_student(request, student_id)
    serializer = BalanceAdjustSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    result = get_services().ledger.adjust_balance(
        UnitOfWork.begin(),
        student_id=student.id,
        organization_id=student.organization_id,
        amount=serializer.validated_data['amount'],
        description=serializer.validated_data['description'],
        created_by_id=request.user.id,
    )
    return Response(result.as_dict(), status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStudent])
def my_balance_view(request):
    """GET /api/balance/my/"""
    student = _own_student(request)
    return Response(get_services().ledger.get_student_balance(student.id, student.organization_id))


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStudent])
def my_transactions_view(request):
    """GET /api/balance/my/transactions/"""
    return _history_response(request, _own_student(request))
