"""
Lesson API views. Billing effects of status changes happen in LessonService.
"""
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from accounts.permissions import IsStaffMember
from core.container import get_services
from core.exceptions import LessonNotFoundError
from core.uow import UnitOfWork
from core.utils import filter_by_organization, user_organization_id
from lessons.models import Lesson
from lessons.serializers import LessonSerializer, LessonUpdateSerializer


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsStaffMember])
def lesson_detail_view(request, pk):
    """
    GET /api/lessons/{id}/
    PATCH /api/lessons/{id}/  - status/schedule/field changes; COMPLETED bills the lesson
    DELETE /api/lessons/{id}/ - soft delete (cancel); completed lessons are kept
    """
    services = get_services()
    org_id = user_organization_id(request.user)

    if request.method == 'GET':
        lesson = filter_by_organization(
            Lesson.objects.select_related('student__user'), request.user
        ).filter(id=pk).first()
        if lesson is None:
            raise LessonNotFoundError(pk)
        return Response(LessonSerializer(lesson).data)

    if request.method == 'PATCH':
        serializer = LessonUpdateSerializer(data=request.data, partial=True)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        lesson = services.lessons.update_lesson(UnitOfWork.begin(), pk, org_id, serializer.to_changes())
        return Response(LessonSerializer(lesson).data)

    services.lessons.delete_lesson(UnitOfWork.begin(), pk, org_id)
    return Response({'detail': 'Lesson deleted successfully'})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsStaffMember])
def lesson_confirm_view(request, pk):
    """POST /api/lessons/{id}/confirm/"""
    lesson = get_services().lessons.confirm_lesson(UnitOfWork.begin(), pk, user_organization_id(request.user))
    return Response(LessonSerializer(lesson).data)
