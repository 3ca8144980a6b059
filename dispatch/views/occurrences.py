"""
Occurrence endpoints.

Dispatchers create occurrences and drive them through dispatch and
completion; crew professionals list what they can work on and confirm
their participation.  Domain errors raised by the services are rendered
by ``dispatch.exceptions.api_exception_handler``.
"""
from __future__ import annotations

from django.db.models import Prefetch
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from ..exceptions import NotFoundError
from ..middleware import context_for
from ..models import Occurrence, OccurrenceSlot
from ..permissions import IsCrewRole, IsDispatcherRole
from ..serializers.occurrence import (
    ConfirmSerializer,
    MineQuerySerializer,
    OccurrenceCreateSerializer,
    OccurrenceListItemSerializer,
    OccurrenceSerializer,
    SlotSerializer,
    TransitionSerializer,
)
from ..services.availability import list_for_professional
from ..services.crew import RoleRequest
from ..services.participation import confirm_participation
from ..services.provisioning import dispatch_occurrence
from ..services.status import transition_status


def _with_slots(qs):
    return qs.prefetch_related(
        Prefetch('slots', queryset=OccurrenceSlot.objects.select_related('holder').order_by('id'))
    )


def _load(occurrence_id: int) -> Occurrence:
    occurrence = _with_slots(Occurrence.objects.filter(pk=occurrence_id)).first()
    if occurrence is None:
        raise NotFoundError('occurrence not found', occurrence_id=occurrence_id)
    return occurrence


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsDispatcherRole])
def occurrence_create(request):
    s = OccurrenceCreateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    d = s.validated_data
    occurrence = dispatch_occurrence(
        s.occurrence_fields(),
        [RoleRequest(role=m['role'], professional_id=m.get('professionalId')) for m in d['crew']],
        extra_nurse_count=d.get('extraNurses', 0),
        physician_rate=d.get('physicianRate'),
        nurse_rate=d.get('nurseRate'),
        payment_date=d.get('paymentDate'),
        created_by=request.user,
        ctx=context_for(request),
    )
    return Response({'ok': True, 'data': OccurrenceSerializer(_load(occurrence.id)).data},
                    status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def occurrence_detail(request, occurrence_id: int):
    return Response({'ok': True, 'data': OccurrenceSerializer(_load(occurrence_id)).data})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsCrewRole])
def my_occurrences(request):
    """Occurrences the caller is confirmed on, plus the ones with an open slot for their role."""
    q = MineQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    result = list_for_professional(
        request.user.id,
        q.validated_data.get('role') or request.user.role,
        q.validated_data.get('date'),
        ctx=context_for(request),
    )
    return Response({'ok': True, 'data': {
        'confirmed': OccurrenceSerializer(result['confirmed'], many=True).data,
        'available': OccurrenceListItemSerializer(result['available'], many=True).data,
    }})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsCrewRole])
def occurrence_confirm(request, occurrence_id: int):
    s = ConfirmSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    slot = confirm_participation(
        occurrence_id,
        request.user.id,
        s.validated_data.get('role') or request.user.role,
        ctx=context_for(request),
    )
    occurrence = Occurrence.objects.only('id', 'number', 'status').get(pk=slot.occurrence_id)
    return Response({'ok': True, 'data': {
        'slot': SlotSerializer(slot).data,
        'occurrence': {'id': occurrence.id, 'number': occurrence.number, 'status': occurrence.status},
    }})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsDispatcherRole])
def occurrence_transition(request, occurrence_id: int):
    s = TransitionSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    transition_status(
        occurrence_id, s.validated_data['status'], s.payload(),
        actor=request.user, ctx=context_for(request),
    )
    return Response({'ok': True, 'data': OccurrenceSerializer(_load(occurrence_id)).data})
