from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from ..middleware import context_for
from ..permissions import IsCrewRole, IsDispatcherRole
from ..serializers.availability import AvailabilitySerializer, AvailableProfessionalsQuerySerializer
from ..services.availability import available_professionals, mark_available, mark_unavailable


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsCrewRole])
def set_availability(request):
    """Mark the caller off (``unavailable: true``) or back on for a day."""
    s = AvailabilitySerializer(data=request.data)
    s.is_valid(raise_exception=True)
    d = s.validated_data
    mark = mark_unavailable if d['unavailable'] else mark_available
    entry = mark(request.user.id, d['date'], d.get('notes', ''), ctx=context_for(request))
    return Response({'ok': True, 'data': {
        'date': entry.date.isoformat(),
        'unavailable': entry.unavailable,
        'notes': entry.notes,
    }})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsDispatcherRole])
def free_professionals(request):
    """Crew professionals a dispatcher can pre-assign on a given day."""
    q = AvailableProfessionalsQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    people = available_professionals(q.validated_data['date'], q.validated_data.get('role'))
    return Response({'ok': True, 'data': [
        {'id': p.id, 'name': p.display_name, 'role': p.role} for p in people
    ]})
