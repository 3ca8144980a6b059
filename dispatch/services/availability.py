"""
What a professional sees on their dashboard.

:func:`list_for_professional` splits upcoming occurrences into the ones
the professional is already confirmed on and the ones with an open slot
for their role, skipping days they marked as off.  The day-off calendar
itself is maintained through :func:`mark_unavailable` and
:func:`mark_available`; dispatchers read it back through
:func:`available_professionals` when pre-assigning a crew.
"""
from __future__ import annotations

import logging
from datetime import date
from typing import Dict, List, Optional, Set

from django.db import OperationalError
from django.db.models import Prefetch
from django.utils import timezone

from dispatch.context import DispatchContext, ensure_context
from dispatch.exceptions import NotFoundError, TransientStoreError, ValidationError
from dispatch.models import AvailabilityEntry, CREW_ROLES, Occurrence, OccurrenceSlot, OccurrenceStatus, User

logger = logging.getLogger(__name__)

VISIBLE_STATUSES = (OccurrenceStatus.OPEN, OccurrenceStatus.CONFIRMED)


def get_professional(professional_id: int, *, ctx: Optional[DispatchContext] = None) -> User:
    ctx = ensure_context(ctx)

    def load():
        professional = User.objects.filter(id=professional_id).first()
        if professional is None:
            raise NotFoundError('professional not found', professional_id=professional_id)
        return professional

    return ctx.cached(('professional', professional_id), load)


def unavailable_dates(professional_id: int, *, ctx: Optional[DispatchContext] = None) -> Set[date]:
    ctx = ensure_context(ctx)
    return ctx.cached(
        ('unavailable_dates', professional_id),
        lambda: set(
            AvailabilityEntry.objects.filter(professional_id=professional_id, unavailable=True)
            .values_list('date', flat=True)
        ),
    )


def _set_availability(professional_id: int, day: date, unavailable: bool, notes: str,
                      ctx: Optional[DispatchContext]) -> AvailabilityEntry:
    ctx = ensure_context(ctx)
    try:
        get_professional(professional_id, ctx=ctx)
        entry, _ = AvailabilityEntry.objects.update_or_create(
            professional_id=professional_id, date=day,
            defaults={'unavailable': unavailable, 'notes': notes or ''},
        )
    except OperationalError as exc:
        raise TransientStoreError('could not store the availability entry') from exc
    ctx.forget(('unavailable_dates', professional_id))
    logger.info("Professional %s marked %s on %s", professional_id, 'off' if unavailable else 'on', day)
    return entry


def mark_unavailable(professional_id: int, day: date, notes: str = '', *,
                     ctx: Optional[DispatchContext] = None) -> AvailabilityEntry:
    return _set_availability(professional_id, day, True, notes, ctx)


def mark_available(professional_id: int, day: date, notes: str = '', *,
                   ctx: Optional[DispatchContext] = None) -> AvailabilityEntry:
    return _set_availability(professional_id, day, False, notes, ctx)


def available_professionals(day: date, role: Optional[str] = None) -> List[User]:
    """Active crew professionals without a day off on ``day``, by name."""
    roles = CREW_ROLES if role is None else (role,)
    if role is not None and role not in CREW_ROLES:
        raise ValidationError(f'{role} is not a crew role', field='role')
    off = AvailabilityEntry.objects.filter(date=day, unavailable=True).values('professional_id')
    try:
        return list(
            User.objects.filter(is_active=True, role__in=roles)
            .exclude(id__in=off)
            .order_by('first_name', 'last_name', 'username')
        )
    except OperationalError as exc:
        raise TransientStoreError('could not read the roster') from exc


def _split(professional_id: int, role: str, as_of: date, days_off: Set[date]) -> Dict[str, List[Occurrence]]:
    occurrences = (
        Occurrence.objects.filter(status__in=VISIBLE_STATUSES, scheduled_date__gte=as_of)
        .prefetch_related(Prefetch('slots', queryset=OccurrenceSlot.objects.order_by('id')))
        .order_by('scheduled_date', 'departure_time', 'id')
    )

    confirmed: List[Occurrence] = []
    available: List[Occurrence] = []
    for occurrence in occurrences:
        slots = list(occurrence.slots.all())
        if any(s.holder_id == professional_id and s.confirmed for s in slots):
            confirmed.append(occurrence)
            continue
        if occurrence.scheduled_date in days_off:
            continue
        if occurrence.status != OccurrenceStatus.OPEN:
            continue
        if not any(s.role == role and s.holder_id is None and not s.confirmed for s in slots):
            continue
        occurrence.open_count = sum(1 for s in slots if s.role == role and s.holder_id is None)
        occurrence.total_count = sum(1 for s in slots if s.role == role)
        available.append(occurrence)
    return {'confirmed': confirmed, 'available': available}


def list_for_professional(
    professional_id: int,
    role: str,
    as_of: Optional[date] = None,
    *,
    ctx: Optional[DispatchContext] = None,
) -> Dict[str, List[Occurrence]]:
    """Return ``{"confirmed": [...], "available": [...]}`` for a professional.

    Occurrences in ``available`` carry ``open_count`` (unclaimed slots for
    ``role``) and ``total_count`` (all slots for ``role``).  An occurrence
    never appears in both lists, and both lists are ordered by date then
    departure time.
    """
    ctx = ensure_context(ctx)
    if role not in CREW_ROLES:
        raise ValidationError(f'{role} is not a crew role', field='role')
    as_of = as_of or timezone.localdate()
    try:
        get_professional(professional_id, ctx=ctx)
        days_off = unavailable_dates(professional_id, ctx=ctx)
        return _split(professional_id, role, as_of, days_off)
    except OperationalError as exc:
        logger.warning("Listing occurrences for professional %s failed: %s", professional_id, exc)
        raise TransientStoreError('could not list occurrences') from exc
