"""
Occurrence creation together with its crew slots.

The occurrence row and all of its slots become visible in one unit of
work.  Backends without multi-statement transactions get an explicit
compensating delete instead, so no occurrence is ever left without
slots.
"""
from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict, List, Optional, Sequence

from django.db import IntegrityError, OperationalError, connection, transaction
from django.utils import timezone

from dispatch.context import DispatchContext, ensure_context
from dispatch.exceptions import ConflictError, NotFoundError, TransientStoreError, ValidationError
from dispatch.models import Occurrence, OccurrenceSlot, OccurrenceStatus, User
from dispatch.services.audit import log_action
from dispatch.services.crew import RoleRequest, SlotSpec, compose_crew, derive_ambulance_class
from dispatch.services.numbering import next_occurrence_number
from dispatch.services.status import promote_if_fully_staffed

logger = logging.getLogger(__name__)

OCCURRENCE_FIELDS = (
    'work_kind', 'ambulance_class', 'scheduled_date', 'departure_time', 'arrival_time', 'end_time',
    'location', 'address', 'origin', 'destination', 'description',
)
REQUIRED_FIELDS = ('work_kind', 'ambulance_class', 'scheduled_date', 'departure_time', 'arrival_time', 'location')
MIN_LOCATION_LENGTH = 3


def _clean_fields(fields: Dict[str, Any], slot_specs: Sequence[SlotSpec], today: date) -> Dict[str, Any]:
    unknown = sorted(set(fields) - set(OCCURRENCE_FIELDS))
    if unknown:
        raise ValidationError('unknown occurrence fields', fields=unknown)
    missing = [name for name in REQUIRED_FIELDS if fields.get(name) in (None, '')]
    if missing:
        raise ValidationError('missing required occurrence fields', fields=missing)

    derived = derive_ambulance_class([s.role for s in slot_specs])
    if fields['ambulance_class'] != derived:
        raise ValidationError(
            'ambulance class must match the crew composition',
            ambulance_class=fields['ambulance_class'], expected=str(derived),
        )
    if fields['scheduled_date'] < today:
        raise ValidationError('scheduled date cannot be in the past', field='scheduled_date', today=today.isoformat())
    if len(str(fields['location']).strip()) < MIN_LOCATION_LENGTH:
        raise ValidationError(f'location must have at least {MIN_LOCATION_LENGTH} characters', field='location')
    if fields['arrival_time'] <= fields['departure_time']:
        raise ValidationError('arrival time must be after departure time', field='arrival_time')
    end_time = fields.get('end_time')
    if end_time and end_time <= fields['arrival_time']:
        raise ValidationError('end time must be after arrival time', field='end_time')

    values = {name: fields.get(name) for name in OCCURRENCE_FIELDS if name in fields}
    for text in ('address', 'origin', 'destination', 'description'):
        if values.get(text) is None:
            values.pop(text, None)
    return values


def _check_holders(slot_specs: Sequence[SlotSpec], ctx: DispatchContext) -> None:
    wanted = {s.holder_id: s.role for s in slot_specs if s.holder_id is not None}
    if not wanted:
        return
    found = {
        u.id: u for u in User.objects.filter(id__in=wanted.keys(), is_active=True).only('id', 'role', 'is_active')
    }
    for holder_id, role in wanted.items():
        professional = found.get(holder_id)
        if professional is None:
            raise NotFoundError('pre-assigned professional not found', professional_id=holder_id)
        if professional.role != role:
            raise ValidationError(
                'pre-assigned professional does not have the slot role',
                professional_id=holder_id, role=str(role),
            )
        ctx.cache[('professional', holder_id)] = professional


def _create_occurrence_row(values: Dict[str, Any], created_by: Optional[User]) -> Occurrence:
    return Occurrence.objects.create(
        number=next_occurrence_number(),
        status=OccurrenceStatus.OPEN,
        created_by=created_by,
        **values,
    )


def _create_slots(occurrence: Occurrence, slot_specs: Sequence[SlotSpec]) -> List[OccurrenceSlot]:
    now = timezone.now()
    return OccurrenceSlot.objects.bulk_create([
        OccurrenceSlot(
            occurrence=occurrence,
            role=spec.role,
            holder_id=spec.holder_id,
            confirmed=spec.holder_id is not None,
            confirmed_at=now if spec.holder_id is not None else None,
            payment_amount=spec.payment_amount,
            payment_date=spec.payment_date,
        )
        for spec in slot_specs
    ])


def _insert_atomically(values, slot_specs, created_by) -> Occurrence:
    with transaction.atomic():
        occurrence = _create_occurrence_row(values, created_by)
        _create_slots(occurrence, slot_specs)
        _audit(occurrence, slot_specs, created_by)
    return occurrence


def _insert_with_compensation(values, slot_specs, created_by) -> Occurrence:
    occurrence = _create_occurrence_row(values, created_by)
    try:
        _create_slots(occurrence, slot_specs)
    except Exception:
        logger.warning("Slot insertion failed for %s, removing the occurrence", occurrence.number)
        occurrence.delete()
        raise
    _audit(occurrence, slot_specs, created_by)
    return occurrence


def _audit(occurrence: Occurrence, slot_specs, created_by) -> None:
    log_action(
        user=created_by, action='occurrence_create', object_type='occurrence', object_id=occurrence.id,
        detail={'number': occurrence.number, 'slots': len(slot_specs), 'ambulanceClass': str(occurrence.ambulance_class)},
    )


def create_occurrence_with_crew(
    fields: Dict[str, Any],
    slot_specs: Sequence[SlotSpec],
    *,
    created_by: Optional[User] = None,
    ctx: Optional[DispatchContext] = None,
    today: Optional[date] = None,
) -> Occurrence:
    """Persist an occurrence in status ``open`` with one slot per spec.

    Pre-assigned specs are stored already confirmed.  Promoting an
    occurrence whose slots were all pre-assigned is left to the caller.
    Scheduled dates before ``today`` (default: the local date) are
    rejected.
    """
    ctx = ensure_context(ctx, created_by)
    if not slot_specs:
        raise ValidationError('an occurrence needs at least one crew member', field='crew')
    values = _clean_fields(fields, slot_specs, today or timezone.localdate())
    _check_holders(slot_specs, ctx)
    if created_by is not None and not getattr(created_by, 'is_authenticated', False):
        created_by = None

    try:
        if connection.features.supports_transactions:
            occurrence = _insert_atomically(values, slot_specs, created_by)
        else:
            occurrence = _insert_with_compensation(values, slot_specs, created_by)
    except IntegrityError as exc:
        raise ConflictError('occurrence conflicts with existing data (duplicate number or holder)') from exc
    except OperationalError as exc:
        raise TransientStoreError('could not store the occurrence') from exc

    logger.info("Created occurrence %s with %d slots", occurrence.number, len(slot_specs))
    return occurrence


def dispatch_occurrence(
    fields: Dict[str, Any],
    role_requests: Sequence[RoleRequest],
    *,
    extra_nurse_count: int = 0,
    physician_rate=None,
    nurse_rate=None,
    payment_date=None,
    created_by: Optional[User] = None,
    ctx: Optional[DispatchContext] = None,
    today: Optional[date] = None,
) -> Occurrence:
    """Compose the crew, create the occurrence and promote it if already fully staffed."""
    ctx = ensure_context(ctx, created_by)
    plan = compose_crew(
        fields.get('work_kind'),
        role_requests,
        extra_nurse_count,
        physician_rate=physician_rate,
        nurse_rate=nurse_rate,
        payment_date=payment_date,
        end_time=fields.get('end_time'),
        origin=fields.get('origin'),
        destination=fields.get('destination'),
        ambulance_class=fields.get('ambulance_class'),
    )
    fields = {**fields, 'ambulance_class': plan.ambulance_class}
    with transaction.atomic():
        occurrence = create_occurrence_with_crew(fields, plan.slots, created_by=created_by, ctx=ctx, today=today)
        if plan.fully_assigned:
            promote_if_fully_staffed(occurrence, actor=created_by)
    occurrence.refresh_from_db()
    return occurrence
