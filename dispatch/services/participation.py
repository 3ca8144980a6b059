"""
Slot claiming.

A professional confirms participation on an occurrence by claiming one
unclaimed slot of their role.  The claim is a conditional UPDATE that
only matches a still-free row, so two professionals racing for the last
slot cannot both win; the ``(occurrence, holder)`` unique constraint
stops one professional from taking two slots.
"""
from __future__ import annotations

import logging
from typing import List, Optional

from django.db import IntegrityError, OperationalError, transaction
from django.utils import timezone

from dispatch.conf import dispatch_setting
from dispatch.context import DispatchContext, ensure_context
from dispatch.events import SlotClaimed, publish
from dispatch.exceptions import ConflictError, NotFoundError, TransientStoreError, ValidationError
from dispatch.models import CREW_ROLES, Occurrence, OccurrenceSlot, OccurrenceStatus, User
from dispatch.services.audit import log_action
from dispatch.services.availability import get_professional
from dispatch.services.status import promote_if_fully_staffed

logger = logging.getLogger(__name__)


def _load_professional(professional_id: int, ctx: DispatchContext) -> User:
    professional = get_professional(professional_id, ctx=ctx)
    if not professional.is_active:
        raise NotFoundError('professional not found', professional_id=professional_id)
    return professional


def _candidate_slots(occurrence_id: int, role: str) -> List[int]:
    return list(
        OccurrenceSlot.objects.filter(
            occurrence_id=occurrence_id, role=role, holder__isnull=True, confirmed=False,
        ).order_by('id').values_list('id', flat=True)
    )


def _claim_row(slot_id: int, professional_id: int, now) -> bool:
    """Compare-and-set: take the slot only if it is still unclaimed."""
    try:
        with transaction.atomic():
            updated = OccurrenceSlot.objects.filter(
                id=slot_id, holder__isnull=True, confirmed=False,
            ).update(holder_id=professional_id, confirmed=True, confirmed_at=now)
    except IntegrityError as exc:
        raise ConflictError('professional already confirmed on this occurrence',
                            professional_id=professional_id) from exc
    return updated == 1


def _confirm_held(slot: OccurrenceSlot, now) -> None:
    updated = OccurrenceSlot.objects.filter(
        id=slot.id, holder_id=slot.holder_id, confirmed=False,
    ).update(confirmed=True, confirmed_at=now)
    if not updated:
        raise ConflictError('slot was confirmed concurrently', slot_id=slot.id)


def _claim_open_slot(occurrence_id: int, professional_id: int, role: str, now) -> int:
    attempts = 1 + dispatch_setting('CLAIM_RETRIES')
    tried = set()
    for _ in range(attempts):
        candidates = [sid for sid in _candidate_slots(occurrence_id, role) if sid not in tried]
        if not candidates:
            break
        slot_id = candidates[0]
        if _claim_row(slot_id, professional_id, now):
            return slot_id
        tried.add(slot_id)
        logger.info("Lost the race for slot %s on occurrence %s, retrying", slot_id, occurrence_id)
    raise ConflictError('no slot available', occurrence_id=occurrence_id, role=role)


def _confirm_once(occurrence_id: int, professional: User, role: str) -> OccurrenceSlot:
    with transaction.atomic():
        occurrence = Occurrence.objects.select_for_update().filter(pk=occurrence_id).first()
        if occurrence is None:
            raise NotFoundError('occurrence not found', occurrence_id=occurrence_id)

        held = OccurrenceSlot.objects.filter(occurrence=occurrence, holder=professional).first()
        if held is not None and held.confirmed:
            raise ConflictError('already confirmed', occurrence_id=occurrence_id, slot_id=held.id)
        if occurrence.status != OccurrenceStatus.OPEN:
            raise ConflictError(
                f'occurrence is {occurrence.status}, not open', occurrence_id=occurrence_id,
            )

        now = timezone.now()
        if held is not None:
            _confirm_held(held, now)
            slot_id = held.id
        else:
            slot_id = _claim_open_slot(occurrence.id, professional.id, role, now)

        promote_if_fully_staffed(occurrence, actor=professional)

        slot = OccurrenceSlot.objects.get(pk=slot_id)
        log_action(
            user=professional, action='slot_confirm', object_type='occurrence_slot', object_id=slot.id,
            detail={'occurrence': occurrence.number, 'role': str(slot.role)},
        )
        publish(SlotClaimed(
            occurrence_id=occurrence.id, slot_id=slot.id, professional_id=professional.id,
            role=str(slot.role), confirmed_at=slot.confirmed_at.isoformat(),
        ))
    logger.info("Professional %s confirmed %s slot %s on %s", professional.id, role, slot.id, occurrence.number)
    return slot


def confirm_participation(
    occurrence_id: int,
    professional_id: int,
    role: str,
    *,
    ctx: Optional[DispatchContext] = None,
) -> OccurrenceSlot:
    """Claim and confirm a slot of ``role`` on the occurrence for the professional.

    A slot pre-assigned to the professional but not yet confirmed is
    confirmed in place; otherwise the lowest-id unclaimed slot of the role
    is taken.  When the claim fills the last slot the occurrence moves to
    ``confirmed`` in the same transaction.

    Raises :class:`NotFoundError`, :class:`ValidationError`,
    :class:`ConflictError` or, after one retry, :class:`TransientStoreError`.
    """
    ctx = ensure_context(ctx)
    if role not in CREW_ROLES:
        raise ValidationError(f'{role} is not a crew role', field='role')
    if not Occurrence.objects.filter(pk=occurrence_id).exists():
        raise NotFoundError('occurrence not found', occurrence_id=occurrence_id)
    professional = _load_professional(professional_id, ctx)
    if professional.role != role:
        raise ValidationError(
            f'professional role is {professional.role}, not {role}', field='role',
        )

    try:
        return _confirm_once(occurrence_id, professional, role)
    except OperationalError as exc:
        logger.warning("Claim on occurrence %s hit a store error, retrying: %s", occurrence_id, exc)
    try:
        return _confirm_once(occurrence_id, professional, role)
    except OperationalError as exc:
        raise TransientStoreError('could not confirm participation') from exc
