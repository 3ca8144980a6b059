"""
Occurrence status lifecycle.

``open -> confirmed -> in_progress -> completed``, one step at a time and
never backwards.  ``confirmed`` is reached only through
:func:`promote_if_fully_staffed`; the other two steps are driven by the
dispatch and completion flows through :func:`transition_status`.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional, Tuple

from django.core.exceptions import ImproperlyConfigured
from django.db import OperationalError, transaction
from django.utils import timezone

from dispatch.context import DispatchContext
from dispatch.events import OccurrenceConfirmed, OccurrenceStatusChanged, publish
from dispatch.exceptions import NotFoundError, TransientStoreError, ValidationError
from dispatch.models import Ambulance, Occurrence, OccurrenceStatus, OccurrenceTransition, Role, User
from dispatch.services.audit import log_action

logger = logging.getLogger(__name__)

S = OccurrenceStatus


def _dispatch_effects(occurrence: Occurrence, payload: Dict[str, Any], now) -> Tuple[str, ...]:
    ambulance_id = payload.get('ambulance_id')
    driver_id = payload.get('driver_id')
    if not ambulance_id or not driver_id:
        raise ValidationError('dispatch requires ambulance_id and driver_id', fields=['ambulance_id', 'driver_id'])
    ambulance = Ambulance.objects.filter(id=ambulance_id).first()
    if ambulance is None:
        raise NotFoundError('ambulance not found', ambulance_id=ambulance_id)
    if not ambulance.active:
        raise ValidationError('ambulance is not active', ambulance_id=ambulance_id)
    driver = User.objects.filter(id=driver_id, is_active=True).first()
    if driver is None:
        raise NotFoundError('driver not found', driver_id=driver_id)
    if driver.role != Role.DRIVER:
        raise ValidationError('assigned professional is not a driver', driver_id=driver_id)
    occurrence.ambulance = ambulance
    occurrence.driver = driver
    occurrence.assigned_at = now
    occurrence.started_at = now
    return ('ambulance', 'driver', 'assigned_at', 'started_at')


def _completion_effects(occurrence: Occurrence, payload: Dict[str, Any], now) -> Tuple[str, ...]:
    occurrence.completed_at = now
    if occurrence.started_at:
        elapsed = now - occurrence.started_at
        occurrence.duration_minutes = max(0, int(elapsed.total_seconds() // 60))
    return ('completed_at', 'duration_minutes')


# from-status -> (next status, effect hook, reachable through transition_status)
Step = Tuple[S, Optional[Callable], bool]
TRANSITIONS: Dict[S, Optional[Step]] = {
    S.OPEN: (S.CONFIRMED, None, False),
    S.CONFIRMED: (S.IN_PROGRESS, _dispatch_effects, True),
    S.IN_PROGRESS: (S.COMPLETED, _completion_effects, True),
    S.COMPLETED: None,
}

if set(TRANSITIONS) != set(OccurrenceStatus):
    raise ImproperlyConfigured('every occurrence status needs an entry in TRANSITIONS')


def next_status(current: str) -> Optional[str]:
    step = TRANSITIONS[S(current)]
    return step[0] if step else None


def can_transition(current: str, new: str) -> bool:
    return new in S.values and next_status(current) == new


def _record(occurrence: Occurrence, old: str, new: str, actor, reason: str) -> None:
    old, new = str(old), str(new)
    actor = actor if getattr(actor, 'is_authenticated', False) else None
    OccurrenceTransition.objects.create(
        occurrence=occurrence, from_status=old, to_status=new, operator=actor, reason=reason,
    )
    log_action(
        user=actor, action='occurrence_transition', object_type='occurrence', object_id=occurrence.id,
        detail={'from': old, 'to': new, 'reason': reason},
    )
    publish(OccurrenceStatusChanged(
        occurrence_id=occurrence.id, number=occurrence.number, from_status=old, to_status=new,
        operator_id=getattr(actor, 'id', None),
    ))
    logger.info("Occurrence %s moved %s -> %s", occurrence.number, old, new)


def promote_if_fully_staffed(occurrence: Occurrence, *, actor=None) -> bool:
    """Move an open occurrence to confirmed when every slot is confirmed.

    The status update is conditional on the row still being open, so two
    callers observing the last claim at the same time promote it once.
    """
    with transaction.atomic():
        slots = list(occurrence.slots.values_list('confirmed', flat=True))
        if not slots or not all(slots):
            return False
        moved = Occurrence.objects.filter(pk=occurrence.pk, status=S.OPEN).update(
            status=S.CONFIRMED, updated_at=timezone.now(),
        )
        if not moved:
            return False
        occurrence.refresh_from_db()
        _record(occurrence, S.OPEN, S.CONFIRMED, actor, 'all slots confirmed')
        publish(OccurrenceConfirmed(occurrence_id=occurrence.id, number=occurrence.number))
    return True


def transition_status(
    occurrence_id: int,
    target: str,
    payload: Optional[Dict[str, Any]] = None,
    *,
    actor=None,
    ctx: Optional[DispatchContext] = None,
) -> Occurrence:
    if actor is None and ctx is not None:
        actor = ctx.user
    payload = payload or {}
    if target not in S.values:
        raise ValidationError(f'unknown status: {target}', field='status')
    try:
        with transaction.atomic():
            occurrence = Occurrence.objects.select_for_update().filter(pk=occurrence_id).first()
            if occurrence is None:
                raise NotFoundError('occurrence not found', occurrence_id=occurrence_id)
            current = occurrence.status
            step = TRANSITIONS[S(current)]
            if step is None or step[0] != target:
                raise ValidationError(
                    f'cannot move occurrence from {current} to {target}', current=current, target=target,
                )
            new, effects, external = step
            if not external:
                raise ValidationError(f'{target} is reached automatically once every slot is confirmed', target=target)
            now = timezone.now()
            changed = effects(occurrence, payload, now) if effects else ()
            occurrence.status = new
            occurrence.save(update_fields=['status', 'updated_at', *changed])
            _record(occurrence, current, new, actor, payload.get('reason') or '')
    except OperationalError as exc:
        logger.warning("Transition of occurrence %s to %s failed: %s", occurrence_id, target, exc)
        raise TransientStoreError('could not change the occurrence status') from exc
    return occurrence
