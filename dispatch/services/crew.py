"""
Crew composition.

Turns a dispatcher's crew request into the ambulance class and the list
of slots to provision.  Nothing here touches the database.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, time
from decimal import Decimal
from typing import List, Optional, Sequence

from dispatch.conf import dispatch_setting
from dispatch.exceptions import ValidationError
from dispatch.models import AmbulanceClass, CREW_ROLES, Role, WorkKind


@dataclass(frozen=True)
class RoleRequest:
    """An open slot for ``role``, or a slot pre-assigned to ``professional_id``."""
    role: str
    professional_id: Optional[int] = None

    @property
    def is_open(self) -> bool:
        return self.professional_id is None


@dataclass(frozen=True)
class SlotSpec:
    role: str
    holder_id: Optional[int] = None
    payment_amount: Optional[Decimal] = None
    payment_date: Optional[date] = None


@dataclass
class CrewPlan:
    ambulance_class: str
    slots: List[SlotSpec] = field(default_factory=list)

    @property
    def fully_assigned(self) -> bool:
        return bool(self.slots) and all(s.holder_id is not None for s in self.slots)


def derive_ambulance_class(roles: Sequence[str]) -> str:
    """A physician anywhere on the crew makes it an emergency ambulance."""
    if any(r == Role.PHYSICIAN for r in roles):
        return AmbulanceClass.EMERGENCY
    return AmbulanceClass.BASIC


def _rate(value, name: str) -> Optional[Decimal]:
    if value is None or value == '':
        return None
    try:
        amount = Decimal(str(value))
    except ArithmeticError:
        raise ValidationError(f'{name} must be a number', field=name)
    if amount < 0:
        raise ValidationError(f'{name} cannot be negative', field=name)
    return amount


def _check_work_kind_fields(work_kind, end_time, origin, destination) -> None:
    if work_kind == WorkKind.EVENT and not end_time:
        raise ValidationError('end time is required for events', field='end_time')
    if work_kind == WorkKind.TRANSFER:
        missing = [n for n, v in (('origin', origin), ('destination', destination)) if not (v or '').strip()]
        if missing:
            raise ValidationError('transfers require origin and destination', fields=missing)


def _check_payment(ambulance_class, roles, extra_nurse_count, rates, payment_date) -> None:
    if ambulance_class == AmbulanceClass.EMERGENCY and rates[Role.PHYSICIAN.value] is None:
        raise ValidationError('physician rate is required for emergency ambulances', field='physician_rate')
    if (extra_nurse_count or Role.NURSE in roles) and rates[Role.NURSE.value] is None:
        raise ValidationError('nurse rate is required', field='nurse_rate')
    if payment_date is None:
        raise ValidationError('payment date is required', field='payment_date')


def compose_crew(
    work_kind: str,
    role_requests: Sequence[RoleRequest],
    extra_nurse_count: int = 0,
    *,
    physician_rate=None,
    nurse_rate=None,
    payment_date: Optional[date] = None,
    end_time: Optional[time] = None,
    origin: Optional[str] = None,
    destination: Optional[str] = None,
    ambulance_class: Optional[str] = None,
) -> CrewPlan:
    if work_kind not in WorkKind.values:
        raise ValidationError(f'unknown work kind: {work_kind}', field='work_kind')
    if not role_requests:
        raise ValidationError('an occurrence needs at least one crew member', field='crew')
    max_extra = dispatch_setting('MAX_EXTRA_NURSES')
    if extra_nurse_count < 0 or extra_nurse_count > max_extra:
        raise ValidationError(f'extra nurses must be between 0 and {max_extra}', field='extra_nurses')
    _check_work_kind_fields(work_kind, end_time, origin, destination)

    seen = set()
    for req in role_requests:
        if req.role not in CREW_ROLES:
            raise ValidationError(f'{req.role} is not a crew role', field='crew')
        if not req.is_open:
            if req.professional_id in seen:
                raise ValidationError('a professional can fill only one slot', professional_id=req.professional_id)
            seen.add(req.professional_id)

    derived = derive_ambulance_class([r.role for r in role_requests])
    if ambulance_class and ambulance_class != derived:
        raise ValidationError(
            f'ambulance class {ambulance_class} does not match the crew (expected {derived})',
            field='ambulance_class',
        )

    rates = {
        Role.PHYSICIAN.value: _rate(physician_rate, 'physician_rate'),
        Role.NURSE.value: _rate(nurse_rate, 'nurse_rate'),
    }
    _check_payment(derived, [r.role for r in role_requests], extra_nurse_count, rates, payment_date)
    slots = [
        SlotSpec(role=req.role, holder_id=req.professional_id, payment_amount=rates[str(req.role)], payment_date=payment_date)
        for req in role_requests
    ]
    slots.extend(
        SlotSpec(role=Role.NURSE, payment_amount=rates[Role.NURSE.value], payment_date=payment_date)
        for _ in range(extra_nurse_count)
    )
    return CrewPlan(ambulance_class=derived, slots=slots)
