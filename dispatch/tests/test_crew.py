from datetime import date, time
from decimal import Decimal

import pytest

from dispatch.exceptions import ValidationError
from dispatch.models import AmbulanceClass, Role, WorkKind
from dispatch.services.crew import RoleRequest, compose_crew, derive_ambulance_class

from .conftest import PAYMENT


def test_physician_and_nurse_make_an_emergency_crew():
    plan = compose_crew(WorkKind.EMERGENCY, [RoleRequest(Role.PHYSICIAN), RoleRequest(Role.NURSE)], **PAYMENT)
    assert plan.ambulance_class == AmbulanceClass.EMERGENCY
    assert [s.role for s in plan.slots] == [Role.PHYSICIAN, Role.NURSE]
    assert all(s.holder_id is None for s in plan.slots)
    assert not plan.fully_assigned


def test_nurses_only_is_basic():
    assert derive_ambulance_class([Role.NURSE, Role.NURSE]) == AmbulanceClass.BASIC
    plan = compose_crew(WorkKind.DOMICILIARY, [RoleRequest(Role.NURSE)], 2,
                        nurse_rate='80', payment_date=date(2025, 4, 1))
    assert plan.ambulance_class == AmbulanceClass.BASIC
    assert len(plan.slots) == 3


def test_rates_follow_the_slot_role():
    plan = compose_crew(
        WorkKind.EMERGENCY,
        [RoleRequest(Role.PHYSICIAN, professional_id=7), RoleRequest(Role.NURSE)],
        1,
        physician_rate='150.00', nurse_rate=Decimal('90'), payment_date=date(2025, 4, 1),
    )
    physician, nurse, extra = plan.slots
    assert physician.payment_amount == Decimal('150.00')
    assert physician.holder_id == 7
    assert nurse.payment_amount == Decimal('90')
    assert extra.role == Role.NURSE and extra.payment_amount == Decimal('90')
    assert {s.payment_date for s in plan.slots} == {date(2025, 4, 1)}


def test_physician_only_crew_needs_no_nurse_rate():
    plan = compose_crew(WorkKind.EMERGENCY, [RoleRequest(Role.PHYSICIAN)],
                        physician_rate='200', payment_date=date(2025, 4, 1))
    assert plan.slots[0].payment_amount == Decimal('200')


def test_fully_assigned_when_every_request_names_a_professional():
    plan = compose_crew(WorkKind.EMERGENCY, [RoleRequest(Role.NURSE, 1), RoleRequest(Role.NURSE, 2)], **PAYMENT)
    assert plan.fully_assigned


@pytest.mark.parametrize('kwargs', [
    {'work_kind': 'party', 'role_requests': [RoleRequest(Role.NURSE)]},
    {'work_kind': WorkKind.EMERGENCY, 'role_requests': []},
    {'work_kind': WorkKind.EMERGENCY, 'role_requests': [RoleRequest(Role.DRIVER)]},
    {'work_kind': WorkKind.EMERGENCY, 'role_requests': [RoleRequest(Role.NURSE)], 'extra_nurse_count': 6},
    {'work_kind': WorkKind.EMERGENCY, 'role_requests': [RoleRequest(Role.NURSE)], 'extra_nurse_count': -1},
    {'work_kind': WorkKind.EMERGENCY, 'role_requests': [RoleRequest(Role.NURSE, 3), RoleRequest(Role.NURSE, 3)]},
    {'work_kind': WorkKind.EMERGENCY, 'role_requests': [RoleRequest(Role.NURSE)], 'nurse_rate': '-1'},
    {'work_kind': WorkKind.EVENT, 'role_requests': [RoleRequest(Role.NURSE)]},
    {'work_kind': WorkKind.TRANSFER, 'role_requests': [RoleRequest(Role.NURSE)], 'origin': 'A'},
    {'work_kind': WorkKind.EMERGENCY, 'role_requests': [RoleRequest(Role.NURSE)],
     'ambulance_class': AmbulanceClass.EMERGENCY},
])
def test_rejected_requests(kwargs):
    kwargs = {**PAYMENT, **kwargs}
    with pytest.raises(ValidationError):
        compose_crew(**kwargs)


@pytest.mark.parametrize('missing, field', [
    ('physician_rate', 'physician_rate'),
    ('nurse_rate', 'nurse_rate'),
    ('payment_date', 'payment_date'),
])
def test_payment_terms_are_required(missing, field):
    terms = {k: v for k, v in PAYMENT.items() if k != missing}
    with pytest.raises(ValidationError) as exc:
        compose_crew(WorkKind.EMERGENCY, [RoleRequest(Role.PHYSICIAN), RoleRequest(Role.NURSE)], **terms)
    assert exc.value.detail['field'] == field


def test_extra_nurses_need_a_nurse_rate():
    with pytest.raises(ValidationError):
        compose_crew(WorkKind.EMERGENCY, [RoleRequest(Role.PHYSICIAN)], 1,
                     physician_rate='200', payment_date=date(2025, 4, 1))


def test_event_and_transfer_requirements_are_met():
    compose_crew(WorkKind.EVENT, [RoleRequest(Role.NURSE)], end_time=time(18), **PAYMENT)
    compose_crew(WorkKind.TRANSFER, [RoleRequest(Role.NURSE)], origin='A', destination='B', **PAYMENT)
