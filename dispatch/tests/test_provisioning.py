from datetime import date, time

import pytest
from django.db import IntegrityError, connection

from dispatch.exceptions import ConflictError, NotFoundError, ValidationError
from dispatch.models import AmbulanceClass, AuditEvent, Occurrence, OccurrenceSlot, OccurrenceStatus, Role
from dispatch.services import provisioning
from dispatch.services.crew import RoleRequest, SlotSpec
from dispatch.services.provisioning import create_occurrence_with_crew, dispatch_occurrence

from .conftest import PAYMENT, TODAY, event_fields

pytestmark = pytest.mark.django_db


def test_open_crew_creates_unclaimed_slots(make_occurrence, dispatcher):
    occurrence = make_occurrence()
    assert occurrence.status == OccurrenceStatus.OPEN
    assert occurrence.ambulance_class == AmbulanceClass.EMERGENCY
    assert occurrence.created_by == dispatcher
    slots = list(occurrence.slots.order_by('id'))
    assert [s.role for s in slots] == [Role.PHYSICIAN, Role.NURSE]
    assert all(s.holder_id is None and not s.confirmed for s in slots)
    assert AuditEvent.objects.filter(action='occurrence_create', object_id=occurrence.id).exists()


def test_extra_nurses_add_open_slots(make_occurrence):
    occurrence = make_occurrence(crew=(Role.NURSE,), extra_nurses=2)
    assert occurrence.ambulance_class == AmbulanceClass.BASIC
    assert occurrence.slots.filter(role=Role.NURSE, holder__isnull=True).count() == 3


def test_pre_assigned_slots_are_confirmed(make_occurrence, physician):
    occurrence = make_occurrence(crew=(RoleRequest(Role.PHYSICIAN, physician.id), Role.NURSE))
    held = occurrence.slots.get(holder=physician)
    assert held.confirmed and held.confirmed_at is not None
    assert occurrence.status == OccurrenceStatus.OPEN


def test_fully_pre_assigned_crew_is_confirmed_on_creation(make_occurrence, physician, nurse):
    occurrence = make_occurrence(crew=(RoleRequest(Role.PHYSICIAN, physician.id), RoleRequest(Role.NURSE, nurse.id)))
    assert occurrence.status == OccurrenceStatus.CONFIRMED
    assert occurrence.transitions.filter(from_status='open', to_status='confirmed').count() == 1


def test_unknown_pre_assigned_professional(make_occurrence):
    with pytest.raises(NotFoundError):
        make_occurrence(crew=(RoleRequest(Role.NURSE, 999999),))
    assert not Occurrence.objects.exists()


def test_pre_assigned_professional_with_other_role(make_occurrence, nurse):
    with pytest.raises(ValidationError):
        make_occurrence(crew=(RoleRequest(Role.PHYSICIAN, nurse.id),))


def test_inactive_professional_cannot_be_pre_assigned(make_occurrence, nurse):
    nurse.is_active = False
    nurse.save()
    with pytest.raises(NotFoundError):
        make_occurrence(crew=(RoleRequest(Role.NURSE, nurse.id),))


@pytest.mark.parametrize('overrides', [
    {'arrival_time': time(7, 0)},
    {'end_time': time(8, 30)},
    {'location': ''},
    {'location': ' AB '},
])
def test_invalid_fields(make_occurrence, overrides):
    with pytest.raises(ValidationError):
        make_occurrence(**overrides)
    assert not Occurrence.objects.exists()


def test_past_scheduled_date_rejected(make_occurrence):
    with pytest.raises(ValidationError) as exc:
        make_occurrence(today=date(2025, 3, 11))
    assert exc.value.detail['field'] == 'scheduled_date'
    assert not Occurrence.objects.exists()


def test_today_is_a_valid_scheduled_date(make_occurrence):
    occurrence = make_occurrence(today=date(2025, 3, 10))
    assert occurrence.scheduled_date == date(2025, 3, 10)


def test_emergency_crew_without_physician_rate(dispatcher):
    with pytest.raises(ValidationError) as exc:
        dispatch_occurrence(
            event_fields(), [RoleRequest(Role.PHYSICIAN)], created_by=dispatcher, today=TODAY,
            nurse_rate=PAYMENT['nurse_rate'], payment_date=PAYMENT['payment_date'],
        )
    assert exc.value.detail['field'] == 'physician_rate'
    assert not Occurrence.objects.exists()


def test_unknown_field_rejected():
    specs = [SlotSpec(role=Role.NURSE)]
    with pytest.raises(ValidationError):
        create_occurrence_with_crew({**event_fields(), 'ambulance_class': 'basic', 'colour': 'red'}, specs, today=TODAY)


def test_class_must_match_slots():
    specs = [SlotSpec(role=Role.PHYSICIAN)]
    with pytest.raises(ValidationError):
        create_occurrence_with_crew({**event_fields(), 'ambulance_class': AmbulanceClass.BASIC}, specs, today=TODAY)


def test_slot_failure_rolls_back_the_occurrence(monkeypatch):
    def boom(occurrence, specs):
        raise IntegrityError('slot insert failed')
    monkeypatch.setattr(provisioning, '_create_slots', boom)
    with pytest.raises(ConflictError):
        dispatch_occurrence(event_fields(), [RoleRequest(Role.NURSE)], today=TODAY, **PAYMENT)
    assert not Occurrence.objects.exists()
    assert not OccurrenceSlot.objects.exists()


def test_compensating_delete_without_transactions(monkeypatch):
    monkeypatch.setattr(connection.features, 'supports_transactions', False)

    def boom(occurrence, specs):
        assert Occurrence.objects.filter(pk=occurrence.pk).exists()
        raise IntegrityError('slot insert failed')
    monkeypatch.setattr(provisioning, '_create_slots', boom)
    with pytest.raises(ConflictError):
        create_occurrence_with_crew(
            {**event_fields(), 'ambulance_class': AmbulanceClass.BASIC}, [SlotSpec(role=Role.NURSE)], today=TODAY,
        )
    assert not Occurrence.objects.exists()


def test_numbers_are_unique_across_creations(make_occurrence):
    numbers = {make_occurrence().number for _ in range(3)}
    assert len(numbers) == 3
