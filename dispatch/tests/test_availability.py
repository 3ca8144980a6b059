from datetime import date, time, timedelta

import pytest
from django.db import OperationalError

from dispatch.context import DispatchContext
from dispatch.exceptions import NotFoundError, TransientStoreError, ValidationError
from dispatch.models import AvailabilityEntry, Role
from dispatch.services import availability
from dispatch.services.availability import (
    available_professionals,
    list_for_professional,
    mark_available,
    mark_unavailable,
    unavailable_dates,
)
from dispatch.services.participation import confirm_participation

from .conftest import EVENT_DAY

pytestmark = pytest.mark.django_db

AS_OF = date(2025, 3, 1)


def test_open_slot_is_listed_as_available(make_occurrence, nurse):
    occurrence = make_occurrence(extra_nurses=1)
    result = list_for_professional(nurse.id, Role.NURSE, AS_OF)
    assert result['confirmed'] == []
    assert [o.id for o in result['available']] == [occurrence.id]
    listed = result['available'][0]
    assert (listed.open_count, listed.total_count) == (2, 2)


def test_counts_reflect_claimed_slots(make_occurrence, nurse, other_nurse):
    occurrence = make_occurrence(extra_nurses=1)
    confirm_participation(occurrence.id, other_nurse.id, Role.NURSE)
    listed = list_for_professional(nurse.id, Role.NURSE, AS_OF)['available'][0]
    assert (listed.open_count, listed.total_count) == (1, 2)


def test_confirmed_occurrence_moves_to_confirmed_list(make_occurrence, nurse):
    occurrence = make_occurrence()
    confirm_participation(occurrence.id, nurse.id, Role.NURSE)
    result = list_for_professional(nurse.id, Role.NURSE, AS_OF)
    assert [o.id for o in result['confirmed']] == [occurrence.id]
    assert result['available'] == []


def test_day_off_hides_open_occurrence(make_occurrence, nurse):
    make_occurrence()
    mark_unavailable(nurse.id, EVENT_DAY, 'exam')
    result = list_for_professional(nurse.id, Role.NURSE, AS_OF)
    assert result == {'confirmed': [], 'available': []}


def test_day_off_keeps_already_confirmed_work(make_occurrence, nurse):
    occurrence = make_occurrence()
    confirm_participation(occurrence.id, nurse.id, Role.NURSE)
    mark_unavailable(nurse.id, EVENT_DAY)
    assert [o.id for o in list_for_professional(nurse.id, Role.NURSE, AS_OF)['confirmed']] == [occurrence.id]


def test_other_roles_and_past_days_are_not_offered(make_occurrence, nurse):
    make_occurrence(crew=(Role.PHYSICIAN,))
    make_occurrence(crew=(Role.NURSE,), scheduled_date=AS_OF - timedelta(days=1), today=AS_OF - timedelta(days=5))
    assert list_for_professional(nurse.id, Role.NURSE, AS_OF)['available'] == []


def test_ordering_by_date_then_departure(make_occurrence, nurse):
    late = make_occurrence(crew=(Role.NURSE,), departure_time=time(10), arrival_time=time(11))
    early = make_occurrence(crew=(Role.NURSE,), departure_time=time(6), arrival_time=time(7))
    first = make_occurrence(crew=(Role.NURSE,), scheduled_date=EVENT_DAY - timedelta(days=2))
    ids = [o.id for o in list_for_professional(nurse.id, Role.NURSE, AS_OF)['available']]
    assert ids == [first.id, early.id, late.id]


def test_unknown_professional_and_bad_role(nurse):
    with pytest.raises(NotFoundError):
        list_for_professional(999999, Role.NURSE, AS_OF)
    with pytest.raises(ValidationError):
        list_for_professional(nurse.id, Role.DRIVER, AS_OF)


def test_store_failure_while_listing_is_transient(nurse, monkeypatch):
    def refuse(*args, **kwargs):
        raise OperationalError('connection refused')
    monkeypatch.setattr(availability, '_split', refuse)
    with pytest.raises(TransientStoreError):
        list_for_professional(nurse.id, Role.NURSE, AS_OF)


def test_mark_available_upserts_the_same_entry(nurse):
    mark_unavailable(nurse.id, EVENT_DAY)
    mark_available(nurse.id, EVENT_DAY, 'swapped shift')
    entry = AvailabilityEntry.objects.get(professional=nurse, date=EVENT_DAY)
    assert entry.unavailable is False
    assert entry.notes == 'swapped shift'
    assert unavailable_dates(nurse.id) == set()


def test_unavailable_dates_are_cached_per_context(nurse, django_assert_num_queries):
    mark_unavailable(nurse.id, EVENT_DAY)
    ctx = DispatchContext(user=nurse)
    assert unavailable_dates(nurse.id, ctx=ctx) == {EVENT_DAY}
    with django_assert_num_queries(0):
        assert unavailable_dates(nurse.id, ctx=ctx) == {EVENT_DAY}
    mark_unavailable(nurse.id, EVENT_DAY + timedelta(days=1), ctx=ctx)
    assert unavailable_dates(nurse.id, ctx=ctx) == {EVENT_DAY, EVENT_DAY + timedelta(days=1)}


def test_available_professionals_skip_days_off(physician, nurse, other_nurse, driver, dispatcher):
    mark_unavailable(other_nurse.id, EVENT_DAY)
    free = available_professionals(EVENT_DAY)
    assert {p.id for p in free} == {physician.id, nurse.id}
    assert {p.id for p in available_professionals(EVENT_DAY + timedelta(days=1))} == {
        physician.id, nurse.id, other_nurse.id,
    }


def test_available_professionals_by_role(physician, nurse, other_nurse):
    other_nurse.is_active = False
    other_nurse.save()
    assert [p.id for p in available_professionals(EVENT_DAY, Role.NURSE)] == [nurse.id]
    assert [p.id for p in available_professionals(EVENT_DAY, Role.PHYSICIAN)] == [physician.id]
    with pytest.raises(ValidationError):
        available_professionals(EVENT_DAY, Role.DRIVER)
