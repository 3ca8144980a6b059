"""
Races between real database connections.

Each worker runs in its own thread, so Django hands it its own
connection and the claim and numbering paths contend on the database
itself rather than on a shared test transaction.
"""
import threading
from datetime import datetime

import pytest
from django.db import connection

from dispatch.exceptions import ConflictError
from dispatch.models import OccurrenceSlot, OccurrenceStatus, Role
from dispatch.services.numbering import next_occurrence_number
from dispatch.services.participation import confirm_participation

pytestmark = pytest.mark.django_db(transaction=True)


def _race(workers):
    """Start every worker at the same barrier and collect ``(value, error)`` per worker."""
    barrier = threading.Barrier(len(workers))
    results = [None] * len(workers)

    def run(index, work):
        try:
            barrier.wait(timeout=10)
            results[index] = (work(), None)
        except Exception as exc:
            results[index] = (None, exc)
        finally:
            connection.close()

    threads = [threading.Thread(target=run, args=(i, w)) for i, w in enumerate(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)
    return results


def test_two_nurses_racing_for_the_last_slot(make_occurrence, nurse, other_nurse):
    occurrence = make_occurrence(crew=(Role.PHYSICIAN, Role.NURSE))

    results = _race([
        lambda: confirm_participation(occurrence.id, nurse.id, Role.NURSE),
        lambda: confirm_participation(occurrence.id, other_nurse.id, Role.NURSE),
    ])

    winners = [value for value, error in results if error is None]
    losers = [error for value, error in results if error is not None]
    assert len(winners) == 1
    assert len(losers) == 1
    assert type(losers[0]) is ConflictError
    assert OccurrenceSlot.objects.filter(occurrence=occurrence, role=Role.NURSE, confirmed=True).count() == 1
    assert winners[0].holder_id in (nurse.id, other_nurse.id)
    occurrence.refresh_from_db()
    assert occurrence.status == OccurrenceStatus.OPEN


def test_both_nurses_win_when_two_slots_are_open(make_occurrence, nurse, other_nurse):
    occurrence = make_occurrence(crew=(Role.NURSE,), extra_nurses=1)

    results = _race([
        lambda: confirm_participation(occurrence.id, nurse.id, Role.NURSE),
        lambda: confirm_participation(occurrence.id, other_nurse.id, Role.NURSE),
    ])

    assert [error for _, error in results] == [None, None]
    assert {slot.holder_id for slot, _ in results} == {nurse.id, other_nurse.id}
    occurrence.refresh_from_db()
    assert occurrence.status == OccurrenceStatus.CONFIRMED
    assert occurrence.transitions.filter(to_status=OccurrenceStatus.CONFIRMED).count() == 1


def test_concurrent_numbers_are_distinct(db):
    when = datetime(2025, 3, 15, 12, 0)
    results = _race([lambda: next_occurrence_number(when) for _ in range(4)])

    assert [error for _, error in results] == [None] * 4
    numbers = [value for value, _ in results]
    assert sorted(numbers) == [f'OC2025030{n:03d}' for n in range(1, 5)]
