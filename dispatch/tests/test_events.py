import pytest
from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer

from dispatch.events import OccurrenceConfirmed, OccurrenceStatusChanged, SlotClaimed, event_payload, occurrence_event
from dispatch.models import Role
from dispatch.services.participation import confirm_participation

pytestmark = pytest.mark.django_db


@pytest.fixture
def received():
    events = []

    def collect(sender, event, **kwargs):
        events.append(event)
    occurrence_event.connect(collect, weak=False)
    yield events
    occurrence_event.disconnect(collect)


def test_filling_the_last_slot_emits_claim_and_confirmation(make_occurrence, nurse, received,
                                                            django_capture_on_commit_callbacks):
    occurrence = make_occurrence(crew=(Role.NURSE,))
    with django_capture_on_commit_callbacks(execute=True):
        slot = confirm_participation(occurrence.id, nurse.id, Role.NURSE)

    kinds = [type(e) for e in received]
    assert SlotClaimed in kinds and OccurrenceConfirmed in kinds and OccurrenceStatusChanged in kinds
    claimed = next(e for e in received if isinstance(e, SlotClaimed))
    assert claimed.slot_id == slot.id and claimed.professional_id == nurse.id and claimed.role == 'nurse'
    changed = next(e for e in received if isinstance(e, OccurrenceStatusChanged))
    assert (changed.from_status, changed.to_status) == ('open', 'confirmed')


def test_events_wait_for_commit(make_occurrence, nurse, received, django_capture_on_commit_callbacks):
    occurrence = make_occurrence()
    with django_capture_on_commit_callbacks(execute=False) as callbacks:
        confirm_participation(occurrence.id, nurse.id, Role.NURSE)
    assert received == []
    assert len(callbacks) == 1


def test_events_reach_the_channel_group(make_occurrence, nurse, settings, django_capture_on_commit_callbacks):
    layer = get_channel_layer()
    channel = async_to_sync(layer.new_channel)()
    async_to_sync(layer.group_add)(settings.DISPATCH['EVENTS_GROUP'], channel)
    occurrence = make_occurrence()
    with django_capture_on_commit_callbacks(execute=True):
        confirm_participation(occurrence.id, nurse.id, Role.NURSE)
    message = async_to_sync(layer.receive)(channel)
    assert message['type'] == 'occurrence.event'
    assert message['event'] == 'slot.claimed'
    assert message['data']['occurrence_id'] == occurrence.id
    async_to_sync(layer.group_discard)(settings.DISPATCH['EVENTS_GROUP'], channel)


def test_payload_shape():
    payload = event_payload(OccurrenceConfirmed(occurrence_id=3, number='OC2025030008'))
    assert payload == {
        'type': 'occurrence.event',
        'event': 'occurrence.confirmed',
        'data': {'occurrence_id': 3, 'number': 'OC2025030008'},
    }
