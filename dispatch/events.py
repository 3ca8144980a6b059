"""
Domain events emitted by the dispatch core.

Events are published only after the surrounding transaction commits.
Each one goes to in-process subscribers through the ``occurrence_event``
signal and to WebSocket clients through the Channels group configured in
``DISPATCH['EVENTS_GROUP']``.
"""
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Optional

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.db import transaction
from django.dispatch import Signal

from .conf import dispatch_setting

logger = logging.getLogger(__name__)

# sender is the event class, kwargs: event=<instance>
occurrence_event = Signal()


@dataclass(frozen=True)
class SlotClaimed:
    occurrence_id: int
    slot_id: int
    professional_id: int
    role: str
    confirmed_at: str

    name = 'slot.claimed'


@dataclass(frozen=True)
class OccurrenceConfirmed:
    occurrence_id: int
    number: str

    name = 'occurrence.confirmed'


@dataclass(frozen=True)
class OccurrenceStatusChanged:
    occurrence_id: int
    number: str
    from_status: str
    to_status: str
    operator_id: Optional[int] = None

    name = 'occurrence.status_changed'


def event_payload(event) -> dict:
    # Channels routes on "type": dots become underscores in the consumer handler name
    return {'type': 'occurrence.event', 'event': event.name, 'data': asdict(event)}


def _deliver(event) -> None:
    occurrence_event.send(sender=type(event), event=event)
    channel_layer = get_channel_layer()
    if channel_layer is None:
        return
    try:
        async_to_sync(channel_layer.group_send)(dispatch_setting('EVENTS_GROUP'), event_payload(event))
    except Exception:
        # the change is already committed; a lost broadcast must not fail the request
        logger.exception("Failed to broadcast %s for occurrence %s", event.name, event.occurrence_id)


def publish(event) -> None:
    """Deliver ``event`` once the current transaction commits."""
    logger.debug("Queued %s %s", event.name, asdict(event))
    transaction.on_commit(lambda: _deliver(event))
