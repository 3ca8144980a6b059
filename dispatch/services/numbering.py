"""
Occurrence number issuance.

Numbers look like ``OC2025030008``: the prefix, the year and month, and
a four digit sequence that restarts every month.  Issuance locks the
month's :class:`OccurrenceSequence` row, so concurrent callers are
serialized by the database and never receive the same value.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from django.db import IntegrityError, OperationalError, transaction
from django.db.models import Max
from django.utils import timezone

from dispatch.conf import dispatch_setting
from dispatch.exceptions import ConflictError, TransientStoreError
from dispatch.models import Occurrence, OccurrenceSequence

logger = logging.getLogger(__name__)

SEQUENCE_DIGITS = 4
MAX_SEQUENCE = 10 ** SEQUENCE_DIGITS - 1


def month_prefix(now: datetime) -> str:
    return f"{dispatch_setting('NUMBER_PREFIX')}{now:%Y%m}"


def _highest_existing(prefix: str) -> int:
    last = (
        Occurrence.objects.filter(number__startswith=prefix)
        .aggregate(last=Max('number'))['last']
    )
    if not last:
        return 0
    tail = last[len(prefix):]
    return int(tail) if tail.isdigit() else 0


def _locked_counter(prefix: str) -> OccurrenceSequence:
    counter = OccurrenceSequence.objects.select_for_update().filter(prefix=prefix).first()
    if counter is not None:
        return counter
    try:
        with transaction.atomic():
            OccurrenceSequence.objects.create(prefix=prefix, last_value=_highest_existing(prefix))
    except IntegrityError:
        # another caller created the month's row first
        pass
    return OccurrenceSequence.objects.select_for_update().get(prefix=prefix)


def next_occurrence_number(now: Optional[datetime] = None) -> str:
    """Issue the next occurrence number for the month of ``now``.

    When called inside an outer transaction (as the provisioner does) the
    counter stays locked until that transaction ends, and a rollback
    returns the number to the pool.
    """
    now = now or timezone.now()
    if timezone.is_aware(now):
        now = timezone.localtime(now)
    prefix = month_prefix(now)
    try:
        with transaction.atomic():
            counter = _locked_counter(prefix)
            current = max(counter.last_value, _highest_existing(prefix))
            if current >= MAX_SEQUENCE:
                raise ConflictError('monthly occurrence sequence exhausted', prefix=prefix)
            counter.last_value = current + 1
            counter.save(update_fields=['last_value', 'updated_at'])
    except OperationalError as exc:
        logger.warning("Occurrence number issuance failed for %s: %s", prefix, exc)
        raise TransientStoreError('could not reach the store to issue an occurrence number') from exc
    number = f"{prefix}{counter.last_value:0{SEQUENCE_DIGITS}d}"
    logger.debug("Issued occurrence number %s", number)
    return number
