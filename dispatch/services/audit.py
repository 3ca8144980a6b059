"""
Audit trail for dispatch actions.

Rows are written through the caller's connection, so an action rolled
back with its transaction leaves no audit row behind.
"""
import logging
from typing import Any, Dict, List, Optional

from django.contrib.auth import get_user_model

from dispatch.models import AuditEvent

logger = logging.getLogger(__name__)

User = get_user_model()


def log_action(*, user: Optional[User], action: str, object_type: Optional[str] = None,
               object_id: Optional[int] = None, detail: Optional[Dict[str, Any]] = None) -> AuditEvent:
    actor = user if isinstance(user, User) and user.pk else None
    event = AuditEvent.objects.create(
        user=actor,
        action=action,
        object_type=object_type, object_id=object_id,
        detail=detail or {},
    )
    logger.debug("audit %s %s:%s by %s", action, object_type, object_id, getattr(actor, 'pk', None))
    return event


def audit_trail(object_type: str, object_id: int) -> List[AuditEvent]:
    """Oldest first."""
    return list(
        AuditEvent.objects.filter(object_type=object_type, object_id=object_id)
        .select_related('user').order_by('created_at', 'id')
    )
