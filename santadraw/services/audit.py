from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import AuditLog

logger = logging.getLogger(__name__)


def log_audit(group_id: int | None, actor_user_id: str | None, event_type: str, metadata: dict | None = None) -> None:
    """
    Record an audit event. A failed write is rolled back and logged; it never
    undoes the action being audited.
    """
    entry = AuditLog(
        group_id=group_id,
        actor_user_id=actor_user_id,
        event_type=event_type,
        event_metadata=metadata,
    )
    try:
        db.session.add(entry)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Failed to write audit event %s for group %s", event_type, group_id)
