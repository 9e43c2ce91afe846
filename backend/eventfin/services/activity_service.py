# Overview: Activity log sink; best-effort append of domain events.

"""
Activity Log Sink

Append-only record of what happened to an event's budgets and expenses.

BEST-EFFORT: log_activity is called after the primary transaction has
committed. A failed write is rolled back, logged at WARNING and swallowed;
it never fails or undoes the operation that produced it.
"""

from __future__ import annotations

from typing import Any

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import ActivityLog, Event


DEFAULT_PAGE_SIZE = 50


def log_activity(
    event_id: int,
    user_id: int | None,
    action: str,
    details: dict[str, Any] | None = None,
) -> ActivityLog | None:
    """
    Persist one activity log entry.

    Returns the entry, or None if it could not be written.
    """
    entry = ActivityLog(
        event_id=event_id,
        user_id=user_id,
        action=action,
        details=details or {},
    )
    try:
        db.session.add(entry)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.warning(
            "Failed to write activity log %r for event %s", action, event_id, exc_info=True
        )
        return None
    return entry


def get_activity_logs(event_id: int, *, limit: int | None = None, offset: int | None = None) -> dict:
    """Activity logs for one event, newest first."""
    limit = limit or DEFAULT_PAGE_SIZE
    offset = offset or 0

    query = db.session.query(ActivityLog).filter(ActivityLog.event_id == event_id)
    total = query.count()
    logs = (
        query.order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return {"logs": logs, "total": total, "limit": limit, "offset": offset}


def get_all_activity_logs(org_id: int, *, limit: int | None = None, offset: int | None = None) -> dict:
    """Activity logs across every event of an organization, newest first."""
    limit = limit or DEFAULT_PAGE_SIZE
    offset = offset or 0

    query = (
        db.session.query(ActivityLog)
        .join(Event, ActivityLog.event_id == Event.id)
        .filter(Event.org_id == org_id)
    )
    total = query.count()
    logs = (
        query.order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return {"logs": logs, "total": total, "limit": limit, "offset": offset}
