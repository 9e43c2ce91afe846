# Overview: Periodic recompute jobs for ROI metrics and insights.

"""
Periodic Jobs

Both jobs pick recently active events and re-run the same synchronous
operations the API exposes. Events are processed one at a time; a failure
on one event is rolled back, logged and does not stop the rest.

Scheduling is external (cron running `flask jobs ...`).
"""

from __future__ import annotations

from datetime import timedelta

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..errors import ServiceError
from ..models import CrmSync, Event, Expense, ExpenseStatus
from ..time_utils import utcnow
from .insight_service import generate_event_insights
from .roi_service import recalculate_event_roi


def events_for_roi_recalc(*, since_hours: int = 1, limit: int = 20) -> list[int]:
    """Events with approved expenses created, or a CRM sync, in the window."""
    cutoff = utcnow() - timedelta(hours=since_hours)

    recent_expense = db.session.query(Expense.id).filter(
        Expense.event_id == Event.id,
        Expense.status == ExpenseStatus.APPROVED.value,
        Expense.created_at >= cutoff,
    ).correlate(Event).exists()
    recent_sync = db.session.query(CrmSync.id).filter(
        CrmSync.event_id == Event.id,
        CrmSync.last_synced_at >= cutoff,
    ).correlate(Event).exists()

    rows = (
        db.session.query(Event.id)
        .filter(db.or_(recent_expense, recent_sync))
        .order_by(Event.id.asc())
        .limit(limit)
        .all()
    )
    return [row.id for row in rows]


def events_for_insights(*, since_hours: int = 24, limit: int = 50) -> list[int]:
    """Events updated, or with any expense created, in the window."""
    cutoff = utcnow() - timedelta(hours=since_hours)

    recent_expense = db.session.query(Expense.id).filter(
        Expense.event_id == Event.id,
        Expense.created_at >= cutoff,
    ).correlate(Event).exists()

    rows = (
        db.session.query(Event.id)
        .filter(db.or_(Event.updated_at >= cutoff, recent_expense))
        .order_by(Event.id.asc())
        .limit(limit)
        .all()
    )
    return [row.id for row in rows]


def _run_per_event(event_ids: list[int], operation, label: str) -> dict:
    processed, failed = 0, []
    for event_id in event_ids:
        try:
            operation(event_id)
            processed += 1
        except (ServiceError, SQLAlchemyError):
            db.session.rollback()
            current_app.logger.exception("Failed to %s for event %s", label, event_id)
            failed.append(event_id)
    current_app.logger.info(
        "%s job completed: %s processed, %s failed", label, processed, len(failed)
    )
    return {"processed": processed, "failed": failed}


def run_roi_recalc(*, since_hours: int = 1, limit: int = 20) -> dict:
    event_ids = events_for_roi_recalc(since_hours=since_hours, limit=limit)
    return _run_per_event(event_ids, recalculate_event_roi, "calculate ROI")


def run_insight_generation(*, since_hours: int = 24, limit: int = 50) -> dict:
    event_ids = events_for_insights(since_hours=since_hours, limit=limit)
    return _run_per_event(event_ids, generate_event_insights, "generate insights")
