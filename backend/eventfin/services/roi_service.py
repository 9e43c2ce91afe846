# Overview: ROI aggregator; recomputes and upserts per-event ROI metrics.

"""
ROI Metrics

ROIMetrics is derived data. Every field is recomputed from:
- actual spend: expense_service.calculate_event_actual_spend
- total budget: budget_service.final_budget_total
- revenue, leads, conversions: the event's CRM sync payload

roi_percent = (revenue - actual_spend) / actual_spend * 100, or None when
actual_spend is 0. Recalculation is idempotent for unchanged inputs.
"""

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import ROIMetrics
from ..permissions import Principal
from ..time_utils import utcnow
from .budget_service import final_budget_total
from .crm_service import get_crm_sync, crm_metrics
from .expense_service import calculate_event_actual_spend
from .tenant_service import require_event_in_org


def compute_roi_percent(revenue_generated: float, actual_spend: float) -> float | None:
    if not actual_spend:
        return None
    return (revenue_generated - actual_spend) / actual_spend * 100


def recalculate_event_roi(event_id: int) -> ROIMetrics:
    """Recompute and upsert ROI metrics for an event (no tenant check)."""
    actual_spend = calculate_event_actual_spend(event_id)
    total_budget = final_budget_total(event_id)
    sync = get_crm_sync(event_id)
    crm = crm_metrics(sync.data if sync else None)

    values = {
        "total_budget": total_budget,
        "actual_spend": actual_spend,
        "leads_generated": crm["leads_generated"],
        "conversions": crm["conversions"],
        "revenue_generated": crm["revenue_generated"],
        "roi_percent": compute_roi_percent(crm["revenue_generated"], actual_spend),
        "calculated_at": utcnow(),
    }

    metrics = db.session.query(ROIMetrics).filter(ROIMetrics.event_id == event_id).first()
    if metrics is None:
        metrics = ROIMetrics(event_id=event_id, **values)
        db.session.add(metrics)
        try:
            db.session.commit()
            return metrics
        except IntegrityError:
            # Concurrent first calculation inserted the row; update it instead
            db.session.rollback()
            metrics = db.session.query(ROIMetrics).filter(ROIMetrics.event_id == event_id).one()

    for key, value in values.items():
        setattr(metrics, key, value)
    db.session.commit()
    return metrics


def calculate_roi(principal: Principal, event_id: int) -> ROIMetrics:
    require_event_in_org(event_id, principal.org_id)
    return recalculate_event_roi(event_id)


def get_roi_metrics(principal: Principal, event_id: int) -> ROIMetrics:
    """Stored metrics, calculated on first read."""
    require_event_in_org(event_id, principal.org_id)
    metrics = db.session.query(ROIMetrics).filter(ROIMetrics.event_id == event_id).first()
    if metrics is None:
        metrics = recalculate_event_roi(event_id)
    return metrics
