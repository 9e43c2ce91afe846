# Overview: Insight generation over final budget versus approved spend.

"""
Insights

generate_insights compares approved spend with the final budget total.
When no version is final nothing is generated.

APPEND-ONLY: each call inserts new rows. Calling twice with unchanged
inputs yields duplicate insights (at-least-once); readers should use the
newest row per type.
"""

from __future__ import annotations

from ..extensions import db
from ..models import Insight
from ..permissions import Principal
from .budget_service import get_final_version, final_budget_total
from .expense_service import calculate_event_actual_spend
from .tenant_service import require_event_in_org


VARIANCE_ALERT_PERCENT = 10


def budget_variance(budget: float, actual: float) -> dict | None:
    """
    Variance insight payload, or None when within VARIANCE_ALERT_PERCENT.
    A zero budget reports 0% variance.
    """
    variance = actual - budget
    variance_percent = (variance / budget * 100) if budget > 0 else 0.0

    if abs(variance_percent) <= VARIANCE_ALERT_PERCENT:
        return None

    over = variance_percent > 0
    return {
        "type": "budget_variance",
        "severity": "warning" if over else "info",
        "message": f"Actual spend is {abs(variance_percent):.1f}% {'over' if over else 'under'} budget",
        "data": {
            "budget": budget,
            "actual": actual,
            "variance": variance,
            "variancePercent": variance_percent,
        },
    }


def generate_event_insights(event_id: int) -> list[Insight]:
    """Generate and append insights for an event (no tenant check)."""
    if get_final_version(event_id) is None:
        return []

    candidates = [
        budget_variance(final_budget_total(event_id), calculate_event_actual_spend(event_id)),
    ]

    insights = [
        Insight(
            event_id=event_id,
            insight_type=c["type"],
            severity=c["severity"],
            message=c["message"],
            data=c["data"],
        )
        for c in candidates
        if c is not None
    ]
    if insights:
        db.session.add_all(insights)
        db.session.commit()
    return insights


def generate_insights(principal: Principal, event_id: int) -> list[Insight]:
    require_event_in_org(event_id, principal.org_id)
    return generate_event_insights(event_id)


def get_insights(principal: Principal, event_id: int) -> list[Insight]:
    """Stored insights for an event, newest first."""
    require_event_in_org(event_id, principal.org_id)
    return (
        db.session.query(Insight)
        .filter(Insight.event_id == event_id)
        .order_by(Insight.created_at.desc(), Insight.id.desc())
        .all()
    )
