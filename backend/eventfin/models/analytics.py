from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class ROIMetrics(db.Model):
    """
    Derived ROI summary for an event (one row per event, upserted).

    Never edited directly: every write comes from roi_service.calculate_roi.
    roi_percent is NULL when actual_spend is 0.
    """
    __tablename__ = "roi_metrics"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    event_id = db.Column(db.Integer, db.ForeignKey("events.id"), nullable=False, unique=True)

    total_budget = db.Column(db.Float, nullable=False, default=0)
    actual_spend = db.Column(db.Float, nullable=False, default=0)
    leads_generated = db.Column(db.Integer, nullable=False, default=0)
    conversions = db.Column(db.Integer, nullable=False, default=0)
    revenue_generated = db.Column(db.Float, nullable=False, default=0)
    roi_percent = db.Column(db.Float, nullable=True)

    calculated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    event = db.relationship("Event", backref=db.backref("roi_metrics", uselist=False, lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "event_id": self.event_id,
            "total_budget": self.total_budget,
            "actual_spend": self.actual_spend,
            "leads_generated": self.leads_generated,
            "conversions": self.conversions,
            "revenue_generated": self.revenue_generated,
            "roi_percent": self.roi_percent,
            "calculated_at": to_utc_z(self.calculated_at),
        }


class Insight(db.Model):
    """
    A generated observation about an event (e.g. budget variance).

    APPEND-ONLY: each generation run adds rows; earlier rows are kept.
    """
    __tablename__ = "insights"
    __table_args__ = (
        db.Index("ix_insights_event_created", "event_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    event_id = db.Column(db.Integer, db.ForeignKey("events.id"), nullable=False)
    insight_type = db.Column(db.String(64), nullable=False)
    severity = db.Column(db.String(16), nullable=False)  # info, warning
    message = db.Column(db.String(255), nullable=False)
    data = db.Column(db.JSON, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "event_id": self.event_id,
            "type": self.insight_type,
            "severity": self.severity,
            "message": self.message,
            "data": self.data,
            "created_at": to_utc_z(self.created_at),
        }
