from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class BudgetVersion(db.Model):
    """
    A numbered snapshot of planned spending for an event.

    INVARIANTS:
    - version_number is unique per event (uq_budget_versions_event_number)
    - at most one version per event has is_final = true
      (partial unique index uq_budget_versions_event_final)

    Line items are owned by the version and removed with it.
    """
    __tablename__ = "budget_versions"
    __table_args__ = (
        db.UniqueConstraint("event_id", "version_number", name="uq_budget_versions_event_number"),
        db.Index(
            "uq_budget_versions_event_final",
            "event_id",
            unique=True,
            sqlite_where=db.text("is_final = 1"),
            postgresql_where=db.text("is_final"),
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    event_id = db.Column(db.Integer, db.ForeignKey("events.id"), nullable=False, index=True)
    version_number = db.Column(db.Integer, nullable=False)
    notes = db.Column(db.Text, nullable=True)
    is_final = db.Column(db.Boolean, nullable=False, default=False)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    event = db.relationship("Event", backref=db.backref("budget_versions", lazy=True))
    creator = db.relationship("User")
    items = db.relationship(
        "BudgetLineItem",
        back_populates="budget_version",
        cascade="all, delete-orphan",
        order_by="BudgetLineItem.id",
        lazy=True,
    )

    def __repr__(self) -> str:
        return f"<BudgetVersion id={self.id} event_id={self.event_id} v{self.version_number} final={self.is_final}>"

    @property
    def total_estimated_cost(self) -> float:
        return sum(item.estimated_cost or 0 for item in self.items)

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "event_id": self.event_id,
            "version_number": self.version_number,
            "notes": self.notes,
            "is_final": self.is_final,
            "created_by_user_id": self.created_by_user_id,
            "creator": self.creator.to_summary() if self.creator else None,
            "items_count": len(self.items),
            "total_estimated_cost": self.total_estimated_cost,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class BudgetLineItem(db.Model):
    """
    One planned budget entry. estimated_cost is derived from quantity and
    unit_cost unless supplied explicitly (see budget_service.compute_estimated_cost).
    """
    __tablename__ = "budget_line_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    budget_version_id = db.Column(
        db.Integer,
        db.ForeignKey("budget_versions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    category = db.Column(db.String(64), nullable=False)
    item_name = db.Column(db.String(255), nullable=False)
    vendor_id = db.Column(db.Integer, db.ForeignKey("vendors.id"), nullable=True)

    quantity = db.Column(db.Float, nullable=True)
    unit_cost = db.Column(db.Float, nullable=True)
    estimated_cost = db.Column(db.Float, nullable=False, default=0)
    actual_cost = db.Column(db.Float, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    budget_version = db.relationship("BudgetVersion", back_populates="items")
    vendor = db.relationship("Vendor")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "budget_version_id": self.budget_version_id,
            "category": self.category,
            "item_name": self.item_name,
            "vendor_id": self.vendor_id,
            "vendor": self.vendor.to_summary() if self.vendor else None,
            "quantity": self.quantity,
            "unit_cost": self.unit_cost,
            "estimated_cost": self.estimated_cost,
            "actual_cost": self.actual_cost,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
