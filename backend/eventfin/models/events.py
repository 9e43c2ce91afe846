from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Event(db.Model):
    """
    An organization's event. Owns budget versions, expenses, activity logs,
    the CRM sync payload and the derived ROI/insight rows.

    Event CRUD lives outside this service; the workflow only needs
    id and org_id for tenant checks.
    """
    __tablename__ = "events"
    __table_args__ = (
        db.Index("ix_events_org_id", "org_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    starts_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    organization = db.relationship("Organization", backref=db.backref("events", lazy=True))

    def __repr__(self) -> str:
        return f"<Event id={self.id} name={self.name!r} org_id={self.org_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "name": self.name,
            "starts_at": to_utc_z(self.starts_at),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Vendor(db.Model):
    """
    Vendor reference data.

    MULTI-TENANT: Vendors are scoped to organizations via org_id.
    Budget line items and expenses hold a weak reference (vendor_id) used
    for lookup and display only.
    """
    __tablename__ = "vendors"
    __table_args__ = (
        db.Index("ix_vendors_org_active", "org_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    service_type = db.Column(db.String(64), nullable=True)
    contact_email = db.Column(db.String(255), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    organization = db.relationship("Organization", backref=db.backref("vendors", lazy=True))

    def __repr__(self) -> str:
        return f"<Vendor id={self.id} name={self.name!r} org_id={self.org_id}>"

    def to_summary(self) -> dict:
        return {"id": self.id, "name": self.name}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "name": self.name,
            "service_type": self.service_type,
            "contact_email": self.contact_email,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class CrmSync(db.Model):
    """
    Last CRM sync payload for an event (one row per event, upserted).

    data is an opaque JSON document written by the CRM adapters. The ROI
    aggregator reads revenueGenerated, leadsGenerated and conversions from it.
    """
    __tablename__ = "crm_syncs"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    event_id = db.Column(db.Integer, db.ForeignKey("events.id"), nullable=False, unique=True)

    crm_system = db.Column(db.String(32), nullable=False)  # hubspot, salesforce
    sync_status = db.Column(db.String(16), nullable=False, default="success")  # success, failed
    last_synced_at = db.Column(db.DateTime(timezone=True), nullable=True, index=True)
    data = db.Column(db.JSON, nullable=True)

    event = db.relationship("Event", backref=db.backref("crm_sync", uselist=False, lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "event_id": self.event_id,
            "crm_system": self.crm_system,
            "sync_status": self.sync_status,
            "last_synced_at": to_utc_z(self.last_synced_at),
            "data": self.data,
        }
