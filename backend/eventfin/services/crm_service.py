# Overview: CRM sync payload store read by the ROI aggregator.

"""
CRM Sync Payload

One CrmSync row per event holds the last payload a CRM adapter pulled.
The payload is opaque JSON; only three optional numeric fields are read.
"""

from __future__ import annotations

import math
from typing import Any

from ..extensions import db
from ..errors import BadRequestError
from ..models import CrmSync
from ..time_utils import utcnow


CRM_SYSTEMS = ("hubspot", "salesforce")
SYNC_STATUSES = ("success", "failed")


def get_crm_sync(event_id: int) -> CrmSync | None:
    return db.session.query(CrmSync).filter(CrmSync.event_id == event_id).first()


def record_crm_sync(
    event_id: int,
    crm_system: str,
    data: dict | None,
    status: str = "success",
) -> CrmSync:
    """Insert or replace the event's CRM sync payload."""
    if crm_system not in CRM_SYSTEMS:
        raise BadRequestError(f"Unsupported CRM system: {crm_system}")
    if status not in SYNC_STATUSES:
        raise BadRequestError(f"Invalid sync status: {status}")

    sync = get_crm_sync(event_id)
    if sync is None:
        sync = CrmSync(event_id=event_id)
        db.session.add(sync)

    sync.crm_system = crm_system
    sync.sync_status = status
    sync.data = data
    sync.last_synced_at = utcnow()
    db.session.commit()
    return sync


def _number(value: Any) -> float:
    # bool is an int subclass; a true flag is not a count
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    if math.isnan(value) or math.isinf(value):
        return 0
    return value


def crm_metrics(payload: Any) -> dict:
    """
    revenue_generated, leads_generated and conversions from a CRM payload.
    Missing or malformed values read as 0.
    """
    if not isinstance(payload, dict):
        payload = {}
    return {
        "revenue_generated": float(_number(payload.get("revenueGenerated"))),
        "leads_generated": int(_number(payload.get("leadsGenerated"))),
        "conversions": int(_number(payload.get("conversions"))),
    }
