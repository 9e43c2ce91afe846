# Overview: Vendor lookup for weak references from line items and expenses.

"""
Vendor Service

Vendors are reference data. Budget line items and expenses hold a weak
vendor_id; this module only resolves and lists vendors. The vendor catalog
itself is maintained elsewhere (and by the `vendors create` CLI command).
"""

from ..extensions import db
from ..errors import NotFoundError
from ..models import Vendor


def create_vendor(*, org_id: int, name: str, service_type: str | None = None,
                  contact_email: str | None = None) -> Vendor:
    """Create a vendor (bootstrap/CLI use)."""
    if not name or not name.strip():
        raise ValueError("Vendor name is required")
    vendor = Vendor(
        org_id=org_id,
        name=name.strip(),
        service_type=service_type,
        contact_email=contact_email,
        is_active=True,
    )
    db.session.add(vendor)
    db.session.commit()
    return vendor


def validate_vendor_for_org(vendor_id: int, org_id: int) -> Vendor:
    """
    Validate that a vendor exists and belongs to the specified organization.

    A vendor of another organization is reported as not found so that a
    weak reference never reveals another tenant's catalog.

    Raises:
        NotFoundError: If vendor not found or belongs to a different org
    """
    vendor = db.session.get(Vendor, vendor_id)
    if not vendor or vendor.org_id != org_id:
        raise NotFoundError(f"Vendor {vendor_id} not found")
    return vendor


def list_vendors(org_id: int, *, include_inactive: bool = False) -> list[Vendor]:
    query = db.session.query(Vendor).filter(Vendor.org_id == org_id)
    if not include_inactive:
        query = query.filter(Vendor.is_active.is_(True))
    return query.order_by(Vendor.name.asc()).all()
