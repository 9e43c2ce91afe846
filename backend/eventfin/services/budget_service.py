# Overview: Service-layer operations for budget versions and line items; encapsulates business logic and database work.

"""
Budget Version Store

Owns budget versions of an event and their line items.

INVARIANTS:
- (event_id, version_number) is unique; a duplicate create raises ConflictError
  and writes nothing.
- At most one version per event is final. Finalizing clears every other
  version of the event in the same transaction as the set.
- estimated_cost follows compute_estimated_cost on create, and on update
  whenever quantity or unit_cost changes without an explicit estimated_cost.

LIFECYCLE:
1. create_version (with zero or more line items, one transaction)
2. update_version / finalize_version
3. clone_version (next number, all items copied, not final)
Line items are added, updated and deleted independently.

Every operation resolves the owning event and checks its organization
before doing anything else. Activity log entries are written after commit.
"""

from __future__ import annotations

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import NotFoundError, ConflictError, BadRequestError
from ..models import BudgetVersion, BudgetLineItem, Expense
from ..permissions import Principal
from ..validation import (
    validate_payload,
    normalize_keys,
    BUDGET_VERSION_CREATE_POLICY,
    BUDGET_VERSION_UPDATE_POLICY,
    LINE_ITEM_CREATE_POLICY,
    LINE_ITEM_UPDATE_POLICY,
)
from .activity_service import log_activity
from .concurrency import unit_of_work
from .tenant_service import require_event_in_org, require_same_org
from .vendor_service import validate_vendor_for_org


def compute_estimated_cost(
    quantity: float | None,
    unit_cost: float | None,
    estimated_cost: float | None = None,
) -> float:
    """
    Estimated cost of a line item.

    An explicit estimated_cost wins. Otherwise quantity * unit_cost when both
    are present, else 0.
    """
    if estimated_cost is not None:
        return estimated_cost
    if quantity is not None and unit_cost is not None:
        return quantity * unit_cost
    return 0.0


# =============================================================================
# LOOKUPS
# =============================================================================

def _get_version_for_org(budget_id: int, org_id: int) -> BudgetVersion:
    version = db.session.get(BudgetVersion, budget_id)
    if not version:
        raise NotFoundError("Budget version not found")
    require_same_org(version.event.org_id, org_id, resource=f"budget version {budget_id}")
    return version


def _get_line_item_for_org(item_id: int, org_id: int) -> BudgetLineItem:
    item = db.session.get(BudgetLineItem, item_id)
    if not item:
        raise NotFoundError("Budget line item not found")
    require_same_org(
        item.budget_version.event.org_id, org_id, resource=f"budget line item {item_id}"
    )
    return item


def list_versions(principal: Principal, event_id: int) -> list[BudgetVersion]:
    """All versions of an event, highest version number first."""
    require_event_in_org(event_id, principal.org_id)
    return (
        db.session.query(BudgetVersion)
        .filter(BudgetVersion.event_id == event_id)
        .order_by(BudgetVersion.version_number.desc())
        .all()
    )


def get_version(principal: Principal, budget_id: int) -> BudgetVersion:
    return _get_version_for_org(budget_id, principal.org_id)


def get_final_version(event_id: int) -> BudgetVersion | None:
    """The event's final version, or None when no version is final."""
    return db.session.query(BudgetVersion).filter(
        BudgetVersion.event_id == event_id,
        BudgetVersion.is_final.is_(True),
    ).first()


def final_budget_total(event_id: int) -> float:
    """
    Sum of estimated_cost over the final version's line items; 0 when no
    version is final. ROI and insights both read the budget through here.
    """
    total = (
        db.session.query(func.coalesce(func.sum(BudgetLineItem.estimated_cost), 0))
        .join(BudgetVersion, BudgetLineItem.budget_version_id == BudgetVersion.id)
        .filter(
            BudgetVersion.event_id == event_id,
            BudgetVersion.is_final.is_(True),
        )
        .scalar()
    )
    return float(total or 0)


# =============================================================================
# LINE ITEM HELPERS
# =============================================================================

def _drop_null_estimate(payload):
    """
    estimated_cost: null means "not supplied"; the key is removed so the
    cost is computed. Returns (payload, dropped).
    """
    payload = normalize_keys(payload)
    if isinstance(payload, dict) and "estimated_cost" in payload and payload["estimated_cost"] is None:
        payload = {k: v for k, v in payload.items() if k != "estimated_cost"}
        return payload, True
    return payload, False


def _validate_new_line_item(item) -> dict:
    payload, _ = _drop_null_estimate(item)
    return validate_payload(
        model=BudgetLineItem,
        payload=payload,
        policy=LINE_ITEM_CREATE_POLICY,
        partial=False,
    )


def _build_line_item(fields: dict, org_id: int) -> BudgetLineItem:
    if fields.get("vendor_id") is not None:
        validate_vendor_for_org(fields["vendor_id"], org_id)

    return BudgetLineItem(
        category=fields["category"],
        item_name=fields["item_name"],
        vendor_id=fields.get("vendor_id"),
        quantity=fields.get("quantity"),
        unit_cost=fields.get("unit_cost"),
        estimated_cost=compute_estimated_cost(
            fields.get("quantity"),
            fields.get("unit_cost"),
            fields.get("estimated_cost"),
        ),
        notes=fields.get("notes"),
    )


def _copy_line_item(item: BudgetLineItem) -> BudgetLineItem:
    return BudgetLineItem(
        category=item.category,
        item_name=item.item_name,
        vendor_id=item.vendor_id,
        quantity=item.quantity,
        unit_cost=item.unit_cost,
        estimated_cost=item.estimated_cost,
        actual_cost=item.actual_cost,
        notes=item.notes,
    )


# =============================================================================
# VERSION LIFECYCLE
# =============================================================================

def create_version(
    principal: Principal,
    event_id: int,
    version_number: int,
    notes: str | None = None,
    items: list[dict] | None = None,
) -> BudgetVersion:
    """
    Create a budget version with its line items in one transaction.

    Raises:
        NotFoundError: event (or a referenced vendor) does not exist
        ForbiddenError: event belongs to another organization
        ConflictError: version_number already exists for the event
        BadRequestError: invalid version number or line item fields
    """
    require_event_in_org(event_id, principal.org_id)

    fields = validate_payload(
        model=BudgetVersion,
        payload={"version_number": version_number, "notes": notes},
        policy=BUDGET_VERSION_CREATE_POLICY,
        partial=False,
    )
    if fields["version_number"] < 1:
        raise BadRequestError("version_number must be a positive integer")
    if items is not None and not isinstance(items, list):
        raise BadRequestError("items must be a list")

    existing = db.session.query(BudgetVersion.id).filter(
        BudgetVersion.event_id == event_id,
        BudgetVersion.version_number == fields["version_number"],
    ).first()
    if existing:
        raise ConflictError(
            f"Budget version {fields['version_number']} already exists for this event"
        )

    line_items = [
        _build_line_item(_validate_new_line_item(item), principal.org_id)
        for item in (items or [])
    ]

    version = BudgetVersion(
        event_id=event_id,
        version_number=fields["version_number"],
        notes=fields.get("notes"),
        is_final=False,
        created_by_user_id=principal.user_id,
        items=line_items,
    )

    try:
        with unit_of_work() as session:
            session.add(version)
    except IntegrityError:
        raise ConflictError(
            f"Budget version {fields['version_number']} already exists for this event"
        ) from None

    log_activity(event_id, principal.user_id, "budget.created", {
        "budget_version_id": version.id,
        "version_number": version.version_number,
        "items_count": len(line_items),
    })
    return version


def update_version(principal: Principal, budget_id: int, patch: dict) -> BudgetVersion:
    """
    Update notes and/or is_final.

    Setting is_final = true clears is_final on every other version of the
    event inside the same transaction, so no reader sees two final versions.
    """
    version = _get_version_for_org(budget_id, principal.org_id)
    changes = validate_payload(
        model=BudgetVersion,
        payload=patch,
        policy=BUDGET_VERSION_UPDATE_POLICY,
        partial=True,
    )

    try:
        with unit_of_work() as session:
            if changes.get("is_final") is True:
                session.query(BudgetVersion).filter(
                    BudgetVersion.event_id == version.event_id,
                    BudgetVersion.id != version.id,
                    BudgetVersion.is_final.is_(True),
                ).update({BudgetVersion.is_final: False}, synchronize_session="fetch")
            for key, value in changes.items():
                setattr(version, key, value)
    except IntegrityError:
        # Partial unique index on (event_id) WHERE is_final: a concurrent finalize won
        raise ConflictError("Another budget version was finalized concurrently") from None

    log_activity(version.event_id, principal.user_id, "budget.updated", {
        "budget_version_id": version.id,
        "changes": changes,
    })
    return version


def finalize_version(principal: Principal, budget_id: int) -> BudgetVersion:
    return update_version(principal, budget_id, {"is_final": True})


def clone_version(principal: Principal, budget_id: int) -> BudgetVersion:
    """
    Copy a version (and all of its line items, including actual_cost) into a
    new, non-final version numbered max + 1 for the event.
    """
    source = _get_version_for_org(budget_id, principal.org_id)

    try:
        with unit_of_work() as session:
            max_number = session.query(
                func.coalesce(func.max(BudgetVersion.version_number), 0)
            ).filter(BudgetVersion.event_id == source.event_id).scalar()

            clone = BudgetVersion(
                event_id=source.event_id,
                version_number=max_number + 1,
                notes=f"Cloned from version {source.version_number}",
                is_final=False,
                created_by_user_id=principal.user_id,
                items=[_copy_line_item(item) for item in source.items],
            )
            session.add(clone)
    except IntegrityError:
        # Another clone/create took the same number between read and insert
        raise ConflictError("Budget version number was taken concurrently; retry the clone") from None

    log_activity(source.event_id, principal.user_id, "budget.cloned", {
        "source_budget_version_id": source.id,
        "new_budget_version_id": clone.id,
        "new_version_number": clone.version_number,
    })
    return clone


# =============================================================================
# LINE ITEMS
# =============================================================================

def add_line_item(principal: Principal, budget_id: int, item: dict) -> BudgetLineItem:
    version = _get_version_for_org(budget_id, principal.org_id)
    fields = _validate_new_line_item(item)

    line_item = _build_line_item(fields, principal.org_id)
    line_item.budget_version_id = version.id
    with unit_of_work() as session:
        session.add(line_item)

    log_activity(version.event_id, principal.user_id, "budget.line_item.added", {
        "budget_version_id": version.id,
        "item_id": line_item.id,
        "item_name": line_item.item_name,
    })
    return line_item


def update_line_item(principal: Principal, item_id: int, patch: dict) -> BudgetLineItem:
    """
    Partially update a line item.

    When quantity or unit_cost is in the patch and estimated_cost is not,
    estimated_cost is recomputed from the merged values. An explicit
    estimated_cost of null also recomputes.
    """
    item = _get_line_item_for_org(item_id, principal.org_id)
    patch, estimate_cleared = _drop_null_estimate(patch)
    changes = validate_payload(
        model=BudgetLineItem,
        payload=patch,
        policy=LINE_ITEM_UPDATE_POLICY,
        partial=True,
    )

    if changes.get("vendor_id") is not None:
        validate_vendor_for_org(changes["vendor_id"], principal.org_id)

    if "estimated_cost" not in changes and (
        estimate_cleared or "quantity" in changes or "unit_cost" in changes
    ):
        changes["estimated_cost"] = compute_estimated_cost(
            changes.get("quantity", item.quantity),
            changes.get("unit_cost", item.unit_cost),
        )

    with unit_of_work():
        for key, value in changes.items():
            setattr(item, key, value)

    log_activity(item.budget_version.event_id, principal.user_id, "budget.line_item.updated", {
        "item_id": item.id,
        "changes": changes,
    })
    return item


def delete_line_item(principal: Principal, item_id: int) -> None:
    item = _get_line_item_for_org(item_id, principal.org_id)
    event_id = item.budget_version.event_id
    item_name = item.item_name

    with unit_of_work() as session:
        session.query(Expense).filter(Expense.budget_line_item_id == item_id).update(
            {Expense.budget_line_item_id: None}, synchronize_session=False
        )
        session.delete(item)

    log_activity(event_id, principal.user_id, "budget.line_item.deleted", {
        "item_id": item_id,
        "item_name": item_name,
    })
