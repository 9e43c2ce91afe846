# Overview: Expense workflow engine; expense CRUD plus the approval state machine.

"""
Expense Workflow Engine

STATE MACHINE:
    pending -> under_review -> approved | rejected

    pending:       created, editable, not yet routed
    under_review:  routed to approvers, awaiting one decision
    approved:      terminal, counts toward actual spend
    rejected:      terminal

RULES:
1. Creation with amount >= AUTO_SUBMIT_THRESHOLD submits immediately.
2. Submission requires a non-empty approver set from the approval router.
3. The first decision wins. Status moves with a conditional UPDATE on
   status = 'under_review' in the same transaction as the ApprovalWorkflow
   insert; a racing second decision updates zero rows and fails.
4. Terminal expenses cannot be updated or deleted.

Notifications and activity entries are written after the state change
commits and never undo it.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import func, update

from ..extensions import db
from ..errors import NotFoundError, BadRequestError
from ..models import (
    ApprovalAction,
    ApprovalWorkflow,
    BudgetLineItem,
    BudgetVersion,
    Event,
    Expense,
    ExpenseStatus,
)
from ..permissions import Principal
from ..validation import validate_payload, EXPENSE_CREATE_POLICY, EXPENSE_UPDATE_POLICY
from .activity_service import log_activity
from .approval_service import determine_approvers, get_approval_history
from .concurrency import unit_of_work, lock_for_update
from .notification_service import notify_approvers_for_expense, notify_expense_decision
from .tenant_service import require_event_in_org, require_same_org
from .vendor_service import validate_vendor_for_org


AUTO_SUBMIT_THRESHOLD = 1000


# =============================================================================
# LOOKUPS
# =============================================================================

def _get_expense_for_org(expense_id: int, org_id: int) -> Expense:
    expense = db.session.get(Expense, expense_id)
    if not expense:
        raise NotFoundError("Expense not found")
    require_same_org(expense.event.org_id, org_id, resource=f"expense {expense_id}")
    return expense


def _validate_line_item_for_event(item_id: int, event_id: int) -> BudgetLineItem:
    """A referenced line item must belong to a budget version of the same event."""
    item = (
        db.session.query(BudgetLineItem)
        .join(BudgetVersion, BudgetLineItem.budget_version_id == BudgetVersion.id)
        .filter(BudgetLineItem.id == item_id, BudgetVersion.event_id == event_id)
        .first()
    )
    if not item:
        raise NotFoundError(f"Budget line item {item_id} not found")
    return item


def _validate_references(fields: dict, *, org_id: int, event_id: int) -> None:
    if fields.get("vendor_id") is not None:
        validate_vendor_for_org(fields["vendor_id"], org_id)
    if fields.get("budget_line_item_id") is not None:
        _validate_line_item_for_event(fields["budget_line_item_id"], event_id)


def list_expenses(
    principal: Principal,
    *,
    event_id: int | None = None,
    status: str | None = None,
    vendor_id: int | None = None,
) -> list[Expense]:
    """The organization's expenses, newest first, optionally filtered."""
    query = (
        db.session.query(Expense)
        .join(Event, Expense.event_id == Event.id)
        .filter(Event.org_id == principal.org_id)
    )

    if event_id is not None:
        require_event_in_org(event_id, principal.org_id)
        query = query.filter(Expense.event_id == event_id)

    if status is not None:
        try:
            status = ExpenseStatus(status)
        except ValueError:
            raise BadRequestError(f"Invalid status: {status}") from None
        query = query.filter(Expense.status == status.value)

    if vendor_id is not None:
        query = query.filter(Expense.vendor_id == vendor_id)

    return query.order_by(Expense.created_at.desc(), Expense.id.desc()).all()


def get_expense(principal: Principal, expense_id: int) -> Expense:
    return _get_expense_for_org(expense_id, principal.org_id)


def get_expense_approvals(principal: Principal, expense_id: int) -> list[ApprovalWorkflow]:
    expense = _get_expense_for_org(expense_id, principal.org_id)
    return get_approval_history(expense.id)


def calculate_event_actual_spend(event_id: int) -> float:
    """Sum of approved expense amounts for an event."""
    total = db.session.query(func.coalesce(func.sum(Expense.amount), 0)).filter(
        Expense.event_id == event_id,
        Expense.status == ExpenseStatus.APPROVED.value,
    ).scalar()
    return float(total or 0)


# =============================================================================
# CREATE / UPDATE / DELETE
# =============================================================================

def create_expense(
    principal: Principal,
    event_id: int,
    *,
    title: str,
    amount: float,
    vendor_id: int | None = None,
    description: str | None = None,
    budget_line_item_id: int | None = None,
) -> Expense:
    """
    Create a pending expense.

    Amounts at or above AUTO_SUBMIT_THRESHOLD are submitted for approval
    right after the row is committed. If no approver is available the
    expense is kept and stays pending.
    """
    require_event_in_org(event_id, principal.org_id)

    fields = validate_payload(
        model=Expense,
        payload={
            "title": title,
            "amount": amount,
            "vendor_id": vendor_id,
            "description": description,
            "budget_line_item_id": budget_line_item_id,
        },
        policy=EXPENSE_CREATE_POLICY,
        partial=False,
    )
    _validate_references(fields, org_id=principal.org_id, event_id=event_id)

    expense = Expense(
        event_id=event_id,
        status=ExpenseStatus.PENDING.value,
        created_by_user_id=principal.user_id,
        **fields,
    )
    with unit_of_work() as session:
        session.add(expense)

    log_activity(event_id, principal.user_id, "expense.created", {
        "expense_id": expense.id,
        "title": expense.title,
        "amount": expense.amount,
    })

    if expense.amount >= AUTO_SUBMIT_THRESHOLD:
        approver_ids = determine_approvers(expense.amount, principal.org_id)
        if approver_ids:
            _submit(expense, approver_ids, principal.user_id, auto=True)
        else:
            current_app.logger.warning(
                "Expense %s (%s) left pending: no approvers in org %s",
                expense.id, expense.amount, principal.org_id,
            )

    return expense


def _locked_expense(session, expense_id: int) -> Expense:
    """Lock the row and reload it, overwriting any copy already in the session."""
    return (
        lock_for_update(session.query(Expense).filter(Expense.id == expense_id))
        .populate_existing()
        .one()
    )


def _require_mutable(expense: Expense) -> None:
    if expense.expense_status.is_terminal:
        raise BadRequestError("Cannot modify a finalized expense")


def update_expense(principal: Principal, expense_id: int, patch: dict) -> Expense:
    _get_expense_for_org(expense_id, principal.org_id)
    changes = validate_payload(
        model=Expense,
        payload=patch,
        policy=EXPENSE_UPDATE_POLICY,
        partial=True,
    )

    with unit_of_work() as session:
        expense = _locked_expense(session, expense_id)
        _require_mutable(expense)
        _validate_references(changes, org_id=principal.org_id, event_id=expense.event_id)
        for key, value in changes.items():
            setattr(expense, key, value)

    log_activity(expense.event_id, principal.user_id, "expense.updated", {
        "expense_id": expense.id,
        "changes": changes,
    })
    return expense


def delete_expense(principal: Principal, expense_id: int) -> None:
    _get_expense_for_org(expense_id, principal.org_id)

    with unit_of_work() as session:
        expense = _locked_expense(session, expense_id)
        _require_mutable(expense)
        event_id = expense.event_id
        title = expense.title
        session.delete(expense)

    log_activity(event_id, principal.user_id, "expense.deleted", {
        "expense_id": expense_id,
        "title": title,
    })


# =============================================================================
# STATE TRANSITIONS
# =============================================================================

def _submit(expense: Expense, approver_ids: list[int], user_id: int | None, *, auto: bool = False) -> None:
    """pending -> under_review, then notify approvers and log."""
    with unit_of_work() as session:
        result = session.execute(
            update(Expense)
            .where(Expense.id == expense.id, Expense.status == ExpenseStatus.PENDING.value)
            .values(status=ExpenseStatus.UNDER_REVIEW.value)
        )
        if not result.rowcount:
            raise BadRequestError("Expense is not pending")

    db.session.refresh(expense)

    notified = notify_approvers_for_expense(expense, approver_ids)
    if notified < len(approver_ids):
        current_app.logger.warning(
            "Expense %s: notified %s of %s approvers", expense.id, notified, len(approver_ids)
        )

    log_activity(expense.event_id, user_id, "expense.submitted_for_approval", {
        "expense_id": expense.id,
        "approver_count": len(approver_ids),
        "auto_submitted": auto,
    })


def submit_for_approval(principal: Principal, expense_id: int) -> Expense:
    """
    Route a pending expense to its approvers.

    Raises:
        BadRequestError: expense is not pending, or no approver is available
    """
    expense = _get_expense_for_org(expense_id, principal.org_id)
    if expense.expense_status != ExpenseStatus.PENDING:
        raise BadRequestError("Expense is not pending")

    approver_ids = determine_approvers(expense.amount, principal.org_id)
    if not approver_ids:
        raise BadRequestError("No approvers found for this expense")

    _submit(expense, approver_ids, principal.user_id)
    return expense


def handle_approval(
    principal: Principal,
    expense_id: int,
    *,
    approver_id,
    action: str,
    comments: str | None = None,
) -> Expense:
    """
    Record an approval decision on an expense under review.

    The ApprovalWorkflow row and the status change commit together.

    Raises:
        NotFoundError: expense does not exist
        ForbiddenError: expense belongs to another organization
        BadRequestError: approver mismatch, unknown action, expense already
            decided, or expense not yet submitted
    """
    expense = _get_expense_for_org(expense_id, principal.org_id)

    if not isinstance(approver_id, int) or isinstance(approver_id, bool) or approver_id != principal.user_id:
        raise BadRequestError("approver_id must match the authenticated user")

    try:
        decision = ApprovalAction(action)
    except ValueError:
        raise BadRequestError("action must be 'approved' or 'rejected'") from None

    status = expense.expense_status
    if status.is_terminal:
        raise BadRequestError("Expense has already been processed")
    if status != ExpenseStatus.UNDER_REVIEW:
        raise BadRequestError("Expense has not been submitted for approval")

    with unit_of_work() as session:
        result = session.execute(
            update(Expense)
            .where(Expense.id == expense.id, Expense.status == ExpenseStatus.UNDER_REVIEW.value)
            .values(status=decision.resulting_status.value)
        )
        if not result.rowcount:
            raise BadRequestError("Expense has already been processed")
        session.add(ApprovalWorkflow(
            expense_id=expense.id,
            approver_id=principal.user_id,
            action=decision.value,
            comments=comments,
        ))

    db.session.refresh(expense)

    log_activity(expense.event_id, principal.user_id, f"expense.{decision.value}", {
        "expense_id": expense.id,
        "approver_id": principal.user_id,
        "comments": comments,
    })
    notify_expense_decision(expense, decision.value, comments)
    return expense
