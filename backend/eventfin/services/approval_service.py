# Overview: Approval router; picks eligible approvers for an expense amount.

"""
Approval Router

Expenses above ADMIN_APPROVAL_THRESHOLD go to admins only; everything else
goes to finance and manager users. Only active users of the expense's
organization are considered.

select_approvers is the pure decision; determine_approvers feeds it the
organization's roster. An empty result is valid and means "no approver
available" (the workflow turns that into a BadRequest on submission).
"""

from __future__ import annotations

from typing import Iterable

from ..extensions import db
from ..models import User, ApprovalWorkflow
from ..permissions import UserRole


ADMIN_APPROVAL_THRESHOLD = 10000

APPROVER_ROLES = frozenset({UserRole.ADMIN, UserRole.FINANCE, UserRole.MANAGER})
ADMIN_ONLY_ROLES = frozenset({UserRole.ADMIN})
STANDARD_APPROVER_ROLES = frozenset({UserRole.FINANCE, UserRole.MANAGER})


def eligible_roles(amount: float) -> frozenset[UserRole]:
    """Roles allowed to decide an expense of this amount."""
    if amount > ADMIN_APPROVAL_THRESHOLD:
        return ADMIN_ONLY_ROLES
    return STANDARD_APPROVER_ROLES


def select_approvers(amount: float, roster: Iterable[tuple[int, UserRole]]) -> list[int]:
    """
    Pick approver ids from (user_id, role) pairs.

    The roster is expected to hold active users only. Roles outside
    APPROVER_ROLES are never selected.
    """
    roles = eligible_roles(amount)
    return [user_id for user_id, role in roster if role in APPROVER_ROLES and role in roles]


def determine_approvers(amount: float, org_id: int) -> list[int]:
    """Eligible approver ids among the organization's active users."""
    rows = (
        db.session.query(User.id, User.role)
        .filter(
            User.org_id == org_id,
            User.is_active.is_(True),
            User.role.in_([role.value for role in APPROVER_ROLES]),
        )
        .order_by(User.id.asc())
        .all()
    )
    return select_approvers(amount, [(user_id, UserRole(role)) for user_id, role in rows])


def get_approval_history(expense_id: int) -> list[ApprovalWorkflow]:
    """Decisions recorded for an expense, newest first."""
    return (
        db.session.query(ApprovalWorkflow)
        .filter(ApprovalWorkflow.expense_id == expense_id)
        .order_by(ApprovalWorkflow.action_at.desc(), ApprovalWorkflow.id.desc())
        .all()
    )
