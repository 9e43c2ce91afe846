from __future__ import annotations

import enum

from ..extensions import db
from ..time_utils import to_utc_z


class ExpenseStatus(str, enum.Enum):
    """
    Expense approval states.

    pending -> under_review -> approved | rejected
    approved and rejected are terminal.
    """
    PENDING = "pending"
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({ExpenseStatus.APPROVED, ExpenseStatus.REJECTED})


class ApprovalAction(str, enum.Enum):
    APPROVED = "approved"
    REJECTED = "rejected"

    @property
    def resulting_status(self) -> ExpenseStatus:
        return ExpenseStatus(self.value)


class Expense(db.Model):
    """
    Actual spend against an event, moving through the approval state machine.

    Status changes are made with conditional UPDATEs on the current status
    (see expense_service), never by read-then-write on the loaded object.
    """
    __tablename__ = "expenses"
    __table_args__ = (
        db.CheckConstraint("amount >= 0", name="ck_expenses_amount_non_negative"),
        db.Index("ix_expenses_event_status", "event_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    event_id = db.Column(db.Integer, db.ForeignKey("events.id"), nullable=False, index=True)

    title = db.Column(db.String(255), nullable=False)
    amount = db.Column(db.Float, nullable=False)
    description = db.Column(db.Text, nullable=True)

    vendor_id = db.Column(db.Integer, db.ForeignKey("vendors.id"), nullable=True, index=True)
    budget_line_item_id = db.Column(db.Integer, db.ForeignKey("budget_line_items.id", ondelete="SET NULL"), nullable=True)

    status = db.Column(db.String(16), nullable=False, default=ExpenseStatus.PENDING.value)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    event = db.relationship("Event", backref=db.backref("expenses", lazy=True))
    vendor = db.relationship("Vendor")
    creator = db.relationship("User")
    workflows = db.relationship(
        "ApprovalWorkflow",
        back_populates="expense",
        cascade="all, delete-orphan",
        order_by=lambda: (ApprovalWorkflow.action_at.desc(), ApprovalWorkflow.id.desc()),
        lazy=True,
    )

    def __repr__(self) -> str:
        return f"<Expense id={self.id} event_id={self.event_id} amount={self.amount} status={self.status}>"

    @property
    def expense_status(self) -> ExpenseStatus:
        return ExpenseStatus(self.status)

    def to_dict(self, include_workflows: bool = False) -> dict:
        data = {
            "id": self.id,
            "event_id": self.event_id,
            "title": self.title,
            "amount": self.amount,
            "description": self.description,
            "vendor_id": self.vendor_id,
            "vendor": self.vendor.to_summary() if self.vendor else None,
            "budget_line_item_id": self.budget_line_item_id,
            "status": self.status,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_workflows:
            data["workflows"] = [w.to_dict() for w in self.workflows]
        return data


class ApprovalWorkflow(db.Model):
    """
    One approval decision on an expense.

    IMMUTABLE: written once in the same transaction as the status change it
    records; never updated or deleted by the workflow.
    """
    __tablename__ = "approval_workflows"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    expense_id = db.Column(db.Integer, db.ForeignKey("expenses.id", ondelete="CASCADE"), nullable=False, index=True)
    approver_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    action = db.Column(db.String(16), nullable=False)  # approved, rejected
    comments = db.Column(db.Text, nullable=True)
    action_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    expense = db.relationship("Expense", back_populates="workflows")
    approver = db.relationship("User")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "expense_id": self.expense_id,
            "approver_id": self.approver_id,
            "approver": self.approver.to_summary() if self.approver else None,
            "action": self.action,
            "comments": self.comments,
            "action_at": to_utc_z(self.action_at),
        }
