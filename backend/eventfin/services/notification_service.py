# Overview: Notification sink; best-effort in-app notices plus the per-user inbox.

"""
Notification Sink

notify() is fire-and-forget: a failed write is rolled back, logged and
swallowed. Workflow code calls it only after its own transaction commits,
so a notice can never roll back a state change.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..errors import NotFoundError, ForbiddenError
from ..models import Notification, Expense


DEFAULT_PAGE_SIZE = 50


def notify(user_id: int, title: str, message: str) -> Notification | None:
    """Deliver one in-app notice. Returns None if it could not be written."""
    notification = Notification(user_id=user_id, title=title, message=message, is_read=False)
    try:
        db.session.add(notification)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.warning(
            "Failed to notify user %s (%r)", user_id, title, exc_info=True
        )
        return None
    return notification


def notify_approvers_for_expense(expense: Expense, approver_ids: list[int]) -> int:
    """Send one approval request per approver. Returns the number delivered."""
    delivered = 0
    for approver_id in approver_ids:
        result = notify(
            approver_id,
            "Expense Approval Required",
            f'You have a new expense "{expense.title}" ({expense.amount}) awaiting your approval.',
        )
        if result is not None:
            delivered += 1
    return delivered


def notify_expense_decision(expense: Expense, action: str, comments: str | None = None) -> Notification | None:
    """Tell the expense creator how their expense was decided."""
    message = f'Your expense "{expense.title}" ({expense.amount}) was {action}.'
    if comments:
        message += f" Comments: {comments}"
    return notify(expense.created_by_user_id, f"Expense {action.capitalize()}", message)


def list_notifications(
    user_id: int,
    *,
    is_read: bool | None = None,
    limit: int | None = None,
    offset: int | None = None,
) -> dict:
    """A user's notifications, newest first."""
    limit = limit or DEFAULT_PAGE_SIZE
    offset = offset or 0

    query = db.session.query(Notification).filter(Notification.user_id == user_id)
    if is_read is not None:
        query = query.filter(Notification.is_read.is_(is_read))

    total = query.count()
    notifications = (
        query.order_by(Notification.created_at.desc(), Notification.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return {"notifications": notifications, "total": total, "limit": limit, "offset": offset}


def unread_count(user_id: int) -> int:
    return db.session.query(Notification).filter(
        Notification.user_id == user_id,
        Notification.is_read.is_(False),
    ).count()


def mark_as_read(notification_id: int, user_id: int) -> Notification:
    """
    Mark one notification read.

    Raises:
        NotFoundError: notification does not exist
        ForbiddenError: notification belongs to another user
    """
    notification = db.session.get(Notification, notification_id)
    if not notification:
        raise NotFoundError("Notification not found")
    if notification.user_id != user_id:
        raise ForbiddenError("Access denied to this notification")

    notification.is_read = True
    db.session.commit()
    return notification


def mark_all_as_read(user_id: int) -> int:
    """Mark every unread notification of a user read. Returns the count."""
    count = db.session.query(Notification).filter(
        Notification.user_id == user_id,
        Notification.is_read.is_(False),
    ).update({Notification.is_read: True}, synchronize_session=False)
    db.session.commit()
    return count
