# Overview: Flask API routes for expense operations and approvals; parses input and returns JSON responses.

"""
Expense Routes

SECURITY: All routes require authentication.
- Reads allow every role (viewer included)
- Create, update, delete, submit and approve require admin, manager or finance

Approval decisions must name the caller as approver_id.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth, require_roles
from ..errors import ServiceError
from ..permissions import READ_ROLES, WRITE_ROLES
from ..services import expense_service
from ..validation import normalize_keys


expenses_bp = Blueprint("expenses", __name__, url_prefix="/api/v1")


@expenses_bp.get("/expenses")
@require_auth
@require_roles(*READ_ROLES)
def list_expenses_route():
    """
    List the organization's expenses, newest first.

    Query parameters:
    - event_id: Only this event
    - status: pending | under_review | approved | rejected
    - vendor_id: Only this vendor
    """
    try:
        expenses = expense_service.list_expenses(
            g.principal,
            event_id=request.args.get("event_id", type=int),
            status=request.args.get("status"),
            vendor_id=request.args.get("vendor_id", type=int),
        )
        return jsonify({"expenses": [e.to_dict() for e in expenses]}), 200
    except ServiceError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list expenses")
        return jsonify({"error": "Internal server error"}), 500


@expenses_bp.post("/events/<int:event_id>/expenses")
@require_auth
@require_roles(*WRITE_ROLES)
def create_expense_route(event_id: int):
    """
    Create an expense.

    Request body:
    {
        "title": "Catering deposit",   // required
        "amount": 1500,                // required, >= 0
        "vendor_id": 3,                // optional
        "budget_line_item_id": 7,      // optional
        "description": "..."           // optional
    }

    Amounts at or above the auto-submission threshold come back
    under_review.
    """
    data = normalize_keys(request.get_json(silent=True) or {})
    try:
        expense = expense_service.create_expense(
            g.principal,
            event_id,
            title=data.get("title"),
            amount=data.get("amount"),
            vendor_id=data.get("vendor_id"),
            description=data.get("description"),
            budget_line_item_id=data.get("budget_line_item_id"),
        )
        return jsonify(expense.to_dict()), 201
    except ServiceError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create expense")
        return jsonify({"error": "Internal server error"}), 500


@expenses_bp.get("/expenses/<int:expense_id>")
@require_auth
@require_roles(*READ_ROLES)
def get_expense_route(expense_id: int):
    try:
        expense = expense_service.get_expense(g.principal, expense_id)
        return jsonify(expense.to_dict(include_workflows=True)), 200
    except ServiceError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to get expense")
        return jsonify({"error": "Internal server error"}), 500


@expenses_bp.put("/expenses/<int:expense_id>")
@require_auth
@require_roles(*WRITE_ROLES)
def update_expense_route(expense_id: int):
    data = request.get_json(silent=True) or {}
    try:
        expense = expense_service.update_expense(g.principal, expense_id, data)
        return jsonify(expense.to_dict()), 200
    except ServiceError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update expense")
        return jsonify({"error": "Internal server error"}), 500


@expenses_bp.delete("/expenses/<int:expense_id>")
@require_auth
@require_roles(*WRITE_ROLES)
def delete_expense_route(expense_id: int):
    try:
        expense_service.delete_expense(g.principal, expense_id)
        return jsonify({"message": "Expense deleted"}), 200
    except ServiceError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete expense")
        return jsonify({"error": "Internal server error"}), 500


@expenses_bp.post("/expenses/<int:expense_id>/submit-approval")
@require_auth
@require_roles(*WRITE_ROLES)
def submit_expense_route(expense_id: int):
    try:
        expense = expense_service.submit_for_approval(g.principal, expense_id)
        return jsonify(expense.to_dict()), 200
    except ServiceError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to submit expense for approval")
        return jsonify({"error": "Internal server error"}), 500


@expenses_bp.post("/expenses/<int:expense_id>/approval")
@require_auth
@require_roles(*WRITE_ROLES)
def approve_expense_route(expense_id: int):
    """
    Approve or reject an expense under review.

    Request body:
    {
        "approver_id": 12,                  // required, must be the caller
        "action": "approved" | "rejected",  // required
        "comments": "..."                   // optional
    }

    Returns:
        200: Expense with its decision history
        400: Approver mismatch, bad action, or expense already decided
    """
    data = normalize_keys(request.get_json(silent=True) or {})
    try:
        expense = expense_service.handle_approval(
            g.principal,
            expense_id,
            approver_id=data.get("approver_id"),
            action=data.get("action"),
            comments=data.get("comments"),
        )
        return jsonify(expense.to_dict(include_workflows=True)), 200
    except ServiceError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record expense approval")
        return jsonify({"error": "Internal server error"}), 500


@expenses_bp.get("/expenses/<int:expense_id>/approvals")
@require_auth
@require_roles(*READ_ROLES)
def expense_approvals_route(expense_id: int):
    try:
        workflows = expense_service.get_expense_approvals(g.principal, expense_id)
        return jsonify({"approvals": [w.to_dict() for w in workflows]}), 200
    except ServiceError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list expense approvals")
        return jsonify({"error": "Internal server error"}), 500
