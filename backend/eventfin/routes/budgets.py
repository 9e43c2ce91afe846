# Overview: Flask API routes for budget versions and line items; parses input and returns JSON responses.

"""
Budget Routes

SECURITY: All routes require authentication.
- Reads allow every role (viewer included)
- Writes require admin, manager or finance

JSON keys may be snake_case or camelCase.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth, require_roles
from ..errors import ServiceError
from ..permissions import READ_ROLES, WRITE_ROLES
from ..services import budget_service
from ..validation import normalize_keys


budgets_bp = Blueprint("budgets", __name__, url_prefix="/api/v1")


@budgets_bp.get("/events/<int:event_id>/budgets")
@require_auth
@require_roles(*READ_ROLES)
def list_budgets_route(event_id: int):
    """All versions of an event with their line items, newest version first."""
    try:
        versions = budget_service.list_versions(g.principal, event_id)
        return jsonify({"budgets": [v.to_dict() for v in versions]}), 200
    except ServiceError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list budget versions")
        return jsonify({"error": "Internal server error"}), 500


@budgets_bp.post("/events/<int:event_id>/budgets")
@require_auth
@require_roles(*WRITE_ROLES)
def create_budget_route(event_id: int):
    """
    Create a budget version.

    Request body:
    {
        "version_number": 1,     // required, positive, unique per event
        "notes": "...",          // optional
        "items": [               // optional (alias: line_items)
            {"category": "venue", "item_name": "Hall", "quantity": 2, "unit_cost": 100}
        ]
    }

    Returns:
        201: Created version with items
        409: version_number already exists for the event
    """
    data = normalize_keys(request.get_json(silent=True) or {})
    items = data.get("items", data.get("line_items"))

    try:
        version = budget_service.create_version(
            g.principal,
            event_id,
            version_number=data.get("version_number"),
            notes=data.get("notes"),
            items=items,
        )
        return jsonify(version.to_dict()), 201
    except ServiceError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create budget version")
        return jsonify({"error": "Internal server error"}), 500


@budgets_bp.get("/budgets/<int:budget_id>")
@require_auth
@require_roles(*READ_ROLES)
def get_budget_route(budget_id: int):
    try:
        version = budget_service.get_version(g.principal, budget_id)
        return jsonify(version.to_dict()), 200
    except ServiceError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to get budget version")
        return jsonify({"error": "Internal server error"}), 500


@budgets_bp.put("/budgets/<int:budget_id>")
@require_auth
@require_roles(*WRITE_ROLES)
def update_budget_route(budget_id: int):
    """
    Update notes and/or is_final.

    Setting is_final to true unsets it on every other version of the event.
    """
    data = request.get_json(silent=True) or {}
    try:
        version = budget_service.update_version(g.principal, budget_id, data)
        return jsonify(version.to_dict()), 200
    except ServiceError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update budget version")
        return jsonify({"error": "Internal server error"}), 500


@budgets_bp.put("/budgets/<int:budget_id>/finalize")
@require_auth
@require_roles(*WRITE_ROLES)
def finalize_budget_route(budget_id: int):
    try:
        version = budget_service.finalize_version(g.principal, budget_id)
        return jsonify(version.to_dict()), 200
    except ServiceError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to finalize budget version")
        return jsonify({"error": "Internal server error"}), 500


@budgets_bp.post("/budgets/<int:budget_id>/clone")
@require_auth
@require_roles(*WRITE_ROLES)
def clone_budget_route(budget_id: int):
    try:
        version = budget_service.clone_version(g.principal, budget_id)
        return jsonify(version.to_dict()), 201
    except ServiceError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to clone budget version")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# LINE ITEMS
# =============================================================================

@budgets_bp.post("/budgets/<int:budget_id>/line-items")
@require_auth
@require_roles(*WRITE_ROLES)
def add_line_item_route(budget_id: int):
    data = request.get_json(silent=True) or {}
    try:
        item = budget_service.add_line_item(g.principal, budget_id, data)
        return jsonify(item.to_dict()), 201
    except ServiceError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to add budget line item")
        return jsonify({"error": "Internal server error"}), 500


@budgets_bp.put("/budgets/line-items/<int:item_id>")
@require_auth
@require_roles(*WRITE_ROLES)
def update_line_item_route(item_id: int):
    data = request.get_json(silent=True) or {}
    try:
        item = budget_service.update_line_item(g.principal, item_id, data)
        return jsonify(item.to_dict()), 200
    except ServiceError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update budget line item")
        return jsonify({"error": "Internal server error"}), 500


@budgets_bp.delete("/budgets/line-items/<int:item_id>")
@require_auth
@require_roles(*WRITE_ROLES)
def delete_line_item_route(item_id: int):
    try:
        budget_service.delete_line_item(g.principal, item_id)
        return jsonify({"message": "Line item deleted"}), 200
    except ServiceError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete budget line item")
        return jsonify({"error": "Internal server error"}), 500
