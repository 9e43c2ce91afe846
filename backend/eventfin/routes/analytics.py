# Overview: Flask API routes for ROI metrics and insights; parses input and returns JSON responses.

"""
Analytics Routes (ROI and insights)

GET routes allow every role; recalculation and generation require
admin, manager or finance.
"""

from flask import Blueprint, jsonify, g, current_app

from ..decorators import require_auth, require_roles
from ..errors import ServiceError
from ..permissions import READ_ROLES, WRITE_ROLES
from ..services import roi_service, insight_service


analytics_bp = Blueprint("analytics", __name__, url_prefix="/api/v1/events")


@analytics_bp.get("/<int:event_id>/roi")
@require_auth
@require_roles(*READ_ROLES)
def get_roi_route(event_id: int):
    """Stored ROI metrics; calculated on first read."""
    try:
        metrics = roi_service.get_roi_metrics(g.principal, event_id)
        return jsonify(metrics.to_dict()), 200
    except ServiceError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to get ROI metrics")
        return jsonify({"error": "Internal server error"}), 500


@analytics_bp.post("/<int:event_id>/roi/calculate")
@require_auth
@require_roles(*WRITE_ROLES)
def calculate_roi_route(event_id: int):
    try:
        metrics = roi_service.calculate_roi(g.principal, event_id)
        return jsonify(metrics.to_dict()), 200
    except ServiceError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to calculate ROI metrics")
        return jsonify({"error": "Internal server error"}), 500


@analytics_bp.get("/<int:event_id>/insights")
@require_auth
@require_roles(*READ_ROLES)
def get_insights_route(event_id: int):
    try:
        insights = insight_service.get_insights(g.principal, event_id)
        return jsonify({"insights": [i.to_dict() for i in insights]}), 200
    except ServiceError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list insights")
        return jsonify({"error": "Internal server error"}), 500


@analytics_bp.post("/<int:event_id>/insights")
@analytics_bp.post("/<int:event_id>/insights/generate")
@require_auth
@require_roles(*WRITE_ROLES)
def generate_insights_route(event_id: int):
    """Generate insights now. Each call appends; repeated calls may duplicate rows."""
    try:
        insights = insight_service.generate_insights(g.principal, event_id)
        return jsonify({"insights": [i.to_dict() for i in insights]}), 201
    except ServiceError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to generate insights")
        return jsonify({"error": "Internal server error"}), 500
