# Overview: Flask API routes for analytics; read-only aggregates for the dashboard.

from flask import Blueprint, g

from ..decorators import require_auth, require_permission
from ..services import analytics_service


analytics_bp = Blueprint("analytics", __name__, url_prefix="/api/analytics")


@analytics_bp.get("/dashboard")
@require_auth
@require_permission("VIEW_ANALYTICS")
def dashboard_route():
    return analytics_service.dashboard(org_id=g.org_id)


@analytics_bp.get("/inventory")
@require_auth
@require_permission("VIEW_ANALYTICS")
def inventory_route():
    return analytics_service.inventory_breakdown(org_id=g.org_id)


@analytics_bp.get("/quotes")
@require_auth
@require_permission("VIEW_ANALYTICS")
def quotes_route():
    return analytics_service.quotes_breakdown(org_id=g.org_id)


@analytics_bp.get("/tasks")
@require_auth
@require_permission("VIEW_ANALYTICS")
def tasks_route():
    return analytics_service.tasks_breakdown(org_id=g.org_id)
