"""
API routes.

Handles:
- /health - Health check endpoint
- /shipments/sections/<name>/toggle - Expand or collapse a wizard section
"""

from flask import Blueprint, current_app, jsonify

from logging_config import get_logger
from modules.sections import toggle_section
from routes.state import draft_response, load_draft, notify


# Module logger
logger = get_logger(__name__)

api_bp = Blueprint("api", __name__)


@api_bp.route("/health", methods=["GET"])
def health():
    """Health check; lists which services are configured."""
    names = (
        "COLLABORATOR_CLIENT",
        "PRICING_SERVICE",
        "CREDIT_SERVICE",
        "DRAFT_SERVICE",
        "SHIPMENT_SERVICE",
        "VALIDATION_COORDINATOR",
    )
    services = {name.lower(): current_app.config.get(name) is not None for name in names}
    return jsonify({
        "status": "healthy" if all(services.values()) else "degraded",
        "environment": current_app.config.get("ENVIRONMENT"),
        "services": services,
    })


@api_bp.route("/shipments/sections/<name>/toggle", methods=["POST"])
def toggle(name: str):
    draft = load_draft()
    try:
        updated = toggle_section(draft, name)
    except ValueError as e:
        return draft_response(draft, [notify("error", "Unknown Section", str(e))], status=404)
    return draft_response(updated)
