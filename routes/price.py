"""
Price section routes.

Handles:
- /shipments/price/select - Choose a service option from the current quote
- /shipments/price/breakdown - Cost breakdown and credit check for the choice
"""

from flask import Blueprint, jsonify, request

from logging_config import get_logger
from modules.credit import submission_blocked, top_up_amount
from modules.recompute import OptionSelected
from modules.sanitize import to_int
from routes.state import apply_event, breakdown_for, draft_response, load_draft, notify


# Module logger
logger = get_logger(__name__)

price_bp = Blueprint("price", __name__)


@price_bp.route("/shipments/price/select", methods=["POST"])
def select_option():
    """Select an option by display name and total price."""
    data = request.get_json(silent=True) or {}
    display_name = str(data.get("displayName") or "")
    total_price = to_int(data.get("totalPrice"))
    draft = load_draft()

    try:
        updated = apply_event(draft, OptionSelected(display_name, total_price))
    except ValueError as e:
        logger.warning(f"Option selection rejected: {e}")
        return draft_response(draft, [notify("error", "Service Unavailable", str(e))], status=409)

    return draft_response(updated)


@price_bp.route("/shipments/price/breakdown", methods=["GET"])
def breakdown():
    """Breakdown of the selected option without changing the draft."""
    draft = load_draft()
    option = draft.selected_option
    return jsonify({
        "selectedOption": option.to_dict() if option else None,
        "breakdown": breakdown_for(draft),
        "credit": draft.credit_info.to_dict() if draft.credit_info else None,
        "topUpAmount": top_up_amount(option.total_price, draft.credit_info) if option else 0,
        "submissionBlocked": submission_blocked(draft.credit_info, option),
    })
