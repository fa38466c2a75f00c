"""
Main routes (wizard entry, reset).

Opening the wizard with ``?draftId=`` replaces the session draft with the
stored one. Without it, an empty draft is started and the sender is
prefilled from the user profile.
"""

from flask import Blueprint, redirect, request, session, url_for

from core.exceptions import DraftPersistenceError
from logging_config import get_logger
from models.shipment import ShipmentDraft
from modules.recompute import DraftLoaded
from routes.state import (
    SESSION_DRAFT_KEY,
    apply_event,
    draft_response,
    load_draft,
    service,
    validation_session_key,
)


# Module logger
logger = get_logger(__name__)

main_bp = Blueprint("main", __name__)


@main_bp.route("/")
def index():
    """Redirect root to the shipment wizard."""
    return redirect(url_for("main.new_shipment"))


@main_bp.route("/shipments/new", methods=["GET"])
def new_shipment():
    """Current wizard state, loading a stored draft when one is named."""
    draft_id = request.args.get("draftId", type=int)

    if draft_id is not None:
        current = load_draft()
        try:
            loaded = service("DRAFT_SERVICE").load(draft_id)
        except DraftPersistenceError as e:
            logger.error(f"Failed to load draft {draft_id}: {e}")
            return draft_response(current, [e.to_notification()], status=502)
        return draft_response(apply_event(current, DraftLoaded(loaded)))

    if SESSION_DRAFT_KEY not in session:
        return draft_response(_fresh_draft())

    return draft_response(load_draft())


@main_bp.route("/shipments/reset", methods=["POST"])
def reset():
    """Discard the session draft and any pending validations."""
    service("VALIDATION_COORDINATOR").forget(validation_session_key())
    logger.info("Shipment draft reset")
    return draft_response(_fresh_draft())


def _fresh_draft() -> ShipmentDraft:
    return service("DRAFT_SERVICE").prefill_sender(ShipmentDraft())
