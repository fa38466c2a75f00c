"""
Draft routes.

Handles:
- /shipments/draft - Save the session draft (create or update)
- /shipments/draft/<id> - Load a stored draft into the session
"""

from flask import Blueprint

from core.exceptions import DraftPersistenceError
from logging_config import get_logger
from modules.recompute import DraftLoaded
from routes.state import apply_event, draft_response, error_response, load_draft, notify, service


# Module logger
logger = get_logger(__name__)

drafts_bp = Blueprint("drafts", __name__)


@drafts_bp.route("/shipments/draft", methods=["POST"])
def save_draft():
    """Persist the session draft; the draft id is kept for later saves."""
    draft = load_draft()
    try:
        saved = service("DRAFT_SERVICE").save(draft)
    except DraftPersistenceError as e:
        logger.error(f"Failed to save draft: {e}")
        return error_response(draft, [e], status=502)

    return draft_response(
        saved,
        [notify("success", "Draft Saved", "Your shipment draft has been saved")],
    )


@drafts_bp.route("/shipments/draft/<int:draft_id>", methods=["GET"])
def load_stored_draft(draft_id: int):
    """Replace the session draft with a stored one."""
    draft = load_draft()
    try:
        loaded = service("DRAFT_SERVICE").load(draft_id)
    except DraftPersistenceError as e:
        logger.error(f"Failed to load draft {draft_id}: {e}")
        return error_response(draft, [e], status=502)

    return draft_response(
        apply_event(draft, DraftLoaded(loaded)),
        [notify("success", "Draft Loaded", f"Draft {draft_id} loaded")],
    )
