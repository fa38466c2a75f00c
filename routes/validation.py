"""
Validation polling route.

Applies every finished address/postal validation to the session draft.
Normalized values written here are not edits, so they schedule nothing.
"""

from flask import Blueprint

from logging_config import get_logger
from routes.state import draft_response, load_draft, service, validation_session_key


# Module logger
logger = get_logger(__name__)

validation_bp = Blueprint("validation", __name__)


@validation_bp.route("/shipments/validation", methods=["GET"])
def poll_validation():
    coordinator = service("VALIDATION_COORDINATOR")
    session_key = validation_session_key()

    draft = load_draft()
    notifications = []
    for outcome in coordinator.collect(session_key):
        draft, notification = coordinator.apply_outcome(draft, outcome)
        notifications.append(notification)
        logger.debug(f"Applied {outcome.kind.value} outcome #{outcome.generation}")

    return draft_response(
        draft,
        notifications,
        validationPending=coordinator.is_pending(session_key),
    )
