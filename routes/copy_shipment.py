"""
Copy-from-previous-shipment routes.

Handles:
- /shipments/previous - The user's shipments, newest first
- /shipments/copy/<id>/address - Copy the receiver only
- /shipments/copy/<id>/all - Copy sender, receiver, packages and items

A failed fetch leaves the session draft exactly as it was.
"""

from flask import Blueprint, jsonify

from core.exceptions import CollaboratorError, DraftPersistenceError
from logging_config import get_logger
from modules.recompute import DraftLoaded
from routes.state import apply_event, draft_response, error_response, load_draft, notify, service


# Module logger
logger = get_logger(__name__)

copy_bp = Blueprint("copy", __name__)


@copy_bp.route("/shipments/previous", methods=["GET"])
def previous_shipments():
    try:
        shipments = service("DRAFT_SERVICE").previous_shipments()
    except CollaboratorError as e:
        logger.error(f"Failed to list previous shipments: {e}")
        return jsonify({"shipments": [], "notifications": [e.to_notification()]}), 502
    return jsonify({"shipments": shipments, "notifications": []})


@copy_bp.route("/shipments/copy/<int:shipment_id>/address", methods=["POST"])
def copy_address(shipment_id: int):
    draft = load_draft()
    try:
        updated = service("DRAFT_SERVICE").copy_address_only(draft, shipment_id)
    except DraftPersistenceError as e:
        logger.error(f"Failed to copy address from shipment {shipment_id}: {e}")
        return error_response(draft, [e], status=502)

    return draft_response(
        updated,
        [notify("success", "Address Copied", f"Receiver copied from shipment #{shipment_id}")],
    )


@copy_bp.route("/shipments/copy/<int:shipment_id>/all", methods=["POST"])
def copy_all(shipment_id: int):
    draft = load_draft()
    try:
        copied = service("DRAFT_SERVICE").copy_everything(draft, shipment_id)
    except DraftPersistenceError as e:
        logger.error(f"Failed to copy shipment {shipment_id}: {e}")
        return error_response(draft, [e], status=502)

    return draft_response(
        apply_event(draft, DraftLoaded(copied)),
        [notify("success", "Shipment Copied", f"All details copied from shipment #{shipment_id}")],
    )
