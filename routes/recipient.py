"""
Recipient section routes.

Handles:
- /shipments/recipient - Edit receiver, sender and package contents
- /shipments/recipient/continue - Validate and open the package section
- /shipments/recipients - Search the saved address book
- /shipments/recipient/use-saved/<id> - Fill the receiver from the address book
"""

from dataclasses import replace

from flask import Blueprint, jsonify, request

from core.exceptions import CollaboratorError, FormValidationError
from logging_config import get_logger
from models.shipment import RECEIVER_FIELDS
from modules.countries import normalize_country_code
from modules.sanitize import sanitize_text
from modules.sections import continue_from_recipient
from routes.state import (
    draft_response,
    error_response,
    load_draft,
    notify,
    service,
    validation_session_key,
)


# Module logger
logger = get_logger(__name__)

recipient_bp = Blueprint("recipient", __name__)

SENDER_FIELDS = {
    "name": "senderName",
    "address1": "senderAddress1",
    "address2": "senderAddress2",
    "city": "senderCity",
    "postal_code": "senderPostalCode",
    "phone": "senderPhone",
    "email": "senderEmail",
}


@recipient_bp.route("/shipments/recipient", methods=["POST"])
def update_recipient():
    """
    Apply edited recipient-section fields.

    Receiver edits schedule debounced address/postal validation for the
    fields that actually changed.
    """
    data = request.get_json(silent=True) or {}
    draft = load_draft()

    receiver_changes = {
        attr: sanitize_text(data[wire])
        for attr, wire in RECEIVER_FIELDS.items()
        if wire in data
    }
    if "country" in receiver_changes:
        receiver_changes["country"] = normalize_country_code(receiver_changes["country"])

    sender_changes = {
        attr: sanitize_text(data[wire])
        for attr, wire in SENDER_FIELDS.items()
        if wire in data
    }
    if "senderAddress" in data and "address1" not in sender_changes:
        sender_changes["address1"] = sanitize_text(data["senderAddress"])

    changed = {
        attr for attr, value in receiver_changes.items()
        if getattr(draft.receiver, attr) != value
    }

    updated = replace(
        draft,
        receiver=replace(draft.receiver, **receiver_changes),
        sender=replace(draft.sender, **sender_changes),
    )
    if "packageContents" in data:
        updated = updated.set_package_contents(sanitize_text(data["packageContents"]))

    for attr in changed:
        updated = updated.clear_field_error(RECEIVER_FIELDS[attr])

    scheduled = service("VALIDATION_COORDINATOR").schedule(
        validation_session_key(), updated.receiver, changed
    )

    return draft_response(
        updated,
        validationScheduled=[kind.value for kind in scheduled],
    )


@recipient_bp.route("/shipments/recipient/continue", methods=["POST"])
def continue_recipient():
    """Validate the recipient section and move to the package section."""
    transition = continue_from_recipient(load_draft())
    if not transition.ok:
        logger.info(f"Recipient step blocked by {len(transition.errors)} error(s)")
        return error_response(transition.draft, transition.errors, status=400)
    return draft_response(transition.draft)


@recipient_bp.route("/shipments/recipients", methods=["GET"])
def search_recipients():
    """Saved recipients matching ``?q=`` (at least two characters)."""
    query = request.args.get("q", "")
    try:
        recipients = service("DRAFT_SERVICE").search_recipients(query)
    except CollaboratorError as e:
        logger.error(f"Recipient search failed: {e}")
        return jsonify({"recipients": [], "notifications": [e.to_notification()]}), 502
    return jsonify({"recipients": recipients, "notifications": []})


@recipient_bp.route("/shipments/recipient/use-saved/<int:recipient_id>", methods=["POST"])
def use_saved_recipient(recipient_id: int):
    """Fill the receiver from a saved address book entry."""
    draft = load_draft()
    draft_service = service("DRAFT_SERVICE")

    try:
        recipient = draft_service.get_recipient(recipient_id)
    except CollaboratorError as e:
        logger.error(f"Failed to fetch recipients: {e}")
        return error_response(draft, [e], status=502)

    if recipient is None:
        return draft_response(
            draft,
            [notify("error", "Recipient Not Found", f"No saved recipient with id {recipient_id}")],
            status=404,
        )

    try:
        updated = draft_service.apply_recipient(draft, recipient)
    except FormValidationError as e:
        return error_response(draft, [e], status=400)

    return draft_response(
        updated,
        [notify("success", "Recipient Selected", f"Using saved address for {updated.receiver.name}")],
    )
