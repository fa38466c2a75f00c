"""
Shipment submission and invoice routes.

Handles:
- /shipments/submit - Create the shipment from the session draft
- /shipments/<id>/invoice - Upload (POST) or delete (DELETE) an invoice PDF

Submission re-checks every gate server-side; a successful submission
discards the session draft.
"""

from flask import Blueprint, jsonify, request

from core.exceptions import (
    AdmissionDeniedError,
    FormValidationError,
    InvoiceConstraintError,
    InvoiceStorageError,
    ShipmentSubmissionError,
    StalePriceError,
)
from logging_config import get_logger
from models.shipment import ShipmentDraft
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

submit_bp = Blueprint("submit", __name__)


@submit_bp.route("/shipments/submit", methods=["POST"])
def submit():
    """
    Submit the session draft.

    Status codes:
        400 incomplete sections, 409 stale price, 402 credit limit,
        502 collaborator failure
    """
    draft = load_draft()
    try:
        result = service("SHIPMENT_SERVICE").submit(draft)
    except FormValidationError as e:
        return error_response(draft, [e], status=400)
    except StalePriceError as e:
        return error_response(draft, [e], status=409)
    except AdmissionDeniedError as e:
        logger.info(f"Submission denied: {e.message}")
        return error_response(draft, [e], status=402)
    except ShipmentSubmissionError as e:
        logger.error(f"Shipment creation failed: {e}")
        return error_response(draft, [e], status=502)

    service("VALIDATION_COORDINATOR").forget(validation_session_key())
    return draft_response(
        ShipmentDraft(),
        [notify("success", "Shipment Created", f"Shipment #{result.shipment_id} has been created")],
        status=201,
        shipment=result.to_dict(),
    )


@submit_bp.route("/shipments/<int:shipment_id>/invoice", methods=["POST"])
def upload_invoice(shipment_id: int):
    """Upload the multipart ``invoice`` file after local checks."""
    upload = request.files.get("invoice")
    if upload is None:
        error = InvoiceConstraintError("Please choose an invoice file")
        return jsonify({"invoice": None, "notifications": [error.to_notification()]}), 400

    try:
        record = service("SHIPMENT_SERVICE").upload_invoice(
            shipment_id, upload.filename, upload.read(), upload.mimetype
        )
    except InvoiceConstraintError as e:
        return jsonify({"invoice": None, "notifications": [e.to_notification()]}), 400
    except InvoiceStorageError as e:
        logger.error(f"Invoice upload failed for shipment {shipment_id}: {e}")
        return jsonify({"invoice": None, "notifications": [e.to_notification()]}), 502

    return jsonify({
        "invoice": record.to_dict(),
        "notifications": [notify("success", "Invoice Uploaded", f"{record.filename} uploaded")],
    })


@submit_bp.route("/shipments/<int:shipment_id>/invoice", methods=["DELETE"])
def delete_invoice(shipment_id: int):
    try:
        service("SHIPMENT_SERVICE").delete_invoice(shipment_id)
    except InvoiceStorageError as e:
        logger.error(f"Invoice delete failed for shipment {shipment_id}: {e}")
        return jsonify({"notifications": [e.to_notification()]}), 502
    return jsonify({"notifications": [notify("success", "Invoice Deleted", "The invoice has been removed")]})
