"""
Shipment submission and invoice storage.

Submission Flow:
    1. All three sections complete (FormValidationError otherwise)
    2. A current price with a selected option (StalePriceError otherwise)
    3. Fresh credit check for the selected option; blocked or unknown
       credit raises AdmissionDeniedError
    4. Build the enhanced payload: form data, pricing, DDP duty split,
       provider/carrier, packages and items
    5. POST /shipments; a credit-limit rejection from the server is
       reported as AdmissionDeniedError

Invoices are inspected locally before any upload.

Usage:
    shipment_service = ShipmentService(client, credit_service)
    result = shipment_service.submit(draft)
    invoice = shipment_service.upload_invoice(result.shipment_id, name, data, "application/pdf")
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Optional

from core.api_client import CollaboratorClient
from core.exceptions import (
    AdmissionDeniedError,
    FormValidationError,
    ShipmentSubmissionError,
    StalePriceError,
)
from logging_config import get_logger
from models.shipment import CreditLimitInfo, ShipmentDraft
from models.shipment_result import InvoiceRecord, ShipmentResult
from modules.credit import (
    extract_credit_details,
    format_money,
    is_credit_limit_error,
    submission_blocked,
    top_up_amount,
)
from modules.invoice_inspector import InvoiceInspector
from modules.pricing import (
    DDP_PROCESSING_FEE_ECO,
    DDP_PROCESSING_FEE_STANDARD,
    INSURANCE_RATE,
    derive_provider,
    insurance_cost,
    split_ddp_duties,
)
from modules.sections import all_sections_complete


# Module logger
logger = get_logger(__name__)

DEFAULT_ESTIMATED_DELIVERY_DAYS = 7


class ShipmentService:
    """
    Turns a finished draft into a shipment.

    Attributes:
        default_receiver_email: Sent when the receiver email is blank
    """

    def __init__(
        self,
        client: CollaboratorClient,
        credit_lookup: Callable[[int], Optional[CreditLimitInfo]],
        inspector: Optional[InvoiceInspector] = None,
        default_receiver_email: str = "info@example.com",
        insurance_rate: float = INSURANCE_RATE,
        standard_fee: int = DDP_PROCESSING_FEE_STANDARD,
        eco_fee: int = DDP_PROCESSING_FEE_ECO,
    ):
        self._client = client
        self._credit_lookup = credit_lookup
        self._inspector = inspector or InvoiceInspector()
        self.default_receiver_email = default_receiver_email
        self.insurance_rate = insurance_rate
        self.standard_fee = standard_fee
        self.eco_fee = eco_fee

    # =========================================================================
    # PAYLOAD
    # =========================================================================

    def build_payload(self, draft: ShipmentDraft) -> Dict[str, Any]:
        """
        Enhanced shipment payload for POST /shipments.

        Raises:
            StalePriceError: No price or no selected option
        """
        price = draft.price_details
        option = draft.selected_option
        if price is None or option is None:
            raise StalePriceError()

        form = draft.package_form
        provider, carrier_name = derive_provider(option, price.carrier_name)
        insured = insurance_cost(form.include_insurance, form.customs_value, self.insurance_rate)

        payload: Dict[str, Any] = {
            **draft.sender.to_dict(),
            **draft.receiver.to_dict(),
            **form.to_dict(),
            "packageContents": draft.package_contents,
            "status": "pending",
            "price": option.total_price or price.total_price,
            "totalPrice": option.total_price or price.total_price,
            "basePrice": option.base_price or price.base_price,
            "fuelCharge": option.fuel_charge or price.fuel_charge,
            "additionalFee": option.additional_fee,
            "originalAdditionalFee": option.additional_fee,
            "pieceCount": form.piece_count or 1,
            "currency": form.currency or "USD",
            "carrierName": carrier_name,
            "shippingProvider": provider,
            "estimatedDeliveryDays": DEFAULT_ESTIMATED_DELIVERY_DAYS,
            "selectedService": option.display_name or None,
            "providerServiceCode": option.provider_service_code or option.service_code or None,
            "appliedMultiplier": (
                option.applied_multiplier
                if option.applied_multiplier is not None
                else price.applied_multiplier
            ),
            "originalBasePrice": option.original_base_price or price.original_base_price,
            "originalFuelCharge": option.original_fuel_charge or price.original_fuel_charge,
            "originalTotalPrice": option.original_total_price or price.original_total_price,
            "includeInsurance": form.include_insurance,
            "insuranceCost": insured,
            "declaredValue": form.customs_value,
            "shippingTerms": form.shipping_terms or "ddp",
            "ddpDutiesAmount": 0,
            "ddpBaseDutiesAmount": 0,
            "ddpTrumpTariffsAmount": 0,
            "ddpProcessingFee": 0,
            "ddpTaxAmount": 0,
            "packageItems": [item.to_dict() for item in draft.all_items],
            "packages": [package.to_dict() for package in draft.packages],
        }

        split = split_ddp_duties(
            option,
            form.customs_value,
            draft.receiver.country,
            form.shipping_terms,
            self.standard_fee,
            self.eco_fee,
        )
        if split is not None:
            payload.update(split.to_payload())

        if not draft.receiver.email.strip():
            payload["receiverEmail"] = self.default_receiver_email

        return payload

    # =========================================================================
    # SUBMISSION
    # =========================================================================

    def submit(self, draft: ShipmentDraft) -> ShipmentResult:
        """
        Create the shipment.

        Raises:
            FormValidationError: A section is incomplete
            StalePriceError: No current price
            AdmissionDeniedError: Credit check blocks the shipment
            ShipmentSubmissionError: The collaborator rejected it
        """
        if draft.price_details is None or draft.selected_option is None:
            raise StalePriceError()
        if not all_sections_complete(draft):
            raise FormValidationError("Please complete all sections before creating the shipment")

        option = draft.selected_option
        credit = self._credit_lookup(option.total_price)
        if submission_blocked(credit, option):
            if credit is None:
                raise AdmissionDeniedError("Credit information is unavailable; please try again")
            shortfall = top_up_amount(option.total_price, credit)
            raise AdmissionDeniedError(
                f"This shipment would exceed your credit limit by "
                f"{credit.formatted_exceeded_amount}. Add {format_money(shortfall)} to continue.",
                shortfall=shortfall,
            )

        payload = self.build_payload(draft)
        logger.info(
            f"Submitting shipment: {payload['selectedService']} "
            f"{payload['totalPrice']} via {payload['shippingProvider']}"
        )

        try:
            response = self._client.create_shipment(payload) or {}
        except ShipmentSubmissionError as e:
            if is_credit_limit_error(e.message):
                details = extract_credit_details(e.body) or {}
                logger.warning(f"Shipment rejected by credit limit: {details}")
                exceeded = details.get("exceededAmount")
                raise AdmissionDeniedError(
                    e.message,
                    shortfall=int(exceeded) if isinstance(exceeded, (int, float)) else None,
                ) from e
            raise

        result = ShipmentResult.from_dict(response)
        logger.info(f"Created shipment {result.shipment_id} ({result.status.value})")
        return result

    # =========================================================================
    # INVOICES
    # =========================================================================

    def upload_invoice(
        self,
        shipment_id: int,
        filename: str,
        content: bytes,
        mimetype: Optional[str] = None,
    ) -> InvoiceRecord:
        """
        Inspect then upload an invoice PDF.

        Raises:
            InvoiceConstraintError: Rejected before any network call
            InvoiceStorageError: Upload failed
        """
        invoice = self._inspector.inspect(filename, content, mimetype)
        logger.info(
            f"Uploading invoice '{invoice.filename}' ({invoice.pages} page(s), "
            f"{invoice.size_kb} KB) for shipment {shipment_id}"
        )
        response = self._client.upload_invoice(
            shipment_id, invoice.filename, invoice.content, invoice.mimetype
        ) or {}
        return InvoiceRecord.from_dict({
            "filename": response.get("filename") or invoice.filename,
            "uploadedAt": response.get("uploadedAt"),
        })

    def delete_invoice(self, shipment_id: int) -> None:
        self._client.delete_invoice(shipment_id)
        logger.info(f"Deleted invoice for shipment {shipment_id}")
