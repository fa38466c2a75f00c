"""
Tests for shipment submission and invoice storage.

Credit lookups and the collaborator client are mocked.
"""

import io

import pytest
from unittest.mock import MagicMock
from pypdf import PdfWriter

from core.exceptions import (
    AdmissionDeniedError,
    FormValidationError,
    InvoiceConstraintError,
    InvoiceStorageError,
    ShipmentSubmissionError,
    StalePriceError,
)
from models.shipment import DutyInfo, PriceDetails, ServiceOption
from models.shipment_result import ShipmentStatus
from modules.credit import evaluate_credit
from services.shipment_service import ShipmentService


def blank_pdf(pages=1):
    writer = PdfWriter()
    for _ in range(pages):
        writer.add_blank_page(width=72, height=72)
    buffer = io.BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


@pytest.fixture
def credit_lookup():
    return MagicMock(side_effect=lambda price: evaluate_credit(price, 100000, 0))


@pytest.fixture
def service(mock_client, credit_lookup):
    mock_client.create_shipment.return_value = {"id": 501, "status": "pending", "totalPrice": 1750}
    return ShipmentService(mock_client, credit_lookup, default_receiver_email="ops@platform.test")


class TestPayload:

    def test_us_ddp_payload(self, service, priced_draft):
        payload = service.build_payload(priced_draft)

        assert payload["receiverCountry"] == "US"
        assert payload["status"] == "pending"
        assert payload["totalPrice"] == 1000
        assert payload["basePrice"] == 800
        assert payload["fuelCharge"] == 200
        assert payload["selectedService"] == "Express"
        assert payload["providerServiceCode"] == "shipentegra-express"
        assert payload["shippingProvider"] == "platform"
        assert payload["shippingTerms"] == "ddp"
        assert payload["ddpBaseDutiesAmount"] == 200
        assert payload["ddpTrumpTariffsAmount"] == 100
        assert payload["ddpDutiesAmount"] == 300
        assert payload["ddpProcessingFee"] == 450
        assert payload["ddpTaxAmount"] == 0
        assert payload["declaredValue"] == 25000
        assert payload["packageItems"][0]["hsCode"] == "610910"
        assert payload["packages"][0]["length"] == 30
        assert payload["receiverEmail"] == "jane@example.com"

    def test_dap_has_zero_duty_fields(self, service, priced_draft):
        payload = service.build_payload(priced_draft.set_package(shipping_terms="DAP"))
        assert payload["shippingTerms"] == "dap"
        assert payload["ddpDutiesAmount"] == 0
        assert payload["ddpProcessingFee"] == 0

    def test_insurance(self, service, priced_draft):
        payload = service.build_payload(priced_draft.set_package(include_insurance=True))
        assert payload["includeInsurance"] is True
        assert payload["insuranceCost"] == 250

    def test_blank_receiver_email_uses_default(self, service, priced_draft):
        payload = service.build_payload(priced_draft.set_receiver(email=" "))
        assert payload["receiverEmail"] == "ops@platform.test"

    def test_afs_provider(self, service, priced_draft):
        option = ServiceOption(display_name="AFS Economy", total_price=900, provider_service_code="afs-eco")
        draft = priced_draft.with_price(PriceDetails(total_price=900, options=(option,)), option)
        payload = service.build_payload(draft)
        assert payload["shippingProvider"] == "afs"
        assert payload["carrierName"] == "AFS Transport"
        assert payload["basePrice"] == 0

    def test_requires_price(self, service, package_draft):
        with pytest.raises(StalePriceError):
            service.build_payload(package_draft)


class TestSubmit:

    def test_success(self, service, mock_client, credit_lookup, priced_draft):
        result = service.submit(priced_draft)

        assert result.shipment_id == 501
        assert result.status is ShipmentStatus.PENDING
        credit_lookup.assert_called_once_with(1000)
        mock_client.create_shipment.assert_called_once()

    def test_no_price(self, service, mock_client, package_draft):
        with pytest.raises(StalePriceError):
            service.submit(package_draft)
        mock_client.create_shipment.assert_not_called()

    def test_incomplete_sections(self, service, mock_client, priced_draft):
        with pytest.raises(FormValidationError):
            service.submit(priced_draft.set_receiver(phone=""))
        mock_client.create_shipment.assert_not_called()

    def test_credit_warning_blocks(self, mock_client, priced_draft):
        service = ShipmentService(mock_client, lambda price: evaluate_credit(price, 600, 0))

        with pytest.raises(AdmissionDeniedError) as exc_info:
            service.submit(priced_draft)
        assert exc_info.value.shortfall == 400
        assert "$4.00" in exc_info.value.message
        mock_client.create_shipment.assert_not_called()

    def test_unknown_credit_blocks(self, mock_client, priced_draft):
        service = ShipmentService(mock_client, lambda price: None)

        with pytest.raises(AdmissionDeniedError) as exc_info:
            service.submit(priced_draft)
        assert exc_info.value.shortfall is None
        mock_client.create_shipment.assert_not_called()

    def test_server_credit_rejection(self, service, mock_client, priced_draft):
        mock_client.create_shipment.side_effect = ShipmentSubmissionError(
            "Credit limit exceeded",
            operation="create shipment",
            status_code=400,
            body={"message": "Credit limit exceeded", "creditDetails": {"exceededAmount": 250}},
        )

        with pytest.raises(AdmissionDeniedError) as exc_info:
            service.submit(priced_draft)
        assert exc_info.value.shortfall == 250

    def test_other_rejection_propagates(self, service, mock_client, priced_draft):
        mock_client.create_shipment.side_effect = ShipmentSubmissionError(
            "Receiver postal code is invalid", operation="create shipment", status_code=422
        )

        with pytest.raises(ShipmentSubmissionError):
            service.submit(priced_draft)

    def test_eco_processing_fee(self, service, mock_client, priced_draft):
        eco = ServiceOption(
            display_name="ECO Saver",
            total_price=700,
            duties=DutyInfo(available=True, estimated_duty=0),
        )
        draft = priced_draft.with_price(PriceDetails(total_price=700, options=(eco,)), eco)
        service.submit(draft)

        payload = mock_client.create_shipment.call_args[0][0]
        assert payload["ddpProcessingFee"] == 45
        assert payload["ddpDutiesAmount"] == 0


class TestInvoices:

    def test_upload(self, service, mock_client):
        mock_client.upload_invoice.return_value = {"filename": "inv-501.pdf", "uploadedAt": "2026-10-19T09:00:00Z"}

        record = service.upload_invoice(501, "invoice.pdf", blank_pdf(), "application/pdf")

        assert record.filename == "inv-501.pdf"
        assert record.uploaded_at == "2026-10-19T09:00:00Z"
        shipment_id, filename, _content, mimetype = mock_client.upload_invoice.call_args[0]
        assert (shipment_id, filename, mimetype) == (501, "invoice.pdf", "application/pdf")

    def test_rejected_before_upload(self, service, mock_client):
        with pytest.raises(InvoiceConstraintError):
            service.upload_invoice(501, "invoice.png", b"\x89PNG", "image/png")
        mock_client.upload_invoice.assert_not_called()

    def test_storage_failure(self, service, mock_client):
        mock_client.upload_invoice.side_effect = InvoiceStorageError("down", operation="upload invoice")
        with pytest.raises(InvoiceStorageError):
            service.upload_invoice(501, "invoice.pdf", blank_pdf())

    def test_delete(self, service, mock_client):
        service.delete_invoice(501)
        mock_client.delete_invoice.assert_called_once_with(501)
