"""Tests for invoice PDF checks."""

import io

import pytest
from pypdf import PdfWriter

from core.exceptions import InvoiceConstraintError
from modules.invoice_inspector import InvoiceInspector


@pytest.fixture
def pdf_bytes():
    writer = PdfWriter()
    writer.add_blank_page(width=612, height=792)
    writer.add_blank_page(width=612, height=792)
    buffer = io.BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


class TestInvoiceInspector:

    def test_accepts_pdf(self, pdf_bytes):
        invoice = InvoiceInspector().inspect("Invoice.PDF", pdf_bytes, "application/pdf")
        assert invoice.pages == 2
        assert invoice.mimetype == "application/pdf"
        assert invoice.to_dict()["filename"] == "Invoice.PDF"

    def test_missing_mimetype_is_allowed(self, pdf_bytes):
        assert InvoiceInspector().inspect("invoice.pdf", pdf_bytes).pages == 2

    @pytest.mark.parametrize("filename,mimetype", [
        ("invoice.png", "image/png"),
        ("invoice.pdf", "image/png"),
        ("invoice.docx", "application/pdf"),
    ])
    def test_rejects_non_pdf(self, pdf_bytes, filename, mimetype):
        with pytest.raises(InvoiceConstraintError) as exc_info:
            InvoiceInspector().inspect(filename, pdf_bytes, mimetype)
        assert exc_info.value.message == "Only PDF files are allowed"

    def test_rejects_large_file(self, pdf_bytes):
        inspector = InvoiceInspector(max_bytes=len(pdf_bytes) - 1)
        with pytest.raises(InvoiceConstraintError) as exc_info:
            inspector.inspect("invoice.pdf", pdf_bytes)
        assert "File size must be less than" in exc_info.value.message

    def test_rejects_empty_file(self):
        with pytest.raises(InvoiceConstraintError):
            InvoiceInspector().inspect("invoice.pdf", b"")

    def test_rejects_missing_filename(self, pdf_bytes):
        with pytest.raises(InvoiceConstraintError):
            InvoiceInspector().inspect("", pdf_bytes)

    def test_rejects_unreadable_pdf(self):
        with pytest.raises(InvoiceConstraintError) as exc_info:
            InvoiceInspector().inspect("invoice.pdf", b"this is not a pdf at all")
        assert exc_info.value.filename == "invoice.pdf"
