"""Invoice PDF checks run before anything is sent to storage."""

from __future__ import annotations

import io
from dataclasses import dataclass
from typing import Dict, Any, Optional

from pypdf import PdfReader
from pypdf.errors import PdfReadError

from core.exceptions import InvoiceConstraintError


DEFAULT_MAX_BYTES = 10 * 1024 * 1024
PDF_MIMETYPE = "application/pdf"


@dataclass(frozen=True)
class InvoiceFile:
    filename: str
    content: bytes
    mimetype: str = PDF_MIMETYPE
    pages: int = 0

    @property
    def size_kb(self) -> float:
        return round(len(self.content) / 1024, 2)

    def to_dict(self) -> Dict[str, Any]:
        return {"filename": self.filename, "pages": self.pages, "sizeKb": self.size_kb}


class InvoiceInspector:
    """Rejects anything that is not a readable PDF within the size limit."""

    def __init__(self, max_bytes: int = DEFAULT_MAX_BYTES):
        self.max_bytes = max_bytes

    def inspect(self, filename: str, content: bytes, mimetype: Optional[str] = None) -> InvoiceFile:
        """
        Validate an uploaded invoice.

        Raises:
            InvoiceConstraintError: Wrong type, too large, empty or unreadable
        """
        if not filename:
            raise InvoiceConstraintError("Please choose an invoice file")
        if (mimetype or PDF_MIMETYPE) != PDF_MIMETYPE or not filename.lower().endswith(".pdf"):
            raise InvoiceConstraintError("Only PDF files are allowed", filename=filename)
        if not content:
            raise InvoiceConstraintError("The invoice file is empty", filename=filename)
        if len(content) > self.max_bytes:
            max_mb = self.max_bytes / (1024 * 1024)
            raise InvoiceConstraintError(
                f"File size must be less than {max_mb:.0f}MB", filename=filename
            )

        try:
            reader = PdfReader(io.BytesIO(content))
            pages = len(reader.pages)
        except (PdfReadError, ValueError) as exc:
            raise InvoiceConstraintError(
                f"The invoice could not be read as a PDF: {exc}", filename=filename
            ) from exc

        if pages == 0:
            raise InvoiceConstraintError("The invoice PDF has no pages", filename=filename)

        return InvoiceFile(filename=filename, content=content, mimetype=PDF_MIMETYPE, pages=pages)
