"""
HTTP client for the shipment collaborator API.

Every external service the shipment wizard depends on (pricing and duties,
address validation, drafts, shipment storage, invoices, user balance) sits
behind one base URL. This module wraps those endpoints in a single
requests-based client.

ERROR POLICY:
    - Connection errors, non-2xx responses and undecodable JSON all raise a
      CollaboratorError subclass chosen by the calling method
    - The server's "message" field is used when present
    - No retries and no timeout unless one is configured; the user
      re-attempts the action

Usage:
    client = CollaboratorClient("https://api.example.com/api", api_token="...")

    options = client.pricing_options(payload)
    draft = client.create_draft(draft_payload)
    client.close()
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Type

import requests

from logging_config import get_logger
from .exceptions import (
    AddressValidationError,
    CollaboratorError,
    DraftPersistenceError,
    InvoiceStorageError,
    PricingUnavailableError,
    ShipmentSubmissionError,
)


# Module logger
logger = get_logger(__name__)


class CollaboratorClient:
    """
    Thin wrapper over the collaborator REST endpoints.

    One instance is shared by the services; requests.Session handles
    connection pooling and is safe to use from the validation timer threads
    for the independent, stateless calls made here.

    Attributes:
        base_url: API root without trailing slash
        timeout: Per-request timeout in seconds (None = no timeout)
    """

    def __init__(
        self,
        base_url: str,
        api_token: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update({"Accept": "application/json"})
        if api_token:
            self._session.headers["Authorization"] = f"Bearer {api_token}"

        logger.info(f"Collaborator client configured for {self.base_url}")

    def close(self) -> None:
        """Close the underlying HTTP session."""
        self._session.close()

    # =========================================================================
    # USER / ACCOUNT
    # =========================================================================

    def get_user(self) -> Dict[str, Any]:
        return self._request("GET", "/user", "get user")

    def get_balance(self) -> Dict[str, Any]:
        return self._request("GET", "/balance", "get balance")

    def get_recipients(self) -> List[Dict[str, Any]]:
        return self._request("GET", "/recipients", "list recipients", DraftPersistenceError) or []

    # =========================================================================
    # SHIPMENTS
    # =========================================================================

    def get_my_shipments(self) -> List[Dict[str, Any]]:
        return self._request("GET", "/shipments/my", "list shipments", DraftPersistenceError) or []

    def get_shipment(self, shipment_id: int) -> Dict[str, Any]:
        return self._request(
            "GET", f"/shipments/{shipment_id}", "get shipment", DraftPersistenceError
        )

    def get_shipment_items(self, shipment_id: int) -> List[Dict[str, Any]]:
        return self._request(
            "GET", f"/shipments/{shipment_id}/items", "get shipment items", DraftPersistenceError
        ) or []

    def create_shipment(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self._request(
            "POST", "/shipments", "create shipment", ShipmentSubmissionError, json=payload
        )

    def upload_invoice(
        self,
        shipment_id: int,
        filename: str,
        content: bytes,
        mimetype: str = "application/pdf",
    ) -> Dict[str, Any]:
        """
        Upload an invoice PDF as multipart field ``invoice``.

        Returns:
            Response body with ``filename`` and ``uploadedAt``
        """
        files = {"invoice": (filename, content, mimetype)}
        return self._request(
            "POST",
            f"/shipments/{shipment_id}/upload-invoice",
            "upload invoice",
            InvoiceStorageError,
            files=files,
        )

    def delete_invoice(self, shipment_id: int) -> Dict[str, Any]:
        return self._request(
            "DELETE",
            f"/shipments/{shipment_id}/delete-invoice",
            "delete invoice",
            InvoiceStorageError,
        )

    # =========================================================================
    # PRICING
    # =========================================================================

    def pricing_options(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self._request(
            "POST", "/pricing/options", "calculate price", PricingUnavailableError, json=payload
        )

    # =========================================================================
    # ADDRESS VALIDATION
    # =========================================================================

    def validate_address(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self._request(
            "POST", "/validate-address", "validate address", AddressValidationError, json=payload
        )

    def validate_postal_code(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self._request(
            "POST",
            "/validate-postal-code",
            "validate postal code",
            AddressValidationError,
            json=payload,
        )

    # =========================================================================
    # DRAFTS
    # =========================================================================

    def get_draft(self, draft_id: int) -> Dict[str, Any]:
        return self._request("GET", f"/drafts/{draft_id}", "load draft", DraftPersistenceError)

    def create_draft(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", "/drafts", "save draft", DraftPersistenceError, json=payload)

    def update_draft(self, draft_id: int, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self._request(
            "PATCH", f"/drafts/{draft_id}", "save draft", DraftPersistenceError, json=payload
        )

    # =========================================================================
    # INTERNAL
    # =========================================================================

    def _request(
        self,
        method: str,
        path: str,
        operation: str,
        error_cls: Type[CollaboratorError] = CollaboratorError,
        json: Optional[Dict[str, Any]] = None,
        files: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Issue one request and decode the JSON body.

        Args:
            method: HTTP verb
            path: Endpoint path relative to base_url
            operation: Short description used in logs and errors
            error_cls: CollaboratorError subclass to raise on failure
            json: Optional JSON body
            files: Optional multipart files

        Returns:
            Decoded JSON body (None for empty bodies)

        Raises:
            CollaboratorError: (or error_cls) on any failure
        """
        url = f"{self.base_url}{path}"
        logger.debug(f"{method} {url} ({operation})")

        try:
            response = self._session.request(
                method, url, json=json, files=files, timeout=self.timeout
            )
        except requests.RequestException as e:
            logger.warning(f"{operation} failed: {e}")
            raise error_cls(
                f"Could not reach the server to {operation}. Please try again.",
                operation=operation,
            ) from e

        if not response.ok:
            body = _error_body(response)
            message = _error_message(body) or f"Failed to {operation}"
            logger.warning(f"{operation} returned HTTP {response.status_code}: {message}")
            raise error_cls(
                message,
                operation=operation,
                status_code=response.status_code,
                body=body,
            )

        if not response.content:
            return None

        try:
            return response.json()
        except ValueError as e:
            logger.warning(f"{operation} returned a non-JSON body")
            raise error_cls(
                f"Unexpected response while trying to {operation}",
                operation=operation,
                status_code=response.status_code,
            ) from e


def _error_body(response: requests.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


def _error_message(body: Any) -> Optional[str]:
    """Pull a ``message`` (or ``error``) field out of an error body."""
    if isinstance(body, dict):
        return body.get("message") or body.get("error")
    return None
