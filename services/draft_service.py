"""
Draft persistence and copy-from-previous-shipment.

Drafts:
    save()  POST /drafts on first save, PATCH /drafts/:id afterwards; the
            returned id is kept on the draft snapshot
    load()  GET /drafts/:id and rebuild the draft, including packages and
            items from their embedded JSON blobs

Copying from a previous shipment:
    copy_address_only()  receiver fields and destination country only
    copy_everything()    sender, receiver, package fields, packages, items

Every fetch completes before a new snapshot is built. A failure raises
DraftPersistenceError and the caller keeps its current snapshot, so there
is never a partial overwrite.

Also here: saved recipients (search and apply) and sender prefill from the
user profile.
"""

from __future__ import annotations

import json
from dataclasses import replace
from datetime import date
from typing import Any, Dict, List, Optional, Tuple

from core.api_client import CollaboratorClient
from core.exceptions import CollaboratorError, DraftPersistenceError, FormValidationError
from logging_config import get_logger
from models.shipment import (
    SECTIONS,
    Package,
    PackageForm,
    PackageItem,
    Receiver,
    Sender,
    ShipmentDraft,
    parse_id,
)
from modules.countries import (
    get_country,
    has_states,
    normalize_country_code,
    transliterate,
)
from modules.sanitize import to_int


# Module logger
logger = get_logger(__name__)

MIN_RECIPIENT_QUERY_LENGTH = 2


class DraftService:
    """Saves, loads and copies shipment drafts through the collaborator."""

    def __init__(self, client: CollaboratorClient):
        self._client = client

    # =========================================================================
    # SAVE / LOAD
    # =========================================================================

    def build_payload(self, draft: ShipmentDraft) -> Dict[str, Any]:
        """Draft record for POST/PATCH /drafts."""
        sender, receiver, form = draft.sender, draft.receiver, draft.package_form

        payload: Dict[str, Any] = {
            "senderName": sender.name,
            "senderAddress1": sender.address1,
            "senderAddress2": sender.address2,
            "senderCity": sender.city,
            "senderPostalCode": sender.postal_code,
            "senderPhone": sender.phone,
            "senderEmail": sender.email,
            **receiver.to_dict(),
            "packageLength": int(form.length) if form.length else None,
            "packageWidth": int(form.width) if form.width else None,
            "packageHeight": int(form.height) if form.height else None,
            "packageWeight": float(form.weight) if form.weight else None,
            "pieceCount": len(draft.packages) or None,
            "packageContents": draft.package_contents,
            "packageItemsData": json.dumps([item.to_dict() for item in draft.items]),
            "packagesData": json.dumps([package.to_dict() for package in draft.packages]),
            "customsValue": form.customs_value,
            "currency": form.currency or "USD",
            "gtipCode": form.hs_code,
            "serviceLevel": form.service_level,
            "includeInsurance": form.include_insurance,
            "shippingTerms": form.shipping_terms,
        }
        if draft.draft_id is None:
            payload["name"] = f"Draft - {date.today().isoformat()}"
        return payload

    def save(self, draft: ShipmentDraft) -> ShipmentDraft:
        """
        Persist the draft.

        Returns:
            Snapshot carrying the draft id

        Raises:
            DraftPersistenceError: Save failed
        """
        payload = self.build_payload(draft)
        if draft.draft_id is not None:
            logger.info(f"Updating draft {draft.draft_id}")
            self._client.update_draft(draft.draft_id, payload)
            return draft

        logger.info("Creating new draft")
        response = self._client.create_draft(payload) or {}
        draft_id = response.get("id")
        if draft_id is None:
            raise DraftPersistenceError("Draft was saved without an id", operation="save draft")
        logger.info(f"Created draft {draft_id}")
        return draft.with_draft_id(int(draft_id))

    def load(self, draft_id: int) -> ShipmentDraft:
        """
        Rebuild a draft from storage with every section expanded.

        Malformed package/item blobs are logged and left empty.

        Raises:
            DraftPersistenceError: Fetch failed
        """
        data = self._client.get_draft(draft_id) or {}
        logger.info(f"Loaded draft {draft_id}")

        form = PackageForm.from_dict(data)
        items = tuple(
            PackageItem.from_dict(raw)
            for raw in _parse_blob(data.get("packageItemsData"), "package items", draft_id)
        )
        packages = tuple(
            Package.from_dict(raw)
            for raw in _parse_blob(data.get("packagesData"), "packages", draft_id)
        )

        return ShipmentDraft(
            sender=Sender.from_dict(data),
            receiver=Receiver.from_dict(data),
            package_contents=data.get("packageContents") or "",
            package_form=replace(form, item_count=1),
            packages=packages,
            items=items,
            draft_id=parse_id(data.get("id")) or draft_id,
            expanded=frozenset(SECTIONS),
        )

    # =========================================================================
    # COPY FROM PREVIOUS SHIPMENT
    # =========================================================================

    def copy_address_only(self, draft: ShipmentDraft, shipment_id: int) -> ShipmentDraft:
        """
        Overwrite the receiver with a previous shipment's receiver.

        Sender, packages and items are left exactly as they were.
        """
        shipment = self._client.get_shipment(shipment_id) or {}
        receiver = Receiver.from_dict(shipment)
        logger.info(f"Copied receiver address from shipment {shipment_id}")
        return replace(draft, receiver=receiver).expand("recipient")

    def copy_everything(self, draft: ShipmentDraft, shipment_id: int) -> ShipmentDraft:
        """
        Overwrite sender, receiver, package data, packages and items.

        Items are attached to the package whose id matches their packageId;
        items without a packageId belong to every package. A failed items
        fetch is treated as "no items".
        """
        shipment = self._client.get_shipment(shipment_id) or {}
        try:
            raw_items = self._client.get_shipment_items(shipment_id)
        except CollaboratorError as e:
            logger.warning(f"Items for shipment {shipment_id} unavailable: {e.message}")
            raw_items = []

        updated = replace(
            draft,
            sender=Sender.from_dict(shipment),
            receiver=Receiver.from_dict(shipment),
            package_contents=shipment.get("packageContents") or "",
        )

        raw_packages = shipment.get("packages") or []
        if raw_packages:
            items = tuple(PackageItem.from_persisted(raw) for raw in raw_items)
            packages = tuple(
                _with_items(Package.from_dict({k: v for k, v in raw.items() if k != "items"}), items)
                for raw in raw_packages
            )
            first = packages[0]
            updated = replace(
                updated,
                package_form=PackageForm(
                    length=first.length,
                    width=first.width,
                    height=first.height,
                    weight=first.weight,
                    piece_count=len(packages),
                    item_count=_copied_item_count(raw_packages),
                    customs_value=to_int(shipment.get("customsValue")),
                    currency=shipment.get("currency") or "USD",
                    hs_code=shipment.get("gtipCode") or "",
                    service_level=shipment.get("serviceLevel") or "standard",
                    shipping_terms=draft.package_form.shipping_terms,
                    include_insurance=bool(shipment.get("includeInsurance")),
                ),
                packages=packages,
                items=items if items else draft.items,
            )

        logger.info(f"Copied all data from shipment {shipment_id}")
        return replace(updated.clear_price(), expanded=frozenset({"recipient", "package"}))

    def previous_shipments(self) -> List[Dict[str, Any]]:
        """The user's shipments, newest first."""
        shipments = self._client.get_my_shipments()
        return sorted(
            shipments,
            key=lambda s: (s.get("createdAt") or "", s.get("id") or 0),
            reverse=True,
        )

    # =========================================================================
    # SAVED RECIPIENTS
    # =========================================================================

    def search_recipients(self, query: str) -> List[Dict[str, Any]]:
        """Saved recipients whose name, address or city contains the query."""
        query = (query or "").strip().lower()
        if len(query) < MIN_RECIPIENT_QUERY_LENGTH:
            return []
        return [
            recipient for recipient in self._client.get_recipients()
            if recipient and any(
                query in (recipient.get(key) or "").lower()
                for key in ("name", "address", "city")
            )
        ]

    def get_recipient(self, recipient_id: int) -> Optional[Dict[str, Any]]:
        for recipient in self._client.get_recipients():
            if recipient and recipient.get("id") == recipient_id:
                return recipient
        return None

    @staticmethod
    def apply_recipient(draft: ShipmentDraft, recipient: Dict[str, Any]) -> ShipmentDraft:
        """
        Fill the receiver from a saved recipient.

        Raises:
            FormValidationError: The recipient's country is not recognised
        """
        country = normalize_country_code(recipient.get("country"))
        if get_country(country) is None:
            raise FormValidationError(
                f"Country code not found for {recipient.get('country')}",
                field="receiverCountry",
            )

        changes: Dict[str, Any] = {
            "name": recipient.get("name") or "",
            "address": recipient.get("address") or "",
            "city": recipient.get("city") or "",
            "postal_code": recipient.get("postalCode") or "",
            "phone": recipient.get("phone") or "",
            "country": country,
        }
        if recipient.get("email"):
            changes["email"] = recipient["email"]
        if has_states(country) and recipient.get("state"):
            changes["state"] = recipient["state"]
        return draft.set_receiver(**changes)

    # =========================================================================
    # SENDER PREFILL
    # =========================================================================

    def prefill_sender(self, draft: ShipmentDraft) -> ShipmentDraft:
        """
        Fill sender fields from the user profile.

        Only fields present on the profile are written. A failed lookup
        leaves the draft unchanged.
        """
        try:
            user = self._client.get_user() or {}
        except CollaboratorError as e:
            logger.warning(f"Could not load sender profile: {e.message}")
            return draft

        changes: Dict[str, Any] = {}
        if user.get("companyName"):
            changes["name"] = transliterate(user["companyName"])
        address1 = user.get("address1") or user.get("address")
        if address1:
            changes["address1"] = transliterate(address1)
        if user.get("address2"):
            changes["address2"] = transliterate(user["address2"])
        if user.get("city"):
            changes["city"] = transliterate(user["city"])
        for source, target in (("postalCode", "postal_code"), ("phone", "phone"), ("email", "email")):
            if user.get(source):
                changes[target] = user[source]

        return draft.set_sender(**changes) if changes else draft


def _parse_blob(blob: Any, label: str, draft_id: int) -> List[Dict[str, Any]]:
    if not blob:
        return []
    if isinstance(blob, list):
        return [entry for entry in blob if isinstance(entry, dict)]
    try:
        parsed = json.loads(blob)
    except (TypeError, ValueError) as e:
        logger.error(f"Draft {draft_id}: could not parse {label}: {e}")
        return []
    if not isinstance(parsed, list):
        logger.error(f"Draft {draft_id}: {label} is not a list")
        return []
    return [entry for entry in parsed if isinstance(entry, dict)]


def _copied_item_count(raw_packages: List[Dict[str, Any]]) -> int:
    total = 0
    for raw in raw_packages:
        quantities = [
            to_int(item.get("quantity"), 1) or 1
            for item in raw.get("items") or []
            if isinstance(item, dict)
        ]
        total += sum(quantities) if quantities else 1
    return max(1, total)


def _with_items(package: Package, items: Tuple[PackageItem, ...]) -> Package:
    """Attach the items stored for this package plus the loose ones."""
    return replace(
        package,
        items=tuple(
            item for item in items
            if item.package_id is None or item.package_id == package.id
        ),
    )
