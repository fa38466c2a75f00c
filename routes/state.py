"""
Session draft helpers shared by the wizard blueprints.

The draft snapshot lives in the Flask session under ``shipment_draft``.
Every wizard endpoint loads it, produces the next snapshot and answers with
the same JSON envelope:

    {"draft": ..., "sections": ..., "breakdown": ..., "credit": ...,
     "submissionBlocked": ..., "notifications": [...]}
"""

from __future__ import annotations

import uuid
from typing import Any, Dict, Iterable, List, Optional

from flask import current_app, jsonify, session

from core.exceptions import ShipmentCreateError
from models.shipment import ShipmentDraft
from modules.credit import submission_blocked, top_up_amount
from modules.pricing import compute_cost_breakdown
from modules.recompute import Event, dispatch
from modules.sections import section_status


SESSION_DRAFT_KEY = "shipment_draft"
SESSION_VALIDATION_KEY = "validation_key"


def service(name: str):
    """A service stored on app.config at startup."""
    return current_app.config[name]


def load_draft() -> ShipmentDraft:
    return ShipmentDraft.from_session(session.get(SESSION_DRAFT_KEY))


def store_draft(draft: ShipmentDraft) -> None:
    session[SESSION_DRAFT_KEY] = draft.to_session()
    session.modified = True


def validation_session_key() -> str:
    """Identifies this browser session to the validation coordinator."""
    key = session.get(SESSION_VALIDATION_KEY)
    if not key:
        key = uuid.uuid4().hex
        session[SESSION_VALIDATION_KEY] = key
    return key


def apply_event(draft: ShipmentDraft, event: Event) -> ShipmentDraft:
    """Run an event through the recomputation dispatcher."""
    return dispatch(
        draft,
        event,
        credit_lookup=service("CREDIT_SERVICE"),
        divisor=current_app.config["VOLUMETRIC_DIVISOR"],
    )


def breakdown_for(draft: ShipmentDraft) -> Optional[Dict[str, Any]]:
    if draft.selected_option is None:
        return None
    form = draft.package_form
    config = current_app.config
    breakdown = compute_cost_breakdown(
        draft.selected_option,
        form.include_insurance,
        form.customs_value,
        draft.receiver.country,
        form.shipping_terms,
        insurance_rate=config["INSURANCE_RATE"],
        standard_fee=config["DDP_PROCESSING_FEE_STANDARD"],
        eco_fee=config["DDP_PROCESSING_FEE_ECO"],
    )
    return breakdown.to_dict()


def draft_response(
    draft: ShipmentDraft,
    notifications: Optional[Iterable[Dict[str, Any]]] = None,
    status: int = 200,
    **extra: Any,
):
    """Store the draft and render the standard JSON envelope."""
    store_draft(draft)

    option = draft.selected_option
    body: Dict[str, Any] = {
        "draft": draft.to_session(),
        "sections": section_status(draft),
        "breakdown": breakdown_for(draft),
        "credit": draft.credit_info.to_dict() if draft.credit_info else None,
        "topUpAmount": top_up_amount(option.total_price, draft.credit_info) if option else 0,
        "submissionBlocked": submission_blocked(draft.credit_info, option),
        "notifications": list(notifications or []),
    }
    body.update(extra)
    return jsonify(body), status


def error_response(draft: ShipmentDraft, errors: Iterable[ShipmentCreateError], status: int):
    notifications: List[Dict[str, Any]] = [e.to_notification() for e in errors]
    return draft_response(draft, notifications, status=status)


def notify(level: str, title: str, message: str) -> Dict[str, str]:
    return {"level": level, "title": title, "message": message}
