"""
Credit admission control.

A shipment may only be submitted if paying for it keeps the user's balance
at or above their configured minimum balance. Amounts are minor units.
"""

from __future__ import annotations

import json
import math
from typing import Any, Dict, Optional

from logging_config import get_logger
from models.shipment import CreditLimitInfo, ServiceOption


# Module logger
logger = get_logger(__name__)


def format_money(minor_units: int, currency: str = "USD") -> str:
    """Format cents as a currency string, e.g. 123456 -> "$1,234.56"."""
    sign = "-" if minor_units < 0 else ""
    amount = abs(minor_units) / 100
    if currency == "USD":
        return f"{sign}${amount:,.2f}"
    return f"{sign}{amount:,.2f} {currency}"


def _is_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return not math.isnan(value)


def evaluate_credit(price: Any, balance: Any, min_balance: Any) -> Optional[CreditLimitInfo]:
    """
    Compare a prospective price against the balance policy.

    Args:
        price: Prospective shipment price (minor units)
        balance: Current user balance (minor units)
        min_balance: Lowest balance the user may reach (minor units)

    Returns:
        CreditLimitInfo, or None when the price is missing/NaN/<= 0 or the
        balance figures are not numbers
    """
    if not _is_number(price) or price <= 0:
        return None
    if not _is_number(balance) or not _is_number(min_balance):
        return None

    price = int(round(price))
    balance = int(round(balance))
    min_balance = int(round(min_balance))

    new_balance = balance - price
    has_warning = new_balance < min_balance
    exceeded = abs(new_balance - min_balance) if has_warning else 0
    available = min_balance - balance

    return CreditLimitInfo(
        user_balance=balance,
        min_balance=min_balance,
        new_balance=new_balance,
        has_warning=has_warning,
        exceeded_amount=exceeded,
        available_credit=available,
        formatted_user_balance=format_money(balance),
        formatted_min_balance=format_money(min_balance),
        formatted_new_balance=format_money(new_balance),
        formatted_exceeded_amount=format_money(exceeded),
        formatted_available_credit=format_money(available),
    )


def top_up_amount(price: int, info: Optional[CreditLimitInfo]) -> int:
    """Amount the user must add before the shipment can be paid."""
    if info is None:
        return 0
    return max(0, price - info.available_credit)


def submission_blocked(info: Optional[CreditLimitInfo], selected_option: Optional[ServiceOption]) -> bool:
    """
    Whether the submit action is disabled.

    Missing credit information blocks as firmly as a warning.
    """
    if selected_option is None:
        return True
    if info is None:
        return True
    return info.has_warning


# =============================================================================
# CREDIT ERROR RESPONSES
# =============================================================================

CREDIT_LIMIT_KEYWORDS = (
    "credit limit",
    "cannot create shipment",
    "balance would fall below",
    "insufficient balance",
)

_DETAIL_KEYS = ("userBalance", "shipmentPrice", "newBalance")


def is_credit_limit_error(message: Optional[str]) -> bool:
    """True when a rejection message reads like a credit-limit refusal."""
    text = (message or "").lower()
    return any(keyword in text for keyword in CREDIT_LIMIT_KEYWORDS)


def extract_credit_details(body: Any) -> Optional[Dict[str, Any]]:
    """
    Pull structured credit details out of a rejection body.

    Looks at ``creditDetails``, then the body itself, then a JSON object
    embedded in ``message``.
    """
    if not isinstance(body, dict):
        return None
    if isinstance(body.get("creditDetails"), dict):
        return body["creditDetails"]
    if any(key in body for key in _DETAIL_KEYS):
        return body

    message = body.get("message")
    if isinstance(message, str) and "{" in message and "}" in message:
        start = message.index("{")
        end = message.rindex("}") + 1
        try:
            parsed = json.loads(message[start:end])
        except ValueError:
            logger.debug("Credit rejection message carried unparseable JSON")
            return None
        if isinstance(parsed, dict) and any(key in parsed for key in _DETAIL_KEYS):
            return parsed
    return None
