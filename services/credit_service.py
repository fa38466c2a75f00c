"""
Credit lookups for admission control.

Fetches the user and their balance on every evaluation; nothing is cached
between option selections. Any failure yields None, which blocks
submission the same way a warning does.
"""

from __future__ import annotations

from typing import Optional

from core.api_client import CollaboratorClient
from core.exceptions import CollaboratorError
from logging_config import get_logger
from models.shipment import CreditLimitInfo
from modules.credit import evaluate_credit


# Module logger
logger = get_logger(__name__)


class CreditService:
    """Evaluates prospective prices against the user's balance policy."""

    def __init__(self, client: CollaboratorClient):
        self._client = client

    def evaluate(self, price: Optional[int]) -> Optional[CreditLimitInfo]:
        """
        Run the credit check for a price in minor units.

        Returns:
            CreditLimitInfo, or None when skipped or when any lookup fails
        """
        if price is None or price <= 0:
            logger.debug(f"Skipping credit check for price {price}")
            return None

        try:
            self._client.get_user()
            balance = self._client.get_balance()
        except CollaboratorError as e:
            logger.warning(f"Credit check unavailable: {e.message}")
            return None

        if not isinstance(balance, dict):
            logger.warning("Balance response is not an object")
            return None

        info = evaluate_credit(
            price,
            balance.get("balance"),
            balance.get("minimumBalance"),
        )
        if info is None:
            logger.warning("Balance response did not contain numeric figures")
        elif info.has_warning:
            logger.info(
                f"Price {price} exceeds credit by {info.exceeded_amount} "
                f"(balance {info.user_balance}, minimum {info.min_balance})"
            )
        return info

    __call__ = evaluate
