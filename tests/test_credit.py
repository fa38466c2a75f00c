"""Unit tests for credit admission control and credit-limit rejections."""

import pytest
from unittest.mock import MagicMock

from core.exceptions import CollaboratorError
from models.shipment import ServiceOption
from modules.credit import (
    evaluate_credit,
    extract_credit_details,
    format_money,
    is_credit_limit_error,
    submission_blocked,
    top_up_amount,
)
from services.credit_service import CreditService


class TestEvaluateCredit:

    def test_price_exceeding_balance_warns(self):
        info = evaluate_credit(600, 500, 0)
        assert info.new_balance == -100
        assert info.has_warning is True
        assert info.exceeded_amount == 100
        assert info.formatted_exceeded_amount == "$1.00"

    def test_price_within_balance(self):
        info = evaluate_credit(400, 500, 0)
        assert info.new_balance == 100
        assert info.has_warning is False
        assert info.exceeded_amount == 0

    def test_negative_minimum_balance_allows_overdraft(self):
        info = evaluate_credit(600, 500, -1000)
        assert info.has_warning is False

    @pytest.mark.parametrize("price", [None, 0, -5, float("nan"), "600"])
    def test_invalid_price_gives_none(self, price):
        assert evaluate_credit(price, 500, 0) is None

    def test_non_numeric_balance_gives_none(self):
        assert evaluate_credit(600, None, 0) is None
        assert evaluate_credit(600, 500, "0") is None


class TestAdmission:

    def test_missing_credit_info_blocks(self):
        assert submission_blocked(None, ServiceOption(display_name="Express", total_price=600))

    def test_missing_option_blocks(self):
        assert submission_blocked(evaluate_credit(600, 5000, 0), None)

    def test_warning_blocks(self):
        option = ServiceOption(display_name="Express", total_price=600)
        assert submission_blocked(evaluate_credit(600, 500, 0), option)
        assert not submission_blocked(evaluate_credit(600, 5000, 0), option)

    def test_top_up_without_info(self):
        assert top_up_amount(600, None) == 0

    def test_format_money(self):
        assert format_money(123456) == "$1,234.56"
        assert format_money(-100) == "-$1.00"


class TestCreditLimitRejections:

    def test_keyword_detection(self):
        assert is_credit_limit_error("Cannot create shipment: credit limit exceeded")
        assert is_credit_limit_error("Insufficient balance")
        assert not is_credit_limit_error("Receiver postal code is invalid")
        assert not is_credit_limit_error(None)

    def test_details_from_credit_details_key(self):
        body = {"message": "Credit limit", "creditDetails": {"userBalance": 500, "newBalance": -100}}
        assert extract_credit_details(body) == {"userBalance": 500, "newBalance": -100}

    def test_details_from_body(self):
        body = {"message": "Credit limit", "userBalance": 500, "shipmentPrice": 600}
        assert extract_credit_details(body)["shipmentPrice"] == 600

    def test_details_embedded_in_message(self):
        body = {"message": 'Credit limit exceeded {"userBalance": 500, "newBalance": -100}'}
        assert extract_credit_details(body) == {"userBalance": 500, "newBalance": -100}

    def test_no_details(self):
        assert extract_credit_details({"message": "Credit limit exceeded"}) is None
        assert extract_credit_details("Credit limit exceeded") is None


class TestCreditService:

    @pytest.fixture
    def client(self):
        client = MagicMock()
        client.get_user.return_value = {"id": 7}
        client.get_balance.return_value = {"balance": 500, "minimumBalance": 0}
        return client

    def test_evaluates_against_balance(self, client):
        info = CreditService(client).evaluate(600)
        assert info.has_warning is True
        assert info.exceeded_amount == 100

    def test_callable(self, client):
        assert CreditService(client)(400).has_warning is False

    def test_skips_non_positive_price(self, client):
        assert CreditService(client).evaluate(0) is None
        client.get_balance.assert_not_called()

    def test_lookup_failure_gives_none(self, client):
        client.get_balance.side_effect = CollaboratorError("boom", operation="get balance")
        assert CreditService(client).evaluate(600) is None

    @pytest.mark.parametrize("response", [
        {},
        {"balance": 500},
        {"minimumBalance": 0},
        {"balance": "500", "minimumBalance": 0},
        None,
        [],
    ])
    def test_incomplete_balance_gives_none(self, client, response):
        client.get_balance.return_value = response
        assert CreditService(client).evaluate(600) is None
