"""
Unit tests for the transaction message schemas.

These tests verify that the Pydantic message models validate the wire format,
pick the right variant from ``method`` and survive a JSON round trip.
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest
from pydantic import ValidationError

from txn_broker.schemas import (
    EXAMPLE_DEPOSIT,
    EXAMPLE_WITHDRAWAL,
    DepositMessage,
    TransactionMethod,
    TransactionStatus,
    TxnAccount,
    WithdrawalMessage,
    make_deposit_message,
    make_withdrawal_message,
    transaction_message_adapter,
)


@pytest.fixture
def make_message_data():
    """Fixture to create wire-format message data with overrides."""

    def _make(**overrides):
        base = {
            "txnId": "DEP1",
            "paymentRefId": "REF1",
            "status": "SUCCESS",
            "method": "DEPOSIT",
            "amount": "123.45",
            "currency": "LAK",
            "timestamp": "2024-01-15T14:30:00Z",
            "payee": {"number": "00120010010106019", "currency": "LAK", "bankCode": "JDB"},
            "payor": {"number": "1023635xxx", "currency": "LAK", "bankCode": "KBANK"},
        }
        return {**base, **overrides}

    return _make


def assert_validation_error_on_field(exc_info, field_name: str):
    """Helper to assert validation error occurred on a specific field."""
    errors = exc_info.value.errors()
    assert any(
        field_name in str(e.get("loc", "")) for e in errors
    ), f"Expected validation error on '{field_name}', got: {[e.get('loc') for e in errors]}"


@pytest.mark.unit
class TestTransactionMessageSchema:
    """Test suite for the transaction message models."""

    def test_valid_deposit_from_wire_keys(self, make_message_data):
        message = DepositMessage(**make_message_data())

        assert message.txn_id == "DEP1"
        assert message.payment_ref_id == "REF1"
        assert message.status == TransactionStatus.SUCCESS
        assert message.method == TransactionMethod.DEPOSIT
        assert message.amount == Decimal("123.45")
        assert message.payee.bank_code == "JDB"

    def test_adapter_picks_variant_from_method(self, make_message_data):
        deposit = transaction_message_adapter.validate_python(make_message_data())
        withdrawal = transaction_message_adapter.validate_python(
            make_message_data(method="WITHDRAW")
        )

        assert isinstance(deposit, DepositMessage)
        assert isinstance(withdrawal, WithdrawalMessage)

    @pytest.mark.parametrize("method", ["REFUND", "deposit", ""])
    def test_unknown_method_is_rejected(self, make_message_data, method):
        with pytest.raises(ValidationError):
            transaction_message_adapter.validate_python(make_message_data(method=method))

    def test_variant_refuses_other_method(self, make_message_data):
        with pytest.raises(ValidationError) as exc_info:
            WithdrawalMessage(**make_message_data(method="DEPOSIT"))

        assert_validation_error_on_field(exc_info, "method")

    @pytest.mark.parametrize("status", ["PENDING", "success", ""])
    def test_invalid_status(self, make_message_data, status):
        with pytest.raises(ValidationError) as exc_info:
            DepositMessage(**make_message_data(status=status))

        assert_validation_error_on_field(exc_info, "status")

    @pytest.mark.parametrize("field", ["txnId", "amount", "timestamp", "payee", "payor"])
    def test_missing_required_field(self, make_message_data, field):
        data = make_message_data()
        del data[field]

        with pytest.raises(ValidationError) as exc_info:
            DepositMessage(**data)

        assert_validation_error_on_field(exc_info, field)

    @pytest.mark.parametrize("amount", ["NaN", "Infinity", "-Infinity", "abc"])
    def test_non_finite_amount_is_rejected(self, make_message_data, amount):
        with pytest.raises(ValidationError) as exc_info:
            DepositMessage(**make_message_data(amount=amount))

        assert_validation_error_on_field(exc_info, "amount")

    @pytest.mark.parametrize(
        "currency,expected",
        [
            ("lak", "LAK"),
            ("LAK", "LAK"),
            ("usd", "USD"),
        ],
    )
    def test_currency_is_uppercased(self, make_message_data, currency, expected):
        assert DepositMessage(**make_message_data(currency=currency)).currency == expected

    @pytest.mark.parametrize("currency", ["LA", "LAKK", "12D", ""])
    def test_invalid_currency(self, make_message_data, currency):
        with pytest.raises(ValidationError) as exc_info:
            DepositMessage(**make_message_data(currency=currency))

        assert_validation_error_on_field(exc_info, "currency")

    def test_account_requires_number(self):
        with pytest.raises(ValidationError):
            TxnAccount(number="", currency="LAK", bankCode="JDB")


@pytest.mark.unit
class TestTransactionMessageRoundTrip:
    """Decoding the JSON encoding of a message gives the same message back."""

    @pytest.mark.parametrize("message", [EXAMPLE_DEPOSIT, EXAMPLE_WITHDRAWAL])
    def test_round_trip(self, message):
        body = message.model_dump_json(by_alias=True)

        assert transaction_message_adapter.validate_json(body) == message

    @pytest.mark.parametrize("amount", ["0.1", "50.000", "123456789012345678901234567890.123456789"])
    def test_amount_precision_survives(self, make_message_data, amount):
        message = DepositMessage(**make_message_data(amount=amount))

        decoded = transaction_message_adapter.validate_json(message.model_dump_json(by_alias=True))

        assert str(decoded.amount) == amount

    def test_wire_format_uses_aliases_and_string_amount(self):
        payload = EXAMPLE_DEPOSIT.model_dump(mode="json", by_alias=True)

        assert set(payload) == {
            "txnId",
            "paymentRefId",
            "status",
            "method",
            "amount",
            "currency",
            "timestamp",
            "payee",
            "payor",
        }
        assert payload["amount"] == "123.45"
        assert payload["payor"] == {"number": "1023635xxx", "currency": "LAK", "bankCode": "KBANK"}

    def test_numeric_amount_is_accepted(self, make_message_data):
        message = DepositMessage(**make_message_data(amount=99.5))

        assert message.amount == Decimal("99.5")


@pytest.mark.unit
class TestSampleMessages:
    def test_deposit_sample_credits_account(self):
        message = make_deposit_message("00120010010106019", Decimal("10.00"))

        assert message.txn_id.startswith("DEP")
        assert message.payee.number == "00120010010106019"
        assert message.currency == "LAK"
        assert message.timestamp <= datetime.now(timezone.utc)

    def test_withdrawal_sample_debits_account(self):
        message = make_withdrawal_message("70120010010106020", Decimal("10.00"))

        assert message.txn_id.startswith("WDR")
        assert message.payor.number == "70120010010106020"
        assert message.method == TransactionMethod.WITHDRAW
