"""Unit tests for data models."""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from bcp_email_extractor.models import (
    AmountInfo,
    CardPaymentDetails,
    Currency,
    ExtractionPath,
    NormalizedTransaction,
    ParseResult,
    RawMessage,
    StoredTransaction,
    TransactionDetails,
    TransactionTemplate,
)

LIMA = timezone(timedelta(hours=-5))


def _transaction(**overrides) -> NormalizedTransaction:
    values = {
        "template": TransactionTemplate.ONLINE_PURCHASE,
        "occurred_at": datetime(2025, 9, 12, 21, 15, tzinfo=LIMA),
        "amount": AmountInfo(value="25.99", currency=Currency.USD),
        "card_last4": "4321",
        "confidence": 0.8,
    }
    values.update(overrides)
    return NormalizedTransaction(**values)


class TestAmountInfo:
    """Test suite for AmountInfo model."""

    def test_defaults_to_pen(self) -> None:
        amount = AmountInfo(value="10.00")

        assert amount.currency == Currency.PEN
        assert str(amount.as_decimal()) == "10.00"

    @pytest.mark.parametrize("value", ["10", "10.5", "-1.00", "1,000.00", "abc"])
    def test_rejects_non_canonical_values(self, value: str) -> None:
        with pytest.raises(ValidationError):
            AmountInfo(value=value)


class TestNormalizedTransaction:
    """Test suite for NormalizedTransaction model."""

    def test_payload_uses_camel_case_and_drops_nulls(self) -> None:
        tx = _transaction(
            notes="merchant_not_found; channel_not_found",
            details=TransactionDetails(card_payment=CardPaymentDetails(card_number="****4321")),
        )

        payload = tx.to_payload()

        assert payload["source"] == "BCP"
        assert payload["template"] == "online_purchase"
        assert payload["occurredAt"] == "2025-09-12T21:15:00-05:00"
        assert payload["amount"] == {"value": "25.99", "currency": "USD"}
        assert payload["exchangeRate"] == {"used": False}
        assert payload["cardLast4"] == "4321"
        assert payload["details"] == {"cardPayment": {"cardNumber": "****4321"}}
        assert "merchant" not in payload
        assert "balanceAfter" not in payload

    def test_accepts_camel_case_input(self) -> None:
        tx = NormalizedTransaction.model_validate(
            {
                "template": "account_transfer",
                "occurredAt": "2025-10-05T14:30:00-05:00",
                "amount": {"value": "150.50", "currency": "PEN"},
                "operationId": "OP123",
                "confidence": 0.5,
            }
        )

        assert tx.operation_id == "OP123"
        assert tx.occurred_at.utcoffset() == timedelta(hours=-5)

    def test_confidence_is_bounded(self) -> None:
        with pytest.raises(ValidationError):
            _transaction(confidence=1.2)

    def test_note_items(self) -> None:
        tx = _transaction(notes="a; b | c")

        assert tx.note_items() == ["a", "b", "c"]
        assert _transaction().note_items() == []


class TestRawMessage:
    """Test suite for RawMessage model."""

    def test_is_frozen(self) -> None:
        message = RawMessage(body="Importe: S/ 1.00")

        with pytest.raises(ValidationError):
            message.body = "changed"


class TestParseResult:
    """Test suite for ParseResult model."""

    def test_from_transaction(self) -> None:
        tx = _transaction()

        result = ParseResult.from_transaction(tx, path=ExtractionPath.FALLBACK, notes=["x"])

        assert result.success is True
        assert result.template == TransactionTemplate.ONLINE_PURCHASE
        assert result.confidence == 0.8
        assert result.path == ExtractionPath.FALLBACK
        assert result.notes == ["x"]

    def test_failure(self) -> None:
        result = ParseResult.failure(["amount_not_found"])

        assert result.success is False
        assert result.transaction is None
        assert result.confidence == 0.0


class TestStoredTransaction:
    """Test suite for StoredTransaction model."""

    def test_populates_from_storage_aliases(self) -> None:
        stored = StoredTransaction.model_validate(
            {
                "_id": "abc",
                "date": "2025-10-05T19:30:00Z",
                "amount": 150.5,
                "operationNumber": "OP1",
                "messageId": "m-1",
                "category": "transfers",
            }
        )

        assert stored.id == "abc"
        assert stored.operation_number == "OP1"
        assert stored.message_id == "m-1"
        assert stored.model_extra == {"category": "transfers"}


def test_note_items_keep_separator_characters_inside_values() -> None:
    tx = _transaction(notes="motivo:Cargo A;B|C; merchant_not_found | Beneficiario: Ana")

    assert tx.note_items() == ["motivo:Cargo A;B|C", "merchant_not_found", "Beneficiario: Ana"]
