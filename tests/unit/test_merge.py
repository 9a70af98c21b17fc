"""Unit tests for the result merger."""

from datetime import datetime, timedelta, timezone

import pytest

from bcp_email_extractor.merge import (
    MERGEABLE_FIELDS,
    merge_details,
    merge_parse_results,
    should_replace,
)
from bcp_email_extractor.models import (
    AmountInfo,
    CardPaymentDetails,
    DigitalTransferDetails,
    ExtractionPath,
    MergeReason,
    NormalizedTransaction,
    ParseResult,
    TransactionDetails,
    TransactionTemplate,
)

LIMA = timezone(timedelta(hours=-5))


def _tx(**overrides) -> NormalizedTransaction:
    values = {
        "template": TransactionTemplate.ACCOUNT_TRANSFER,
        "occurred_at": datetime(2025, 10, 5, 14, 30, tzinfo=LIMA),
        "amount": AmountInfo(value="150.50"),
        "confidence": 0.8,
    }
    values.update(overrides)
    return NormalizedTransaction(**values)


def _primary(**overrides) -> ParseResult:
    return ParseResult.from_transaction(_tx(**overrides))


def _fallback(**overrides) -> ParseResult:
    return ParseResult.from_transaction(
        _tx(**overrides), path=ExtractionPath.FALLBACK, notes=["fallback_parser"]
    )


class TestShouldReplace:
    """Test suite for should_replace."""

    @pytest.mark.parametrize(
        ("current", "candidate", "expected"),
        [
            (None, "x", True),
            ("", "x", True),
            ("   ", "x", True),
            (None, None, False),
            (None, "  ", False),
            ("Banca Movil BCP Numero de operacion 04807225", "Banca Movil BCP", True),
            ("abcdef", "abcd", False),
            ("abcdefg", "abcd", True),
            ("  abcdef  ", "abcd", False),
            ("abcdefg", "   ", False),
            ("short", "much longer value", False),
        ],
    )
    def test_rule(self, current, candidate, expected: bool) -> None:
        assert should_replace(current, candidate) is expected


class TestMergeDetails:
    """Test suite for merge_details."""

    def test_missing_sides(self) -> None:
        details = TransactionDetails(card_payment=CardPaymentDetails(merchant="A"))

        assert merge_details(details, None) is details
        assert merge_details(None, details) is details
        assert merge_details(None, None) is None

    def test_primary_values_win_per_key(self) -> None:
        primary = TransactionDetails(
            digital_transfer=DigitalTransferDetails(recipient="Maria", destination_bank=None)
        )
        fallback = TransactionDetails(
            digital_transfer=DigitalTransferDetails(recipient="M. Lopez", destination_bank="BCP"),
            card_payment=CardPaymentDetails(card_number="****1234"),
        )

        merged = merge_details(primary, fallback)

        assert merged.digital_transfer.recipient == "Maria"
        assert merged.digital_transfer.destination_bank == "BCP"
        assert merged.card_payment.card_number == "****1234"
        assert primary.card_payment is None


class TestMergeParseResults:
    """Test suite for merge_parse_results."""

    def test_fallback_with_higher_confidence_wins(self) -> None:
        primary = _primary(confidence=0.8, channel="App", notes="account_origin_not_found")
        fallback = _fallback(confidence=0.95, channel="Banca Movil", notes="Beneficiario: Ana")

        result = merge_parse_results(primary, fallback)

        assert result.transaction == fallback.transaction
        assert result.confidence == 0.95
        assert result.winner == ExtractionPath.FALLBACK
        assert result.reason == MergeReason.FALLBACK_HIGHER_CONFIDENCE
        assert result.notes == ["fallback_parser"]

    def test_fallback_win_keeps_primary_details(self) -> None:
        details = TransactionDetails(digital_transfer=DigitalTransferDetails(recipient="Ana"))
        primary = _primary(confidence=0.5, details=details)
        fallback = _fallback(confidence=0.9)

        result = merge_parse_results(primary, fallback)

        assert result.transaction.details == details
        assert result.transaction.confidence == 0.9

    def test_overcaptured_field_is_replaced(self) -> None:
        primary = _primary(
            confidence=0.9, channel="Banca Movil BCP Numero de operacion 04807225"
        )
        fallback = _fallback(confidence=0.8, channel="Banca Movil BCP")

        result = merge_parse_results(primary, fallback)

        assert result.transaction.channel == "Banca Movil BCP"
        assert result.reason == MergeReason.FIELD_RECONCILIATION
        assert result.winner == ExtractionPath.PRIMARY

    def test_reconciliation(self) -> None:
        primary = _primary(
            confidence=0.9,
            merchant="Maria Lopez",
            operation_id="OP1",
            notes="account_origin_not_found",
        )
        fallback = _fallback(
            confidence=0.8,
            merchant="Maria L.",
            operation_id="OP2",
            bank_dest="BCP",
            location="Lima",
            notes="Beneficiario: Maria | account_origin_not_found",
        )

        result = merge_parse_results(primary, fallback)
        tx = result.transaction

        assert tx.merchant == "Maria Lopez"
        assert tx.operation_id == "OP1"
        assert tx.bank_dest == "BCP"
        assert tx.location == "Lima"
        assert tx.confidence == 0.9
        assert result.confidence == 0.9
        assert tx.notes == "account_origin_not_found | Beneficiario: Maria"
        assert result.notes == ["fallback_parser"]

    def test_reconciliation_never_loses_a_field(self) -> None:
        values = {name: f"value-{name}" for name in MERGEABLE_FIELDS}
        primary = _primary(confidence=0.9)
        fallback = _fallback(confidence=0.7, **values)

        tx = merge_parse_results(primary, fallback).transaction

        for name, value in values.items():
            assert getattr(tx, name) == value

    def test_tie_keeps_primary(self) -> None:
        primary = _primary(confidence=0.8, channel="App")
        fallback = _fallback(confidence=0.8, channel="Web")

        result = merge_parse_results(primary, fallback)

        assert result.transaction.channel == "App"
        assert result.winner == ExtractionPath.PRIMARY

    def test_template_mismatch_keeps_primary(self) -> None:
        primary = _primary(confidence=0.5)
        fallback = _fallback(confidence=0.95, template=TransactionTemplate.CARD_PURCHASE)

        result = merge_parse_results(primary, fallback)

        assert result.transaction == primary.transaction
        assert result.reason == MergeReason.TEMPLATE_MISMATCH

    @pytest.mark.parametrize(
        "fallback",
        [None, ParseResult.failure(["fallback_failed"], path=ExtractionPath.FALLBACK)],
    )
    def test_missing_fallback_returns_primary(self, fallback) -> None:
        primary = _primary()

        result = merge_parse_results(primary, fallback)

        assert result.transaction == primary.transaction
        assert result.confidence == primary.confidence
        assert result.notes == primary.notes
        assert result.reason == MergeReason.FALLBACK_UNAVAILABLE

    def test_missing_primary_returns_fallback(self) -> None:
        primary = ParseResult.failure(["account_transfer:amount_not_found"])
        fallback = _fallback(confidence=0.7)

        result = merge_parse_results(primary, fallback)

        assert result.transaction == fallback.transaction
        assert result.path == ExtractionPath.FALLBACK
        assert result.winner == ExtractionPath.FALLBACK
        assert result.reason == MergeReason.PRIMARY_MISSING

    def test_nothing_to_merge(self) -> None:
        primary = ParseResult.failure(["template_not_detected"])

        result = merge_parse_results(primary, None)

        assert result.success is False
        assert result.transaction is None
        assert result.notes == ["template_not_detected"]
        assert merge_parse_results(None, None).success is False

    def test_inputs_are_not_mutated(self) -> None:
        primary = _primary(confidence=0.9, channel=None)
        fallback = _fallback(confidence=0.8, channel="App")

        merge_parse_results(primary, fallback)

        assert primary.transaction.channel is None
        assert primary.notes == []
