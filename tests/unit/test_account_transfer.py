"""Unit tests for the transfer parser."""

from datetime import datetime

import pytest

from bcp_email_extractor.exceptions import AmountNotFoundError, DateTimeNotFoundError
from bcp_email_extractor.extraction.normalize import LIMA_TZ
from bcp_email_extractor.models import Currency, TransactionTemplate
from bcp_email_extractor.parsers import parse_account_transfer


class TestParseAccountTransfer:
    """Test suite for parse_account_transfer."""

    def test_minimal_transfer(self, normalize, minimal_transfer_body: str) -> None:
        tx = parse_account_transfer(normalize(minimal_transfer_body))

        assert tx.template == TransactionTemplate.ACCOUNT_TRANSFER
        assert tx.amount.value == "150.50"
        assert tx.amount.currency == Currency.PEN
        assert tx.occurred_at == datetime(2025, 10, 5, 14, 30, tzinfo=LIMA_TZ)
        assert tx.operation_id == "OP123"
        assert tx.account_ref == "destino:1234"
        assert tx.channel == "online"
        assert tx.confidence == pytest.approx(4 / 6)
        assert tx.note_items() == ["account_origin_not_found"]

    def test_full_transfer(self, normalize, transfer_body: str) -> None:
        tx = parse_account_transfer(normalize(transfer_body))

        assert tx.amount.value == "1250.00"
        assert tx.occurred_at == datetime(2025, 10, 5, 14, 30, tzinfo=LIMA_TZ)
        assert tx.operation_id == "04807225"
        assert tx.channel == "Banca Movil BCP"
        assert tx.merchant == "Maria Lopez"
        assert tx.beneficiary == "Maria Lopez"
        assert tx.bank_dest == "BCP"
        assert tx.account_ref == "origen:Cuenta Digital ****5678 | destino:191-12345678-0-12"
        assert tx.confidence == 1.0
        assert tx.notes is None

        transfer = tx.details.digital_transfer
        assert transfer.amount_sent == tx.amount
        assert transfer.recipient == "Maria Lopez"
        assert transfer.destination_bank == "BCP"
        assert transfer.origin == "****5678"
        assert transfer.currency == "PEN"

    def test_commission_and_total_charged(self, normalize) -> None:
        body = (
            "Monto transferido: S/ 20.00\n"
            "Comision: S/ 0.50\n"
            "Total cobrado: S/ 20.50\n"
            "Fecha y hora: 05/10/2025 10:00\n"
            "Cuenta destino: 1234"
        )

        transfer = parse_account_transfer(normalize(body)).details.digital_transfer

        assert transfer.commission.value == "0.50"
        assert transfer.total_charged.value == "20.50"

    def test_textual_date(self, normalize) -> None:
        body = (
            "Monto enviado: S/ 20.00\n"
            "Fecha y hora: 5 de octubre de 2025 - 02:30 PM\n"
            "Cuenta destino: 1234"
        )

        tx = parse_account_transfer(normalize(body))

        assert tx.occurred_at == datetime(2025, 10, 5, 14, 30, tzinfo=LIMA_TZ)
        assert tx.confidence == pytest.approx(3 / 6)

    def test_received_at_fallback(self, normalize, received_at: datetime) -> None:
        body = "Monto transferido: S/ 20.00\nCuenta destino: 1234"

        tx = parse_account_transfer(normalize(body), received_at)

        assert tx.occurred_at == received_at
        assert tx.note_items() == [
            "datetime_fallback_received_at",
            "account_origin_not_found",
            "operation_id_not_found",
        ]
        assert tx.confidence == pytest.approx(2 / 6)

    def test_missing_amount(self, normalize) -> None:
        body = "Fecha y hora: 05/10/2025 14:30\nCuenta destino: 1234"

        with pytest.raises(AmountNotFoundError) as exc_info:
            parse_account_transfer(normalize(body))

        assert exc_info.value.code == "amount_not_found"

    def test_missing_date_without_received_at(self, normalize) -> None:
        body = "Monto transferido: S/ 20.00\nCuenta destino: 1234"

        with pytest.raises(DateTimeNotFoundError) as exc_info:
            parse_account_transfer(normalize(body))

        assert exc_info.value.code == "datetime_not_found"

    def test_confidence_stays_in_range(self, normalize, transfer_body: str) -> None:
        body = transfer_body.replace("Canal:", "CCI: 00219100123456789012\nCanal:")

        tx = parse_account_transfer(normalize(body))

        assert 0.0 <= tx.confidence <= 1.0
        assert "cci:00219100123456789012" in tx.account_ref
