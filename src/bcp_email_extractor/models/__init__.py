"""Data models for the BCP email extractor.

This module contains Pydantic models for data validation and serialization.
Attributes are snake_case in Python; the JSON contract handed to persistence
and display layers uses camelCase aliases (``occurredAt``, ``cardLast4``...).
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from bcp_email_extractor.models.stored_transaction import StoredTransaction
from bcp_email_extractor.utils import split_notes

SOURCE_BCP = "BCP"


class Currency(str, Enum):
    """Currency enumeration."""

    PEN = "PEN"
    USD = "USD"


class TransactionTemplate(str, Enum):
    """Bank notification template enumeration.

    The first four have dedicated template parsers. The rest are only ever
    inferred by the fallback builder.
    """

    ACCOUNT_TRANSFER = "account_transfer"
    FEE_COMMISSION = "fee_commission"
    ONLINE_PURCHASE = "online_purchase"
    SERVICE_PAYMENT = "service_payment"
    CARD_PURCHASE = "card_purchase"
    ATM_WITHDRAWAL = "atm_withdrawal"
    INCOMING_CREDIT = "incoming_credit"


class ExtractionPath(str, Enum):
    """Which extraction path produced a result."""

    PRIMARY = "primary"
    FALLBACK = "fallback"


class MergeReason(str, Enum):
    """Why the merger picked the result it returned."""

    PRIMARY_MISSING = "primary_missing"
    FALLBACK_UNAVAILABLE = "fallback_unavailable"
    TEMPLATE_MISMATCH = "template_mismatch"
    FALLBACK_HIGHER_CONFIDENCE = "fallback_higher_confidence"
    FIELD_RECONCILIATION = "field_reconciliation"


class CamelModel(BaseModel):
    """Base model that serializes with camelCase aliases."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AmountInfo(CamelModel):
    """A non-negative amount with exactly two fraction digits."""

    value: str = Field(pattern=r"^\d+\.\d{2}$", description="Canonical decimal string")
    currency: Currency = Field(default=Currency.PEN, description="ISO-4217 currency code")

    def as_decimal(self) -> Decimal:
        return Decimal(self.value)


class ExchangeRate(CamelModel):
    """Placeholder for multi-currency support; never used today."""

    used: bool = False
    rate: str | None = None


class CardPaymentDetails(CamelModel):
    amount: AmountInfo | None = None
    date: datetime | None = None
    card_number: str | None = Field(default=None, description="Masked card, e.g. ****1234")
    merchant: str | None = None
    operation_id: str | None = None


class ServicePaymentDetails(CamelModel):
    company: str | None = None
    service: str | None = None
    service_holder: str | None = None
    user_code: str | None = None
    origin_account: str | None = None
    operation: str | None = None


class DigitalTransferDetails(CamelModel):
    amount_sent: AmountInfo | None = None
    commission: AmountInfo | None = None
    total_charged: AmountInfo | None = None
    operation: str | None = None
    date: datetime | None = None
    recipient: str | None = None
    destination_bank: str | None = None
    currency: str | None = None
    sending_type: str | None = None
    origin: str | None = None


class TransactionDetails(CamelModel):
    """Template-specific display data. Never part of deduplication."""

    card_payment: CardPaymentDetails | None = None
    service_payment: ServicePaymentDetails | None = None
    digital_transfer: DigitalTransferDetails | None = None


class NormalizedTransaction(CamelModel):
    """The canonical output unit of every extraction path."""

    source: str = Field(default=SOURCE_BCP, description="Origin tag (bank identifier)")
    template: TransactionTemplate
    occurred_at: datetime = Field(description="When the transaction happened")
    amount: AmountInfo
    exchange_rate: ExchangeRate = Field(default_factory=ExchangeRate)
    balance_after: str | None = None

    channel: str | None = None
    merchant: str | None = None
    location: str | None = None
    card_last4: str | None = None
    account_ref: str | None = None
    operation_id: str | None = None

    # Reconciliation fields: filled by whichever path found them so the
    # merger can back-fill them field by field.
    bank_dest: str | None = None
    beneficiary: str | None = None
    service_name: str | None = None
    service_holder: str | None = None
    service_code: str | None = None
    beneficiary_account: str | None = None

    notes: str | None = Field(default=None, description="Joined diagnostic notes")
    details: TransactionDetails | None = None
    confidence: float = Field(ge=0.0, le=1.0, description="Confidence score")

    def note_items(self) -> list[str]:
        return split_notes(self.notes)

    def to_payload(self) -> dict[str, Any]:
        """Serialize to the camelCase JSON contract without null keys."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class RawMessage(BaseModel):
    """One email as handed over by the retrieval layer."""

    model_config = ConfigDict(frozen=True)

    body: str = Field(description="Plain-text email body (HTML already stripped)")
    received_at: datetime | None = Field(default=None, description="Mailbox received time")
    subject: str | None = Field(default=None, description="Subject header")
    message_id: str | None = Field(default=None, description="Mailbox message ID")


class FallbackFields(BaseModel):
    """Every field the template-agnostic pass can produce."""

    amount_info: AmountInfo | None = None
    date: datetime | None = None
    operation_type: str | None = None
    operation_number: str | None = None
    channel: str | None = None
    merchant: str | None = None
    beneficiary: str | None = None
    bank_dest: str | None = None
    service_name: str | None = None
    service_holder: str | None = None
    service_code: str | None = None
    card_last4: str | None = None
    beneficiary_account: str | None = None
    origin_account: str | None = None
    sending_type: str | None = None
    payment_type: str | None = None
    normalized_text: str | None = None
    subject: str | None = None


class ParseResult(BaseModel):
    """Outcome of one extraction path for one email."""

    success: bool = Field(default=True, description="Whether a transaction was produced")
    template: TransactionTemplate | None = None
    transaction: NormalizedTransaction | None = None
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    notes: list[str] = Field(default_factory=list)
    path: ExtractionPath = ExtractionPath.PRIMARY

    @classmethod
    def from_transaction(
        cls,
        transaction: NormalizedTransaction,
        *,
        path: ExtractionPath = ExtractionPath.PRIMARY,
        notes: list[str] | None = None,
    ) -> ParseResult:
        return cls(
            success=True,
            template=transaction.template,
            transaction=transaction,
            confidence=transaction.confidence,
            notes=notes or [],
            path=path,
        )

    @classmethod
    def failure(
        cls,
        notes: list[str],
        *,
        template: TransactionTemplate | None = None,
        path: ExtractionPath = ExtractionPath.PRIMARY,
    ) -> ParseResult:
        return cls(success=False, template=template, confidence=0.0, notes=notes, path=path)


class MergeResult(ParseResult):
    """A reconciled result plus which path won and why."""

    winner: ExtractionPath = ExtractionPath.PRIMARY
    reason: MergeReason


__all__ = [
    "SOURCE_BCP",
    "AmountInfo",
    "CardPaymentDetails",
    "Currency",
    "DigitalTransferDetails",
    "ExchangeRate",
    "ExtractionPath",
    "FallbackFields",
    "MergeReason",
    "MergeResult",
    "NormalizedTransaction",
    "ParseResult",
    "RawMessage",
    "ServicePaymentDetails",
    "StoredTransaction",
    "TransactionDetails",
    "TransactionTemplate",
]
