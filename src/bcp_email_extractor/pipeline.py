"""Reference dispatcher: one email in, one reconciled result out.

The extraction core does not decide which template to try. This module does,
by ranking the template parsers on subject and body anchors, trying them in
order, always running the fallback pass, and merging the two.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

import structlog

from bcp_email_extractor.config import DEFAULT_TEMPLATE_ORDER
from bcp_email_extractor.dedup import DedupePolicy, dedupe_and_sort
from bcp_email_extractor.exceptions import ExtractionError
from bcp_email_extractor.extraction.normalize import normalize_email_body
from bcp_email_extractor.fallback import fallback_parse
from bcp_email_extractor.merge import merge_parse_results
from bcp_email_extractor.models import (
    MergeResult,
    NormalizedTransaction,
    ParseResult,
    RawMessage,
    TransactionTemplate,
)
from bcp_email_extractor.parsers import get_parser
from bcp_email_extractor.utils import strip_accents

logger = structlog.get_logger()

# Body anchors must hit at least this often before they reorder the parsers.
MIN_ANCHOR_MATCHES = 2
NOTE_TEMPLATE_NOT_DETECTED = "template_not_detected"


@dataclass(frozen=True)
class TemplateAnchors:
    """Subject and body markers that identify a notification template."""

    template: TransactionTemplate
    subject: tuple[re.Pattern[str], ...]
    body: tuple[re.Pattern[str], ...]

    def subject_matches(self, subject: str) -> bool:
        return any(pattern.search(subject) for pattern in self.subject)

    def anchor_count(self, body: str) -> int:
        return sum(1 for pattern in self.body if pattern.search(body))


def _compile(*patterns: str) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(pattern, re.IGNORECASE) for pattern in patterns)


TEMPLATE_ANCHORS: dict[TransactionTemplate, TemplateAnchors] = {
    TransactionTemplate.ACCOUNT_TRANSFER: TemplateAnchors(
        TransactionTemplate.ACCOUNT_TRANSFER,
        subject=_compile(r"transferencia", r"transferiste", r"enviaste", r"constancia de envio"),
        body=_compile(
            r"Monto\s+(?:transferido|enviado)",
            r"Cuenta\s+destino",
            r"\bCCI\b",
            r"Banco\s+destino",
            r"Enviado\s+a",
            r"Tipo\s+de\s+envio",
        ),
    ),
    TransactionTemplate.SERVICE_PAYMENT: TemplateAnchors(
        TransactionTemplate.SERVICE_PAYMENT,
        subject=_compile(r"pago\s+de\s+servicio", r"pagaste", r"pago\s+de\s+recibo"),
        body=_compile(
            r"\bEmpresa:",
            r"\bServicio:",
            r"Titular\s+del\s+servicio",
            r"Codigo\s+de\s+(?:usuario|cliente)",
            r"\b(?:Contrato|Suministro):",
            r"Monto\s+(?:del\s+pago|pago|pagado)",
        ),
    ),
    TransactionTemplate.ONLINE_PURCHASE: TemplateAnchors(
        TransactionTemplate.ONLINE_PURCHASE,
        subject=_compile(
            r"compra\s+(?:por\s+internet|online|en\s+linea)", r"realizaste\s+una\s+compra"
        ),
        body=_compile(
            r"Monto\s+(?:de\s+)?compra",
            r"Tarjeta\s+(?:terminada|numero)",
            r"\b(?:Comercio|Establecimiento):",
            r"Lugar\s+de\s+compra",
        ),
    ),
    TransactionTemplate.FEE_COMMISSION: TemplateAnchors(
        TransactionTemplate.FEE_COMMISSION,
        subject=_compile(r"comision", r"cargo\s+(?:en|a)\s+tu\s+cuenta"),
        body=_compile(
            r"Monto\s+(?:de\s+)?comision",
            r"Cuenta\s+afectada",
            r"\bMotivo",
        ),
    ),
}


def rank_templates(
    subject: str | None,
    body: str,
    template_order: Sequence[TransactionTemplate] | None = None,
) -> list[TransactionTemplate]:
    """Order the template parsers from most to least likely.

    A subject match ranks first, then the number of body anchors (counted only
    when at least ``MIN_ANCHOR_MATCHES`` hit). Ties keep ``template_order``.

    Args:
        subject: Email subject, if any.
        body: Normalized email body.
        template_order: Templates to consider, in tie-break order.

    Returns:
        The templates of ``template_order``, reordered.
    """
    order = list(template_order or DEFAULT_TEMPLATE_ORDER)
    plain_subject = strip_accents(subject or "")

    def score(item: tuple[int, TransactionTemplate]) -> tuple[int, int, int]:
        index, template = item
        anchors = TEMPLATE_ANCHORS.get(template)
        if anchors is None:
            return 0, 0, index
        subject_hit = 1 if plain_subject and anchors.subject_matches(plain_subject) else 0
        count = anchors.anchor_count(body)
        strong = count if count >= MIN_ANCHOR_MATCHES else 0
        return -subject_hit, -strong, index

    return [template for _, template in sorted(enumerate(order), key=score)]


def parse_primary(
    message: RawMessage,
    body: str,
    template_order: Sequence[TransactionTemplate] | None = None,
) -> ParseResult:
    """Try the template parsers in ranked order until one succeeds."""
    notes: list[str] = []
    for template in rank_templates(message.subject, body, template_order):
        parser = get_parser(template)
        try:
            transaction = parser(body, message.received_at)
        except ExtractionError as e:
            logger.debug(
                "template_parse_failed",
                template=template.value,
                code=e.code,
                message_id=message.message_id,
            )
            notes.append(f"{template.value}:{e.code}")
            continue
        return ParseResult.from_transaction(transaction)

    return ParseResult.failure(notes or [NOTE_TEMPLATE_NOT_DETECTED])


def parse_bcp_email(
    message: RawMessage,
    template_order: Sequence[TransactionTemplate] | None = None,
) -> MergeResult:
    """Extract one reconciled transaction from a BCP notification.

    Args:
        message: The email (plain-text body, optional subject and received time).
        template_order: Templates to try; defaults to all four.

    Returns:
        The merged result. ``success`` is False when neither path produced a
        transaction.

    Raises:
        ConfigurationError: If ``template_order`` names a template without a parser.
    """
    body = normalize_email_body(message.body)
    primary = parse_primary(message, body, template_order)
    fallback = fallback_parse(message)
    return merge_parse_results(primary, fallback)


def parse_many(
    messages: Iterable[RawMessage],
    template_order: Sequence[TransactionTemplate] | None = None,
    keep: DedupePolicy = DedupePolicy.FIRST_SEEN,
) -> list[NormalizedTransaction]:
    """Parse a batch of emails and return its unique transactions, newest first."""
    transactions: list[NormalizedTransaction] = []
    failed = 0
    for message in messages:
        result = parse_bcp_email(message, template_order)
        if result.transaction is None:
            failed += 1
            continue
        transactions.append(result.transaction)

    logger.info("batch_parsed", extracted=len(transactions), failed=failed)
    return dedupe_and_sort(transactions, keep=keep)
