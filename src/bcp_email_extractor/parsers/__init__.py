"""Template parsers.

Each parser is a pure function ``(text, received_at) -> NormalizedTransaction``
that raises an ``ExtractionError`` when its template does not describe the
email. Which parser to try, and in which order, is the dispatcher's call.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime

from bcp_email_extractor.exceptions import ConfigurationError
from bcp_email_extractor.models import NormalizedTransaction, TransactionTemplate
from bcp_email_extractor.parsers.account_transfer import parse_account_transfer
from bcp_email_extractor.parsers.common import CONFIDENCE_TARGETS
from bcp_email_extractor.parsers.fee_commission import parse_fee_commission
from bcp_email_extractor.parsers.online_purchase import parse_online_purchase
from bcp_email_extractor.parsers.service_payment import parse_service_payment

Parser = Callable[[str, datetime | None], NormalizedTransaction]

PARSERS: dict[TransactionTemplate, Parser] = {
    TransactionTemplate.ACCOUNT_TRANSFER: parse_account_transfer,
    TransactionTemplate.FEE_COMMISSION: parse_fee_commission,
    TransactionTemplate.ONLINE_PURCHASE: parse_online_purchase,
    TransactionTemplate.SERVICE_PAYMENT: parse_service_payment,
}


def get_parser(template: TransactionTemplate | str) -> Parser:
    """Look up the parser registered for ``template``.

    Raises:
        ConfigurationError: If the template has no dedicated parser.
    """
    try:
        return PARSERS[TransactionTemplate(template)]
    except (KeyError, ValueError) as e:
        raise ConfigurationError(f"No parser registered for template: {template}") from e


__all__ = [
    "CONFIDENCE_TARGETS",
    "PARSERS",
    "Parser",
    "get_parser",
    "parse_account_transfer",
    "parse_fee_commission",
    "parse_online_purchase",
    "parse_service_payment",
]
