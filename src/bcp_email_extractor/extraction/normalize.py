"""Body, money and date normalization for BCP notification emails.

BCP mails arrive with inconsistent line breaks, dropped accents and a long
marketing footer. ``normalize_email_body`` turns them into one ``Label: value``
pair per line so the template parsers can work line by line.
"""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from bcp_email_extractor.models import AmountInfo, Currency
from bcp_email_extractor.utils import strip_accents

LIMA_TZ = timezone(timedelta(hours=-5), "America/Lima")

# Labels the bank prints before a value. Written as regex fragments so that
# accented, unaccented and dropped-accent spellings all match.
KNOWN_LABELS: tuple[str, ...] = (
    "Monto de consumo",
    "Monto consumo",
    "Monto del consumo",
    "Monto de compra",
    "Monto compra",
    "Monto de retiro",
    "Monto retiro",
    r"Monto de la operaci[oó]?n",
    r"Monto operaci[oó]?n",
    "Monto transferido",
    "Monto enviado",
    "Monto abonado",
    "Monto depositado",
    "Monto devuelto",
    "Monto pago",
    "Monto del pago",
    "Monto pagado",
    "Monto total pagado",
    "Monto total cobrado",
    "Monto total",
    r"Monto de comisi[oó]?n",
    r"Comisi[oó]?n",
    r"Costo de env[ií]?o",
    "Total del consumo",
    "Total consumo",
    "Total cobrado al tipo de cambio",
    "Total cobrado",
    "Total pagado",
    "Total devuelto",
    "Importe total",
    "Importe pagado",
    "Importe",
    "Moneda",
    "Tarjeta terminada en",
    "Tarjeta terminada",
    r"Tarjeta n[uú]?mero",
    "Tarjeta n",
    r"N[uú]?mero de tarjeta",
    "Nombre del comercio",
    "Comercio",
    "Establecimiento",
    "Lugar de compra",
    "Cuenta de origen",
    "Cuenta origen",
    "Cuenta destino",
    "Cuenta abono",
    "Cuenta afectada",
    "Desde",
    "Enviado a",
    "Banco destino",
    "Beneficiario",
    "Titular destino",
    "Titular del servicio",
    r"N[uú]?mero de operaci[oó]?n",
    r"Operaci[oó]?n realizada",
    r"Operaci[oó]?n",
    "Fecha y hora",
    "Canal",
    "Empresa servicio",
    "Empresa",
    "Servicio",
    r"Tipo de env[ií]?o",
    "Tipo de cambio",
    "Tipo de pago",
    "Motivo del cargo",
    "Motivo",
    r"Ubicaci[oó]?n",
    "Cajero",
    "CCI",
    "Saldo disponible",
    r"C[oó]?digo de cliente",
    r"C[oó]?digo de usuario",
    "Contrato",
    "Suministro",
    "Origen",
)


def _label_alternation() -> str:
    fragments = sorted(KNOWN_LABELS, key=len, reverse=True)
    return "|".join(fragment.replace(" ", r"\s+") for fragment in fragments)


# Longest label first, so "Monto total pagado:" is never split as "Monto total".
LABEL_SEGMENT_RE = re.compile(rf"\b(?:{_label_alternation()}):", re.IGNORECASE)
LABEL_BOUNDARY_RE = re.compile(rf"\s+(?:{_label_alternation()}):", re.IGNORECASE)

DISCLAIMER_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"recuerda\s+a\s+traves", re.IGNORECASE),
    re.compile(r"juntos\s+somos\s+mas\s+seguros", re.IGNORECASE),
    re.compile(r"nuestros\s+correos\s+personalizados", re.IGNORECASE),
    re.compile(r"para\s+conocer\s+mas\s+sobre\s+las\s+principales", re.IGNORECASE),
    re.compile(r"si\s+deseas\s+desafiliarte", re.IGNORECASE),
)

_WHITESPACE_RE = re.compile(r"\s+")
_USD_RE = re.compile(r"USD|US\$|\$")
_TWO_PLACES = Decimal("0.01")

_TIME_RE = re.compile(r"(\d{1,2}):(\d{2})(?::(\d{2}))?\s*(AM|PM)?", re.IGNORECASE)
_TIME_IN_DATE_RE = re.compile(
    r"(\d{1,2}:\d{2}(?::\d{2})?\s*(?:[ap]\.?\s*m\.?)?)", re.IGNORECASE
)
_DMY_RE = re.compile(r"(\d{1,2})[/-](\d{1,2})[/-](\d{2,4})")
_YMD_RE = re.compile(r"(\d{4})-(\d{1,2})-(\d{1,2})")


def normalize_email_body(text: str | None) -> str:
    """Normalize a plain-text BCP body into one labelled value per line.

    Args:
        text: Email body, already stripped of HTML.

    Returns:
        Accent-free text with the marketing footer removed and each known
        ``Label:`` starting its own line.
    """
    if not text:
        return ""

    working = text.replace("\r\n", "\n").replace("\r", "\n")
    working = working.replace("\t", " ").replace("\u00a0", " ")
    working = strip_accents(working)
    working = _WHITESPACE_RE.sub(" ", working)

    for pattern in DISCLAIMER_PATTERNS:
        match = pattern.search(working)
        if match:
            working = working[: match.start()].strip()

    working = LABEL_SEGMENT_RE.sub(lambda m: "\n" + m.group(0), working)
    lines = (line.strip() for line in working.split("\n"))
    return "\n".join(line for line in lines if line)


def detect_currency(label: str | None) -> Currency:
    """Map a currency token (``S/``, ``US$``, ``USD``, ``$``, ``PEN``) to a Currency."""
    if label and _USD_RE.search(label.upper()):
        return Currency.USD
    return Currency.PEN


def parse_decimal(raw: str | None) -> Decimal | None:
    """Parse a bank-formatted number such as ``1,234.50`` or ``1.234,50``.

    The right-most separator is the decimal one when both appear. A lone comma
    followed by at most two digits is a decimal comma; otherwise commas group
    thousands. The sign is discarded.
    """
    if not raw:
        return None

    working = re.sub(r"[^0-9.,]", "", raw).strip(".,")
    if not working:
        return None

    last_comma = working.rfind(",")
    last_dot = working.rfind(".")
    if last_comma != -1 and last_dot != -1:
        if last_comma > last_dot:
            working = working.replace(".", "").replace(",", ".")
        else:
            working = working.replace(",", "")
    elif last_comma != -1:
        head, _, tail = working.rpartition(",")
        if working.count(",") == 1 and len(tail) <= 2:
            working = f"{head}.{tail}"
        else:
            working = working.replace(",", "")
    elif working.count(".") > 1:
        working = working.replace(".", "")

    try:
        return Decimal(working)
    except InvalidOperation:
        return None


def parse_money_to_canonical(currency_label: str | None, raw: str | None) -> AmountInfo | None:
    """Build an AmountInfo from a currency token and a raw number.

    Returns:
        The canonical amount, or None when ``raw`` holds no number.
    """
    value = parse_decimal(raw)
    if value is None:
        return None
    quantized = abs(value).quantize(_TWO_PLACES, rounding=ROUND_HALF_UP)
    currency = detect_currency(f"{currency_label or ''} {raw}")
    return AmountInfo(value=f"{quantized:.2f}", currency=currency)


def parse_time_components(time_str: str | None) -> tuple[int, int, int]:
    """Parse ``hh:mm[:ss] [am/pm]`` into 24-hour components (midnight if absent)."""
    if not time_str:
        return 0, 0, 0

    normalized = re.sub(r"p\.?\s*m\.?", "PM", time_str, flags=re.IGNORECASE)
    normalized = re.sub(r"a\.?\s*m\.?", "AM", normalized, flags=re.IGNORECASE)
    match = _TIME_RE.search(normalized)
    if not match:
        return 0, 0, 0

    hours = int(match.group(1))
    minutes = int(match.group(2))
    seconds = int(match.group(3) or 0)
    meridian = (match.group(4) or "").upper()
    if meridian == "PM" and hours < 12:
        hours += 12
    elif meridian == "AM" and hours == 12:
        hours = 0
    return hours, minutes, seconds


def _date_parts(date_str: str) -> tuple[int, int, int] | None:
    # ISO first: "2025-10-05" would otherwise read as 25/10/2005.
    match = _YMD_RE.search(date_str)
    if match:
        year, month, day = match.groups()
        return int(year), int(month), int(day)

    match = _DMY_RE.search(date_str)
    if match:
        day, month, raw_year = match.groups()
        year = int(f"20{raw_year}") if len(raw_year) == 2 else int(raw_year)
        return year, int(month), int(day)

    return None


def parse_datetime_lima(date_str: str | None, time_str: str | None = None) -> datetime | None:
    """Combine a ``dd/mm/yyyy`` date and an optional time into a Lima datetime.

    Returns:
        An aware datetime at UTC-05:00, or None when the date is unreadable or
        impossible (e.g. 31/02/2025).
    """
    if not date_str:
        return None

    date_part = date_str
    if not time_str:
        found = _TIME_IN_DATE_RE.search(date_str)
        if found:
            time_str = found.group(1)
            date_part = date_str.replace(found.group(0), " ")

    parts = _date_parts(date_part)
    if parts is None:
        return None

    hours, minutes, seconds = parse_time_components(time_str)
    try:
        return datetime(*parts, hours, minutes, seconds, tzinfo=LIMA_TZ)
    except ValueError:
        return None
