"""Invoice-specific detection rules.

Extracts invoice numbers, VAT numbers, payment references (IBAN, Swiss
QR / ESR references, ISO 11649 creditor references) and, when enabled,
currency amounts.  Entities in the first 20% of the document get a flat
confidence boost; invoice metadata lives in the header.
"""

from __future__ import annotations

import logging
import re
from typing import NamedTuple, Optional

from piiguard.core.detection import validators as v
from piiguard.core.detection.detection_config import HEADER_ZONE, InvoiceRulesConfig
from piiguard.core.detection.rules.base import boosted, merge_by_confidence
from piiguard.models.schemas import Entity, EntityMetadata, EntitySource, EntityType

logger = logging.getLogger(__name__)

_I = re.IGNORECASE

# ---------------------------------------------------------------------------
# Patterns
# ---------------------------------------------------------------------------

# Group 1 is the number itself; the label is context only
INVOICE_NUMBER_PATTERNS: list[re.Pattern] = [
    re.compile(r"\b(?:invoice|inv|bill)\.?[^\S\n]{0,3}(?:no\.?|nr\.?|#|number|:)[^\S\n]{0,3}:?[^\S\n]{0,3}([A-Z0-9][\w-]{2,20})", _I),
    re.compile(r"\b(?:rechnungs|rechnung|rech|re)\.?[^\S\n]{0,3}(?:nr\.?|nummer|:)[^\S\n]{0,3}:?[^\S\n]{0,3}([A-Z0-9][\w-]{2,20})", _I),
    re.compile(r"\b(?:facture|fact|fac)\.?[^\S\n]{0,3}(?:n[°o]\.?|numéro|:)[^\S\n]{0,3}:?[^\S\n]{0,3}([A-Z0-9][\w-]{2,20})", _I),
    re.compile(r"\b(?:ref|reference|réf|référence)\b\.?[^\S\n]{0,3}(?:no\.?|nr\.?|#|:)?[^\S\n]{0,3}([A-Z0-9][\w-]{4,20})", _I),
]

_CURRENCY = r"(?:CHF|SFr\.?|Fr\.|EUR|€|USD|\$|GBP|£)"
_NUMBER = r"\d{1,3}(?:['’.,]?\d{3}|[^\S\n]\d{3}){0,4}(?:[.,]\d{1,2}|\.[-–])?"

AMOUNT_PATTERNS: list[re.Pattern] = [
    re.compile(rf"{_CURRENCY}[^\S\n]{{0,2}}{_NUMBER}", _I),
    re.compile(rf"{_NUMBER}[^\S\n]{{0,2}}{_CURRENCY}", _I),
    # Bare amount with exactly two decimals: 1'234.50, 1.234,50, 1,234.50
    re.compile(r"\b\d{1,3}(?:['’.,]?\d{3}){0,4}[.,]\d{2}\b"),
]

SWISS_VAT_PATTERN = re.compile(r"\bCHE[-\s]?\d{3}[.\s]?\d{3}[.\s]?\d{3}(?:[^\S\n]{1,3}(?:MWST|TVA|IVA))?\b", _I)

EU_VAT_PATTERNS: dict[str, re.Pattern] = {
    "AT": re.compile(r"\bATU\d{8}\b"),
    "BE": re.compile(r"\bBE0?\d{9,10}\b"),
    "DE": re.compile(r"\bDE\d{9}\b"),
    "FR": re.compile(r"\bFR[A-Z0-9]{2}\d{9}\b"),
    "IT": re.compile(r"\bIT\d{11}\b"),
    "NL": re.compile(r"\bNL\d{9}B\d{2}\b"),
    "ES": re.compile(r"\bES[A-Z0-9]\d{7}[A-Z0-9]\b"),
    "LU": re.compile(r"\bLU\d{8}\b"),
    "GB": re.compile(r"\bGB\d{9,12}\b"),
}

IBAN_PATTERN = re.compile(r"\b[A-Z]{2}\d{2}[ ]?(?:[A-Z0-9]{1,4}[ ]?){3,8}[A-Z0-9]{0,4}\b")

# (reference type, pattern)
PAYMENT_REF_PATTERNS: list[tuple[str, re.Pattern]] = [
    ("QR", re.compile(r"\b\d{26,27}\b")),
    ("ISO11649", re.compile(r"\bRF\d{2}[ ]?(?:[A-Z0-9]{1,4}[ ]?){1,6}\b", _I)),
    # Orange/red payment slip: 27 digits grouped "21 00000 00003 13947 14300 09017"
    ("ESR", re.compile(r"\b\d{2}(?:[ ]?\d{5}){5}\b")),
]

_TABLE_ROW = re.compile(r"\t|\||\S {2,}\S.* {2,}\S")


class ParsedAmount(NamedTuple):
    currency: str
    value: float


def parse_amount(text: str) -> Optional[ParsedAmount]:
    """Parse a currency amount, resolving thousands/decimal separators.

    Swiss: ``1'234.50``; European: ``1.234,50`` or ``12,50``; English:
    ``1,234.50``; ``.-`` / ``.–`` means whole francs.
    """
    upper = text.upper()
    if "CHF" in upper or "SFR" in upper or "FR." in upper:
        currency = "CHF"
    elif "EUR" in upper or "€" in text:
        currency = "EUR"
    elif "USD" in upper or "$" in text:
        currency = "USD"
    elif "GBP" in upper or "£" in text:
        currency = "GBP"
    else:
        currency = "UNKNOWN"

    numeric = re.sub(r"\.[-–]$", "", re.sub(r"[^\d.,'’\s\-–]", "", text).strip()).strip()
    # "Fr. 150" leaves the currency's dot in front
    numeric = re.sub(r"\s", "", numeric).lstrip(".,'’-–")
    if not numeric or not any(ch.isdigit() for ch in numeric):
        return None

    if "'" in numeric or "’" in numeric:
        normalized = re.sub(r"['’]", "", numeric).replace(",", ".")
    elif re.search(r"\d\.\d{3},\d{1,2}$", numeric) or re.fullmatch(r"\d+,\d{1,2}", numeric):
        normalized = numeric.replace(".", "").replace(",", ".")
    else:
        normalized = numeric.replace(",", "")

    try:
        return ParsedAmount(currency, float(normalized))
    except ValueError:
        return None


class InvoiceRules:
    name = "invoice"

    def __init__(self, config: Optional[InvoiceRulesConfig] = None):
        self.config = config or InvoiceRulesConfig()

    def apply(self, text: str, entities: list[Entity], language: str = "en") -> list[Entity]:
        found = self.extract_invoice_numbers(text)
        if self.config.extract_amounts:
            found += self.extract_amounts(text)
        if self.config.extract_vat_numbers:
            found += self.extract_vat_numbers(text)
        if self.config.extract_payment_refs:
            found += self.extract_payment_references(text)

        found = [self._position_boost(e, text) for e in found]
        logger.debug(f"Invoice rules found {len(found)} candidates")
        return merge_by_confidence(entities, found)

    def _position_boost(self, entity: Entity, text: str) -> Entity:
        if entity.start < int(len(text) * HEADER_ZONE):
            return boosted(entity, self.config.header_boost, "header")
        line_start = text.rfind("\n", 0, entity.start) + 1
        line_end = text.find("\n", entity.end)
        line = text[line_start:line_end if line_end != -1 else len(text)]
        if _TABLE_ROW.search(line):
            return boosted(entity, self.config.table_boost, "table")
        return entity

    # -- extractors ------------------------------------------------------

    def extract_invoice_numbers(self, text: str) -> list[Entity]:
        out: list[Entity] = []
        seen: set[tuple[int, int]] = set()
        for pattern in INVOICE_NUMBER_PATTERNS:
            for m in pattern.finditer(text):
                number = m.group(1)
                span = (m.start(1), m.end(1))
                if span in seen or not any(ch.isdigit() for ch in number):
                    continue
                if re.fullmatch(r"\d{1,3}", number):
                    continue
                seen.add(span)
                out.append(_entity(
                    EntityType.INVOICE_NUMBER, text, *span, 0.85,
                    pattern="invoice_number", extracted_number=number,
                ))
        return out

    def extract_amounts(self, text: str) -> list[Entity]:
        out: list[Entity] = []
        for pattern in AMOUNT_PATTERNS:
            for m in pattern.finditer(text):
                start, end = m.start(), m.start() + len(m.group(0).rstrip())
                if any(e.start < end and start < e.end for e in out):
                    continue
                parsed = parse_amount(text[start:end])
                # Small amounts are line items, not identifying
                if parsed is None or parsed.value < 10:
                    continue
                out.append(_entity(
                    EntityType.AMOUNT, text, start, end, 0.75,
                    pattern="amount", amount=parsed.value, currency=parsed.currency,
                ))
        return out

    def extract_vat_numbers(self, text: str) -> list[Entity]:
        out: list[Entity] = []
        for m in SWISS_VAT_PATTERN.finditer(text):
            out.append(_entity(EntityType.VAT_NUMBER, text, m.start(), m.end(), 0.95, pattern="swiss_vat"))
        for country, pattern in EU_VAT_PATTERNS.items():
            for m in pattern.finditer(text):
                if any(e.start < m.end() and m.start() < e.end for e in out):
                    continue
                out.append(_entity(
                    EntityType.VAT_NUMBER, text, m.start(), m.end(), 0.9,
                    pattern=f"eu_vat_{country.lower()}",
                ))
        return out

    def extract_payment_references(self, text: str) -> list[Entity]:
        out: list[Entity] = []
        for m in IBAN_PATTERN.finditer(text):
            matched = m.group(0).rstrip()
            if v.validate_iban(matched):
                out.append(_entity(EntityType.IBAN, text, m.start(), m.start() + len(matched), 0.95, pattern="iban"))

        for ref_type, pattern in PAYMENT_REF_PATTERNS:
            for m in pattern.finditer(text):
                matched = m.group(0).rstrip()
                start, end = m.start(), m.start() + len(matched)
                compact = re.sub(r"\s", "", matched)
                if ref_type == "ISO11649":
                    if not v.validate_creditor_reference(compact):
                        continue
                elif not 20 <= len(compact) <= 27:
                    continue
                if any(e.start < end and start < e.end for e in out):
                    continue
                out.append(_entity(
                    EntityType.PAYMENT_REF, text, start, end, 0.85,
                    pattern="payment_reference", reference_type=ref_type,
                ))
        return out


def _entity(
    etype: EntityType,
    text: str,
    start: int,
    end: int,
    confidence: float,
    **metadata,
) -> Entity:
    return Entity(
        type=etype,
        text=text[start:end],
        start=start,
        end=end,
        confidence=confidence,
        source=EntitySource.RULE,
        metadata=EntityMetadata(**metadata),
    )
