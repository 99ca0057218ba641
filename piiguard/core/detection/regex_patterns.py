"""Declarative rule table for the Swiss/EU pattern engine.

Each rule pairs a compiled matcher with an optional validator and the
entity type it reports.  The detection logic (validation gates, product
code suppression, priority overlap resolution) lives in
``regex_detector.py``.

Every quantifier is bounded so that worst-case matching cost stays linear
in the input length for the backtracking ``re`` engine.
"""

from __future__ import annotations

import re
from typing import Callable, NamedTuple, Optional

from piiguard.core.detection import validators as v
from piiguard.models.schemas import EntityType

_NOFLAGS = 0
_IC = re.IGNORECASE

# (matched_text, full_text, match_start) -> keep?
RuleValidator = Callable[[str, str, int], bool]


class PatternRule(NamedTuple):
    key: str
    entity_type: EntityType
    pattern: re.Pattern
    confidence: float
    validator: Optional[RuleValidator] = None
    group: int = 0                        # capturing group reported as the span
    suppress_product_codes: bool = False  # phone rules only


# ═══════════════════════════════════════════════════════════════════════════
# Overlap priority (higher wins inside the engine)
# ═══════════════════════════════════════════════════════════════════════════

TYPE_PRIORITY: dict[EntityType, int] = {
    EntityType.IBAN: 100,
    EntityType.SWISS_AVS: 90,
    EntityType.EMAIL: 80,
    EntityType.SWISS_BANK_ACCOUNT: 70,
    EntityType.SWISS_UID: 60,
    EntityType.EU_VAT: 50,
    EntityType.PASSPORT: 40,
    EntityType.LICENSE_PLATE: 30,
    EntityType.PHONE: 20,
    EntityType.ADDRESS: 15,
    EntityType.ORG: 10,
    EntityType.DATE: 5,
    EntityType.PERSON_NAME: 2,
    EntityType.ID_NUMBER: 1,
}


# ═══════════════════════════════════════════════════════════════════════════
# Shared character classes
# ═══════════════════════════════════════════════════════════════════════════

_UP = "A-ZÀ-ÖØ-Ý"
_LO = "a-zà-öø-ÿ"
_LETTER = f"{_UP}{_LO}"
_NAME = rf"[{_UP}][{_LO}]{{1,30}}"

_CANTONS = "AG|AI|AR|BE|BL|BS|FR|GE|GL|GR|JU|LU|NE|NW|OW|SG|SH|SO|SZ|TG|TI|UR|VD|VS|ZG|ZH"
_EU_VAT_COUNTRIES = "AT|BE|BG|CY|CZ|DE|DK|EE|EL|ES|FI|FR|HR|HU|IE|IT|LT|LU|LV|MT|NL|PL|PT|RO|SE|SI|SK"
_STREET_PREFIXES = (
    r"Rue|Route|Rte|Chemin|Ch\.|Avenue|Av\.|Boulevard|Bd|Allée|Place|Platz|"
    r"Strasse|Str\.|Via|Viale|Corso|Piazza"
)
_LEGAL_SUFFIXES = "SA|GmbH|AG|Sàrl|SARL|Ltd|Inc|Corp|SAS|EURL"


# ═══════════════════════════════════════════════════════════════════════════
# Validator adapters
# ═══════════════════════════════════════════════════════════════════════════

def _masked(m: str, _t: str, _s: int) -> bool:
    # Fully numeric candidates go through the checksum rules instead
    return "*" in m or "x" in m.lower()


def _iban(m: str, _t: str, _s: int) -> bool:
    return v.validate_iban(m)


def _avs(m: str, _t: str, _s: int) -> bool:
    return v.validate_swiss_avs(m)


def _phone(m: str, _t: str, _s: int) -> bool:
    return v.validate_phone_number(m)


def _email(m: str, _t: str, _s: int) -> bool:
    return v.validate_email(re.sub(r"\s+", "", m))


def _date(m: str, _t: str, _s: int) -> bool:
    return v.validate_date(m)


def _swiss_address(m: str, t: str, s: int) -> bool:
    return v.validate_swiss_address(m, t, s)


def _street(m: str, _t: str, _s: int) -> bool:
    return v.validate_street_address(m)


def _person(m: str, _t: str, _s: int) -> bool:
    return v.validate_person_name(m)


def _has_digit(m: str, _t: str, _s: int) -> bool:
    return any(ch.isdigit() for ch in m)


# ═══════════════════════════════════════════════════════════════════════════
# Rules
# ═══════════════════════════════════════════════════════════════════════════

def _rule(key, etype, pattern, conf, validator=None, flags=_NOFLAGS, group=0, product=False):
    return PatternRule(key, etype, re.compile(pattern, flags), conf, validator, group, product)


RULES: list[PatternRule] = [
    # ── Banking ──
    _rule("IBAN", EntityType.IBAN,
          r"\b[A-Z]{2}[0-9]{2}[A-Z0-9]{1,30}\b", 0.95, _iban),
    _rule("IBAN_FORMATTED", EntityType.IBAN,
          r"\b[A-Z]{2}[\s-]?[0-9]{2}(?:[\s-]?[A-Z0-9]{4}){2,7}(?:[\s-]?[A-Z0-9]{1,3})?\b", 0.95, _iban),
    _rule("SWISS_BANK_ACCOUNT", EntityType.SWISS_BANK_ACCOUNT,
          r"\b\d{2}-\d{5,6}-\d\b", 0.7),

    # ── Social security ──
    _rule("SWISS_AVS", EntityType.SWISS_AVS,
          r"\b756\.\d{4}\.\d{4}\.\d{2}\b", 0.95, _avs),
    _rule("SWISS_AVS_NODOTS", EntityType.SWISS_AVS,
          r"\b756\d{10}\b", 0.95, _avs),
    # Redacted placeholders are already PII-shaped, no checksum possible
    _rule("SWISS_AVS_MASKED", EntityType.SWISS_AVS,
          r"\b756\.(?:\d{4}|X{4}|\*{4})\.(?:\d{4}|X{4}|\*{4})\.(?:\d{2}|X{2}|\*{2})(?![\w*])", 0.85, _masked, _IC),

    # ── Business identifiers ──
    _rule("EU_VAT", EntityType.EU_VAT,
          rf"\b(?:{_EU_VAT_COUNTRIES})U?[0-9A-Z]{{8,12}}\b", 0.75, _has_digit),
    _rule("SWISS_UID", EntityType.SWISS_UID,
          r"\bCHE-\d{3}\.\d{3}\.\d{3}(?:[ \t]{1,3}(?:MWST|TVA|IVA))?\b", 0.9),
    _rule("SWISS_PASSPORT", EntityType.PASSPORT,
          r"\b[A-Z]\d{7}\b", 0.6),
    _rule("SWISS_LICENSE_PLATE", EntityType.LICENSE_PLATE,
          rf"\b(?:{_CANTONS})\s?\d{{1,6}}\b", 0.5),

    # ── Phone ──
    _rule("PHONE_NUMBER", EntityType.PHONE,
          r"(?:\+41|0041|0)[\s-]?\(?\d{2}\)?[\s-]?\d{3}[\s-]?\d{2}[\s-]?\d{2}"
          r"|(?:\+|00)\d{1,3}[\s-]?\(?\d{1,4}\)?[\s-]?\d{1,4}[\s-]?\d{1,4}(?:[\s-]?\d{1,4})?",
          0.75, _phone, product=True),
    _rule("PHONE_MASKED", EntityType.PHONE,
          r"(?:\+41|0041|0)[\s-]?\(?\d{2}\)?[\s-]?(?:\d{3}|X{3}|\*{3})[\s-]?(?:\d{2}|X{2}|\*{2})"
          r"[\s-]?(?:\d{2}|X{2}|\*{2})",
          0.7, _masked, _IC, product=True),

    # ── Email ──
    _rule("EMAIL", EntityType.EMAIL,
          r"\b[A-Za-z0-9._%+-]{1,64}@[A-Za-z0-9.-]{1,253}\.[A-Za-z]{2,24}\b", 0.9, _email),
    # PDF extraction often splits the local part and domain across lines
    _rule("EMAIL_MULTILINE", EntityType.EMAIL,
          r"\b[A-Za-z0-9][A-Za-z0-9._%+-]{0,62}[A-Za-z0-9][ \t]{0,4}[\r\n]{1,2}[ \t]{0,4}"
          r"@[A-Za-z0-9.-]{1,253}\.[A-Za-z]{2,24}\b",
          0.85, _email),
    _rule("EMAIL_MASKED", EntityType.EMAIL,
          r"\b[A-Za-z0-9._%+-]{0,64}(?:\*{3,}|X{3,})[A-Za-z0-9._%+-]{0,64}@[A-Za-z0-9.-]{1,253}\.[A-Za-z]{2,24}\b",
          0.85, _masked, _IC),

    # ── Dates ──
    _rule("SWISS_DATE", EntityType.DATE,
          r"\b(?:0?[1-9]|[12][0-9]|3[01])\.(?:0?[1-9]|1[012])\.(?:19|20)\d{2}\b", 0.7, _date),

    # ── Addresses ──
    _rule("SWISS_ADDRESS", EntityType.ADDRESS,
          rf"\b\d{{4}}[^\S\n]{{1,3}}[{_LETTER}][{_LETTER}\-']{{1,40}}(?:[^\S\n]{{1,3}}[{_LETTER}][{_LETTER}\-']{{1,40}})?\b",
          0.7, _swiss_address),
    _rule("STREET_ADDRESS", EntityType.ADDRESS,
          rf"\b(?:{_STREET_PREFIXES})(?:\s{{1,3}}(?:de\s{{1,3}}la|du|de|des|dell[ao']?|della|degli|dei))?\s{{1,3}}"
          rf"[{_LETTER}][{_LETTER}\s\-']{{1,30}}\s\d{{1,4}}[A-Za-z]?\b",
          0.75, _street, _IC),

    # ── Organisations / identifiers ──
    _rule("COMPANY_NAME", EntityType.ORG,
          rf"\b[{_UP}][A-Za-zÀ-ÖØ-Ýà-öø-ÿ&\-'][A-Za-zÀ-ÖØ-Ýà-öø-ÿ &\-']{{1,60}}[^\S\n](?:{_LEGAL_SUFFIXES})\b",
          0.7),
    _rule("CONTRACT_NUMBER", EntityType.ID_NUMBER,
          r"\b\d{2,3}'?\d{3}'?\d{3}\b", 0.5),

    # ── Person names (context-anchored, report group 1 only) ──
    _rule("PERSON_NAME_TEL", EntityType.PERSON_NAME,
          rf"({_NAME}(?:[^\S\n]{_NAME}){{1,3}}),?[^\S\n]{{0,3}}(?:[Tt][ée]l\.?|[Tt]éléphone)",
          0.7, _person, group=1),
    _rule("PERSON_NAME_REF", EntityType.PERSON_NAME,
          rf"(?:[Rr][ée]f[ée]rence|[Cc]ontact)[^\S\n]{{1,3}}({_NAME}(?:[^\S\n]{_NAME}){{1,3}})",
          0.7, _person, group=1),
    # Signature lines: "Firstname Lastname" alone at end of line
    _rule("PERSON_NAME_SIG", EntityType.PERSON_NAME,
          rf"\b({_NAME}[^\S\n]{_NAME})(?=[^\S\n]{_NAME}[^\S\n]{_NAME}[^\S\n]*$|[^\S\n]*$)",
          0.65, _person, re.MULTILINE, group=1),
]
