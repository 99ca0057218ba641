"""Checksum and structural validators for detected PII.

Two layers:

* boolean gates (``validate_iban``, ``validate_swiss_avs`` ...) used by the
  pattern engine to discard candidate matches;
* graded validators (``VALIDATORS``) returning a :class:`ValidationResult`
  with a confidence and a human-readable reason, used by the format
  validation pass to adjust entity confidence.

Validators never raise on malformed input; they return False / an invalid
result instead.
"""

from __future__ import annotations

import calendar
import re
from typing import Callable, NamedTuple

from piiguard.models.schemas import EntityType


class ValidationResult(NamedTuple):
    is_valid: bool
    confidence: float
    reason: str = ""


# Confidence levels shared by the graded validators
CHECKSUM_VALID = 0.95
FORMAT_VALID = 0.9
STANDARD = 0.85
KNOWN_VALID = 0.82
MODERATE = 0.75
WEAK = 0.5
INVALID_FORMAT = 0.4
FAILED = 0.3
FALSE_POSITIVE = 0.2


# ═══════════════════════════════════════════════════════════════════════════
# IBAN
# ═══════════════════════════════════════════════════════════════════════════

IBAN_COUNTRY_LENGTHS: dict[str, int] = {
    "AD": 24, "AE": 23, "AL": 28, "AT": 20, "AZ": 28, "BA": 20, "BE": 16,
    "BG": 22, "BH": 22, "BR": 29, "BY": 28, "CH": 21, "CR": 22, "CY": 28,
    "CZ": 24, "DE": 22, "DK": 18, "DO": 28, "EE": 20, "EG": 29, "ES": 24,
    "FI": 18, "FO": 18, "FR": 27, "GB": 22, "GE": 22, "GI": 23, "GL": 18,
    "GR": 27, "GT": 28, "HR": 21, "HU": 28, "IE": 22, "IL": 23, "IS": 26,
    "IT": 27, "JO": 30, "KW": 30, "KZ": 20, "LB": 28, "LI": 21, "LT": 20,
    "LU": 20, "LV": 21, "MC": 27, "MD": 24, "ME": 22, "MK": 19, "MR": 27,
    "MT": 31, "MU": 30, "NL": 18, "NO": 15, "PK": 24, "PL": 28, "PS": 29,
    "PT": 25, "QA": 29, "RO": 24, "RS": 22, "SA": 24, "SE": 24, "SI": 19,
    "SK": 24, "SM": 27, "TN": 24, "TR": 26, "UA": 29, "VA": 22, "VG": 24,
    "XK": 20,
}

_IBAN_SHAPE = re.compile(r"^[A-Z]{2}[0-9]{2}[A-Z0-9]+$")


def mod97(numeric: str) -> int:
    """Remainder of a decimal digit string modulo 97, digit by digit."""
    remainder = 0
    for ch in numeric:
        remainder = (remainder * 10 + int(ch)) % 97
    return remainder


def _iban_numeric(iban: str) -> str:
    # Move first 4 chars to the end, letters become 10..35
    rearranged = iban[4:] + iban[:4]
    return "".join(str(ord(ch) - 55) if ch.isalpha() else ch for ch in rearranged)


def iban_result(text: str) -> ValidationResult:
    clean = re.sub(r"[\s-]", "", text).upper()
    if len(clean) > 34 + 10:
        return ValidationResult(False, FAILED, "Input too long")
    if not _IBAN_SHAPE.match(clean):
        return ValidationResult(False, FAILED, "Not an IBAN shape")
    expected = IBAN_COUNTRY_LENGTHS.get(clean[:2])
    if expected is None:
        return ValidationResult(False, INVALID_FORMAT, f"Unknown IBAN country {clean[:2]}")
    if len(clean) != expected:
        return ValidationResult(
            False, INVALID_FORMAT,
            f"Invalid length for {clean[:2]}: {len(clean)} (expected {expected})",
        )
    if mod97(_iban_numeric(clean)) != 1:
        return ValidationResult(False, INVALID_FORMAT, "Checksum validation failed (mod 97)")
    return ValidationResult(True, CHECKSUM_VALID)


def validate_iban(text: str) -> bool:
    """ISO 13616 IBAN check: shape, per-country length, mod 97 == 1."""
    return iban_result(text).is_valid


_CREDITOR_REF_SHAPE = re.compile(r"^RF[0-9]{2}[A-Z0-9]{1,21}$")


def validate_creditor_reference(text: str) -> bool:
    """ISO 11649 "RF" structured creditor reference (same mod 97 rule as IBAN)."""
    clean = re.sub(r"\s", "", text).upper()
    if not _CREDITOR_REF_SHAPE.match(clean):
        return False
    return mod97(_iban_numeric(clean)) == 1


# ═══════════════════════════════════════════════════════════════════════════
# Swiss AVS / AHV (EAN-13)
# ═══════════════════════════════════════════════════════════════════════════

def ean13_check(number: str) -> bool:
    """EAN-13: weights 1/3 over the first 12 digits, check = (10 - sum % 10) % 10."""
    if len(number) != 13 or not number.isdigit():
        return False
    total = sum(int(d) * (1 if i % 2 == 0 else 3) for i, d in enumerate(number[:12]))
    return (10 - total % 10) % 10 == int(number[12])


def avs_result(text: str) -> ValidationResult:
    digits = re.sub(r"[.\s-]", "", text)
    if not digits.isdigit() or len(digits) != 13:
        return ValidationResult(False, FAILED, f"Invalid length: {len(digits)} digits (expected 13)")
    if not digits.startswith("756"):
        return ValidationResult(False, FAILED, "Does not start with Swiss country code 756")
    if not ean13_check(digits):
        return ValidationResult(False, INVALID_FORMAT, "EAN-13 checksum mismatch")
    return ValidationResult(True, CHECKSUM_VALID)


def validate_swiss_avs(text: str) -> bool:
    """756.XXXX.XXXX.XC with or without separators, EAN-13 check digit."""
    return avs_result(text).is_valid


# ═══════════════════════════════════════════════════════════════════════════
# Swiss UID / VAT
# ═══════════════════════════════════════════════════════════════════════════

_UID_WEIGHTS = (5, 4, 3, 2, 7, 6, 5, 4)
_EU_VAT_SHAPE = re.compile(r"^(?:DE|FR|IT|AT|BE|NL|ES|LU|GB)[0-9A-Z]{8,12}$")


def swiss_uid_check(digits: str) -> bool:
    """Mod-11 check digit of a 9-digit Swiss UID (CHE-xxx.xxx.xxx)."""
    if len(digits) != 9 or not digits.isdigit():
        return False
    total = sum(int(d) * w for d, w in zip(digits, _UID_WEIGHTS))
    check = 11 - total % 11
    if check == 10:
        return False
    return int(digits[8]) == (0 if check == 11 else check)


def vat_result(text: str) -> ValidationResult:
    upper = text.upper()
    if upper.startswith("CHE"):
        digits = re.sub(r"\D", "", upper)
        if len(digits) != 9:
            return ValidationResult(False, INVALID_FORMAT, f"Invalid Swiss VAT length: {len(digits)} digits")
        if not swiss_uid_check(digits):
            return ValidationResult(False, WEAK, "Swiss UID checksum failed")
        return ValidationResult(True, FORMAT_VALID)
    compact = re.sub(r"[\s.\-]", "", upper)
    if _EU_VAT_SHAPE.match(compact):
        return ValidationResult(True, MODERATE)
    return ValidationResult(False, INVALID_FORMAT, "Unrecognized VAT format")


# ═══════════════════════════════════════════════════════════════════════════
# Phone
# ═══════════════════════════════════════════════════════════════════════════

PRODUCT_PREFIXES = (
    "art-", "sku-", "prod-", "ref-", "code-", "item-", "cat-",
    "model:", "product:", "serial:", "part:",
)
PHONE_CONTEXT_WINDOW = 50

_DASH_CODE = re.compile(r"\w+-\d+-\d+-\d+")
_SWISS_PREFIX = re.compile(r"^(?:\+41|0041|41|0)")
_PHONE_COUNTRY_PREFIXES = ("41", "49", "33", "39", "43", "32", "31", "352")
_SWISS_MOBILE_PREFIXES = ("76", "77", "78", "79")


def is_product_code(text: str, start: int, end: int) -> bool:
    """True when a phone-shaped match at ``[start, end)`` is really a product code.

    Looks for SKU/model vocabulary in the 50 characters around the match
    (only prefixes that begin before ``start + 10`` count) and for
    dash-delimited code shapes inside the match itself.
    """
    win_start = max(0, start - PHONE_CONTEXT_WINDOW)
    win_end = min(len(text), end + PHONE_CONTEXT_WINDOW)
    context = text[win_start:win_end].lower()
    limit = start - win_start + 10
    for prefix in PRODUCT_PREFIXES:
        pos = context.find(prefix)
        if 0 <= pos < limit:
            return True

    matched = text[start:end]
    return bool(_DASH_CODE.search(matched)) or matched.count("-") >= 3


def validate_phone_number(phone: str) -> bool:
    cleaned = re.sub(r"[\s\-()]", "", phone)
    if len(cleaned) < 10:
        return False
    if re.fullmatch(r"(\d)\1+", cleaned):
        return False
    local = _SWISS_PREFIX.sub("", cleaned)
    if re.fullmatch(r"0+", local):
        return False
    return True


def phone_result(text: str) -> ValidationResult:
    if len(text) > 25:
        return ValidationResult(False, FAILED, "Input too long")
    digits = re.sub(r"\D", "", text)
    if len(digits) < 9 or len(digits) > 15:
        return ValidationResult(False, FAILED, f"Invalid length: {len(digits)} digits")

    is_local = digits.startswith("0") and not digits.startswith("00")
    has_prefix = any(
        digits.startswith(p) or digits.startswith("00" + p) for p in _PHONE_COUNTRY_PREFIXES
    )
    if not has_prefix and not is_local:
        return ValidationResult(False, WEAK, "No recognized country code")

    national = digits
    for prefix in ("0041", "41", "0"):
        if national.startswith(prefix):
            national = national[len(prefix):]
            break
    if (digits.startswith(("41", "0041")) or is_local) and national.startswith(_SWISS_MOBILE_PREFIXES):
        return ValidationResult(True, FORMAT_VALID)
    return ValidationResult(True, MODERATE)


# ═══════════════════════════════════════════════════════════════════════════
# Email
# ═══════════════════════════════════════════════════════════════════════════

_EMAIL_STRICT = re.compile(
    r"^[a-z0-9.!#$%&'*+/=?^_`{|}~-]+@"
    r"[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?(?:\.[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?)+$"
)


def validate_email(email: str) -> bool:
    """Exactly one '@', local part 1-64 chars, dotted domain, TLD >= 2 chars."""
    parts = email.split("@")
    if len(parts) != 2:
        return False
    local, domain = parts
    if not local or len(local) > 64:
        return False
    if "." not in domain:
        return False
    return len(domain.rsplit(".", 1)[-1]) >= 2


def email_result(text: str) -> ValidationResult:
    email = re.sub(r"\s+", "", text).lower()
    if len(email) > 254:
        return ValidationResult(False, FAILED, "Input too long")
    if not _EMAIL_STRICT.match(email):
        return ValidationResult(False, FAILED, "Does not match email format")
    if ".." in email:
        return ValidationResult(False, FAILED, "Contains consecutive dots")
    return ValidationResult(True, FORMAT_VALID)


# ═══════════════════════════════════════════════════════════════════════════
# Dates
# ═══════════════════════════════════════════════════════════════════════════

MONTH_NAME_TO_NUMBER: dict[str, int] = {
    # English
    "january": 1, "february": 2, "march": 3, "april": 4, "may": 5, "june": 6,
    "july": 7, "august": 8, "september": 9, "october": 10, "november": 11,
    "december": 12,
    # German
    "januar": 1, "februar": 2, "märz": 3, "maerz": 3, "mai": 5, "juni": 6,
    "juli": 7, "oktober": 10, "dezember": 12,
    # French
    "janvier": 1, "février": 2, "fevrier": 2, "mars": 3, "avril": 4, "juin": 6,
    "juillet": 7, "août": 8, "aout": 8, "septembre": 9, "octobre": 10,
    "novembre": 11, "décembre": 12, "decembre": 12,
    # Italian
    "gennaio": 1, "febbraio": 2, "marzo": 3, "aprile": 4, "maggio": 5,
    "giugno": 6, "luglio": 7, "agosto": 8, "settembre": 9, "ottobre": 10,
    "dicembre": 12,
}
MONTH_NAMES = frozenset(MONTH_NAME_TO_NUMBER)

_NUMERIC_DATE = re.compile(r"(\d{1,2})[./-](\d{1,2})[./-](\d{2,4})")
_NAMED_DATE = re.compile(r"(\d{1,2})\.?\s*([a-zäöüéèû]+)\s*(\d{2,4})")


def validate_date(date: str) -> bool:
    """DD.MM.YYYY range sanity: day 1-31, month 1-12, year 1900-2100."""
    parts = date.split(".")
    if len(parts) != 3 or not all(p.isdigit() for p in parts):
        return False
    day, month, year = (int(p) for p in parts)
    return 1 <= day <= 31 and 1 <= month <= 12 and 1900 <= year <= 2100


def _parse_date(text: str) -> tuple[int, int, int] | None:
    m = _NUMERIC_DATE.search(text)
    if m:
        day, month, year = int(m.group(1)), int(m.group(2)), int(m.group(3))
    else:
        m = _NAMED_DATE.search(text.lower())
        if not m or m.group(2) not in MONTH_NAME_TO_NUMBER:
            return None
        day, month, year = int(m.group(1)), MONTH_NAME_TO_NUMBER[m.group(2)], int(m.group(3))
    if year < 100:
        year += 1900 if year > 30 else 2000
    return day, month, year


def date_result(text: str) -> ValidationResult:
    parsed = _parse_date(text)
    if parsed is None:
        return ValidationResult(False, INVALID_FORMAT, "Could not parse date")
    day, month, year = parsed
    if not 1 <= month <= 12:
        return ValidationResult(False, FAILED, f"Invalid month: {month}")
    if not 1900 <= year <= 2100:
        return ValidationResult(False, INVALID_FORMAT, f"Year out of range: {year}")
    if not 1 <= day <= calendar.monthrange(year, month)[1]:
        return ValidationResult(False, FAILED, f"Invalid day: {day} for month {month}")
    return ValidationResult(True, STANDARD)


# ═══════════════════════════════════════════════════════════════════════════
# Swiss postal code + city
# ═══════════════════════════════════════════════════════════════════════════

NON_CITY_WORDS = frozenset({
    # Document / business terms
    "attestation", "rapport", "report", "bericht", "document", "dokument",
    "contrat", "contract", "vertrag", "contratto",
    "version", "edition", "ausgabe", "edizione",
    "année", "annee", "year", "jahr", "anno",
    "execution", "exécution", "ausführung", "esecuzione",
    # Function words that get capitalized after a year
    "pour", "and", "oder", "from", "with", "date", "depuis", "since", "ab",
    "fondation", "collective", "stiftung", "fondazione",
    "l'exécution", "l'execution", "l'année", "l'annee",
})

# Real postal codes that collide with years 1900-2099 (Valais, Neuchâtel/Jura)
KNOWN_SWISS_CITIES_IN_YEAR_RANGE = frozenset({
    "sion", "sierre", "martigny", "monthey", "saxon", "fully", "leytron",
    "chamoson", "conthey", "vétroz", "vetroz", "ardon", "riddes", "saillon",
    "brig", "visp", "naters", "zermatt", "saas-fee",
    "neuchâtel", "neuchatel", "la", "le", "fleurier",
    "couvet", "môtiers", "motiers", "travers", "boudry", "cortaillod",
    "colombier", "auvernier", "bevaix", "gorgier", "saint-aubin",
})

_DATE_CONTEXT_KEYWORDS = re.compile(
    r"\b(?:date|depuis|since|ab|from|le|am|on|year|année|annee|jahr|anno|en|im|in|vom|du)\s*[:.]?\s*$",
    re.IGNORECASE,
)
_DATE_PREFIX = re.compile(r"\d{1,2}[./]\d{1,2}[./]?\s*$")
_STREET_CONTEXT = re.compile(r"(?:Rue|Route|Rte|Chemin|Strasse|Str\.|Via|Avenue|Av\.)", re.IGNORECASE)


def _year_false_positive(address: str, city: str, full_text: str, pos: int) -> ValidationResult:
    first_word = (city.split() or [""])[0].lower()

    if first_word in KNOWN_SWISS_CITIES_IN_YEAR_RANGE:
        return ValidationResult(True, STANDARD, f'Known Swiss city: "{first_word}"')
    if first_word in MONTH_NAMES:
        return ValidationResult(False, FALSE_POSITIVE, f'Year followed by month name "{first_word}"')
    if first_word in NON_CITY_WORDS:
        return ValidationResult(False, FAILED, f'Year followed by non-city word "{first_word}"')

    if full_text:
        if pos < 0:
            pos = full_text.find(address)
        if pos > 0:
            before = full_text[max(0, pos - 20):pos]
            if _DATE_PREFIX.search(before):
                return ValidationResult(False, FALSE_POSITIVE, "Preceded by date pattern")
            if _DATE_CONTEXT_KEYWORDS.search(before):
                return ValidationResult(False, FAILED, "Preceded by date-related keyword")
        if pos >= 0:
            end = pos + len(address)
            after = full_text[end:end + 15]
            if end < len(full_text) and re.match(r"^\s*[.;,!?\n]", after):
                if not _STREET_CONTEXT.search(full_text[max(0, pos - 50):pos]):
                    return ValidationResult(False, INVALID_FORMAT, "Year at sentence boundary without street context")

    return ValidationResult(True, MODERATE)


def swiss_address_result(address: str, full_text: str = "", pos: int = -1) -> ValidationResult:
    """Validate a "NNNN City" string, screening out years that look like postal codes.

    *pos* is the offset of *address* in *full_text* when known; otherwise the
    first occurrence is used.
    """
    if len(address) > 200:
        return ValidationResult(False, FAILED, "Input too long")
    head = address[:4]
    if not head.isdigit():
        return ValidationResult(False, INVALID_FORMAT, "No postal code prefix")
    postal = int(head)
    if not 1000 <= postal <= 9999:
        return ValidationResult(False, FAILED, f"Postal code {postal} outside Swiss range")

    city = address[4:].strip()
    if len(city) < 3:
        return ValidationResult(False, FAILED, f'City name too short: "{city}"')

    if 1900 <= postal <= 2099:
        year_check = _year_false_positive(address, city, full_text, pos)
        if not year_check.is_valid:
            return year_check

    first_word = (city.split() or [""])[0]
    if first_word.lower() in NON_CITY_WORDS:
        return ValidationResult(False, INVALID_FORMAT, f'"{first_word}" is not a valid city name')

    return ValidationResult(True, KNOWN_VALID)


def validate_swiss_address(address: str, full_text: str = "", pos: int = -1) -> bool:
    return swiss_address_result(address, full_text, pos).is_valid


# ═══════════════════════════════════════════════════════════════════════════
# Street address / person names
# ═══════════════════════════════════════════════════════════════════════════

_PO_BOX_TERMS = ("case postale", "postfach", "p.o. box", "boîte postale")


def validate_street_address(address: str) -> bool:
    if len(address) < 5:
        return False
    if not re.search(r"\d+[A-Za-z]?\s*$", address):
        return False
    street = re.sub(r"\s+\d+[A-Za-z]?\s*$", "", address).strip()
    if len(street) < 5:
        return False
    lower = address.lower()
    return not any(term in lower for term in _PO_BOX_TERMS)


_NAME_STOP_WORDS = frozenset({
    "fondation", "collective", "case", "postale", "notre", "votre",
    "zurich", "suisse", "switzerland", "scanning", "assurances",
    "chemin", "route", "rue", "avenue", "visiteurs", "direct",
    "technologies", "softcom", "vita", "mesdames", "messieurs",
    "sehr", "geehrte", "geehrter", "freundlichen", "grüssen", "grüßen",
    "dear", "regards", "sincerely", "kind", "best",
})


def validate_person_name(name: str) -> bool:
    """At least two name parts, none a stop word or an all-caps acronym."""
    if len(name) < 3:
        return False
    parts = name.split()
    if len(parts) < 2:
        return False
    for part in parts:
        if part.lower() in _NAME_STOP_WORDS:
            return False
        if part.isupper() and len(part) > 2:
            return False
    return True


# ═══════════════════════════════════════════════════════════════════════════
# Graded validator registry (format validation pass)
# ═══════════════════════════════════════════════════════════════════════════

Validator = Callable[[str], ValidationResult]

VALIDATORS: dict[EntityType, Validator] = {
    EntityType.IBAN: iban_result,
    EntityType.SWISS_AVS: avs_result,
    EntityType.EMAIL: email_result,
    EntityType.PHONE: phone_result,
    EntityType.DATE: date_result,
    EntityType.VAT_NUMBER: vat_result,
    EntityType.SWISS_UID: vat_result,
    EntityType.SWISS_ADDRESS: swiss_address_result,
}
