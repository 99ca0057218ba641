"""Deny list: words and shapes that must never be reported as PII.

Table headers and invoice labels ("Montant", "Betrag", "Total") are
capitalized and sit next to real PII, so pattern rules and ML models both
pick them up.  Entries are either plain strings (case-insensitive exact
match on the trimmed entity text) or compiled regexes (``search`` on the
trimmed text).  Lists are scoped globally, per entity type, and per
language.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Union

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

Pattern = Union[str, re.Pattern]


# ---------------------------------------------------------------------------
# Default entries
# ---------------------------------------------------------------------------

_GLOBAL: list[Pattern] = [
    # French table headers / invoice terms
    "Montant", "Libellé", "Description", "Quantité", "Prix", "Total",
    "Sous-total", "TVA", "Rabais", "Réduction", "Référence", "Numéro",
    "Facture", "Client", "Fournisseur", "Désignation", "Unité", "Remise",
    "HT", "TTC",
    # German
    "Beschreibung", "Betrag", "Menge", "Preis", "Summe", "MwSt",
    "Zwischensumme", "Rabatt", "Referenz", "Nummer", "Rechnung", "Kunde",
    "Lieferant", "Bezeichnung", "Einheit", "Netto", "Brutto",
    # English
    "Amount", "Quantity", "Price", "Subtotal", "Tax", "Discount",
    "Reference", "Number", "Invoice", "Customer", "Supplier", "Unit", "Net",
    "Gross",
    "Date", "Datum",
]

_BY_ENTITY_TYPE: dict[str, list[Pattern]] = {
    "PERSON_NAME": [
        re.compile(r"^[A-Z]{2,4}$"),                       # acronyms
        re.compile(r"^\d+$"),
        re.compile(r"^(?:Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec)$", re.I),
        re.compile(r"^(?:Mon|Tue|Wed|Thu|Fri|Sat|Sun)$", re.I),
        re.compile(r"^(?:Janv|Févr|Mars|Avr|Mai|Juin|Juil|Août|Sept|Oct|Nov|Déc)$", re.I),
        re.compile(r"^(?:Jan|Feb|Mär|Apr|Mai|Jun|Jul|Aug|Sep|Okt|Nov|Dez)$", re.I),
        # Company names ending with a legal suffix
        re.compile(r"\b(?:Ltd|AG|SA|GmbH|Inc|Corp|LLC|Sàrl|SARL|Cie|KG|OHG|SE|NV|BV|Plc)\.?$", re.I),
        # Street-type prefixes
        re.compile(
            r"^(?:Via|Viale|Piazza|Corso|Vicolo|Largo|Rue|Avenue|Boulevard|Chemin|Route|"
            r"Place|Allée|Strasse|Straße|Gasse|Weg|Platz|Allee)\b",
            re.I,
        ),
        re.compile(
            r"\b(?:Holding|Group|Technologies|Services|Solutions|Systems|Consulting|"
            r"Partners|Associates|Foundation|Institute|Bank)\s*$",
            re.I,
        ),
        re.compile(r"^(?:Case|Notre|Votre|Services|Gestion|Module|Données|Coordonnées)\s", re.I),
    ],
}


class DenyListFile(BaseModel):
    """On-disk JSON layout; regex entries are ``{"pattern": ..., "regex": true}``."""
    model_config = ConfigDict(populate_by_name=True)

    global_: list[Union[str, dict]] = Field(default=[], alias="global")
    by_entity_type: dict[str, list[Union[str, dict]]] = {}
    by_language: dict[str, list[Union[str, dict]]] = {}


def _parse_entry(entry: Union[str, dict]) -> Pattern:
    if isinstance(entry, str):
        return entry
    flags = re.IGNORECASE if entry.get("ignore_case") else 0
    if entry.get("regex"):
        return re.compile(entry["pattern"], flags)
    return entry["pattern"]


class _Bucket:
    """String set + regex list for one scope."""

    __slots__ = ("words", "regexes")

    def __init__(self) -> None:
        self.words: set[str] = set()
        self.regexes: list[re.Pattern] = []

    def add(self, pattern: Pattern) -> None:
        if isinstance(pattern, str):
            self.words.add(pattern.lower())
        else:
            self.regexes.append(pattern)

    def matches(self, text: str) -> bool:
        if text.lower() in self.words:
            return True
        return any(rx.search(text) for rx in self.regexes)


class DenyList:
    """Scoped lookup of non-PII words and shapes."""

    def __init__(
        self,
        global_patterns: list[Pattern] | None = None,
        by_entity_type: dict[str, list[Pattern]] | None = None,
        by_language: dict[str, list[Pattern]] | None = None,
    ):
        self._global = _Bucket()
        self._by_type: dict[str, _Bucket] = {}
        self._by_lang: dict[str, _Bucket] = {}

        for p in _GLOBAL if global_patterns is None else global_patterns:
            self._global.add(p)
        for etype, patterns in (_BY_ENTITY_TYPE if by_entity_type is None else by_entity_type).items():
            for p in patterns:
                self.add_pattern(p, etype)
        for lang, patterns in (by_language or {}).items():
            for p in patterns:
                self.add_language_pattern(p, lang)

    @classmethod
    def from_file(cls, path: Path) -> "DenyList":
        """Load a deny list from JSON (keys: global, by_entity_type, by_language)."""
        data = DenyListFile.model_validate(json.loads(Path(path).read_text(encoding="utf-8")))
        deny = cls(
            global_patterns=[_parse_entry(e) for e in data.global_],
            by_entity_type={k: [_parse_entry(e) for e in v] for k, v in data.by_entity_type.items()},
            by_language={k: [_parse_entry(e) for e in v] for k, v in data.by_language.items()},
        )
        logger.info(f"Loaded deny list from {path}")
        return deny

    def add_pattern(self, pattern: Pattern, scope: str = "global") -> None:
        """Add *pattern* globally or for the entity type named by *scope*."""
        if scope == "global":
            self._global.add(pattern)
        else:
            self._by_type.setdefault(scope, _Bucket()).add(pattern)

    def add_language_pattern(self, pattern: Pattern, language: str) -> None:
        self._by_lang.setdefault(language, _Bucket()).add(pattern)

    def is_denied(self, text: str, entity_type: str, language: str | None = None) -> bool:
        clean = text.strip()
        if self._global.matches(clean):
            return True
        bucket = self._by_type.get(entity_type)
        if bucket is not None and bucket.matches(clean):
            return True
        if language:
            bucket = self._by_lang.get(language)
            if bucket is not None and bucket.matches(clean):
                return True
        return False


default_deny_list = DenyList()
