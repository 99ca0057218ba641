"""Letter-specific detection rules.

Finds the people a letter names by its structure rather than by their
shape: the name after a salutation ("Sehr geehrte Frau Muster"), the
name under a closing formula ("Kind regards,\\n Jane Doe"), the
labelled sender and recipient blocks, and the letter date.
"""

from __future__ import annotations

import logging
import re
from typing import Optional

from piiguard.core.detection.detection_config import FOOTER_ZONE, HEADER_ZONE, LetterRulesConfig
from piiguard.core.detection.rules.base import boosted, merge_by_confidence
from piiguard.models.schemas import Entity, EntityMetadata, EntitySource, EntityType

logger = logging.getLogger(__name__)

_NAME = r"[A-ZÀ-ÖØ-Ý][a-zà-öø-ÿA-Z'\-]{1,30}(?:[^\S\n]{1,3}[A-ZÀ-ÖØ-Ý][a-zà-öø-ÿA-Z'\-]{1,30}){0,3}"
_TITLE = r"(?:(?:Mr|Mrs|Ms|Dr|Prof|M|Mme|Sig|Sig\.ra)\.?[^\S\n]{1,3})?"

# Group 1 is the addressee's name
SALUTATION_PATTERNS: list[re.Pattern] = [
    # English
    re.compile(rf"\b(?i:dear)[^\S\n]{{1,3}}{_TITLE}({_NAME})"),
    # French
    re.compile(rf"\b(?i:cher)[^\S\n]{{1,3}}(?:Monsieur|M\.)[^\S\n]{{1,3}}({_NAME})"),
    re.compile(rf"\b(?i:chère)[^\S\n]{{1,3}}(?:Madame|Mme\.?)[^\S\n]{{1,3}}({_NAME})"),
    re.compile(rf"\b(?:Monsieur|Madame)[^\S\n]{{1,3}}({_NAME})"),
    # German
    re.compile(rf"\b(?i:sehr[^\S\n]{{1,3}}geehrter?)[^\S\n]{{1,3}}(?:Herr|Frau)[^\S\n]{{1,3}}"
               rf"(?:(?:Dr|Prof)\.?[^\S\n]{{1,3}})?({_NAME})"),
    re.compile(rf"\b(?i:liebe[r]?)[^\S\n]{{1,3}}(?:(?:Herr|Frau)[^\S\n]{{1,3}})?({_NAME})"),
    re.compile(rf"\b(?:Herr|Frau)[^\S\n]{{1,3}}(?:(?:Dr|Prof)\.?[^\S\n]{{1,3}})?({_NAME})"),
    # Italian
    re.compile(rf"\b(?i:gentile|egregio)[^\S\n]{{1,3}}(?:Signora|Signor|Sig\.?ra|Sig\.?)[^\S\n]{{1,3}}({_NAME})"),
]

_GENERIC_ADDRESSEES = frozenset({"madame", "monsieur", "sir", "madam", "sirs", "messieurs", "damen", "herren"})

_CLOSINGS = (
    "sincerely", "regards", "best regards", "kind regards", "yours truly", "yours faithfully",
    "best wishes", "warm regards",
    "cordialement", "salutations", "meilleures salutations", "bien à vous", "amicalement",
    "mit freundlichen grüßen", "mit freundlichen grüssen", "hochachtungsvoll", "beste grüße",
    "beste grüsse", "freundliche grüße", "freundliche grüsse",
    "cordiali saluti", "distinti saluti", "cordialmente",
)

# Closing formula, then the signer's name on one of the next lines
SIGNATURE_PATTERN = re.compile(
    rf"(?i:{'|'.join(re.escape(c) for c in sorted(_CLOSINGS, key=len, reverse=True))})"
    rf"[^\S\n]{{0,3}},?[^\S\n]{{0,3}}\n{{1,3}}[^\S\n]{{0,10}}({_NAME})[^\S\n]*$",
    re.MULTILINE,
)

# Labelled blocks: the label line, then up to five non-empty lines
_BLOCK = r"[^\S\n]{0,3}:[^\S\n]{0,3}\n?((?:[^\n]*\S[^\n]*(?:\n|$)){1,5})"
RECIPIENT_PATTERN = re.compile(
    rf"^[^\S\n]{{0,3}}(?i:to|attention|attn|à|destinataire|an|z\.[^\S\n]?hd\.?|empfänger){_BLOCK}",
    re.MULTILINE,
)
SENDER_PATTERN = re.compile(
    rf"^[^\S\n]{{0,3}}(?i:from|von|absender|de|expéditeur|mittente){_BLOCK}",
    re.MULTILINE,
)

_MONTHS = (
    "January|February|March|April|May|June|July|August|September|October|November|December|"
    "janvier|février|mars|avril|mai|juin|juillet|août|septembre|octobre|novembre|décembre|"
    "Januar|Februar|März|April|Mai|Juni|Juli|August|September|Oktober|November|Dezember|"
    "gennaio|febbraio|marzo|aprile|maggio|giugno|luglio|agosto|settembre|ottobre|novembre|dicembre"
)
DATE_PATTERNS: list[re.Pattern] = [
    re.compile(rf"\b(?i:{_MONTHS})[^\S\n]{{1,3}}\d{{1,2}},?[^\S\n]{{1,3}}\d{{4}}\b"),
    re.compile(rf"\b\d{{1,2}}\.?[^\S\n]{{1,3}}(?i:{_MONTHS})[^\S\n]{{1,3}}\d{{4}}\b"),
    re.compile(r"\b\d{4}-\d{2}-\d{2}\b"),
]


class LetterRules:
    name = "letter"

    def __init__(self, config: Optional[LetterRulesConfig] = None):
        self.config = config or LetterRulesConfig()

    def apply(self, text: str, entities: list[Entity], language: str = "en") -> list[Entity]:
        found: list[Entity] = []
        if self.config.detect_salutations:
            found += self.extract_salutation_names(text)
        if self.config.detect_signatures:
            found += self.extract_signatures(text)
        if self.config.detect_sender_recipient:
            found += self.extract_blocks(text, RECIPIENT_PATTERN, EntityType.RECIPIENT)
            found += self.extract_blocks(text, SENDER_PATTERN, EntityType.SENDER)
        found += self.extract_letter_date(text)

        found = [self._position_boost(e, len(text)) for e in found]
        logger.debug(f"Letter rules found {len(found)} candidates ({language})")
        return merge_by_confidence(entities, found)

    def _position_boost(self, entity: Entity, length: int) -> Entity:
        if entity.type == EntityType.SENDER and entity.start < length * HEADER_ZONE:
            return boosted(entity, self.config.position_boost, "header")
        if entity.type == EntityType.SIGNATURE and entity.start > length * (FOOTER_ZONE - 0.1):
            return boosted(entity, self.config.position_boost, "footer")
        return entity

    def extract_salutation_names(self, text: str) -> list[Entity]:
        out: list[Entity] = []
        for pattern in SALUTATION_PATTERNS:
            for m in pattern.finditer(text):
                name = m.group(1)
                if name.split()[0].lower() in _GENERIC_ADDRESSEES:
                    continue
                if any(e.start == m.start(1) for e in out):
                    continue
                out.append(_entity(EntityType.SALUTATION_NAME, text, m.start(1), m.end(1), 0.85, "salutation"))
        return out

    def extract_signatures(self, text: str) -> list[Entity]:
        return [
            _entity(EntityType.SIGNATURE, text, m.start(1), m.end(1), 0.9, "signature")
            for m in SIGNATURE_PATTERN.finditer(text)
        ]

    def extract_blocks(self, text: str, pattern: re.Pattern, etype: EntityType) -> list[Entity]:
        out: list[Entity] = []
        for m in pattern.finditer(text):
            block = m.group(1)
            start = m.start(1) + (len(block) - len(block.lstrip()))
            end = m.start(1) + len(block.rstrip())
            if end - start < 10:
                continue
            out.append(_entity(etype, text, start, end, 0.8, f"{etype.value.lower()}_block"))
        return out

    def extract_letter_date(self, text: str) -> list[Entity]:
        header_end = len(text) * HEADER_ZONE
        out: list[Entity] = []
        for pattern in DATE_PATTERNS:
            for m in pattern.finditer(text):
                if any(e.start < m.end() and m.start() < e.end for e in out):
                    continue
                confidence = 0.85 if m.start() < header_end else 0.7
                out.append(_entity(EntityType.DATE, text, m.start(), m.end(), confidence, "letter_date"))
        return out


def _entity(etype: EntityType, text: str, start: int, end: int, confidence: float, pattern: str) -> Entity:
    return Entity(
        type=etype,
        text=text[start:end],
        start=start,
        end=end,
        confidence=confidence,
        source=EntitySource.RULE,
        metadata=EntityMetadata(pattern=pattern),
    )
