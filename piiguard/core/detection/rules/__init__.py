"""Document-type rule modules.

Each document type may have one rule module registered against it; the
document-type pass looks the module up here and applies it after the
generic detectors have run.
"""

from __future__ import annotations

from typing import Optional

from piiguard.core.detection.rules.base import DocumentRules, boosted, merge_by_confidence
from piiguard.core.detection.rules.invoice_rules import InvoiceRules, parse_amount
from piiguard.core.detection.rules.letter_rules import LetterRules
from piiguard.models.schemas import DocumentType

_REGISTRY: dict[DocumentType, DocumentRules] = {
    DocumentType.INVOICE: InvoiceRules(),
    DocumentType.LETTER: LetterRules(),
}


def register_rules(doc_type: DocumentType, rules: DocumentRules) -> None:
    """Register (or replace) the rule module for *doc_type*."""
    _REGISTRY[doc_type] = rules


def rules_for(doc_type: DocumentType) -> Optional[DocumentRules]:
    return _REGISTRY.get(doc_type)


__all__ = [
    "DocumentRules",
    "InvoiceRules",
    "LetterRules",
    "boosted",
    "merge_by_confidence",
    "parse_amount",
    "register_rules",
    "rules_for",
]
