"""Tests for document-type rule modules (invoice, letter) and their registry."""

import pytest

from piiguard.core.detection.detection_config import InvoiceRulesConfig, LetterRulesConfig
from piiguard.core.detection.rules import (
    InvoiceRules,
    LetterRules,
    merge_by_confidence,
    parse_amount,
    register_rules,
    rules_for,
)
from piiguard.core.detection.rules import _REGISTRY
from piiguard.core.detection.rules.letter_rules import SENDER_PATTERN
from piiguard.models.schemas import DocumentType, Entity, EntityType


def _of_type(entities, etype):
    return [e for e in entities if e.type == etype]


def _entity(start, end, confidence, etype=EntityType.PERSON_NAME):
    return Entity(type=etype, text="x" * (end - start), start=start, end=end, confidence=confidence)


_BODY = "Vielen Dank für Ihren Auftrag.\n" * 20


# ═══════════════════════════════════════════════════════════════════════════
# Amount parsing
# ═══════════════════════════════════════════════════════════════════════════

class TestParseAmount:
    @pytest.mark.parametrize("text, currency, value", [
        ("CHF 1'234.50", "CHF", 1234.50),
        ("1.234,50 EUR", "EUR", 1234.50),
        ("1,234.50 USD", "USD", 1234.50),
        ("12,50 €", "EUR", 12.50),
        ("Fr. 150.–", "CHF", 150.0),
        ("£ 99.99", "GBP", 99.99),
    ])
    def test_formats(self, text, currency, value):
        parsed = parse_amount(text)
        assert parsed.currency == currency
        assert parsed.value == pytest.approx(value)

    def test_unknown_currency(self):
        assert parse_amount("1'000.00").currency == "UNKNOWN"

    def test_no_digits(self):
        assert parse_amount("CHF") is None


# ═══════════════════════════════════════════════════════════════════════════
# Invoice rules
# ═══════════════════════════════════════════════════════════════════════════

class TestInvoiceRules:
    def test_invoice_number_reports_number_only(self):
        text = "Rechnung Nr. 2024-0815\n" + _BODY
        found = InvoiceRules().extract_invoice_numbers(text)
        assert [e.text for e in found] == ["2024-0815"]
        assert found[0].metadata.extracted_number == "2024-0815"

    def test_short_numeric_label_ignored(self):
        assert InvoiceRules().extract_invoice_numbers("Invoice #123") == []

    def test_header_boost(self):
        text = "Facture n° F-88231\n" + _BODY
        result = InvoiceRules().apply(text, [])
        numbers = _of_type(result, EntityType.INVOICE_NUMBER)
        assert len(numbers) == 1
        assert numbers[0].confidence == pytest.approx(1.0)
        assert numbers[0].metadata.position_boost == "header"

    def test_no_boost_in_body(self):
        text = _BODY + "Invoice No: INV-4711\n" + _BODY
        numbers = _of_type(InvoiceRules().apply(text, []), EntityType.INVOICE_NUMBER)
        assert numbers[0].confidence == pytest.approx(0.85)
        assert numbers[0].metadata.position_boost is None

    def test_table_row_boost(self):
        text = _BODY + "Pos | Ref. AB-12345 | 2 Stk\n" + _BODY
        numbers = _of_type(InvoiceRules().apply(text, []), EntityType.INVOICE_NUMBER)
        assert numbers[0].metadata.position_boost == "table"
        assert numbers[0].confidence == pytest.approx(0.95)

    def test_swiss_vat(self):
        vat = InvoiceRules().extract_vat_numbers("UID: CHE-123.456.789 MWST")
        assert [e.text for e in vat] == ["CHE-123.456.789 MWST"]
        assert vat[0].confidence == 0.95

    def test_eu_vat(self):
        vat = InvoiceRules().extract_vat_numbers("USt-IdNr. DE123456789")
        assert vat[0].metadata.pattern == "eu_vat_de"

    def test_payment_references(self):
        text = _BODY + "IBAN CH93 0076 2011 6238 5295 7\nReferenz RF18 5390 0754 7034\n"
        refs = InvoiceRules().extract_payment_references(text)
        assert [e.type for e in refs] == [EntityType.IBAN, EntityType.PAYMENT_REF]
        assert refs[0].text == "CH93 0076 2011 6238 5295 7"
        assert refs[1].metadata.reference_type == "ISO11649"

    def test_amounts_off_by_default(self):
        text = "Total CHF 1'234.50"
        assert not _of_type(InvoiceRules().apply(text, []), EntityType.AMOUNT)

    def test_amounts_when_enabled(self):
        rules = InvoiceRules(InvoiceRulesConfig(extract_amounts=True))
        amounts = rules.extract_amounts("Total CHF 1'234.50, Porto CHF 5.00")
        assert len(amounts) == 1
        assert amounts[0].metadata.amount == pytest.approx(1234.50)
        assert amounts[0].metadata.currency == "CHF"


# ═══════════════════════════════════════════════════════════════════════════
# Letter rules
# ═══════════════════════════════════════════════════════════════════════════

_LETTER = (
    "Von: Muster AG\nBahnhofstrasse 10\n8001 Zürich\n\n"
    "Zürich, 15. März 2024\n\n"
    "Sehr geehrte Frau Keller,\n\n"
    + _BODY +
    "Mit freundlichen Grüssen\n\nHans Muster"
)


class TestLetterRules:
    def test_salutation_name(self):
        names = LetterRules().extract_salutation_names("Sehr geehrte Frau Keller,")
        assert [e.text for e in names] == ["Keller"]
        assert names[0].type == EntityType.SALUTATION_NAME

    def test_generic_salutation_skipped(self):
        assert LetterRules().extract_salutation_names("Monsieur Madame,") == []

    def test_english_salutation(self):
        names = LetterRules().extract_salutation_names("Dear Dr. Jane Doe,\n")
        assert [e.text for e in names] == ["Jane Doe"]

    def test_signature(self):
        sigs = LetterRules().extract_signatures("Kind regards,\nJane Doe")
        assert [e.text for e in sigs] == ["Jane Doe"]

    def test_sender_block(self):
        blocks = LetterRules().extract_blocks(_LETTER, SENDER_PATTERN, EntityType.SENDER)
        assert len(blocks) == 1
        assert blocks[0].text.startswith("Muster AG")

    def test_full_letter(self):
        result = LetterRules().apply(_LETTER, [])
        assert [e.text for e in _of_type(result, EntityType.SALUTATION_NAME)] == ["Keller"]

        sig = _of_type(result, EntityType.SIGNATURE)
        assert [e.text for e in sig] == ["Hans Muster"]
        assert sig[0].metadata.position_boost == "footer"
        assert sig[0].confidence == pytest.approx(1.0)

        sender = _of_type(result, EntityType.SENDER)
        assert sender[0].metadata.position_boost == "header"

        dates = _of_type(result, EntityType.DATE)
        assert [d.text for d in dates] == ["15. März 2024"]
        assert dates[0].confidence == 0.85

    def test_disabled_extractors(self):
        rules = LetterRules(LetterRulesConfig(
            detect_salutations=False, detect_signatures=False, detect_sender_recipient=False,
        ))
        result = rules.apply(_LETTER, [])
        assert {e.type for e in result} == {EntityType.DATE}


# ═══════════════════════════════════════════════════════════════════════════
# Merging and registry
# ═══════════════════════════════════════════════════════════════════════════

class TestMergeByConfidence:
    def test_higher_confidence_replaces(self):
        old = _entity(0, 10, 0.5)
        new = _entity(2, 8, 0.9)
        assert merge_by_confidence([old], [new]) == [new]

    def test_lower_confidence_dropped(self):
        old = _entity(0, 10, 0.9)
        assert merge_by_confidence([old], [_entity(2, 8, 0.5)]) == [old]

    def test_equal_confidence_keeps_existing(self):
        old = _entity(0, 10, 0.7)
        assert merge_by_confidence([old], [_entity(0, 10, 0.7)]) == [old]

    def test_replaces_every_overlapped_entity(self):
        left, right = _entity(0, 5, 0.5), _entity(6, 10, 0.5)
        bridge = _entity(3, 8, 0.9)
        assert merge_by_confidence([left, right], [bridge]) == [bridge]

    def test_must_beat_every_overlapped_entity(self):
        left, right = _entity(0, 5, 0.5), _entity(6, 10, 0.95)
        merged = merge_by_confidence([left, right], [_entity(3, 8, 0.9)])
        assert merged == [left, right]
        assert all(a.end <= b.start for a, b in zip(merged, merged[1:]))

    def test_disjoint_added_sorted(self):
        a, b = _entity(20, 25, 0.5), _entity(0, 5, 0.5)
        assert merge_by_confidence([a], [b]) == [b, a]


class TestRegistry:
    def test_builtin_modules(self):
        assert isinstance(rules_for(DocumentType.INVOICE), InvoiceRules)
        assert isinstance(rules_for(DocumentType.LETTER), LetterRules)
        assert rules_for(DocumentType.REPORT) is None

    def test_register(self):
        class ReportRules:
            name = "report"

            def apply(self, text, entities, language="en"):
                return entities

        try:
            register_rules(DocumentType.REPORT, ReportRules())
            assert rules_for(DocumentType.REPORT).name == "report"
        finally:
            _REGISTRY.pop(DocumentType.REPORT, None)
