"""Tests for the Swiss/EU pattern engine."""

import logging
import re

from piiguard.core.detection.regex_detector import (
    RegexMatch,
    SwissEuDetector,
    detect,
    resolve_by_priority,
)
from piiguard.core.detection.regex_patterns import PatternRule
from piiguard.models.schemas import EntityType


# ═══════════════════════════════════════════════════════════════════════════
# Helpers
# ═══════════════════════════════════════════════════════════════════════════

def _types(matches):
    return {m.entity_type.value for m in matches}


def _of_type(matches, type_str):
    return [m for m in matches if m.entity_type.value == type_str]


def _no_overlaps(matches):
    ordered = sorted(matches, key=lambda m: m.start)
    return all(a.end <= b.start for a, b in zip(ordered, ordered[1:]))


# ═══════════════════════════════════════════════════════════════════════════
# Banking / social security
# ═══════════════════════════════════════════════════════════════════════════

class TestIban:
    def test_formatted_swiss_iban(self):
        matches = detect("IBAN: CH93 0076 2011 6238 5295 7")
        ibans = _of_type(matches, "IBAN")
        assert len(ibans) == 1
        assert ibans[0].text == "CH93 0076 2011 6238 5295 7"
        assert ibans[0].confidence == 0.95
        assert _no_overlaps(matches)

    def test_compact_iban(self):
        ibans = _of_type(detect("Konto DE89370400440532013000"), "IBAN")
        assert [m.text for m in ibans] == ["DE89370400440532013000"]

    def test_bad_checksum_not_reported(self):
        assert not _of_type(detect("IBAN: CH94 0076 2011 6238 5295 7"), "IBAN")


class TestSwissAvs:
    def test_valid(self):
        avs = _of_type(detect("AHV-Nr. 756.9217.0769.85"), "SWISS_AVS")
        assert len(avs) == 1
        assert avs[0].text == "756.9217.0769.85"
        assert avs[0].confidence == 0.95

    def test_wrong_check_digit(self):
        assert "SWISS_AVS" not in _types(detect("AHV-Nr. 756.9217.0769.84"))

    def test_masked_with_stars(self):
        avs = _of_type(detect("AHV: 756.****.****.** (geschwärzt)"), "SWISS_AVS")
        assert len(avs) == 1
        assert avs[0].rule == "SWISS_AVS_MASKED"
        assert avs[0].confidence == 0.85

    def test_masked_with_x(self):
        avs = _of_type(detect("756.XXXX.XXXX.XX"), "SWISS_AVS")
        assert len(avs) == 1


# ═══════════════════════════════════════════════════════════════════════════
# Contact data
# ═══════════════════════════════════════════════════════════════════════════

class TestEmail:
    def test_basic(self):
        em = _of_type(detect("Kontakt: hans.muster@example.ch."), "EMAIL")
        assert len(em) == 1
        assert em[0].text == "hans.muster@example.ch"

    def test_split_across_lines(self):
        text = "Mail hans.muster\n@example.ch"
        em = _of_type(detect(text), "EMAIL")
        assert len(em) == 1
        assert em[0].text == "hans.muster\n@example.ch"
        assert text[em[0].start:em[0].end] == em[0].text


class TestPhone:
    def test_landline(self):
        phones = _of_type(detect("Tel. 044 123 45 67"), "PHONE")
        assert [p.text for p in phones] == ["044 123 45 67"]

    def test_product_code_suppressed(self):
        assert "PHONE" not in _types(detect("Bestellung SKU-044-123-45-67 erhalten"))


class TestPersonName:
    def test_name_before_phone_label_reports_name_only(self):
        text = "Hans Muster, Tél. 079 123 45 67"
        names = _of_type(detect(text), "PERSON_NAME")
        assert [n.text for n in names] == ["Hans Muster"]
        assert names[0].start == 0
        assert names[0].rule == "PERSON_NAME_TEL"


# ═══════════════════════════════════════════════════════════════════════════
# Overlap resolution
# ═══════════════════════════════════════════════════════════════════════════

def _m(start, end, etype, rule="R"):
    return RegexMatch(start, end, "x" * (end - start), etype, 0.8, rule)


class TestResolveByPriority:
    def test_higher_priority_evicts_earlier_lower(self):
        phone = _m(0, 10, EntityType.PHONE)
        iban = _m(2, 8, EntityType.IBAN)
        assert resolve_by_priority([phone, iban]) == [iban]

    def test_equal_priority_keeps_first(self):
        first = _m(0, 10, EntityType.EMAIL, "A")
        second = _m(5, 12, EntityType.EMAIL, "B")
        assert resolve_by_priority([second, first]) == [first]

    def test_lower_priority_dropped(self):
        email = _m(0, 10, EntityType.EMAIL)
        date = _m(3, 6, EntityType.DATE)
        assert resolve_by_priority([email, date]) == [email]

    def test_disjoint_kept_sorted(self):
        a = _m(20, 25, EntityType.DATE)
        b = _m(0, 5, EntityType.PHONE)
        assert resolve_by_priority([a, b]) == [b, a]

    def test_empty(self):
        assert resolve_by_priority([]) == []


# ═══════════════════════════════════════════════════════════════════════════
# Engine behaviour
# ═══════════════════════════════════════════════════════════════════════════

class TestEngine:
    def test_empty_text(self):
        assert detect("") == []

    def test_failing_rule_is_skipped(self, caplog):
        def boom(_m, _t, _s):
            raise RuntimeError("broken validator")

        rules = [
            PatternRule("BROKEN", EntityType.ID_NUMBER, re.compile(r"\d+"), 0.5, boom),
            PatternRule("WORD", EntityType.ORG, re.compile(r"Acme"), 0.6),
        ]
        with caplog.at_level(logging.ERROR):
            matches = SwissEuDetector(rules).detect("Acme 123")
        assert [m.rule for m in matches] == ["WORD"]
        assert "BROKEN" in caplog.text

    def test_statistics(self):
        matches = [_m(0, 2, EntityType.PHONE), _m(5, 7, EntityType.PHONE), _m(9, 11, EntityType.DATE)]
        assert SwissEuDetector.statistics(matches) == {"PHONE": 2, "DATE": 1}

    def test_offsets_slice_original(self):
        text = "Herr Muster\nIBAN CH93 0076 2011 6238 5295 7\nTel. +41 79 123 45 67"
        for m in detect(text):
            assert text[m.start:m.end] == m.text
