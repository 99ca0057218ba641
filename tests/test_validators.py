"""Tests for checksum and structural validators.

Covers:
  - IBAN shape, per-country length and mod-97
  - ISO 11649 creditor references
  - Swiss AVS (756 prefix + EAN-13)
  - graded results used by the format validation pass
  - phone product-code suppression
  - Swiss postal code + city, including year false positives
"""

import pytest

from piiguard.core.detection import validators as v


# ═══════════════════════════════════════════════════════════════════════════
# IBAN
# ═══════════════════════════════════════════════════════════════════════════

class TestIban:
    def test_swiss_iban_formatted(self):
        assert v.validate_iban("CH93 0076 2011 6238 5295 7")

    def test_swiss_iban_compact(self):
        assert v.validate_iban("CH9300762011623852957")

    def test_other_countries(self):
        assert v.validate_iban("DE89370400440532013000")
        assert v.validate_iban("FR76 3000 6000 0112 3456 7890 189")

    @pytest.mark.parametrize("position", range(4, 21))
    def test_single_digit_change_invalidates(self, position):
        iban = "CH9300762011623852957"
        digit = iban[position]
        altered = iban[:position] + str((int(digit) + 1) % 10) + iban[position + 1:]
        assert not v.validate_iban(altered)

    def test_wrong_length_for_country(self):
        # 20 chars; Swiss IBANs are 21
        assert not v.validate_iban("CH930076201162385295")

    def test_unknown_country(self):
        assert not v.validate_iban("XX9300762011623852957")

    def test_garbage(self):
        assert not v.validate_iban("")
        assert not v.validate_iban("hello world")

    def test_graded_result(self):
        assert v.iban_result("CH93 0076 2011 6238 5295 7").confidence == v.CHECKSUM_VALID
        bad = v.iban_result("CH930076201162385295")
        assert not bad.is_valid
        assert "length" in bad.reason

    def test_mod97_digit_by_digit(self):
        assert v.mod97("97") == 0
        assert v.mod97("98") == 1
        assert v.mod97("1" * 60) == int("1" * 60) % 97


class TestCreditorReference:
    def test_valid(self):
        assert v.validate_creditor_reference("RF18 5390 0754 7034")

    def test_bad_check_digits(self):
        assert not v.validate_creditor_reference("RF19 5390 0754 7034")

    def test_not_rf(self):
        assert not v.validate_creditor_reference("XY18539007547034")


# ═══════════════════════════════════════════════════════════════════════════
# AVS
# ═══════════════════════════════════════════════════════════════════════════

class TestSwissAvs:
    def test_valid_with_dots(self):
        assert v.validate_swiss_avs("756.9217.0769.85")

    def test_valid_without_separators(self):
        assert v.validate_swiss_avs("7569217076985")

    def test_wrong_check_digit(self):
        assert not v.validate_swiss_avs("756.9217.0769.84")

    def test_wrong_prefix(self):
        assert not v.validate_swiss_avs("757.9217.0769.85")
        assert v.avs_result("757.9217.0769.85").reason.startswith("Does not start")

    def test_wrong_length(self):
        assert not v.validate_swiss_avs("756.9217.0769.8")

    def test_ean13(self):
        assert v.ean13_check("7569217076985")
        assert not v.ean13_check("756921707698")


# ═══════════════════════════════════════════════════════════════════════════
# Phone, e-mail, dates
# ═══════════════════════════════════════════════════════════════════════════

class TestPhone:
    def test_swiss_mobile_is_format_valid(self):
        result = v.phone_result("+41 79 123 45 67")
        assert result.is_valid
        assert result.confidence == v.FORMAT_VALID

    def test_landline_moderate(self):
        result = v.phone_result("044 123 45 67")
        assert result.is_valid
        assert result.confidence == v.MODERATE

    def test_too_short(self):
        assert not v.phone_result("12 34").is_valid

    def test_repeated_digits_rejected(self):
        assert not v.validate_phone_number("0000000000")

    def test_product_code_context(self):
        text = "Bestellung SKU-044-123-45-67 erhalten"
        start = text.index("044")
        assert v.is_product_code(text, start, start + len("044-123-45-67"))

    def test_plain_phone_is_not_product_code(self):
        text = "Tel. 044 123 45 67"
        start = text.index("044")
        assert not v.is_product_code(text, start, len(text))


class TestEmail:
    def test_valid(self):
        assert v.validate_email("hans.muster@example.ch")
        assert v.email_result("hans.muster@example.ch").is_valid

    def test_double_at(self):
        assert not v.validate_email("a@b@example.ch")

    def test_consecutive_dots(self):
        assert not v.email_result("hans..muster@example.ch").is_valid


class TestDates:
    def test_swiss_date(self):
        assert v.validate_date("15.03.2024")

    def test_out_of_range(self):
        assert not v.validate_date("32.01.2024")
        assert not v.validate_date("15.13.2024")
        assert not v.validate_date("15.03.1850")

    def test_graded_named_month(self):
        assert v.date_result("15. März 2024").is_valid

    def test_graded_impossible_day(self):
        assert not v.date_result("31.02.2024").is_valid


# ═══════════════════════════════════════════════════════════════════════════
# Swiss postal code + city
# ═══════════════════════════════════════════════════════════════════════════

class TestSwissAddress:
    def test_valid(self):
        assert v.validate_swiss_address("8001 Zürich")

    def test_year_followed_by_month(self):
        assert not v.validate_swiss_address("2024 Januar")

    def test_year_followed_by_report_word(self):
        assert not v.validate_swiss_address("2023 Rapport")

    def test_known_city_in_year_range(self):
        assert v.validate_swiss_address("1950 Sion")

    def test_year_preceded_by_date_keyword(self):
        text = "Gültig ab 2024 Muster"
        assert not v.validate_swiss_address("2024 Muster", text, text.index("2024"))

    def test_city_too_short(self):
        assert not v.validate_swiss_address("8001 Zh")


class TestStructuredNames:
    def test_street_address(self):
        assert v.validate_street_address("Rue du Lac 12")
        assert not v.validate_street_address("Case postale 12")

    def test_person_name(self):
        assert v.validate_person_name("Hans Muster")
        assert not v.validate_person_name("Hans")
        assert not v.validate_person_name("Sehr Geehrte")
