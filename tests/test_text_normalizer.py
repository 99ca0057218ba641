"""Tests for the offset-preserving text normalizer."""

from piiguard.core.detection.text_normalizer import TextNormalizer, map_span, normalize


class TestNormalize:
    def test_empty(self):
        result = normalize("")
        assert result.normalized_text == ""
        assert result.index_map == []

    def test_plain_ascii_unchanged(self):
        result = normalize("Hans Muster")
        assert result.normalized_text == "Hans Muster"
        assert result.index_map == list(range(11))

    def test_zero_width_removed(self):
        result = normalize("a\u200bb\ufeffc")
        assert result.normalized_text == "abc"
        assert result.index_map == [0, 2, 4]

    def test_nbsp_becomes_space(self):
        result = normalize("CHF\u00a0100")
        assert result.normalized_text == "CHF 100"
        assert len(result.index_map) == len(result.normalized_text)

    def test_email_deobfuscation(self):
        result = normalize("max (at) example (dot) com")
        assert result.normalized_text == "max@example.com"

    def test_german_email_deobfuscation(self):
        assert normalize("info(Klammeraffe)firma(Punkt)ch").normalized_text == "info@firma.ch"

    def test_bare_at_is_kept(self):
        text = "call us at +41 44 123 45 67"
        assert normalize(text).normalized_text == text

    def test_phone_trunk_prefix(self):
        assert normalize("+41 (0) 44 123 45 67").normalized_text == "+41 44 123 45 67"

    def test_index_map_length_matches(self):
        result = normalize("x\u200b (at) y\u00a0(dot) z")
        assert len(result.index_map) == len(result.normalized_text)

    def test_disabled_steps(self):
        normalizer = TextNormalizer(handle_emails=False, handle_phones=False)
        assert normalizer.normalize("max (at) example.com").normalized_text == "max (at) example.com"


class TestMapSpan:
    def test_identity_without_map(self):
        assert map_span(3, 7, []) == (3, 7)

    def test_span_through_deobfuscated_email(self):
        original = "Mail: max (at) example (dot) com."
        result = normalize(original)
        start = result.normalized_text.index("max@")
        end = start + len("max@example.com")
        o_start, o_end = map_span(start, end, result.index_map)
        assert original[o_start:o_end] == "max (at) example (dot) com"

    def test_span_after_removed_character(self):
        original = "a\u200bHans Muster"
        result = normalize(original)
        start = result.normalized_text.index("Hans")
        o_start, o_end = map_span(start, start + 11, result.index_map)
        assert original[o_start:o_end] == "Hans Muster"

    def test_end_past_map_is_clamped(self):
        index_map = [0, 1, 2]
        assert map_span(1, 10, index_map) == (1, 3)
