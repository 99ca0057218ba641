"""Offset-preserving text normalization.

Canonicalizes text before detection (Unicode compatibility forms, invisible
characters, obfuscated e-mail addresses, "+41 (0) 44" phone prefixes) and
keeps an index map so every position in the normalized text can be traced
back to the original document:

    index_map[i] == position in the original text that produced
                    normalized character i

Characters inserted by a replacement map to the first original position of
the replaced run.  Spans are translated back with :func:`map_span`.
"""

from __future__ import annotations

import re
import unicodedata

from piiguard.models.schemas import NormalizationResult

ZERO_WIDTH_CHARS = frozenset("\u200b\u200c\u200d\u2060\ufeff")
NBSP_CHARS = frozenset("\u00a0\u2007\u202f")

_IC = re.IGNORECASE

# (pattern, replacement), applied in order, more specific forms first.
# Bare " at " / " dot " / " Punkt " never match ("call us at +41").
EMAIL_PATTERNS: list[tuple[re.Pattern, str]] = [
    (re.compile(r"\s*\(at\)\s*", _IC), "@"),
    (re.compile(r"\s*\[at\]\s*", _IC), "@"),
    (re.compile(r"\s*\{at\}\s*", _IC), "@"),
    (re.compile(r"\s*\(dot\)\s*", _IC), "."),
    (re.compile(r"\s*\[dot\]\s*", _IC), "."),
    (re.compile(r"\s*\{dot\}\s*", _IC), "."),
    # French
    (re.compile(r"\s*\(arobase\)\s*", _IC), "@"),
    (re.compile(r"\s*\barobase\b\s*", _IC), "@"),
    (re.compile(r"\s*\(point\)\s*", _IC), "."),
    # German
    (re.compile(r"\s*\(Klammeraffe\)\s*", _IC), "@"),
    (re.compile(r"\s*\bKlammeraffe\b\s*", _IC), "@"),
    (re.compile(r"\s*\(Punkt\)\s*", _IC), "."),
]

PHONE_PATTERNS: list[tuple[re.Pattern, str]] = [
    # +41 (0) 79 -> +41 79
    (re.compile(r"(\+\d{1,3})\s*\(0\)\s*"), r"\1 "),
]


class TextNormalizer:
    """Pure text canonicalizer with an original-offset index map."""

    def __init__(
        self,
        form: str = "NFKC",
        normalize_unicode: bool = True,
        normalize_whitespace: bool = True,
        handle_emails: bool = True,
        handle_phones: bool = True,
    ):
        self.form = form
        self.normalize_unicode = normalize_unicode
        self.normalize_whitespace = normalize_whitespace
        self.handle_emails = handle_emails
        self.handle_phones = handle_phones

    def normalize(self, text: str) -> NormalizationResult:
        if not text:
            return NormalizationResult(normalized_text="", index_map=[])

        if self.normalize_unicode:
            chars, index_map = self._unicode(text)
        else:
            chars, index_map = list(text), list(range(len(text)))

        if self.normalize_whitespace:
            chars, index_map = self._whitespace(chars, index_map)

        out = "".join(chars)
        if self.handle_emails:
            out, index_map = _apply_patterns(out, index_map, EMAIL_PATTERNS)
        if self.handle_phones:
            out, index_map = _apply_patterns(out, index_map, PHONE_PATTERNS)

        return NormalizationResult(normalized_text=out, index_map=index_map)

    def _unicode(self, text: str) -> tuple[list[str], list[int]]:
        # Per-character normalization keeps the map exact; composition
        # across characters (e.g. base + combining mark) is not attempted.
        chars: list[str] = []
        index_map: list[int] = []
        for i, ch in enumerate(text):
            norm = unicodedata.normalize(self.form, ch) if ord(ch) > 0x7F else ch
            for nc in norm:
                chars.append(nc)
                index_map.append(i)
        return chars, index_map

    @staticmethod
    def _whitespace(chars: list[str], index_map: list[int]) -> tuple[list[str], list[int]]:
        out_chars: list[str] = []
        out_map: list[int] = []
        for ch, orig in zip(chars, index_map):
            if ch in ZERO_WIDTH_CHARS:
                continue
            out_chars.append(" " if ch in NBSP_CHARS else ch)
            out_map.append(orig)
        return out_chars, out_map


def _apply_patterns(
    text: str,
    index_map: list[int],
    patterns: list[tuple[re.Pattern, str]],
) -> tuple[str, list[int]]:
    for pattern, replacement in patterns:
        pieces: list[str] = []
        new_map: list[int] = []
        cursor = 0
        for m in pattern.finditer(text):
            if m.end() == m.start():
                continue
            pieces.append(text[cursor:m.start()])
            new_map.extend(index_map[cursor:m.start()])
            repl = m.expand(replacement)
            pieces.append(repl)
            new_map.extend([index_map[m.start()]] * len(repl))
            cursor = m.end()
        if cursor == 0 and not pieces:
            continue
        pieces.append(text[cursor:])
        new_map.extend(index_map[cursor:])
        text, index_map = "".join(pieces), new_map
    return text, index_map


def map_span(start: int, end: int, index_map: list[int]) -> tuple[int, int]:
    """Translate a normalized ``[start, end)`` span to original offsets."""
    if not index_map:
        return start, end

    n = len(index_map)
    mapped_start = index_map[start] if start < n else index_map[-1]

    if end <= 0:
        mapped_end = 0
    elif end > n:
        mapped_end = index_map[-1] + 1
    else:
        mapped_end = index_map[end - 1] + 1

    return mapped_start, mapped_end


default_normalizer = TextNormalizer()


def normalize(text: str) -> NormalizationResult:
    return default_normalizer.normalize(text)
