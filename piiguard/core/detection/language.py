"""Marker-word language detection for the detection pipeline.

Detects: English (en), French (fr), German (de).  Falls back to
``DEFAULT_LANGUAGE`` when there is no signal or when the best counts tie,
since most input documents are Swiss-German business correspondence.
"""

from __future__ import annotations

import logging
import re

logger = logging.getLogger(__name__)

SUPPORTED_LANGUAGES = ("en", "fr", "de")
DEFAULT_LANGUAGE = "de"

_SAMPLE_SIZE = 2_000          # chars to sample

# ---------------------------------------------------------------------------
# Marker words (closed set of function words per language)
# ---------------------------------------------------------------------------

_MARKERS: dict[str, tuple[str, ...]] = {
    "de": ("und", "der", "die", "das", "ist", "für", "mit", "von", "strasse"),
    "fr": ("et", "le", "la", "les", "de", "du", "des", "pour", "rue", "avec"),
    "en": ("the", "and", "of", "to", "in", "is", "for", "with", "street"),
}

_MARKER_RE: dict[str, re.Pattern] = {
    lang: re.compile(r"\b(?:" + "|".join(map(re.escape, words)) + r")\b")
    for lang, words in _MARKERS.items()
}


def count_markers(text: str) -> dict[str, int]:
    """Count marker-word hits per language in the sampled, lowercased text."""
    sample = text[:_SAMPLE_SIZE].lower()
    return {lang: len(rx.findall(sample)) for lang, rx in _MARKER_RE.items()}


def detect_language(text: str, default: str = DEFAULT_LANGUAGE) -> str:
    """Return ``"en"``, ``"fr"`` or ``"de"`` for *text*.

    The language with the strictly highest marker count wins; zero signal
    or a tie for first place yields *default*.
    """
    counts = count_markers(text)
    best = max(counts.values())
    leaders = [lang for lang, n in counts.items() if n == best]

    if best == 0 or len(leaders) > 1:
        lang = default
    else:
        lang = leaders[0]

    logger.debug(f"Language detection: {lang} (counts={counts})")
    return lang
