"""Pattern/checksum detector engine for Swiss and EU PII.

Runs every rule of ``regex_patterns.RULES`` over the text, then:

  - discards matches whose validator rejects them (checksum, structure);
  - drops phone-shaped matches that are really product/SKU codes;
  - reports only the designated capturing group for context-anchored
    rules ("Hans Muster, Tel." -> "Hans Muster");
  - resolves overlaps by type priority, so an e-mail that also satisfies a
    looser identifier pattern is reported once, as an e-mail.

A rule that fails at match time is logged and skipped; the engine never
raises on input text.
"""

from __future__ import annotations

import logging
from typing import Iterable, NamedTuple

from piiguard.core.detection import validators as v
from piiguard.core.detection.regex_patterns import RULES, TYPE_PRIORITY, PatternRule
from piiguard.models.schemas import EntityType

logger = logging.getLogger(__name__)


class RegexMatch(NamedTuple):
    start: int
    end: int
    text: str
    entity_type: EntityType
    confidence: float
    rule: str

    @property
    def priority(self) -> int:
        return TYPE_PRIORITY.get(self.entity_type, 0)


# ═══════════════════════════════════════════════════════════════════════════
# Overlap resolution
# ═══════════════════════════════════════════════════════════════════════════

def resolve_by_priority(matches: Iterable[RegexMatch]) -> list[RegexMatch]:
    """Keep a non-overlapping subset, preferring higher-priority types.

    Matches are visited by start offset, then priority (desc), then length
    (desc).  A match overlapping an accepted match of equal or higher
    priority is dropped; otherwise every overlapping accepted match of lower
    priority is evicted in its favour.
    """
    ordered = sorted(matches, key=lambda m: (m.start, -m.priority, -(m.end - m.start)))
    accepted: list[RegexMatch] = []

    for match in ordered:
        overlapping = [a for a in accepted if match.start < a.end and a.start < match.end]
        if any(a.priority >= match.priority for a in overlapping):
            continue
        for a in overlapping:
            accepted.remove(a)
        accepted.append(match)

    accepted.sort(key=lambda m: m.start)
    return accepted


# ═══════════════════════════════════════════════════════════════════════════
# Engine
# ═══════════════════════════════════════════════════════════════════════════

class SwissEuDetector:
    """Registry-driven matcher: one pass per rule, then priority dedup."""

    def __init__(self, rules: list[PatternRule] | None = None):
        self.rules = list(RULES if rules is None else rules)

    def detect(self, text: str) -> list[RegexMatch]:
        if not text:
            return []

        raw: list[RegexMatch] = []
        for rule in self.rules:
            try:
                raw.extend(self._run_rule(rule, text))
            except Exception:
                logger.exception(f"Pattern rule {rule.key} failed; skipping")

        return resolve_by_priority(raw)

    @staticmethod
    def _run_rule(rule: PatternRule, text: str) -> list[RegexMatch]:
        found: list[RegexMatch] = []
        for m in rule.pattern.finditer(text):
            group = rule.group if rule.group and m.group(rule.group) else 0
            start, end = m.start(group), m.end(group)
            if start >= end:
                continue
            matched = m.group(group)

            # ── Product / SKU code suppression ──
            if rule.suppress_product_codes and v.is_product_code(text, m.start(), m.end()):
                continue

            # ── Validation gate ──
            if rule.validator is not None and not rule.validator(matched, text, start):
                continue

            found.append(RegexMatch(
                start=start,
                end=end,
                text=matched,
                entity_type=rule.entity_type,
                confidence=rule.confidence,
                rule=rule.key,
            ))
        return found

    @staticmethod
    def statistics(matches: Iterable[RegexMatch]) -> dict[str, int]:
        stats: dict[str, int] = {}
        for m in matches:
            stats[m.entity_type.value] = stats.get(m.entity_type.value, 0) + 1
        return stats


_default_detector = SwissEuDetector()


def detect(text: str) -> list[RegexMatch]:
    """Detect with the built-in rule table."""
    return _default_detector.detect(text)
