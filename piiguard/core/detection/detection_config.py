"""Detection component configuration and tuning constants.

Thresholds used by more than one module live here as documented
constants; per-component settings are pydantic models so that overrides
are range-checked the same way ``PipelineConfig`` is.

Tuning Guide:
- Larger proximity thresholds -> more components linked into one address
  (fewer fragments, more accidental merges across unrelated lines)
- Higher review thresholds -> more entities sent to manual review
"""

from __future__ import annotations

from pydantic import BaseModel, Field

# =============================================================================
# ADDRESS LINKING
# =============================================================================

PROXIMITY_THRESHOLD: int = 50
"""Max character gap between consecutive address components on one line."""

NEWLINE_THRESHOLD: int = 100
"""Max gap when the text between two components contains a line break.
Postal addresses usually wrap after the street line."""

MIN_COMPONENTS: int = 2
"""A proximity group needs at least this many components to become an address."""

MAX_COMPONENTS: int = 6
"""Upper bound on components per address (street, number, postal, city,
country, region)."""

# =============================================================================
# REVIEW / AUTO-ANONYMIZE
# =============================================================================

ADDRESS_REVIEW_THRESHOLD: float = 0.6
"""Scored addresses strictly below this are flagged for review."""

ADDRESS_AUTO_ANONYMIZE_THRESHOLD: float = 0.8
"""Scored addresses at or above this are anonymized without review."""

# =============================================================================
# DOCUMENT ZONES
# =============================================================================

HEADER_ZONE: float = 0.2
"""Relative position (start / len(text)) below which a span is in the header.
Invoice numbers, dates and sender blocks cluster here."""

FOOTER_ZONE: float = 0.8
"""Relative position above which a span is in the footer (payment slip,
signature)."""


class LinkerConfig(BaseModel):
    proximity_threshold: int = Field(default=PROXIMITY_THRESHOLD, ge=0)
    newline_threshold: int = Field(default=NEWLINE_THRESHOLD, ge=0)
    min_components: int = Field(default=MIN_COMPONENTS, ge=1)
    max_components: int = Field(default=MAX_COMPONENTS, ge=1)


class ScorerWeights(BaseModel):
    component_completeness: float = 0.2   # per distinct component type, capped at 1.0
    pattern_match: float = 0.3
    postal_code_validation: float = 0.2
    city_validation: float = 0.1
    country_present: float = 0.1


class ScorerConfig(BaseModel):
    review_threshold: float = Field(default=ADDRESS_REVIEW_THRESHOLD, ge=0.0, le=1.0)
    auto_anonymize_threshold: float = Field(default=ADDRESS_AUTO_ANONYMIZE_THRESHOLD, ge=0.0, le=1.0)
    weights: ScorerWeights = Field(default_factory=ScorerWeights)


class InvoiceRulesConfig(BaseModel):
    """Which invoice-specific extractors run, and how much position counts."""
    extract_amounts: bool = False          # amounts are rarely PII on their own
    extract_vat_numbers: bool = True
    extract_payment_refs: bool = True
    header_boost: float = Field(default=0.2, ge=0.0, le=1.0)
    table_boost: float = Field(default=0.1, ge=0.0, le=1.0)


class LetterRulesConfig(BaseModel):
    detect_salutations: bool = True
    detect_signatures: bool = True
    detect_sender_recipient: bool = True
    position_boost: float = Field(default=0.15, ge=0.0, le=1.0)


class ClassifierConfig(BaseModel):
    """Document-type classifier settings."""
    min_confidence: float = Field(default=0.25, ge=0.0, le=1.0)
    max_text_length: int = Field(default=10_000, ge=100)
    score_normalizer: float = Field(default=3.0, gt=0.0)
