"""Pydantic data models for the PII detection pipeline."""

from __future__ import annotations

import enum
import time
import uuid
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


def new_id() -> str:
    return uuid.uuid4().hex[:12]


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class EntityType(str, enum.Enum):
    """Categories of personally identifiable information."""
    PERSON = "PERSON"
    PERSON_NAME = "PERSON_NAME"
    ORG = "ORG"
    ORGANIZATION = "ORGANIZATION"
    LOCATION = "LOCATION"
    ADDRESS = "ADDRESS"
    SWISS_ADDRESS = "SWISS_ADDRESS"
    EU_ADDRESS = "EU_ADDRESS"
    SWISS_AVS = "SWISS_AVS"
    IBAN = "IBAN"
    PHONE = "PHONE"
    EMAIL = "EMAIL"
    DATE = "DATE"
    AMOUNT = "AMOUNT"
    VAT_NUMBER = "VAT_NUMBER"
    INVOICE_NUMBER = "INVOICE_NUMBER"
    PAYMENT_REF = "PAYMENT_REF"
    QR_REFERENCE = "QR_REFERENCE"
    ID_NUMBER = "ID_NUMBER"
    SWISS_BANK_ACCOUNT = "SWISS_BANK_ACCOUNT"
    SWISS_UID = "SWISS_UID"
    EU_VAT = "EU_VAT"
    PASSPORT = "PASSPORT"
    LICENSE_PLATE = "LICENSE_PLATE"
    SENDER = "SENDER"
    RECIPIENT = "RECIPIENT"
    SALUTATION_NAME = "SALUTATION_NAME"
    SIGNATURE = "SIGNATURE"
    UNKNOWN = "UNKNOWN"


ADDRESS_TYPES: frozenset[EntityType] = frozenset({
    EntityType.ADDRESS,
    EntityType.SWISS_ADDRESS,
    EntityType.EU_ADDRESS,
    EntityType.LOCATION,
})


class EntitySource(str, enum.Enum):
    """Which detection layer produced the entity."""
    ML = "ML"
    RULE = "RULE"
    BOTH = "BOTH"          # ML and RULE agree on the span
    LINKED = "LINKED"      # produced by address linking
    MANUAL = "MANUAL"


class AddressComponentType(str, enum.Enum):
    STREET_NAME = "STREET_NAME"
    STREET_NUMBER = "STREET_NUMBER"
    POSTAL_CODE = "POSTAL_CODE"
    CITY = "CITY"
    COUNTRY = "COUNTRY"
    REGION = "REGION"


class AddressPattern(str, enum.Enum):
    """Recognized ordering/composition of a grouped address."""
    SWISS = "SWISS"                # street, postal, city (street first)
    EU = "EU"                      # street, postal, city, country
    ALTERNATIVE = "ALTERNATIVE"    # postal/city first, then street
    PARTIAL = "PARTIAL"
    NONE = "NONE"


class ValidationStatus(str, enum.Enum):
    VALID = "valid"
    PARTIAL = "partial"
    UNCERTAIN = "uncertain"


class DocumentType(str, enum.Enum):
    INVOICE = "INVOICE"
    LETTER = "LETTER"
    FORM = "FORM"
    CONTRACT = "CONTRACT"
    REPORT = "REPORT"
    UNKNOWN = "UNKNOWN"


# ---------------------------------------------------------------------------
# Scoring breakdowns
# ---------------------------------------------------------------------------

class ScoringFactor(BaseModel):
    """One weighted factor of an address or context score."""
    name: str
    score: float = 0.0
    max_score: float = 0.0
    matched: bool = False
    description: str = ""


class AddressBreakdown(BaseModel):
    """Component texts of a grouped address, keyed by role."""
    street: Optional[str] = None
    number: Optional[str] = None
    postal: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    region: Optional[str] = None


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------

class EntityMetadata(BaseModel):
    """Pass-specific annotations attached to an entity.

    Known keys are typed fields; optional passes may attach further keys,
    which pydantic keeps as extra attributes.
    """
    model_config = ConfigDict(extra="allow")

    pattern: Optional[str] = None
    extracted_number: Optional[str] = None
    amount: Optional[float] = None
    currency: Optional[str] = None
    reference_type: Optional[str] = None
    position_boost: Optional[str] = None
    position_zone: Optional[str] = None
    document_type: Optional[DocumentType] = None
    validation_status: Optional[str] = None
    validation_reason: Optional[str] = None
    is_grouped_address: bool = False
    pattern_type: Optional[AddressPattern] = None
    breakdown: Optional[AddressBreakdown] = None
    component_count: Optional[int] = None
    scoring_factors: list[ScoringFactor] = []
    auto_anonymize: Optional[bool] = None
    context_score: Optional[float] = None
    context_factors: list[ScoringFactor] = []


class AddressComponent(BaseModel):
    """A fragment of an address (street, number, postal code, ...)."""
    id: str = Field(default_factory=new_id)
    type: AddressComponentType
    text: str
    start: int
    end: int
    confidence: float = Field(default=0.7, ge=0.0, le=1.0)
    linked: bool = False
    linked_to_group_id: Optional[str] = None


class Entity(BaseModel):
    """A typed, confidence-scored span of PII in the original document."""
    id: str = Field(default_factory=new_id)
    type: EntityType
    text: str
    start: int
    end: int
    confidence: float = Field(ge=0.0, le=1.0)
    source: EntitySource = EntitySource.RULE
    flagged_for_review: bool = False
    selected: bool = True
    components: list[AddressComponent] = []
    metadata: EntityMetadata = Field(default_factory=EntityMetadata)

    @property
    def length(self) -> int:
        return self.end - self.start

    def overlaps(self, other: "Entity") -> bool:
        return self.start < other.end and other.start < self.end


class GroupedAddress(BaseModel):
    """A set of linked address components forming one physical address."""
    id: str = Field(default_factory=new_id)
    text: str
    start: int
    end: int
    pattern: AddressPattern
    components: AddressBreakdown
    component_entities: list[AddressComponent] = []
    confidence: float = 0.0
    validation_status: ValidationStatus = ValidationStatus.UNCERTAIN


class ScoredAddress(GroupedAddress):
    """GroupedAddress enriched with the multi-factor score."""
    final_confidence: float = 0.0
    scoring_factors: list[ScoringFactor] = []
    flagged_for_review: bool = False
    auto_anonymize: bool = False


# ---------------------------------------------------------------------------
# Pipeline state
# ---------------------------------------------------------------------------

class DocumentClassification(BaseModel):
    type: DocumentType = DocumentType.UNKNOWN
    confidence: float = 0.0
    secondary_type: Optional[DocumentType] = None
    features: list[ScoringFactor] = []
    language: str = "en"


class ContextMetadata(BaseModel):
    """Cross-pass hints written by earlier passes and read by later ones."""
    model_config = ConfigDict(extra="allow")

    document_classification: Optional[DocumentClassification] = None
    document_type: Optional[DocumentType] = None
    document_language: Optional[str] = None
    deny_list_filtered: dict[str, int] = {}
    context_boosted: int = 0


class PassResult(BaseModel):
    """Entity delta and timing for a single pass execution."""
    pass_name: str
    entities_added: int = 0
    entities_modified: int = 0
    entities_removed: int = 0
    duration_ms: float = 0.0
    error: Optional[str] = None


class NormalizationResult(BaseModel):
    normalized_text: str
    index_map: list[int]


class PipelineContext(BaseModel):
    """Per-document transient state threaded through every pass."""
    document_id: str = Field(default_factory=new_id)
    language: str = "de"
    start_time: float = Field(default_factory=time.perf_counter)
    pass_results: dict[str, PassResult] = {}
    normalization: Optional[NormalizationResult] = None
    original_text: str = ""
    config: Any = None
    metadata: ContextMetadata = Field(default_factory=ContextMetadata)


class Epic8Metadata(BaseModel):
    deny_list_filtered: dict[str, int] = {}
    context_boosted: int = 0


class DetectionMetadata(BaseModel):
    total_duration_ms: float = 0.0
    pass_results: list[PassResult] = []
    entity_counts: dict[str, int] = {}
    flagged_count: int = 0
    pass_timings: dict[str, float] = {}
    epic8: Optional[Epic8Metadata] = None


class DetectionResult(BaseModel):
    """Final output of DetectionPipeline.process()."""
    entities: list[Entity] = []
    document_type: DocumentType = DocumentType.UNKNOWN
    language: str = "de"
    metadata: DetectionMetadata = Field(default_factory=DetectionMetadata)


# ---------------------------------------------------------------------------
# API
# ---------------------------------------------------------------------------

class DetectRequest(BaseModel):
    """Body of ``POST /api/detect``; ``config`` holds PipelineConfig overrides."""
    model_config = ConfigDict(populate_by_name=True)

    text: str
    document_id: Optional[str] = Field(default=None, alias="documentId")
    language: Optional[str] = Field(default=None, pattern="^(en|fr|de)$")
    config: dict[str, Any] = {}
