"""Pass 3: refine confidence from the text around each entity.

Four weighted factors, each either matched or not:

  labelKeywords     0.25  a label such as "IBAN:" or "Tel." shortly before
  relatedEntities   0.30  an entity of a typically co-occurring type nearby
  documentPosition  0.15  not an identifier sitting in the header/footer
  repetition        0.20  the same text is reported more than once

The context score is the matched weight over the total weight; the
entity's confidence is scaled by ``0.7 + 0.6 * score`` (so between x0.7
and x1.3) and capped at 1.
"""

from __future__ import annotations

import logging

from piiguard.core.detection.passes.base import pipeline_config
from piiguard.models.schemas import Entity, EntityType, PipelineContext, ScoringFactor

logger = logging.getLogger(__name__)

T = EntityType

LABEL_WEIGHT = 0.25
RELATED_WEIGHT = 0.3
POSITION_WEIGHT = 0.15
REPETITION_WEIGHT = 0.2

_PERSON_LABELS = ("name", "nom", "vorname", "nachname", "herr", "frau", "mr", "mrs", "ms",
                  "dr", "prof", "monsieur", "madame")
_ORG_LABELS = ("firma", "company", "société", "gmbh", "ag", "sa", "sàrl", "ltd", "inc", "corp")
_ADDRESS_LABELS = ("adresse", "address", "anschrift", "wohnort", "domicile")
_VAT_LABELS = ("mwst", "tva", "iva", "vat", "ust", "uid", "steuer")

LABEL_KEYWORDS: dict[EntityType, tuple[str, ...]] = {
    T.PERSON: _PERSON_LABELS,
    T.PERSON_NAME: _PERSON_LABELS,
    T.ORG: _ORG_LABELS,
    T.ORGANIZATION: _ORG_LABELS,
    T.LOCATION: ("ort", "location", "lieu", "city", "ville", "stadt"),
    T.ADDRESS: _ADDRESS_LABELS + ("strasse", "rue", "street"),
    T.SWISS_ADDRESS: _ADDRESS_LABELS + ("ch-", "schweiz", "suisse"),
    T.EU_ADDRESS: _ADDRESS_LABELS + ("deutschland", "france", "österreich"),
    T.SWISS_AVS: ("avs", "ahv", "sozialversicherung", "assurance", "versicherungsnummer"),
    T.IBAN: ("iban", "konto", "compte", "account", "bankverbindung", "coordonnées bancaires"),
    T.SWISS_BANK_ACCOUNT: ("konto", "compte", "account", "bank"),
    T.PHONE: ("tel", "telefon", "téléphone", "phone", "mobile", "handy", "natel", "portable", "fax"),
    T.EMAIL: ("email", "e-mail", "mail", "courriel"),
    T.DATE: ("datum", "date", "geboren", "geburtsdatum", "né", "naissance", "born", "birthday"),
    T.AMOUNT: ("betrag", "montant", "amount", "total", "summe", "prix", "price", "chf", "eur"),
    T.VAT_NUMBER: _VAT_LABELS,
    T.SWISS_UID: _VAT_LABELS,
    T.EU_VAT: _VAT_LABELS,
    T.INVOICE_NUMBER: ("rechnung", "facture", "invoice", "rechnungsnummer", "numéro", "ref", "beleg"),
    T.PAYMENT_REF: ("referenz", "référence", "reference", "zahlungsreferenz", "qr"),
    T.QR_REFERENCE: ("qr", "referenz", "référence", "reference"),
    T.PASSPORT: ("pass", "passport", "passeport", "reisepass"),
    T.LICENSE_PLATE: ("kennzeichen", "plaque", "immatriculation", "plate"),
    T.SENDER: ("absender", "expéditeur", "sender", "from", "von"),
    T.RECIPIENT: ("empfänger", "destinataire", "recipient", "to", "an", "à"),
    T.SALUTATION_NAME: ("dear", "cher", "chère", "sehr geehrte", "liebe"),
    T.SIGNATURE: ("unterschrift", "signature", "signatur", "signed", "signé"),
}

_PEOPLE = (T.PERSON, T.PERSON_NAME)
_ORGS = (T.ORG, T.ORGANIZATION)
_ADDRESSES = (T.ADDRESS, T.SWISS_ADDRESS, T.EU_ADDRESS)

RELATED_TYPES: dict[EntityType, tuple[EntityType, ...]] = {
    T.PERSON: (T.PHONE, T.EMAIL, T.DATE) + _ADDRESSES,
    T.PERSON_NAME: (T.PHONE, T.EMAIL, T.DATE) + _ADDRESSES,
    T.ORG: (T.PHONE, T.EMAIL, T.VAT_NUMBER, T.SWISS_UID, T.IBAN) + _ADDRESSES,
    T.ORGANIZATION: (T.PHONE, T.EMAIL, T.VAT_NUMBER, T.SWISS_UID, T.IBAN) + _ADDRESSES,
    T.LOCATION: _ADDRESSES,
    T.ADDRESS: _PEOPLE + _ORGS + (T.PHONE,),
    T.SWISS_ADDRESS: _PEOPLE + _ORGS + (T.PHONE, T.SWISS_AVS),
    T.EU_ADDRESS: _PEOPLE + _ORGS + (T.PHONE,),
    T.SWISS_AVS: _PEOPLE + (T.DATE, T.SWISS_ADDRESS),
    T.IBAN: _PEOPLE + _ORGS + (T.AMOUNT,),
    T.PHONE: _PEOPLE + _ORGS + (T.EMAIL,) + _ADDRESSES,
    T.EMAIL: _PEOPLE + _ORGS + (T.PHONE,),
    T.DATE: _PEOPLE + (T.INVOICE_NUMBER, T.AMOUNT),
    T.AMOUNT: (T.DATE, T.INVOICE_NUMBER, T.IBAN, T.VAT_NUMBER),
    T.VAT_NUMBER: _ORGS + (T.AMOUNT, T.INVOICE_NUMBER),
    T.SWISS_UID: _ORGS + (T.AMOUNT, T.INVOICE_NUMBER),
    T.INVOICE_NUMBER: _ORGS + (T.DATE, T.AMOUNT),
    T.PAYMENT_REF: (T.AMOUNT, T.IBAN),
    T.QR_REFERENCE: (T.AMOUNT, T.IBAN, T.PAYMENT_REF),
    T.SENDER: _ORGS + _ADDRESSES + (T.PHONE, T.EMAIL),
    T.RECIPIENT: _PEOPLE + _ADDRESSES + (T.SALUTATION_NAME,),
    T.SALUTATION_NAME: _PEOPLE + (T.RECIPIENT,),
    T.SIGNATURE: _PEOPLE + (T.DATE,),
}

# Identifiers rarely live in letterheads or page footers
_BODY_TYPES = frozenset({T.SWISS_AVS, T.IBAN, T.PAYMENT_REF})


class ContextScoringPass:
    name = "context_scoring"
    order = 30

    def __init__(self, window_size: int = 50, enabled: bool = True):
        self.window_size = window_size
        self.enabled = enabled

    def execute(self, text: str, entities: list[Entity], context: PipelineContext) -> list[Entity]:
        cfg = pipeline_config(context)
        window = cfg.context_window_size or self.window_size

        out: list[Entity] = []
        boosted = 0
        for entity in entities:
            factors = self.score_entity(entity, text, entities, window)
            score = context_score(factors)
            confidence = min(1.0, entity.confidence * (0.7 + score * 0.6))
            if confidence > entity.confidence:
                boosted += 1
            out.append(entity.model_copy(update={
                "confidence": confidence,
                "metadata": entity.metadata.model_copy(update={
                    "context_score": score,
                    "context_factors": factors,
                }),
            }))

        if cfg.enable_epic8_features:
            context.metadata.context_boosted += boosted
        if cfg.debug:
            logger.debug(f"Context scoring boosted {boosted}/{len(entities)} entities")
        return out

    def score_entity(self, entity: Entity, text: str, entities: list[Entity], window: int) -> list[ScoringFactor]:
        return [
            _label_keywords(entity, text, window),
            _related_entities(entity, entities, window),
            _document_position(entity, text),
            _repetition(entity, entities),
        ]


def context_score(factors: list[ScoringFactor]) -> float:
    total = sum(f.max_score for f in factors)
    if total <= 0:
        return 0.5
    return sum(f.score for f in factors) / total


def _factor(name: str, weight: float, matched: bool, description: str) -> ScoringFactor:
    return ScoringFactor(
        name=name,
        score=weight if matched else 0.0,
        max_score=weight,
        matched=matched,
        description=description,
    )


def _label_keywords(entity: Entity, text: str, window: int) -> ScoringFactor:
    keywords = LABEL_KEYWORDS.get(entity.type, ())
    if not keywords:
        return _factor("labelKeywords", LABEL_WEIGHT, False, "No label keywords defined for this type")
    before = text[max(0, entity.start - window):entity.start].lower()
    hit = next((kw for kw in keywords if kw in before), None)
    if hit:
        return _factor("labelKeywords", LABEL_WEIGHT, True, f'Found keyword "{hit}" nearby')
    return _factor("labelKeywords", LABEL_WEIGHT, False, "No label keywords found")


def _related_entities(entity: Entity, entities: list[Entity], window: int) -> ScoringFactor:
    related = RELATED_TYPES.get(entity.type, ())
    if not related:
        return _factor("relatedEntities", RELATED_WEIGHT, False, "No related types defined")
    nearby = [
        other for other in entities
        if other.id != entity.id
        and other.type in related
        and min(abs(other.start - entity.end), abs(entity.start - other.end)) <= window
    ]
    if nearby:
        types = ", ".join(sorted({o.type.value for o in nearby}))
        return _factor("relatedEntities", RELATED_WEIGHT, True, f"{len(nearby)} related entities nearby ({types})")
    return _factor("relatedEntities", RELATED_WEIGHT, False, "No related entities nearby")


def _document_position(entity: Entity, text: str) -> ScoringFactor:
    position = entity.start / len(text) if text else 0.0
    zone = "header" if position < 0.1 else "footer" if position > 0.9 else None
    if zone and entity.type in _BODY_TYPES:
        return _factor("documentPosition", POSITION_WEIGHT, False, f"{entity.type.value} in {zone} (unusual position)")
    return _factor("documentPosition", POSITION_WEIGHT, True, f"Position {zone or 'body'}")


def _repetition(entity: Entity, entities: list[Entity]) -> ScoringFactor:
    count = sum(1 for e in entities if e.id != entity.id and e.type == entity.type and e.text == entity.text)
    if count:
        return _factor("repetition", REPETITION_WEIGHT, True, f"Entity repeated {count + 1} times")
    return _factor("repetition", REPETITION_WEIGHT, False, "Entity appears once")
