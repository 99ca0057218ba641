"""Document type classifier (invoice, letter, form, contract, report).

Scores every type from three signals:

  - keyword hits in the document's language, weighted by keyword length
    and (logarithmically) by hit count;
  - structural patterns ("Rechnung Nr. 123", "Article 4", "[ ]");
  - position cues: an invoice title or salutation in the first five
    lines, a closing formula in the last five.

The best type wins when its normalized score clears ``min_confidence``.
"""

from __future__ import annotations

import logging
import math
import re
from typing import Optional

from piiguard.core.detection.detection_config import ClassifierConfig
from piiguard.models.schemas import DocumentClassification, DocumentType, ScoringFactor

logger = logging.getLogger(__name__)

D = DocumentType

# ---------------------------------------------------------------------------
# Keywords per type and language
# ---------------------------------------------------------------------------

DOCUMENT_KEYWORDS: dict[DocumentType, dict[str, list[str]]] = {
    D.INVOICE: {
        "en": ["invoice", "bill", "payment due", "amount due", "subtotal", "total", "tax", "vat",
               "qty", "quantity", "unit price", "invoice number", "invoice date", "due date",
               "payment terms", "remittance"],
        "fr": ["facture", "montant", "total", "tva", "quantité", "prix unitaire", "numéro de facture",
               "date de facture", "échéance", "règlement", "net à payer", "ht", "ttc"],
        "de": ["rechnung", "rechnungsnummer", "betrag", "mwst", "mehrwertsteuer", "gesamtbetrag",
               "menge", "einzelpreis", "rechnungsdatum", "zahlbar", "fällig", "netto", "brutto"],
        "it": ["fattura", "importo", "totale", "iva", "quantità", "prezzo unitario",
               "numero fattura", "data fattura", "scadenza"],
    },
    D.LETTER: {
        "en": ["dear", "sincerely", "regards", "yours truly", "yours faithfully", "best regards",
               "kind regards", "to whom it may concern", "enclosed", "please find", "i am writing",
               "we are writing", "thank you for", "re:", "subject:"],
        "fr": ["cher", "chère", "madame", "monsieur", "cordialement", "salutations",
               "veuillez agréer", "je vous prie", "meilleures salutations", "bien à vous",
               "ci-joint", "je vous écris", "nous vous écrivons", "objet:", "concerne:"],
        "de": ["sehr geehrte", "sehr geehrter", "liebe", "lieber", "mit freundlichen grüßen",
               "mit freundlichen grüssen", "hochachtungsvoll", "beste grüße", "beste grüsse",
               "anbei", "ich schreibe ihnen", "wir schreiben ihnen", "betreff:", "betrifft:"],
        "it": ["gentile", "egregio", "caro", "cara", "cordiali saluti", "distinti saluti",
               "cordialmente", "in allegato", "le scrivo", "oggetto:"],
    },
    D.FORM: {
        "en": ["please fill", "please complete", "check box", "checkbox", "select one", "tick",
               "circle", "enter your", "your name", "your address", "date of birth", "signature",
               "sign here", "required field", "mandatory", "optional", "n/a", "not applicable",
               "yes/no", "yes / no"],
        "fr": ["veuillez remplir", "cochez", "case à cocher", "sélectionnez", "entrez", "votre nom",
               "votre adresse", "date de naissance", "signature", "champ obligatoire", "facultatif",
               "oui/non", "non applicable"],
        "de": ["bitte ausfüllen", "ankreuzen", "kontrollkästchen", "wählen sie", "ihr name",
               "ihre adresse", "geburtsdatum", "unterschrift", "pflichtfeld", "optional",
               "ja/nein", "nicht zutreffend", "n.z."],
        "it": ["compilare", "casella", "selezionare", "inserire", "nome", "indirizzo",
               "data di nascita", "firma", "obbligatorio", "facoltativo", "sì/no"],
    },
    D.CONTRACT: {
        "en": ["agreement", "contract", "parties", "whereas", "hereby", "herein", "hereto",
               "thereto", "clause", "article", "section", "terms and conditions", "effective date",
               "termination", "obligations", "warranties", "indemnification", "governing law",
               "jurisdiction", "witness", "executed", "binding"],
        "fr": ["contrat", "accord", "parties", "attendu que", "par les présentes", "ci-après",
               "clause", "article", "conditions générales", "date d'entrée en vigueur",
               "résiliation", "obligations", "garanties", "loi applicable", "juridiction",
               "témoin", "signé"],
        "de": ["vertrag", "vereinbarung", "parteien", "hiermit", "klausel", "artikel",
               "paragraph", "allgemeine geschäftsbedingungen", "agb", "inkrafttreten",
               "kündigung", "pflichten", "gewährleistung", "anwendbares recht", "gerichtsstand",
               "zeuge", "unterzeichnet"],
        "it": ["contratto", "accordo", "parti", "premesso", "con la presente", "clausola",
               "articolo", "condizioni generali", "decorrenza", "risoluzione", "obblighi",
               "garanzie", "legge applicabile", "foro competente", "testimone", "sottoscritto"],
    },
    D.REPORT: {
        "en": ["executive summary", "introduction", "conclusion", "findings", "recommendations",
               "analysis", "methodology", "results", "discussion", "appendix",
               "table of contents", "abstract", "overview", "summary", "background",
               "objectives", "scope", "key findings"],
        "fr": ["résumé exécutif", "introduction", "conclusion", "résultats", "recommandations",
               "analyse", "méthodologie", "discussion", "annexe", "table des matières",
               "sommaire", "contexte", "objectifs", "périmètre", "principales conclusions"],
        "de": ["zusammenfassung", "einleitung", "fazit", "ergebnisse", "empfehlungen", "analyse",
               "methodik", "diskussion", "anhang", "inhaltsverzeichnis", "überblick",
               "hintergrund", "ziele", "umfang", "kernaussagen"],
        "it": ["sommario", "introduzione", "conclusione", "risultati", "raccomandazioni",
               "analisi", "metodologia", "discussione", "allegato", "indice", "panoramica",
               "contesto", "obiettivi", "ambito"],
    },
}

_I, _IM = re.IGNORECASE, re.IGNORECASE | re.MULTILINE

STRUCTURAL_PATTERNS: dict[DocumentType, list[re.Pattern]] = {
    D.INVOICE: [
        re.compile(r"(?:invoice|rechnung|facture)\s{0,3}(?:no\.?|nr\.?|#|:)\s{0,3}[\w-]{1,30}", _I),
        re.compile(r"(?:total|montant|betrag)\s{0,3}[:=]?\s{0,3}(?:chf|eur|usd|€|£|\$)?\s{0,3}\d[\d',.]{0,20}", _I),
        re.compile(r"(?:qty|menge|quantité)\s{1,10}(?:unit|preis|prix)", _I),
        re.compile(r"(?:chf|eur|usd)\s{0,3}\d[\d',.]{0,20}", _I),
        re.compile(r"\d{1,10}[.,]\d{2}\s{0,3}(?:chf|eur|usd|€)", _I),
    ],
    D.LETTER: [
        re.compile(r"^(?:dear|sehr geehrte[r]?|cher|chère|madame|monsieur)", _IM),
        re.compile(r"(?:sincerely|regards|cordialement|grüße|grüssen|salutations)[^\S\n]{0,3},?[^\S\n]{0,3}$", _IM),
        re.compile(r"^(?:re:|betreff:|objet:|subject:)", _IM),
        re.compile(r"(?:enclosed|anbei|ci-joint|in allegato)", _I),
    ],
    D.FORM: [
        re.compile(r"\[\s{0,3}\]|\(\s{0,3}\)|□|☐|☑|☒"),
        re.compile(r"(?:name|nom):\s{0,3}_{2,}|_{5,}", _I),
        re.compile(r"(?:yes|no|oui|non|ja|nein)\s{0,3}(?:\[\s{0,3}\]|\(\s{0,3}\))", _I),
        re.compile(r"please\s{1,3}(?:check|tick|fill|complete)", _I),
        re.compile(r"\*\s{0,3}(?:required|obligatoire|pflichtfeld)", _I),
    ],
    D.CONTRACT: [
        re.compile(r"(?:between|entre|zwischen)\s{1,3}(?:the\s{1,3})?(?:parties|parteien|les parties)", _I),
        re.compile(r"(?:article|clause|section)\s{1,3}\d+", _I),
        re.compile(r"(?:whereas|attendu que|in anbetracht)", _I),
        re.compile(r"(?:hereby|par les présentes|hiermit)\s{1,3}(?:agree|conviennent|vereinbaren)", _I),
        re.compile(r"(?:witness|témoin|zeuge)\s{1,3}(?:whereof|de quoi)", _I),
    ],
    D.REPORT: [
        re.compile(r"(?:table\s{1,3}of\s{1,3}contents|inhaltsverzeichnis|table\s{1,3}des\s{1,3}matières)", _I),
        re.compile(r"(?:executive\s{1,3}summary|zusammenfassung|résumé)", _I),
        re.compile(r"^(?:\d+\.|\d+\))\s{1,3}(?:introduction|methodology|results|conclusion)", _IM),
        re.compile(r"(?:appendix|anhang|annexe)\s{1,3}[a-z\d]", _I),
        re.compile(r"(?:figure|table|abbildung|tabelle)\s{1,3}\d+", _I),
    ],
}

STRUCTURAL_WEIGHT = 0.15

# (feature name, type, weight, zone, pattern); zone "head" = first 5 lines, "tail" = last 5
POSITION_CUES: list[tuple[str, DocumentType, float, str, re.Pattern]] = [
    ("invoice_header", D.INVOICE, 0.2, "head", re.compile(r"invoice|rechnung|facture", _I)),
    ("salutation_start", D.LETTER, 0.2, "head", re.compile(r"dear|sehr geehrte|cher|madame|monsieur", _I)),
    ("signature_end", D.LETTER, 0.15, "tail", re.compile(r"sincerely|regards|grüß|grüss|cordialement|salutations", _I)),
    ("parties_clause", D.CONTRACT, 0.2, "head", re.compile(r"between|entre|zwischen.{0,80}parties|parteien", _I)),
    ("toc_header", D.REPORT, 0.25, "head", re.compile(r"table of contents|inhaltsverzeichnis|table des matières", _I)),
]

# Function words for the classifier's own four-language guess
LANGUAGE_INDICATORS: dict[str, list[str]] = {
    "en": ["the", "and", "is", "are", "was", "were", "have", "has", "this", "that", "with", "for",
           "your", "please"],
    "fr": ["le", "la", "les", "de", "du", "des", "et", "est", "sont", "vous", "nous", "dans",
           "pour", "avec", "cette", "votre"],
    "de": ["der", "die", "das", "und", "ist", "sind", "ihr", "ihre", "wir", "mit", "für", "von",
           "bei", "nach", "bitte"],
    "it": ["il", "la", "le", "di", "del", "della", "e", "è", "sono", "con", "per", "nella",
           "questo", "questa"],
}


def _word_pattern(word: str) -> re.Pattern:
    return re.compile(rf"(?<!\w){re.escape(word)}(?!\w)", re.IGNORECASE)


_KEYWORD_PATTERNS: dict[DocumentType, dict[str, list[tuple[str, re.Pattern]]]] = {
    dtype: {lang: [(kw, _word_pattern(kw)) for kw in words] for lang, words in by_lang.items()}
    for dtype, by_lang in DOCUMENT_KEYWORDS.items()
}

_LANGUAGE_PATTERNS: dict[str, re.Pattern] = {
    lang: re.compile(rf"(?<!\w)(?:{'|'.join(map(re.escape, words))})(?!\w)", re.IGNORECASE)
    for lang, words in LANGUAGE_INDICATORS.items()
}


def keyword_weight(keyword: str, hits: int) -> float:
    """Longer keywords are more specific; repeated hits give diminishing returns."""
    length_factor = min(len(keyword) / 8, 1.5)
    count_factor = 1 + math.log2(hits + 1) * 0.5
    return 0.08 * length_factor * count_factor


def guess_language(text: str) -> str:
    """Best of en/fr/de/it by function-word count; English on no signal."""
    scores = {lang: len(p.findall(text)) for lang, p in _LANGUAGE_PATTERNS.items()}
    best = max(scores, key=lambda lang: scores[lang])
    return best if scores[best] > 0 else "en"


class DocumentClassifier:
    def __init__(self, config: Optional[ClassifierConfig] = None):
        self.config = config or ClassifierConfig()

    def classify(self, text: str) -> DocumentClassification:
        sample = text[: self.config.max_text_length]
        if not sample.strip():
            return DocumentClassification()

        language = guess_language(sample)
        scores: dict[DocumentType, float] = {t: 0.0 for t in DOCUMENT_KEYWORDS}
        features: list[ScoringFactor] = []

        # Keywords
        for dtype, by_lang in _KEYWORD_PATTERNS.items():
            for keyword, pattern in by_lang.get(language, by_lang["en"]):
                hits = pattern.findall(sample)
                if not hits:
                    continue
                weight = keyword_weight(keyword, len(hits))
                scores[dtype] += weight
                features.append(ScoringFactor(
                    name=f"keyword:{keyword}", score=weight, matched=True, description=hits[0],
                ))

        # Structure
        for dtype, patterns in STRUCTURAL_PATTERNS.items():
            for pattern in patterns:
                m = pattern.search(sample)
                if m:
                    scores[dtype] += STRUCTURAL_WEIGHT
                    features.append(ScoringFactor(
                        name=f"pattern:{dtype.value.lower()}",
                        score=STRUCTURAL_WEIGHT,
                        matched=True,
                        description=m.group(0)[:50],
                    ))

        # Position
        lines = sample.split("\n")
        zones = {"head": "\n".join(lines[:5]), "tail": "\n".join(lines[-5:])}
        for name, dtype, weight, zone, pattern in POSITION_CUES:
            if pattern.search(zones[zone]):
                scores[dtype] += weight
                features.append(ScoringFactor(name=f"position:{name}", score=weight, matched=True))

        ranked = sorted(scores.items(), key=lambda kv: kv[1], reverse=True)
        (primary, primary_score), (secondary, secondary_score) = ranked[0], ranked[1]
        confidence = min(primary_score / self.config.score_normalizer, 1.0)

        result = DocumentClassification(
            type=primary if confidence >= self.config.min_confidence else D.UNKNOWN,
            confidence=confidence,
            secondary_type=secondary if secondary_score > 0.2 else None,
            features=sorted(features, key=lambda f: f.score, reverse=True)[:10],
            language=language,
        )
        logger.debug(
            f"Classified document as {result.type.value} "
            f"(confidence={confidence:.2f}, language={language})"
        )
        return result

    def is_type(self, text: str, dtype: DocumentType, min_confidence: float = 0.5) -> bool:
        result = self.classify(text)
        return result.type == dtype and result.confidence >= min_confidence
