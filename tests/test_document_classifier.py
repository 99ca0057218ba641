"""Tests for the document-type classifier."""

from piiguard.core.detection.detection_config import ClassifierConfig
from piiguard.core.detection.document_classifier import (
    DocumentClassifier,
    guess_language,
    keyword_weight,
)
from piiguard.models.schemas import DocumentType

INVOICE = (
    "Rechnung Nr. 2024-0815\n"
    "Rechnungsdatum: 15.03.2024\n\n"
    "Menge  Einzelpreis  Betrag\n"
    "2  CHF 50.00  CHF 100.00\n\n"
    "Gesamtbetrag CHF 100.00 inkl. MwSt\n"
    "Bitte zahlen Sie den Betrag mit der beiliegenden Rechnung.\n"
    "Zahlbar innert 30 Tagen.\n"
)

LETTER = (
    "Dear Mr. Smith,\n\n"
    "Thank you for your letter. I am writing to confirm the meeting.\n"
    "Please find enclosed the agenda.\n\n"
    "Kind regards,\n"
    "Jane Doe"
)

CONTRACT = (
    "Service Agreement\n"
    "This agreement is made between the parties named below.\n"
    "Whereas the supplier hereby agrees to provide services.\n"
    "Article 1 Obligations\n"
    "Article 2 Termination\n"
    "The governing law and jurisdiction are those of Switzerland.\n"
)


class TestClassify:
    def test_invoice(self):
        result = DocumentClassifier().classify(INVOICE)
        assert result.type == DocumentType.INVOICE
        assert result.confidence >= 0.25
        assert result.language == "de"

    def test_letter(self):
        result = DocumentClassifier().classify(LETTER)
        assert result.type == DocumentType.LETTER
        assert result.language == "en"
        assert any(f.name.startswith("position:") for f in result.features)

    def test_contract(self):
        assert DocumentClassifier().classify(CONTRACT).type == DocumentType.CONTRACT

    def test_empty_text_unknown(self):
        result = DocumentClassifier().classify("   \n ")
        assert result.type == DocumentType.UNKNOWN
        assert result.confidence == 0.0

    def test_no_signal_unknown(self):
        assert DocumentClassifier().classify("Lorem ipsum dolor sit amet").type == DocumentType.UNKNOWN

    def test_threshold_from_config(self):
        strict = DocumentClassifier(ClassifierConfig(min_confidence=1.0))
        result = strict.classify(LETTER)
        assert result.type == DocumentType.UNKNOWN
        assert result.confidence > 0

    def test_confidence_bounded(self):
        text = LETTER * 50
        assert DocumentClassifier().classify(text).confidence <= 1.0

    def test_features_capped(self):
        assert len(DocumentClassifier().classify(INVOICE).features) <= 10

    def test_is_type(self):
        classifier = DocumentClassifier()
        assert classifier.is_type(LETTER, DocumentType.LETTER, min_confidence=0.25)
        assert not classifier.is_type(LETTER, DocumentType.INVOICE, min_confidence=0.0)


class TestHelpers:
    def test_keyword_weight_grows_with_length(self):
        assert keyword_weight("mehrwertsteuer", 1) > keyword_weight("mwst", 1)

    def test_keyword_weight_grows_with_hits(self):
        assert keyword_weight("rechnung", 4) > keyword_weight("rechnung", 1)

    def test_guess_language(self):
        assert guess_language("Il contratto e la fattura sono per questo cliente") == "it"
        assert guess_language("12345") == "en"
