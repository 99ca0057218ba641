"""Tests for the pipeline orchestrator and its post-processing.

Covers:
  - pass registration, ordering and enable switches
  - failure isolation (a raising pass is recorded and skipped)
  - normalization round trip: offsets always slice the original text
  - deduplication, review flagging and result metadata
  - configuration overrides and validation
"""

import pytest

from piiguard.core.config import PipelineConfig
from piiguard.core.detection.pipeline import (
    DetectionPipeline,
    create_default_pipeline,
    deduplicate,
    flag_for_review,
    map_entities_to_original,
)
from piiguard.core.errors import ConfigError
from piiguard.models.schemas import DocumentType, Entity, EntitySource, EntityType


def _e(start, end, confidence=0.8, etype=EntityType.PERSON_NAME, text=None):
    return Entity(type=etype, text=text or "x" * (end - start), start=start, end=end, confidence=confidence)


def _no_overlaps(entities):
    ordered = sorted(entities, key=lambda e: e.start)
    return all(a.end <= b.start for a, b in zip(ordered, ordered[1:]))


class _AddPass:
    def __init__(self, name, order, entity):
        self.name, self.order, self.enabled = name, order, True
        self.entity = entity

    def execute(self, text, entities, context):
        return entities + [self.entity]


class _BrokenPass:
    def __init__(self, name="broken", order=20):
        self.name, self.order, self.enabled = name, order, True

    def execute(self, text, entities, context):
        entities.clear()
        raise RuntimeError("boom")


class _RecordingPass:
    def __init__(self, name="recorder", order=30):
        self.name, self.order, self.enabled = name, order, True
        self.received = None

    def execute(self, text, entities, context):
        self.received = list(entities)
        return entities


LETTER = (
    "Muster Treuhand AG, Bahnhofstrasse 10, 8001 Zürich\n"
    "Betreff: Ihre Anmeldung\n\n"
    "Sehr geehrte Frau Keller,\n\n"
    "Anbei erhalten Sie die Unterlagen.\n"
    "Ihre AHV-Nr. 756.9217.0769.85 wurde erfasst. Bitte überweisen Sie den Betrag auf\n"
    "IBAN CH93 0076 2011 6238 5295 7.\n"
    "Bei Fragen erreichen Sie uns unter hans.muster@example.ch oder Tel. 044 123 45 67.\n\n"
    "Mit freundlichen Grüssen\n\n"
    "Hans Muster"
)


# ═══════════════════════════════════════════════════════════════════════════
# Pass management
# ═══════════════════════════════════════════════════════════════════════════

class TestPassManagement:
    def test_default_passes_in_order(self):
        names = [p.name for p in create_default_pipeline().get_passes()]
        assert names == [
            "document_type", "high_recall", "format_validation",
            "context_scoring", "address_relationship",
        ]

    def test_add_pass_sorted_stable(self):
        pipeline = DetectionPipeline()
        pipeline.add_pass(_RecordingPass("c", 30))
        pipeline.add_pass(_RecordingPass("a", 10))
        pipeline.add_pass(_RecordingPass("b", 10))
        assert [p.name for p in pipeline.get_passes()] == ["a", "b", "c"]

    def test_remove_pass(self):
        pipeline = create_default_pipeline()
        assert pipeline.remove_pass("context_scoring")
        assert not pipeline.remove_pass("context_scoring")
        assert "context_scoring" not in [p.name for p in pipeline.get_passes()]

    def test_get_passes_is_a_copy(self):
        pipeline = create_default_pipeline()
        pipeline.get_passes().clear()
        assert len(pipeline.get_passes()) == 5

    def test_disabled_pass_not_run(self):
        recorder = _RecordingPass()
        recorder.enabled = False
        result = DetectionPipeline(passes=[recorder]).process("Hallo")
        assert recorder.received is None
        assert result.metadata.pass_results == []

    def test_config_switch_disables_builtin(self):
        pipeline = create_default_pipeline().configure(enabled_passes={"context_scoring": False})
        result = pipeline.process(LETTER)
        ran = [r.pass_name for r in result.metadata.pass_results]
        assert "context_scoring" not in ran
        # document classification is off by default
        assert "document_type" not in ran
        assert result.document_type == DocumentType.UNKNOWN


# ═══════════════════════════════════════════════════════════════════════════
# Failure isolation
# ═══════════════════════════════════════════════════════════════════════════

class TestFailureIsolation:
    def test_next_pass_gets_input_of_failed_pass(self):
        first = _AddPass("first", 10, _e(0, 5, 0.9))
        recorder = _RecordingPass()
        pipeline = DetectionPipeline(passes=[first, _BrokenPass(), recorder])

        result = pipeline.process("Hallo Welt")

        assert [e.id for e in recorder.received] == [first.entity.id]
        broken = next(r for r in result.metadata.pass_results if r.pass_name == "broken")
        assert "boom" in broken.error
        assert "RuntimeError" in broken.error
        assert len(result.entities) == 1

    def test_failure_is_logged(self, caplog):
        DetectionPipeline(passes=[_BrokenPass()]).process("Hallo")
        assert "Pass 'broken' failed" in caplog.text

    def test_pass_results_record_deltas(self):
        first = _AddPass("first", 10, _e(0, 5, 0.9))
        result = DetectionPipeline(passes=[first]).process("Hallo Welt")
        (r,) = result.metadata.pass_results
        assert (r.entities_added, r.entities_modified, r.entities_removed) == (1, 0, 0)
        assert r.error is None
        assert "first" in result.metadata.pass_timings


# ═══════════════════════════════════════════════════════════════════════════
# End to end
# ═══════════════════════════════════════════════════════════════════════════

class TestProcess:
    def test_letter(self):
        result = create_default_pipeline().process(LETTER, document_id="doc-1")
        types = {e.type for e in result.entities}
        assert EntityType.SWISS_AVS in types
        assert EntityType.IBAN in types
        assert EntityType.EMAIL in types
        assert EntityType.PHONE in types
        assert EntityType.SWISS_ADDRESS in types
        assert result.language == "de"
        assert _no_overlaps(result.entities)
        for e in result.entities:
            assert LETTER[e.start:e.end] == e.text
            assert 0.0 <= e.confidence <= 1.0

    def test_document_type_enabled(self):
        pipeline = create_default_pipeline().configure(enabled_passes={"document_type": True})
        result = pipeline.process(LETTER)
        assert result.document_type == DocumentType.LETTER
        assert any(e.type == EntityType.SALUTATION_NAME and e.text == "Keller" for e in result.entities)

    def test_offsets_after_normalization(self):
        text = "Schreiben Sie an max (at) example (dot) com oder rufen Sie an."
        result = create_default_pipeline().process(text)
        emails = [e for e in result.entities if e.type == EntityType.EMAIL]
        assert len(emails) == 1
        assert emails[0].text == "max (at) example (dot) com"
        assert text[emails[0].start:emails[0].end] == emails[0].text

    def test_zero_width_characters(self):
        text = "IBAN:\u200b CH93 0076 2011 6238 5295 7"
        result = create_default_pipeline().process(text)
        ibans = [e for e in result.entities if e.type == EntityType.IBAN]
        assert [text[e.start:e.end] for e in ibans] == ["CH93 0076 2011 6238 5295 7"]

    def test_without_normalization(self):
        pipeline = create_default_pipeline().configure(enable_normalization=False)
        result = pipeline.process("max (at) example (dot) com")
        assert not [e for e in result.entities if e.type == EntityType.EMAIL]

    def test_empty_text(self):
        result = create_default_pipeline().process("")
        assert result.entities == []
        assert result.language == "de"
        assert result.document_type == DocumentType.UNKNOWN

    def test_explicit_language(self):
        assert create_default_pipeline().process("Hello there", language="fr").language == "fr"

    def test_extended_metadata(self):
        result = create_default_pipeline().process(LETTER)
        assert result.metadata.epic8 is not None
        off = create_default_pipeline().configure(enable_epic8_features=False).process(LETTER)
        assert off.metadata.epic8 is None

    def test_counts_and_flagged(self):
        result = create_default_pipeline().process(LETTER)
        counts = result.metadata.entity_counts
        assert sum(counts.values()) == len(result.entities)
        assert result.metadata.flagged_count == sum(e.flagged_for_review for e in result.entities)
        assert result.metadata.total_duration_ms >= 0

    def test_deterministic(self):
        pipeline = create_default_pipeline()
        a = [(e.type, e.start, e.end) for e in pipeline.process(LETTER).entities]
        b = [(e.type, e.start, e.end) for e in pipeline.process(LETTER).entities]
        assert a == b


# ═══════════════════════════════════════════════════════════════════════════
# Post-processing helpers
# ═══════════════════════════════════════════════════════════════════════════

class TestDeduplicate:
    def test_higher_confidence_replaces(self):
        low, high = _e(0, 10, 0.5), _e(2, 8, 0.9)
        assert deduplicate([low, high]) == [high]

    def test_equal_confidence_keeps_longer(self):
        short, long_ = _e(0, 5, 0.7), _e(0, 10, 0.7)
        assert deduplicate([short, long_]) == [long_]

    def test_idempotent_and_overlap_free(self):
        entities = [_e(0, 10, 0.5), _e(5, 15, 0.9), _e(12, 20, 0.6), _e(30, 35, 0.4)]
        once = deduplicate(entities)
        assert _no_overlaps(once)
        assert deduplicate(once) == once

    def test_adjacent_kept(self):
        a, b = _e(0, 5), _e(5, 10)
        assert deduplicate([b, a]) == [a, b]


class TestFlagForReview:
    def test_threshold(self):
        low, high = flag_for_review([_e(0, 5, 0.5), _e(6, 9, 0.6)], 0.6)
        assert (low.flagged_for_review, low.selected) == (True, False)
        assert (high.flagged_for_review, high.selected) == (False, True)

    def test_earlier_flag_replaced_by_threshold(self):
        flagged = _e(0, 5, 0.9).model_copy(update={"flagged_for_review": True})
        (out,) = flag_for_review([flagged], 0.6)
        assert (out.flagged_for_review, out.selected) == (False, True)

    def test_flag_and_selection_agree_with_custom_threshold(self):
        pipeline = create_default_pipeline(PipelineConfig(auto_anonymize_threshold=0.3))
        result = pipeline.process("Hauptstrasse 5, Bern")
        assert result.entities
        for e in result.entities:
            assert e.selected is (e.confidence >= 0.3)
            assert e.flagged_for_review is not e.selected


class TestMapToOriginal:
    def test_reslices_text(self):
        original = "a\u200bbc"
        entity = Entity(type=EntityType.ORG, text="bc", start=1, end=3, confidence=0.8,
                        source=EntitySource.RULE)
        (out,) = map_entities_to_original([entity], [0, 2, 3], original)
        assert (out.start, out.end, out.text) == (2, 4, "bc")

    def test_collapsed_span_dropped(self, caplog):
        entity = _e(2, 2)
        assert map_entities_to_original([entity], [0, 1, 2], "abc") == []
        assert "did not map back" in caplog.text


class TestConfigure:
    def test_returns_self(self):
        pipeline = DetectionPipeline()
        assert pipeline.configure(debug=True) is pipeline
        assert pipeline.config.debug

    def test_out_of_range(self):
        with pytest.raises(ConfigError):
            DetectionPipeline().configure(ml_confidence_threshold=1.5)

    def test_unknown_key(self):
        with pytest.raises(ConfigError):
            DetectionPipeline().configure(no_such_setting=1)

    def test_failed_configure_keeps_config(self):
        pipeline = DetectionPipeline(config=PipelineConfig(context_window_size=80))
        with pytest.raises(ConfigError):
            pipeline.configure(context_window_size=-1)
        assert pipeline.config.context_window_size == 80

    def test_enabled_passes_merged(self):
        pipeline = DetectionPipeline().configure(enabled_passes={"document_type": True})
        assert pipeline.config.enabled_passes.document_type
        assert pipeline.config.enabled_passes.high_recall
