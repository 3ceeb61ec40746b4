"""Tests for the deterministic specialty mapping engine."""

from __future__ import annotations

import logging
from dataclasses import replace

import pytest

from SpecialtyMapper.mapping import (
    BlockRule,
    Domain,
    HardMapRule,
    MappingConfigError,
    OverrideMapping,
    RawInput,
    RulesConfig,
    SpecialtyMappingEngine,
    TaxonomyError,
    create_custom_config,
)
from SpecialtyMapper.mapping.config import MappingConfig
from SpecialtyMapper.mapping.engine import INTERNAL_ERROR_NOTE


def gallagher(name: str, **meta: object) -> RawInput:
    return RawInput(source="Gallagher", raw_name=name, meta=meta)


def test_exact_name_is_hard_mapped(engine: SpecialtyMappingEngine) -> None:
    decision = engine.map_specialty(gallagher("Cardiology"))

    assert decision.decided_canonical_id == "CARD-GENERAL"
    assert decision.confidence == pytest.approx(0.95)
    assert decision.applied_rule_ids == ("EXACT_CARD_GENERAL",)
    assert decision.domain is Domain.ADULT
    assert decision.parent == "Cardiology"
    assert not decision.domain_defaulted
    assert decision.candidates[0].reasons == ("hardmap:EXACT_CARD_GENERAL",)
    assert "Domain ADULT taken from EXACT_CARD_GENERAL" in decision.notes
    assert "Hard mapped by rule EXACT_CARD_GENERAL" in decision.notes


def test_interventional_hard_map_keeps_subspecialty(engine: SpecialtyMappingEngine) -> None:
    decision = engine.map_specialty(gallagher("Interventional Cardiology"))

    assert decision.decided_canonical_id == "CARD-INTERVENTIONAL"
    assert decision.confidence == pytest.approx(0.95)
    assert decision.applied_rule_ids == ("EXACT_CARD_INTERVENTIONAL",)


def test_pediatric_keyword_routes_to_pediatric_taxonomy(engine: SpecialtyMappingEngine) -> None:
    decision = engine.map_specialty(gallagher("Pediatric Cardiology"))

    assert decision.decided_canonical_id == "PEDS-CARD-GENERAL"
    assert decision.domain is Domain.PEDIATRIC
    assert decision.parent == "Pediatric Cardiology"
    assert decision.confidence == pytest.approx(0.90)
    reasons = decision.candidates[0].reasons
    assert "token:pediatric" in reasons
    assert "token:cardiology" in reasons
    assert "synonym:pediatric cardiology" in reasons
    assert "Auto-decided" in decision.notes


def test_pediatric_meta_flag_overrides_adult_hard_map(engine: SpecialtyMappingEngine) -> None:
    decision = engine.map_specialty(gallagher("Cardiology", pediatric=True))

    assert decision.decided_canonical_id == "PEDS-CARD-GENERAL"
    assert decision.domain is Domain.PEDIATRIC
    assert decision.confidence >= 0.80
    assert "EXACT_CARD_GENERAL" not in decision.applied_rule_ids
    assert "sourcehint:pediatric" in decision.candidates[0].reasons


def test_explicit_adult_flag_keeps_detected_domain(engine: SpecialtyMappingEngine) -> None:
    decision = engine.map_specialty(gallagher("Cardiology", pediatric=False))

    assert decision.decided_canonical_id == "CARD-GENERAL"
    assert decision.domain is Domain.ADULT
    assert decision.notes == "Hard mapped by rule EXACT_CARD_GENERAL"


def test_domain_barrier_never_crosses_domains(engine: SpecialtyMappingEngine) -> None:
    for name in ("Pediatric Cardiology", "Peds Cardiology", "Pediatric Interventional Cardiology"):
        decision = engine.map_specialty(gallagher(name))
        assert decision.domain is Domain.PEDIATRIC
        assert all(candidate.canonical_id.startswith("PEDS-") for candidate in decision.candidates)


def test_reordered_subspecialty_scores_above_general(engine: SpecialtyMappingEngine) -> None:
    decision = engine.map_specialty(gallagher("Cardiology - Interventional"))

    assert decision.decided_canonical_id == "CARD-INTERVENTIONAL"
    assert decision.confidence > 0.85
    ids = [candidate.canonical_id for candidate in decision.candidates]
    assert ids == ["CARD-INTERVENTIONAL", "CARD-GENERAL"]
    assert decision.candidates[0].score > decision.candidates[1].score
    assert "subspecialty:interventional" in decision.candidates[0].reasons


def test_general_name_prefers_general_entry(scoring_engine: SpecialtyMappingEngine) -> None:
    decision = scoring_engine.map_specialty(gallagher("Cardiology"))

    assert decision.decided_canonical_id == "CARD-GENERAL"
    assert decision.confidence == pytest.approx(0.90)
    general, interventional = decision.candidates
    assert general.canonical_id == "CARD-GENERAL"
    assert interventional.score < decision.candidates[0].score
    assert interventional.score < 0.68


def test_interventional_name_scores_without_hard_map(scoring_engine: SpecialtyMappingEngine) -> None:
    decision = scoring_engine.map_specialty(gallagher("Interventional Cardiology"))

    assert decision.decided_canonical_id == "CARD-INTERVENTIONAL"
    assert decision.confidence == pytest.approx(0.90)


def test_negative_token_penalises_surgical_titles(engine: SpecialtyMappingEngine) -> None:
    decision = engine.map_specialty(gallagher("Cardiac Surgery"))

    assert not decision.is_decided
    assert decision.confidence < 0.68
    assert decision.parent == "Cardiology"
    assert "HINT_CARDIOVASCULAR" in decision.applied_rule_ids
    assert "negative:surgery" in decision.candidates[0].reasons
    assert "needs manual review" in decision.notes


def test_unknown_name_is_left_for_review(engine: SpecialtyMappingEngine) -> None:
    decision = engine.map_specialty(gallagher("Unknown Specialty"))

    assert decision.decided_canonical_id is None
    assert decision.confidence == 0.0
    assert decision.candidates == ()
    assert decision.domain_defaulted
    assert "No parent bucket determined for domain ADULT" in decision.notes
    assert "defaulted to ADULT" in decision.notes


def test_blank_name_is_undecided(engine: SpecialtyMappingEngine) -> None:
    decision = engine.map_specialty(gallagher("  *** "))

    assert not decision.is_decided
    assert "Empty specialty name" in decision.notes


def test_threshold_controls_auto_decision(taxonomy, synonyms, bucketing_rules) -> None:
    strict = SpecialtyMappingEngine(
        taxonomy,
        synonyms,
        [bucketing_rules],
        config=create_custom_config(min_decision_threshold=0.95),
    )
    decision = strict.map_specialty(gallagher("Pediatric Cardiology"))

    assert decision.decided_canonical_id is None
    assert decision.confidence == pytest.approx(0.90)
    assert decision.top_candidate.canonical_id == "PEDS-CARD-GENERAL"
    assert "Below threshold (0.95)" in decision.notes


def test_score_equal_to_threshold_is_decided(taxonomy, synonyms, bucketing_rules) -> None:
    exact = SpecialtyMappingEngine(
        taxonomy,
        synonyms,
        [bucketing_rules],
        config=create_custom_config(min_decision_threshold=0.90),
    )

    assert exact.map_specialty(gallagher("Pediatric Cardiology")).decided_canonical_id == "PEDS-CARD-GENERAL"


def test_override_takes_precedence_over_hard_map(engine: SpecialtyMappingEngine) -> None:
    override = OverrideMapping(
        id="OV1",
        pattern="^cardiology$",
        canonical_id="CARD-INTERVENTIONAL",
        added_by="analyst",
        added_at="2024-01-01",
        reason="survey convention",
    )
    decision = engine.with_overrides([override]).map_specialty(gallagher("Cardiology"))

    assert decision.decided_canonical_id == "CARD-INTERVENTIONAL"
    assert decision.confidence == 1.0
    assert decision.applied_rule_ids == ("OVERRIDE:OV1",)
    assert "Override OV1 by analyst: survey convention" in decision.notes
    assert engine.map_specialty(gallagher("Cardiology")).decided_canonical_id == "CARD-GENERAL"


def test_source_scoped_override_only_applies_to_its_source(engine: SpecialtyMappingEngine) -> None:
    override = OverrideMapping(
        id="OV_MGMA",
        pattern="^cardiology$",
        canonical_id="CARD-INTERVENTIONAL",
        added_by="analyst",
        added_at="2024-01-01",
        source="MGMA",
    )
    scoped = engine.with_overrides([override])

    assert scoped.map_specialty(RawInput("MGMA", "Cardiology")).decided_canonical_id == "CARD-INTERVENTIONAL"
    assert scoped.map_specialty(gallagher("Cardiology")).decided_canonical_id == "CARD-GENERAL"


def test_override_outside_detected_domain_is_skipped(engine: SpecialtyMappingEngine) -> None:
    override = OverrideMapping(
        id="OV_PEDS",
        pattern="^cardiology$",
        canonical_id="PEDS-CARD-GENERAL",
        added_by="analyst",
        added_at="2024-01-01",
    )
    decision = engine.with_overrides([override]).map_specialty(gallagher("Cardiology", pediatric=False))

    assert decision.decided_canonical_id == "CARD-GENERAL"
    assert decision.applied_rule_ids == ("EXACT_CARD_GENERAL",)


def test_block_rule_vetoes_hard_map_and_candidate(taxonomy, synonyms, rules) -> None:
    blocks = RulesConfig(
        version="1.1.0",
        blocks=(BlockRule(id="BLOCK_MGMA_GENERAL", condition="source:MGMA && id:CARD-GENERAL", reason="MGMA split"),),
    )
    blocked = SpecialtyMappingEngine(taxonomy, synonyms, [rules, blocks])

    decision = blocked.map_specialty(RawInput("MGMA", "Cardiology"))
    assert decision.decided_canonical_id != "CARD-GENERAL"
    assert "BLOCK_MGMA_GENERAL" in decision.applied_rule_ids
    assert [candidate.canonical_id for candidate in decision.candidates] == ["CARD-INTERVENTIONAL"]

    assert blocked.map_specialty(gallagher("Cardiology")).decided_canonical_id == "CARD-GENERAL"


def test_all_candidates_blocked(taxonomy, synonyms, rules) -> None:
    blocks = RulesConfig(
        version="1.1.0",
        blocks=(BlockRule(id="BLOCK_SURGICAL", condition="parent:Cardiology && pattern:surg", reason="surgical"),),
    )
    blocked = SpecialtyMappingEngine(taxonomy, synonyms, [rules, blocks])

    decision = blocked.map_specialty(gallagher("Cardiac Surgery"))
    assert not decision.is_decided
    assert decision.candidates == ()
    assert decision.applied_rule_ids == ("HINT_CARDIOVASCULAR", "BLOCK_SURGICAL")
    assert "removed by block rules" in decision.notes


def test_abbreviations_expand_before_rules(taxonomy, synonyms, rules) -> None:
    expanded = SpecialtyMappingEngine(taxonomy, replace(synonyms, abbreviations={"cards": "cardiology"}), [rules])

    assert expanded.map_specialty(gallagher("Cards")).decided_canonical_id == "CARD-GENERAL"


def test_mapping_is_deterministic(engine: SpecialtyMappingEngine) -> None:
    inputs = [gallagher("Cardiology - Interventional"), gallagher("Cardiac Surgery"), gallagher("Pediatric Cardiology")]

    first = [decision.to_dict() for decision in engine.map_batch(inputs)]
    second = [decision.to_dict() for decision in engine.map_batch(inputs)]
    assert first == second


def test_workers_preserve_input_order(engine: SpecialtyMappingEngine) -> None:
    names = ["Cardiology", "Pediatric Cardiology", "Unknown Specialty", "Cardiac Surgery", "Interventional Cardiology"]
    inputs = [gallagher(name) for name in names * 4]

    sequential = engine.map_batch(inputs)
    threaded = engine.map_batch(inputs, workers=4)

    assert [decision.input.raw_name for decision in threaded] == names * 4
    assert [decision.to_dict() for decision in threaded] == [decision.to_dict() for decision in sequential]


def test_failure_on_one_input_does_not_stop_batch(
    engine: SpecialtyMappingEngine,
    monkeypatch: pytest.MonkeyPatch,
    caplog: pytest.LogCaptureFixture,
) -> None:
    original = engine.map_specialty

    def flaky(raw_input: RawInput):
        if raw_input.raw_name == "Boom":
            raise RuntimeError("synthetic failure")
        return original(raw_input)

    monkeypatch.setattr(engine, "map_specialty", flaky)
    with caplog.at_level(logging.ERROR, logger="SpecialtyMapper.mapping.engine"):
        decisions = engine.map_batch([gallagher("Cardiology"), gallagher("Boom"), gallagher("Pediatric Cardiology")])

    assert [decision.decided_canonical_id for decision in decisions] == ["CARD-GENERAL", None, "PEDS-CARD-GENERAL"]
    assert decisions[1].notes.startswith(INTERNAL_ERROR_NOTE)
    assert "RuntimeError: synthetic failure" in decisions[1].notes
    assert any(record.getMessage() == "mapping.error" for record in caplog.records)


def test_unknown_hard_map_target_is_rejected(taxonomy, synonyms) -> None:
    broken = RulesConfig(
        version="1",
        hard_maps=(HardMapRule(id="BROKEN", pattern="^x$", canonical_id="MISSING"),),
    )

    with pytest.raises(TaxonomyError, match="MISSING"):
        SpecialtyMappingEngine(taxonomy, synonyms, [broken])


def test_invalid_config_is_rejected(taxonomy, synonyms) -> None:
    with pytest.raises(MappingConfigError):
        SpecialtyMappingEngine(taxonomy, synonyms, config=MappingConfig(min_decision_threshold=1.5))
