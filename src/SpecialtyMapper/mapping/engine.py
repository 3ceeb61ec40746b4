"""Deterministic specialty mapping engine."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Iterable, Optional, Sequence

from .candidate_generation import CandidateGenerator, ParentBucketer
from .config import DEFAULT_MAPPING_CONFIG, MappingConfig, validate_config
from .decision import DecisionContext, DecisionSelector, undecided
from .domain import DomainClassification, DomainClassifier
from .exceptions import TaxonomyError
from .models import (
    CanonicalSpecialty,
    MappingDecision,
    MatchCandidate,
    OverrideMapping,
    RawInput,
    RulesConfig,
    SynonymsConfig,
)
from .normalization import TextNormalizer
from .repository import SynonymDictionary, TaxonomyStore
from .resolution import HardMapResolver, OverrideResolver, Resolution
from .rules import OverrideStore, RulesRepository
from .scoring import CandidateScorer
from .similarity import build_similarity

logger = logging.getLogger(__name__)

INTERNAL_ERROR_NOTE = "Internal error while mapping"


class SpecialtyMappingEngine:
    """Maps one ``RawInput`` to one ``MappingDecision``.

    All stores are built before construction and never change afterwards, so a
    single engine can be shared by worker threads. Adding an override means
    building a new engine with :meth:`with_overrides`.

    Stages, in order:

    1. normalize the raw name and classify its domain;
    2. overrides, then hard maps (first match decides);
    3. parent bucketing from bucketing hints and parent synonyms;
    4. block rules remove vetoed candidates;
    5. weighted scoring and threshold selection.
    """

    def __init__(
        self,
        taxonomy: TaxonomyStore | Iterable[CanonicalSpecialty],
        synonyms: SynonymsConfig,
        rules: RulesRepository | Sequence[RulesConfig] = (),
        overrides: OverrideStore | Iterable[OverrideMapping] = (),
        config: MappingConfig = DEFAULT_MAPPING_CONFIG,
    ) -> None:
        self.config = validate_config(config)
        self.taxonomy = taxonomy if isinstance(taxonomy, TaxonomyStore) else TaxonomyStore.from_iterable(taxonomy)
        self.rules = rules if isinstance(rules, RulesRepository) else RulesRepository(rules)
        self.overrides = overrides if isinstance(overrides, OverrideStore) else OverrideStore(overrides)
        self.synonyms_config = synonyms
        self._validate_references()

        self.normalizer = TextNormalizer(synonyms.abbreviations)
        self.synonyms = SynonymDictionary(synonyms, self.normalizer)
        self.similarity = build_similarity(self.config.feature_flags)
        self.classifier = DomainClassifier(self.synonyms)
        self.override_resolver = OverrideResolver(self.overrides, self.taxonomy)
        self.hard_map_resolver = HardMapResolver(
            self.rules, self.taxonomy, self.rules.block_policy, self.config.hard_map_confidence
        )
        self.bucketer = ParentBucketer(self.taxonomy, self.synonyms, self.rules)
        self.generator = CandidateGenerator(self.taxonomy, self.rules.block_policy)
        self.scorer = CandidateScorer(self.config, self.synonyms, self.similarity, self.normalizer)
        self.selector = DecisionSelector(self.config.min_decision_threshold, self.taxonomy)

    def _validate_references(self) -> None:
        errors: list[str] = []
        for hard_map in self.rules.hard_maps:
            if hard_map.rule.canonical_id not in self.taxonomy:
                errors.append(f"hard map {hard_map.rule.id} targets unknown id {hard_map.rule.canonical_id}")
        for hint in self.rules.bucketing_hints:
            if hint.rule.parent not in self.taxonomy.parents:
                errors.append(f"bucketing hint {hint.rule.id} targets unknown parent {hint.rule.parent}")
        for override in self.overrides:
            if override.canonical_id not in self.taxonomy:
                errors.append(f"override {override.id} targets unknown id {override.canonical_id}")
        if errors:
            raise TaxonomyError("; ".join(errors))

    def with_overrides(self, overrides: Iterable[OverrideMapping]) -> "SpecialtyMappingEngine":
        """Return a new engine whose override store also holds ``overrides``."""

        return SpecialtyMappingEngine(
            taxonomy=self.taxonomy,
            synonyms=self.synonyms_config,
            rules=self.rules,
            overrides=self.overrides.extended(overrides),
            config=self.config,
        )

    def map_specialty(self, raw_input: RawInput) -> MappingDecision:
        normalized = self.normalizer.normalize(raw_input.raw_name)
        classification = self.classifier.classify(normalized, raw_input.meta)
        notes: list[str] = []
        if classification.defaulted:
            notes.append(f"No domain signal found; defaulted to {classification.domain.value}")

        if not normalized.tokens:
            context = self._context(classification, None, (), notes)
            return undecided(raw_input, context, "Empty specialty name after normalization")

        resolution = self.override_resolver.resolve(raw_input, normalized.normalized, classification)
        if resolution is None:
            resolution = self.hard_map_resolver.resolve(raw_input, normalized.normalized, classification)
        if resolution is not None:
            return self._resolved(raw_input, resolution, classification, notes)

        domain = classification.domain
        bucket = self.bucketer.bucket(normalized.normalized, normalized.tokens, domain)
        if bucket is None:
            context = self._context(classification, None, (), notes)
            return undecided(raw_input, context, f"No parent bucket determined for domain {domain.value}")

        candidates, block_ids = self.generator.generate(raw_input, normalized.normalized, domain, bucket.parent)
        context = self._context(classification, bucket.parent, (*bucket.hint_ids, *block_ids), notes)
        if not candidates:
            return undecided(
                raw_input,
                context,
                f"All candidates for parent {bucket.parent} ({domain.value}) were removed by block rules",
            )

        scored = self.scorer.score(normalized, raw_input.meta, bucket, candidates)
        return self.selector.select(raw_input, scored, context)

    def map_batch(self, inputs: Iterable[RawInput], workers: Optional[int] = None) -> list[MappingDecision]:
        """Map every input, preserving input order.

        A failure on one input becomes an undecided decision; the rest of the
        batch is still processed.
        """

        items = list(inputs)
        if workers and workers > 1 and len(items) > 1:
            with ThreadPoolExecutor(max_workers=workers) as executor:
                return list(executor.map(self._map_isolated, items))
        return [self._map_isolated(item) for item in items]

    def _map_isolated(self, raw_input: RawInput) -> MappingDecision:
        try:
            return self.map_specialty(raw_input)
        except Exception as exc:  # noqa: BLE001
            logger.exception(
                "mapping.error",
                extra={"payload": {"source": raw_input.source, "raw_name": raw_input.raw_name}},
            )
            return MappingDecision(
                input=raw_input,
                decided_canonical_id=None,
                confidence=0.0,
                notes=f"{INTERNAL_ERROR_NOTE}: {type(exc).__name__}: {exc}",
            )

    @staticmethod
    def _context(
        classification: DomainClassification,
        parent: Optional[str],
        applied_rule_ids: Sequence[str],
        notes: Sequence[str],
    ) -> DecisionContext:
        return DecisionContext(
            domain=classification.domain,
            parent=parent,
            domain_defaulted=classification.defaulted,
            applied_rule_ids=tuple(dict.fromkeys(applied_rule_ids)),
            notes=tuple(notes),
        )

    @staticmethod
    def _resolved(
        raw_input: RawInput,
        resolution: Resolution,
        classification: DomainClassification,
        notes: Sequence[str],
    ) -> MappingDecision:
        target = resolution.target
        adopted = classification.adopt(target.domain, resolution.rule_id)
        if adopted is classification:
            decision_notes = [*notes, resolution.note]
        else:
            decision_notes = [f"Domain {target.domain.value} taken from {resolution.rule_id}", resolution.note]
        return MappingDecision(
            input=raw_input,
            decided_canonical_id=target.id,
            confidence=resolution.confidence,
            applied_rule_ids=(resolution.rule_id,),
            candidates=(MatchCandidate(target.id, resolution.confidence, (resolution.reason,)),),
            notes="; ".join(decision_notes),
            domain=adopted.domain,
            parent=target.parent,
            domain_defaulted=adopted.defaulted,
        )


__all__ = ["INTERNAL_ERROR_NOTE", "SpecialtyMappingEngine"]
