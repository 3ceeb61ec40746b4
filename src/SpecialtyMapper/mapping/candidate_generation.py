"""Parent bucketing and candidate set generation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

from .models import CanonicalSpecialty, Domain, RawInput
from .normalization import tokens_match
from .policy import BlockPolicy
from .repository import SynonymDictionary, TaxonomyStore
from .rules import RulesRepository

DEFAULT_HINT_CONFIDENCE = 0.80


@dataclass(frozen=True, slots=True)
class ParentBucket:
    """The parent group chosen for an input and the evidence behind it.

    ``specificity`` counts the non-domain synonym tokens the input matched; it
    separates parents whose evidence ties.
    """

    parent: str
    evidence: float
    synonym_coverage: float
    matched_synonym: Optional[str] = None
    hint_ids: tuple[str, ...] = ()
    specificity: int = 0


def synonym_coverage(
    synonyms: SynonymDictionary,
    parent: str,
    tokens: Sequence[str],
) -> tuple[float, Optional[str], int]:
    """Return the best fraction of a parent synonym's tokens found in ``tokens``.

    Domain hint words are ignored inside synonyms ("pediatric cardiology"
    counts as "cardiology") unless the synonym consists of nothing else.
    The third value is the number of matched tokens that are not domain
    words, so "pediatrics" alone scores full coverage with no specificity.
    Among phrases with equal coverage the more specific one wins.
    """

    best = (0.0, 0)
    best_phrase: Optional[str] = None
    for phrase in synonyms.synonyms_for(parent):
        core = tuple(token for token in phrase if not synonyms.is_domain_word(token))
        scored = core or phrase
        covered = sum(1 for token in scored if any(tokens_match(token, candidate) for candidate in tokens))
        rank = (covered / len(scored), covered if core else 0)
        if rank > best:
            best = rank
            best_phrase = " ".join(phrase)
    return best[0], best_phrase, best[1]


class ParentBucketer:
    """Chooses a parent group from bucketing hints and parent synonyms."""

    def __init__(self, taxonomy: TaxonomyStore, synonyms: SynonymDictionary, rules: RulesRepository) -> None:
        self._taxonomy = taxonomy
        self._synonyms = synonyms
        self._rules = rules

    def bucket(self, normalized: str, tokens: Sequence[str], domain: Domain) -> ParentBucket | None:
        eligible = self._taxonomy.parents_in_domain(domain)
        hint_evidence: dict[str, tuple[float, tuple[str, ...]]] = {}
        for hint in self._rules.bucketing_hints:
            parent = hint.rule.parent
            if parent not in eligible or not hint.matches(normalized):
                continue
            confidence = hint.rule.confidence if hint.rule.confidence is not None else DEFAULT_HINT_CONFIDENCE
            previous, ids = hint_evidence.get(parent, (0.0, ()))
            hint_evidence[parent] = (max(previous, confidence), (*ids, hint.rule.id))

        best: ParentBucket | None = None
        for parent in eligible:
            coverage, phrase, specificity = synonym_coverage(self._synonyms, parent, tokens)
            hint_confidence, hint_ids = hint_evidence.get(parent, (0.0, ()))
            evidence = max(hint_confidence, coverage)
            if evidence <= 0.0:
                continue
            # Evidence first, then synonym specificity; full ties keep the parent declared first.
            if best is None or (evidence, specificity) > (best.evidence, best.specificity):
                best = ParentBucket(
                    parent=parent,
                    evidence=evidence,
                    synonym_coverage=coverage,
                    matched_synonym=phrase,
                    hint_ids=hint_ids,
                    specificity=specificity,
                )
        return best


class CandidateGenerator:
    """Lists the canonical specialties of a (domain, parent) pair not vetoed by block rules."""

    def __init__(self, taxonomy: TaxonomyStore, blocks: BlockPolicy) -> None:
        self._taxonomy = taxonomy
        self._blocks = blocks

    def generate(
        self,
        raw_input: RawInput,
        normalized: str,
        domain: Domain,
        parent: str,
    ) -> tuple[tuple[CanonicalSpecialty, ...], tuple[str, ...]]:
        candidates = self._taxonomy.list_candidates(domain, parent)
        return self._blocks.filter(raw_input, normalized, candidates)


__all__ = ["CandidateGenerator", "DEFAULT_HINT_CONFIDENCE", "ParentBucket", "ParentBucketer", "synonym_coverage"]
