"""Weighted candidate scoring."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Sequence

import numpy as np

from .candidate_generation import ParentBucket
from .config import MappingConfig
from .domain import META_PARENT_HINT, META_PEDIATRIC, provider_kind, read_flag
from .models import CanonicalSpecialty, Domain, MatchCandidate, MetaValue
from .normalization import NormalizedText, TextNormalizer, contains_phrase, tokens_match
from .repository import GENERAL_KEY, SynonymDictionary
from .similarity import SimilarityStrategy

SCORE_PRECISION = 6


@dataclass(frozen=True, slots=True)
class ScoreComponents:
    """Raw component values of one candidate, before weighting."""

    token: float
    synonym: float
    char_sim: float
    source_hint: float
    negative: float

    def as_array(self) -> np.ndarray:
        return np.array([self.token, self.synonym, self.char_sim, self.source_hint, self.negative], dtype=float)


class CandidateScorer:
    """Scores the candidates of one parent bucket.

    score = w.token * token + w.synonym * synonym + w.char_sim * char_sim
          + w.source_hint * source_hint + w.negative * negative

    The token component averages input coverage with subspecialty agreement;
    the agreement half is what keeps "Interventional Cardiology" away from the
    general entry of its parent. Scores are clipped to [0, 1].
    """

    def __init__(
        self,
        config: MappingConfig,
        synonyms: SynonymDictionary,
        similarity: SimilarityStrategy,
        normalizer: TextNormalizer,
    ) -> None:
        weights = config.weights
        self._weights = np.array(
            [weights.token, weights.synonym, weights.char_sim, weights.source_hint, weights.negative],
            dtype=float,
        )
        self._synonyms = synonyms
        self._similarity = similarity
        self._normalizer = normalizer

    def score(
        self,
        normalized: NormalizedText,
        meta: Mapping[str, MetaValue],
        bucket: ParentBucket,
        candidates: Sequence[CanonicalSpecialty],
    ) -> tuple[MatchCandidate, ...]:
        """Return one scored candidate per input candidate, in input order."""

        if not candidates:
            return tuple()
        tokens = normalized.content_tokens
        candidate_keys = [self._candidate_keys(candidate) for candidate in candidates]
        evidenced = self._evidenced_keys(normalized.tokens, candidate_keys)
        negatives = self._negative_hits(normalized.tokens, bucket.parent)

        rows: list[np.ndarray] = []
        reasons: list[tuple[str, ...]] = []
        for candidate, keys in zip(candidates, candidate_keys, strict=True):
            components, candidate_reasons = self._components(
                normalized, tokens, meta, bucket, candidate, keys, evidenced, negatives
            )
            rows.append(components.as_array())
            reasons.append(candidate_reasons)

        totals = np.vstack(rows) @ self._weights
        totals = np.clip(totals, 0.0, 1.0)
        return tuple(
            MatchCandidate(
                canonical_id=candidate.id,
                score=round(float(total), SCORE_PRECISION),
                reasons=candidate_reasons,
            )
            for candidate, total, candidate_reasons in zip(candidates, totals, reasons, strict=True)
        )

    def _components(
        self,
        normalized: NormalizedText,
        tokens: Sequence[str],
        meta: Mapping[str, MetaValue],
        bucket: ParentBucket,
        candidate: CanonicalSpecialty,
        keys: frozenset[str],
        evidenced: frozenset[str],
        negatives: tuple[str, ...],
    ) -> tuple[ScoreComponents, tuple[str, ...]]:
        reasons: list[str] = []

        tag_tokens = tuple(
            token for tag in candidate.tags for token in self._normalizer.normalize(tag).tokens
        )
        matched = [token for token in tokens if any(tokens_match(token, tag) for tag in tag_tokens)]
        coverage = len(matched) / len(tokens) if tokens else 0.0
        reasons.extend(f"token:{token}" for token in dict.fromkeys(matched))

        shared = keys & evidenced
        agreement = len(shared) / len(keys | evidenced)
        reasons.extend(f"subspecialty:{key}" for key in sorted(shared))
        token_component = 0.5 * coverage + 0.5 * agreement

        synonym_component = bucket.synonym_coverage
        if synonym_component > 0 and bucket.matched_synonym:
            reasons.append(f"synonym:{bucket.matched_synonym}")

        char_sim = self._char_similarity(normalized.normalized, candidate, keys)
        if char_sim > 0:
            reasons.append(f"charsim:{char_sim:.2f}")

        source_hint = self._source_hint(meta, candidate)
        if source_hint:
            reasons.append(f"sourcehint:{source_hint}")

        reasons.extend(f"negative:{token}" for token in negatives)

        components = ScoreComponents(
            token=token_component,
            synonym=synonym_component,
            char_sim=char_sim,
            source_hint=1.0 if source_hint else 0.0,
            negative=1.0 if negatives else 0.0,
        )
        return components, tuple(reasons)

    def _candidate_keys(self, candidate: CanonicalSpecialty) -> frozenset[str]:
        return self._synonyms.subspecialty_keys(candidate.tags) or frozenset({GENERAL_KEY})

    def _evidenced_keys(self, tokens: Sequence[str], candidate_keys: Sequence[frozenset[str]]) -> frozenset[str]:
        available = frozenset().union(*candidate_keys) - {GENERAL_KEY}
        found = set()
        for key in available:
            phrases = self._synonyms.subspecialty_tokens.get(key, ())
            if any(self._phrase_present(tokens, phrase) for phrase in phrases):
                found.add(key)
        return frozenset(found) or frozenset({GENERAL_KEY})

    def _negative_hits(self, tokens: Sequence[str], parent: str) -> tuple[str, ...]:
        return tuple(
            " ".join(phrase)
            for phrase in self._synonyms.negatives_for(parent)
            if contains_phrase(tuple(tokens), phrase)
        )

    @staticmethod
    def _phrase_present(tokens: Sequence[str], phrase: tuple[str, ...]) -> bool:
        if len(phrase) == 1:
            return any(tokens_match(phrase[0], token) for token in tokens)
        return contains_phrase(tuple(tokens), phrase)

    def _char_similarity(self, text: str, candidate: CanonicalSpecialty, keys: frozenset[str]) -> float:
        labels = [
            self._normalizer.normalize(candidate.name).normalized,
            self._normalizer.normalize(" ".join(candidate.tags)).normalized,
        ]
        if keys == {GENERAL_KEY}:
            labels.append(self._normalizer.normalize(candidate.parent).normalized)
        return max(self._similarity.similarity(text, label) for label in labels)

    @staticmethod
    def _source_hint(meta: Mapping[str, MetaValue], candidate: CanonicalSpecialty) -> str | None:
        """Return the name of the metadata signal that supports ``candidate``, if any."""

        flag = read_flag(meta.get(META_PEDIATRIC))
        if flag is not None and (candidate.domain is Domain.PEDIATRIC) == flag and candidate.domain is not Domain.APP_OTHER:
            return "pediatric"
        kind = provider_kind(meta)
        if kind == "app" and candidate.domain is Domain.APP_OTHER:
            return "provider_type"
        if kind == "physician" and candidate.domain is not Domain.APP_OTHER:
            return "provider_type"
        parent_hint = meta.get(META_PARENT_HINT)
        if isinstance(parent_hint, str) and parent_hint.strip().casefold() == candidate.parent.casefold():
            return "parent_hint"
        return None


__all__ = ["CandidateScorer", "ScoreComponents"]
