"""String similarity strategies selected by feature flags."""

from __future__ import annotations

from typing import Protocol

from rapidfuzz import fuzz
from rapidfuzz.distance import JaroWinkler

from .config import FeatureFlags
from .exceptions import MappingConfigError


class SimilarityStrategy(Protocol):
    """Protocol describing a character-level similarity in [0, 1]."""

    name: str

    def similarity(self, left: str, right: str) -> float:  # pragma: no cover - protocol
        ...


class JaroWinklerSimilarity:
    name = "jaro_winkler"

    def similarity(self, left: str, right: str) -> float:
        if not left or not right:
            return 0.0
        return float(JaroWinkler.normalized_similarity(left, right))


class TokenSetRatioSimilarity:
    name = "token_set_ratio"

    def similarity(self, left: str, right: str) -> float:
        if not left or not right:
            return 0.0
        return fuzz.token_set_ratio(left, right) / 100.0


def build_similarity(flags: FeatureFlags) -> SimilarityStrategy:
    """Pick the strategy once; exactly one flag must be enabled."""

    if flags.use_jaro_winkler and not flags.use_token_set_ratio:
        return JaroWinklerSimilarity()
    if flags.use_token_set_ratio and not flags.use_jaro_winkler:
        return TokenSetRatioSimilarity()
    raise MappingConfigError("exactly one of use_jaro_winkler and use_token_set_ratio must be enabled")


__all__ = ["JaroWinklerSimilarity", "SimilarityStrategy", "TokenSetRatioSimilarity", "build_similarity"]
