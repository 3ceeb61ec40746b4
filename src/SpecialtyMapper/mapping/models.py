"""Core data models for the specialty mapping engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Iterable, Mapping, Optional, Sequence, Union

MetaValue = Union[str, int, float, bool]

KNOWN_SOURCES = ("Gallagher", "SullivanCotter", "MGMA")


class Domain(str, Enum):
    """Specialty domains separated by the domain barrier."""

    ADULT = "ADULT"
    PEDIATRIC = "PEDIATRIC"
    APP_OTHER = "APP_OTHER"


class DomainSignal(str, Enum):
    """Where a domain classification came from."""

    META = "meta"
    KEYWORD = "keyword"
    RULE = "rule"
    DEFAULT = "default"


@dataclass(frozen=True, slots=True)
class CanonicalSpecialty:
    """A single authoritative taxonomy entry."""

    id: str
    parent: str
    name: str
    domain: Domain
    tags: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True, slots=True)
class RawInput:
    """A raw specialty string harvested from one survey row."""

    source: str
    raw_name: str
    meta: Mapping[str, MetaValue] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "meta", MappingProxyType(dict(self.meta or {})))

    def to_dict(self) -> dict[str, object]:
        return {"source": self.source, "raw_name": self.raw_name, "meta": dict(self.meta)}


@dataclass(frozen=True, slots=True)
class MatchCandidate:
    """A scored canonical candidate with machine-readable reasons."""

    canonical_id: str
    score: float
    reasons: tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, object]:
        return {"canonical_id": self.canonical_id, "score": self.score, "reasons": list(self.reasons)}


@dataclass(frozen=True, slots=True)
class MappingDecision:
    """The engine's sole output type."""

    input: RawInput
    decided_canonical_id: Optional[str]
    confidence: float
    applied_rule_ids: tuple[str, ...] = field(default_factory=tuple)
    candidates: tuple[MatchCandidate, ...] = field(default_factory=tuple)
    notes: Optional[str] = None
    domain: Optional[Domain] = None
    parent: Optional[str] = None
    domain_defaulted: bool = False

    @property
    def is_decided(self) -> bool:
        return self.decided_canonical_id is not None

    @property
    def top_candidate(self) -> Optional[MatchCandidate]:
        return self.candidates[0] if self.candidates else None

    def to_dict(self) -> dict[str, object]:
        return {
            "input": self.input.to_dict(),
            "decided_canonical_id": self.decided_canonical_id,
            "confidence": self.confidence,
            "applied_rule_ids": list(self.applied_rule_ids),
            "candidates": [candidate.to_dict() for candidate in self.candidates],
            "notes": self.notes,
            "domain": self.domain.value if self.domain else None,
            "parent": self.parent,
            "domain_defaulted": self.domain_defaulted,
        }


@dataclass(frozen=True, slots=True)
class DomainHints:
    """Keywords that classify a raw name into a domain."""

    pediatric: tuple[str, ...] = field(default_factory=tuple)
    adult: tuple[str, ...] = field(default_factory=tuple)
    other: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True, slots=True)
class SynonymsConfig:
    """Synonym dictionary consumed by the engine."""

    domain_hints: DomainHints = field(default_factory=DomainHints)
    parent_synonyms: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    subspecialty_tokens: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    negative_tokens: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    abbreviations: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        for name in ("parent_synonyms", "subspecialty_tokens", "negative_tokens"):
            value = getattr(self, name) or {}
            frozen = {key: ensure_iterable(entries) for key, entries in value.items()}
            object.__setattr__(self, name, MappingProxyType(frozen))
        object.__setattr__(self, "abbreviations", MappingProxyType(dict(self.abbreviations or {})))


@dataclass(frozen=True, slots=True)
class HardMapRule:
    """Exact pattern that decides a canonical id immediately."""

    id: str
    pattern: str
    canonical_id: str
    confidence: Optional[float] = None


@dataclass(frozen=True, slots=True)
class BlockRule:
    """Condition that vetoes a candidate regardless of score."""

    id: str
    condition: str
    reason: str


@dataclass(frozen=True, slots=True)
class BucketingHintRule:
    """Pattern that points a raw name at a parent group."""

    id: str
    pattern: str
    parent: str
    confidence: Optional[float] = None


@dataclass(frozen=True, slots=True)
class RulesConfig:
    """One versioned set of rules."""

    version: str
    hard_maps: tuple[HardMapRule, ...] = field(default_factory=tuple)
    blocks: tuple[BlockRule, ...] = field(default_factory=tuple)
    bucketing_hints: tuple[BucketingHintRule, ...] = field(default_factory=tuple)


@dataclass(frozen=True, slots=True)
class OverrideMapping:
    """Human-approved mapping that always takes precedence over automated rules."""

    id: str
    pattern: str
    canonical_id: str
    added_by: str
    added_at: str
    source: Optional[str] = None
    reason: Optional[str] = None


@dataclass(frozen=True, slots=True)
class TestCase:
    """A gold example used by the calibration harness."""

    __test__ = False

    id: str
    input: RawInput
    expected_canonical_id: Optional[str]
    description: str = ""
    expected_confidence: Optional[float] = None
    tags: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True, slots=True)
class ConfusionReportEntry:
    """A decision annotated with its resolved parent and domain."""

    input: RawInput
    decision: MappingDecision
    parent: Optional[str]
    domain: Optional[Domain]


@dataclass(frozen=True, slots=True)
class ConfusionCluster:
    """Aggregated decisions sharing one (parent, domain) pair."""

    parent: Optional[str]
    domain: Optional[Domain]
    total: int
    decided: int
    undecided: int
    average_confidence: float
    canonical_ids: Mapping[str, int] = field(default_factory=dict)

    @property
    def undecided_rate(self) -> float:
        return self.undecided / self.total if self.total else 0.0

    def to_dict(self) -> dict[str, object]:
        return {
            "parent": self.parent,
            "domain": self.domain.value if self.domain else None,
            "total": self.total,
            "decided": self.decided,
            "undecided": self.undecided,
            "average_confidence": self.average_confidence,
            "canonical_ids": dict(self.canonical_ids),
        }


@dataclass(frozen=True, slots=True)
class MappingStatistics:
    """Aggregate statistics of one batch."""

    total_processed: int
    auto_decided: int
    undecided: int
    auto_decide_rate: float
    average_confidence: float
    source_breakdown: Mapping[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, object]:
        return {
            "total_processed": self.total_processed,
            "auto_decided": self.auto_decided,
            "undecided": self.undecided,
            "auto_decide_rate": self.auto_decide_rate,
            "average_confidence": self.average_confidence,
            "source_breakdown": dict(self.source_breakdown),
        }


@dataclass(frozen=True, slots=True)
class MappingResult:
    """Aggregated outcome of processing a batch of raw inputs."""

    decisions: Sequence[MappingDecision]
    auto_decided: int
    undecided: int
    confusion_report: Sequence[ConfusionReportEntry]
    clusters: Sequence[ConfusionCluster]
    statistics: MappingStatistics


def ensure_iterable(value: Optional[Iterable[str]]) -> tuple[str, ...]:
    """Return an immutable sequence from the provided iterable."""

    if value is None:
        return tuple()
    if isinstance(value, str):
        return (value,)
    if isinstance(value, tuple):
        return value
    return tuple(value)
