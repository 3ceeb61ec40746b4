"""Batch processing: map many inputs and aggregate statistics."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable, Optional, Sequence

from .engine import SpecialtyMappingEngine
from .models import (
    ConfusionCluster,
    ConfusionReportEntry,
    Domain,
    MappingDecision,
    MappingResult,
    MappingStatistics,
    RawInput,
)
from .telemetry import MappingTelemetry

if TYPE_CHECKING:  # pragma: no cover
    from .storage import MappingStorage


def compute_statistics(decisions: Sequence[MappingDecision]) -> MappingStatistics:
    """Aggregate counts, rates and the per-source breakdown of a batch."""

    total = len(decisions)
    auto_decided = sum(1 for decision in decisions if decision.is_decided)
    undecided = total - auto_decided
    auto_decide_rate = auto_decided / total * 100 if total else 0.0
    average_confidence = sum(decision.confidence for decision in decisions) / total if total else 0.0
    breakdown = Counter(decision.input.source for decision in decisions)
    return MappingStatistics(
        total_processed=total,
        auto_decided=auto_decided,
        undecided=undecided,
        auto_decide_rate=auto_decide_rate,
        average_confidence=average_confidence,
        source_breakdown=dict(breakdown),
    )


def build_confusion_report(decisions: Sequence[MappingDecision]) -> tuple[ConfusionReportEntry, ...]:
    return tuple(
        ConfusionReportEntry(
            input=decision.input,
            decision=decision,
            parent=decision.parent,
            domain=decision.domain,
        )
        for decision in decisions
    )


def cluster_confusion(entries: Sequence[ConfusionReportEntry]) -> tuple[ConfusionCluster, ...]:
    """Group entries by (parent, domain), most undecided groups first."""

    groups: dict[tuple[Optional[str], Optional[Domain]], list[ConfusionReportEntry]] = {}
    for entry in entries:
        groups.setdefault((entry.parent, entry.domain), []).append(entry)

    clusters: list[ConfusionCluster] = []
    for (parent, domain), members in groups.items():
        decided = [member for member in members if member.decision.is_decided]
        canonical_ids = Counter(member.decision.decided_canonical_id for member in decided)
        clusters.append(
            ConfusionCluster(
                parent=parent,
                domain=domain,
                total=len(members),
                decided=len(decided),
                undecided=len(members) - len(decided),
                average_confidence=sum(member.decision.confidence for member in members) / len(members),
                canonical_ids=dict(canonical_ids),
            )
        )
    # Stable sort keeps first-seen order among equal groups.
    clusters.sort(key=lambda cluster: (-cluster.undecided, -cluster.total))
    return tuple(clusters)


@dataclass(slots=True)
class MappingPipeline:
    """Coordinates engine, aggregation, telemetry and optional persistence."""

    engine: SpecialtyMappingEngine
    telemetry: MappingTelemetry | None = None
    storage: MappingStorage | None = None
    workers: int | None = None

    def run(self, inputs: Iterable[RawInput]) -> MappingResult:
        """Map ``inputs`` in order and aggregate the batch."""

        decisions = self.engine.map_batch(inputs, workers=self.workers)
        statistics = compute_statistics(decisions)
        confusion_report = build_confusion_report(decisions)
        clusters = cluster_confusion(confusion_report)
        result = MappingResult(
            decisions=tuple(decisions),
            auto_decided=statistics.auto_decided,
            undecided=statistics.undecided,
            confusion_report=confusion_report,
            clusters=clusters,
            statistics=statistics,
        )
        if self.telemetry:
            self.telemetry.emit_metrics(statistics.to_dict())
            self.telemetry.record_undecided(result.decisions)
            self.telemetry.record_clusters(clusters)
        if self.storage:
            self.storage.persist(result)
        return result


__all__ = ["MappingPipeline", "build_confusion_report", "cluster_confusion", "compute_statistics"]
