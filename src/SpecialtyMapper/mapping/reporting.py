"""Reporting helpers: CSV export, review queue and batch summaries."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Sequence

import pandas as pd

from .models import MappingDecision, MappingResult

CSV_COLUMNS = (
    "Source",
    "Raw Name",
    "Canonical ID",
    "Confidence",
    "Status",
    "Top Candidate",
    "Applied Rules",
    "Notes",
)
STATUS_DECIDED = "DECIDED"
STATUS_UNDECIDED = "UNDECIDED"


def decisions_to_rows(decisions: Iterable[MappingDecision]) -> list[dict[str, str]]:
    rows: list[dict[str, str]] = []
    for decision in decisions:
        top = decision.top_candidate
        rows.append(
            {
                "Source": decision.input.source,
                "Raw Name": decision.input.raw_name,
                "Canonical ID": decision.decided_canonical_id or "",
                "Confidence": f"{decision.confidence:.3f}",
                "Status": STATUS_DECIDED if decision.is_decided else STATUS_UNDECIDED,
                "Top Candidate": top.canonical_id if top else "",
                "Applied Rules": ";".join(decision.applied_rule_ids),
                "Notes": decision.notes or "",
            }
        )
    return rows


def decisions_to_frame(decisions: Iterable[MappingDecision]) -> pd.DataFrame:
    return pd.DataFrame(decisions_to_rows(decisions), columns=list(CSV_COLUMNS))


def write_decisions_csv(decisions: Iterable[MappingDecision], path: Path) -> Path:
    """Write decisions to ``path`` as CSV; parent directories must exist."""

    frame = decisions_to_frame(decisions)
    frame.to_csv(path, index=False)
    return path


def review_queue(decisions: Sequence[MappingDecision]) -> tuple[MappingDecision, ...]:
    """Return the undecided decisions in batch order."""

    return tuple(decision for decision in decisions if not decision.is_decided)


@dataclass(slots=True)
class MappingReport:
    """Produces human-readable summaries of mapping batches."""

    output_root: Path

    def write_summary(self, result: MappingResult) -> Path:
        summary = {
            "statistics": result.statistics.to_dict(),
            "clusters": [cluster.to_dict() for cluster in result.clusters],
            "review_queue": [
                {
                    "source": decision.input.source,
                    "raw_name": decision.input.raw_name,
                    "confidence": decision.confidence,
                    "notes": decision.notes,
                }
                for decision in review_queue(result.decisions)
            ],
        }
        self.output_root.mkdir(parents=True, exist_ok=True)
        path = self.output_root / "summary.json"
        path.write_text(json.dumps(summary, indent=2, sort_keys=True), encoding="utf-8")
        return path


__all__ = [
    "CSV_COLUMNS",
    "MappingReport",
    "decisions_to_frame",
    "decisions_to_rows",
    "review_queue",
    "write_decisions_csv",
]
