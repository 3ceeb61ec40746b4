"""Calibration harness for the mapping engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Mapping

from .engine import SpecialtyMappingEngine
from .models import MappingDecision, TestCase
from .pipeline import compute_statistics


@dataclass(slots=True)
class CalibrationResult:
    """Aggregated metrics from a calibration run."""

    total: int
    correct: int
    decided: int
    metrics: Mapping[str, float]
    failures: tuple[str, ...] = field(default_factory=tuple)

    @property
    def accuracy(self) -> float:
        return self.metrics.get("accuracy", 0.0)

    @property
    def auto_decide_rate(self) -> float:
        return self.metrics.get("auto_decide_rate", 0.0)

    def to_dict(self) -> dict[str, object]:
        return {
            "total": self.total,
            "correct": self.correct,
            "decided": self.decided,
            "metrics": dict(self.metrics),
            "failures": list(self.failures),
        }


class MappingCalibrationSuite:
    """Runs the engine against gold test cases and reports metrics."""

    def __init__(self, engine: SpecialtyMappingEngine, workers: int | None = None) -> None:
        self._engine = engine
        self._workers = workers

    def run(self, cases: Iterable[TestCase]) -> CalibrationResult:
        case_list = list(cases)
        decisions = self._engine.map_batch((case.input for case in case_list), workers=self._workers)
        correct = 0
        correct_decided = 0
        failures: list[str] = []
        for case, decision in zip(case_list, decisions, strict=True):
            if self._passes(case, decision):
                correct += 1
                if decision.is_decided:
                    correct_decided += 1
            else:
                failures.append(case.id)
        statistics = compute_statistics(decisions)
        total = len(case_list)
        decided = statistics.auto_decided
        metrics = {
            "accuracy": correct / total if total else 0.0,
            "precision": correct_decided / decided if decided else 0.0,
            "auto_decide_rate": statistics.auto_decide_rate,
            "average_confidence": statistics.average_confidence,
        }
        return CalibrationResult(
            total=total,
            correct=correct,
            decided=decided,
            metrics=metrics,
            failures=tuple(failures),
        )

    @staticmethod
    def _passes(case: TestCase, decision: MappingDecision) -> bool:
        if decision.decided_canonical_id != case.expected_canonical_id:
            return False
        if case.expected_confidence is not None and decision.is_decided:
            return decision.confidence >= case.expected_confidence
        return True


__all__ = ["CalibrationResult", "MappingCalibrationSuite"]
