"""Telemetry hooks for the mapping pipeline."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Mapping, Sequence

from .models import ConfusionCluster, MappingDecision


@dataclass(slots=True)
class MappingTelemetry:
    """Emits batch metrics and review signals to the logging system."""

    logger: logging.Logger
    cluster_alert_threshold: int = 3

    def emit_metrics(self, metrics: Mapping[str, object]) -> None:
        enriched = dict(metrics)
        total = float(metrics.get("total_processed", 0) or 0)
        undecided = float(metrics.get("undecided", 0) or 0)
        enriched.setdefault("undecided_rate", undecided / total if total else 0.0)
        self.logger.info("mapping.metrics", extra={"metrics": enriched})

    def emit_event(self, name: str, payload: Mapping[str, object]) -> None:
        self.logger.info(name, extra={"payload": payload})

    def record_undecided(self, decisions: Sequence[MappingDecision]) -> None:
        for decision in decisions:
            if decision.is_decided:
                continue
            self.logger.debug(
                "mapping.undecided",
                extra={
                    "payload": {
                        "source": decision.input.source,
                        "raw_name": decision.input.raw_name,
                        "confidence": decision.confidence,
                        "notes": decision.notes,
                    }
                },
            )

    def record_clusters(self, clusters: Sequence[ConfusionCluster]) -> None:
        """Warn about parent/domain groups collecting many undecided inputs."""

        for cluster in clusters:
            if cluster.undecided < self.cluster_alert_threshold:
                continue
            self.logger.warning(
                "mapping.review_cluster",
                extra={"payload": cluster.to_dict()},
            )


__all__ = ["MappingTelemetry"]
