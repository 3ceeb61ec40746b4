from __future__ import annotations

import json
import logging
from pathlib import Path

import pandas as pd
import pytest

from SpecialtyMapper.mapping import (
    ConfusionReportEntry,
    Domain,
    MappingDecision,
    MappingPipeline,
    MappingReport,
    MappingTelemetry,
    RawInput,
    SpecialtyMappingEngine,
    compute_statistics,
    load_default_stores,
    review_queue,
    write_decisions_csv,
)
from SpecialtyMapper.mapping.pipeline import cluster_confusion
from SpecialtyMapper.mapping.reporting import CSV_COLUMNS


def batch() -> list[RawInput]:
    return [
        RawInput(source="Gallagher", raw_name="Cardiology"),
        RawInput(source="Gallagher", raw_name="Pediatric Cardiology"),
        RawInput(source="MGMA", raw_name="Unknown Specialty"),
        RawInput(source="MGMA", raw_name="Cardiac Surgery"),
    ]


def decision(name: str, canonical_id: str | None, confidence: float, parent: str | None) -> MappingDecision:
    return MappingDecision(
        input=RawInput(source="Gallagher", raw_name=name),
        decided_canonical_id=canonical_id,
        confidence=confidence,
        domain=Domain.ADULT,
        parent=parent,
    )


def test_compute_statistics_counts_and_breakdown(engine: SpecialtyMappingEngine) -> None:
    statistics = compute_statistics(engine.map_batch(batch()))

    assert statistics.total_processed == 4
    assert statistics.auto_decided == 2
    assert statistics.undecided == 2
    assert statistics.auto_decide_rate == pytest.approx(50.0)
    assert 0.0 < statistics.average_confidence < 1.0
    assert statistics.source_breakdown == {"Gallagher": 2, "MGMA": 2}


def test_bundled_stores_batch_statistics() -> None:
    pipeline = MappingPipeline(engine=load_default_stores().build_engine())
    names = ["Cardiology", "Interventional Cardiology", "Pediatric Cardiology", "Unknown Specialty"]

    result = pipeline.run(RawInput(source="Gallagher", raw_name=name) for name in names)

    statistics = result.statistics
    assert statistics.total_processed == 4
    assert statistics.auto_decided == 3
    assert statistics.undecided == 1
    assert statistics.auto_decide_rate == pytest.approx(75.0)
    assert [item.decided_canonical_id for item in result.decisions] == [
        "CARD-GENERAL",
        "CARD-INTERVENTIONAL",
        "PEDS-CARD-GENERAL",
        None,
    ]


def test_compute_statistics_of_empty_batch() -> None:
    statistics = compute_statistics([])

    assert statistics.total_processed == 0
    assert statistics.auto_decide_rate == 0.0
    assert statistics.average_confidence == 0.0
    assert statistics.source_breakdown == {}


def test_clusters_put_most_undecided_groups_first() -> None:
    decisions = [
        decision("Neurology", "NEURO", 0.9, "Neurology"),
        decision("Cardiac Surgery", None, 0.1, "Cardiology"),
        decision("Cardiology", "CARD-GENERAL", 0.95, "Cardiology"),
        decision("Heart Stuff", None, 0.3, "Cardiology"),
        decision("Mystery", None, 0.0, None),
    ]
    entries = [ConfusionReportEntry(item.input, item, item.parent, item.domain) for item in decisions]

    clusters = cluster_confusion(entries)

    assert [cluster.parent for cluster in clusters] == ["Cardiology", None, "Neurology"]
    cardiology = clusters[0]
    assert (cardiology.total, cardiology.decided, cardiology.undecided) == (3, 1, 2)
    assert cardiology.canonical_ids == {"CARD-GENERAL": 1}
    assert cardiology.average_confidence == pytest.approx((0.1 + 0.95 + 0.3) / 3)
    assert cardiology.undecided_rate == pytest.approx(2 / 3)
    assert cardiology.to_dict()["domain"] == "ADULT"


def test_pipeline_aggregates_batch(engine: SpecialtyMappingEngine) -> None:
    result = MappingPipeline(engine=engine).run(batch())

    assert [item.input.raw_name for item in result.decisions] == [item.raw_name for item in batch()]
    assert result.auto_decided == 2
    assert result.undecided == 2
    assert len(result.confusion_report) == 4
    assert [(cluster.parent, cluster.domain) for cluster in result.clusters] == [
        ("Cardiology", Domain.ADULT),
        (None, Domain.ADULT),
        ("Pediatric Cardiology", Domain.PEDIATRIC),
    ]


def test_pipeline_emits_telemetry(engine: SpecialtyMappingEngine, caplog: pytest.LogCaptureFixture) -> None:
    telemetry = MappingTelemetry(logging.getLogger("SpecialtyMapper.tests.telemetry"), cluster_alert_threshold=1)
    caplog.set_level(logging.DEBUG)

    MappingPipeline(engine=engine, telemetry=telemetry).run(batch())

    metrics = [record for record in caplog.records if record.getMessage() == "mapping.metrics"]
    assert len(metrics) == 1
    assert metrics[0].metrics["total_processed"] == 4
    assert metrics[0].metrics["undecided_rate"] == pytest.approx(0.5)
    undecided = [record.payload["raw_name"] for record in caplog.records if record.getMessage() == "mapping.undecided"]
    assert undecided == ["Unknown Specialty", "Cardiac Surgery"]
    alerts = [record for record in caplog.records if record.getMessage() == "mapping.review_cluster"]
    assert [record.levelno for record in alerts] == [logging.WARNING, logging.WARNING]


def test_decisions_csv_columns_and_values(engine: SpecialtyMappingEngine, tmp_path: Path) -> None:
    path = write_decisions_csv(engine.map_batch(batch()), tmp_path / "decisions.csv")

    frame = pd.read_csv(path, dtype=str, keep_default_na=False)

    assert tuple(frame.columns) == CSV_COLUMNS
    first = frame.iloc[0]
    assert first["Canonical ID"] == "CARD-GENERAL"
    assert first["Confidence"] == "0.950"
    assert first["Status"] == "DECIDED"
    assert first["Applied Rules"] == "EXACT_CARD_GENERAL"
    unknown = frame.iloc[2]
    assert unknown["Canonical ID"] == ""
    assert unknown["Status"] == "UNDECIDED"
    assert unknown["Top Candidate"] == ""
    assert "No parent bucket determined" in unknown["Notes"]
    assert frame.iloc[3]["Top Candidate"] in {"CARD-GENERAL", "CARD-INTERVENTIONAL"}


def test_review_queue_keeps_batch_order(engine: SpecialtyMappingEngine) -> None:
    pending = review_queue(engine.map_batch(batch()))

    assert [item.input.raw_name for item in pending] == ["Unknown Specialty", "Cardiac Surgery"]


def test_summary_report(engine: SpecialtyMappingEngine, tmp_path: Path) -> None:
    result = MappingPipeline(engine=engine).run(batch())

    path = MappingReport(tmp_path / "reports").write_summary(result)

    summary = json.loads(path.read_text(encoding="utf-8"))
    assert path.name == "summary.json"
    assert summary["statistics"]["auto_decided"] == 2
    assert summary["clusters"][0]["parent"] == "Cardiology"
    assert [item["raw_name"] for item in summary["review_queue"]] == ["Unknown Specialty", "Cardiac Surgery"]
