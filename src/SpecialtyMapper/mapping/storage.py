"""Persistence of mapping outputs and the accepted-mapping cache."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional

try:
    import duckdb
except ModuleNotFoundError:  # pragma: no cover
    duckdb = None  # type: ignore[assignment]

try:
    import pyarrow as pa
    import pyarrow.parquet as pq
except ModuleNotFoundError:  # pragma: no cover
    pa = None  # type: ignore[assignment]
    pq = None  # type: ignore[assignment]

from .models import MappingDecision, MappingResult, OverrideMapping
from .normalization import TextNormalizer

CACHE_AUTHOR = "mapping-cache"


@dataclass(slots=True)
class MappingStorage:
    """Writes decisions to Parquet and caches accepted mappings in DuckDB.

    Accepted pairs are keyed by ``(source, normalized raw name)`` so a later
    upload of the same survey can reuse them as source-scoped overrides.
    """

    output_root: Path
    duckdb_path: Path
    normalizer: TextNormalizer = field(default_factory=TextNormalizer)
    _conn: object = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.output_root.mkdir(parents=True, exist_ok=True)
        self._conn = self._connect_duckdb()
        self._initialize_duckdb()

    def _connect_duckdb(self):
        if duckdb is None:
            raise RuntimeError("duckdb dependency is required for MappingStorage")
        self.duckdb_path.parent.mkdir(parents=True, exist_ok=True)
        return duckdb.connect(str(self.duckdb_path))

    def _initialize_duckdb(self) -> None:
        self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS accepted_mappings (
                source TEXT,
                normalized_name TEXT,
                raw_name TEXT,
                canonical_id TEXT,
                confidence DOUBLE,
                applied_rule_ids TEXT,
                accepted_at TIMESTAMP,
                PRIMARY KEY (source, normalized_name)
            )
            """
        )

    def persist(self, result: MappingResult) -> None:
        self._write_parquet(result.decisions, "decisions.parquet")
        self._write_metrics(result)
        self.accept(result.decisions)

    def _write_parquet(self, decisions: Iterable[MappingDecision], filename: str) -> None:
        if pa is None or pq is None:
            raise RuntimeError("pyarrow dependency is required for MappingStorage")
        rows = [self._decision_row(decision) for decision in decisions]
        table = pa.Table.from_pylist(rows, schema=self._parquet_schema())
        pq.write_table(table, self.output_root / filename)

    @staticmethod
    def _parquet_schema():
        return pa.schema(
            [
                ("source", pa.string()),
                ("raw_name", pa.string()),
                ("meta", pa.string()),
                ("decided_canonical_id", pa.string()),
                ("confidence", pa.float64()),
                ("applied_rule_ids", pa.list_(pa.string())),
                ("candidates", pa.string()),
                ("notes", pa.string()),
                ("domain", pa.string()),
                ("parent", pa.string()),
                ("domain_defaulted", pa.bool_()),
            ]
        )

    @staticmethod
    def _decision_row(decision: MappingDecision) -> dict[str, object]:
        payload = decision.to_dict()
        return {
            "source": decision.input.source,
            "raw_name": decision.input.raw_name,
            "meta": json.dumps(payload["input"]["meta"], ensure_ascii=False, sort_keys=True),
            "decided_canonical_id": decision.decided_canonical_id,
            "confidence": decision.confidence,
            "applied_rule_ids": list(decision.applied_rule_ids),
            "candidates": json.dumps(payload["candidates"], ensure_ascii=False),
            "notes": decision.notes,
            "domain": payload["domain"],
            "parent": decision.parent,
            "domain_defaulted": decision.domain_defaulted,
        }

    def _write_metrics(self, result: MappingResult) -> None:
        path = self.output_root / "metrics.json"
        path.write_text(json.dumps(result.statistics.to_dict(), indent=2, sort_keys=True), encoding="utf-8")

    def accept(self, decisions: Iterable[MappingDecision]) -> int:
        """Upsert decided mappings into the cache and return how many were stored."""

        accepted_at = datetime.now(timezone.utc).replace(tzinfo=None)
        count = 0
        for decision in decisions:
            if not decision.is_decided:
                continue
            self._conn.execute(
                """
                INSERT OR REPLACE INTO accepted_mappings (
                    source,
                    normalized_name,
                    raw_name,
                    canonical_id,
                    confidence,
                    applied_rule_ids,
                    accepted_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    decision.input.source,
                    self._normalize(decision.input.raw_name),
                    decision.input.raw_name,
                    decision.decided_canonical_id,
                    decision.confidence,
                    json.dumps(list(decision.applied_rule_ids)),
                    accepted_at,
                ),
            )
            count += 1
        return count

    def lookup(self, source: str, raw_name: str) -> Optional[str]:
        row = self._conn.execute(
            "SELECT canonical_id FROM accepted_mappings WHERE source = ? AND normalized_name = ?",
            (source, self._normalize(raw_name)),
        ).fetchone()
        return row[0] if row else None

    def accepted_overrides(self) -> tuple[OverrideMapping, ...]:
        """Turn cached pairs into exact, source-scoped overrides."""

        rows = self._conn.execute(
            """
            SELECT source, normalized_name, canonical_id, accepted_at
            FROM accepted_mappings
            ORDER BY source, normalized_name
            """
        ).fetchall()
        return tuple(
            OverrideMapping(
                id=f"CACHE:{source}:{normalized_name}",
                pattern=f"^{re.escape(normalized_name)}$",
                canonical_id=canonical_id,
                added_by=CACHE_AUTHOR,
                added_at=accepted_at.isoformat() if accepted_at else "",
                source=source,
                reason="previously accepted mapping",
            )
            for source, normalized_name, canonical_id, accepted_at in rows
        )

    def _normalize(self, raw_name: str) -> str:
        return self.normalizer.normalize(raw_name).normalized

    def close(self) -> None:
        self._conn.close()


__all__ = ["MappingStorage"]
