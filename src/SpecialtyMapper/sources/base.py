"""Base source adapter: survey file to ``RawInput`` records."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

import pandas as pd

from SpecialtyMapper.mapping.domain import (
    META_PEDIATRIC,
    META_PROVIDER_TYPE,
    META_REGION,
    read_flag,
)
from SpecialtyMapper.mapping.exceptions import SourceAdapterError
from SpecialtyMapper.mapping.models import MetaValue, RawInput

logger = logging.getLogger(__name__)

CSV_SUFFIXES = (".csv", ".txt")
EXCEL_SUFFIXES = (".xlsx", ".xls")

SPECIALTY_KEYWORDS = (
    "specialty",
    "speciality",
    "medical specialty",
    "physician specialty",
    "department",
    "service",
    "division",
)
PEDIATRIC_KEYWORDS = ("pediatric", "pediatrics", "ped", "peds", "age group", "patient type", "population")
PROVIDER_TYPE_KEYWORDS = ("provider type", "physician type", "doctor type", "provider", "type")
REGION_KEYWORDS = ("region", "geographic", "location", "state", "area", "market")

_PEDIATRIC_VALUE = re.compile(r"\b(ped|peds|pediatric|pediatrics|paediatric|child|children|neonat)", re.IGNORECASE)
_ADULT_VALUE = re.compile(r"\badult", re.IGNORECASE)


def find_column(headers: Sequence[str], keywords: Iterable[str], exclude: Iterable[int] = ()) -> Optional[int]:
    """Return the index of the first header containing one of ``keywords``.

    Keywords are tried in order, so the more specific ones win.
    """

    excluded = set(exclude)
    lowered = [str(header).strip().casefold() for header in headers]
    for keyword in keywords:
        for index, header in enumerate(lowered):
            if index not in excluded and keyword in header:
                return index
    return None


def pediatric_flag(value: str) -> Optional[bool]:
    """Read a population cell; None unless it clearly says pediatric or adult."""

    text = value.strip()
    if not text:
        return None
    flag = read_flag(text)
    if flag is not None:
        return flag
    if _PEDIATRIC_VALUE.search(text):
        return True
    if _ADULT_VALUE.search(text):
        return False
    return None


class SourceAdapter:
    """Reads one survey file and emits a ``RawInput`` per non-blank specialty row."""

    source: str = "Generic"

    def to_raw_inputs(self, path: Path) -> List[RawInput]:
        frame = self.read_frame(path)
        inputs = self.parse_frame(frame)
        logger.debug(
            "sources.parsed",
            extra={"payload": {"source": self.source, "path": str(path), "rows": len(frame), "inputs": len(inputs)}},
        )
        return inputs

    def read_frame(self, path: Path) -> pd.DataFrame:
        suffix = path.suffix.lower()
        if not path.is_file():
            raise SourceAdapterError(f"input file {path} does not exist")
        if suffix not in CSV_SUFFIXES + EXCEL_SUFFIXES:
            raise SourceAdapterError(
                f"unsupported file type {path.suffix!r} (expected one of {', '.join(CSV_SUFFIXES + EXCEL_SUFFIXES)})"
            )
        try:
            if suffix in CSV_SUFFIXES:
                frame = pd.read_csv(path, dtype=str, keep_default_na=False, skipinitialspace=True)
            else:
                frame = pd.read_excel(path, dtype=str, sheet_name=0)
        except (OSError, ValueError, pd.errors.ParserError, pd.errors.EmptyDataError) as exc:
            raise SourceAdapterError(f"unable to read {path}: {exc}") from exc
        return frame.fillna("")

    def parse_frame(self, frame: pd.DataFrame) -> List[RawInput]:
        headers = [str(column) for column in frame.columns]
        specialty_index = find_column(headers, SPECIALTY_KEYWORDS)
        if specialty_index is None:
            raise SourceAdapterError(f"No specialty column found in headers: {', '.join(headers)}")
        claimed = {specialty_index}
        pediatric_index = find_column(headers, PEDIATRIC_KEYWORDS, exclude=claimed)
        if pediatric_index is not None:
            claimed.add(pediatric_index)
        provider_index = find_column(headers, PROVIDER_TYPE_KEYWORDS, exclude=claimed)
        if provider_index is not None:
            claimed.add(provider_index)
        region_index = find_column(headers, REGION_KEYWORDS, exclude=claimed)

        inputs: List[RawInput] = []
        for values in frame.itertuples(index=False, name=None):
            cells = ["" if value is None else str(value).strip() for value in values]
            raw_name = self.clean_name(cells[specialty_index])
            if not raw_name:
                continue
            meta: Dict[str, MetaValue] = {}
            if pediatric_index is not None:
                flag = pediatric_flag(cells[pediatric_index])
                if flag is not None:
                    meta[META_PEDIATRIC] = flag
            if provider_index is not None and cells[provider_index]:
                meta[META_PROVIDER_TYPE] = cells[provider_index]
            if region_index is not None and cells[region_index]:
                meta[META_REGION] = cells[region_index]
            meta.update(self.extract_meta(raw_name))
            inputs.append(RawInput(source=self.source, raw_name=raw_name, meta=meta))
        return inputs

    def clean_name(self, value: str) -> str:
        return " ".join(value.split())

    def extract_meta(self, raw_name: str) -> Dict[str, MetaValue]:
        """Metadata implied by the source's naming conventions."""

        return {}


__all__ = [
    "PEDIATRIC_KEYWORDS",
    "PROVIDER_TYPE_KEYWORDS",
    "REGION_KEYWORDS",
    "SPECIALTY_KEYWORDS",
    "SourceAdapter",
    "find_column",
    "pediatric_flag",
]
