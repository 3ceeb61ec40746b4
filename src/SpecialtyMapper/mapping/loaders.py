"""Load taxonomy, synonyms, rules, overrides and test cases from JSON or YAML.

Loading is the explicit first step: build the stores, then construct the
engine. Nothing here is consulted once the engine exists.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from importlib import resources
from pathlib import Path
from typing import Any, Optional, Sequence, Type, TypeVar

import yaml
from pydantic import BaseModel, ValidationError

from .config import DEFAULT_MAPPING_CONFIG, MappingConfig
from .engine import SpecialtyMappingEngine
from .exceptions import StoreLoadError
from .models import OverrideMapping, RulesConfig, SynonymsConfig, TestCase
from .repository import TaxonomyStore
from .rules import OverrideStore, RulesRepository
from .schemas import (
    OverridesDocument,
    RulesDocument,
    SynonymsDocument,
    TaxonomyDocument,
    TestCasesDocument,
)

logger = logging.getLogger(__name__)

SUPPORTED_SUFFIXES = (".yaml", ".yml", ".json")
DEFAULT_DATA_PACKAGE = "SpecialtyMapper.data"

TAXONOMY_STEM = "taxonomy"
SYNONYMS_STEM = "synonyms"
RULES_STEM = "rules"
OVERRIDES_STEM = "overrides"

DocumentT = TypeVar("DocumentT", bound=BaseModel)


def parse_document(text: str, suffix: str, origin: str) -> Any:
    """Parse JSON or YAML text according to ``suffix``."""

    suffix = suffix.lower()
    try:
        if suffix == ".json":
            return json.loads(text)
        if suffix in {".yaml", ".yml"}:
            return yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise StoreLoadError(f"unable to parse {origin}: {exc}") from exc
    raise StoreLoadError(f"unsupported document format for {origin} (expected one of {', '.join(SUPPORTED_SUFFIXES)})")


def read_document(path: Path) -> Any:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise StoreLoadError(f"unable to read {path}: {exc}") from exc
    return parse_document(text, path.suffix, str(path))


def _validate(model: Type[DocumentT], payload: Any, origin: str) -> DocumentT:
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise StoreLoadError(f"invalid document {origin}: {exc}") from exc


def _wrap_list(payload: Any, key: str) -> Any:
    if isinstance(payload, list):
        return {key: payload}
    if payload is None:
        return {key: []}
    return payload


def taxonomy_from_payload(payload: Any, origin: str = "<taxonomy>") -> TaxonomyStore:
    document = _validate(TaxonomyDocument, _wrap_list(payload, "specialties"), origin)
    return TaxonomyStore.from_iterable(entry.to_model() for entry in document.specialties)


def synonyms_from_payload(payload: Any, origin: str = "<synonyms>") -> SynonymsConfig:
    return _validate(SynonymsDocument, payload or {}, origin).to_model()


def rules_from_payload(payload: Any, origin: str = "<rules>") -> tuple[RulesConfig, ...]:
    """Accept one rule set, a list of rule sets or ``{"versions": [...]}``."""

    if isinstance(payload, dict) and "versions" in payload:
        payload = payload["versions"]
    if payload is None:
        return tuple()
    entries = payload if isinstance(payload, list) else [payload]
    return tuple(_validate(RulesDocument, entry, origin).to_model() for entry in entries)


def overrides_from_payload(payload: Any, origin: str = "<overrides>") -> tuple[OverrideMapping, ...]:
    document = _validate(OverridesDocument, _wrap_list(payload, "overrides"), origin)
    return tuple(entry.to_model() for entry in document.overrides)


def cases_from_payload(payload: Any, origin: str = "<cases>") -> tuple[TestCase, ...]:
    document = _validate(TestCasesDocument, _wrap_list(payload, "cases"), origin)
    return tuple(entry.to_model() for entry in document.cases)


def load_taxonomy(path: Path) -> TaxonomyStore:
    return taxonomy_from_payload(read_document(path), str(path))


def load_synonyms(path: Path) -> SynonymsConfig:
    return synonyms_from_payload(read_document(path), str(path))


def load_rules(path: Path) -> tuple[RulesConfig, ...]:
    return rules_from_payload(read_document(path), str(path))


def load_overrides(path: Path) -> tuple[OverrideMapping, ...]:
    return overrides_from_payload(read_document(path), str(path))


def load_test_cases(path: Path) -> tuple[TestCase, ...]:
    """Load calibration test cases from a JSON or YAML file."""

    return cases_from_payload(read_document(path), str(path))


@dataclass(frozen=True, slots=True)
class DataStores:
    """Every store the engine needs, loaded and compiled."""

    taxonomy: TaxonomyStore
    synonyms: SynonymsConfig
    rules: RulesRepository
    overrides: OverrideStore = field(default_factory=OverrideStore)

    def with_overrides(self, overrides: Sequence[OverrideMapping]) -> "DataStores":
        return DataStores(
            taxonomy=self.taxonomy,
            synonyms=self.synonyms,
            rules=self.rules,
            overrides=self.overrides.extended(overrides),
        )

    def build_engine(self, config: MappingConfig = DEFAULT_MAPPING_CONFIG) -> SpecialtyMappingEngine:
        return SpecialtyMappingEngine(
            taxonomy=self.taxonomy,
            synonyms=self.synonyms,
            rules=self.rules,
            overrides=self.overrides,
            config=config,
        )


def _find(directory: Path, stem: str, required: bool = True) -> Optional[Path]:
    for suffix in SUPPORTED_SUFFIXES:
        candidate = directory / f"{stem}{suffix}"
        if candidate.is_file():
            return candidate
    if required:
        raise StoreLoadError(f"missing {stem} file in {directory} (tried {', '.join(SUPPORTED_SUFFIXES)})")
    return None


def load_stores(data_dir: Path, extra_overrides: Sequence[OverrideMapping] = ()) -> DataStores:
    """Load ``taxonomy``, ``synonyms``, ``rules`` and optional ``overrides`` from ``data_dir``."""

    if not data_dir.is_dir():
        raise StoreLoadError(f"data directory {data_dir} does not exist")
    taxonomy = load_taxonomy(_find(data_dir, TAXONOMY_STEM))
    synonyms = load_synonyms(_find(data_dir, SYNONYMS_STEM))
    rules = RulesRepository(load_rules(_find(data_dir, RULES_STEM)))
    overrides_path = _find(data_dir, OVERRIDES_STEM, required=False)
    overrides = load_overrides(overrides_path) if overrides_path else tuple()
    logger.debug(
        "mapping.stores.loaded",
        extra={
            "payload": {
                "data_dir": str(data_dir),
                "specialties": len(taxonomy),
                "rule_versions": list(rules.versions),
                "overrides": len(overrides) + len(extra_overrides),
            }
        },
    )
    return DataStores(
        taxonomy=taxonomy,
        synonyms=synonyms,
        rules=rules,
        overrides=OverrideStore((*overrides, *extra_overrides)),
    )


def _read_packaged(stem: str) -> Any:
    package = resources.files(DEFAULT_DATA_PACKAGE)
    resource = package.joinpath(f"{stem}.yaml")
    try:
        text = resource.read_text(encoding="utf-8")
    except OSError as exc:
        raise StoreLoadError(f"bundled data file {stem}.yaml is unavailable: {exc}") from exc
    return parse_document(text, ".yaml", f"{DEFAULT_DATA_PACKAGE}/{stem}.yaml")


def load_default_stores() -> DataStores:
    """Load the taxonomy, synonyms and rules bundled with the package."""

    return DataStores(
        taxonomy=taxonomy_from_payload(_read_packaged(TAXONOMY_STEM), f"{TAXONOMY_STEM}.yaml"),
        synonyms=synonyms_from_payload(_read_packaged(SYNONYMS_STEM), f"{SYNONYMS_STEM}.yaml"),
        rules=RulesRepository(rules_from_payload(_read_packaged(RULES_STEM), f"{RULES_STEM}.yaml")),
    )


__all__ = [
    "DataStores",
    "load_default_stores",
    "load_overrides",
    "load_rules",
    "load_stores",
    "load_synonyms",
    "load_taxonomy",
    "load_test_cases",
    "parse_document",
    "read_document",
]
