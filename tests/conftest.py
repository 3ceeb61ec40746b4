from __future__ import annotations

import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

import pytest  # noqa: E402
import yaml  # noqa: E402

from SpecialtyMapper.mapping import (  # noqa: E402
    BucketingHintRule,
    CanonicalSpecialty,
    Domain,
    DomainHints,
    HardMapRule,
    RulesConfig,
    SpecialtyMappingEngine,
    SynonymsConfig,
    TaxonomyStore,
)

TAXONOMY_PAYLOAD = {
    "specialties": [
        {
            "id": "CARD-GENERAL",
            "parent": "Cardiology",
            "name": "General Cardiology",
            "domain": "ADULT",
            "tags": ["cardiology", "general", "adult"],
        },
        {
            "id": "CARD-INTERVENTIONAL",
            "parent": "Cardiology",
            "name": "Interventional Cardiology",
            "domain": "ADULT",
            "tags": ["cardiology", "interventional", "invasive", "adult"],
        },
        {
            "id": "PEDS-CARD-GENERAL",
            "parent": "Pediatric Cardiology",
            "name": "General Pediatric Cardiology",
            "domain": "PEDIATRIC",
            "tags": ["pediatric", "cardiology", "general", "peds"],
        },
    ]
}

SYNONYMS_PAYLOAD = {
    "domainHints": {"pediatric": ["pediatric", "ped", "peds"], "adult": ["adult"]},
    "parentSynonyms": {
        "Cardiology": ["cardiology", "cardiovascular", "cardiac"],
        "Pediatric Cardiology": ["pediatric cardiology", "pediatric cardiovascular"],
    },
    "subspecialtyTokens": {"interventional": ["interventional", "invasive"], "general": ["general"]},
    "negativeTokens": {"Cardiology": ["surgery", "surgical"]},
}

RULES_PAYLOAD = {
    "version": "1.0.0",
    "hardMaps": [
        {"id": "EXACT_CARD_GENERAL", "pattern": "^cardiology$", "canonicalId": "CARD-GENERAL", "confidence": 0.95},
        {
            "id": "EXACT_CARD_INTERVENTIONAL",
            "pattern": "^(interventional|invasive).*cardiology$",
            "canonicalId": "CARD-INTERVENTIONAL",
            "confidence": 0.95,
        },
    ],
    "blocks": [],
    "bucketingHints": [
        {
            "id": "HINT_CARDIOVASCULAR",
            "pattern": ".*(cardiovascular|cardiac|heart).*",
            "parent": "Cardiology",
            "confidence": 0.8,
        }
    ],
}


@pytest.fixture
def taxonomy() -> TaxonomyStore:
    return TaxonomyStore.from_iterable(
        CanonicalSpecialty(
            id=entry["id"],
            parent=entry["parent"],
            name=entry["name"],
            domain=Domain(entry["domain"]),
            tags=tuple(entry["tags"]),
        )
        for entry in TAXONOMY_PAYLOAD["specialties"]
    )


@pytest.fixture
def synonyms() -> SynonymsConfig:
    return SynonymsConfig(
        domain_hints=DomainHints(pediatric=("pediatric", "ped", "peds"), adult=("adult",)),
        parent_synonyms={
            "Cardiology": ("cardiology", "cardiovascular", "cardiac"),
            "Pediatric Cardiology": ("pediatric cardiology", "pediatric cardiovascular"),
        },
        subspecialty_tokens={"interventional": ("interventional", "invasive"), "general": ("general",)},
        negative_tokens={"Cardiology": ("surgery", "surgical")},
    )


@pytest.fixture
def bucketing_rules() -> RulesConfig:
    return RulesConfig(
        version="1.0.0",
        bucketing_hints=(
            BucketingHintRule(
                id="HINT_CARDIOVASCULAR",
                pattern=".*(cardiovascular|cardiac|heart).*",
                parent="Cardiology",
                confidence=0.8,
            ),
        ),
    )


@pytest.fixture
def rules(bucketing_rules: RulesConfig) -> RulesConfig:
    return RulesConfig(
        version="1.0.0",
        hard_maps=(
            HardMapRule(id="EXACT_CARD_GENERAL", pattern="^cardiology$", canonical_id="CARD-GENERAL", confidence=0.95),
            HardMapRule(
                id="EXACT_CARD_INTERVENTIONAL",
                pattern="^(interventional|invasive).*cardiology$",
                canonical_id="CARD-INTERVENTIONAL",
                confidence=0.95,
            ),
        ),
        bucketing_hints=bucketing_rules.bucketing_hints,
    )


@pytest.fixture
def engine(taxonomy: TaxonomyStore, synonyms: SynonymsConfig, rules: RulesConfig) -> SpecialtyMappingEngine:
    return SpecialtyMappingEngine(taxonomy=taxonomy, synonyms=synonyms, rules=[rules])


@pytest.fixture
def scoring_engine(
    taxonomy: TaxonomyStore,
    synonyms: SynonymsConfig,
    bucketing_rules: RulesConfig,
) -> SpecialtyMappingEngine:
    """Engine without hard maps, so every input goes through scoring."""

    return SpecialtyMappingEngine(taxonomy=taxonomy, synonyms=synonyms, rules=[bucketing_rules])


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "data"
    directory.mkdir()
    (directory / "taxonomy.yaml").write_text(yaml.safe_dump(TAXONOMY_PAYLOAD), encoding="utf-8")
    (directory / "synonyms.yaml").write_text(yaml.safe_dump(SYNONYMS_PAYLOAD), encoding="utf-8")
    (directory / "rules.yaml").write_text(yaml.safe_dump(RULES_PAYLOAD), encoding="utf-8")
    return directory


@pytest.fixture
def reset_logging(monkeypatch: pytest.MonkeyPatch):
    """Undo the handlers the CLI installs so later tests do not write to closed streams."""

    for name in ("SM_DATA_DIR", "SM_LOG_FORMAT", "SM_LOG_PATH"):
        monkeypatch.delenv(name, raising=False)
    yield
    for logger in (logging.getLogger(), logging.getLogger("SpecialtyMapper.cli")):
        for handler in list(logger.handlers):
            if type(handler) in (logging.StreamHandler, logging.FileHandler):
                logger.removeHandler(handler)
                handler.close()
    logging.getLogger().setLevel(logging.WARNING)
    logging.getLogger("SpecialtyMapper.cli").propagate = True
