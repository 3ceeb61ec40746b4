"""Public API for the mapping module."""

from .calibration import CalibrationResult, MappingCalibrationSuite
from .candidate_generation import CandidateGenerator, ParentBucket, ParentBucketer
from .config import (
    DEFAULT_MAPPING_CONFIG,
    DEFAULT_PRESET,
    PRESETS,
    FeatureFlags,
    MappingConfig,
    ScoringWeights,
    create_custom_config,
    get_config,
    load_mapping_config,
    resolve_config,
    validate_config,
)
from .decision import DecisionSelector
from .domain import DomainClassification, DomainClassifier
from .engine import SpecialtyMappingEngine
from .exceptions import (
    MappingConfigError,
    RuleCompilationError,
    SourceAdapterError,
    SpecialtyMappingError,
    StoreLoadError,
    TaxonomyError,
    UnknownSourceError,
)
from .loaders import (
    DataStores,
    load_default_stores,
    load_overrides,
    load_rules,
    load_stores,
    load_synonyms,
    load_taxonomy,
    load_test_cases,
)
from .models import (
    BlockRule,
    BucketingHintRule,
    CanonicalSpecialty,
    ConfusionCluster,
    ConfusionReportEntry,
    Domain,
    DomainHints,
    HardMapRule,
    MappingDecision,
    MappingResult,
    MappingStatistics,
    MatchCandidate,
    OverrideMapping,
    RawInput,
    RulesConfig,
    SynonymsConfig,
    TestCase,
)
from .normalization import TextNormalizer
from .pipeline import MappingPipeline, compute_statistics
from .reporting import MappingReport, review_queue, write_decisions_csv
from .repository import SynonymDictionary, TaxonomyStore
from .resolution import HardMapResolver, OverrideResolver
from .rules import OverrideStore, RulesRepository
from .scoring import CandidateScorer
from .similarity import JaroWinklerSimilarity, TokenSetRatioSimilarity, build_similarity
from .storage import MappingStorage
from .telemetry import MappingTelemetry

__all__ = [
    "BlockRule",
    "BucketingHintRule",
    "CalibrationResult",
    "CandidateGenerator",
    "CandidateScorer",
    "CanonicalSpecialty",
    "ConfusionCluster",
    "ConfusionReportEntry",
    "DEFAULT_MAPPING_CONFIG",
    "DEFAULT_PRESET",
    "DataStores",
    "DecisionSelector",
    "Domain",
    "DomainClassification",
    "DomainClassifier",
    "DomainHints",
    "FeatureFlags",
    "HardMapResolver",
    "HardMapRule",
    "JaroWinklerSimilarity",
    "MappingCalibrationSuite",
    "MappingConfig",
    "MappingConfigError",
    "MappingDecision",
    "MappingPipeline",
    "MappingReport",
    "MappingResult",
    "MappingStatistics",
    "MappingStorage",
    "MappingTelemetry",
    "MatchCandidate",
    "OverrideMapping",
    "OverrideResolver",
    "OverrideStore",
    "PRESETS",
    "ParentBucket",
    "ParentBucketer",
    "RawInput",
    "RuleCompilationError",
    "RulesConfig",
    "RulesRepository",
    "ScoringWeights",
    "SourceAdapterError",
    "SpecialtyMappingEngine",
    "SpecialtyMappingError",
    "StoreLoadError",
    "SynonymDictionary",
    "SynonymsConfig",
    "TaxonomyError",
    "TaxonomyStore",
    "TestCase",
    "TextNormalizer",
    "TokenSetRatioSimilarity",
    "UnknownSourceError",
    "build_similarity",
    "compute_statistics",
    "create_custom_config",
    "get_config",
    "load_default_stores",
    "load_mapping_config",
    "load_overrides",
    "load_rules",
    "load_stores",
    "load_synonyms",
    "load_taxonomy",
    "load_test_cases",
    "resolve_config",
    "review_queue",
    "validate_config",
    "write_decisions_csv",
]
