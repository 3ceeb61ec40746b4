"""Scoring configuration, named presets and configuration validation."""

from __future__ import annotations

import json
import tomllib
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Mapping

from .exceptions import MappingConfigError

WEIGHT_SUM_TOLERANCE = 0.1


@dataclass(frozen=True, slots=True)
class ScoringWeights:
    """Weights of the scoring components."""

    token: float = 0.45
    synonym: float = 0.25
    char_sim: float = 0.20
    negative: float = -0.50
    source_hint: float = 0.10

    @property
    def positive_total(self) -> float:
        return self.token + self.synonym + self.char_sim + self.source_hint


@dataclass(frozen=True, slots=True)
class FeatureFlags:
    """Selects the string similarity algorithm; exactly one flag must be on."""

    use_jaro_winkler: bool = True
    use_token_set_ratio: bool = False


@dataclass(frozen=True, slots=True)
class MappingConfig:
    """Thresholds, weights and feature flags controlling the engine."""

    min_decision_threshold: float = 0.68
    hard_map_confidence: float = 0.95
    weights: ScoringWeights = field(default_factory=ScoringWeights)
    feature_flags: FeatureFlags = field(default_factory=FeatureFlags)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "min_decision_threshold": self.min_decision_threshold,
            "hard_map_confidence": self.hard_map_confidence,
            "weights": {
                "token": self.weights.token,
                "synonym": self.weights.synonym,
                "char_sim": self.weights.char_sim,
                "negative": self.weights.negative,
                "source_hint": self.weights.source_hint,
            },
            "feature_flags": {
                "use_jaro_winkler": self.feature_flags.use_jaro_winkler,
                "use_token_set_ratio": self.feature_flags.use_token_set_ratio,
            },
        }


DEFAULT_MAPPING_CONFIG = MappingConfig()

PRESETS: Mapping[str, MappingConfig] = {
    # Higher threshold, fewer auto-decisions.
    "conservative": replace(
        DEFAULT_MAPPING_CONFIG,
        min_decision_threshold=0.80,
        weights=ScoringWeights(token=0.50, synonym=0.25, char_sim=0.15, negative=-0.60, source_hint=0.10),
    ),
    # Lower threshold, more auto-decisions.
    "aggressive": replace(
        DEFAULT_MAPPING_CONFIG,
        min_decision_threshold=0.55,
        weights=ScoringWeights(token=0.40, synonym=0.25, char_sim=0.25, negative=-0.40, source_hint=0.10),
    ),
    "pediatric": replace(
        DEFAULT_MAPPING_CONFIG,
        min_decision_threshold=0.70,
        weights=ScoringWeights(token=0.45, synonym=0.20, char_sim=0.20, negative=-0.55, source_hint=0.15),
    ),
    "adult": replace(
        DEFAULT_MAPPING_CONFIG,
        min_decision_threshold=0.65,
        weights=ScoringWeights(token=0.40, synonym=0.30, char_sim=0.20, negative=-0.50, source_hint=0.10),
    ),
}

DEFAULT_PRESET = "conservative"


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _check_unit_interval(errors: list[str], name: str, value: Any) -> None:
    if not _is_number(value):
        errors.append(f"{name} must be a number (got {value!r})")
    elif not 0.0 <= value <= 1.0:
        errors.append(f"{name} must be between 0 and 1")


def collect_config_errors(config: MappingConfig) -> list[str]:
    """Return every constraint the configuration violates."""

    errors: list[str] = []
    _check_unit_interval(errors, "min_decision_threshold", config.min_decision_threshold)
    _check_unit_interval(errors, "hard_map_confidence", config.hard_map_confidence)

    weights = config.weights
    for name in ("token", "synonym", "char_sim", "source_hint"):
        _check_unit_interval(errors, f"weights.{name}", getattr(weights, name))
    if not _is_number(weights.negative):
        errors.append(f"weights.negative must be a number (got {weights.negative!r})")
    elif weights.negative > 0:
        errors.append("weights.negative must be zero or negative (penalty)")

    positives = (weights.token, weights.synonym, weights.char_sim, weights.source_hint)
    if all(_is_number(value) for value in positives):
        total = weights.positive_total
        if abs(total - 1.0) > WEIGHT_SUM_TOLERANCE:
            errors.append(f"weights should sum to approximately 1.0, got {total:.3f}")

    flags = config.feature_flags
    for name in ("use_jaro_winkler", "use_token_set_ratio"):
        if not isinstance(getattr(flags, name), bool):
            errors.append(f"feature_flags.{name} must be true or false")
    if flags.use_jaro_winkler == flags.use_token_set_ratio:
        errors.append("exactly one of use_jaro_winkler and use_token_set_ratio must be enabled")
    return errors


def validate_config(config: MappingConfig) -> MappingConfig:
    """Raise ``MappingConfigError`` if the configuration is invalid."""

    errors = collect_config_errors(config)
    if errors:
        raise MappingConfigError(errors)
    return config


def get_config(name: str = DEFAULT_PRESET) -> MappingConfig:
    """Return a validated preset by name."""

    key = name.strip().lower()
    if key == "default":
        return validate_config(DEFAULT_MAPPING_CONFIG)
    if key not in PRESETS:
        raise MappingConfigError(f"unknown preset '{name}' (expected one of {', '.join(sorted(PRESETS))})")
    return validate_config(PRESETS[key])


def _merge_section(current: Any, value: Any, name: str) -> Any:
    if isinstance(value, type(current)):
        return value
    if not isinstance(value, Mapping):
        raise MappingConfigError(f"{name} must be a table of values (got {type(value).__name__})")
    return replace(current, **value)


def create_custom_config(base: MappingConfig | None = None, **overrides: Any) -> MappingConfig:
    """Create a configuration from a base plus field overrides and validate it.

    Unknown fields, including unknown ``weights``/``feature_flags`` keys, raise
    ``MappingConfigError``.
    """

    base = base or DEFAULT_MAPPING_CONFIG
    weights = overrides.pop("weights", None)
    flags = overrides.pop("feature_flags", None)
    try:
        if weights is not None:
            overrides["weights"] = _merge_section(base.weights, weights, "weights")
        if flags is not None:
            overrides["feature_flags"] = _merge_section(base.feature_flags, flags, "feature_flags")
        config = replace(base, **overrides)
    except TypeError as exc:
        raise MappingConfigError(str(exc)) from exc
    return validate_config(config)


def _load_file(path: Path) -> Dict[str, Any]:
    suffix = path.suffix.lower()
    content = path.read_bytes()
    if suffix == ".json":
        return json.loads(content)
    if suffix in {".toml", ".tml"}:
        return tomllib.loads(content.decode("utf-8"))
    raise MappingConfigError(f"unsupported config format: {path.suffix}")


def load_mapping_config(path: Path) -> MappingConfig:
    """Load a configuration file (TOML or JSON) naming a preset plus overrides.

    Example::

        preset = "aggressive"
        min_decision_threshold = 0.6

        [weights]
        token = 0.5
        char_sim = 0.15
    """

    try:
        data = _load_file(path)
    except (OSError, ValueError) as exc:
        raise MappingConfigError(f"unable to read config {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise MappingConfigError(f"config {path} must contain a table of settings")
    base = get_config(str(data.pop("preset", "default")))
    return create_custom_config(base, **data)


def resolve_config(value: str | None) -> MappingConfig:
    """Resolve a preset name or a configuration file path."""

    if not value:
        return get_config(DEFAULT_PRESET)
    candidate = Path(value).expanduser()
    if candidate.suffix.lower() in {".json", ".toml", ".tml"}:
        return load_mapping_config(candidate)
    return get_config(value)
