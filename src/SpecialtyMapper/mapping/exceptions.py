"""Custom exceptions for the specialty mapping engine."""

from __future__ import annotations


class SpecialtyMappingError(Exception):
    """Base exception for specialty mapping failures."""


class MappingConfigError(SpecialtyMappingError):
    """Raised when a mapping configuration violates its constraints."""

    def __init__(self, errors: list[str] | tuple[str, ...] | str) -> None:
        if isinstance(errors, str):
            errors = [errors]
        self.errors = tuple(errors)
        super().__init__(f"Invalid configuration: {', '.join(self.errors)}")


class TaxonomyError(SpecialtyMappingError):
    """Raised when the canonical taxonomy is inconsistent."""


class RuleCompilationError(SpecialtyMappingError):
    """Raised when a rule pattern or block condition cannot be compiled."""

    def __init__(self, rule_id: str, detail: str) -> None:
        self.rule_id = rule_id
        super().__init__(f"Rule '{rule_id}' is invalid: {detail}")


class StoreLoadError(SpecialtyMappingError):
    """Raised when a taxonomy, synonym, rule or override document cannot be loaded."""


class SourceAdapterError(SpecialtyMappingError):
    """Raised when a survey file cannot be turned into raw inputs."""


class UnknownSourceError(SourceAdapterError, KeyError):
    """Raised when no adapter is registered for a survey source."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else "unknown source"
