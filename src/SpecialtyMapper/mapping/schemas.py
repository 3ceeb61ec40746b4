"""Pydantic document models for taxonomy, synonym, rule, override and test case files.

Documents accept both the camelCase keys used by survey tooling
(``canonicalId``, ``domainHints``) and snake_case keys.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .models import (
    BlockRule,
    BucketingHintRule,
    CanonicalSpecialty,
    Domain,
    DomainHints,
    HardMapRule,
    OverrideMapping,
    RawInput,
    RulesConfig,
    SynonymsConfig,
    TestCase,
)


class _Document(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid", frozen=True)


class CanonicalSpecialtyDocument(_Document):
    id: str = Field(min_length=1)
    parent: str = Field(min_length=1)
    name: str = Field(min_length=1)
    domain: Domain
    tags: List[str] = Field(default_factory=list)

    @field_validator("domain", mode="before")
    @classmethod
    def upper_domain(cls, value):
        return value.upper() if isinstance(value, str) else value

    def to_model(self) -> CanonicalSpecialty:
        return CanonicalSpecialty(
            id=self.id,
            parent=self.parent,
            name=self.name,
            domain=self.domain,
            tags=tuple(tag.lower() for tag in self.tags),
        )


class TaxonomyDocument(_Document):
    specialties: List[CanonicalSpecialtyDocument]


class DomainHintsDocument(_Document):
    pediatric: List[str] = Field(default_factory=list)
    adult: List[str] = Field(default_factory=list)
    other: List[str] = Field(default_factory=list)


class SynonymsDocument(_Document):
    domain_hints: DomainHintsDocument = Field(default_factory=DomainHintsDocument, alias="domainHints")
    parent_synonyms: Dict[str, List[str]] = Field(default_factory=dict, alias="parentSynonyms")
    subspecialty_tokens: Dict[str, List[str]] = Field(default_factory=dict, alias="subspecialtyTokens")
    negative_tokens: Dict[str, List[str]] = Field(default_factory=dict, alias="negativeTokens")
    abbreviations: Dict[str, str] = Field(default_factory=dict)

    def to_model(self) -> SynonymsConfig:
        hints = self.domain_hints
        return SynonymsConfig(
            domain_hints=DomainHints(
                pediatric=tuple(hints.pediatric),
                adult=tuple(hints.adult),
                other=tuple(hints.other),
            ),
            parent_synonyms=self.parent_synonyms,
            subspecialty_tokens=self.subspecialty_tokens,
            negative_tokens=self.negative_tokens,
            abbreviations=self.abbreviations,
        )


class HardMapDocument(_Document):
    id: str = Field(min_length=1)
    pattern: str = Field(min_length=1)
    canonical_id: str = Field(min_length=1, alias="canonicalId")
    confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)


class BlockDocument(_Document):
    id: str = Field(min_length=1)
    condition: str = Field(min_length=1)
    reason: str = ""


class BucketingHintDocument(_Document):
    id: str = Field(min_length=1)
    pattern: str = Field(min_length=1)
    parent: str = Field(min_length=1)
    confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)


class RulesDocument(_Document):
    version: str = Field(min_length=1)
    hard_maps: List[HardMapDocument] = Field(default_factory=list, alias="hardMaps")
    blocks: List[BlockDocument] = Field(default_factory=list)
    bucketing_hints: List[BucketingHintDocument] = Field(default_factory=list, alias="bucketingHints")

    @field_validator("version", mode="before")
    @classmethod
    def stringify_version(cls, value):
        return str(value) if isinstance(value, (int, float)) else value

    def to_model(self) -> RulesConfig:
        return RulesConfig(
            version=self.version,
            hard_maps=tuple(
                HardMapRule(id=rule.id, pattern=rule.pattern, canonical_id=rule.canonical_id, confidence=rule.confidence)
                for rule in self.hard_maps
            ),
            blocks=tuple(BlockRule(id=rule.id, condition=rule.condition, reason=rule.reason) for rule in self.blocks),
            bucketing_hints=tuple(
                BucketingHintRule(id=rule.id, pattern=rule.pattern, parent=rule.parent, confidence=rule.confidence)
                for rule in self.bucketing_hints
            ),
        )


class OverrideDocument(_Document):
    id: str = Field(min_length=1)
    pattern: str = Field(min_length=1)
    canonical_id: str = Field(min_length=1, alias="canonicalId")
    added_by: str = Field(min_length=1, alias="addedBy")
    added_at: str = Field(min_length=1, alias="addedAt")
    source: Optional[str] = None
    reason: Optional[str] = None

    @field_validator("added_at", mode="before")
    @classmethod
    def isoformat_dates(cls, value):
        # YAML parses bare dates into date objects.
        if isinstance(value, (date, datetime)):
            return value.isoformat()
        return value

    def to_model(self) -> OverrideMapping:
        return OverrideMapping(
            id=self.id,
            pattern=self.pattern,
            canonical_id=self.canonical_id,
            added_by=self.added_by,
            added_at=self.added_at,
            source=self.source,
            reason=self.reason,
        )


class OverridesDocument(_Document):
    overrides: List[OverrideDocument] = Field(default_factory=list)


class RawInputDocument(_Document):
    source: str = Field(min_length=1)
    raw_name: str = Field(alias="rawName")
    meta: Dict[str, Union[bool, int, float, str]] = Field(default_factory=dict)

    def to_model(self) -> RawInput:
        return RawInput(source=self.source, raw_name=self.raw_name, meta=self.meta)


class TestCaseDocument(_Document):
    __test__ = False

    id: str = Field(min_length=1)
    input: RawInputDocument
    expected_canonical_id: Optional[str] = Field(alias="expectedCanonicalId")
    description: str = ""
    expected_confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0, alias="expectedConfidence")
    tags: List[str] = Field(default_factory=list)

    def to_model(self) -> TestCase:
        return TestCase(
            id=self.id,
            input=self.input.to_model(),
            expected_canonical_id=self.expected_canonical_id,
            description=self.description,
            expected_confidence=self.expected_confidence,
            tags=tuple(self.tags),
        )


class TestCasesDocument(_Document):
    __test__ = False

    cases: List[TestCaseDocument]


__all__ = [
    "CanonicalSpecialtyDocument",
    "OverrideDocument",
    "OverridesDocument",
    "RawInputDocument",
    "RulesDocument",
    "SynonymsDocument",
    "TaxonomyDocument",
    "TestCaseDocument",
    "TestCasesDocument",
]
