"""Override and hard-map resolution, run before any fuzzy scoring."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .domain import DomainClassification
from .models import CanonicalSpecialty, RawInput
from .policy import BlockPolicy
from .repository import TaxonomyStore
from .rules import OverrideStore, RulesRepository

logger = logging.getLogger(__name__)

OVERRIDE_CONFIDENCE = 1.0
OVERRIDE_PREFIX = "OVERRIDE:"


@dataclass(frozen=True, slots=True)
class Resolution:
    """An immediate decision produced by an override or a hard map."""

    target: CanonicalSpecialty
    rule_id: str
    confidence: float
    reason: str
    note: str


class OverrideResolver:
    """Human-approved overrides; the first matching override decides."""

    def __init__(self, overrides: OverrideStore, taxonomy: TaxonomyStore) -> None:
        self._overrides = overrides
        self._taxonomy = taxonomy

    def resolve(self, raw_input: RawInput, normalized: str, classification: DomainClassification) -> Resolution | None:
        for entry in self._overrides.matching(raw_input.source, normalized):
            override = entry.mapping
            target = self._taxonomy.get(override.canonical_id)
            if not classification.admits(target.domain):
                logger.debug(
                    "mapping.override.skipped",
                    extra={
                        "payload": {
                            "override_id": override.id,
                            "target_domain": target.domain.value,
                            "input_domain": classification.domain.value,
                        }
                    },
                )
                continue
            reason = override.reason or "no reason provided"
            return Resolution(
                target=target,
                rule_id=f"{OVERRIDE_PREFIX}{override.id}",
                confidence=OVERRIDE_CONFIDENCE,
                reason=f"override:{override.id}",
                note=f"Override {override.id} by {override.added_by}: {reason}",
            )
        return None


class HardMapResolver:
    """Scans hard maps in supplied order; the first usable match decides."""

    def __init__(
        self,
        rules: RulesRepository,
        taxonomy: TaxonomyStore,
        blocks: BlockPolicy,
        default_confidence: float,
    ) -> None:
        self._rules = rules
        self._taxonomy = taxonomy
        self._blocks = blocks
        self._default_confidence = default_confidence

    def resolve(self, raw_input: RawInput, normalized: str, classification: DomainClassification) -> Resolution | None:
        for hard_map in self._rules.hard_maps:
            if not hard_map.matches(normalized):
                continue
            rule = hard_map.rule
            target = self._taxonomy.get(rule.canonical_id)
            if not classification.admits(target.domain):
                logger.debug(
                    "mapping.hard_map.skipped",
                    extra={"payload": {"rule_id": rule.id, "reason": "domain", "target_domain": target.domain.value}},
                )
                continue
            block = self._blocks.blocking_rule(raw_input, normalized, target)
            if block is not None:
                logger.debug(
                    "mapping.hard_map.skipped",
                    extra={"payload": {"rule_id": rule.id, "reason": "blocked", "block_id": block.id}},
                )
                continue
            confidence = rule.confidence if rule.confidence is not None else self._default_confidence
            return Resolution(
                target=target,
                rule_id=rule.id,
                confidence=confidence,
                reason=f"hardmap:{rule.id}",
                note=f"Hard mapped by rule {rule.id}",
            )
        return None


__all__ = ["HardMapResolver", "OverrideResolver", "Resolution"]
