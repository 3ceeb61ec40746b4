"""Rules repository and override store with patterns compiled once at load."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Iterator, Mapping, Sequence

from .exceptions import RuleCompilationError
from .models import BucketingHintRule, HardMapRule, OverrideMapping, RulesConfig
from .policy import BlockPolicy, CompiledBlockRule, compile_pattern


@dataclass(frozen=True, slots=True)
class CompiledHardMap:
    rule: HardMapRule
    regex: re.Pattern[str]

    def matches(self, normalized: str) -> bool:
        return self.regex.search(normalized) is not None


@dataclass(frozen=True, slots=True)
class CompiledBucketingHint:
    rule: BucketingHintRule
    regex: re.Pattern[str]

    def matches(self, normalized: str) -> bool:
        return self.regex.search(normalized) is not None


class RulesRepository:
    """Versioned rule sets, applied in the order they were supplied.

    Every pattern is compiled exactly once here and cached by rule id. After
    construction the repository is read-only and can be shared across worker
    threads.
    """

    def __init__(self, rule_sets: Sequence[RulesConfig] = ()) -> None:
        self.rule_sets = tuple(rule_sets)
        self._patterns: dict[str, re.Pattern[str]] = {}
        self._claimed: set[str] = set()
        hard_maps: list[CompiledHardMap] = []
        hints: list[CompiledBucketingHint] = []
        blocks: list[CompiledBlockRule] = []
        for rule_set in self.rule_sets:
            for rule in rule_set.hard_maps:
                hard_maps.append(CompiledHardMap(rule, self._register(rule.id, rule.pattern)))
            for rule in rule_set.bucketing_hints:
                hints.append(CompiledBucketingHint(rule, self._register(rule.id, rule.pattern)))
            for rule in rule_set.blocks:
                self._claim(rule.id)
                blocks.append(CompiledBlockRule.parse(rule))
        self.hard_maps: tuple[CompiledHardMap, ...] = tuple(hard_maps)
        self.bucketing_hints: tuple[CompiledBucketingHint, ...] = tuple(hints)
        self.block_policy = BlockPolicy(blocks)

    def _claim(self, rule_id: str) -> None:
        if rule_id in self._claimed:
            raise RuleCompilationError(rule_id, "duplicate rule id")
        self._claimed.add(rule_id)

    def _register(self, rule_id: str, pattern: str) -> re.Pattern[str]:
        self._claim(rule_id)
        compiled = compile_pattern(rule_id, pattern)
        self._patterns[rule_id] = compiled
        return compiled

    @property
    def versions(self) -> tuple[str, ...]:
        return tuple(rule_set.version for rule_set in self.rule_sets)

    @property
    def patterns(self) -> Mapping[str, re.Pattern[str]]:
        return dict(self._patterns)

    def pattern(self, rule_id: str) -> re.Pattern[str]:
        return self._patterns[rule_id]


@dataclass(frozen=True, slots=True)
class CompiledOverride:
    mapping: OverrideMapping
    regex: re.Pattern[str]

    def applies_to(self, source: str) -> bool:
        return self.mapping.source is None or self.mapping.source.casefold() == source.casefold()

    def matches(self, normalized: str) -> bool:
        return self.regex.search(normalized) is not None


class OverrideStore:
    """Snapshot of human-approved overrides.

    Adding an override means building a new store with :meth:`extended`.
    """

    def __init__(self, overrides: Iterable[OverrideMapping] = ()) -> None:
        compiled: list[CompiledOverride] = []
        seen: set[str] = set()
        for override in overrides:
            if override.id in seen:
                raise RuleCompilationError(override.id, "duplicate override id")
            seen.add(override.id)
            compiled.append(CompiledOverride(override, compile_pattern(override.id, override.pattern)))
        self._overrides = tuple(compiled)

    def __len__(self) -> int:
        return len(self._overrides)

    def __iter__(self) -> Iterator[OverrideMapping]:
        return (entry.mapping for entry in self._overrides)

    def matching(self, source: str, normalized: str) -> Iterator[CompiledOverride]:
        """Yield overrides scoped to ``source`` (or unscoped) whose pattern matches."""

        for entry in self._overrides:
            if entry.applies_to(source) and entry.matches(normalized):
                yield entry

    def extended(self, overrides: Iterable[OverrideMapping]) -> "OverrideStore":
        return OverrideStore((*self, *overrides))


__all__ = [
    "CompiledBucketingHint",
    "CompiledHardMap",
    "CompiledOverride",
    "OverrideStore",
    "RulesRepository",
]
