"""Block rule conditions that veto canonical candidates."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterable, Sequence

from .exceptions import RuleCompilationError
from .models import BlockRule, CanonicalSpecialty, Domain, RawInput

logger = logging.getLogger(__name__)

CLAUSE_SEPARATOR = "&&"
CONDITION_KEYS = frozenset({"source", "parent", "id", "domain", "pattern"})


def compile_pattern(rule_id: str, pattern: str) -> re.Pattern[str]:
    """Compile a rule pattern case-insensitively, failing with the owning rule id."""

    try:
        return re.compile(pattern, re.IGNORECASE)
    except re.error as exc:
        raise RuleCompilationError(rule_id, f"invalid pattern {pattern!r}: {exc}") from exc


@dataclass(frozen=True, slots=True)
class BlockClause:
    """One ``key:value`` test inside a block condition."""

    key: str
    value: str
    regex: re.Pattern[str] | None = None

    def holds(self, raw_input: RawInput, normalized: str, candidate: CanonicalSpecialty) -> bool:
        if self.key == "source":
            return raw_input.source.casefold() == self.value.casefold()
        if self.key == "parent":
            return candidate.parent.casefold() == self.value.casefold()
        if self.key == "id":
            return candidate.id == self.value
        if self.key == "domain":
            return candidate.domain.value == self.value
        return self.regex is not None and self.regex.search(normalized) is not None


@dataclass(frozen=True, slots=True)
class CompiledBlockRule:
    """A block rule with its condition parsed into clauses."""

    rule: BlockRule
    clauses: tuple[BlockClause, ...]

    @property
    def id(self) -> str:
        return self.rule.id

    @classmethod
    def parse(cls, rule: BlockRule) -> "CompiledBlockRule":
        """Parse ``source:MGMA && parent:Cardiology`` style conditions."""

        clauses: list[BlockClause] = []
        for raw_clause in rule.condition.split(CLAUSE_SEPARATOR):
            text = raw_clause.strip()
            key, separator, value = text.partition(":")
            key = key.strip().lower()
            value = value.strip()
            if not separator or not value:
                raise RuleCompilationError(rule.id, f"malformed clause {text!r} (expected key:value)")
            if key not in CONDITION_KEYS:
                raise RuleCompilationError(
                    rule.id, f"unknown condition key {key!r} (expected one of {', '.join(sorted(CONDITION_KEYS))})"
                )
            if key == "domain":
                try:
                    value = Domain(value.upper()).value
                except ValueError as exc:
                    raise RuleCompilationError(rule.id, f"unknown domain {value!r}") from exc
            regex = compile_pattern(rule.id, value) if key == "pattern" else None
            clauses.append(BlockClause(key=key, value=value, regex=regex))
        return cls(rule=rule, clauses=tuple(clauses))

    def blocks(self, raw_input: RawInput, normalized: str, candidate: CanonicalSpecialty) -> bool:
        return all(clause.holds(raw_input, normalized, candidate) for clause in self.clauses)


class BlockPolicy:
    """Evaluates block rules against candidates for one input."""

    def __init__(self, rules: Iterable[CompiledBlockRule] = ()) -> None:
        self._rules = tuple(rules)

    def __len__(self) -> int:
        return len(self._rules)

    def blocking_rule(
        self,
        raw_input: RawInput,
        normalized: str,
        candidate: CanonicalSpecialty,
    ) -> CompiledBlockRule | None:
        for rule in self._rules:
            if rule.blocks(raw_input, normalized, candidate):
                return rule
        return None

    def filter(
        self,
        raw_input: RawInput,
        normalized: str,
        candidates: Sequence[CanonicalSpecialty],
    ) -> tuple[tuple[CanonicalSpecialty, ...], tuple[str, ...]]:
        """Drop blocked candidates and report the ids of the rules that fired."""

        kept: list[CanonicalSpecialty] = []
        applied: list[str] = []
        for candidate in candidates:
            rule = self.blocking_rule(raw_input, normalized, candidate)
            if rule is None:
                kept.append(candidate)
                continue
            logger.debug(
                "mapping.block",
                extra={"payload": {"rule_id": rule.id, "canonical_id": candidate.id, "reason": rule.rule.reason}},
            )
            if rule.id not in applied:
                applied.append(rule.id)
        return tuple(kept), tuple(applied)


__all__ = ["BlockClause", "BlockPolicy", "CompiledBlockRule", "compile_pattern"]
