"""Decision selection for scored candidates."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

from .models import Domain, MappingDecision, MatchCandidate, RawInput
from .repository import TaxonomyStore


@dataclass(frozen=True, slots=True)
class DecisionContext:
    """What the engine learned about an input before selection."""

    domain: Optional[Domain] = None
    parent: Optional[str] = None
    domain_defaulted: bool = False
    applied_rule_ids: tuple[str, ...] = ()
    notes: tuple[str, ...] = ()


def join_notes(notes: Sequence[str]) -> Optional[str]:
    cleaned = [note for note in notes if note]
    return "; ".join(cleaned) if cleaned else None


class DecisionSelector:
    """Applies the decision threshold to ranked candidates."""

    def __init__(self, threshold: float, taxonomy: TaxonomyStore) -> None:
        self.threshold = threshold
        self._taxonomy = taxonomy

    def rank(self, candidates: Sequence[MatchCandidate]) -> tuple[MatchCandidate, ...]:
        """Sort by score descending; ties keep taxonomy declaration order."""

        return tuple(
            sorted(candidates, key=lambda candidate: (-candidate.score, self._taxonomy.order_of(candidate.canonical_id)))
        )

    def select(
        self,
        raw_input: RawInput,
        candidates: Sequence[MatchCandidate],
        context: DecisionContext,
    ) -> MappingDecision:
        ranked = self.rank(candidates)
        if not ranked:
            return undecided(raw_input, context, "No candidates to score")
        top = ranked[0]
        if top.score >= self.threshold:
            note = f"Auto-decided with confidence {top.score:.3f}"
            decided_id: Optional[str] = top.canonical_id
        else:
            note = (
                f"Below threshold ({self.threshold:.2f}): top candidate {top.canonical_id} "
                f"scored {top.score:.3f}; needs manual review"
            )
            decided_id = None
        return MappingDecision(
            input=raw_input,
            decided_canonical_id=decided_id,
            confidence=top.score,
            applied_rule_ids=context.applied_rule_ids,
            candidates=ranked,
            notes=join_notes((*context.notes, note)),
            domain=context.domain,
            parent=context.parent,
            domain_defaulted=context.domain_defaulted,
        )


def undecided(
    raw_input: RawInput,
    context: DecisionContext,
    note: str,
    candidates: Sequence[MatchCandidate] = (),
    confidence: float = 0.0,
) -> MappingDecision:
    """Build an undecided decision for manual review."""

    return MappingDecision(
        input=raw_input,
        decided_canonical_id=None,
        confidence=confidence,
        applied_rule_ids=context.applied_rule_ids,
        candidates=tuple(candidates),
        notes=join_notes((*context.notes, note)),
        domain=context.domain,
        parent=context.parent,
        domain_defaulted=context.domain_defaulted,
    )


__all__ = ["DecisionContext", "DecisionSelector", "join_notes", "undecided"]
