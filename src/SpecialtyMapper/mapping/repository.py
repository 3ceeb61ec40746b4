"""In-memory stores for the canonical taxonomy and the synonym dictionary."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Mapping, Sequence

from .exceptions import TaxonomyError
from .models import CanonicalSpecialty, Domain, SynonymsConfig
from .normalization import TextNormalizer, tokenize, tokens_match

GENERAL_KEY = "general"


@dataclass(frozen=True, slots=True)
class TaxonomyStore:
    """Immutable canonical taxonomy preserving declaration order."""

    specialties: tuple[CanonicalSpecialty, ...]
    _by_id: Mapping[str, CanonicalSpecialty] = field(init=False, repr=False)
    _order: Mapping[str, int] = field(init=False, repr=False)
    _parents: tuple[str, ...] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        by_id: dict[str, CanonicalSpecialty] = {}
        parents: list[str] = []
        for specialty in self.specialties:
            if specialty.id in by_id:
                raise TaxonomyError(f"Duplicate canonical id '{specialty.id}'")
            by_id[specialty.id] = specialty
            if specialty.parent not in parents:
                parents.append(specialty.parent)
        object.__setattr__(self, "specialties", tuple(self.specialties))
        object.__setattr__(self, "_by_id", by_id)
        object.__setattr__(self, "_order", {specialty.id: index for index, specialty in enumerate(self.specialties)})
        object.__setattr__(self, "_parents", tuple(parents))

    @classmethod
    def from_iterable(cls, specialties: Iterable[CanonicalSpecialty]) -> "TaxonomyStore":
        return cls(tuple(specialties))

    def __len__(self) -> int:
        return len(self.specialties)

    def __contains__(self, canonical_id: object) -> bool:
        return canonical_id in self._by_id

    def get(self, canonical_id: str) -> CanonicalSpecialty:
        """Retrieve a single canonical specialty."""

        return self._by_id[canonical_id]

    def find(self, canonical_id: str) -> CanonicalSpecialty | None:
        return self._by_id.get(canonical_id)

    def order_of(self, canonical_id: str) -> int:
        return self._order[canonical_id]

    @property
    def parents(self) -> tuple[str, ...]:
        return self._parents

    def parents_in_domain(self, domain: Domain) -> tuple[str, ...]:
        """Return parent groups with at least one specialty in ``domain``."""

        present = {specialty.parent for specialty in self.specialties if specialty.domain is domain}
        return tuple(parent for parent in self._parents if parent in present)

    def list_candidates(self, domain: Domain, parent: str | None = None) -> Sequence[CanonicalSpecialty]:
        """Return specialties of ``domain`` (and ``parent`` when given) in declaration order."""

        return tuple(
            specialty
            for specialty in self.specialties
            if specialty.domain is domain and (parent is None or specialty.parent == parent)
        )

    def children(self, parent: str) -> Sequence[CanonicalSpecialty]:
        return tuple(specialty for specialty in self.specialties if specialty.parent == parent)


class SynonymDictionary:
    """Synonym lookups with phrases pre-tokenised by the shared normalizer."""

    def __init__(self, config: SynonymsConfig, normalizer: TextNormalizer | None = None) -> None:
        self.config = config
        normalizer = normalizer or TextNormalizer()

        def _phrases(values: Iterable[str]) -> tuple[tuple[str, ...], ...]:
            phrases = (tokenize(normalizer.normalize(value).normalized) for value in values)
            return tuple(phrase for phrase in phrases if phrase)

        hints = config.domain_hints
        self.pediatric_hints = _phrases(hints.pediatric)
        self.adult_hints = _phrases(hints.adult)
        self.other_hints = _phrases(hints.other)
        self.parent_synonyms = {
            parent: _phrases(values) for parent, values in config.parent_synonyms.items()
        }
        self.subspecialty_tokens = {
            key.casefold(): _phrases(values) for key, values in config.subspecialty_tokens.items()
        }
        self.negative_tokens = {
            parent: _phrases(values) for parent, values in config.negative_tokens.items()
        }
        self._domain_hint_words = frozenset(
            phrase[0] for phrase in (*self.pediatric_hints, *self.adult_hints, *self.other_hints) if len(phrase) == 1
        )

    def is_domain_word(self, token: str) -> bool:
        """Return True when ``token`` matches a single-word domain hint."""

        return any(tokens_match(token, hint) for hint in self._domain_hint_words)

    def synonyms_for(self, parent: str) -> tuple[tuple[str, ...], ...]:
        return self.parent_synonyms.get(parent, tuple())

    def negatives_for(self, parent: str) -> tuple[tuple[str, ...], ...]:
        return self.negative_tokens.get(parent, tuple())

    def subspecialty_keys(self, tags: Iterable[str]) -> frozenset[str]:
        """Return the subspecialty keys a candidate carries among its tags."""

        tag_words = {word for tag in tags for word in tag.casefold().split()}
        return frozenset(
            key for key in self.subspecialty_tokens if all(word in tag_words for word in key.split())
        )
