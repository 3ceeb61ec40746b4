"""Domain classification: the first stage of every mapping."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Mapping, Optional, Sequence

from .models import Domain, DomainSignal, MetaValue
from .normalization import NormalizedText, TextNormalizer
from .repository import SynonymDictionary

logger = logging.getLogger(__name__)

META_PEDIATRIC = "pediatric"
META_PROVIDER_TYPE = "providerType"
META_PARENT_HINT = "parentHint"
META_REGION = "region"

DEFAULT_DOMAIN = Domain.ADULT

APP_PROVIDER_TYPES = (
    "app",
    "advanced practice",
    "advanced practice provider",
    "np",
    "nurse practitioner",
    "pa",
    "physician assistant",
    "crna",
    "cnm",
    "midwife",
)
PHYSICIAN_PROVIDER_TYPES = ("physician", "md", "do", "doctor", "phys")

_TRUE_VALUES = frozenset({"true", "yes", "y", "1", "pediatric", "peds"})
_FALSE_VALUES = frozenset({"false", "no", "n", "0", "adult"})

_meta_normalizer = TextNormalizer()


def read_flag(value: Optional[MetaValue]) -> Optional[bool]:
    """Interpret a metadata flag; return None when it carries no clear signal."""

    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value) if value in (0, 1) else None
    text = str(value).strip().casefold()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    return None


def provider_kind(meta: Mapping[str, MetaValue]) -> Optional[str]:
    """Return ``"app"``, ``"physician"`` or None from provider-type metadata."""

    value = meta.get(META_PROVIDER_TYPE)
    if value is None or isinstance(value, bool):
        return None
    text = _meta_normalizer.normalize(str(value)).normalized
    if not text:
        return None
    # APP first: "physician assistant" also contains "physician".
    if any(_has_word(text, kind) for kind in APP_PROVIDER_TYPES):
        return "app"
    if any(_has_word(text, kind) for kind in PHYSICIAN_PROVIDER_TYPES):
        return "physician"
    return None


def _has_word(text: str, phrase: str) -> bool:
    return re.search(r"\b" + re.escape(phrase) + r"\b", text) is not None


@dataclass(frozen=True, slots=True)
class DomainClassification:
    """Resolved domain together with the signal it came from."""

    domain: Domain
    signal: DomainSignal
    hint: Optional[str] = None

    @property
    def defaulted(self) -> bool:
        return self.signal is DomainSignal.DEFAULT

    def admits(self, domain: Domain) -> bool:
        """Return True when a rule target in ``domain`` may be used for this input."""

        return self.defaulted or domain is self.domain

    def adopt(self, domain: Domain, rule_id: str) -> "DomainClassification":
        if not self.defaulted:
            return self
        return DomainClassification(domain=domain, signal=DomainSignal.RULE, hint=rule_id)


class DomainClassifier:
    """Classifies a normalized name into ADULT, PEDIATRIC or APP_OTHER.

    Hints match at the start of a word, so ``ped`` finds "peds" and
    "pediatrics" but never "orthopedic".
    """

    def __init__(self, synonyms: SynonymDictionary, default_domain: Domain = DEFAULT_DOMAIN) -> None:
        self.default_domain = default_domain
        self._scans: tuple[tuple[Domain, re.Pattern[str] | None], ...] = (
            (Domain.APP_OTHER, self._compile(synonyms.other_hints)),
            (Domain.PEDIATRIC, self._compile(synonyms.pediatric_hints)),
            (Domain.ADULT, self._compile(synonyms.adult_hints)),
        )

    @staticmethod
    def _compile(phrases: Sequence[tuple[str, ...]]) -> re.Pattern[str] | None:
        if not phrases:
            return None
        # Longest first so multi-word hints are reported over their prefixes.
        texts = sorted({" ".join(phrase) for phrase in phrases}, key=lambda text: (-len(text), text))
        return re.compile(r"\b(" + "|".join(re.escape(text) for text in texts) + r")")

    def classify(self, normalized: NormalizedText, meta: Mapping[str, MetaValue] | None = None) -> DomainClassification:
        meta = meta or {}
        flag = read_flag(meta.get(META_PEDIATRIC))
        if flag is not None:
            domain = Domain.PEDIATRIC if flag else Domain.ADULT
            return DomainClassification(domain=domain, signal=DomainSignal.META, hint=META_PEDIATRIC)
        if provider_kind(meta) == "app":
            return DomainClassification(domain=Domain.APP_OTHER, signal=DomainSignal.META, hint=META_PROVIDER_TYPE)
        for domain, pattern in self._scans:
            if pattern is None:
                continue
            match = pattern.search(normalized.normalized)
            if match:
                return DomainClassification(domain=domain, signal=DomainSignal.KEYWORD, hint=match.group(1))
        logger.debug("mapping.domain.default", extra={"payload": {"normalized": normalized.normalized}})
        return DomainClassification(domain=self.default_domain, signal=DomainSignal.DEFAULT)


__all__ = [
    "DomainClassification",
    "DomainClassifier",
    "META_PARENT_HINT",
    "META_PEDIATRIC",
    "META_PROVIDER_TYPE",
    "META_REGION",
    "provider_kind",
    "read_flag",
]
