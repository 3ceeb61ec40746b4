"""Text normalization utilities for raw specialty names."""

from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass
from typing import Iterable, Mapping

STOPWORDS = frozenset({"and", "of", "the", "in", "for", "with", "to", "or", "a", "an"})


@dataclass(frozen=True, slots=True)
class NormalizedText:
    """Represents a normalized specialty name and its tokens."""

    original: str
    normalized: str
    tokens: tuple[str, ...]

    @property
    def content_tokens(self) -> tuple[str, ...]:
        return tuple(token for token in self.tokens if token not in STOPWORDS)


class TextNormalizer:
    """Applies Unicode normalization, case folding, separator cleanup and tokenization."""

    _APOSTROPHE_PATTERN = re.compile(r"['’`]")
    _SEPARATOR_PATTERN = re.compile(r"[^\w\s]|_")
    _WHITESPACE_PATTERN = re.compile(r"\s+")

    def __init__(self, abbreviations: Mapping[str, str] | None = None) -> None:
        self._abbreviations = {
            self._clean(key): self._clean(value) for key, value in (abbreviations or {}).items()
        }
        self._abbreviation_pattern = self._compile_abbreviations(self._abbreviations)

    @staticmethod
    def _remove_control_characters(text: str) -> str:
        return "".join(ch for ch in text if unicodedata.category(ch)[0] != "C" or ch.isspace())

    @classmethod
    def _clean(cls, text: str) -> str:
        clean_text = cls._remove_control_characters(text)
        clean_text = unicodedata.normalize("NFC", clean_text).casefold()
        clean_text = cls._APOSTROPHE_PATTERN.sub("", clean_text)
        clean_text = cls._SEPARATOR_PATTERN.sub(" ", clean_text)
        return cls._WHITESPACE_PATTERN.sub(" ", clean_text).strip()

    @staticmethod
    def _compile_abbreviations(abbreviations: Mapping[str, str]) -> re.Pattern[str] | None:
        if not abbreviations:
            return None
        # Longest keys first so "ob gyn" wins over "ob".
        keys = sorted(abbreviations, key=lambda key: (-len(key), key))
        return re.compile(r"\b(" + "|".join(map(re.escape, keys)) + r")\b")

    def normalize(self, text: str) -> NormalizedText:
        """Normalize a raw specialty name and provide its tokens."""

        cleaned = self._clean(text)
        if self._abbreviation_pattern is not None:
            cleaned = self._abbreviation_pattern.sub(lambda match: self._abbreviations[match.group(0)], cleaned)
        return NormalizedText(original=text, normalized=cleaned, tokens=tokenize(cleaned))

    def normalize_batch(self, texts: Iterable[str]) -> tuple[NormalizedText, ...]:
        """Normalize a batch of texts."""

        return tuple(self.normalize(text) for text in texts)


def tokenize(text: str) -> tuple[str, ...]:
    return tuple(token for token in text.split(" ") if token)


def tokens_match(left: str, right: str, min_prefix: int = 4) -> bool:
    """Return True when two tokens are equal or one is a long-enough prefix of the other."""

    if left == right:
        return True
    shorter, longer = sorted((left, right), key=len)
    return len(shorter) >= min_prefix and longer.startswith(shorter)


def contains_phrase(tokens: tuple[str, ...], phrase: tuple[str, ...]) -> bool:
    """Return True when ``phrase`` occurs as a contiguous token run inside ``tokens``."""

    if not phrase or len(phrase) > len(tokens):
        return False
    width = len(phrase)
    return any(tokens[index : index + width] == phrase for index in range(len(tokens) - width + 1))
