"""Adapters for the survey sources we ingest."""

from __future__ import annotations

import re
from typing import Dict

from SpecialtyMapper.mapping.domain import META_PARENT_HINT, META_PEDIATRIC, META_PROVIDER_TYPE
from SpecialtyMapper.mapping.models import MetaValue

from .base import SourceAdapter


class GallagherAdapter(SourceAdapter):
    """Gallagher labels carry footnote markers and respondent counts.

    ``"Cardiology*"`` and ``"Cardiology (n=42)"`` both become ``"Cardiology"``.
    """

    source = "Gallagher"

    _RESPONDENTS = re.compile(r"\(\s*n\s*=\s*[\d,]+\s*\)", re.IGNORECASE)
    _FOOTNOTES = re.compile(r"[*†‡§¹²³]+")

    def clean_name(self, value: str) -> str:
        value = self._RESPONDENTS.sub(" ", value)
        value = self._FOOTNOTES.sub(" ", value)
        return super().clean_name(value)


class SullivanCotterAdapter(SourceAdapter):
    """SullivanCotter prefixes pediatric rows (``"Pediatrics - Cardiology"``) and APP rows."""

    source = "SullivanCotter"

    _PEDIATRIC_PREFIX = re.compile(r"^\s*(pediatrics?|peds)\s*[-:–]\s*\S", re.IGNORECASE)
    _APP_PREFIX = re.compile(
        r"^\s*(app|np|pa|crna|nurse practitioner|physician assistant)\s*[-:–]\s*\S",
        re.IGNORECASE,
    )

    def extract_meta(self, raw_name: str) -> Dict[str, MetaValue]:
        meta: Dict[str, MetaValue] = {}
        if self._PEDIATRIC_PREFIX.match(raw_name):
            meta[META_PEDIATRIC] = True
        app = self._APP_PREFIX.match(raw_name)
        if app:
            meta[META_PROVIDER_TYPE] = app.group(1).upper() if len(app.group(1)) <= 4 else app.group(1).title()
        return meta


class MGMAAdapter(SourceAdapter):
    """MGMA uses ``"Parent: Subspecialty"`` labels; the parent part becomes ``parentHint``."""

    source = "MGMA"

    _PARENT_SEPARATOR = re.compile(r"^\s*([^:]+?)\s*:\s*(\S.*)$")

    def extract_meta(self, raw_name: str) -> Dict[str, MetaValue]:
        match = self._PARENT_SEPARATOR.match(raw_name)
        if not match:
            return {}
        return {META_PARENT_HINT: match.group(1)}


__all__ = ["GallagherAdapter", "MGMAAdapter", "SullivanCotterAdapter"]
