"""Survey source adapters and their registry."""

from __future__ import annotations

from typing import Callable, Dict, Tuple

from SpecialtyMapper.mapping.exceptions import UnknownSourceError

from .adapters import GallagherAdapter, MGMAAdapter, SullivanCotterAdapter
from .base import SourceAdapter, find_column, pediatric_flag

AdapterFactory = Callable[[], SourceAdapter]

_REGISTRY: Dict[str, Tuple[str, AdapterFactory]] = {}


def _key(name: str) -> str:
    return "".join(name.split()).casefold()


def register_adapter(name: str, factory: AdapterFactory) -> None:
    """Register an adapter factory under a case-insensitive source name."""

    _REGISTRY[_key(name)] = (name, factory)


def available_sources() -> Tuple[str, ...]:
    return tuple(display for display, _ in _REGISTRY.values())


def get_adapter(name: str) -> SourceAdapter:
    try:
        _, factory = _REGISTRY[_key(name)]
    except KeyError:
        raise UnknownSourceError(
            f"Unknown source '{name}' (expected one of {', '.join(available_sources())})"
        ) from None
    return factory()


register_adapter(GallagherAdapter.source, GallagherAdapter)
register_adapter(SullivanCotterAdapter.source, SullivanCotterAdapter)
register_adapter(MGMAAdapter.source, MGMAAdapter)

__all__ = [
    "GallagherAdapter",
    "MGMAAdapter",
    "SourceAdapter",
    "SullivanCotterAdapter",
    "available_sources",
    "find_column",
    "get_adapter",
    "pediatric_flag",
    "register_adapter",
]
