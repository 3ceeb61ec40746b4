"""SpecialtyMapper package exports."""

from .cli import *  # noqa: F401,F403
from .cli import __all__ as _cli_all
from .mapping import *  # noqa: F401,F403
from .mapping import __all__ as _mapping_all
from .sources import *  # noqa: F401,F403
from .sources import __all__ as _sources_all

__all__ = [
    *_cli_all,
    *_mapping_all,
    *_sources_all,
]
