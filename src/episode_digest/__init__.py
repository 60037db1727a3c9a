# This project is intended for personal, non-commercial use only.
# See README and docs/legal.md for details.

"""Episode Digest - AI transcripts, tiered summaries and notifications for podcast episodes.

This package turns episode audio into:
- Diarized transcripts (Voxtral, Deepgram, or published platform captions)
- Quick, deep (three-agent) and insights summaries via Claude
- Email and Telegram notifications once a summary is ready

Programmatic API Example:
    >>> import episode_digest
    >>> from episode_digest import service
    >>>
    >>> cfg = episode_digest.Config(database_url="sqlite:///digest.db")
    >>> services = service.build_services(cfg)
    >>> result = services.orchestrator.request_summary("ep-1", "deep", "en")
    >>> print(result.status)

CLI Usage:
    $ python -m episode_digest.cli init-db
    $ python -m episode_digest.cli request ep-1 --level deep
"""

from __future__ import annotations

from .config import Config, load_config_file

__all__ = [
    "Config",
    "load_config_file",
    "__version__",
    "__api_version__",
]
# Note: 'cli' and 'service' are available via __getattr__ for lazy loading
__version__ = "1.0.0"

__api_version__ = __version__

# Cache for lazy-loaded modules to prevent circular imports
_import_cache: dict[str, object] = {}


def __getattr__(name: str):
    if name in _import_cache:
        return _import_cache[name]

    if name in ("cli", "service"):
        import importlib

        module = importlib.import_module(f"{__name__}.{name}")
        _import_cache[name] = module
        return module
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
