"""File-based prompt templates for the summarization stages.

Prompts are Jinja2 templates under ``episode_digest/prompts``, loaded by
logical name (e.g. ``"agents/analyst_user"``) and cached in memory. The
``EPISODE_DIGEST_PROMPT_DIR`` environment variable points loading at another
directory, which is how prompt experiments run without code changes.
"""

from __future__ import annotations

import os
from functools import lru_cache
from hashlib import sha256
from pathlib import Path
from typing import Any, Dict, Optional

from jinja2 import StrictUndefined, Template

_PROMPT_DIR = Path(__file__).resolve().parent / "prompts"
PROMPT_DIR_ENV = "EPISODE_DIGEST_PROMPT_DIR"


class PromptNotFoundError(FileNotFoundError):
    """Raised when a requested prompt template is not found on disk."""


def set_prompt_dir(path: str | Path) -> None:
    """Set the root directory for prompt templates and drop cached templates."""
    global _PROMPT_DIR
    _PROMPT_DIR = Path(path).resolve()
    _load_template.cache_clear()


def get_prompt_dir() -> Path:
    env_prompt_dir = os.getenv(PROMPT_DIR_ENV)
    if env_prompt_dir:
        return Path(env_prompt_dir).resolve()
    return _PROMPT_DIR


def _template_path(name: str) -> Path:
    rel_path = Path(name if name.endswith(".j2") else name + ".j2")
    return get_prompt_dir() / rel_path


@lru_cache(maxsize=None)
def _load_template(name: str) -> Template:
    path = _template_path(name)
    if not path.exists():
        raise PromptNotFoundError(
            f"Prompt template not found: {path}\n"
            f"  Searched in: {get_prompt_dir()}\n"
            f"  Requested name: {name}"
        )
    return Template(path.read_text(encoding="utf-8"), undefined=StrictUndefined)


def render_prompt(name: str, **params: Any) -> str:
    """Render a prompt template.

    Args:
        name: Logical name, e.g. ``"agents/writer_user"``
        **params: Template parameters passed to Jinja2 ``render``

    Returns:
        Rendered prompt, stripped of leading/trailing whitespace

    Raises:
        PromptNotFoundError: If the template file doesn't exist
    """
    return _load_template(name).render(**params).strip()


def hash_text(text: str) -> str:
    return sha256(text.encode("utf-8")).hexdigest()


def get_prompt_metadata(name: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Name, relative file and source hash of a prompt, for run logs."""
    path = _template_path(name)
    if not path.exists():
        raise PromptNotFoundError(f"Prompt template not found: {path}")
    metadata: Dict[str, Any] = {
        "name": name,
        "file": str(path.relative_to(get_prompt_dir())),
        "sha256": hash_text(path.read_text(encoding="utf-8")),
    }
    if params:
        metadata["params"] = params
    return metadata


def clear_cache() -> None:
    _load_template.cache_clear()
