"""TranscriptionProvider protocol definition.

All transcription variants (PrimaryASR, FallbackASR, PlatformCaptions)
implement this protocol and return a normalized ``DiarizedTranscript``.
"""

from __future__ import annotations

import re
from typing import FrozenSet, Optional, Protocol, runtime_checkable

from ..models import DiarizedTranscript

_SPEAKER_DIGITS = re.compile(r"(\d+)")


@runtime_checkable
class TranscriptionProvider(Protocol):
    """Protocol for transcription providers."""

    name: str
    supported_languages: FrozenSet[str]

    def is_supported(self, language: str) -> bool:
        """Return True if the provider can transcribe ``language``."""
        ...

    def transcribe(self, audio_ref: str, language_hint: Optional[str] = None) -> DiarizedTranscript:
        """Transcribe the referenced audio (URL or platform id).

        Raises:
            ValidationError: If ``audio_ref`` is empty or malformed
            ConfigurationError: If credentials are missing
            ProviderError: If the backend fails after retries
        """
        ...


def normalize_language(language: Optional[str]) -> str:
    """Lowercase primary subtag: ``"en-US"`` -> ``"en"``."""
    return (language or "").strip().lower().replace("_", "-").split("-")[0]


def language_supported(supported: FrozenSet[str], language: Optional[str]) -> bool:
    return normalize_language(language) in supported


def normalize_speaker(label: object) -> int:
    """Normalize a provider speaker label to a non-negative integer id.

    Accepts ints, numeric strings and labels such as ``"speaker_0"``; anything
    else (including ``None``) maps to 0.
    """
    if isinstance(label, bool) or label is None:
        return 0
    if isinstance(label, int):
        return max(0, label)
    if isinstance(label, float):
        return max(0, int(label))
    match = _SPEAKER_DIGITS.search(str(label))
    return int(match.group(1)) if match else 0
