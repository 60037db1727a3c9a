"""Transcription provider adapter: diarized transcripts from heterogeneous backends."""

from .base import normalize_speaker, TranscriptionProvider
from .factory import (
    create_transcription_providers,
    select_transcription_provider,
    TranscriptionProviders,
)

__all__ = [
    "TranscriptionProvider",
    "TranscriptionProviders",
    "create_transcription_providers",
    "normalize_speaker",
    "select_transcription_provider",
]
