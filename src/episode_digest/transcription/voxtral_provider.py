"""Primary ASR: Mistral Voxtral transcription with built-in diarization.

Uses the mistralai Python SDK (``client.audio.transcriptions.complete``) with
``diarize=True`` and segment timestamps. Voxtral does not report per-segment
confidence, so every utterance gets ``VOXTRAL_DEFAULT_CONFIDENCE``.
"""

from __future__ import annotations

import logging
from typing import Any, FrozenSet, List, Optional

from mistralai import Mistral

from .. import config
from ..config_constants import VOXTRAL_DEFAULT_CONFIDENCE
from ..exceptions import ProviderError, ValidationError
from ..models import DiarizedTranscript, Utterance
from ..utils.provider_call import ProviderCallPolicy
from ..utils.retryable_errors import extract_status_code
from .base import language_supported, normalize_language, normalize_speaker

logger = logging.getLogger(__name__)

VOXTRAL_SUPPORTED_LANGUAGES: FrozenSet[str] = frozenset(
    {"en", "zh", "hi", "es", "ar", "fr", "pt", "ru", "de", "ja", "ko", "it", "nl"}
)

PROVIDER_NAME = "Voxtral"


def _field(obj: Any, name: str, default: Any = None) -> Any:
    """Read ``name`` from an SDK model or a plain dict."""
    if isinstance(obj, dict):
        return obj.get(name, default)
    return getattr(obj, name, default)


class VoxtralTranscriptionProvider:
    """Mistral Voxtral transcription provider (PrimaryASR)."""

    name = "voxtral"
    supported_languages = VOXTRAL_SUPPORTED_LANGUAGES

    def __init__(
        self,
        cfg: config.Config,
        client: Optional[Any] = None,
        policy: Optional[ProviderCallPolicy] = None,
        log: Optional[logging.Logger] = None,
    ) -> None:
        self.cfg = cfg
        self.model = cfg.voxtral_model
        self.policy = policy or ProviderCallPolicy.from_config(cfg)
        self.log = log or logger
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            api_key = self.cfg.require("mistral_api_key", PROVIDER_NAME)
            self._client = Mistral(api_key=api_key)
        return self._client

    def is_supported(self, language: str) -> bool:
        return language_supported(self.supported_languages, language)

    def transcribe(self, audio_ref: str, language_hint: Optional[str] = None) -> DiarizedTranscript:
        if not audio_ref or not audio_ref.strip():
            raise ValidationError("audio reference is required for transcription")
        language = normalize_language(language_hint) or None
        self.log.info(
            "Voxtral transcription started (language: %s)",
            language or "auto",
            extra={"provider": self.name, "language": language},
        )
        response = self.policy.call(
            lambda: self._request(audio_ref, language),
            operation_name="voxtral transcription",
            log=self.log,
        )
        transcript = self._parse_response(response, language)
        self.log.info(
            "Voxtral transcription completed: %d utterances, %d speakers",
            len(transcript.utterances),
            transcript.speaker_count,
            extra={"provider": self.name, "utterances": len(transcript.utterances)},
        )
        return transcript

    def _request(self, audio_ref: str, language: Optional[str]) -> Any:
        kwargs: dict = {
            "model": self.model,
            "file_url": audio_ref,
            "diarize": True,
            "timestamp_granularities": ["segment"],
        }
        if language:
            kwargs["language"] = language
        try:
            return self.client.audio.transcriptions.complete(**kwargs)
        except ProviderError:
            raise
        except Exception as exc:
            status = extract_status_code(exc)
            suggestion = None
            if status in (401, 403):
                suggestion = "Check your MISTRAL_API_KEY environment variable or config setting"
            raise ProviderError(
                message=f"Voxtral transcription failed: {exc}",
                provider=PROVIDER_NAME,
                suggestion=suggestion,
                status_code=status,
            ) from exc

    def _parse_response(self, response: Any, language: Optional[str]) -> DiarizedTranscript:
        utterances: List[Utterance] = []
        for segment in _field(response, "segments", None) or []:
            speaker = _field(segment, "speaker", None)
            if speaker is None:
                speaker = _field(segment, "speaker_id", None)
            utterances.append(
                Utterance(
                    start=float(_field(segment, "start", 0.0) or 0.0),
                    end=float(_field(segment, "end", 0.0) or 0.0),
                    speaker=normalize_speaker(speaker),
                    text=str(_field(segment, "text", "") or "").strip(),
                    confidence=VOXTRAL_DEFAULT_CONFIDENCE,
                )
            )

        if not utterances:
            text = str(_field(response, "text", "") or "").strip()
            if text:
                self.log.warning("Voxtral returned no segments; using full text as one utterance")
                utterances.append(Utterance(0.0, 0.0, 0, text, VOXTRAL_DEFAULT_CONFIDENCE))

        detected = _field(response, "language", None) or language
        return DiarizedTranscript.from_utterances(utterances, detected_language=detected)
