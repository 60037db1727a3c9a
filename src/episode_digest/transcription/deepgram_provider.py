"""Fallback ASR: Deepgram pre-recorded transcription over REST.

Deepgram fetches the audio itself, so podcast tracking redirects are resolved
first (``resolve_audio_url``). Utterances come from ``results.utterances``
when diarized utterances are present; otherwise channel words are grouped by
speaker; as a last resort the channel transcript becomes one utterance.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, FrozenSet, List, Optional
from urllib.parse import urljoin, urlparse

import requests

from .. import config
from ..config_constants import (
    DEEPGRAM_WORDS_CONFIDENCE,
    DIRECT_AUDIO_EXTENSIONS,
    MAX_REDIRECT_HOPS,
    REDIRECT_TIMEOUT_SECONDS,
)
from ..exceptions import ProviderError, ValidationError
from ..models import DiarizedTranscript, Utterance
from ..utils.provider_call import ProviderCallPolicy
from .base import language_supported, normalize_language, normalize_speaker

logger = logging.getLogger(__name__)

PROVIDER_NAME = "Deepgram"

DEEPGRAM_SUPPORTED_LANGUAGES: FrozenSet[str] = frozenset(
    {
        "ar", "bg", "ca", "cs", "da", "de", "el", "en", "es", "et", "fi", "fr", "he",
        "hi", "hu", "id", "it", "ja", "ko", "lt", "lv", "ms", "nl", "no", "pl", "pt",
        "ro", "ru", "sk", "sv", "ta", "th", "tr", "uk", "vi", "zh",
    }
)  # fmt: skip


def is_direct_audio_url(url: str) -> bool:
    """True when the URL path ends in a known audio extension."""
    try:
        path = urlparse(url).path.lower()
    except ValueError:
        return False
    return path.endswith(DIRECT_AUDIO_EXTENSIONS)


def resolve_audio_url(
    url: str,
    session: Optional[requests.Session] = None,
    max_hops: int = MAX_REDIRECT_HOPS,
    timeout: float = REDIRECT_TIMEOUT_SECONDS,
    log: Optional[logging.Logger] = None,
) -> str:
    """Follow tracking redirects with HEAD requests to find the final audio URL.

    Direct audio URLs are returned unchanged. A failing hop stops resolution and
    the last known URL is used.
    """
    log = log or logger
    if is_direct_audio_url(url):
        return url

    http = session or requests.Session()
    current = url
    for _ in range(max_hops):
        try:
            response = http.head(current, allow_redirects=False, timeout=timeout)
        except requests.RequestException as exc:
            log.debug("Redirect resolution stopped at %s: %s", current, exc)
            break
        location = response.headers.get("Location") if 300 <= response.status_code < 400 else None
        if not location:
            break
        current = urljoin(current, location)
        if is_direct_audio_url(current):
            break
    if current != url:
        log.debug("Resolved audio URL %s -> %s", url, current)
    return current


class DeepgramTranscriptionProvider:
    """Deepgram transcription provider (FallbackASR, the default variant)."""

    name = "deepgram"
    supported_languages = DEEPGRAM_SUPPORTED_LANGUAGES

    def __init__(
        self,
        cfg: config.Config,
        session: Optional[requests.Session] = None,
        policy: Optional[ProviderCallPolicy] = None,
        log: Optional[logging.Logger] = None,
    ) -> None:
        self.cfg = cfg
        self.model = cfg.deepgram_model
        self.endpoint = f"{cfg.deepgram_api_base.rstrip('/')}/listen"
        self.session = session or requests.Session()
        self.policy = policy or ProviderCallPolicy.from_config(cfg)
        self.log = log or logger

    def is_supported(self, language: str) -> bool:
        return language_supported(self.supported_languages, language)

    def transcribe(self, audio_ref: str, language_hint: Optional[str] = None) -> DiarizedTranscript:
        if not audio_ref or not audio_ref.strip():
            raise ValidationError("audio reference is required for transcription")
        api_key = self.cfg.require("deepgram_api_key", PROVIDER_NAME)
        language = normalize_language(language_hint) or "en"
        audio_url = resolve_audio_url(audio_ref, session=self.session, log=self.log)

        self.log.info(
            "Deepgram transcription started (language: %s)",
            language,
            extra={"provider": self.name, "language": language},
        )
        payload = self.policy.call(
            lambda: self._request(api_key, audio_url, language),
            operation_name="deepgram transcription",
            log=self.log,
        )
        transcript = parse_deepgram_response(payload, language)
        self.log.info(
            "Deepgram transcription completed: %d utterances, %d speakers",
            len(transcript.utterances),
            transcript.speaker_count,
            extra={"provider": self.name, "utterances": len(transcript.utterances)},
        )
        return transcript

    def _request(self, api_key: str, audio_url: str, language: str) -> Dict[str, Any]:
        params = {
            "model": self.model,
            "language": language,
            "diarize": "true",
            "utterances": "true",
            "smart_format": "true",
            "punctuate": "true",
        }
        try:
            response = self.session.post(
                self.endpoint,
                params=params,
                json={"url": audio_url},
                headers={"Authorization": f"Token {api_key}"},
                timeout=self.policy.timeout_seconds,
            )
        except requests.RequestException as exc:
            raise ProviderError(
                message=f"Deepgram request failed: {exc}", provider=PROVIDER_NAME
            ) from exc

        if response.status_code >= 400:
            raise ProviderError(
                message=f"Deepgram returned HTTP {response.status_code}: {response.text[:200]}",
                provider=PROVIDER_NAME,
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as exc:
            raise ProviderError(
                message="Deepgram returned a non-JSON response", provider=PROVIDER_NAME
            ) from exc


def parse_deepgram_response(payload: Dict[str, Any], language: Optional[str]) -> DiarizedTranscript:
    """Normalize a Deepgram ``/listen`` response body."""
    results = payload.get("results") or {}
    channels = results.get("channels") or []
    channel = channels[0] if channels else {}
    utterances: List[Utterance] = []

    raw_utterances = results.get("utterances") or []
    if raw_utterances:
        for utt in raw_utterances:
            utterances.append(
                Utterance(
                    start=float(utt.get("start", 0.0)),
                    end=float(utt.get("end", 0.0)),
                    speaker=normalize_speaker(utt.get("speaker")),
                    text=str(utt.get("transcript", "")).strip(),
                    confidence=float(utt.get("confidence", DEEPGRAM_WORDS_CONFIDENCE)),
                )
            )
    else:
        alternatives = channel.get("alternatives") or []
        alternative = alternatives[0] if alternatives else {}
        words = alternative.get("words") or []
        if words:
            utterances = _group_words_by_speaker(words)
        elif alternative.get("transcript"):
            duration = float((payload.get("metadata") or {}).get("duration", 0.0))
            utterances.append(
                Utterance(0.0, duration, 0, alternative["transcript"], DEEPGRAM_WORDS_CONFIDENCE)
            )

    detected = channel.get("detected_language") or language
    return DiarizedTranscript.from_utterances(utterances, detected_language=detected)


def _group_words_by_speaker(words: List[Dict[str, Any]]) -> List[Utterance]:
    utterances: List[Utterance] = []
    current_speaker = normalize_speaker(words[0].get("speaker"))
    current_start = float(words[0].get("start", 0.0))
    current_text: List[str] = []

    for word in words:
        speaker = normalize_speaker(word.get("speaker"))
        if speaker != current_speaker and current_text:
            utterances.append(
                Utterance(
                    start=current_start,
                    end=float(word.get("start", current_start)),
                    speaker=current_speaker,
                    text=" ".join(current_text),
                    confidence=DEEPGRAM_WORDS_CONFIDENCE,
                )
            )
            current_text = []
            current_start = float(word.get("start", current_start))
            current_speaker = speaker
        current_text.append(str(word.get("punctuated_word") or word.get("word") or ""))

    if current_text:
        utterances.append(
            Utterance(
                start=current_start,
                end=float(words[-1].get("end", current_start)),
                speaker=current_speaker,
                text=" ".join(current_text),
                confidence=DEEPGRAM_WORDS_CONFIDENCE,
            )
        )
    return utterances
