"""Platform captions: published video captions as a transcript source.

Captions carry no speaker labels (everything is speaker 0) and no confidence;
published tracks get ``CAPTIONS_DEFAULT_CONFIDENCE``.
"""

from __future__ import annotations

import html
import logging
import re
from typing import FrozenSet, List, Optional
from urllib.parse import parse_qs, urlparse

import requests

# Bandit: parsing handled via defusedxml safe APIs
from defusedxml.ElementTree import fromstring as safe_fromstring, ParseError as DefusedXMLParseError

from .. import config
from ..config_constants import CAPTIONS_DEFAULT_CONFIDENCE
from ..exceptions import ProviderError, ValidationError
from ..models import DiarizedTranscript, Utterance
from ..utils.provider_call import ProviderCallPolicy
from .base import language_supported, normalize_language

logger = logging.getLogger(__name__)

PROVIDER_NAME = "PlatformCaptions"

CAPTIONS_SUPPORTED_LANGUAGES: FrozenSet[str] = frozenset(
    {
        "ar", "de", "en", "es", "fr", "he", "hi", "id", "it", "ja", "ko", "nl", "pl",
        "pt", "ru", "sv", "th", "tr", "uk", "vi", "zh",
    }
)  # fmt: skip

_VIDEO_ID = re.compile(r"^[A-Za-z0-9_-]{11}$")
_WHITESPACE = re.compile(r"\s+")


def extract_video_id(audio_ref: str) -> Optional[str]:
    """Return the 11-character video id from a bare id or a watch/short/embed URL."""
    ref = (audio_ref or "").strip()
    if _VIDEO_ID.match(ref):
        return ref
    try:
        parsed = urlparse(ref)
    except ValueError:
        return None
    host = (parsed.hostname or "").lower()
    candidate: Optional[str] = None
    if host.endswith("youtu.be"):
        candidate = parsed.path.lstrip("/").split("/")[0]
    elif host.endswith("youtube.com"):
        query_id = parse_qs(parsed.query).get("v")
        if query_id:
            candidate = query_id[0]
        else:
            parts = [p for p in parsed.path.split("/") if p]
            if len(parts) >= 2 and parts[0] in ("shorts", "embed", "live", "v"):
                candidate = parts[1]
    if candidate and _VIDEO_ID.match(candidate):
        return candidate
    return None


class CaptionsTranscriptionProvider:
    """Fetches published captions for platform videos (PlatformCaptions)."""

    name = "captions"
    supported_languages = CAPTIONS_SUPPORTED_LANGUAGES

    def __init__(
        self,
        cfg: config.Config,
        session: Optional[requests.Session] = None,
        policy: Optional[ProviderCallPolicy] = None,
        log: Optional[logging.Logger] = None,
    ) -> None:
        self.endpoint = cfg.captions_api_base
        self.session = session or requests.Session()
        self.policy = policy or ProviderCallPolicy.from_config(cfg)
        self.log = log or logger

    def is_supported(self, language: str) -> bool:
        return language_supported(self.supported_languages, language)

    def transcribe(self, audio_ref: str, language_hint: Optional[str] = None) -> DiarizedTranscript:
        video_id = extract_video_id(audio_ref)
        if not video_id:
            raise ValidationError(f"not a platform video reference: {audio_ref!r}")
        language = normalize_language(language_hint) or "en"

        body = self.policy.call(
            lambda: self._request(video_id, language),
            operation_name="captions fetch",
            log=self.log,
        )
        utterances = parse_caption_xml(body)
        if not utterances:
            raise ProviderError(
                message=f"No captions available for video {video_id} ({language})",
                provider=PROVIDER_NAME,
                status_code=404,
            )
        self.log.info(
            "Fetched %d caption segments for %s",
            len(utterances),
            video_id,
            extra={"provider": self.name, "language": language},
        )
        return DiarizedTranscript.from_utterances(utterances, detected_language=language)

    def _request(self, video_id: str, language: str) -> str:
        try:
            response = self.session.get(
                self.endpoint,
                params={"v": video_id, "lang": language},
                timeout=self.policy.timeout_seconds,
            )
        except requests.RequestException as exc:
            raise ProviderError(
                message=f"Captions request failed: {exc}", provider=PROVIDER_NAME
            ) from exc
        if response.status_code >= 400:
            raise ProviderError(
                message=f"Captions endpoint returned HTTP {response.status_code}",
                provider=PROVIDER_NAME,
                status_code=response.status_code,
            )
        return response.text


def parse_caption_xml(body: str) -> List[Utterance]:
    """Parse a timedtext document (``<transcript><text start dur>...``)."""
    if not body or not body.strip():
        return []
    try:
        root = safe_fromstring(body)
    except DefusedXMLParseError as exc:
        raise ProviderError(
            message=f"Malformed captions document: {exc}", provider=PROVIDER_NAME
        ) from exc

    utterances: List[Utterance] = []
    for node in root.iter("text"):
        text = _WHITESPACE.sub(" ", html.unescape("".join(node.itertext()))).strip()
        if not text:
            continue
        start = float(node.get("start", 0.0))
        duration = float(node.get("dur", 0.0))
        utterances.append(
            Utterance(
                start=start,
                end=start + duration,
                speaker=0,
                text=text,
                confidence=CAPTIONS_DEFAULT_CONFIDENCE,
            )
        )
    return utterances
