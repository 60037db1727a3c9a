"""Factory and selection for transcription providers.

Selection is a pure function over provider capabilities; no call site
branches on provider names.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal, Optional, Sequence

from .. import config
from ..exceptions import ConfigurationError
from .base import TranscriptionProvider
from .captions_provider import CaptionsTranscriptionProvider
from .deepgram_provider import DeepgramTranscriptionProvider
from .voxtral_provider import VoxtralTranscriptionProvider

AudioSource = Literal["audio", "platform_video"]


@dataclass(frozen=True)
class TranscriptionProviders:
    """The configured variants.

    Attributes:
        asr: ASR variants in preference order (PrimaryASR first)
        default: Variant used when no ASR variant supports the language
        captions: PlatformCaptions variant for platform videos
    """

    asr: Sequence[TranscriptionProvider]
    default: TranscriptionProvider
    captions: Optional[TranscriptionProvider] = None


def select_transcription_provider(
    providers: TranscriptionProviders,
    language: str,
    source: AudioSource = "audio",
) -> TranscriptionProvider:
    """Pick the provider for an episode.

    Platform videos use captions when a captions provider is configured.
    Otherwise the first ASR variant whose ``is_supported(language)`` holds is
    chosen, falling back to the default variant (which may itself fail).
    """
    if source == "platform_video" and providers.captions is not None:
        return providers.captions
    for provider in providers.asr:
        if provider.is_supported(language):
            return provider
    return providers.default


def create_transcription_providers(
    cfg: config.Config, log: Optional[logging.Logger] = None
) -> TranscriptionProviders:
    """Build the provider set from configuration.

    Voxtral is only added when a Mistral key is configured; Deepgram is always
    the default variant and checks its credentials when first used.

    Raises:
        ConfigurationError: If no ASR credentials are configured at all
    """
    if not cfg.mistral_api_key and not cfg.deepgram_api_key:
        raise ConfigurationError(
            message="No transcription provider credentials configured",
            provider="Transcription",
            config_key="deepgram_api_key",
            suggestion="Set MISTRAL_API_KEY and/or DEEPGRAM_API_KEY",
        )
    deepgram = DeepgramTranscriptionProvider(cfg, log=log)
    asr: list = []
    if cfg.mistral_api_key:
        asr.append(VoxtralTranscriptionProvider(cfg, log=log))
    asr.append(deepgram)
    return TranscriptionProviders(
        asr=tuple(asr),
        default=deepgram,
        captions=CaptionsTranscriptionProvider(cfg, log=log),
    )
