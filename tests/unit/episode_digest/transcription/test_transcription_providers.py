"""Unit tests for the transcription provider variants.

SDK clients and HTTP sessions are mocks; no test reaches a real backend.
"""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
import requests
from digest_fakes import create_test_config

from episode_digest.config_constants import (
    CAPTIONS_DEFAULT_CONFIDENCE,
    DEEPGRAM_WORDS_CONFIDENCE,
    VOXTRAL_DEFAULT_CONFIDENCE,
)
from episode_digest.exceptions import ConfigurationError, ProviderError, ValidationError
from episode_digest.transcription import normalize_speaker
from episode_digest.transcription.base import normalize_language
from episode_digest.transcription.captions_provider import (
    CaptionsTranscriptionProvider,
    extract_video_id,
    parse_caption_xml,
)
from episode_digest.transcription.deepgram_provider import (
    DeepgramTranscriptionProvider,
    is_direct_audio_url,
    parse_deepgram_response,
    resolve_audio_url,
)
from episode_digest.transcription.voxtral_provider import VoxtralTranscriptionProvider
from episode_digest.utils.provider_call import ProviderCallPolicy

NO_RETRY = ProviderCallPolicy(timeout_seconds=None, max_attempts=1)


def _response(status_code=200, payload=None, text="", headers=None):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload
    response.text = text
    response.headers = headers or {}
    return response


@pytest.mark.unit
class TestNormalization:
    @pytest.mark.parametrize(
        "label, expected",
        [(2, 2), ("3", 3), ("speaker_1", 1), ("SPEAKER 04", 4), (None, 0), ("host", 0), (-1, 0), (True, 0)],
    )
    def test_normalize_speaker(self, label, expected):
        assert normalize_speaker(label) == expected

    def test_normalize_language(self):
        assert normalize_language("en-US") == "en"
        assert normalize_language("pt_BR") == "pt"
        assert normalize_language(None) == ""


@pytest.mark.unit
class TestVoxtralProvider:
    def _provider(self, response=None, error=None):
        client = MagicMock()
        if error is not None:
            client.audio.transcriptions.complete.side_effect = error
        else:
            client.audio.transcriptions.complete.return_value = response
        cfg = create_test_config(mistral_api_key="mk")
        return VoxtralTranscriptionProvider(cfg, client=client, policy=NO_RETRY), client

    def test_segments_become_utterances(self):
        response = SimpleNamespace(
            language="en",
            text="ignored",
            segments=[
                SimpleNamespace(start=0.0, end=2.5, speaker="speaker_0", text=" Hello "),
                {"start": 2.5, "end": 5.0, "speaker_id": 1, "text": "Hi Dana"},
            ],
        )
        provider, client = self._provider(response)
        transcript = provider.transcribe("https://cdn.example.com/a.mp3", "en")

        assert [(u.speaker, u.text) for u in transcript.utterances] == [(0, "Hello"), (1, "Hi Dana")]
        assert all(u.confidence == VOXTRAL_DEFAULT_CONFIDENCE for u in transcript.utterances)
        assert transcript.detected_language == "en"
        kwargs = client.audio.transcriptions.complete.call_args.kwargs
        assert kwargs["diarize"] is True
        assert kwargs["file_url"] == "https://cdn.example.com/a.mp3"
        assert kwargs["language"] == "en"

    def test_text_only_response_becomes_single_utterance(self):
        provider, _ = self._provider(SimpleNamespace(segments=[], text="Whole episode", language=None))
        transcript = provider.transcribe("https://cdn.example.com/a.mp3")
        assert len(transcript.utterances) == 1
        assert transcript.utterances[0].speaker == 0

    def test_empty_reference_rejected(self):
        provider, client = self._provider(SimpleNamespace(segments=[]))
        with pytest.raises(ValidationError):
            provider.transcribe("  ")
        client.audio.transcriptions.complete.assert_not_called()

    def test_sdk_error_wrapped_with_status(self):
        error = RuntimeError("unauthorized")
        error.status_code = 401
        provider, _ = self._provider(error=error)
        with pytest.raises(ProviderError) as exc_info:
            provider.transcribe("https://cdn.example.com/a.mp3")
        assert exc_info.value.status_code == 401
        assert "MISTRAL_API_KEY" in str(exc_info.value)

    def test_language_support(self):
        provider, _ = self._provider(SimpleNamespace(segments=[]))
        assert provider.is_supported("fr-FR")
        assert not provider.is_supported("sv")

    def test_missing_key_raises_configuration_error(self):
        provider = VoxtralTranscriptionProvider(create_test_config(), policy=NO_RETRY)
        with pytest.raises(ConfigurationError):
            provider.client


@pytest.mark.unit
class TestDeepgramParsing:
    def test_utterances_preferred(self):
        payload = {
            "results": {
                "channels": [{"alternatives": [{"transcript": "ignored"}], "detected_language": "de"}],
                "utterances": [
                    {"start": 0, "end": 1.5, "speaker": 0, "transcript": "Hallo", "confidence": 0.8},
                    {"start": 1.5, "end": 3, "speaker": 1, "transcript": "Servus"},
                ],
            }
        }
        transcript = parse_deepgram_response(payload, "de")
        assert [u.text for u in transcript.utterances] == ["Hallo", "Servus"]
        assert transcript.utterances[0].confidence == 0.8
        assert transcript.utterances[1].confidence == DEEPGRAM_WORDS_CONFIDENCE
        assert transcript.detected_language == "de"

    def test_words_grouped_by_speaker(self):
        words = [
            {"word": "hi", "punctuated_word": "Hi", "start": 0.0, "end": 0.3, "speaker": 0},
            {"word": "there", "start": 0.3, "end": 0.6, "speaker": 0},
            {"word": "hello", "start": 0.8, "end": 1.2, "speaker": 1},
        ]
        payload = {"results": {"channels": [{"alternatives": [{"words": words}]}]}}
        transcript = parse_deepgram_response(payload, "en")
        assert [(u.speaker, u.text) for u in transcript.utterances] == [
            (0, "Hi there"),
            (1, "hello"),
        ]
        assert transcript.utterances[0].end == 0.8
        assert transcript.utterances[1].end == 1.2

    def test_plain_transcript_fallback(self):
        payload = {
            "metadata": {"duration": 42.0},
            "results": {"channels": [{"alternatives": [{"transcript": "Just text"}]}]},
        }
        transcript = parse_deepgram_response(payload, "en")
        assert len(transcript.utterances) == 1
        assert transcript.utterances[0].end == 42.0

    def test_empty_response(self):
        assert parse_deepgram_response({}, "en").utterances == ()


@pytest.mark.unit
class TestDeepgramRedirects:
    def test_direct_audio_url(self):
        assert is_direct_audio_url("https://cdn.example.com/ep.MP3?x=1")
        assert not is_direct_audio_url("https://track.example.com/redirect/123")

    def test_direct_url_skips_network(self):
        session = MagicMock()
        assert resolve_audio_url("https://cdn.example.com/ep.mp3", session=session).endswith(".mp3")
        session.head.assert_not_called()

    def test_follows_tracking_redirects(self):
        session = MagicMock()
        session.head.side_effect = [
            _response(302, headers={"Location": "https://hop.example.com/2"}),
            _response(301, headers={"Location": "/media/ep.mp3"}),
        ]
        resolved = resolve_audio_url("https://track.example.com/1", session=session)
        assert resolved == "https://hop.example.com/media/ep.mp3"
        assert session.head.call_count == 2

    def test_failing_hop_keeps_last_url(self):
        session = MagicMock()
        session.head.side_effect = [
            _response(302, headers={"Location": "https://hop.example.com/2"}),
            requests.ConnectionError("down"),
        ]
        assert resolve_audio_url("https://track.example.com/1", session=session) == (
            "https://hop.example.com/2"
        )

    def test_hop_limit(self):
        session = MagicMock()
        session.head.return_value = _response(302, headers={"Location": "https://loop.example.com/x"})
        resolve_audio_url("https://loop.example.com/start", session=session, max_hops=3)
        assert session.head.call_count == 3


@pytest.mark.unit
class TestDeepgramProvider:
    def _provider(self, post_response):
        session = MagicMock()
        session.post.return_value = post_response
        cfg = create_test_config(deepgram_api_key="dg")
        return DeepgramTranscriptionProvider(cfg, session=session, policy=NO_RETRY), session

    def test_transcribe_posts_url_with_diarization(self):
        payload = {"results": {"utterances": [{"start": 0, "end": 1, "speaker": 0, "transcript": "Hi"}]}}
        provider, session = self._provider(_response(200, payload))
        transcript = provider.transcribe("https://cdn.example.com/ep.mp3", "en-GB")

        assert transcript.utterances[0].text == "Hi"
        call = session.post.call_args
        assert call.kwargs["json"] == {"url": "https://cdn.example.com/ep.mp3"}
        assert call.kwargs["params"]["diarize"] == "true"
        assert call.kwargs["params"]["language"] == "en"
        assert call.kwargs["headers"]["Authorization"] == "Token dg"

    def test_http_error_carries_status(self):
        provider, _ = self._provider(_response(400, text="bad url"))
        with pytest.raises(ProviderError) as exc_info:
            provider.transcribe("https://cdn.example.com/ep.mp3")
        assert exc_info.value.status_code == 400
        assert exc_info.value.retryable is False

    def test_missing_key(self):
        provider = DeepgramTranscriptionProvider(create_test_config(), session=MagicMock())
        with pytest.raises(ConfigurationError):
            provider.transcribe("https://cdn.example.com/ep.mp3")


CAPTION_XML = """<?xml version="1.0" encoding="utf-8"?>
<transcript>
  <text start="0.5" dur="2.0">Welcome &amp;amp; hello</text>
  <text start="2.5" dur="1.5">   </text>
  <text start="4.0" dur="3.0">second
  line</text>
</transcript>"""


@pytest.mark.unit
class TestCaptionsProvider:
    @pytest.mark.parametrize(
        "ref",
        [
            "dQw4w9WgXcQ",
            "https://www.youtube.com/watch?v=dQw4w9WgXcQ&t=10",
            "https://youtu.be/dQw4w9WgXcQ",
            "https://www.youtube.com/shorts/dQw4w9WgXcQ",
        ],
    )
    def test_extract_video_id(self, ref):
        assert extract_video_id(ref) == "dQw4w9WgXcQ"

    def test_extract_video_id_rejects_other_urls(self):
        assert extract_video_id("https://cdn.example.com/ep.mp3") is None

    def test_parse_caption_xml(self):
        utterances = parse_caption_xml(CAPTION_XML)
        assert [u.text for u in utterances] == ["Welcome & hello", "second line"]
        assert utterances[0].start == 0.5
        assert utterances[0].end == 2.5
        assert all(u.speaker == 0 for u in utterances)
        assert all(u.confidence == CAPTIONS_DEFAULT_CONFIDENCE for u in utterances)

    def test_malformed_xml(self):
        with pytest.raises(ProviderError):
            parse_caption_xml("<transcript><text>")

    def test_transcribe(self):
        session = MagicMock()
        session.get.return_value = _response(200, text=CAPTION_XML)
        provider = CaptionsTranscriptionProvider(create_test_config(), session=session, policy=NO_RETRY)

        transcript = provider.transcribe("https://youtu.be/dQw4w9WgXcQ", "en")

        assert len(transcript.utterances) == 2
        assert session.get.call_args.kwargs["params"] == {"v": "dQw4w9WgXcQ", "lang": "en"}

    def test_no_captions_is_provider_error(self):
        session = MagicMock()
        session.get.return_value = _response(200, text="")
        provider = CaptionsTranscriptionProvider(create_test_config(), session=session, policy=NO_RETRY)
        with pytest.raises(ProviderError) as exc_info:
            provider.transcribe("dQw4w9WgXcQ", "en")
        assert exc_info.value.status_code == 404

    def test_not_a_video_reference(self):
        provider = CaptionsTranscriptionProvider(create_test_config(), session=MagicMock())
        with pytest.raises(ValidationError):
            provider.transcribe("https://cdn.example.com/ep.mp3")
