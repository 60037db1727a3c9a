"""Fake collaborators shared by the episode_digest test suite.

Nothing here talks to a network: the language model answers from canned JSON
keyed by operation name, transcription providers return a fixed transcript and
senders record what they were asked to deliver.
"""

from __future__ import annotations

import json
import re
import threading
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Union

from episode_digest import config
from episode_digest.models import DiarizedTranscript, Utterance
from episode_digest.notifications import SendResult, ShareContent

TEST_EPISODE_ID = "ep-1"
TEST_EPISODE_TITLE = "Parsers, Compilers and You"
TEST_PODCAST_ID = "pod-1"
TEST_PODCAST_TITLE = "Build Systems Weekly"
TEST_AUDIO_URL = "https://cdn.example.com/episodes/ep-1.mp3"
TEST_VIDEO_ID = "dQw4w9WgXcQ"
TEST_APP_URL = "https://app.example.com"

_PROMPT_INDEX = re.compile(r"^\[(\d+)\] Speaker \d+:", re.MULTILINE)
_PROMPT_TOPIC = re.compile(r"^Topic: (.*)$", re.MULTILINE)

Response = Union[str, Exception, Callable[[str], str]]


def make_utterances() -> List[Utterance]:
    """Six utterances between a host (0) and a guest (1)."""
    return [
        Utterance(0.0, 6.0, 0, "Welcome to the show, I'm Dana.", 0.95),
        Utterance(6.5, 12.0, 1, "Thanks Dana, I'm Sam and I build compilers.", 0.95),
        Utterance(12.5, 30.0, 0, "Let's start with parsing.", 0.95),
        Utterance(30.5, 55.0, 1, "Parsing is mostly about good error recovery.", 0.95),
        Utterance(56.0, 70.0, 0, "And code generation?", 0.95),
        Utterance(70.5, 95.0, 1, "Code generation is where the fun starts.", 0.95),
    ]


def make_transcript(language: str = "en") -> DiarizedTranscript:
    return DiarizedTranscript.from_utterances(make_utterances(), detected_language=language)


def default_analyst_response(prompt: str) -> str:
    """Name Dana and Sam and split the indices found in the prompt into three blocks."""
    indices = [int(i) for i in _PROMPT_INDEX.findall(prompt)]
    size = max(1, -(-len(indices) // 3))
    chunks = [indices[i : i + size] for i in range(0, len(indices), size)]
    return json.dumps(
        {
            "speakers": [
                {"id": 0, "name": "Dana", "role": "host"},
                {"id": 1, "name": "Sam", "role": "guest"},
            ],
            "topicBlocks": [
                {"id": str(n + 1), "label": f"Topic {n + 1}", "utteranceIndices": chunk}
                for n, chunk in enumerate(chunks)
            ],
        }
    )


def default_writer_response(prompt: str) -> str:
    match = _PROMPT_TOPIC.search(prompt)
    label = match.group(1).strip() if match else "Topic"
    return json.dumps(
        {
            "summary": f"Summary of {label}.",
            "keyPoints": [f"{label} point"],
            "speakerContributions": [{"speaker": "Sam", "contribution": "explained it"}],
        }
    )


DEFAULT_EDITOR_RESPONSE = json.dumps(
    {
        "tldr": "Dana and Sam walk through how compilers are built.",
        "sections": [{"title": "Parsing", "summary": "Error recovery matters.", "speakers": ["Sam"]}],
        "keyTakeaways": ["Error recovery is the hard part of parsing"],
        "actionItems": [],
        "topics": ["parsing", "code generation"],
    }
)

DEFAULT_QUICK_RESPONSE = json.dumps(
    {
        "tldr": "A compiler engineer explains parsing and code generation.",
        "hookHeadline": "Why parsers fail (and how to fix them)",
        "keyTakeaways": ["Error recovery matters", "Code generation is fun"],
        "whoIsThisFor": "Developers curious about compilers",
        "topics": ["parsing", "compilers"],
    }
)

DEFAULT_INSIGHTS_RESPONSE = json.dumps(
    {
        "keywords": [{"word": "parsing", "frequency": 3, "relevance": "high"}],
        "highlights": [
            {"quote": "Parsing is mostly about good error recovery.", "importance": "critical"},
            {"quote": "Code generation is where the fun starts.", "importance": "important"},
        ],
        "shownotes": [{"title": "Parsing", "content": "Error recovery techniques."}],
    }
)

DEFAULT_RESPONSES: Dict[str, Response] = {
    "analyst": default_analyst_response,
    "writer": default_writer_response,
    "editor": DEFAULT_EDITOR_RESPONSE,
    "quick": DEFAULT_QUICK_RESPONSE,
    "insights": DEFAULT_INSIGHTS_RESPONSE,
}


class FakeLanguageModel:
    """``LanguageModel`` that answers by operation name.

    ``responses`` overrides the defaults; keys are either the full operation
    name (``"writer:2"``) or its stage prefix (``"writer"``). A response may be
    a string, an exception to raise, or a callable taking the prompt.
    """

    def __init__(self, responses: Optional[Dict[str, Response]] = None) -> None:
        self.responses: Dict[str, Response] = dict(DEFAULT_RESPONSES)
        self.responses.update(responses or {})
        self.calls: List[Tuple[str, Optional[str]]] = []
        self.prompts: Dict[str, str] = {}
        self._lock = threading.Lock()

    def complete(
        self,
        system: str,
        prompt: str,
        max_tokens: int,
        model: Optional[str] = None,
        operation_name: str = "llm call",
    ) -> str:
        with self._lock:
            self.calls.append((operation_name, model))
            self.prompts[operation_name] = prompt
        stage = operation_name.split(":")[0]
        response = self.responses.get(operation_name, self.responses.get(stage))
        if response is None:
            raise AssertionError(f"unexpected model call: {operation_name}")
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response(prompt)
        return response

    def operations(self) -> List[str]:
        with self._lock:
            return [name for name, _ in self.calls]


class FakeTranscriptionProvider:
    """Returns a fixed transcript; ``hook`` runs inside ``transcribe`` before it returns."""

    def __init__(
        self,
        name: str = "fake-asr",
        languages: Iterable[str] = ("en", "fr", "de"),
        transcript: Optional[DiarizedTranscript] = None,
        error: Optional[Exception] = None,
        hook: Optional[Callable[[str, Optional[str]], Any]] = None,
    ) -> None:
        self.name = name
        self.supported_languages = frozenset(languages)
        self.transcript = transcript if transcript is not None else make_transcript()
        self.error = error
        self.hook = hook
        self.calls: List[Tuple[str, Optional[str]]] = []

    def is_supported(self, language: str) -> bool:
        return language in self.supported_languages

    def transcribe(self, audio_ref: str, language_hint: Optional[str] = None) -> DiarizedTranscript:
        self.calls.append((audio_ref, language_hint))
        if self.hook is not None:
            self.hook(audio_ref, language_hint)
        if self.error is not None:
            raise self.error
        return self.transcript


class BlockingTranscriptionProvider(FakeTranscriptionProvider):
    """Signals ``started`` and waits for ``release`` inside ``transcribe``."""

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.started = threading.Event()
        self.release = threading.Event()

    def transcribe(self, audio_ref: str, language_hint: Optional[str] = None) -> DiarizedTranscript:
        self.started.set()
        if not self.release.wait(timeout=10):
            raise AssertionError("provider was never released")
        return super().transcribe(audio_ref, language_hint)


class FakeSender:
    """Records deliveries; recipients in ``fail_for`` get a failed result."""

    def __init__(
        self,
        channel: str,
        fail_for: Iterable[str] = (),
        error: str = "delivery rejected",
        raises: Optional[Exception] = None,
    ) -> None:
        self.channel = channel
        self.fail_for = set(fail_for)
        self.error = error
        self.raises = raises
        self.sent: List[Tuple[str, ShareContent]] = []

    def send(self, recipient: str, content: ShareContent) -> SendResult:
        self.sent.append((recipient, content))
        if self.raises is not None:
            raise self.raises
        if recipient in self.fail_for:
            return SendResult.failed(self.error)
        return SendResult.ok()

    @property
    def recipients(self) -> List[str]:
        return [recipient for recipient, _ in self.sent]


def seed_episode(
    episodes: Any,
    episode_id: str = TEST_EPISODE_ID,
    title: str = TEST_EPISODE_TITLE,
    audio_url: Optional[str] = TEST_AUDIO_URL,
    youtube_video_id: Optional[str] = None,
    with_podcast: bool = True,
) -> None:
    """Insert a catalog episode (and its podcast) through an ``EpisodeRepository``."""
    podcast_id = None
    if with_podcast:
        podcast_id = TEST_PODCAST_ID
        episodes.upsert_podcast(podcast_id, TEST_PODCAST_TITLE, "https://img.example.com/p.png")
    episodes.upsert_episode(
        episode_id,
        title,
        audio_url=audio_url,
        youtube_video_id=youtube_video_id,
        podcast_id=podcast_id,
    )


def create_test_config(**overrides: Any) -> config.Config:
    """Create a Config with test defaults.

    Args:
        **overrides: Fields to override from defaults

    Returns:
        Config object with test defaults
    """
    defaults: Dict[str, Any] = {
        "database_url": "sqlite://",
        "app_url": TEST_APP_URL,
        "provider_timeout_seconds": 5,
        "provider_max_attempts": 1,
        "retry_initial_delay": 0.0,
        "writer_concurrency": 2,
        "notification_workers": 2,
    }
    defaults.update(overrides)
    return config.Config(**defaults)
