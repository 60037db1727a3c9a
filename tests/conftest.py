"""Shared fixtures and test utilities for episode_digest tests.

This module contains:
- Test configuration helpers
- Database fixtures (in-memory and file-backed SQLite)
- Repository and catalog fixtures
- A factory fixture for a fully wired ``SummaryOrchestrator``

Fake collaborators live in ``digest_fakes`` so test modules can import them.
"""

import os

# Never read a developer's .env while testing
os.environ.setdefault("TESTING", "1")

import pytest
from digest_fakes import (
    create_test_config,
    FakeLanguageModel,
    FakeTranscriptionProvider,
    seed_episode,
    TEST_EPISODE_ID,
)

from episode_digest.cache import InMemoryCache, SafeCache
from episode_digest.storage import (
    create_engine_from_url,
    Database,
    EpisodeRepository,
    NotificationRepository,
    SummaryRepository,
    TranscriptRepository,
)
from episode_digest.summarization import AgentPipeline, LevelGenerator
from episode_digest.transcription import TranscriptionProviders
from episode_digest.workflow import InlineTaskQueue, SummaryOrchestrator

_CREDENTIAL_ENV_VARS = (
    "MISTRAL_API_KEY",
    "DEEPGRAM_API_KEY",
    "ANTHROPIC_API_KEY",
    "RESEND_API_KEY",
    "TELEGRAM_BOT_TOKEN",
    "DATABASE_URL",
    "APP_URL",
    "LOG_LEVEL",
    "LOG_FILE",
)


@pytest.fixture(autouse=True)
def _clean_credential_env(monkeypatch):
    """Keep credentials from the developer's shell out of Config."""
    for name in _CREDENTIAL_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def digest_config():
    return create_test_config()


@pytest.fixture
def db():
    database = Database(create_engine_from_url("sqlite://"))
    database.init_db()
    yield database
    database.dispose()


@pytest.fixture
def file_db(tmp_path):
    """File-backed database for tests that touch it from several threads."""
    database = Database(create_engine_from_url(f"sqlite:///{tmp_path / 'digest.db'}"))
    database.init_db()
    yield database
    database.dispose()


@pytest.fixture
def repositories(db):
    return {
        "summaries": SummaryRepository(db),
        "transcripts": TranscriptRepository(db),
        "episodes": EpisodeRepository(db),
        "notifications": NotificationRepository(db),
    }


@pytest.fixture
def episode(repositories):
    seed_episode(repositories["episodes"])
    return repositories["episodes"].get(TEST_EPISODE_ID)


@pytest.fixture
def fake_model():
    return FakeLanguageModel()


@pytest.fixture
def make_orchestrator(db):
    """Factory for an orchestrator over ``db`` with fake providers and model.

    Keyword arguments replace single collaborators; ``asr`` is a list of fake
    providers in preference order, ``captions`` an optional captions fake.
    """

    def factory(
        model=None,
        asr=None,
        captions=None,
        providers=None,
        database=None,
        **kwargs,
    ):
        database = database or db
        model = model or FakeLanguageModel()
        if providers is None:
            asr = asr if asr is not None else [FakeTranscriptionProvider()]
            providers = TranscriptionProviders(asr=tuple(asr), default=asr[-1], captions=captions)
        generator = LevelGenerator(model, AgentPipeline(model, writer_concurrency=2))
        kwargs.setdefault("cache", SafeCache(InMemoryCache()))
        kwargs.setdefault("task_queue", InlineTaskQueue())
        return SummaryOrchestrator(
            summaries=SummaryRepository(database),
            transcripts=TranscriptRepository(database),
            episodes=EpisodeRepository(database),
            providers=providers,
            generator=generator,
            **kwargs,
        )

    return factory
