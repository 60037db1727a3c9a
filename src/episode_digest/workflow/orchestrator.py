"""Summary orchestration and the persistent status state machine.

``not_ready -> queued -> transcribing -> summarizing -> ready``, with
``failed`` reachable from the in-flight states. Only the atomic start gate in
``SummaryRepository.try_start`` moves a row into ``queued``, so at most one
run is active per (episode, level, language). Everything after the gate runs
in the calling thread; the notification trigger is handed to a task queue.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy.exc import SQLAlchemyError

from ..cache import CacheKeys, CacheStore, CacheTTL, QuotaLimiter
from ..exceptions import ConfigurationError, NotFoundError, ProviderError, ValidationError
from ..models import DiarizedTranscript, StatusSnapshot, SUMMARY_LEVELS, SummaryResult
from ..storage import (
    EpisodeRecord,
    EpisodeRepository,
    SummaryRecord,
    SummaryRepository,
    TranscriptRepository,
)
from ..summarization import LevelGenerator
from ..transcription import select_transcription_provider, TranscriptionProviders
from .status import best_status, is_in_flight, short_error_message, startable_statuses
from .task_queue import InlineTaskQueue

logger = logging.getLogger(__name__)

SummaryKey = Tuple[str, str, str]


@dataclass
class BatchItemResult:
    """Outcome of one item of ``request_summaries``; exactly one of result/error is set."""

    key: SummaryKey
    result: Optional[SummaryResult] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _result_from_record(record: SummaryRecord) -> SummaryResult:
    return SummaryResult(
        status=record.status,
        error=record.error_message,
        content=record.content if record.status == "ready" else None,
    )


class SummaryOrchestrator:
    """Entry point for requesting summaries and reading their status."""

    def __init__(
        self,
        summaries: SummaryRepository,
        transcripts: TranscriptRepository,
        episodes: EpisodeRepository,
        providers: Optional[TranscriptionProviders],
        generator: LevelGenerator,
        cache: Optional[CacheStore] = None,
        task_queue: Optional[Any] = None,
        notify: Optional[Callable[[str], Any]] = None,
        quota: Optional[QuotaLimiter] = None,
        default_language: str = "en",
        log: Optional[logging.Logger] = None,
    ) -> None:
        self.summaries = summaries
        self.transcripts = transcripts
        self.episodes = episodes
        self.providers = providers
        self.generator = generator
        self.cache = cache
        self.task_queue = task_queue or InlineTaskQueue()
        self.notify = notify
        self.quota = quota
        self.default_language = default_language
        self.log = log or logger
        # Bumped by every invalidation; a snapshot built across a bump is discarded
        self._generations: Dict[str, int] = {}
        self._generation_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Input handling
    # ------------------------------------------------------------------

    def _normalize_language(self, language: Optional[str]) -> str:
        if language is None:
            return self.default_language
        normalized = str(language).strip().lower()
        if not normalized:
            raise ValidationError("language must not be empty")
        return normalized

    @staticmethod
    def _validate_level(level: str) -> str:
        if level not in SUMMARY_LEVELS:
            raise ValidationError(
                f"Unknown summary level {level!r}; expected one of {', '.join(SUMMARY_LEVELS)}"
            )
        return level

    def _require_episode(self, episode_id: str) -> EpisodeRecord:
        episode = self.episodes.get(episode_id)
        if episode is None:
            raise NotFoundError("episode", episode_id)
        return episode

    def _generation(self, key: str) -> int:
        with self._generation_lock:
            return self._generations.get(key, 0)

    def _invalidate(self, episode_id: str, language: str) -> None:
        if self.cache is None:
            return
        key = CacheKeys.summary_status(episode_id, language)
        with self._generation_lock:
            self._generations[key] = self._generations.get(key, 0) + 1
        self.cache.delete(key)

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def request_summary(
        self,
        episode_id: str,
        level: str,
        language: Optional[str] = None,
        force: bool = False,
        user_id: Optional[str] = None,
    ) -> SummaryResult:
        """Return the summary if ready, otherwise start (or join) its run.

        Runs to completion in the calling thread when this call wins the
        start gate. ``force`` re-queues a ``ready`` summary.

        Raises:
            ValidationError: Unknown level or empty language
            NotFoundError: Unknown episode
            QuotaExceededError: ``user_id`` exhausted its request quota
        """
        level = self._validate_level(level)
        language = self._normalize_language(language)
        episode = self._require_episode(episode_id)
        extra = {"episode": episode_id, "summary_level": level, "language": language}

        current = self.summaries.get(episode_id, level, language)
        if current is not None:
            if is_in_flight(current.status):
                self.log.debug("Summary already %s", current.status, extra=extra)
                return _result_from_record(current)
            if current.status == "ready" and not force:
                return _result_from_record(current)

        charge_quota = user_id is not None and self.quota is not None
        if charge_quota:
            self.quota.acquire(user_id)

        if not self.summaries.try_start(episode_id, level, language, startable_statuses(force)):
            if charge_quota:
                self.quota.release(user_id)
            latest = self.summaries.get(episode_id, level, language)
            self.log.info("Start gate lost; another run owns this summary", extra=extra)
            return _result_from_record(latest) if latest else SummaryResult(status="queued")

        self.log.info("Summary run started", extra=extra)
        self._invalidate(episode_id, language)
        return self._run(episode, level, language)

    def _fail(self, episode_id: str, level: str, language: str, exc: Exception) -> SummaryResult:
        extra = {"episode": episode_id, "summary_level": level, "language": language}
        if isinstance(exc, SQLAlchemyError):
            # Driver messages carry SQL text and parameters
            message = f"Storage error while processing summary ({type(exc).__name__})"
        else:
            message = short_error_message(exc)
        try:
            self.summaries.mark_failed(episode_id, level, language, message)
        except SQLAlchemyError as store_exc:
            self.log.error("Could not record summary failure: %s", type(store_exc).__name__, extra=extra)
        self._invalidate(episode_id, language)
        self.log.error("Summary run failed: %s", message, extra=extra)
        self.log.debug("Summary run failure details", exc_info=exc)
        return SummaryResult(status="failed", error=message, started=True)

    def _run(self, episode: EpisodeRecord, level: str, language: str) -> SummaryResult:
        episode_id = episode.id
        started = time.monotonic()

        try:
            self.summaries.set_status(episode_id, level, language, "transcribing")
            self._invalidate(episode_id, language)
            transcript = self.ensure_transcript(episode, language)

            self.summaries.set_status(episode_id, level, language, "summarizing")
            self._invalidate(episode_id, language)
            content = self.generator.generate(level, transcript, language)

            self.summaries.mark_ready(episode_id, level, language, content)
        except Exception as exc:
            return self._fail(episode_id, level, language, exc)
        self._invalidate(episode_id, language)
        self.log.info(
            "Summary ready",
            extra={
                "episode": episode_id,
                "summary_level": level,
                "language": language,
                "duration_ms": int((time.monotonic() - started) * 1000),
            },
        )
        if self.notify is not None:
            self.task_queue.submit(
                self.notify, episode_id, task_name=f"notify:{episode_id}"
            )
        return SummaryResult(status="ready", content=content, started=True)

    def request_summaries(
        self,
        items: Iterable[Sequence[Any]],
        force: bool = False,
        user_id: Optional[str] = None,
    ) -> List[BatchItemResult]:
        """Request several summaries; one item's failure never affects the others.

        Each item is ``(episode_id, level)`` or ``(episode_id, level, language)``.
        """
        results: List[BatchItemResult] = []
        for item in items:
            episode_id, level = str(item[0]), str(item[1])
            language = item[2] if len(item) > 2 else None
            key: SummaryKey = (episode_id, level, language or self.default_language)
            try:
                result = self.request_summary(
                    episode_id, level, language, force=force, user_id=user_id
                )
            except Exception as exc:
                self.log.warning("Batch item %s failed: %s", key, exc)
                results.append(BatchItemResult(key=key, error=short_error_message(exc)))
            else:
                results.append(BatchItemResult(key=key, result=result))
        return results

    # ------------------------------------------------------------------
    # Transcripts
    # ------------------------------------------------------------------

    def ensure_transcript(self, episode: EpisodeRecord, language: str) -> DiarizedTranscript:
        """Reuse the stored transcript or produce and persist a new one.

        Raises:
            ValidationError: The episode has no audio source
            ProviderError: Transcription failed or returned no speech
        """
        existing = self.transcripts.get(episode.id, language)
        if existing is not None and existing.status == "ready":
            self.log.debug("Reusing transcript from %s", existing.provider)
            return existing.to_transcript()

        self.transcripts.begin(episode.id, language)
        try:
            transcript, provider_name = self._transcribe(episode, language)
        except Exception as exc:
            self.transcripts.mark_failed(episode.id, language, short_error_message(exc))
            raise
        self.transcripts.mark_ready(episode.id, language, transcript, provider_name)
        return transcript

    def _transcribe(self, episode: EpisodeRecord, language: str) -> Tuple[DiarizedTranscript, str]:
        if self.providers is None:
            raise ConfigurationError(
                message="No transcription provider configured",
                provider="Transcription",
                config_key="deepgram_api_key",
                suggestion="Set MISTRAL_API_KEY and/or DEEPGRAM_API_KEY",
            )
        if episode.youtube_video_id:
            provider = select_transcription_provider(
                self.providers, language, source="platform_video"
            )
            try:
                return self._call_provider(provider, episode.youtube_video_id, language)
            except ProviderError as exc:
                if not episode.audio_url:
                    raise
                self.log.warning(
                    "Captions unavailable (%s); falling back to audio transcription", exc
                )
        if not episode.audio_url:
            raise ValidationError(f"Episode {episode.id} has no audio URL or video id")
        provider = select_transcription_provider(self.providers, language, source="audio")
        return self._call_provider(provider, episode.audio_url, language)

    def _call_provider(
        self, provider: Any, audio_ref: str, language: str
    ) -> Tuple[DiarizedTranscript, str]:
        transcript = provider.transcribe(audio_ref, language)
        if not transcript.utterances:
            raise ProviderError(
                message="Transcription returned no speech",
                provider=provider.name,
                status_code=422,
            )
        return transcript, provider.name

    # ------------------------------------------------------------------
    # Status reads
    # ------------------------------------------------------------------

    def get_summary_status(self, episode_id: str, language: Optional[str] = None) -> StatusSnapshot:
        """Current transcript and per-level summary state.

        Served from the cache when present; every status write invalidates
        the entry, so reads during a run see the live state. A snapshot whose
        build overlapped a status write is removed again right after it is
        stored, so a stale in-flight view never outlives the write.
        """
        language = self._normalize_language(language)
        if self.cache is None:
            return self._build_snapshot(episode_id, language)

        key = CacheKeys.summary_status(episode_id, language)
        cached = self.cache.get(key)
        if cached is not None:
            return StatusSnapshot.from_dict(cached)

        generation = self._generation(key)
        snapshot = self._build_snapshot(episode_id, language)
        self.cache.set(key, snapshot.to_dict(), self._snapshot_ttl(snapshot))
        if self._generation(key) != generation:
            self.log.debug("Status changed while building snapshot; dropping %s", key)
            self.cache.delete(key)
        return snapshot

    def _build_snapshot(self, episode_id: str, language: str) -> StatusSnapshot:
        transcript = self.transcripts.get(episode_id, language)
        records = self.summaries.list_for_episode(episode_id, language)
        summaries: Dict[str, Optional[Dict[str, Any]]] = {}
        for level in SUMMARY_LEVELS:
            record = records.get(level)
            if record is None:
                summaries[level] = None
                continue
            summaries[level] = {
                "status": record.status,
                "content": record.content if record.status == "ready" else None,
                "error": record.error_message,
                "updated_at": record.updated_at.isoformat() if record.updated_at else None,
            }
        return StatusSnapshot(
            episode_id=episode_id,
            language=language,
            transcript=(
                {
                    "status": transcript.status,
                    "language": transcript.language,
                    "provider": transcript.provider,
                }
                if transcript is not None
                else None
            ),
            summaries=summaries,
        )

    @staticmethod
    def _snapshot_ttl(snapshot: StatusSnapshot) -> int:
        statuses = [s["status"] for s in snapshot.summaries.values() if s]
        if snapshot.transcript:
            statuses.append(snapshot.transcript["status"])
        if any(is_in_flight(status) for status in statuses):
            return CacheTTL.PROCESSING
        return CacheTTL.READY

    def overall_status(self, episode_id: str, language: Optional[str] = None) -> str:
        """Most advanced summary status of the episode across levels."""
        snapshot = self.get_summary_status(episode_id, language)
        return best_status(s["status"] for s in snapshot.summaries.values() if s)
