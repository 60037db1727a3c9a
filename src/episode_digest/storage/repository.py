"""Repositories over the persistence tables.

Every method opens its own short transaction and returns detached record
dataclasses, so callers never hold a session across provider calls. Status
changes that must not race are conditional updates whose rowcount tells the
caller whether it won.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from ..models import DiarizedTranscript
from .database import Database
from .tables import Episode, NotificationRequest, Podcast, Summary, Transcript, utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SummaryRecord:
    episode_id: str
    level: str
    language: str
    status: str
    content: Optional[Dict[str, Any]]
    error_message: Optional[str]
    updated_at: Optional[datetime]


@dataclass(frozen=True)
class TranscriptRecord:
    episode_id: str
    language: str
    status: str
    full_text: Optional[str]
    utterances: Optional[List[Dict[str, Any]]]
    provider: Optional[str]
    detected_language: Optional[str]
    error_message: Optional[str]

    def to_transcript(self) -> DiarizedTranscript:
        return DiarizedTranscript.from_json(self.utterances, self.detected_language)


@dataclass(frozen=True)
class EpisodeRecord:
    id: str
    title: str
    audio_url: Optional[str]
    youtube_video_id: Optional[str]
    podcast_id: Optional[str] = None
    podcast_title: Optional[str] = None
    podcast_image_url: Optional[str] = None


@dataclass(frozen=True)
class NotificationRecord:
    id: int
    user_id: str
    episode_id: str
    channel: str
    recipient: str
    status: str
    scheduled: bool
    error_message: Optional[str]
    created_at: Optional[datetime]
    sent_at: Optional[datetime]


def _summary_record(row: Summary) -> SummaryRecord:
    return SummaryRecord(
        episode_id=row.episode_id,
        level=row.level,
        language=row.language,
        status=row.status,
        content=row.content,
        error_message=row.error_message,
        updated_at=row.updated_at,
    )


def _transcript_record(row: Transcript) -> TranscriptRecord:
    return TranscriptRecord(
        episode_id=row.episode_id,
        language=row.language,
        status=row.status,
        full_text=row.full_text,
        utterances=row.utterances,
        provider=row.provider,
        detected_language=row.detected_language,
        error_message=row.error_message,
    )


def _notification_record(row: NotificationRequest) -> NotificationRecord:
    return NotificationRecord(
        id=row.id,
        user_id=row.user_id,
        episode_id=row.episode_id,
        channel=row.channel,
        recipient=row.recipient,
        status=row.status,
        scheduled=bool(row.scheduled),
        error_message=row.error_message,
        created_at=row.created_at,
        sent_at=row.sent_at,
    )


class SummaryRepository:
    def __init__(self, db: Database) -> None:
        self.db = db

    @staticmethod
    def _key(episode_id: str, level: str, language: str) -> tuple:
        return (
            Summary.episode_id == episode_id,
            Summary.level == level,
            Summary.language == language,
        )

    def get(self, episode_id: str, level: str, language: str) -> Optional[SummaryRecord]:
        with self.db.session() as session:
            row = session.execute(
                select(Summary).where(*self._key(episode_id, level, language))
            ).scalar_one_or_none()
            return _summary_record(row) if row is not None else None

    def list_for_episode(self, episode_id: str, language: str) -> Dict[str, SummaryRecord]:
        with self.db.session() as session:
            rows = session.execute(
                select(Summary).where(Summary.episode_id == episode_id, Summary.language == language)
            ).scalars()
            return {row.level: _summary_record(row) for row in rows}

    def latest_ready(self, episode_id: str, level: str) -> Optional[SummaryRecord]:
        """Most recently updated ``ready`` summary of a level, in any language."""
        with self.db.session() as session:
            row = session.execute(
                select(Summary)
                .where(
                    Summary.episode_id == episode_id,
                    Summary.level == level,
                    Summary.status == "ready",
                )
                .order_by(Summary.updated_at.desc(), Summary.id.desc())
                .limit(1)
            ).scalar_one_or_none()
            return _summary_record(row) if row is not None else None

    def try_start(
        self, episode_id: str, level: str, language: str, startable: Sequence[str]
    ) -> bool:
        """Atomically move the row to ``queued``.

        Updates an existing row only while its status is in ``startable``;
        inserts a ``queued`` row when none exists. Returns False when another
        caller already owns the run.
        """
        with self.db.session() as session:
            result = session.execute(
                update(Summary)
                .where(*self._key(episode_id, level, language), Summary.status.in_(list(startable)))
                .values(status="queued", error_message=None, updated_at=utcnow())
            )
            if result.rowcount:
                return True

        try:
            with self.db.session() as session:
                session.add(
                    Summary(episode_id=episode_id, level=level, language=language, status="queued")
                )
        except IntegrityError:
            # Row exists in a non-startable status, or a concurrent insert won
            return False
        return True

    def set_status(
        self,
        episode_id: str,
        level: str,
        language: str,
        status: str,
        from_statuses: Optional[Sequence[str]] = None,
    ) -> bool:
        conditions = list(self._key(episode_id, level, language))
        if from_statuses is not None:
            conditions.append(Summary.status.in_(list(from_statuses)))
        with self.db.session() as session:
            result = session.execute(
                update(Summary).where(*conditions).values(status=status, updated_at=utcnow())
            )
            return bool(result.rowcount)

    def mark_ready(self, episode_id: str, level: str, language: str, content: Dict[str, Any]) -> None:
        with self.db.session() as session:
            session.execute(
                update(Summary)
                .where(*self._key(episode_id, level, language))
                .values(status="ready", content=content, error_message=None, updated_at=utcnow())
            )

    def mark_failed(self, episode_id: str, level: str, language: str, error_message: str) -> None:
        with self.db.session() as session:
            session.execute(
                update(Summary)
                .where(*self._key(episode_id, level, language))
                .values(status="failed", error_message=error_message, updated_at=utcnow())
            )


class TranscriptRepository:
    def __init__(self, db: Database) -> None:
        self.db = db

    def get(self, episode_id: str, language: str) -> Optional[TranscriptRecord]:
        with self.db.session() as session:
            row = session.execute(
                select(Transcript).where(
                    Transcript.episode_id == episode_id, Transcript.language == language
                )
            ).scalar_one_or_none()
            return _transcript_record(row) if row is not None else None

    def begin(self, episode_id: str, language: str) -> None:
        """Mark the transcript as ``transcribing``, creating the row if needed."""
        with self.db.session() as session:
            result = session.execute(
                update(Transcript)
                .where(
                    Transcript.episode_id == episode_id,
                    Transcript.language == language,
                    Transcript.status != "ready",
                )
                .values(status="transcribing", error_message=None, updated_at=utcnow())
            )
            if result.rowcount:
                return
        try:
            with self.db.session() as session:
                session.add(
                    Transcript(episode_id=episode_id, language=language, status="transcribing")
                )
        except IntegrityError:
            logger.debug("Transcript row for %s/%s already exists", episode_id, language)

    def mark_ready(
        self, episode_id: str, language: str, transcript: DiarizedTranscript, provider: str
    ) -> None:
        with self.db.session() as session:
            session.execute(
                update(Transcript)
                .where(Transcript.episode_id == episode_id, Transcript.language == language)
                .values(
                    status="ready",
                    full_text=transcript.full_text,
                    utterances=transcript.utterances_to_json(),
                    provider=provider,
                    detected_language=transcript.detected_language,
                    error_message=None,
                    updated_at=utcnow(),
                )
            )

    def mark_failed(self, episode_id: str, language: str, error_message: str) -> None:
        with self.db.session() as session:
            session.execute(
                update(Transcript)
                .where(
                    Transcript.episode_id == episode_id,
                    Transcript.language == language,
                    Transcript.status != "ready",
                )
                .values(status="failed", error_message=error_message, updated_at=utcnow())
            )


class EpisodeRepository:
    def __init__(self, db: Database) -> None:
        self.db = db

    def get(self, episode_id: str) -> Optional[EpisodeRecord]:
        with self.db.session() as session:
            episode = session.get(Episode, episode_id)
            if episode is None:
                return None
            podcast = session.get(Podcast, episode.podcast_id) if episode.podcast_id else None
            return EpisodeRecord(
                id=episode.id,
                title=episode.title,
                audio_url=episode.audio_url,
                youtube_video_id=episode.youtube_video_id,
                podcast_id=episode.podcast_id,
                podcast_title=podcast.title if podcast else None,
                podcast_image_url=podcast.image_url if podcast else None,
            )

    def upsert_podcast(self, podcast_id: str, title: str, image_url: Optional[str] = None) -> None:
        with self.db.session() as session:
            podcast = session.get(Podcast, podcast_id)
            if podcast is None:
                session.add(Podcast(id=podcast_id, title=title, image_url=image_url))
            else:
                podcast.title = title
                podcast.image_url = image_url

    def upsert_episode(
        self,
        episode_id: str,
        title: str,
        audio_url: Optional[str] = None,
        youtube_video_id: Optional[str] = None,
        podcast_id: Optional[str] = None,
    ) -> None:
        """Insert or update a catalog episode (tooling and tests)."""
        with self.db.session() as session:
            episode = session.get(Episode, episode_id)
            if episode is None:
                session.add(
                    Episode(
                        id=episode_id,
                        title=title,
                        audio_url=audio_url,
                        youtube_video_id=youtube_video_id,
                        podcast_id=podcast_id,
                    )
                )
            else:
                episode.title = title
                episode.audio_url = audio_url
                episode.youtube_video_id = youtube_video_id
                episode.podcast_id = podcast_id


class NotificationRepository:
    def __init__(self, db: Database) -> None:
        self.db = db

    def create(
        self,
        user_id: str,
        episode_id: str,
        channel: str,
        recipient: str,
        scheduled: bool = True,
    ) -> NotificationRecord:
        with self.db.session() as session:
            row = NotificationRequest(
                user_id=user_id,
                episode_id=episode_id,
                channel=channel,
                recipient=recipient,
                status="pending",
                scheduled=scheduled,
            )
            session.add(row)
            session.flush()
            return _notification_record(row)

    def get(self, notification_id: int) -> Optional[NotificationRecord]:
        with self.db.session() as session:
            row = session.get(NotificationRequest, notification_id)
            return _notification_record(row) if row is not None else None

    def list_pending_scheduled(self, episode_id: str) -> List[NotificationRecord]:
        with self.db.session() as session:
            rows = session.execute(
                select(NotificationRequest)
                .where(
                    NotificationRequest.episode_id == episode_id,
                    NotificationRequest.status == "pending",
                    NotificationRequest.scheduled.is_(True),
                )
                .order_by(NotificationRequest.id)
            ).scalars()
            return [_notification_record(row) for row in rows]

    def transition(self, notification_id: int, from_status: str, **values: Any) -> bool:
        """Apply ``values`` only while the row is still in ``from_status``."""
        values.setdefault("updated_at", utcnow())
        with self.db.session() as session:
            result = session.execute(
                update(NotificationRequest)
                .where(
                    NotificationRequest.id == notification_id,
                    NotificationRequest.status == from_status,
                )
                .values(**values)
            )
            return bool(result.rowcount)

    def mark_sent(self, notification_id: int, from_status: str = "pending") -> bool:
        return self.transition(
            notification_id, from_status, status="sent", sent_at=utcnow(), error_message=None
        )

    def mark_failed(
        self, notification_id: int, error_message: str, from_status: str = "pending"
    ) -> bool:
        return self.transition(
            notification_id, from_status, status="failed", sent_at=None, error_message=error_message
        )

    def fail_all_pending(self, episode_id: str, error_message: str) -> int:
        with self.db.session() as session:
            result = session.execute(
                update(NotificationRequest)
                .where(
                    NotificationRequest.episode_id == episode_id,
                    NotificationRequest.status == "pending",
                    NotificationRequest.scheduled.is_(True),
                )
                .values(status="failed", error_message=error_message, updated_at=utcnow())
            )
            return int(result.rowcount or 0)
