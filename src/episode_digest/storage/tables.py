"""SQLAlchemy table definitions."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Podcast(Base):
    __tablename__ = "podcasts"

    id = Column(String, primary_key=True)
    title = Column(String, nullable=False)
    image_url = Column(String, nullable=True)


class Episode(Base):
    """Catalog row written by ingestion; the pipeline only reads it."""

    __tablename__ = "episodes"

    id = Column(String, primary_key=True)
    podcast_id = Column(String, ForeignKey("podcasts.id"), nullable=True, index=True)
    title = Column(String, nullable=False)
    audio_url = Column(String, nullable=True)
    youtube_video_id = Column(String, nullable=True)  # platform video with published captions


class Transcript(Base):
    __tablename__ = "transcripts"
    __table_args__ = (UniqueConstraint("episode_id", "language", name="uq_transcript_episode_language"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    episode_id = Column(String, ForeignKey("episodes.id"), nullable=False, index=True)
    language = Column(String(16), nullable=False)
    status = Column(String(16), nullable=False, default="not_ready")
    full_text = Column(Text, nullable=True)
    utterances = Column(JSON, nullable=True)  # list of utterance dicts
    provider = Column(String(32), nullable=True)
    detected_language = Column(String(16), nullable=True)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)


class Summary(Base):
    """One summary per (episode, level, language). Rows are re-queued, never deleted."""

    __tablename__ = "summaries"
    __table_args__ = (
        UniqueConstraint("episode_id", "level", "language", name="uq_summary_episode_level_language"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    episode_id = Column(String, ForeignKey("episodes.id"), nullable=False, index=True)
    level = Column(String(16), nullable=False)
    language = Column(String(16), nullable=False)
    status = Column(String(16), nullable=False, default="not_ready")
    content = Column(JSON, nullable=True)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)


class NotificationRequest(Base):
    """A user's request to be told when an episode's summary is ready.

    ``sent_at`` is set exactly when ``status`` is ``sent``.
    """

    __tablename__ = "notification_requests"
    __table_args__ = (Index("ix_notification_episode_status", "episode_id", "status"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, nullable=False, index=True)
    episode_id = Column(String, ForeignKey("episodes.id"), nullable=False)
    channel = Column(String(16), nullable=False)  # email | telegram
    recipient = Column(String, nullable=False)
    status = Column(String(16), nullable=False, default="pending")
    scheduled = Column(Boolean, nullable=False, default=True)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    sent_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
