"""Persistence layer: SQLAlchemy tables, engine/session handling and repositories."""

from .database import create_engine_from_url, Database
from .repository import (
    EpisodeRecord,
    EpisodeRepository,
    NotificationRecord,
    NotificationRepository,
    SummaryRecord,
    SummaryRepository,
    TranscriptRecord,
    TranscriptRepository,
)
from .tables import Base

__all__ = [
    "Base",
    "Database",
    "EpisodeRecord",
    "EpisodeRepository",
    "NotificationRecord",
    "NotificationRepository",
    "SummaryRecord",
    "SummaryRepository",
    "TranscriptRecord",
    "TranscriptRepository",
    "create_engine_from_url",
]
