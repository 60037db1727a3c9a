"""Service API for programmatic use of episode_digest.

``build_services`` wires configuration into the full object graph (database,
repositories, cache, providers, language model, orchestrator, notifications).
The module-level helpers wrap single operations into ``ServiceResult`` values
for daemons, job runners and the CLI.

Example:
    >>> from episode_digest import config, service
    >>> cfg = config.Config(**config.load_config_file("config.yaml"))
    >>> services = service.build_services(cfg)
    >>> result = service.request_summary(services, "ep-1", "quick", "en")
    >>> print(result.summary)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from . import config
from .cache import InMemoryCache, QuotaLimiter, SafeCache
from .notifications import (
    create_senders,
    NotificationAdmin,
    NotificationSender,
    NotificationTrigger,
    ShareContentBuilder,
)
from .storage import (
    Database,
    EpisodeRepository,
    NotificationRepository,
    SummaryRepository,
    TranscriptRepository,
)
from .summarization import AnthropicLanguageModel, LanguageModel, LevelGenerator
from .transcription import create_transcription_providers, TranscriptionProviders
from .workflow import SummaryOrchestrator, TaskQueue

logger = logging.getLogger(__name__)


@dataclass
class ServiceResult:
    """Result of one service operation.

    Attributes:
        success: Whether the operation completed
        summary: Human-readable one-line outcome
        data: Structured payload (status snapshot, summary content, counts)
        error: Error message if success is False
    """

    success: bool
    summary: str = ""
    data: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None


@dataclass
class Services:
    cfg: config.Config
    db: Database
    summaries: SummaryRepository
    transcripts: TranscriptRepository
    episodes: EpisodeRepository
    notifications: NotificationRepository
    orchestrator: SummaryOrchestrator
    trigger: NotificationTrigger
    admin: NotificationAdmin
    task_queue: Any

    def close(self) -> None:
        """Drain background tasks, then release the database."""
        self.task_queue.wait_all()
        self.task_queue.shutdown()
        self.db.dispose()


def _default_providers(
    cfg: config.Config, log: logging.Logger
) -> Optional[TranscriptionProviders]:
    if not cfg.mistral_api_key and not cfg.deepgram_api_key:
        log.warning("No transcription credentials configured; new transcripts will fail")
        return None
    return create_transcription_providers(cfg, log=log)


def build_services(
    cfg: config.Config,
    *,
    db: Optional[Database] = None,
    providers: Optional[TranscriptionProviders] = None,
    model: Optional[LanguageModel] = None,
    senders: Optional[Mapping[str, NotificationSender]] = None,
    task_queue: Optional[Any] = None,
    log: Optional[logging.Logger] = None,
) -> Services:
    """Wire every component from ``cfg``; keyword overrides replace single parts."""
    log = log or logger
    db = db or Database.from_url(cfg.database_url, log=log)
    summaries = SummaryRepository(db)
    transcripts = TranscriptRepository(db)
    episodes = EpisodeRepository(db)
    notifications = NotificationRepository(db)

    senders = senders if senders is not None else create_senders(cfg, log=log)
    content_builder = ShareContentBuilder(episodes, summaries, cfg.app_url, log=log)
    trigger = NotificationTrigger(notifications, content_builder, senders, log=log)
    admin = NotificationAdmin(notifications, content_builder, senders, log=log)

    model = model or AnthropicLanguageModel(cfg, log=log)
    queue = task_queue or TaskQueue(
        max_workers=cfg.notification_workers, name="notifications", log=log
    )
    orchestrator = SummaryOrchestrator(
        summaries=summaries,
        transcripts=transcripts,
        episodes=episodes,
        providers=providers if providers is not None else _default_providers(cfg, log),
        generator=LevelGenerator.from_config(cfg, model, log=log),
        cache=SafeCache(InMemoryCache(), log=log),
        task_queue=queue,
        notify=trigger.trigger_pending_notifications,
        quota=QuotaLimiter(cfg.quota_max_requests, cfg.quota_window_seconds, log=log),
        default_language=cfg.default_language,
        log=log,
    )
    return Services(
        cfg=cfg,
        db=db,
        summaries=summaries,
        transcripts=transcripts,
        episodes=episodes,
        notifications=notifications,
        orchestrator=orchestrator,
        trigger=trigger,
        admin=admin,
        task_queue=queue,
    )


def _failure(operation: str, exc: Exception) -> ServiceResult:
    logger.error("%s failed: %s", operation, exc)
    return ServiceResult(success=False, summary=f"{operation} failed", error=str(exc))


def request_summary(
    services: Services,
    episode_id: str,
    level: str,
    language: Optional[str] = None,
    force: bool = False,
) -> ServiceResult:
    try:
        result = services.orchestrator.request_summary(episode_id, level, language, force=force)
    except Exception as exc:
        return _failure("request", exc)
    data = {"status": result.status, "error": result.error, "content": result.content}
    return ServiceResult(
        success=result.status != "failed",
        summary=f"{episode_id} {level}: {result.status}",
        data=data,
        error=result.error,
    )


def summary_status(
    services: Services, episode_id: str, language: Optional[str] = None
) -> ServiceResult:
    try:
        snapshot = services.orchestrator.get_summary_status(episode_id, language)
        overall = services.orchestrator.overall_status(episode_id, language)
    except Exception as exc:
        return _failure("status", exc)
    return ServiceResult(success=True, summary=f"{episode_id}: {overall}", data=snapshot.to_dict())


def trigger_notifications(services: Services, episode_id: str) -> ServiceResult:
    try:
        report = services.trigger.trigger_pending_notifications(episode_id)
    except Exception as exc:
        return _failure("notify", exc)
    return ServiceResult(
        success=report.content_error is None,
        summary=f"{report.sent} sent, {report.failed} failed, {report.skipped} skipped",
        data={
            "pending": report.pending,
            "sent": report.sent,
            "failed": report.failed,
            "skipped": report.skipped,
        },
        error=report.content_error,
    )


def admin_action(services: Services, action: str, notification_id: int) -> ServiceResult:
    """Run ``cancel``, ``force_send`` or ``resend`` on one notification."""
    operations = {
        "cancel": services.admin.cancel,
        "force_send": services.admin.force_send,
        "resend": services.admin.resend,
    }
    if action not in operations:
        return ServiceResult(success=False, summary=action, error=f"Unknown action: {action}")
    try:
        outcome = operations[action](notification_id)
    except Exception as exc:
        return _failure(action, exc)
    if action == "cancel":
        return ServiceResult(success=True, summary=f"notification {notification_id} cancelled")
    return ServiceResult(
        success=outcome.success,
        summary=f"notification {notification_id}: {'sent' if outcome.success else 'failed'}",
        error=outcome.error,
    )


def build_from_config_file(config_path: str | Path) -> Services:
    """Load a JSON/YAML config file and wire services from it."""
    cfg = config.Config(**config.load_config_file(str(config_path)))
    return build_services(cfg)
