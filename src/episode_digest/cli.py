"""Command-line interface for episode_digest.

Subcommands map one-to-one onto service operations::

    $ python -m episode_digest.cli init-db
    $ python -m episode_digest.cli request ep-1 --level deep --language en
    $ python -m episode_digest.cli status ep-1
    $ python -m episode_digest.cli notify ep-1
    $ python -m episode_digest.cli cancel 42
"""

from __future__ import annotations

import argparse
import json
import logging
from typing import Any, Callable, Dict, Optional, Sequence

from pydantic import ValidationError

from . import __version__, config, service
from .models import SUMMARY_LEVELS
from .workflow import apply_log_level

_LOGGER = logging.getLogger(__name__)

ServicesFactory = Callable[[config.Config], service.Services]


def _add_global_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--config", default=None, help="Path to a JSON or YAML config file")
    parser.add_argument(
        "--log-level",
        dest="log_level",
        default=None,
        help="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    parser.add_argument("--log-file", dest="log_file", default=None, help="Also log to this file")
    parser.add_argument(
        "--json-logs", dest="json_logs", action="store_true", help="Emit one JSON object per line"
    )
    parser.add_argument(
        "--database-url", dest="database_url", default=None, help="SQLAlchemy database URL"
    )
    parser.add_argument("--version", action="store_true", help="Show program version and exit")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="episode-digest",
        description="Transcribe podcast episodes, generate tiered summaries and notify subscribers.",
    )
    _add_global_arguments(parser)
    commands = parser.add_subparsers(dest="command")

    commands.add_parser("init-db", help="Create database tables")

    request = commands.add_parser("request", help="Request a summary and run it to completion")
    request.add_argument("episode_id")
    request.add_argument("--level", choices=SUMMARY_LEVELS, default="quick")
    request.add_argument("--language", default=None)
    request.add_argument(
        "--force", action="store_true", help="Re-generate even if the summary is ready"
    )

    status = commands.add_parser("status", help="Show transcript and summary status")
    status.add_argument("episode_id")
    status.add_argument("--language", default=None)

    notify = commands.add_parser("notify", help="Send pending notifications for an episode")
    notify.add_argument("episode_id")

    for name, help_text in (
        ("cancel", "Cancel a pending notification"),
        ("force-send", "Send a pending notification now"),
        ("resend", "Retry a failed notification"),
    ):
        admin = commands.add_parser(name, help=help_text)
        admin.add_argument("notification_id", type=int)

    return parser


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.version:
        print(f"episode_digest {__version__}")
        raise SystemExit(0)
    if not args.command:
        parser.print_help()
        raise SystemExit(1)
    return args


def _build_config(args: argparse.Namespace) -> config.Config:
    """Config file values first, then CLI overrides."""
    payload: Dict[str, Any] = {}
    if args.config:
        payload.update(config.load_config_file(args.config))
    for key in ("log_level", "log_file", "database_url"):
        value = getattr(args, key)
        if value is not None:
            payload[key] = value
    if args.json_logs:
        payload["json_logs"] = True
    return config.Config(**payload)


def _print_result(result: service.ServiceResult) -> int:
    if result.data:
        print(json.dumps(result.data, indent=2, default=str, ensure_ascii=False))
    if result.success:
        _LOGGER.info(result.summary)
        return 0
    _LOGGER.error("%s: %s", result.summary, result.error)
    return 1


def _run_command(args: argparse.Namespace, services: service.Services) -> int:
    command = args.command
    if command == "init-db":
        services.db.init_db()
        _LOGGER.info("Database initialized")
        return 0
    if command == "request":
        result = service.request_summary(
            services, args.episode_id, args.level, args.language, force=args.force
        )
        services.task_queue.wait_all()
        return _print_result(result)
    if command == "status":
        return _print_result(service.summary_status(services, args.episode_id, args.language))
    if command == "notify":
        return _print_result(service.trigger_notifications(services, args.episode_id))
    action = command.replace("-", "_")
    return _print_result(service.admin_action(services, action, args.notification_id))


def main(
    argv: Optional[Sequence[str]] = None,
    *,
    services_factory: Optional[ServicesFactory] = None,
    logger: Optional[logging.Logger] = None,
) -> int:
    """Entry point for the CLI; returns an exit status code."""
    log = logger or _LOGGER
    args = parse_args(argv)

    try:
        cfg = _build_config(args)
    except (ValueError, ValidationError) as exc:
        log.error(f"Invalid configuration: {exc}")
        return 1

    apply_log_level(cfg.log_level, cfg.log_file, cfg.json_logs)

    factory = services_factory or service.build_services
    try:
        services = factory(cfg)
    except Exception as exc:
        log.error(f"Failed to initialize services: {exc}")
        return 1

    try:
        return _run_command(args, services)
    except Exception as exc:
        log.error(f"Unexpected failure: {exc}")
        return 1
    finally:
        services.close()


if __name__ == "__main__":  # pragma: no cover - script entry
    raise SystemExit(main())
