"""Application entry point for the estatesync CLI.

Each subcommand maps to one workspace event: upload, run (run-all), run-task,
match (force-match), plus read-only views of the stored data.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from art import tprint
from dotenv import load_dotenv

from estatesync import settings
from estatesync.adapters.chat_export import read_export
from estatesync.adapters.formatting import format_entity, format_match, format_stats, format_task
from estatesync.adapters.json_storage import JsonFileStorage
from estatesync.adapters.openai_oracle import OpenAIOracle
from estatesync.adapters.sqlite_storage import SQLiteStorage
from estatesync.client import build_client
from estatesync.core.errors import ChatExportError
from estatesync.core.matcher import Matcher
from estatesync.core.queries import dashboard_stats, ranked_matches, search_entities
from estatesync.core.scheduler import Scheduler
from estatesync.core.workspace import Workspace

NAME = "ESTATESYNC"
FONT = "tarty-1"

LOGGER = logging.getLogger(__name__)


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


class _RedactingFormatter(logging.Formatter):
    def __init__(self, secrets: list[str], fmt: str, datefmt: Optional[str] = None) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self._secrets = [secret for secret in secrets if secret]

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for secret in self._secrets:
            message = message.replace(secret, "***")
        return message


def _collect_redaction_values(config: dict) -> list[str]:
    redact_cfg = config.get("redact", {}) if config else {}
    if not redact_cfg.get("enabled", True):
        return []
    values = []
    for name in redact_cfg.get("patterns", ["OPENAI_API_KEY"]):
        value = os.getenv(name)
        if value:
            values.append(value)
    return sorted(set(values), key=len, reverse=True)


def _configure_logging() -> None:
    config = settings.LOGGING or {}
    if not config.get("enabled", False):
        return

    load_dotenv()
    level_name = str(config.get("level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"
    secrets = _collect_redaction_values(config)
    formatter = _RedactingFormatter(secrets, fmt=fmt, datefmt=datefmt)

    handlers: list[logging.Handler] = []

    if config.get("console", True):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    file_cfg = config.get("file", {})
    if file_cfg.get("enabled", False):
        path = file_cfg.get("path", "logs/estatesync.log")
        if not os.path.isabs(path):
            path = os.path.join(settings.PROJECT_ROOT, path)
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        max_bytes = int(file_cfg.get("max_bytes", 5 * 1024 * 1024))
        backup_count = int(file_cfg.get("backup_count", 5))
        file_handler = RotatingFileHandler(
            path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if not handlers:
        return

    logging.basicConfig(level=level, handlers=handlers)


def _build_storage():
    # Select the persistence adapter based on configuration to keep the core
    # workspace independent from storage details.
    if settings.STORAGE_BACKEND == "sqlite":
        storage = SQLiteStorage(settings.STORAGE_PATH, lock_ttl_seconds=settings.STORAGE_LOCK_TTL_SECONDS)
        storage.init_db()
        return storage
    if settings.STORAGE_BACKEND == "json":
        return JsonFileStorage(Path(settings.STORAGE_PATH), lock_ttl_seconds=settings.STORAGE_LOCK_TTL_SECONDS)
    raise RuntimeError("storage.backend must be 'sqlite' or 'json'")


def _open_workspace(user_key: str, storage) -> Workspace:
    workspace = Workspace(
        user_key,
        storage,
        pipeline_config=settings.pipeline_config(),
        dedup_config=settings.dedup_config(),
    )
    workspace.load()
    return workspace


def _build_scheduler(workspace: Workspace) -> Scheduler:
    oracle = OpenAIOracle(
        build_client(),
        extraction_model=settings.EXTRACTION_MODEL,
        matching_model=settings.MATCHING_MODEL,
        temperature=settings.TEMPERATURE,
        timeout_seconds=settings.TIMEOUT_SECONDS,
    )
    matcher = Matcher(workspace.store, oracle, settings.matching_config())
    return Scheduler(
        workspace.store,
        oracle,
        matcher,
        settings.pipeline_config(),
        on_checkpoint=workspace.save,
        batch_lock=workspace.batch_lock(),
    )


def _upload(workspace: Workspace, paths: list[str]) -> int:
    uploaded = 0
    for raw_path in paths:
        try:
            export = read_export(Path(raw_path))
        except ChatExportError as exc:
            # A broken file is skipped; the rest of the upload continues.
            LOGGER.error("Skipping upload: %s", exc)
            print(f"Skipped {raw_path}: {exc}", file=sys.stderr)
            continue
        chat_file = workspace.upload(export.display_name, export.group_name, export.platform, export.text)
        print(f"{chat_file.display_name}: {chat_file.task_count} tasks ({export.platform.value.lower()}, {export.group_name})")
        uploaded += 1
    workspace.save()
    return uploaded


def _run_all(workspace: Workspace) -> None:
    scheduler = _build_scheduler(workspace)
    report = asyncio.run(scheduler.run_all())
    if report is None:
        print("A batch is already running.")
        return
    print(
        f"Processed {report.total} tasks: {report.succeeded} succeeded, {report.failed} failed; "
        f"{len(workspace.store.units)} units, {len(workspace.store.requirements)} requirements, "
        f"{len(workspace.store.matches)} matches"
    )


def _run_task(workspace: Workspace, task_id: str) -> int:
    try:
        workspace.store.get_task(task_id)
    except KeyError:
        print(f"Unknown task: {task_id}", file=sys.stderr)
        return 1
    scheduler = _build_scheduler(workspace)
    task = asyncio.run(scheduler.run_task(task_id))
    print(format_task(task))
    return 0


def _force_match(workspace: Workspace) -> None:
    scheduler = _build_scheduler(workspace)
    added = asyncio.run(scheduler.force_match())
    print(f"Added {added} new matches ({len(workspace.store.matches)} total)")


def _print_entities(entities, query: Optional[str]) -> None:
    if query:
        entities = search_entities(entities, query)
    if not entities:
        print("Nothing found.")
        return
    for entity in entities:
        print(f"{entity.id}  {format_entity(entity)}")


def _print_matches(workspace: Workspace, min_score: float, mode: str) -> None:
    resolved = ranked_matches(workspace.store, min_score=min_score)
    if not resolved:
        print("No matches found yet. Try uploading a chat file.")
        return
    for item in resolved:
        print(format_match(item, mode=mode))


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="estatesync")
    parser.add_argument("--user", default=settings.DEFAULT_USER, help="Persistence key of the workspace")
    subparsers = parser.add_subparsers(dest="command")

    upload_parser = subparsers.add_parser("upload", help="Upload WhatsApp .txt / Telegram .json exports")
    upload_parser.add_argument("files", nargs="+")
    subparsers.add_parser("run", help="Process every pending or failed task, then match")
    run_task_parser = subparsers.add_parser("run-task", help="Run (or retry) a single task")
    run_task_parser.add_argument("task_id")
    subparsers.add_parser("match", help="Run a matching pass now")
    subparsers.add_parser("tasks", help="Show the task board")
    units_parser = subparsers.add_parser("units", help="List available units")
    units_parser.add_argument("--search", default=None)
    requirements_parser = subparsers.add_parser("requirements", help="List client requirements")
    requirements_parser.add_argument("--search", default=None)
    matches_parser = subparsers.add_parser("matches", help="List matches, best first")
    matches_parser.add_argument("--min-score", type=float, default=0)
    matches_parser.add_argument("--format", choices=["text", "markdown"], default="text")
    subparsers.add_parser("stats", help="Show dashboard counters")
    subparsers.add_parser("clear", help="Discard all data for the user")
    subparsers.add_parser("users", help="List user keys with stored data")

    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return 0

    _print_banner()
    _configure_logging()
    storage = _build_storage()
    workspace = _open_workspace(args.user, storage)

    if args.command == "upload":
        return 0 if _upload(workspace, args.files) else 1
    if args.command == "run":
        _run_all(workspace)
        return 0
    if args.command == "run-task":
        return _run_task(workspace, args.task_id)
    if args.command == "match":
        _force_match(workspace)
        return 0
    if args.command == "tasks":
        for chat_file in workspace.store.files:
            print(f"{chat_file.display_name} ({chat_file.platform.value.lower()}, {chat_file.group_name})")
            for task in workspace.store.tasks_for_file(chat_file.id):
                print(f"  {format_task(task)}")
        return 0
    if args.command == "units":
        _print_entities(workspace.store.units, args.search)
        return 0
    if args.command == "requirements":
        _print_entities(workspace.store.requirements, args.search)
        return 0
    if args.command == "matches":
        _print_matches(workspace, args.min_score, args.format)
        return 0
    if args.command == "stats":
        print(format_stats(dashboard_stats(workspace.store)))
        return 0
    if args.command == "clear":
        if not workspace.clear():
            print(f"Failed to clear stored data for {workspace.user_key}", file=sys.stderr)
            return 1
        print(f"Cleared all data for {workspace.user_key}")
        return 0
    if args.command == "users":
        users = sorted(storage.list_users())
        if not users:
            print("No stored data.")
        for user_key in users:
            print(user_key)
        return 0
    return 0


if __name__ == "__main__":
    sys.exit(main())
