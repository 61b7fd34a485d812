"""CLI entry point for ideasync."""

import argparse
import asyncio
import inspect
import json
import logging
import sys
import traceback
from datetime import datetime
from pathlib import Path

from .cache import LocalCache
from .config import load_config
from .errors import ConfigError, IdeaSyncError
from .sync import SyncOrchestrator, SyncStatus


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "component": record.name,
            "message": record.getMessage(),
        }

        # Add exception info if present
        if record.exc_info:
            log_data["exception"] = "".join(traceback.format_exception(*record.exc_info))

        # Safe JSON serialization
        try:
            return json.dumps(log_data)
        except (TypeError, ValueError):
            log_data["message"] = str(log_data["message"])
            if "exception" in log_data:
                log_data["exception"] = str(log_data["exception"])
            return json.dumps(log_data)


def setup_logging(verbose: bool = False, log_level: str | None = None, json_output: bool = False) -> None:
    """Configure logging.

    Args:
        verbose: Enable debug logging (ignored if log_level is set).
        log_level: Explicit log level (error, warning, info, debug).
        json_output: Output logs as JSON lines for machine parsing.
    """
    if log_level:
        level_map = {
            "error": logging.ERROR,
            "warning": logging.WARNING,
            "info": logging.INFO,
            "debug": logging.DEBUG,
        }
        level = level_map.get(log_level, logging.INFO)
    else:
        level = logging.DEBUG if verbose else logging.INFO

    handler = logging.StreamHandler()
    if json_output:
        handler.setFormatter(JSONFormatter())
    else:
        formatter = logging.Formatter(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        handler.setFormatter(formatter)

    logging.basicConfig(
        level=level,
        handlers=[handler],
        force=True,
    )


def _open_cache(db_path: str) -> LocalCache:
    cache = LocalCache(db_path)
    cache.connect()
    return cache


async def cmd_sync(args: argparse.Namespace) -> int:
    """Sync the local cache with the remote tables."""
    config = args.settings
    orchestrator = SyncOrchestrator.from_config(config)
    cache = _open_cache(config.cache.db_path)

    try:
        result = await orchestrator.sync_cache(args.owner, cache)
    except IdeaSyncError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        cache.close()
        await orchestrator.close()

    report = result.report
    if args.json:
        print(json.dumps(report.to_dict(), indent=2))
    else:
        print(f"Sync for {report.owner_id}: {report.status.value}")
        for part in (report.projects, report.ideas):
            print(
                f"  {part.kind}s: {part.merged} merged "
                f"({part.local_only} local only, {part.remote_only} remote only, "
                f"{part.local_wins} local kept, {part.remote_wins} remote kept)"
            )
            print(f"    uploads: {part.uploads_succeeded}/{part.uploads_attempted}")
            if part.skipped_malformed or part.skipped_foreign:
                print(
                    f"    skipped: {part.skipped_malformed} malformed, "
                    f"{part.skipped_foreign} foreign"
                )
            if part.fetch_error:
                print(f"    fetch error: {part.fetch_error}")
            if part.error:
                print(f"    error: {part.error}")
            for entity_id in part.failed_ids:
                print(f"    failed upload: {entity_id}")

    return 0 if report.status == SyncStatus.SUCCESS else 1


def cmd_status(args: argparse.Namespace) -> int:
    """Show configuration and local cache statistics."""
    config = args.settings
    cache = _open_cache(config.cache.db_path)
    try:
        stats = cache.get_stats()
    except IdeaSyncError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        cache.close()

    status_data = {
        "remote": {
            "url": config.remote.url or None,
            "configured": bool(config.remote.url),
            "projects_table": config.remote.projects_table,
            "ideas_table": config.remote.ideas_table,
        },
        "cache": stats,
    }

    if args.json:
        print(json.dumps(status_data, indent=2))
    else:
        print("ideasync Status")
        print("===============")
        remote = status_data["remote"]
        print(f"Remote: {remote['url'] or 'not configured'}")
        print(f"  Tables: {remote['projects_table']}, {remote['ideas_table']}")
        print()
        print(f"Cache ({stats['db_path']}):")
        print(f"  Projects: {stats['projects']}")
        print(f"  Ideas: {stats['ideas']}")

    return 0


async def cmd_delete(args: argparse.Namespace) -> int:
    """Delete a record remotely and from the local cache."""
    config = args.settings
    orchestrator = SyncOrchestrator.from_config(config)
    cache = _open_cache(config.cache.db_path)

    try:
        if args.kind == "project":
            result = await orchestrator.delete_project(args.id)
            cached = cache.delete_project(args.id)
        else:
            result = await orchestrator.delete_idea(args.id)
            cached = cache.delete_idea(args.id)
    finally:
        cache.close()
        await orchestrator.close()

    print(f"Local cache: {'removed' if cached else 'not cached'}")
    if result.ok:
        print("Remote: deleted")
        return 0

    print(f"Remote: failed ({result.error})", file=sys.stderr)
    return 1


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="ideasync",
        description="Sync locally cached projects and ideas with the remote store",
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=None,
        help="Path to config file",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["error", "warning", "info", "debug"],
        default=None,
        help="Set log level explicitly (overrides -v/--verbose)",
    )
    parser.add_argument(
        "--log-json",
        action="store_true",
        help="Output logs as JSON for machine parsing",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Sync command
    sync_parser = subparsers.add_parser("sync", help="Sync the local cache")
    sync_parser.add_argument(
        "--owner",
        required=True,
        help="Account id whose records are synced",
    )
    sync_parser.add_argument(
        "--json",
        action="store_true",
        help="Output the sync report as JSON",
    )
    sync_parser.set_defaults(func=cmd_sync)

    # Status command
    status_parser = subparsers.add_parser("status", help="Show cache status")
    status_parser.add_argument(
        "--json",
        action="store_true",
        help="Output status as JSON",
    )
    status_parser.set_defaults(func=cmd_status)

    # Delete command
    delete_parser = subparsers.add_parser("delete", help="Delete a project or idea")
    delete_parser.add_argument("kind", choices=["project", "idea"])
    delete_parser.add_argument("id", help="Id of the record to delete")
    delete_parser.set_defaults(func=cmd_delete)

    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    args.settings = config

    log_level = args.log_level or (None if args.verbose else config.logging.level)
    setup_logging(args.verbose, log_level, args.log_json or config.logging.json)

    if not args.command:
        parser.print_help()
        return 1

    func = args.func
    if inspect.iscoroutinefunction(func):
        return asyncio.run(func(args))
    return func(args)


if __name__ == "__main__":
    sys.exit(main())
