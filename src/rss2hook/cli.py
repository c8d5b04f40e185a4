from __future__ import annotations

import argparse
import logging
import sys
import threading

from rss2hook.config import AppConfig, ConfigError, FeedEntry, load_config
from rss2hook.feeds import FeedFetcher, NetworkError, ParseError, parse_feed
from rss2hook.logging_config import setup_logging
from rss2hook.models import FeedItem
from rss2hook.notifiers import WebhookNotifier
from rss2hook.scheduler import PollingScheduler, install_signal_handlers
from rss2hook.service import FeedScanService
from rss2hook.store import SQLiteStore, StorageUnavailable
from rss2hook.utils.duration_utils import format_duration, parse_duration
from rss2hook.utils.fingerprint import fingerprint

logger = logging.getLogger(__name__)


def _duration_arg(value: str) -> float:
    try:
        return parse_duration(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def _positive_int_arg(value: str) -> int:
    try:
        parsed = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid integer: {value!r}") from exc
    if parsed < 1:
        raise argparse.ArgumentTypeError("must be >= 1")
    return parsed


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rss2hook",
        description="Poll RSS/Atom feeds and POST new items to web-hooks.",
    )
    parser.add_argument(
        "--config",
        help="The path to the configuration-file to read",
    )
    parser.add_argument(
        "--timeout",
        type=_duration_arg,
        help="The timeout used for fetching the remote feeds (default: 5s)",
    )
    parser.add_argument(
        "--interval",
        type=_duration_arg,
        help="Time between scans of all feeds (default: 5m)",
    )
    parser.add_argument(
        "--notify-timeout",
        type=_duration_arg,
        help="The timeout used when posting to a hook (default: 30s)",
    )
    parser.add_argument(
        "--workers",
        type=_positive_int_arg,
        help="Number of feeds scanned in parallel (default: 1)",
    )
    parser.add_argument(
        "--fail-on-error-status",
        action="store_true",
        default=None,
        help="Treat 4xx/5xx hook responses as failures and retry next cycle",
    )
    parser.add_argument(
        "--log-level",
        help="Override config log level (e.g. INFO, DEBUG)",
    )
    subparsers = parser.add_subparsers(dest="command")
    parser.set_defaults(command="run")
    subparsers.add_parser("run", help="Scan now, then keep scanning on the interval (default)")
    subparsers.add_parser("once", help="Scan every feed once and post new items")
    subparsers.add_parser("dry-run", help="Scan once and print the items that would be posted")

    backfill = subparsers.add_parser(
        "backfill",
        help="Fetch current items and mark them seen without posting",
    )
    backfill.add_argument(
        "--mark-seen",
        action="store_true",
        help="Required safety flag for backfill operation",
    )

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.config:
        print("Please specify a configuration-file to read", file=sys.stderr)
        parser.print_usage(sys.stderr)
        return 0

    if args.command == "backfill" and not args.mark_seen:
        parser.error("backfill requires --mark-seen")

    try:
        app_config = load_config(args.config)
    except ConfigError as exc:
        print(f"Config error: {exc}", file=sys.stderr)
        return 2

    _apply_overrides(app_config, args)
    setup_logging(args.log_level or app_config.log_level)

    if not app_config.feeds:
        logger.warning("No feeds configured in %s", app_config.config_path)

    try:
        store = SQLiteStore.open(app_config.storage_path)
    except StorageUnavailable as exc:
        logger.error("%s", exc)
        return 1

    fetcher = FeedFetcher(
        timeout_seconds=app_config.fetch_timeout_seconds,
        user_agent=app_config.user_agent,
    )

    try:
        if args.command == "backfill":
            return _run_backfill(store=store, fetcher=fetcher, feeds=app_config.feeds)

        dry_run = args.command == "dry-run"
        notifier = None
        if not dry_run:
            notifier = WebhookNotifier(
                timeout_seconds=app_config.notify_timeout_seconds,
                fail_on_error_status=app_config.fail_on_error_status,
            )

        service = FeedScanService(
            feeds=app_config.feeds,
            fetcher=fetcher,
            store=store,
            notifier=notifier,
            max_workers=app_config.max_workers,
            dry_run=dry_run,
            preview_callback=_dry_run_preview if dry_run else None,
        )

        if args.command == "run":
            return _run_forever(service=service, store=store, app_config=app_config)

        stats = service.run_once()
        return 0 if stats.ok else 1
    finally:
        store.close()
        fetcher.close()


def _apply_overrides(app_config: AppConfig, args: argparse.Namespace) -> None:
    if args.timeout is not None:
        app_config.fetch_timeout_seconds = args.timeout
    if args.interval is not None:
        app_config.interval_seconds = args.interval
    if args.notify_timeout is not None:
        app_config.notify_timeout_seconds = args.notify_timeout
    if args.workers is not None:
        app_config.max_workers = args.workers
    if args.fail_on_error_status:
        app_config.fail_on_error_status = True


def _run_forever(
    *,
    service: FeedScanService,
    store: SQLiteStore,
    app_config: AppConfig,
) -> int:
    for entry in app_config.feeds:
        logger.info("Monitoring feed %s, posting to %s", entry.feed_url, entry.hook_url)
    logger.info(
        "Scanning %d feeds every %s",
        len(app_config.feeds),
        format_duration(app_config.interval_seconds),
    )

    stop_event = threading.Event()
    install_signal_handlers(stop_event)

    scheduler = PollingScheduler(
        service=service,
        store=store,
        interval_seconds=app_config.interval_seconds,
    )
    scheduler.run_until(stop_event)
    return 0


def _run_backfill(
    *,
    store: SQLiteStore,
    fetcher: FeedFetcher,
    feeds: list[FeedEntry],
) -> int:
    errors = 0
    marked = 0

    for entry in feeds:
        try:
            items = parse_feed(fetcher.fetch(entry.feed_url))
        except (NetworkError, ParseError) as exc:
            errors += 1
            logger.warning("backfill failed for %s: %s", entry.feed_url, exc)
            continue

        for item in items:
            key = fingerprint(entry.feed_url, item.identifier)
            try:
                if not store.is_new(key):
                    continue
                store.mark_seen(key, item.link)
                marked += 1
            except StorageUnavailable as exc:
                errors += 1
                logger.exception(
                    "failed to mark seen during backfill for %s: %s",
                    item.identifier,
                    exc,
                )

    logger.info("Backfill complete | marked_seen=%d errors=%d", marked, errors)
    return 0 if errors == 0 else 1


def _dry_run_preview(entry: FeedEntry, item: FeedItem) -> None:
    print("[DRY RUN] WOULD POST:")
    print(f"  Title: {item.title or '(untitled)'}")
    print(f"  Link: {item.link}")
    print(f"  Hook: {entry.hook_url}")
    print("")


if __name__ == "__main__":
    raise SystemExit(main())
