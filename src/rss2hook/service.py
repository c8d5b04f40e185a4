from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Sequence

from rss2hook.config import FeedEntry
from rss2hook.feeds import FeedFetcher, NetworkError, ParseError, parse_feed
from rss2hook.models import FeedItem
from rss2hook.notifiers import DeliveryError, Notifier
from rss2hook.store import Store, StorageUnavailable
from rss2hook.utils.fingerprint import fingerprint

logger = logging.getLogger(__name__)

PreviewCallback = Callable[[FeedEntry, FeedItem], None]


@dataclass(slots=True)
class ScanStats:
    feeds: int = 0
    feeds_failed: int = 0
    items: int = 0
    notified: int = 0
    skipped_seen: int = 0
    skipped_unidentified: int = 0
    delivery_failures: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def merge(self, other: ScanStats) -> None:
        self.feeds += other.feeds
        self.feeds_failed += other.feeds_failed
        self.items += other.items
        self.notified += other.notified
        self.skipped_seen += other.skipped_seen
        self.skipped_unidentified += other.skipped_unidentified
        self.delivery_failures += other.delivery_failures
        self.errors.extend(other.errors)


class FeedScanService:
    """One scan cycle: fetch every feed and deliver the items not yet seen."""

    def __init__(
        self,
        *,
        feeds: Sequence[FeedEntry],
        fetcher: FeedFetcher,
        store: Store,
        notifier: Notifier | None,
        max_workers: int = 1,
        dry_run: bool = False,
        preview_callback: PreviewCallback | None = None,
        parser: Callable[[bytes], list[FeedItem]] = parse_feed,
    ) -> None:
        self.feeds = list(feeds)
        self.fetcher = fetcher
        self.store = store
        self.notifier = notifier
        self.max_workers = max(1, max_workers)
        self.dry_run = dry_run
        self.preview_callback = preview_callback or _default_preview
        self.parser = parser

        if notifier is None and not dry_run:
            raise ValueError("notifier is required when dry_run is false")

    def run_once(self) -> ScanStats:
        stats = ScanStats()

        if self.max_workers > 1 and len(self.feeds) > 1:
            with ThreadPoolExecutor(
                max_workers=min(self.max_workers, len(self.feeds)),
                thread_name_prefix="rss2hook-feed",
            ) as executor:
                results = list(executor.map(self._scan_feed_isolated, self.feeds))
        else:
            results = [self._scan_feed_isolated(entry) for entry in self.feeds]

        for feed_stats in results:
            stats.merge(feed_stats)

        logger.info(
            "Cycle complete | feeds=%d failed=%d items=%d notified=%d skipped_seen=%d "
            "delivery_failures=%d errors=%d",
            stats.feeds,
            stats.feeds_failed,
            stats.items,
            stats.notified,
            stats.skipped_seen,
            stats.delivery_failures,
            len(stats.errors),
        )
        return stats

    def _scan_feed_isolated(self, entry: FeedEntry) -> ScanStats:
        try:
            return self.scan_feed(entry)
        except Exception as exc:  # noqa: BLE001
            message = f"feed {entry.feed_url} scan failed: {exc}"
            logger.exception(message)
            stats = ScanStats(feeds=1, feeds_failed=1)
            stats.errors.append(message)
            return stats

    def scan_feed(self, entry: FeedEntry) -> ScanStats:
        stats = ScanStats(feeds=1)

        try:
            content = self.fetcher.fetch(entry.feed_url)
        except NetworkError as exc:
            message = f"error fetching {entry.feed_url}: {exc}"
            logger.warning(message)
            stats.feeds_failed += 1
            stats.errors.append(message)
            return stats

        try:
            items = self.parser(content)
        except ParseError as exc:
            message = f"error parsing {entry.feed_url}: {exc}"
            logger.warning(message)
            stats.feeds_failed += 1
            stats.errors.append(message)
            return stats

        logger.debug("Feed %s returned %d items", entry.feed_url, len(items))

        for item in items:
            stats.items += 1

            if not item.identifier:
                stats.skipped_unidentified += 1
                continue

            key = fingerprint(entry.feed_url, item.identifier)
            try:
                is_new = self.store.is_new(key)
            except StorageUnavailable as exc:
                message = f"failed to read seen state for {item.identifier}: {exc}"
                logger.exception(message)
                stats.errors.append(message)
                continue

            if not is_new:
                stats.skipped_seen += 1
                continue

            if self.dry_run:
                self.preview_callback(entry, item)
                continue

            if self.notifier is None:
                message = "notifier is required when dry_run is false"
                logger.error(message)
                stats.errors.append(message)
                return stats

            try:
                self.notifier.notify(entry.hook_url, item)
            except DeliveryError as exc:
                message = f"failed to notify {entry.hook_url} about {item.identifier}: {exc}"
                logger.warning(message)
                stats.delivery_failures += 1
                stats.errors.append(message)
                continue

            stats.notified += 1
            logger.info("Notified %s about %s", entry.hook_url, item.link or item.identifier)

            try:
                self.store.mark_seen(key, item.link)
            except StorageUnavailable as exc:
                message = f"failed to mark {item.identifier} seen: {exc}"
                logger.exception(message)
                stats.errors.append(message)

        return stats


def _default_preview(entry: FeedEntry, item: FeedItem) -> None:
    print(f"[DRY RUN] WOULD POST: {item.title or item.identifier}")
    print(f"  Link: {item.link}")
    print(f"  Feed: {entry.feed_url}")
    print(f"  Hook: {entry.hook_url}")
    print("")
