from __future__ import annotations

import json
import logging

import requests

from rss2hook.models import FeedItem

from .base import DeliveryError, Notifier

logger = logging.getLogger(__name__)

_ACCEPTED_STATUSES = {200, 201}


class WebhookNotifier(Notifier):
    """POST items to hooks as JSON.

    A hook answering with anything other than 200/201 is only logged; the
    delivery still counts as done and the item will not be sent again. Set
    ``fail_on_error_status`` to treat 4xx/5xx answers as failures instead, so
    the item is retried on the next cycle.
    """

    def __init__(
        self,
        timeout_seconds: float | None = 30.0,
        fail_on_error_status: bool = False,
        session: requests.Session | None = None,
    ) -> None:
        self.timeout_seconds = timeout_seconds
        self.fail_on_error_status = fail_on_error_status
        self.session = session or requests.Session()

    def notify(self, hook_url: str, item: FeedItem) -> int:
        try:
            body = json.dumps(item.payload)
        except (TypeError, ValueError) as exc:
            raise DeliveryError(f"failed to encode item {item.identifier}: {exc}") from exc

        try:
            response = self.session.post(
                hook_url,
                data=body.encode("utf-8"),
                headers={"Content-Type": "application/json"},
                timeout=self.timeout_seconds,
            )
            # Drain the body so the connection can be reused.
            _ = response.content
        except requests.RequestException as exc:
            raise DeliveryError(f"failed to POST to {hook_url}: {exc}") from exc

        status = response.status_code
        if status in _ACCEPTED_STATUSES:
            return status

        if self.fail_on_error_status and status >= 400:
            raise DeliveryError(f"hook {hook_url} returned HTTP {status}")

        logger.warning("Hook %s returned HTTP %d for %s", hook_url, status, item.identifier)
        return status

    def close(self) -> None:
        self.session.close()
