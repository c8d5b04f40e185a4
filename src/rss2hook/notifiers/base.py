from __future__ import annotations

from abc import ABC, abstractmethod

from rss2hook.models import FeedItem


class DeliveryError(RuntimeError):
    """Raised when an item could not be handed to its hook."""


class Notifier(ABC):
    @abstractmethod
    def notify(self, hook_url: str, item: FeedItem) -> int:
        """Deliver an item to a hook, returning the HTTP status."""
