"""Notifier implementations."""

from .base import DeliveryError, Notifier
from .webhook import WebhookNotifier

__all__ = ["DeliveryError", "Notifier", "WebhookNotifier"]
