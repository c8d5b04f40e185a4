from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(slots=True)
class FeedItem:
    identifier: str
    link: str
    title: str
    payload: dict[str, Any] = field(default_factory=dict)
