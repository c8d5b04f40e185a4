from __future__ import annotations

import hashlib
import json


def fingerprint(feed_url: str, identifier: str) -> str:
    """Return the dedup key for an item of a feed.

    The pair is JSON-encoded before hashing so that ("ab", "c") and
    ("a", "bc") hash differently.
    """
    encoded = json.dumps([feed_url, identifier], ensure_ascii=False)
    return hashlib.sha1(encoded.encode("utf-8"), usedforsecurity=False).hexdigest()
