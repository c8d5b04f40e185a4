from __future__ import annotations

import json

import pytest
import requests

from rss2hook.config import DEFAULT_USER_AGENT
from rss2hook.feeds import FeedFetcher, NetworkError, ParseError, parse_feed


class _DummyResponse:
    def __init__(self, content: bytes, status_code: int = 200) -> None:
        self.content = content
        self.status_code = status_code


RSS = b"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>Example</title>
    <item>
      <title>First post</title>
      <link>https://blog.example/first</link>
      <guid isPermaLink="false">post-1</guid>
      <pubDate>Tue, 06 Jan 2026 10:00:00 +0000</pubDate>
      <description>Hello</description>
    </item>
    <item>
      <title>Second post</title>
      <link>https://blog.example/second</link>
    </item>
  </channel>
</rss>
"""

ATOM = b"""<?xml version="1.0" encoding="utf-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <title>Example Atom</title>
  <id>urn:example:feed</id>
  <updated>2026-01-06T10:00:00Z</updated>
  <entry>
    <title>Atom entry</title>
    <id>urn:example:entry:1</id>
    <link href="https://atom.example/entry/1"/>
    <updated>2026-01-06T10:00:00Z</updated>
  </entry>
</feed>
"""


def test_fetch_sends_user_agent_and_timeout(monkeypatch: pytest.MonkeyPatch) -> None:
    fetcher = FeedFetcher(timeout_seconds=5.0)
    captured: dict = {}

    def fake_get(url, **kwargs):  # noqa: ANN001, ANN003
        captured["url"] = url
        captured.update(kwargs)
        return _DummyResponse(RSS)

    monkeypatch.setattr(fetcher.session, "get", fake_get)

    assert fetcher.fetch("https://blog.example/feed") == RSS
    assert captured["url"] == "https://blog.example/feed"
    assert captured["timeout"] == 5.0
    assert captured["headers"]["User-Agent"] == DEFAULT_USER_AGENT


def test_fetch_raises_network_error_on_http_error(monkeypatch: pytest.MonkeyPatch) -> None:
    fetcher = FeedFetcher(timeout_seconds=5.0)
    monkeypatch.setattr(
        fetcher.session, "get", lambda *args, **kwargs: _DummyResponse(b"", status_code=404)
    )

    with pytest.raises(NetworkError) as excinfo:
        fetcher.fetch("https://blog.example/missing")
    assert "HTTP 404" in str(excinfo.value)


def test_fetch_raises_network_error_on_non_2xx_status(monkeypatch: pytest.MonkeyPatch) -> None:
    fetcher = FeedFetcher(timeout_seconds=5.0)
    monkeypatch.setattr(
        fetcher.session, "get", lambda *args, **kwargs: _DummyResponse(b"", status_code=304)
    )

    with pytest.raises(NetworkError):
        fetcher.fetch("https://blog.example/feed")


def test_fetch_raises_network_error_on_timeout(monkeypatch: pytest.MonkeyPatch) -> None:
    fetcher = FeedFetcher(timeout_seconds=0.5)

    def fake_get(*args, **kwargs):  # noqa: ANN002, ANN003
        raise requests.Timeout("read timed out")

    monkeypatch.setattr(fetcher.session, "get", fake_get)

    with pytest.raises(NetworkError) as excinfo:
        fetcher.fetch("https://slow.example/feed")
    assert isinstance(excinfo.value.__cause__, requests.Timeout)


def test_parse_rss_keeps_document_order_and_identifiers() -> None:
    items = parse_feed(RSS)

    assert [item.identifier for item in items] == ["post-1", "https://blog.example/second"]
    assert items[0].link == "https://blog.example/first"
    assert items[0].title == "First post"


def test_parse_payload_is_json_serializable() -> None:
    item = parse_feed(RSS)[0]

    encoded = json.loads(json.dumps(item.payload))

    assert encoded["title"] == "First post"
    assert encoded["link"] == "https://blog.example/first"
    assert encoded["published_parsed"] == "2026-01-06T10:00:00Z"


def test_parse_atom_feed() -> None:
    items = parse_feed(ATOM)

    assert len(items) == 1
    assert items[0].identifier == "urn:example:entry:1"
    assert items[0].link == "https://atom.example/entry/1"
    assert items[0].payload["updated_parsed"] == "2026-01-06T10:00:00Z"


def test_parse_empty_feed_returns_no_items() -> None:
    raw = b'<?xml version="1.0" encoding="UTF-8"?><rss version="2.0"><channel><title>Empty</title></channel></rss>'

    assert parse_feed(raw) == []


def test_parse_garbage_raises_parse_error() -> None:
    with pytest.raises(ParseError):
        parse_feed(b"<html><body>Not a feed</body>")


def test_parse_plain_text_raises_parse_error() -> None:
    with pytest.raises(ParseError):
        parse_feed(b"just some text")


ENTITY_RSS = b"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>Quirky</title>
    <item>
      <title>Caf&eacute; &nbsp; news</title>
      <link>https://blog.example/cafe</link>
      <guid isPermaLink="false">cafe</guid>
    </item>
    <item>
      <title>Tom & Jerry</title>
      <link>https://blog.example/tom-and-jerry</link>
      <guid isPermaLink="false">tom-and-jerry</guid>
    </item>
  </channel>
</rss>
"""


def test_parse_recovers_items_from_html_entities_and_bare_ampersands() -> None:
    items = parse_feed(ENTITY_RSS)

    assert [item.identifier for item in items] == ["cafe", "tom-and-jerry"]
    assert items[0].link == "https://blog.example/cafe"
    assert "Caf" in items[0].title
    assert "Jerry" in items[1].title


def test_parse_malformed_feed_without_entries_raises_parse_error() -> None:
    raw = b'<?xml version="1.0"?><rss version="2.0"><channel><title>Broken &nbsp;</title>'

    with pytest.raises(ParseError):
        parse_feed(raw)
