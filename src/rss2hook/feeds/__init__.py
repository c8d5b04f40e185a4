"""Feed retrieval and parsing."""

from .fetcher import FeedFetcher, NetworkError
from .parser import ParseError, parse_feed

__all__ = ["FeedFetcher", "NetworkError", "ParseError", "parse_feed"]
