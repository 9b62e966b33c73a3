"""Upstream NSI feed: client protocol, HTTP implementation, payload parsing."""

from nsi_sync.feed.client import HttpFeedClient, UpstreamFeedClient
from nsi_sync.feed.parsing import parse_delta_batch, parse_warehouse_delta

__all__ = [
    "HttpFeedClient",
    "UpstreamFeedClient",
    "parse_delta_batch",
    "parse_warehouse_delta",
]
