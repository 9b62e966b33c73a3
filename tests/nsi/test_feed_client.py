"""
Tests for nsi_sync.feed: HttpFeedClient against httpx.MockTransport, and
payload parsing.
"""

import httpx
import pytest

from portal_kernel.exceptions import FeedMalformedError, FeedUnavailableError

from nsi_sync.feed.client import HttpFeedClient
from nsi_sync.feed.parsing import parse_delta_batch, parse_warehouse_delta

BASE_URL = "http://uh.test/api"


def _client(handler, **kwargs) -> HttpFeedClient:
    return HttpFeedClient(BASE_URL, transport=httpx.MockTransport(handler), **kwargs)


class TestHttpFeedClient:
    def test_get_delta_requests_version(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["version"] = request.url.params.get("version")
            return httpx.Response(200, json={
                "version": 7,
                "timestamp": "2026-02-01T12:00:00Z",
                "items": [
                    {"type": "Organization", "id": "org-1", "code": "ORG1", "name": "Acme"},
                ],
            })

        with _client(handler) as client:
            batch = client.get_delta(5)

        assert seen == {"path": "/api/nsi/delta", "version": "5"}
        assert batch.version == 7
        assert batch.items[0].id == "org-1"
        assert batch.items[0].code == "ORG1"

    def test_warehouse_delta_without_version(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json={"items": [
                {"type": "Warehouse", "id": "wh-1", "name": "Main", "data": {"organizationId": "org-1"}},
            ]})

        with _client(handler) as client:
            delta = client.get_warehouse_delta()

        assert seen == {"path": "/api/nsi/warehouses/delta", "params": {}}
        assert delta.items[0].data.organization_id == "org-1"

    def test_bearer_token_sent(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(200, json={"version": 1, "items": []})

        with _client(handler, api_key="s3cret") as client:
            client.get_delta(0)

        assert seen["auth"] == "Bearer s3cret"

    def test_http_error_status_is_unavailable(self):
        with _client(lambda request: httpx.Response(503)) as client:
            with pytest.raises(FeedUnavailableError) as exc_info:
                client.get_delta(0)
        assert exc_info.value.status_code == 503
        assert exc_info.value.code == "FEED_UNAVAILABLE"

    def test_transport_error_is_unavailable(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with _client(handler) as client:
            with pytest.raises(FeedUnavailableError) as exc_info:
                client.get_delta(0)
        assert exc_info.value.status_code is None
        assert "nsi/delta" in exc_info.value.endpoint

    def test_timeout_is_unavailable(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        with _client(handler) as client:
            with pytest.raises(FeedUnavailableError):
                client.get_delta(0)

    def test_non_json_body_is_malformed(self):
        with _client(lambda request: httpx.Response(200, text="<html>")) as client:
            with pytest.raises(FeedMalformedError):
                client.get_delta(0)

    def test_from_settings(self):
        from portal_config import FeedSettings

        settings = FeedSettings(base_url=BASE_URL, api_key="k", delta_path="/v2/nsi/delta")
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            return httpx.Response(200, json={"version": 3, "items": []})

        client = HttpFeedClient.from_settings(settings, transport=httpx.MockTransport(handler))
        try:
            assert client.get_delta(0).version == 3
        finally:
            client.close()
        assert seen["path"] == "/api/v2/nsi/delta"


class TestParsing:
    def test_version_as_numeric_string(self):
        assert parse_delta_batch({"version": "12", "items": []}).version == 12

    def test_missing_version_rejected(self):
        with pytest.raises(FeedMalformedError):
            parse_delta_batch({"items": []})

    def test_items_must_be_list(self):
        with pytest.raises(FeedMalformedError):
            parse_delta_batch({"version": 1, "items": {"id": "x"}})

    def test_item_must_be_object(self):
        with pytest.raises(FeedMalformedError):
            parse_delta_batch({"version": 1, "items": ["org-1"]})

    def test_data_must_be_object(self):
        with pytest.raises(FeedMalformedError):
            parse_delta_batch({"version": 1, "items": [{"type": "Organization", "id": "o", "data": []}]})

    def test_item_without_id_is_kept(self):
        batch = parse_delta_batch({"version": 1, "items": [{"type": "Organization", "name": "No id"}]})
        assert batch.items[0].id == ""

    def test_numeric_ids_become_strings(self):
        batch = parse_delta_batch({"version": 1, "items": [{"type": "Nomenclature", "id": 42}]})
        assert batch.items[0].id == "42"

    def test_null_items_is_empty(self):
        assert parse_delta_batch({"version": 4, "items": None}).items == ()

    def test_warehouse_delta_optional_version(self):
        assert parse_warehouse_delta({"items": []}).version is None
        assert parse_warehouse_delta({"items": [], "version": 9}).version == 9

    def test_envelope_must_be_object(self):
        with pytest.raises(FeedMalformedError):
            parse_warehouse_delta([])
