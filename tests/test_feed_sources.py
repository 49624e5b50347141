from __future__ import annotations

import json
import unittest
from typing import Any

import httpx

from instagram_block.config import BlockConfig
from instagram_block.config_schema import EndpointsConfig
from instagram_block.feed_sources import (
    ApiFeedSource,
    FixtureSource,
    ProfilePageSource,
    default_sources,
    fetch_feed,
)


class _RecordingLogger:
    def __init__(self) -> None:
        self.records: list[tuple[str, str, dict[str, Any]]] = []

    def info(self, event: str, *, url: str | None = None, **data: Any) -> None:
        self.records.append(("INFO", event, data))

    def warning(self, event: str, *, url: str | None = None, **data: Any) -> None:
        self.records.append(("WARN", event, data))

    def error(self, event: str, *, url: str | None = None, **data: Any) -> None:
        self.records.append(("ERROR", event, data))

    def exception(
        self, event: str, *, exc: BaseException, url: str | None = None, **data: Any
    ) -> None:
        self.records.append(("ERROR", event, {"exc": exc, **data}))

    def events(self) -> list[str]:
        return [event for _, event, _ in self.records]


class _StaticSource:
    def __init__(self, name: str, items: list[dict[str, Any]]) -> None:
        self.name = name
        self._items = items
        self.calls = 0

    def try_fetch(self, config: BlockConfig) -> list[dict[str, Any]]:
        self.calls += 1
        return list(self._items)


class _CrashingSource:
    name = "crashing"

    def try_fetch(self, config: BlockConfig) -> list[dict[str, Any]]:
        raise RuntimeError("boom")


_ENDPOINTS = EndpointsConfig(
    feed_url="https://api.example.com/v1/users/self/media/recent/",
    profile_url="https://example.com/{username}/",
    profile_username="someone",
    permalink_base="https://example.com/p/",
    timeout_seconds=1.0,
)

_CONFIG = BlockConfig(
    block_id="b1",
    credential="tok123",
    item_count=3,
    image_variant="thumbnail",
    width=150,
    height=150,
    cache_lifetime_minutes=360,
)


def _api_post(i: int) -> dict[str, Any]:
    return {
        "id": f"p{i}",
        "link": f"https://example.com/p/p{i}/",
        "images": {"thumbnail": {"url": f"https://cdn.example.com/{i}.jpg"}},
        "caption": {"text": f"post {i}"},
    }


def _client(handler: Any) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


class TestApiFeedSource(unittest.TestCase):
    def test_sends_credential_count_and_accept_header(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"data": [_api_post(1), _api_post(2)]})

        with _client(handler) as client:
            items = ApiFeedSource(client, endpoints=_ENDPOINTS).try_fetch(_CONFIG)

        self.assertEqual([i["id"] for i in items], ["p1", "p2"])
        self.assertEqual(len(seen), 1)
        req = seen[0]
        self.assertEqual(req.method, "GET")
        self.assertEqual(req.url.host, "api.example.com")
        self.assertEqual(req.url.params["access_token"], "tok123")
        self.assertEqual(req.url.params["count"], "3")
        self.assertEqual(req.url.params["client_id"], "")
        self.assertEqual(req.headers["accept"], "application/json")

    def test_non_2xx_is_logged_with_status_and_treated_as_empty(self) -> None:
        log = _RecordingLogger()

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"meta": {"error_type": "OAuthAccessTokenException"}})

        with _client(handler) as client:
            items = ApiFeedSource(client, endpoints=_ENDPOINTS, logger=log).try_fetch(_CONFIG)

        self.assertEqual(items, [])
        self.assertEqual(log.events(), ["feed_request_failed"])
        level, _, data = log.records[0]
        self.assertEqual(level, "ERROR")
        self.assertEqual(data["status_code"], 400)
        self.assertEqual(data["error_type"], "TransportError")

    def test_timeout_is_treated_as_empty(self) -> None:
        log = _RecordingLogger()

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        with _client(handler) as client:
            items = ApiFeedSource(client, endpoints=_ENDPOINTS, logger=log).try_fetch(_CONFIG)

        self.assertEqual(items, [])
        self.assertEqual(log.events(), ["feed_request_failed"])
        self.assertIsNone(log.records[0][2]["status_code"])

    def test_malformed_json_is_parse_failure(self) -> None:
        log = _RecordingLogger()

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>oops</html>")

        with _client(handler) as client:
            items = ApiFeedSource(client, endpoints=_ENDPOINTS, logger=log).try_fetch(_CONFIG)

        self.assertEqual(items, [])
        self.assertEqual(log.records[0][2]["error_type"], "ParseError")

    def test_missing_or_empty_data_is_empty(self) -> None:
        for body in ({}, {"data": []}, {"data": None}, {"data": "x"}):

            def handler(request: httpx.Request, body: Any = body) -> httpx.Response:
                return httpx.Response(200, content=json.dumps(body).encode("utf-8"))

            with _client(handler) as client:
                items = ApiFeedSource(client, endpoints=_ENDPOINTS).try_fetch(_CONFIG)
            self.assertEqual(items, [], msg=str(body))

    def test_empty_body_is_empty(self) -> None:
        with _client(lambda request: httpx.Response(200, content=b"")) as client:
            items = ApiFeedSource(client, endpoints=_ENDPOINTS).try_fetch(_CONFIG)
        self.assertEqual(items, [])


class TestProfilePageSource(unittest.TestCase):
    def _page(self, nodes: list[dict[str, Any]]) -> str:
        data = {
            "entry_data": {
                "ProfilePage": [
                    {
                        "graphql": {
                            "user": {
                                "edge_owner_to_timeline_media": {
                                    "edges": [{"node": n} for n in nodes]
                                }
                            }
                        }
                    }
                ]
            }
        }
        return (
            "<html><script>window._sharedData = "
            + json.dumps(data)
            + ";</script></html>"
        )

    def test_scrapes_first_item_count_nodes_and_skips_broken_ones(self) -> None:
        log = _RecordingLogger()
        nodes = [
            {"id": "1", "shortcode": "A", "display_url": "https://cdn/a.jpg"},
            {"id": "2", "shortcode": "B"},
            {"id": "3", "shortcode": "C", "display_url": "https://cdn/c.jpg"},
            {"id": "4", "shortcode": "D", "display_url": "https://cdn/d.jpg"},
        ]
        seen_urls: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen_urls.append(str(request.url))
            return httpx.Response(200, text=self._page(nodes))

        with _client(handler) as client:
            items = ProfilePageSource(client, endpoints=_ENDPOINTS, logger=log).try_fetch(_CONFIG)

        self.assertEqual(seen_urls, ["https://example.com/someone/"])
        self.assertEqual([i["id"] for i in items], ["1", "3"])
        self.assertEqual(items[0]["link"], "https://example.com/p/A")
        self.assertIn("profile_nodes_skipped", log.events())

    def test_skip_count_includes_edges_without_node(self) -> None:
        log = _RecordingLogger()
        page = self._page([{"id": "1", "shortcode": "A", "display_url": "https://cdn/a.jpg"}])
        page = page.replace(
            '"edges": [',
            '"edges": [{"cursor": "c0"}, "junk", ',
        )

        with _client(lambda request: httpx.Response(200, text=page)) as client:
            items = ProfilePageSource(client, endpoints=_ENDPOINTS, logger=log).try_fetch(_CONFIG)

        self.assertEqual([i["id"] for i in items], ["1"])
        skipped = [data for _, event, data in log.records if event == "profile_nodes_skipped"]
        self.assertEqual(skipped, [{"source": "profile_page", "skipped": 2, "kept": 1}])

    def test_page_without_marker_is_empty(self) -> None:
        log = _RecordingLogger()
        with _client(lambda request: httpx.Response(200, text="<html></html>")) as client:
            items = ProfilePageSource(client, endpoints=_ENDPOINTS, logger=log).try_fetch(_CONFIG)

        self.assertEqual(items, [])
        self.assertEqual(log.events(), ["profile_page_failed"])
        self.assertEqual(log.records[0][2]["error_type"], "ParseError")

    def test_connection_error_is_empty(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with _client(handler) as client:
            items = ProfilePageSource(client, endpoints=_ENDPOINTS).try_fetch(_CONFIG)
        self.assertEqual(items, [])


class TestFetchFeed(unittest.TestCase):
    def test_first_non_empty_source_wins(self) -> None:
        first = _StaticSource("first", [])
        second = _StaticSource("second", [_api_post(1)])
        third = _StaticSource("third", [_api_post(2)])

        result = fetch_feed(_CONFIG, [first, second, third])

        self.assertEqual(result.source, "second")
        self.assertEqual([i["id"] for i in result.items], ["p1"])
        self.assertEqual((first.calls, second.calls, third.calls), (1, 1, 0))

    def test_crashing_source_is_contained(self) -> None:
        log = _RecordingLogger()
        fallback = _StaticSource("fallback", [_api_post(1)])

        result = fetch_feed(_CONFIG, [_CrashingSource(), fallback], logger=log)

        self.assertEqual(result.source, "fallback")
        self.assertIn("feed_source_crashed", log.events())

    def test_all_empty(self) -> None:
        result = fetch_feed(_CONFIG, [_StaticSource("a", []), _StaticSource("b", [])])
        self.assertEqual(result.source, "none")
        self.assertEqual(list(result.items), [])

    def test_primary_success_skips_scrape_and_fixture(self) -> None:
        hosts: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            hosts.append(request.url.host)
            return httpx.Response(200, json={"data": [_api_post(1)]})

        with _client(handler) as client:
            result = fetch_feed(_CONFIG, default_sources(client, _ENDPOINTS))

        self.assertEqual(result.source, "api")
        self.assertEqual(hosts, ["api.example.com"])

    def test_offline_chain_is_fixture_only(self) -> None:
        sources = default_sources(None, _ENDPOINTS, offline=True)  # type: ignore[arg-type]
        self.assertEqual([s.name for s in sources], ["fixture"])
        self.assertEqual(len(FixtureSource().try_fetch(_CONFIG)), 9)


if __name__ == "__main__":
    unittest.main()
