from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Protocol, Sequence

import httpx

from .config import BlockConfig
from .config_schema import EndpointsConfig
from .errors import ParseError, TransportError
from .fixture import fixture_posts
from .post import RawPost
from .profile_page import extract_shared_data, raw_post_from_media_node, timeline_media_nodes
from .run_log import BlockLogger


@dataclass(frozen=True)
class FeedResult:
    source: str
    items: Sequence[RawPost]


class FeedSource(Protocol):
    """A single data source in the fallback chain. Never raises; failures yield []."""

    name: str

    def try_fetch(self, config: BlockConfig) -> list[RawPost]: ...


def _http_get(
    client: httpx.Client,
    url: str,
    *,
    params: Mapping[str, Any] | None = None,
    headers: Mapping[str, str] | None = None,
    timeout: float,
) -> httpx.Response:
    try:
        resp = client.get(
            url,
            params=params,
            headers=headers,
            timeout=timeout,
            follow_redirects=True,
        )
        resp.raise_for_status()
    except httpx.HTTPStatusError as e:
        code = e.response.status_code
        raise TransportError(f"HTTP {code} response", status_code=code) from e
    except httpx.TimeoutException as e:
        raise TransportError(f"Request timed out after {timeout}s") from e
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        raise TransportError(f"Request failed: {e}") from e
    return resp


def _log_failure(
    logger: BlockLogger | None,
    event: str,
    exc: Exception,
    *,
    source: str,
    url: str,
) -> None:
    if logger is None:
        return
    logger.error(
        event,
        url=url,
        source=source,
        error_type=type(exc).__name__,
        status_code=getattr(exc, "status_code", None),
        message=str(exc),
    )


class ApiFeedSource:
    """Authenticated feed API: the freshest and most trusted source."""

    name = "api"

    def __init__(
        self,
        client: httpx.Client,
        *,
        endpoints: EndpointsConfig,
        logger: BlockLogger | None = None,
    ) -> None:
        self._client = client
        self._endpoints = endpoints
        self._logger = logger

    def fetch_payload(self, config: BlockConfig) -> dict[str, Any]:
        """
        Issue the feed request and decode its JSON body.

        Raises TransportError or ParseError.
        """
        resp = _http_get(
            self._client,
            self._endpoints.feed_url,
            params={
                "client_id": "",
                "access_token": config.credential,
                "count": config.item_count,
            },
            headers={"Accept": "application/json"},
            timeout=self._endpoints.timeout_seconds,
        )

        if not resp.content.strip():
            return {}

        try:
            payload = resp.json()
        except ValueError as e:
            raise ParseError(f"Feed response is not valid JSON: {e}") from e

        if not isinstance(payload, dict):
            raise ParseError("Feed response must be a JSON object")
        return payload

    def try_fetch(self, config: BlockConfig) -> list[RawPost]:
        try:
            payload = self.fetch_payload(config)
        except (TransportError, ParseError) as e:
            _log_failure(
                self._logger,
                "feed_request_failed",
                e,
                source=self.name,
                url=self._endpoints.feed_url,
            )
            return []

        data = payload.get("data")
        if not isinstance(data, list):
            return []
        return [item for item in data if isinstance(item, Mapping)]


class ProfilePageSource:
    """
    Best-effort scrape of the public profile page.

    The page embeds its state as JSON between a marker and a terminator token.
    Fetch and parse failures yield [].
    """

    name = "profile_page"

    def __init__(
        self,
        client: httpx.Client,
        *,
        endpoints: EndpointsConfig,
        logger: BlockLogger | None = None,
    ) -> None:
        self._client = client
        self._endpoints = endpoints
        self._logger = logger

    @property
    def url(self) -> str:
        return self._endpoints.profile_url.format(username=self._endpoints.profile_username)

    def try_fetch(self, config: BlockConfig) -> list[RawPost]:
        try:
            resp = _http_get(
                self._client,
                self.url,
                headers={"Accept": "text/html"},
                timeout=self._endpoints.timeout_seconds,
            )
            shared = extract_shared_data(
                resp.text,
                marker=self._endpoints.shared_data_marker,
                terminator=self._endpoints.shared_data_terminator,
            )
        except (TransportError, ParseError) as e:
            _log_failure(self._logger, "profile_page_failed", e, source=self.name, url=self.url)
            return []

        items: list[RawPost] = []
        skipped = 0
        for node in timeline_media_nodes(shared, limit=config.item_count):
            raw = raw_post_from_media_node(
                node,
                variant=config.image_variant,
                permalink_base=self._endpoints.permalink_base,
            )
            if raw is None:
                skipped += 1
                continue
            items.append(raw)

        if skipped and self._logger is not None:
            self._logger.warning(
                "profile_nodes_skipped",
                url=self.url,
                source=self.name,
                skipped=skipped,
                kept=len(items),
            )
        return items


class FixtureSource:
    """Built-in posts; guarantees a configured block always has something to show."""

    name = "fixture"

    def try_fetch(self, config: BlockConfig) -> list[RawPost]:
        return list(fixture_posts())


def default_sources(
    client: httpx.Client,
    endpoints: EndpointsConfig,
    *,
    logger: BlockLogger | None = None,
    offline: bool = False,
) -> list[FeedSource]:
    if offline:
        return [FixtureSource()]
    return [
        ApiFeedSource(client, endpoints=endpoints, logger=logger),
        ProfilePageSource(client, endpoints=endpoints, logger=logger),
        FixtureSource(),
    ]


def fetch_feed(
    config: BlockConfig,
    sources: Sequence[FeedSource],
    *,
    logger: BlockLogger | None = None,
) -> FeedResult:
    """
    Try each source once, in order, and return the first non-empty result.

    Lower-priority sources are skipped as soon as one source yields items.
    """
    for source in sources:
        try:
            items = source.try_fetch(config)
        except Exception as e:
            if logger is not None:
                logger.exception("feed_source_crashed", exc=e, source=source.name)
            items = []

        if items:
            if logger is not None:
                logger.info("feed_source_selected", source=source.name, items=len(items))
            return FeedResult(source=source.name, items=list(items))

        if logger is not None:
            logger.info("feed_source_empty", source=source.name)

    return FeedResult(source="none", items=[])
