from __future__ import annotations

from contextlib import ExitStack
from typing import Any, Mapping, Sequence

import httpx

from .config import resolve_block_config
from .config_schema import BlockSettings, EndpointsConfig
from .errors import ConfigError
from .feed_sources import FeedSource, default_sources, fetch_feed
from .normalize import cache_directive, normalize_posts
from .post import EmptyResult, RenderResult
from .run_log import BlockLogger


def render(
    stored_settings: Mapping[str, Any] | BlockSettings,
    *,
    endpoints: EndpointsConfig | None = None,
    client: httpx.Client | None = None,
    sources: Sequence[FeedSource] | None = None,
    logger: BlockLogger | None = None,
    environ: Mapping[str, str] | None = None,
    offline: bool = False,
) -> RenderResult | EmptyResult:
    """
    Build the image grid for one block.

    Returns EmptyResult without touching the network when no access token is
    configured. Otherwise the result is never empty: the built-in fixture is
    the last source in the default chain.
    """
    try:
        config = resolve_block_config(stored_settings, environ=environ)
    except ConfigError as e:
        if logger is not None:
            logger.error("block_not_configured", message=str(e))
        return EmptyResult()

    eps = endpoints or EndpointsConfig()

    with ExitStack() as stack:
        if sources is None:
            if client is None and not offline:
                client = stack.enter_context(
                    httpx.Client(timeout=httpx.Timeout(eps.timeout_seconds))
                )
            sources = default_sources(client, eps, logger=logger, offline=offline)  # type: ignore[arg-type]

        feed = fetch_feed(config, sources, logger=logger)

    posts = normalize_posts(
        feed.items,
        config,
        permalink_base=eps.permalink_base,
        logger=logger,
    )

    if logger is not None:
        logger.info(
            "block_rendered",
            source=feed.source,
            raw_items=len(feed.items),
            posts=len(posts),
        )

    return RenderResult(posts=posts, cache=cache_directive(config), source=feed.source)
