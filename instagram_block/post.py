from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

# Raw post in the feed API shape; the scrape source and the fixture emit the same shape.
RawPost = Mapping[str, Any]


@dataclass(frozen=True)
class DisplayPost:
    """A single grid tile, ready for a template."""

    id: str
    permalink: str
    image_url: str
    caption_text: str = ""
    width: int = 150
    height: int = 150


@dataclass(frozen=True)
class CacheDirective:
    """How an external cache should key and expire a render."""

    key_parts: Sequence[str]
    vary_contexts: frozenset[str] = frozenset()
    max_age_seconds: int = 0

    def cache_key(self) -> str:
        """Stable SHA-256 of key parts and contexts; key parts may hold an access token."""
        payload = json.dumps(
            [list(self.key_parts), sorted(self.vary_contexts)],
            ensure_ascii=False,
            separators=(",", ":"),
        ).encode("utf-8")
        return hashlib.sha256(payload).hexdigest()


@dataclass(frozen=True)
class RenderResult:
    posts: Sequence[DisplayPost]
    cache: CacheDirective
    source: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "posts": [
                {
                    "id": p.id,
                    "permalink": p.permalink,
                    "image_url": p.image_url,
                    "caption_text": p.caption_text,
                    "width": p.width,
                    "height": p.height,
                }
                for p in self.posts
            ],
            "cache": {
                "key": self.cache.cache_key(),
                "vary_contexts": sorted(self.cache.vary_contexts),
                "max_age_seconds": self.cache.max_age_seconds,
            },
        }


@dataclass(frozen=True)
class EmptyResult:
    """Returned when the block is not configured; renders nothing."""

    posts: Sequence[DisplayPost] = field(default=())

    def to_dict(self) -> dict[str, Any]:
        return {"posts": [], "empty": True}


def render_result_from_dict(data: Mapping[str, Any], *, cache: CacheDirective) -> RenderResult:
    """
    Rebuild a RenderResult from `RenderResult.to_dict()` output.

    The serialized form only carries the hashed key, so the directive comes
    from the caller. Raises ValueError when the stored key does not match it.
    """
    if data["cache"]["key"] != cache.cache_key():
        raise ValueError("Serialized render belongs to a different cache key")
    return RenderResult(
        posts=tuple(
            DisplayPost(
                id=str(p["id"]),
                permalink=str(p["permalink"]),
                image_url=str(p["image_url"]),
                caption_text=str(p.get("caption_text") or ""),
                width=int(p["width"]),
                height=int(p["height"]),
            )
            for p in data.get("posts", [])
        ),
        cache=cache,
        source=str(data.get("source") or ""),
    )
