from __future__ import annotations

import json
from typing import Any, Mapping, Sequence

from .config_schema import VARIANT_IMAGE_KEYS
from .errors import ParseError

_TIMELINE_EDGES_PATH: tuple[str | int, ...] = (
    "entry_data",
    "ProfilePage",
    0,
    "graphql",
    "user",
    "edge_owner_to_timeline_media",
    "edges",
)
_CAPTION_TEXT_PATH: tuple[str | int, ...] = (
    "edge_media_to_caption",
    "edges",
    0,
    "node",
    "text",
)


def _get_path(obj: Any, path: Sequence[str | int]) -> Any:
    cur = obj
    for part in path:
        if isinstance(part, int):
            if not isinstance(cur, list) or part >= len(cur):
                return None
            cur = cur[part]
        else:
            if not isinstance(cur, Mapping):
                return None
            cur = cur.get(part)
        if cur is None:
            return None
    return cur


def _coerce_str(value: Any) -> str | None:
    if isinstance(value, str):
        s = value.strip()
        return s if s else None
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return None


def extract_shared_data(html: str, *, marker: str, terminator: str) -> dict[str, Any]:
    """
    Pull the JSON blob a profile page embeds between `marker` and `terminator`.

    Raises ParseError when the marker is absent or the blob is not a JSON object.
    """
    _, found, rest = (html or "").partition(marker)
    if not found:
        raise ParseError("Profile page does not contain the shared data marker")

    blob, found_end, _ = rest.partition(terminator)
    if not found_end:
        raise ParseError("Profile page shared data is not terminated")

    try:
        data = json.loads(blob)
    except ValueError as e:
        raise ParseError(f"Profile page shared data is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise ParseError("Profile page shared data must be a JSON object")
    return data


def timeline_media_nodes(shared_data: Mapping[str, Any], *, limit: int) -> list[Any]:
    """
    Return the media node of each of the first `limit` timeline edges.

    Entries stay aligned with the edges: an edge without a node yields None.
    """
    edges = _get_path(shared_data, _TIMELINE_EDGES_PATH)
    if not isinstance(edges, list):
        return []

    return [
        edge.get("node") if isinstance(edge, Mapping) else None
        for edge in edges[: max(0, int(limit))]
    ]


def raw_post_from_media_node(
    node: Any,
    *,
    variant: str,
    permalink_base: str,
) -> dict[str, Any] | None:
    """
    Convert a scraped media node into the feed API post shape.

    Returns None when the node is not an object or lacks an id, shortcode or
    display url.
    """
    if not isinstance(node, Mapping):
        return None

    post_id = _coerce_str(node.get("id"))
    shortcode = _coerce_str(node.get("shortcode"))
    display_url = _coerce_str(node.get("display_url"))
    if not post_id or not shortcode or not display_url:
        return None

    images: dict[str, dict[str, str]] = {}
    thumbnail_src = _coerce_str(node.get("thumbnail_src"))
    if thumbnail_src:
        images["thumbnail"] = {"url": thumbnail_src}
    images[VARIANT_IMAGE_KEYS[variant]] = {"url": display_url}

    caption = _get_path(node, _CAPTION_TEXT_PATH)

    return {
        "id": post_id,
        "shortcode": shortcode,
        "link": permalink_base + shortcode,
        "images": images,
        "caption": {"text": caption if isinstance(caption, str) else ""},
    }
