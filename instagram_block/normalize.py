from __future__ import annotations

from typing import Any, Iterable, Mapping

from .config import BlockConfig
from .config_schema import VARIANT_IMAGE_KEYS
from .errors import MissingVariantError, ParseError
from .post import CacheDirective, DisplayPost, RawPost
from .run_log import BlockLogger

CACHE_KEY_PREFIX: tuple[str, ...] = ("block", "instagram_block")
CACHE_VARY_CONTEXTS = frozenset({"languages:language_content"})


def _coerce_str(value: Any) -> str | None:
    if isinstance(value, str):
        s = value.strip()
        return s if s else None
    return None


def _coerce_id(value: Any) -> str | None:
    if isinstance(value, str):
        v = value.strip()
        return v if v else None
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return None


def image_url_for_variant(images: Any, variant: str) -> str | None:
    """Look up the image url for a variant; None when the post has no such image."""
    if not isinstance(images, Mapping):
        return None

    key = VARIANT_IMAGE_KEYS.get(variant, variant)
    entry = images.get(key)
    if isinstance(entry, Mapping):
        return _coerce_str(entry.get("url"))
    return _coerce_str(entry)


def caption_text(raw: RawPost) -> str:
    caption = raw.get("caption")
    if isinstance(caption, Mapping):
        text = caption.get("text")
        return text if isinstance(text, str) else ""
    if isinstance(caption, str):
        return caption
    return ""


def display_post_from_raw(
    raw: RawPost,
    config: BlockConfig,
    *,
    permalink_base: str,
) -> DisplayPost:
    """
    Map a raw post from any source into a DisplayPost.

    Raises MissingVariantError when the configured image variant is absent and
    ParseError when the post has no usable id or link.
    """
    post_id = _coerce_id(raw.get("id"))
    if post_id is None:
        raise ParseError("Post has no id")

    permalink = _coerce_str(raw.get("link"))
    if permalink is None:
        shortcode = _coerce_str(raw.get("shortcode")) or _coerce_str(raw.get("code"))
        if shortcode is None:
            raise ParseError(f"Post {post_id} has neither a link nor a shortcode")
        permalink = permalink_base + shortcode

    image_url = image_url_for_variant(raw.get("images"), config.image_variant)
    if image_url is None:
        raise MissingVariantError(post_id, config.image_variant)

    return DisplayPost(
        id=post_id,
        permalink=permalink,
        image_url=image_url,
        caption_text=caption_text(raw),
        width=config.width,
        height=config.height,
    )


def normalize_posts(
    raws: Iterable[RawPost],
    config: BlockConfig,
    *,
    permalink_base: str,
    logger: BlockLogger | None = None,
) -> tuple[DisplayPost, ...]:
    """
    Normalize a batch, preserving source order.

    Posts that cannot be displayed are skipped, as are repeated ids.
    """
    out: list[DisplayPost] = []
    seen: set[str] = set()

    for index, raw in enumerate(raws):
        try:
            if not isinstance(raw, Mapping):
                raise ParseError(f"Post must be a mapping, got {type(raw).__name__}")
            post = display_post_from_raw(raw, config, permalink_base=permalink_base)
        except (MissingVariantError, ParseError) as e:
            if logger is not None:
                logger.warning(
                    "post_skipped",
                    index=index,
                    error_type=type(e).__name__,
                    message=str(e),
                )
            continue

        if post.id in seen:
            continue
        seen.add(post.id)
        out.append(post)

    return tuple(out)


def cache_directive(config: BlockConfig) -> CacheDirective:
    return CacheDirective(
        key_parts=(*CACHE_KEY_PREFIX, config.block_id, config.credential),
        vary_contexts=CACHE_VARY_CONTEXTS,
        max_age_seconds=int(config.cache_lifetime_minutes) * 60,
    )
