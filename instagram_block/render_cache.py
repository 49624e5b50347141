from __future__ import annotations

import json
import sqlite3
import time
from pathlib import Path
from typing import Any, Mapping

from .block import render
from .cache_schema import initialize_sqlite
from .config import resolve_block_config
from .config_schema import BlockSettings
from .errors import ConfigError, StorageError
from .normalize import cache_directive
from .post import CacheDirective, EmptyResult, RenderResult, render_result_from_dict


def _json_dumps(value: Any) -> str:
    return json.dumps(
        value,
        ensure_ascii=False,
        sort_keys=True,
        separators=(",", ":"),
        default=str,
    )


class SQLiteRenderCache:
    """
    Whole-render cache keyed by a CacheDirective.

    Lives outside the feed pipeline: `render` never reads it. A directive with
    a max age of zero is never stored.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self._conn.row_factory = sqlite3.Row

    @classmethod
    def open(cls, path: str | Path) -> "SQLiteRenderCache":
        db_path = str(path)
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

        try:
            conn = sqlite3.connect(db_path)
        except sqlite3.DatabaseError as e:
            raise StorageError(f"Failed to open sqlite database: {db_path}: {e}") from e

        try:
            initialize_sqlite(conn)
        except Exception as e:
            conn.close()
            raise StorageError(f"Failed to initialize render cache schema: {e}") from e

        return cls(conn)

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> "SQLiteRenderCache":
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.close()

    def get(self, directive: CacheDirective, *, now: float | None = None) -> RenderResult | None:
        ts = time.time() if now is None else float(now)

        try:
            row = self._conn.execute(
                "SELECT payload_json, expires_at FROM render_cache WHERE cache_key = ?",
                (directive.cache_key(),),
            ).fetchone()
        except sqlite3.DatabaseError as e:
            raise StorageError(f"Failed to read render cache: {e}") from e

        if row is None or float(row["expires_at"]) <= ts:
            return None

        try:
            payload = json.loads(row["payload_json"])
            return render_result_from_dict(payload, cache=directive)
        except (ValueError, KeyError, TypeError):
            # Unreadable entries count as misses and get overwritten on the next put.
            return None

    def put(
        self,
        directive: CacheDirective,
        result: RenderResult,
        *,
        now: float | None = None,
    ) -> bool:
        if directive.max_age_seconds <= 0:
            return False

        ts = time.time() if now is None else float(now)
        block_id = directive.key_parts[2] if len(directive.key_parts) > 2 else None

        try:
            with self._conn:
                self._conn.execute(
                    """
                    INSERT INTO render_cache(cache_key, block_id, payload_json, stored_at, expires_at)
                    VALUES (?, ?, ?, ?, ?)
                    ON CONFLICT(cache_key) DO UPDATE SET
                      block_id = excluded.block_id,
                      payload_json = excluded.payload_json,
                      stored_at = excluded.stored_at,
                      expires_at = excluded.expires_at
                    """.strip(),
                    (
                        directive.cache_key(),
                        block_id,
                        _json_dumps(result.to_dict()),
                        ts,
                        ts + directive.max_age_seconds,
                    ),
                )
        except sqlite3.DatabaseError as e:
            raise StorageError(f"Failed to write render cache: {e}") from e
        return True

    def purge_expired(self, *, now: float | None = None) -> int:
        ts = time.time() if now is None else float(now)
        try:
            with self._conn:
                cur = self._conn.execute("DELETE FROM render_cache WHERE expires_at <= ?", (ts,))
        except sqlite3.DatabaseError as e:
            raise StorageError(f"Failed to purge render cache: {e}") from e
        return int(cur.rowcount or 0)

    def entry_count(self) -> int:
        row = self._conn.execute("SELECT COUNT(*) FROM render_cache").fetchone()
        return int(row[0]) if row else 0


def render_cached(
    stored_settings: Mapping[str, Any] | BlockSettings,
    cache: SQLiteRenderCache,
    *,
    now: float | None = None,
    **render_kwargs: Any,
) -> RenderResult | EmptyResult:
    """Serve a render from `cache` when fresh, otherwise render and store it."""
    try:
        config = resolve_block_config(stored_settings, environ=render_kwargs.get("environ"))
    except ConfigError:
        return render(stored_settings, **render_kwargs)

    directive = cache_directive(config)
    hit = cache.get(directive, now=now)
    if hit is not None:
        logger = render_kwargs.get("logger")
        if logger is not None:
            logger.info("render_cache_hit", source=hit.source, posts=len(hit.posts))
        return hit

    result = render(stored_settings, **render_kwargs)
    if isinstance(result, RenderResult):
        cache.put(result.cache, result, now=now)
    return result
