from __future__ import annotations

import json
import traceback
import uuid
from datetime import datetime, timezone
from pathlib import Path
from threading import Lock
from typing import Any, Protocol, TextIO

_MESSAGE_LIMIT = 2000
_TRACEBACK_LIMIT = 12000
_SECRET_KEYS = frozenset({"credential", "access_token"})


class BlockLogger(Protocol):
    """Logging collaborator used by the feed pipeline. Fire-and-forget."""

    def info(self, event: str, *, url: str | None = None, **data: Any) -> None: ...

    def warning(self, event: str, *, url: str | None = None, **data: Any) -> None: ...

    def error(self, event: str, *, url: str | None = None, **data: Any) -> None: ...

    def exception(
        self,
        event: str,
        *,
        exc: BaseException,
        url: str | None = None,
        **data: Any,
    ) -> None: ...


def _clip(text: Any, limit: int) -> str:
    s = str(text or "")
    return s if len(s) <= limit else s[: limit - 1] + "…"


def _mask_token(value: str) -> str:
    return value[:4] + "…" if len(value) > 8 else "…"


def _mask_secrets(data: dict[str, Any]) -> dict[str, Any]:
    return {
        key: _mask_token(value)
        if key in _SECRET_KEYS and isinstance(value, str) and value
        else value
        for key, value in data.items()
    }


class RunLogger:
    """
    Tiny JSONL logger for block renders.

    Each log line is a single JSON object. File targets are appended to, so several
    renders can share one log; open streams are written but never closed.
    Access tokens passed as `credential` or `access_token` are masked.
    """

    def __init__(
        self,
        path: str | Path | None = None,
        *,
        stream: TextIO | None = None,
        block_id: str | None = None,
        session_id: str | None = None,
    ) -> None:
        if path is None and stream is None:
            raise ValueError("either path or stream is required")

        self._path = Path(path) if path is not None else None
        self._stream = stream
        self._context: dict[str, str] = {
            "session_id": (session_id or "").strip() or uuid.uuid4().hex,
        }
        if (block_id or "").strip():
            self._context["block_id"] = str(block_id).strip()
        self._lock = Lock()

    @classmethod
    def open(
        cls,
        path: str | Path,
        *,
        block_id: str | None = None,
        session_id: str | None = None,
    ) -> "RunLogger":
        logger = cls(path, block_id=block_id, session_id=session_id)
        with logger._lock:
            logger._target()
        return logger

    def close(self) -> None:
        with self._lock:
            if self._stream is None:
                return
            self._stream.flush()
            if self._path is not None:
                self._stream.close()
                self._stream = None

    def __enter__(self) -> "RunLogger":
        with self._lock:
            self._target()
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.close()

    def info(self, event: str, *, url: str | None = None, **data: Any) -> None:
        self.log("INFO", event, url=url, **data)

    def warning(self, event: str, *, url: str | None = None, **data: Any) -> None:
        self.log("WARN", event, url=url, **data)

    def error(self, event: str, *, url: str | None = None, **data: Any) -> None:
        self.log("ERROR", event, url=url, **data)

    def exception(
        self,
        event: str,
        *,
        exc: BaseException,
        url: str | None = None,
        **data: Any,
    ) -> None:
        tb = traceback.format_exception(type(exc), exc, exc.__traceback__)
        data["error"] = {
            "type": type(exc).__name__,
            "message": _clip(exc, _MESSAGE_LIMIT),
            "traceback": _clip("".join(tb), _TRACEBACK_LIMIT),
        }
        self.log("ERROR", event, url=url, **data)

    def log(self, level: str, event: str, *, url: str | None = None, **data: Any) -> None:
        record: dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": (level or "").strip().upper() or "INFO",
            "event": (event or "").strip() or "event",
            **self._context,
        }
        if url and url.strip():
            record["url"] = url.strip()
        if data:
            record["data"] = _mask_secrets(data)

        line = json.dumps(
            record,
            ensure_ascii=False,
            sort_keys=True,
            separators=(",", ":"),
            default=str,
        )
        with self._lock:
            fp = self._target()
            fp.write(line + "\n")
            fp.flush()

    def _target(self) -> TextIO:
        # Caller holds the lock. A closed file logger reopens in append mode.
        if self._stream is None:
            assert self._path is not None
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._stream = self._path.open("a", encoding="utf-8", newline="\n")
        return self._stream
