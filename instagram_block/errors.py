from __future__ import annotations


class ConfigError(RuntimeError):
    """Raised when block settings are missing or invalid."""


class TransportError(RuntimeError):
    """Raised when a feed request fails, times out, or returns a non-2xx status."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ParseError(RuntimeError):
    """Raised when a response body or embedded page data cannot be parsed."""


class MissingVariantError(LookupError):
    """Raised when a post has no image for the configured variant."""

    def __init__(self, post_id: str, variant: str) -> None:
        super().__init__(f"Post {post_id} has no {variant!r} image")
        self.post_id = post_id
        self.variant = variant


class StorageError(RuntimeError):
    """Raised when reading or writing the render cache in SQLite fails."""
