from __future__ import annotations

import re
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

_ENV_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

DEFAULT_CACHE_LIFETIME_MINUTES = 1440

ImageVariant = Literal["thumbnail", "low", "standard"]

# Keys used by the feed API's per-post `images` map.
VARIANT_IMAGE_KEYS: dict[str, str] = {
    "thumbnail": "thumbnail",
    "low": "low_resolution",
    "standard": "standard_resolution",
}

_LEGACY_VARIANT_NAMES = {value: key for key, value in VARIANT_IMAGE_KEYS.items()}


def _validate_env_var_name(value: str) -> str:
    name = (value or "").strip()
    if not _ENV_NAME_RE.fullmatch(name):
        raise ValueError("must be a valid environment variable name")
    return name


PositiveInt = Annotated[int, Field(ge=1)]
NonNegativeInt = Annotated[int, Field(ge=0)]


class BlockSettings(BaseModel):
    """Persisted settings of a single block instance."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    id: str = "instagram_block_block"
    access_token: str = ""
    access_token_env: str | None = None
    count: PositiveInt = 4
    width: PositiveInt = 150
    height: PositiveInt = 150
    img_resolution: ImageVariant = "thumbnail"
    cache_time_minutes: NonNegativeInt = DEFAULT_CACHE_LIFETIME_MINUTES

    @field_validator("access_token", mode="before")
    @classmethod
    def _strip_token(cls, v: Any) -> Any:
        if v is None:
            return ""
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator("access_token_env")
    @classmethod
    def _token_env_must_be_valid(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return _validate_env_var_name(v)

    @field_validator("img_resolution", mode="before")
    @classmethod
    def _accept_legacy_variant_names(cls, v: Any) -> Any:
        if isinstance(v, str):
            name = v.strip().casefold()
            return _LEGACY_VARIANT_NAMES.get(name, name)
        return v


class EndpointsConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    feed_url: str = "https://api.instagram.com/v1/users/self/media/recent/"
    profile_url: str = "https://www.instagram.com/{username}/"
    profile_username: str = "unisgmba"
    permalink_base: str = "https://www.instagram.com/p/"
    timeout_seconds: float = Field(5.0, gt=0.0, le=60.0)
    shared_data_marker: str = "window._sharedData = "
    shared_data_terminator: str = ";</script>"

    @field_validator("profile_url")
    @classmethod
    def _profile_url_needs_placeholder(cls, v: str) -> str:
        if "{username}" not in v:
            raise ValueError("must contain a {username} placeholder")
        return v

    @field_validator("profile_username", "shared_data_marker", "shared_data_terminator")
    @classmethod
    def _must_be_non_empty(cls, v: str) -> str:
        if not (v or "").strip():
            raise ValueError("must be non-empty")
        return v


class AppConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    block: BlockSettings = Field(default_factory=BlockSettings)
    endpoints: EndpointsConfig = Field(default_factory=EndpointsConfig)
