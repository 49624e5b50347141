from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

import yaml
from pydantic import ValidationError

from .config_schema import AppConfig, BlockSettings, ImageVariant
from .errors import ConfigError


@dataclass(frozen=True)
class BlockConfig:
    """Validated parameters for a single render. Never mutated during a render."""

    block_id: str
    credential: str
    item_count: int
    image_variant: ImageVariant
    width: int
    height: int
    cache_lifetime_minutes: int


def load_config(path: str | Path) -> AppConfig:
    """
    Load a YAML settings file and validate it into a typed AppConfig.

    Raises ConfigError with a readable validation message on failure.
    """
    p = Path(path)

    if not p.exists():
        raise ConfigError(f"Config file not found: {p}")

    try:
        raw_text = p.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Failed to read config file: {p}") from e

    try:
        data = yaml.safe_load(raw_text)
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse YAML in {p}: {e}") from e

    if data is None:
        data = {}

    if not isinstance(data, dict):
        raise ConfigError(f"Top-level YAML in {p} must be a mapping/object")

    try:
        return AppConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(_format_pydantic_errors(e, p)) from e


def settings_from_mapping(stored: Mapping[str, Any]) -> BlockSettings:
    """
    Build BlockSettings from loosely stored values.

    Unknown keys are ignored; missing, null or invalid values fall back to defaults.
    """
    known = BlockSettings.model_fields
    data: dict[str, Any] = {
        key: value
        for key, value in stored.items()
        if key in known and value is not None
    }

    # Each pass drops at least one offending key, so this terminates.
    while True:
        try:
            return BlockSettings.model_validate(data)
        except ValidationError as e:
            bad = {
                str(item["loc"][0])
                for item in e.errors()
                if item.get("loc")
            }
            bad &= data.keys()
            if not bad:
                raise ConfigError(_format_pydantic_errors(e, "block settings")) from e
            for key in bad:
                del data[key]


def resolve_block_config(
    stored: Mapping[str, Any] | BlockSettings,
    *,
    environ: Mapping[str, str] | None = None,
) -> BlockConfig:
    """
    Resolve stored settings into a BlockConfig.

    Raises ConfigError when no access token is available; callers render
    nothing in that case.
    """
    settings = stored if isinstance(stored, BlockSettings) else settings_from_mapping(stored)

    credential = settings.access_token
    if not credential and settings.access_token_env:
        env = os.environ if environ is None else environ
        credential = (env.get(settings.access_token_env) or "").strip()

    if not credential:
        raise ConfigError(f"Block {settings.id} has no access token configured")

    return BlockConfig(
        block_id=settings.id,
        credential=credential,
        item_count=settings.count,
        image_variant=settings.img_resolution,
        width=settings.width,
        height=settings.height,
        cache_lifetime_minutes=settings.cache_time_minutes,
    )


def _format_pydantic_errors(err: ValidationError, path: Path | str) -> str:
    lines: list[str] = [f"Invalid configuration in {path}:"]
    for item in err.errors():
        loc = ".".join(str(part) for part in item.get("loc", [])) or "<root>"
        msg = item.get("msg", "invalid value")
        lines.append(f"- {loc}: {msg}")
    return "\n".join(lines)
