from __future__ import annotations

from .block import render
from .config import BlockConfig, load_config, resolve_block_config, settings_from_mapping
from .config_schema import AppConfig, BlockSettings, EndpointsConfig
from .errors import ConfigError, MissingVariantError, ParseError, StorageError, TransportError
from .post import CacheDirective, DisplayPost, EmptyResult, RenderResult

__all__ = [
    "AppConfig",
    "BlockConfig",
    "BlockSettings",
    "CacheDirective",
    "ConfigError",
    "DisplayPost",
    "EmptyResult",
    "EndpointsConfig",
    "MissingVariantError",
    "ParseError",
    "RenderResult",
    "StorageError",
    "TransportError",
    "load_config",
    "render",
    "resolve_block_config",
    "settings_from_mapping",
]
