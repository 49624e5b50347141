from __future__ import annotations

import argparse
import json
import sys
from contextlib import ExitStack
from pathlib import Path
from typing import Sequence

from .block import render
from .config import load_config
from .errors import ConfigError, StorageError
from .render_cache import SQLiteRenderCache, render_cached
from .run_log import RunLogger


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="instagram_block")

    subparsers = parser.add_subparsers(dest="command", required=True)

    rend = subparsers.add_parser(
        "render",
        help="Fetch recent posts and print the block's grid as JSON.",
    )
    rend.add_argument(
        "--config",
        required=True,
        help="Path to YAML settings file.",
    )
    rend.add_argument(
        "--offline",
        action="store_true",
        help="Skip network sources and render the built-in posts.",
    )
    rend.add_argument(
        "--cache-db",
        default=None,
        help="SQLite file used to memoize whole renders.",
    )
    rend.add_argument(
        "--log",
        default=None,
        help="Write JSONL diagnostics to this file instead of stderr.",
    )
    rend.set_defaults(_handler=_cmd_render)

    return parser


def _eprint(message: str) -> None:
    print(message, file=sys.stderr)


def _cmd_render(args: argparse.Namespace) -> int:
    cfg = load_config(args.config)

    with ExitStack() as stack:
        if args.log:
            log = stack.enter_context(RunLogger.open(Path(args.log), block_id=cfg.block.id))
        else:
            log = stack.enter_context(RunLogger(stream=sys.stderr, block_id=cfg.block.id))

        render_kwargs = {
            "endpoints": cfg.endpoints,
            "logger": log,
            "offline": bool(args.offline),
        }

        if args.cache_db:
            cache = stack.enter_context(SQLiteRenderCache.open(Path(args.cache_db)))
            result = render_cached(cfg.block, cache, **render_kwargs)
        else:
            result = render(cfg.block, **render_kwargs)

    print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    try:
        handler = getattr(args, "_handler")
        return int(handler(args))
    except ConfigError as e:
        _eprint(str(e))
        return 2
    except StorageError as e:
        _eprint(str(e))
        return 3
    except KeyboardInterrupt:
        _eprint("Interrupted")
        return 130
    except Exception as e:
        _eprint(f"Unexpected error: {e}")
        return 1
