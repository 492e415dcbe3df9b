"""Minimal structured logging helper.

Emits key=value pairs (or one JSON object per line) with a timestamp and
level so batch runs and simulations can be grepped or shipped to a log
collector without further parsing rules.

Usage:
    from dungeon_engine.logging_utils import get_logger
    log = get_logger("dungeon.batch")
    log.info(event="batch_tick", users=12)

    user_log = log.bind(user_id="u-1")
    user_log.warn(event="state_conflict", version=7)

Reserved keys: level, ts, logger.
"""

from __future__ import annotations

import json
import os
import sys
import time
from typing import Any, Dict

LEVELS = {"debug": 10, "info": 20, "warn": 30, "error": 40}


def _current_level() -> int:
    return LEVELS.get(os.getenv("DUNGEON_LOG_LEVEL", "info").lower(), 20)


def _json_mode() -> bool:
    return os.getenv("DUNGEON_LOG_JSON", "0") in ("1", "true", "TRUE", "yes", "on")


def _format(level: str, **fields) -> str:
    if _json_mode():
        rec = {k: v for k, v in fields.items() if v is not None}
        rec["level"] = level
        rec["ts"] = int(time.time())
        return json.dumps(rec, separators=(",", ":"), default=str)
    parts = [f"level={level}", f"ts={int(time.time())}"]
    for k, v in fields.items():
        if v is None:
            continue
        if isinstance(v, (int, float)):
            parts.append(f"{k}={v}")
        else:
            s = str(v).replace(" ", "_")
            parts.append(f"{k}={s}")
    return " ".join(parts)


class _Logger:
    def __init__(self, name: str, context: Dict[str, Any] | None = None):
        self.name = name
        self.context = dict(context or {})

    def bind(self, **fields) -> "_Logger":
        """Return a child logger that prefixes every line with ``fields``."""
        merged = dict(self.context)
        merged.update(fields)
        return _Logger(self.name, merged)

    def _log(self, lvl: str, **fields):
        if LEVELS[lvl] < _current_level():
            return
        record = {"logger": self.name}
        record.update(self.context)
        record.update(fields)
        print(_format(lvl, **record), file=sys.stderr if lvl == "error" else sys.stdout)

    def debug(self, **fields):
        self._log("debug", **fields)

    def info(self, **fields):
        self._log("info", **fields)

    def warn(self, **fields):
        self._log("warn", **fields)

    def error(self, **fields):
        self._log("error", **fields)


_LOGGER_CACHE: Dict[str, _Logger] = {}


def get_logger(name: str) -> _Logger:
    if name not in _LOGGER_CACHE:
        _LOGGER_CACHE[name] = _Logger(name)
    return _LOGGER_CACHE[name]


log = get_logger("dungeon")
