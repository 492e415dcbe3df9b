"""Error taxonomy raised by the dungeon engine and its store.

Every engine error carries a stable ``code`` so callers can report it without
string matching. ``to_dict`` mirrors the ``{"error": <code>, ...}`` response
shape used by the service layer.

Configuration and catalog problems are load-time defects and surface as
``ValueError`` subclasses instead.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class DungeonError(Exception):
    code = "DUNGEON_ERROR"

    def __init__(self, message: str, code: Optional[str] = None, **details: Any):
        super().__init__(message)
        if code:
            self.code = code
        self.message = message
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"error": self.code, "message": self.message}
        if self.details:
            payload["details"] = dict(self.details)
        return payload


class InsufficientActionPoints(DungeonError):
    """Raised when a state does not hold enough AP for the requested action."""

    code = "INSUFFICIENT_AP"

    def __init__(self, available: int, required: int):
        super().__init__(
            f"not enough action points (have {available}, need {required})",
            available=available,
            required=required,
        )
        self.available = available
        self.required = required


class StateConflict(DungeonError):
    """Raised when a conditional commit finds the stored version has moved.

    The caller should reload the state and retry; the retry budget belongs to
    the caller.
    """

    code = "STATE_CONFLICT"

    def __init__(self, user_id: str, expected_version: int):
        super().__init__(
            f"dungeon state for {user_id} is no longer at version {expected_version}",
            user_id=user_id,
            expected_version=expected_version,
        )
        self.user_id = user_id
        self.expected_version = expected_version


class InvalidSelection(DungeonError):
    code = "LEVEL_UP_INVALID_SELECTION"


class RollMismatch(DungeonError):
    """The presented level-up roll index is stale."""

    code = "LEVEL_UP_ROLL_MISMATCH"

    def __init__(self, presented: int, current: int):
        super().__init__(
            "level-up options are out of date; fetch the current selection",
            presented=presented,
            current=current,
        )
        self.presented = presented
        self.current = current


class ConfigError(ValueError):
    pass


class CatalogError(ValueError):
    pass


class InvalidCursor(ValueError):
    pass


__all__ = [
    "DungeonError",
    "InsufficientActionPoints",
    "StateConflict",
    "InvalidSelection",
    "RollMismatch",
    "ConfigError",
    "CatalogError",
    "InvalidCursor",
]
