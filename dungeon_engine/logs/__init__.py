# Log payload package
from .deltas import DELTA_TYPES, LogDelta  # noqa: F401 re-export
from .encoder import decode_delta, decode_entry, decode_extra, describe, encode_entry  # noqa: F401
from .extras import EXTRA_TYPES, LogExtra  # noqa: F401 re-export

__all__ = [
    "DELTA_TYPES",
    "EXTRA_TYPES",
    "LogDelta",
    "LogExtra",
    "encode_entry",
    "decode_delta",
    "decode_extra",
    "decode_entry",
    "describe",
]
