"""
Content hashing for cache keys.

Values are serialised to canonical JSON (object keys sorted at every depth,
compact separators) before hashing, so structurally equal inputs hash the
same regardless of key order, across process restarts.
"""

import hashlib
import json
from enum import Enum
from typing import Any

from pydantic import BaseModel

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def _normalize(value: Any) -> Any:
    """Reduce a value to plain JSON types with string keys."""
    if isinstance(value, BaseModel):
        return _normalize(value.model_dump(mode="json"))
    if isinstance(value, Enum):
        return _normalize(value.value)
    if isinstance(value, dict):
        return {str(k): _normalize(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_normalize(v) for v in value]
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return str(value)


def canonical_json(value: Any) -> str:
    return json.dumps(
        _normalize(value),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )


def to_base36(number: int) -> str:
    if number == 0:
        return "0"
    digits = []
    while number:
        number, rem = divmod(number, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def hash_object(value: Any) -> str:
    """
    Hash any JSON-serialisable value to a compact base36 string.

    Uses a 64-bit BLAKE2b digest. This is a cache key, not a security
    boundary: a collision only yields a wrong cache hit.
    """
    digest = hashlib.blake2b(canonical_json(value).encode("utf-8"), digest_size=8).digest()
    return to_base36(int.from_bytes(digest, "big"))
