"""
Canonical hashing of desired-state values.

The spec-change detector compares a digest of the current desired state
with the digest stored after the previous pass.  Two semantically equal
specs must hash identically no matter how they were built, so values are
first rendered to a canonical JSON form.

Manifesto:
    - **Deterministic:** Sorted keys, compact separators, UTF-8
    - **Model aware:** pydantic models dump by alias, dataclasses via asdict
    - **Full digest:** sha256 hex, never truncated, since the value is
      persisted and compared across operator restarts

Examples:
    >>> compute_digest({"b": 1, "a": 2}) == compute_digest({"a": 2, "b": 1})
    True
    >>> len(compute_digest("x"))
    64

Tags:
    hashing, canonical-json, change-detection, operator-core
"""

from __future__ import annotations

import dataclasses
import hashlib
import json
from datetime import date, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel


def _to_jsonable(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True)
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=repr)
    raise TypeError(f"Object of type {type(value).__name__} is not hashable as a spec")


def canonical_json(value: Any) -> str:
    """Render ``value`` as canonical JSON text."""
    return json.dumps(
        value,
        default=_to_jsonable,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )


def compute_digest(value: Any) -> str:
    """Full sha256 hex digest of the canonical form of ``value``."""
    return hashlib.sha256(canonical_json(value).encode("utf-8")).hexdigest()


__all__ = ["canonical_json", "compute_digest"]
