"""
Execution context: the shared state of one reconciliation pass.

Steps are authored independently and still need to hand values to each
other: the PVC step publishes the claim names the recycler step consumes,
the controller publishes the cluster client and secret-store helper every
step reads.  ``ExecutionContext`` is that shared bag, keyed by typed
``ContextKey`` tokens instead of bare strings.

Manifesto:
    - **Typed tokens:** ``ctx.require(CLIENT)`` is typed as the client, not
      ``Any``
    - **Absence is not an error:** ``get`` returns ``None`` (and logs);
      ``require`` is for callers that cannot continue without the value
    - **One pass, one context:** Created by the controller at the start of a
      pass and dropped at the end.  Never shared between passes and never
      persisted.
    - **No deletion:** Keys live for the whole pass

Architecture:
    ::

        ┌──────────────────────────────────────────────────────────┐
        │                    ExecutionContext                       │
        ├──────────────────────────────────────────────────────────┤
        │  _values: dict[ContextKey, Any]                           │
        │  _changes: key -> (digest, changed)  spec-change memo     │
        ├──────────────────────────────────────────────────────────┤
        │  set(key, value)        overwrite unconditionally         │
        │  get(key) -> T | None   debug log when absent             │
        │  require(key) -> T      MissingContextValueError          │
        │  ensure_present(*keys)  Result[None]                      │
        └──────────────────────────────────────────────────────────┘

Examples:
    >>> PVC_NAMES: ContextKey[list[str]] = ContextKey("pvcNames")
    >>> ctx = ExecutionContext()
    >>> ctx.get(PVC_NAMES) is None
    True
    >>> ctx.set(PVC_NAMES, ["data-0"])
    >>> ctx.require(PVC_NAMES)
    ['data-0']

Guardrails:
    ❌ DON'T: Assume exclusive access to a key you did not introduce
    ✅ DO: Define step-owned keys next to the step that writes them

Tags:
    execution-context, shared-state, typed-keys, operator-core

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, Mapping, TypeVar, overload

from nosqldb_operator.core.errors import MissingContextValueError
from nosqldb_operator.core.logging import get_logger
from nosqldb_operator.core.result import Err, Ok, Result

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class ContextKey(Generic[T]):
    """Typed token naming one value in the execution context.

    Keys compare by name, so a step may rebuild ``ContextKey("pvcNames")``
    from configuration and still address the same slot.
    """

    name: str
    description: str = field(default="", compare=False)

    def __str__(self) -> str:
        return self.name


KeyLike = ContextKey[Any] | str


def _as_key(key: KeyLike) -> ContextKey[Any]:
    return key if isinstance(key, ContextKey) else ContextKey(key)


class ExecutionContext:
    """Mutable keyed state shared by every step of one pass."""

    def __init__(self, initial: Mapping[KeyLike, Any] | None = None):
        self._values: dict[ContextKey[Any], Any] = {}
        self._changes: dict[str, tuple[str, bool]] = {}
        for key, value in (initial or {}).items():
            self.set(key, value)

    # ------------------------------------------------------------------
    # Values
    # ------------------------------------------------------------------

    def set(self, key: ContextKey[T] | str, value: T) -> None:
        self._values[_as_key(key)] = value

    @overload
    def get(self, key: ContextKey[T]) -> T | None: ...

    @overload
    def get(self, key: str) -> Any: ...

    def get(self, key: KeyLike) -> Any:
        """Stored value, or ``None`` when the key was never set."""
        resolved = _as_key(key)
        value = self._values.get(resolved)
        if value is None:
            logger.debug("context.missing", key=resolved.name)
        return value

    def has(self, key: KeyLike) -> bool:
        return self._values.get(_as_key(key)) is not None

    def require(self, key: ContextKey[T] | str) -> T:
        """Stored value; raises ``MissingContextValueError`` when absent."""
        resolved = _as_key(key)
        value = self._values.get(resolved)
        if value is None:
            raise MissingContextValueError(resolved.name)
        return value

    def ensure_present(self, *keys: KeyLike) -> Result[None]:
        """``Err`` naming the first absent key, ``Ok`` when all are set."""
        for key in keys:
            resolved = _as_key(key)
            if self._values.get(resolved) is None:
                return Err(MissingContextValueError(resolved.name))
        return Ok(None)

    def keys(self) -> list[str]:
        return [key.name for key in self._values]

    # ------------------------------------------------------------------
    # Spec-change memo (valid for this pass only)
    # ------------------------------------------------------------------

    def remember_change(self, key: str, digest: str, changed: bool) -> None:
        self._changes[key] = (digest, changed)

    def recalled_change(self, key: str, digest: str) -> bool | None:
        """Answer already given this pass for ``key`` at this ``digest``."""
        remembered = self._changes.get(key)
        if remembered is None or remembered[0] != digest:
            return None
        return remembered[1]

    def forget_changes(self) -> None:
        self._changes.clear()

    def __contains__(self, key: object) -> bool:
        if isinstance(key, (ContextKey, str)):
            return self.has(key)
        return False

    def __repr__(self) -> str:
        return f"ExecutionContext(keys={self.keys()!r})"


__all__ = ["ContextKey", "ExecutionContext", "KeyLike"]
