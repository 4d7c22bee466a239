"""
Result envelope for step outcomes.

Every step in a reconciliation tree reports its outcome as a value instead
of raising: ``Ok(None)`` when it succeeded, ``Err(error)`` when it failed,
``Ok(True)`` / ``Ok(False)`` for a skip-condition.  Failures flow back up
the step tree as data, and only the reconciliation controller has a
catch-all boundary for the exceptions nobody anticipated.

Manifesto:
    - **Explicit over implicit:** A step that can fail says so in its
      return type
    - **Short-circuit friendly:** Sequences stop at the first ``Err``
    - **Bridge to exception code:** ``try_result`` wraps Kubernetes and HTTP
      calls that raise

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────┐
        │                     Result[T]                            │
        ├──────────────────┬──────────────────┬───────────────────┤
        │     Ok[T]        │     Err[T]       │   Utilities       │
        │ • value: T       │ • error: Exc     │ • try_result()    │
        │ • map()          │ • map_err()      │                   │
        │ • flat_map()     │ • unwrap_or()    │                   │
        │ • unwrap()       │ • unwrap() raises│                   │
        └──────────────────┴──────────────────┴───────────────────┘

Examples:
    >>> from nosqldb_operator.core.result import Ok, Err
    >>> Ok(True).unwrap()
    True
    >>> Err(ValueError("bad")).unwrap_or(False)
    False
    >>> match Ok(None):
    ...     case Ok():
    ...         print("step done")
    ...     case Err(error):
    ...         print(error)
    step done

Guardrails:
    ❌ DON'T: Call unwrap() without checking is_ok() first
    ✅ DO: Use pattern matching or unwrap_or()

Tags:
    result-pattern, error-handling, step-outcome, operator-core

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Generic, TypeVar

T = TypeVar("T")
U = TypeVar("U")


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """Successful result containing a value."""

    value: T = None  # type: ignore[assignment]

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False

    def unwrap(self) -> T:
        """Get the value. Safe for Ok."""
        return self.value

    def unwrap_or(self, default: T) -> T:
        return self.value

    def map(self, f: Callable[[T], U]) -> Result[U]:
        """Transform the value if Ok."""
        return Ok(f(self.value))

    def flat_map(self, f: Callable[[T], Result[U]]) -> Result[U]:
        """Chain to another Result-returning function."""
        return f(self.value)

    def map_err(self, f: Callable[[Exception], Exception]) -> Result[T]:
        """Transform error if Err (no-op for Ok)."""
        return self

    def __repr__(self) -> str:
        return f"Ok({self.value!r})"


@dataclass(frozen=True, slots=True)
class Err(Generic[T]):
    """
    Failed result containing an error.

    ``map`` and ``flat_map`` pass the error through unchanged, so a chain
    of step outcomes stops at the first failure.
    """

    error: Exception

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True

    def unwrap(self) -> T:
        """Raise the error. Use only when you're sure it's Ok."""
        raise self.error

    def unwrap_or(self, default: T) -> T:
        return default

    def map(self, f: Callable[[T], U]) -> Result[U]:
        """No-op for Err."""
        return Err(self.error)

    def flat_map(self, f: Callable[[T], Result[U]]) -> Result[U]:
        """No-op for Err."""
        return Err(self.error)

    def map_err(self, f: Callable[[Exception], Exception]) -> Result[T]:
        """Transform the error."""
        return Err(f(self.error))

    def __repr__(self) -> str:
        return f"Err({self.error!r})"


Result = Ok[T] | Err[T]


# =============================================================================
# CONSTRUCTORS
# =============================================================================


def try_result(f: Callable[[], T]) -> Result[T]:
    """
    Execute a zero-argument callable and wrap its outcome.

    The bridge between exception-raising client code and step results:
    ``try_result(lambda: client.create(manifest))``.
    """
    try:
        return Ok(f())
    except Exception as e:
        return Err(e)


__all__ = [
    "Ok",
    "Err",
    "Result",
    "try_result",
]
