"""
Spec-change detection.

Decides whether a reconciliation pass has anything to do.  The digest of
the desired state is compared with the digest stored by the previous pass
in a small durable record (a ConfigMap named per resource).  When they
differ the record is advanced to the new digest as part of the same check
and the caller is told "changed".

Manifesto:
    - **Compare and advance:** There is no separate commit step; a check
      that reports "changed" has already stored the new digest
    - **Idempotent within a pass:** The answer for a key is remembered in
      the execution context, so asking twice in one pass returns the same
      answer instead of "unchanged" the second time
    - **First pass always changes:** The record is get-or-created, so a
      missing record means no stored digest
    - **Reset forces a re-run:** Deleting the record (and the pass memo)
      makes the next check report "changed" again

Architecture:
    ::

        check(ctx, value, key)
           │
           ├── memo hit for (key, digest)? ──▶ Ok(remembered)
           │
           ├── record = store.get_or_create(name, namespace)   (Err on failure)
           ├── stored = record[key]
           ├── changed = stored != digest
           ├── changed? store.write(name, namespace, key, digest)
           │            (failure logged, not returned)
           └── memo[key] = (digest, changed) ──▶ Ok(changed)

Examples:
    >>> from nosqldb_operator.testing import InMemoryConfigMapStore
    >>> from nosqldb_operator.orchestration.execution_context import ExecutionContext
    >>> detector = SpecChangeDetector(InMemoryConfigMapStore(), "db", "mongo-spec-hash")
    >>> detector.check(ExecutionContext(), {"replicas": 3}, "spec-summary").unwrap()
    True
    >>> detector.check(ExecutionContext(), {"replicas": 3}, "spec-summary").unwrap()
    False

Tags:
    change-detection, hashing, configmap, idempotency, operator-core

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from typing import Any

from nosqldb_operator.core.errors import ExecutionError, MissingContextValueError
from nosqldb_operator.core.hashing import compute_digest
from nosqldb_operator.core.logging import get_logger
from nosqldb_operator.core.protocols import SmallObjectStore
from nosqldb_operator.core.result import Err, Ok, Result
from nosqldb_operator.orchestration import context_keys as keys
from nosqldb_operator.orchestration.execution_context import ExecutionContext

logger = get_logger(__name__)

SPEC_SUMMARY_KEY = "spec-summary"


class SpecChangeDetector:
    """Compare-and-advance digest check against one spec-hash record."""

    def __init__(
        self,
        store: SmallObjectStore,
        namespace: str,
        record_name: str,
        *,
        delete_timeout: float | None = None,
    ):
        self.store = store
        self.namespace = namespace
        self.record_name = record_name
        self.delete_timeout = delete_timeout

    def check(self, ctx: ExecutionContext, value: Any, key: str) -> Result[bool]:
        """Report whether ``value`` changed since the last stored digest for ``key``."""
        try:
            digest = compute_digest(value)
        except (TypeError, ValueError) as e:
            return Err(ExecutionError(f"Can't hash value for key {key}: {e}", cause=e))

        remembered = ctx.recalled_change(key, digest)
        if remembered is not None:
            logger.debug("spec_change.recalled", key=key, changed=remembered)
            return Ok(remembered)

        try:
            record = self.store.get_or_create(self.record_name, self.namespace)
        except Exception as e:
            logger.warning("spec_change.record_unavailable", record=self.record_name, error=str(e))
            return Err(e)

        stored = record.get(key)
        logger.debug("spec_change.compared", key=key, current=digest, stored=stored)

        changed = stored != digest
        if changed:
            try:
                self.store.write(self.record_name, self.namespace, key, digest)
            except Exception as e:
                logger.error(
                    "spec_change.persist_failed",
                    record=self.record_name,
                    key=key,
                    error=str(e),
                )

        ctx.remember_change(key, digest, changed)
        return Ok(changed)

    def reset(self, ctx: ExecutionContext) -> Result[None]:
        """Delete the record (waiting until it is gone) and forget this pass's answers."""
        logger.info("spec_change.reset", record=self.record_name, namespace=self.namespace)
        try:
            self.store.delete_with_confirm(self.record_name, self.namespace, self.delete_timeout)
        except Exception as e:
            return Err(ExecutionError(f"Failed to delete Spec config map, err: {e}", cause=e))
        ctx.forget_changes()
        return Ok(None)


def _detector(ctx: ExecutionContext) -> Result[SpecChangeDetector]:
    detector = ctx.get(keys.SPEC_CHANGE_DETECTOR)
    if detector is None:
        return Err(MissingContextValueError(keys.SPEC_CHANGE_DETECTOR.name))
    return Ok(detector)


def check_spec_change(ctx: ExecutionContext, value: Any, key: str) -> Result[bool]:
    """``SpecChangeDetector.check`` with the detector published in the context."""
    return _detector(ctx).flat_map(lambda detector: detector.check(ctx, value, key))


def reset_spec(ctx: ExecutionContext) -> Result[None]:
    """``SpecChangeDetector.reset`` with the detector published in the context."""
    return _detector(ctx).flat_map(lambda detector: detector.reset(ctx))


__all__ = ["SpecChangeDetector", "SPEC_SUMMARY_KEY", "check_spec_change", "reset_spec"]
