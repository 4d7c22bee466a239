"""Fluent status updates for the managed resource."""

from __future__ import annotations

from datetime import datetime, timezone

from nosqldb_operator.controller.reconciler import CommonReconciler
from nosqldb_operator.core.logging import get_logger
from nosqldb_operator.core.models import DisasterRecoveryStatus, ServiceStatusCondition
from nosqldb_operator.core.protocols import ClusterClient
from nosqldb_operator.core.result import Err, Ok, Result

logger = get_logger(__name__)


class CRStatusHandler:
    """Stage condition and DR status on the reconciler, then ``commit`` them.

    Example:
        handler.set_condition(True, "Failed", error, "ReconcileCycleFailed").set_dr_status("failed")
        handler.commit()
    """

    def __init__(self, reconciler: CommonReconciler, client: ClusterClient):
        self.reconciler = reconciler
        self.client = client

    def set_condition(
        self,
        status: bool,
        condition_type: str,
        error: BaseException | None,
        reason: str,
    ) -> CRStatusHandler:
        message = str(error).replace("\t", " ") if error is not None else ""
        self.reconciler.update_status(
            ServiceStatusCondition(
                type=condition_type,
                status=status,
                last_transition_time=datetime.now(timezone.utc),
                reason=reason,
                message=message,
            )
        )
        return self

    def set_dr_status(self, status: str) -> CRStatusHandler:
        self.reconciler.update_dr_status(DisasterRecoveryStatus(status=status))
        return self

    def commit(self) -> Result[None]:
        """Write the staged status through the status subresource."""
        try:
            updated = self.client.update_status(self.reconciler.instance())
        except Exception as e:
            return Err(e)
        self.reconciler.refresh(updated)
        return Ok(None)


__all__ = ["CRStatusHandler"]
