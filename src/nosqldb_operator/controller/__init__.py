"""Reconciliation controller, status handler and the reconciler contract."""

from nosqldb_operator.controller.controller import ReconcileCommonService
from nosqldb_operator.controller.reconciler import CommonReconciler, CustomResourceReconciler
from nosqldb_operator.controller.status import CRStatusHandler

__all__ = ["ReconcileCommonService", "CommonReconciler", "CustomResourceReconciler", "CRStatusHandler"]
