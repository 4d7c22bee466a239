"""nosqldb-operator-core -- reconciliation engine for NoSQL database operators.

Manifesto:
    Every database operator needs the same control loop: notice that the
    desired state changed, run an ordered tree of idempotent deployment
    steps, and record the outcome on the resource.  This package is that
    loop, plus the leaf steps operators keep rewriting (claims, volume
    recycling, Vault credentials, Consul registration).

Architecture::

    core/           errors, Result, logging, settings, hashing, models, protocols
    orchestration/  execution context, steps and sequences, deploy type,
                    spec-change detection, executor, builders
    controller/     status handler, reconciler contract, reconciliation pass
    kube/           cluster client, polling, helpers, ConfigMap store,
                    admin secret watch, manifest templates
    vault/          Vault client and helper
    consul/         Consul agent client
    steps/          reusable leaf steps
    host.py         kopf handlers
    cli/            ``nosqldb-operator`` command
    testing.py      in-memory fakes
"""

__version__ = "0.1.0"

from nosqldb_operator.controller.controller import ReconcileCommonService
from nosqldb_operator.controller.reconciler import CommonReconciler, CustomResourceReconciler
from nosqldb_operator.core.models import ReconcileRequest, ReconcileResult
from nosqldb_operator.orchestration.execution_context import ContextKey, ExecutionContext
from nosqldb_operator.orchestration.steps import BaseStep, MicroServiceSequence, Sequence, trivial_step

__all__ = [
    "__version__",
    "ReconcileCommonService",
    "CommonReconciler",
    "CustomResourceReconciler",
    "ReconcileRequest",
    "ReconcileResult",
    "ContextKey",
    "ExecutionContext",
    "BaseStep",
    "Sequence",
    "MicroServiceSequence",
    "trivial_step",
]
