"""
Deploy-type classification.

A micro-service is either deployed for the first time (no persistent state
in the namespace yet) or updated over existing state.  Leaf steps read the
current classification from the execution context to decide whether they
take part; for example, volume recycling only runs on a clean deploy so
that data meant to be reused is never wiped.

Examples:
    >>> from nosqldb_operator.orchestration.execution_context import ExecutionContext
    >>> ctx = ExecutionContext()
    >>> current_deploy_type(ctx)
    <DeployType.EMPTY: ''>
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Callable, Mapping

from nosqldb_operator.core.logging import get_logger
from nosqldb_operator.core.result import Err, Ok, Result
from nosqldb_operator.orchestration import context_keys as keys

if TYPE_CHECKING:
    from nosqldb_operator.core.protocols import ClusterClient
    from nosqldb_operator.orchestration.execution_context import ExecutionContext

logger = get_logger(__name__)


class DeployType(str, Enum):
    EMPTY = ""
    CLEAN_DEPLOY = "CleanDeploy"
    UPDATE = "Update"


def current_deploy_type(ctx: ExecutionContext) -> DeployType:
    """Deploy type currently in scope; initialises the slot to EMPTY."""
    value = ctx.get(keys.DEPLOY_TYPE)
    if value is None:
        ctx.set(keys.DEPLOY_TYPE, DeployType.EMPTY)
        return DeployType.EMPTY
    return value


def set_deploy_type(ctx: ExecutionContext, deploy_type: DeployType) -> None:
    ctx.set(keys.DEPLOY_TYPE, deploy_type)


def classify_by_pvc(
    client: ClusterClient,
    namespace: str,
    label_selector: Mapping[str, str],
) -> Result[DeployType]:
    """CleanDeploy when no claim matches ``label_selector``, Update otherwise.

    A failed list is returned unchanged as ``Err``; the caller decides
    whether that means EMPTY.
    """
    try:
        claims = client.list("PersistentVolumeClaim", namespace, label_selector)
    except Exception as e:
        logger.debug("deploy_type.pvc_query_failed", namespace=namespace, selector=dict(label_selector), error=str(e))
        return Err(e)

    deploy_type = DeployType.CLEAN_DEPLOY if not claims else DeployType.UPDATE
    logger.debug(
        "deploy_type.classified",
        namespace=namespace,
        selector=dict(label_selector),
        claims=len(claims),
        deploy_type=deploy_type.value,
    )
    return Ok(deploy_type)


def pvc_classifier(label_selector: Mapping[str, str]) -> Callable[[ExecutionContext], Result[DeployType]]:
    """Classifier for ``MicroServiceSequence`` reading client and namespace from the context."""

    def classify(ctx: ExecutionContext) -> Result[DeployType]:
        present = ctx.ensure_present(keys.CLIENT, keys.REQUEST)
        if present.is_err():
            return Err(present.error)
        request = ctx.require(keys.REQUEST)
        return classify_by_pvc(ctx.require(keys.CLIENT), request.namespace, label_selector)

    return classify


def fixed_classifier(deploy_type: DeployType) -> Callable[[ExecutionContext], Result[DeployType]]:
    """Classifier that always answers ``deploy_type``."""

    def classify(ctx: ExecutionContext) -> Result[DeployType]:
        return Ok(deploy_type)

    return classify


__all__ = [
    "DeployType",
    "current_deploy_type",
    "set_deploy_type",
    "classify_by_pvc",
    "pvc_classifier",
    "fixed_classifier",
]
