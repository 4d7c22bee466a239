"""
Persistent volume recycling.

On a clean deploy, claims that are bound to pre-provisioned volumes may
still hold data from an earlier installation.  ``PVRecyclerStep`` starts
one scrub pod per claim (pinned to the claim's node when node labels are
known), waits for all of them to complete, then deletes them and waits
until they are gone.

    ::

        claims (PVC_NAMES)  ─┐
        node labels (NODES) ─┴─▶ recycler pod per claim ─▶ wait Succeeded
                                                         ─▶ delete pods
                                                         ─▶ wait count == 0
"""

from __future__ import annotations

from typing import Any, Callable

from nosqldb_operator.core.errors import OperatorError, execution_error
from nosqldb_operator.core.logging import get_logger
from nosqldb_operator.core.models import LABEL_MICROSERVICE, RECYCLER_POD
from nosqldb_operator.core.protocols import Manifest
from nosqldb_operator.core.result import Err, Ok, Result
from nosqldb_operator.kube.resources import POD
from nosqldb_operator.kube.templates import RECYCLER_LABELS, recycler_pod_template
from nosqldb_operator.orchestration import context_keys as keys
from nosqldb_operator.orchestration.deploy_type import DeployType, current_deploy_type
from nosqldb_operator.orchestration.execution_context import ContextKey, ExecutionContext
from nosqldb_operator.orchestration.steps import BaseStep
from nosqldb_operator.steps.nodes_step import NODES
from nosqldb_operator.steps.pvc_step import PVC_NAMES

logger = get_logger(__name__)


class PVRecyclerStep(BaseStep):
    """Wipe the volumes behind freshly created claims (clean deploys only by default)."""

    name = "pv-recycler"

    def __init__(
        self,
        image: str,
        *,
        pvc_key: ContextKey[list[str]] = PVC_NAMES,
        nodes_key: ContextKey[list[dict[str, str]]] = NODES,
        tolerations: list[dict[str, Any]] | None = None,
        resources: dict[str, Any] | None = None,
        security_context: dict[str, Any] | None = None,
        owner: Manifest | None = None,
        wait_timeout: float = 120,
        condition_fn: Callable[[ExecutionContext], Result[bool]] | None = None,
    ):
        self.image = image
        self.pvc_key = pvc_key
        self.nodes_key = nodes_key
        self.tolerations = tolerations
        self.resources = resources
        self.security_context = security_context
        self.owner = owner
        self.wait_timeout = wait_timeout
        self.condition_fn = condition_fn

    def condition(self, ctx: ExecutionContext) -> Result[bool]:
        if self.condition_fn is not None:
            return self.condition_fn(ctx)
        return Ok(current_deploy_type(ctx) == DeployType.CLEAN_DEPLOY)

    def execute(self, ctx: ExecutionContext) -> Result[None]:
        claims = ctx.get(self.pvc_key) or []
        if not claims:
            logger.debug("recycler.skipped", reason="no claims in context")
            return Ok(None)

        try:
            request = ctx.require(keys.REQUEST)
            helper = ctx.require(keys.KUBE_HELPER)
            client = ctx.require(keys.CLIENT)
        except OperatorError as e:
            return Err(e)

        node_labels = ctx.get(self.nodes_key) or []
        namespace = request.namespace
        logger.info("recycler.started", claims=len(claims))

        pod_names: list[str] = []
        for index, claim in enumerate(claims):
            node_selector = node_labels[index % len(node_labels)] if node_labels else {}
            pod = recycler_pod_template(
                claim,
                namespace,
                self.image,
                node_selector=node_selector,
                tolerations=self.tolerations,
                resources=self.resources,
                security_context=self.security_context,
            )
            try:
                helper.create_or_update(pod, self.owner)
            except OperatorError as e:
                return Err(execution_error("Recycler pod creation failed", e))
            pod_names.append(pod["metadata"]["name"])
            logger.debug("recycler.pod_created", pod=pod["metadata"]["name"])

        try:
            helper.wait_for_pods_completed({LABEL_MICROSERVICE: RECYCLER_POD}, namespace, len(claims), self.wait_timeout)
        except OperatorError as e:
            return Err(execution_error("Recycler Pods Completed status waiting failed", e))
        logger.debug("recycler.pods_completed")

        try:
            for name in pod_names:
                client.delete(POD.kind, name, namespace)
        except OperatorError as e:
            return Err(execution_error("Recycler Pods deletion failed", e))

        try:
            helper.wait_for_pods_count(RECYCLER_LABELS, namespace, 0, self.wait_timeout)
        except OperatorError as e:
            return Err(execution_error("Recycler Pods Terminated status waiting failed", e))
        logger.debug("recycler.pods_flushed")
        return Ok(None)


__all__ = ["PVRecyclerStep"]
