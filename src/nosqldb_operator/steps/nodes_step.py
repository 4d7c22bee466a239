"""Resolve the node each data volume lives on."""

from __future__ import annotations

from nosqldb_operator.core.errors import ExecutionError, OperatorError
from nosqldb_operator.core.logging import get_logger
from nosqldb_operator.core.models import LABEL_KUBE_HOSTNAME, StorageRequirements
from nosqldb_operator.core.result import Err, Ok, Result
from nosqldb_operator.kube.resources import PV
from nosqldb_operator.orchestration import context_keys as keys
from nosqldb_operator.orchestration.execution_context import ContextKey, ExecutionContext
from nosqldb_operator.orchestration.steps import BaseStep

logger = get_logger(__name__)

NODES: ContextKey[list[dict[str, str]]] = ContextKey("pvNodes", "node selector per volume")

PV_NODE_LABEL = "node"


class StoreNodesStep(BaseStep):
    """Publish one node selector per volume under ``context_key``.

    Explicit ``storage.node_labels`` win.  Otherwise each named hostPath
    volume contributes ``{"kubernetes.io/hostname": <its "node" label>}``.
    A volume that cannot be read (restricted RBAC) stops the lookup; if the
    resulting list does not cover every volume the step fails.
    """

    name = "store-nodes"

    def __init__(
        self,
        storage: StorageRequirements | None,
        *,
        context_key: ContextKey[list[dict[str, str]]] = NODES,
    ):
        self.storage = storage
        self.context_key = context_key

    def execute(self, ctx: ExecutionContext) -> Result[None]:
        nodes = [dict(labels) for labels in (self.storage.node_labels if self.storage else [])]

        if not nodes:
            volumes = list((self.storage.volumes if self.storage else None) or [])
            if volumes:
                try:
                    client = ctx.require(keys.CLIENT)
                except OperatorError as e:
                    return Err(e)

            for volume in volumes:
                logger.debug("nodes.reading_volume", volume=volume)
                try:
                    pv = client.get(PV.kind, volume)
                except OperatorError as e:
                    logger.error("nodes.volume_unreadable", volume=volume, error=str(e))
                    break
                if (pv.get("spec") or {}).get("hostPath") is not None:
                    node = ((pv.get("metadata") or {}).get("labels") or {}).get(PV_NODE_LABEL, "")
                    nodes.append({LABEL_KUBE_HOSTNAME: node})

            if len(nodes) != len(volumes):
                logger.error("nodes.count_mismatch", nodes=nodes, volumes=volumes)
                return Err(ExecutionError("Got unequal Nodes count from Volumes"))

        logger.debug("nodes.stored", nodes=nodes)
        ctx.set(self.context_key, nodes)
        return Ok(None)


__all__ = ["StoreNodesStep", "NODES", "PV_NODE_LABEL"]
