"""Persistent volume claim creation."""

from __future__ import annotations

from typing import Callable, Mapping

from nosqldb_operator.core.errors import OperatorError, StepValidationError, execution_error
from nosqldb_operator.core.logging import get_logger
from nosqldb_operator.core.models import StorageRequirements
from nosqldb_operator.core.protocols import Manifest
from nosqldb_operator.core.result import Err, Ok, Result
from nosqldb_operator.kube.templates import pvc_template
from nosqldb_operator.orchestration import context_keys as keys
from nosqldb_operator.orchestration.execution_context import ContextKey, ExecutionContext
from nosqldb_operator.orchestration.steps import BaseStep

logger = get_logger(__name__)

PVC_NAMES: ContextKey[list[str]] = ContextKey("pvcNames", "claims created by CreatePVCStep")


class CreatePVCStep(BaseStep):
    """Create (or converge) ``count`` claims named from ``name_format``.

    The names of the claims are appended to the list already stored under
    ``context_key`` so several PVC steps can feed one recycler step.
    """

    name = "create-pvc"

    def __init__(
        self,
        storage: StorageRequirements | None,
        name_format: str,
        *,
        labels: Mapping[str, str] | None = None,
        count: Callable[[ExecutionContext], int] | int = 1,
        start_index: int = 0,
        context_key: ContextKey[list[str]] = PVC_NAMES,
        owner: Manifest | None = None,
        wait_bound: bool = False,
        wait_timeout: float = 60,
        access_mode: str = "ReadWriteOnce",
    ):
        self.storage = storage
        self.name_format = name_format
        self.labels = dict(labels or {})
        self.count = count
        self.start_index = start_index
        self.context_key = context_key
        self.owner = owner
        self.wait_bound = wait_bound
        self.wait_timeout = wait_timeout
        self.access_mode = access_mode or "ReadWriteOnce"

    def validate(self, ctx: ExecutionContext) -> Result[None]:
        storage = self.storage
        if (
            storage is None
            or not storage.size
            or (storage.match_label_selectors is None and storage.volumes is None and storage.storage_classes is None)
        ):
            return Err(StepValidationError("Storage size should be set with volumes or storage classes or label selectors"))
        return Ok(None)

    def _count(self, ctx: ExecutionContext) -> int:
        return self.count(ctx) if callable(self.count) else self.count

    def execute(self, ctx: ExecutionContext) -> Result[None]:
        try:
            request = ctx.require(keys.REQUEST)
            helper = ctx.require(keys.KUBE_HELPER)
        except OperatorError as e:
            return Err(e)

        count = self._count(ctx)
        logger.info("pvc.started", count=count)

        names: list[str] = []
        for index in range(self.start_index, self.start_index + count):
            template = pvc_template(
                self.storage,
                index,
                self.name_format,
                self.labels,
                request.namespace,
                self.access_mode,
            )
            name = template["metadata"]["name"]
            try:
                helper.create_or_update(template, self.owner)
            except OperatorError as e:
                return Err(execution_error(f"Creating of PVC {name} failed", e))
            names.append(name)

        if self.wait_bound:
            for name in names:
                try:
                    helper.wait_for_pvc_bound(name, request.namespace, self.wait_timeout)
                except OperatorError as e:
                    return Err(execution_error(f"PVC {name} 'Bound' status waiting failed", e))
                logger.debug("pvc.bound", pvc=name)

        ctx.set(self.context_key, (ctx.get(self.context_key) or []) + names)
        return Ok(None)


__all__ = ["CreatePVCStep", "PVC_NAMES"]
