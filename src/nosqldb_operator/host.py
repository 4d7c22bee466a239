"""
kopf integration.

Routes create/update/resume events for one custom resource to
``ReconcileCommonService.reconcile``.  A fresh service is built per event
(the reconciler holds the instance of the resource it is working on), and
a ``ReconcileResult`` asking for a requeue becomes a ``kopf.TemporaryError``
with that delay.  Every other outcome is already recorded on the resource
status, so the handler returns normally and kopf does not apply its own
backoff.

Examples:
    >>> # operator.py, started with ``kopf run operator.py``
    >>> register_handlers("nosqldb.example.com", "v1", "mongodbservices", build_service)  # doctest: +SKIP
"""

from __future__ import annotations

from typing import Any, Callable

import kopf

from nosqldb_operator.controller.controller import ReconcileCommonService
from nosqldb_operator.core.logging import configure_logging, get_logger, level_for
from nosqldb_operator.core.models import ReconcileRequest
from nosqldb_operator.core.settings import get_settings

logger = get_logger(__name__)

ServiceFactory = Callable[[], ReconcileCommonService]

HANDLER_ID = "reconcile"


def configure_operator(settings: kopf.OperatorSettings, **_: Any) -> None:
    operator_settings = get_settings()
    configure_logging(level=level_for(operator_settings.debug_log), json_format=operator_settings.log_json)
    # status belongs to the reconciler; keep kopf's bookkeeping in annotations
    settings.persistence.progress_storage = kopf.AnnotationsProgressStorage()
    settings.persistence.diffbase_storage = kopf.AnnotationsDiffBaseStorage()
    logger.info("operator.configured", debug_log=operator_settings.debug_log)


def make_handler(service_factory: ServiceFactory) -> Callable[..., None]:
    def reconcile(name: str, namespace: str, **_: Any) -> None:
        result = service_factory().reconcile(ReconcileRequest(name=name, namespace=namespace))
        if result.requeue:
            raise kopf.TemporaryError("reconciliation requested a retry", delay=result.requeue_after)

    return reconcile


def register_handlers(
    group: str,
    version: str,
    plural: str,
    service_factory: ServiceFactory,
    *,
    registry: kopf.OperatorRegistry | None = None,
) -> Callable[..., None]:
    """Wire startup configuration and create/update/resume handlers for one resource."""
    handler = make_handler(service_factory)
    kopf.on.startup(registry=registry)(configure_operator)
    for on_event in (kopf.on.create, kopf.on.update, kopf.on.resume):
        on_event(group, version, plural, registry=registry, id=HANDLER_ID)(handler)
    logger.debug("operator.handlers_registered", group=group, version=version, plural=plural)
    return handler


__all__ = ["register_handlers", "make_handler", "configure_operator", "ServiceFactory"]
