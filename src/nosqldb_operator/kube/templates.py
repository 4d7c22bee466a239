"""Manifest templates for the objects leaf steps create."""

from __future__ import annotations

from typing import Any, Mapping

from nosqldb_operator.core.models import (
    LABEL_APP,
    LABEL_KUBE_HOSTNAME,
    LABEL_MICROSERVICE,
    RECYCLER_NAME_TEMPLATE,
    RECYCLER_POD,
    StorageRequirements,
)

RECYCLER_LABELS = {LABEL_APP: RECYCLER_POD, LABEL_MICROSERVICE: RECYCLER_POD}

_SCRUB_COMMAND = (
    'set -x && echo "clearing pvc" && ls -lah /scrub && rm -rf /scrub/* && rm -rf /scrub/.ssh '
    '&& test -z "$(ls -A /scrub)" && ls -lah /scrub || exit 1'
)


def pvc_name(name_format: str, index: int) -> str:
    """``"data-{}"`` -> ``"data-0"``; a format without a placeholder is used as is."""
    return name_format.format(index) if "{}" in name_format else name_format


def pvc_template(
    storage: StorageRequirements,
    index: int,
    name_format: str,
    labels: Mapping[str, str],
    namespace: str,
    access_mode: str = "ReadWriteOnce",
) -> dict[str, Any]:
    """Claim number ``index``; every list in ``storage`` is indexed modulo its length."""
    metadata: dict[str, Any] = {
        "name": pvc_name(name_format, index),
        "namespace": namespace,
        "labels": dict(labels),
        "annotations": {},
    }
    spec: dict[str, Any] = {"accessModes": [access_mode]}

    if storage.size:
        spec["resources"] = {"requests": {"storage": storage.size[index % len(storage.size)]}}
    if storage.storage_classes:
        storage_class = storage.storage_classes[index % len(storage.storage_classes)]
        metadata["annotations"]["volume.beta.kubernetes.io/storage-class"] = storage_class
        spec["storageClassName"] = storage_class
    if storage.volumes:
        spec["volumeName"] = storage.volumes[index % len(storage.volumes)]
    if storage.match_label_selectors:
        selector = storage.match_label_selectors[index % len(storage.match_label_selectors)]
        spec["selector"] = {"matchLabels": dict(selector)}

    return {
        "apiVersion": "v1",
        "kind": "PersistentVolumeClaim",
        "metadata": metadata,
        "spec": spec,
    }


def recycler_pod_template(
    claim_name: str,
    namespace: str,
    image: str,
    node_selector: Mapping[str, str] | None = None,
    tolerations: list[dict[str, Any]] | None = None,
    resources: dict[str, Any] | None = None,
    security_context: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """One-shot pod that wipes the contents of ``claim_name``."""
    pod_name = RECYCLER_NAME_TEMPLATE.format(claim_name)
    spec: dict[str, Any] = {
        "restartPolicy": "Never",
        "volumes": [{"name": pod_name, "persistentVolumeClaim": {"claimName": claim_name}}],
        "containers": [
            {
                "name": RECYCLER_NAME_TEMPLATE.format("container"),
                "image": image,
                "command": ["/bin/sh", "-c", _SCRUB_COMMAND],
                "securityContext": {
                    "capabilities": {"drop": ["ALL"]},
                    "allowPrivilegeEscalation": False,
                },
                "volumeMounts": [{"name": pod_name, "mountPath": "/scrub"}],
                "resources": resources or {},
            }
        ],
        "affinity": {
            "podAntiAffinity": {
                "requiredDuringSchedulingIgnoredDuringExecution": [
                    {
                        "labelSelector": {
                            "matchExpressions": [
                                {"key": LABEL_MICROSERVICE, "operator": "In", "values": [RECYCLER_POD]}
                            ]
                        },
                        "topologyKey": LABEL_KUBE_HOSTNAME,
                    }
                ]
            }
        },
    }
    if node_selector:
        spec["nodeSelector"] = dict(node_selector)
    if tolerations:
        spec["tolerations"] = tolerations
    if security_context:
        spec["securityContext"] = security_context

    return {
        "apiVersion": "v1",
        "kind": "Pod",
        "metadata": {"name": pod_name, "namespace": namespace, "labels": dict(RECYCLER_LABELS)},
        "spec": spec,
    }


def proxy_service_template(name: str, namespace: str, labels: Mapping[str, str], external_name: str) -> dict[str, Any]:
    """ExternalName service pointing at ``external_name``."""
    return {
        "apiVersion": "v1",
        "kind": "Service",
        "metadata": {"name": name, "namespace": namespace, "labels": dict(labels)},
        "spec": {"type": "ExternalName", "externalName": external_name},
    }


__all__ = [
    "RECYCLER_LABELS",
    "pvc_name",
    "pvc_template",
    "recycler_pod_template",
    "proxy_service_template",
]
