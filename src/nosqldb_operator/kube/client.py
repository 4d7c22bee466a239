"""
Cluster resource store over the official ``kubernetes`` client.

Resources travel as plain dict manifests, the same shape ``kubectl get -o
json`` prints, so steps and templates never import client model classes.
A dispatch table maps each kind to the ``CoreV1Api`` / ``AppsV1Api`` method
stem; custom resources go through ``CustomObjectsApi``.

Errors are translated once, here:

- 404 -> ``NotFoundError``
- 409 -> ``ConflictError`` (retryable optimistic-concurrency rejection)
- 5xx -> ``TransientError``
- anything else -> ``ClusterError``

Examples:
    >>> client = KubeClient.from_environment(custom_kinds=[MONGO_KIND])  # doctest: +SKIP
    >>> client.list("PersistentVolumeClaim", "db", {"app": "mongo"})  # doctest: +SKIP
    []
"""

from __future__ import annotations

from typing import Any, Callable, Iterable, Mapping

from kubernetes import client as k8s
from kubernetes import config as k8s_config
from kubernetes.client.rest import ApiException

from nosqldb_operator.core.errors import (
    ClusterError,
    ConfigError,
    ConflictError,
    ErrorContext,
    NotFoundError,
    OperatorError,
    TransientError,
)
from nosqldb_operator.core.logging import get_logger
from nosqldb_operator.kube.resources import BUILTIN_KINDS, ResourceKind, name_of, namespace_of, selector_string

logger = get_logger(__name__)

Manifest = dict[str, Any]


def translate_api_exception(
    error: ApiException,
    action: str,
    kind: str,
    name: str | None = None,
    namespace: str | None = None,
) -> OperatorError:
    """Map an ``ApiException`` onto the operator error hierarchy."""
    context = ErrorContext(resource=name, namespace=namespace, http_status=error.status, metadata={"kind": kind})
    message = f"{action} {kind} {namespace + '/' if namespace else ''}{name or ''} failed: {error.status} {error.reason}"
    status = error.status or 0
    if status == 404:
        return NotFoundError(message, context=context, cause=error)
    if status == 409:
        return ConflictError(message, context=context, cause=error)
    if status >= 500:
        return TransientError(message, context=context, cause=error)
    return ClusterError(message, context=context, cause=error)


class KubeClient:
    """``ClusterClient`` implementation backed by ``kubernetes.client``."""

    def __init__(
        self,
        api_client: k8s.ApiClient | None = None,
        custom_kinds: Iterable[ResourceKind] = (),
    ):
        self.api_client = api_client or k8s.ApiClient()
        self._kinds: dict[str, ResourceKind] = dict(BUILTIN_KINDS)
        for kind in custom_kinds:
            self.register(kind)

    @classmethod
    def from_environment(cls, **kwargs: Any) -> KubeClient:
        """In-cluster config when running in a pod, kubeconfig otherwise."""
        try:
            k8s_config.load_incluster_config()
        except k8s_config.ConfigException:
            try:
                k8s_config.load_kube_config()
            except k8s_config.ConfigException as e:
                raise ConfigError(f"No cluster configuration found: {e}", cause=e) from e
        return cls(**kwargs)

    def register(self, kind: ResourceKind) -> None:
        self._kinds[kind.kind] = kind

    def kind(self, kind: str) -> ResourceKind:
        try:
            return self._kinds[kind]
        except KeyError:
            raise ConfigError(f"Unknown resource kind {kind!r}; register it first") from None

    # ------------------------------------------------------------------
    # ClusterClient
    # ------------------------------------------------------------------

    def get(self, kind: str, name: str, namespace: str | None = None) -> Manifest:
        rk = self.kind(kind)
        if rk.is_custom:
            api = k8s.CustomObjectsApi(self.api_client)
            if rk.namespaced:
                call = lambda: api.get_namespaced_custom_object(rk.group, rk.version, namespace, rk.plural, name)
            else:
                call = lambda: api.get_cluster_custom_object(rk.group, rk.version, rk.plural, name)
            return self._call("get", rk, name, namespace, call)

        method = self._method(rk, "read")
        args = (name, namespace) if rk.namespaced else (name,)
        return self._serialize(rk, self._call("get", rk, name, namespace, lambda: method(*args)))

    def list(
        self,
        kind: str,
        namespace: str | None = None,
        label_selector: Mapping[str, str] | None = None,
    ) -> list[Manifest]:
        rk = self.kind(kind)
        selector = selector_string(dict(label_selector) if label_selector else None)
        options: dict[str, Any] = {"label_selector": selector} if selector else {}

        if rk.is_custom:
            api = k8s.CustomObjectsApi(self.api_client)
            if rk.namespaced:
                call = lambda: api.list_namespaced_custom_object(
                    rk.group, rk.version, namespace, rk.plural, **options
                )
            else:
                call = lambda: api.list_cluster_custom_object(rk.group, rk.version, rk.plural, **options)
            return list(self._call("list", rk, None, namespace, call).get("items", []))

        method = self._method(rk, "list")
        args = (namespace,) if rk.namespaced else ()
        response = self._call("list", rk, None, namespace, lambda: method(*args, **options))
        return [self._serialize(rk, item) for item in response.items]

    def create(self, manifest: Manifest) -> Manifest:
        rk = self.kind(manifest["kind"])
        name, namespace = name_of(manifest), namespace_of(manifest)
        if rk.is_custom:
            api = k8s.CustomObjectsApi(self.api_client)
            if rk.namespaced:
                call = lambda: api.create_namespaced_custom_object(
                    rk.group, rk.version, namespace, rk.plural, manifest
                )
            else:
                call = lambda: api.create_cluster_custom_object(rk.group, rk.version, rk.plural, manifest)
            return self._call("create", rk, name, namespace, call)

        method = self._method(rk, "create")
        args = (namespace, manifest) if rk.namespaced else (manifest,)
        return self._serialize(rk, self._call("create", rk, name, namespace, lambda: method(*args)))

    def update(self, manifest: Manifest) -> Manifest:
        """Replace the object; ``metadata.resourceVersion`` guards against lost updates."""
        rk = self.kind(manifest["kind"])
        name, namespace = name_of(manifest), namespace_of(manifest)
        if rk.is_custom:
            api = k8s.CustomObjectsApi(self.api_client)
            if rk.namespaced:
                call = lambda: api.replace_namespaced_custom_object(
                    rk.group, rk.version, namespace, rk.plural, name, manifest
                )
            else:
                call = lambda: api.replace_cluster_custom_object(rk.group, rk.version, rk.plural, name, manifest)
            return self._call("update", rk, name, namespace, call)

        method = self._method(rk, "replace")
        args = (name, namespace, manifest) if rk.namespaced else (name, manifest)
        return self._serialize(rk, self._call("update", rk, name, namespace, lambda: method(*args)))

    def delete(self, kind: str, name: str, namespace: str | None = None) -> None:
        rk = self.kind(kind)
        if rk.is_custom:
            api = k8s.CustomObjectsApi(self.api_client)
            if rk.namespaced:
                call = lambda: api.delete_namespaced_custom_object(rk.group, rk.version, namespace, rk.plural, name)
            else:
                call = lambda: api.delete_cluster_custom_object(rk.group, rk.version, rk.plural, name)
        else:
            method = self._method(rk, "delete")
            args = (name, namespace) if rk.namespaced else (name,)
            call = lambda: method(*args)
        self._call("delete", rk, name, namespace, call)
        logger.debug("kube.deleted", kind=kind, name=name, namespace=namespace)

    def update_status(self, manifest: Manifest) -> Manifest:
        """Write the status subresource of a custom resource."""
        rk = self.kind(manifest["kind"])
        name, namespace = name_of(manifest), namespace_of(manifest)
        if not rk.is_custom:
            method = self._method(rk, "replace", suffix="_status")
            args = (name, namespace, manifest) if rk.namespaced else (name, manifest)
            return self._serialize(rk, self._call("update status of", rk, name, namespace, lambda: method(*args)))

        api = k8s.CustomObjectsApi(self.api_client)
        if rk.namespaced:
            call = lambda: api.replace_namespaced_custom_object_status(
                rk.group, rk.version, namespace, rk.plural, name, manifest
            )
        else:
            call = lambda: api.replace_cluster_custom_object_status(rk.group, rk.version, rk.plural, name, manifest)
        return self._call("update status of", rk, name, namespace, call)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _method(self, rk: ResourceKind, verb: str, suffix: str = "") -> Callable[..., Any]:
        api = getattr(k8s, rk.api)(self.api_client)
        scope = "namespaced_" if rk.namespaced else ""
        return getattr(api, f"{verb}_{scope}{rk.resource}{suffix}")

    def _serialize(self, rk: ResourceKind, obj: Any) -> Manifest:
        data = self.api_client.sanitize_for_serialization(obj)
        data.setdefault("apiVersion", rk.api_version)
        data.setdefault("kind", rk.kind)
        return data

    @staticmethod
    def _call(
        action: str,
        rk: ResourceKind,
        name: str | None,
        namespace: str | None,
        call: Callable[[], Any],
    ) -> Any:
        try:
            return call()
        except ApiException as e:
            raise translate_api_exception(e, action, rk.kind, name, namespace) from e


__all__ = ["KubeClient", "translate_api_exception"]
