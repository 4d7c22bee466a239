"""Kubernetes access: client, polling, helpers, ConfigMap store, secret watch."""

from nosqldb_operator.kube.client import KubeClient
from nosqldb_operator.kube.configmap_store import ConfigMapStore
from nosqldb_operator.kube.credentials import SecretWatcher
from nosqldb_operator.kube.helper import KubernetesHelper
from nosqldb_operator.kube.polling import poll_until

__all__ = ["KubeClient", "ConfigMapStore", "SecretWatcher", "KubernetesHelper", "poll_until"]
