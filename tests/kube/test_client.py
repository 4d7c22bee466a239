"""Tests for nosqldb_operator.kube.client."""

from unittest.mock import MagicMock, patch

import pytest
from kubernetes import client as k8s
from kubernetes import config as k8s_config
from kubernetes.client.rest import ApiException

from nosqldb_operator.core.errors import (
    ClusterError,
    ConfigError,
    ConflictError,
    NotFoundError,
    TransientError,
)
from nosqldb_operator.kube.client import KubeClient, translate_api_exception
from nosqldb_operator.testing import FAKE_KIND


class TestTranslateApiException:
    @pytest.mark.parametrize(
        ("status", "error_type"),
        [(404, NotFoundError), (409, ConflictError), (503, TransientError), (403, ClusterError)],
    )
    def test_status_mapping(self, status, error_type):
        error = translate_api_exception(ApiException(status=status, reason="x"), "get", "ConfigMap", "a", "db")
        assert type(error) is error_type
        assert error.context.http_status == status
        assert "get ConfigMap db/a failed" in str(error)


class TestKubeClient:
    def test_unknown_kind(self):
        with pytest.raises(ConfigError):
            KubeClient(api_client=MagicMock()).get("Widget", "a", "db")

    def test_builtin_get_serializes(self):
        api_client = MagicMock()
        api_client.sanitize_for_serialization.return_value = {"metadata": {"name": "a"}}
        with patch.object(k8s, "CoreV1Api") as core:
            core.return_value.read_namespaced_config_map.return_value = object()
            manifest = KubeClient(api_client=api_client).get("ConfigMap", "a", "db")
        core.return_value.read_namespaced_config_map.assert_called_once_with("a", "db")
        assert manifest["kind"] == "ConfigMap"
        assert manifest["apiVersion"] == "v1"

    def test_cluster_scoped_get(self):
        api_client = MagicMock()
        api_client.sanitize_for_serialization.return_value = {}
        with patch.object(k8s, "CoreV1Api") as core:
            KubeClient(api_client=api_client).get("PersistentVolume", "pv-1")
        core.return_value.read_persistent_volume.assert_called_once_with("pv-1")

    def test_list_passes_label_selector(self):
        api_client = MagicMock()
        api_client.sanitize_for_serialization.side_effect = lambda item: {"metadata": {"name": item}}
        with patch.object(k8s, "CoreV1Api") as core:
            core.return_value.list_namespaced_pod.return_value = MagicMock(items=["p0", "p1"])
            pods = KubeClient(api_client=api_client).list("Pod", "db", {"app": "mongo"})
        core.return_value.list_namespaced_pod.assert_called_once_with("db", label_selector="app=mongo")
        assert [pod["metadata"]["name"] for pod in pods] == ["p0", "p1"]

    def test_custom_resource_status_update(self):
        manifest = FAKE_KIND.manifest("mongo", "db", status={"conditions": []})
        with patch.object(k8s, "CustomObjectsApi") as custom:
            custom.return_value.replace_namespaced_custom_object_status.return_value = manifest
            result = KubeClient(api_client=MagicMock(), custom_kinds=[FAKE_KIND]).update_status(manifest)
        custom.return_value.replace_namespaced_custom_object_status.assert_called_once_with(
            "nosqldb.example.com", "v1", "db", "nosqldbservices", "mongo", manifest
        )
        assert result is manifest

    def test_api_exception_translated(self):
        with patch.object(k8s, "CoreV1Api") as core:
            core.return_value.delete_namespaced_config_map.side_effect = ApiException(status=404, reason="Not Found")
            with pytest.raises(NotFoundError):
                KubeClient(api_client=MagicMock()).delete("ConfigMap", "a", "db")

    def test_from_environment_without_config(self):
        with patch.object(k8s_config, "load_incluster_config", side_effect=k8s_config.ConfigException("no")), \
                patch.object(k8s_config, "load_kube_config", side_effect=k8s_config.ConfigException("none")):
            with pytest.raises(ConfigError):
                KubeClient.from_environment(api_client=MagicMock())
