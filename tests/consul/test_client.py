"""Tests for nosqldb_operator.consul.client over httpx.MockTransport."""

import json

import httpx
import pytest

from nosqldb_operator.core.errors import ConfigError, ServiceRegistryError
from nosqldb_operator.core.models import AgentServiceRegistration, ConsulRegistration
from nosqldb_operator.consul.client import ConsulClient, consul_address, create_consul_client


class Recorder:
    def __init__(self, status=200, body=None):
        self.requests = []
        self.status = status
        self.body = body

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == "/v1/acl/login":
            return httpx.Response(200, json={"SecretID": "acl-secret"})
        return httpx.Response(self.status, json=self.body)


def _client(recorder, **kwargs):
    http = httpx.Client(base_url="http://consul:8500", transport=httpx.MockTransport(recorder))
    return ConsulClient(http, **kwargs)


class TestConsulClient:
    def test_register(self):
        recorder = Recorder()
        registration = AgentServiceRegistration(id="mongo-0", name="mongo", port=27017)
        _client(recorder, token="t").register(registration)
        request = recorder.requests[0]
        assert request.method == "PUT"
        assert request.url.path == "/v1/agent/service/register"
        assert request.url.params["replace-existing-checks"] == "true"
        assert request.headers["X-Consul-Token"] == "t"
        assert json.loads(request.content)["ID"] == "mongo-0"

    def test_deregister(self):
        recorder = Recorder()
        _client(recorder).deregister("mongo-0")
        assert recorder.requests[0].url.path == "/v1/agent/service/deregister/mongo-0"
        assert "X-Consul-Token" not in recorder.requests[0].headers

    def test_maintenance_with_reasons(self):
        recorder = Recorder()
        _client(recorder).maintenance("mongo-0", True, "upgrade", "step 2")
        params = recorder.requests[0].url.params
        assert params["enable"] == "true"
        assert params["reason"] == "upgrade. step 2"

    def test_maintenance_disable_has_no_reason(self):
        recorder = Recorder()
        _client(recorder).maintenance("mongo-0", False, "upgrade")
        assert "reason" not in recorder.requests[0].url.params

    def test_logout_only_with_acl_token(self):
        recorder = Recorder()
        _client(recorder).logout()
        assert recorder.requests == []
        _client(recorder, token="a", acl_token="a").logout()
        assert recorder.requests[0].url.path == "/v1/acl/logout"

    def test_error_status(self):
        with pytest.raises(ServiceRegistryError) as excinfo:
            _client(Recorder(status=503)).deregister("mongo-0")
        assert excinfo.value.retryable is True
        assert excinfo.value.context.http_status == 503


class TestConsulAddress:
    def test_registration_host_wins(self):
        assert consul_address("10.0.0.5", ConsulRegistration(host="consul", port="8501")) == "http://consul:8501"

    def test_node_ip_fallback(self):
        assert consul_address("10.0.0.5", ConsulRegistration()) == "http://10.0.0.5:8500"

    def test_no_host(self):
        with pytest.raises(ConfigError):
            consul_address("", ConsulRegistration())


class TestCreateConsulClient:
    def test_disabled(self, settings):
        assert create_consul_client("10.0.0.5", ConsulRegistration(enabled=False), settings) is None
        assert create_consul_client("10.0.0.5", None, settings) is None

    def test_service_account_token(self, settings):
        recorder = Recorder()
        client = create_consul_client(
            "10.0.0.5", ConsulRegistration(enabled=True), settings, transport=httpx.MockTransport(recorder)
        )
        client.deregister("mongo-0")
        assert recorder.requests[0].headers["X-Consul-Token"] == "sa-jwt"

    def test_acl_login(self, settings):
        recorder = Recorder()
        registration = ConsulRegistration(enabled=True, acl_enabled=True, auth_method="k8s")
        client = create_consul_client("10.0.0.5", registration, settings, transport=httpx.MockTransport(recorder))
        assert json.loads(recorder.requests[0].content) == {"AuthMethod": "k8s", "BearerToken": "sa-jwt"}
        client.logout()
        assert recorder.requests[-1].headers["X-Consul-Token"] == "acl-secret"

    def test_unreadable_token(self, settings, tmp_path):
        settings.service_account_token_path = tmp_path / "missing"
        with pytest.raises(ConfigError):
            create_consul_client("10.0.0.5", ConsulRegistration(enabled=True), settings)
