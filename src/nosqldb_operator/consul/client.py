"""
Consul agent client.

Registers, deregisters and toggles maintenance for services on the local
Consul agent.  The agent address comes from the ``ConsulRegistration``
(falling back to the node IP, port 8500).  Authentication is either an
ACL login with the service-account JWT or the raw service-account token.

Architecture:
    ::

        create_consul_client(node_ip, registration, settings)
              │
              ├── registration disabled ──► None
              ├── no host and no node IP ─► ConfigError
              └── ConsulClient(address, token)
                      ├── register     PUT  /v1/agent/service/register
                      ├── deregister   PUT  /v1/agent/service/deregister/<id>
                      ├── maintenance  PUT  /v1/agent/service/maintenance/<id>
                      └── logout       POST /v1/acl/logout

Tags:
    consul, service-registry, httpx

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from typing import Any

import httpx

from nosqldb_operator.core.errors import ConfigError, ErrorContext, ServiceRegistryError
from nosqldb_operator.core.logging import get_logger
from nosqldb_operator.core.models import AgentServiceRegistration, ConsulRegistration
from nosqldb_operator.core.settings import OperatorSettings

logger = get_logger(__name__)

DEFAULT_PORT = "8500"
DEFAULT_TIMEOUT = 10.0
TOKEN_HEADER = "X-Consul-Token"


class ConsulClient:
    """``ServiceRegistry`` over the Consul agent HTTP API."""

    def __init__(self, http: httpx.Client, *, token: str = "", acl_token: str = ""):
        self._http = http
        self._token = token
        self._acl_token = acl_token

    def _request(self, method: str, path: str, *, action: str, **kwargs: Any) -> httpx.Response:
        headers = {TOKEN_HEADER: self._token} if self._token else {}
        try:
            response = self._http.request(method, path, headers=headers, **kwargs)
        except httpx.HTTPError as e:
            raise ServiceRegistryError(f"Consul {action} failed: {e}", context=ErrorContext(url=path), cause=e) from e
        if response.status_code >= 400:
            raise ServiceRegistryError(
                f"Consul {action} failed: {response.status_code} {response.text}",
                context=ErrorContext(url=path, http_status=response.status_code),
                retryable=response.status_code >= 500,
            )
        return response

    def register(self, registration: AgentServiceRegistration) -> None:
        self._request(
            "PUT",
            "/v1/agent/service/register",
            action=f"register {registration.id}",
            params={"replace-existing-checks": "true"},
            json=registration.to_agent_payload(),
        )
        logger.debug(
            "consul.registered",
            service=registration.name,
            service_id=registration.id,
            address=registration.address,
        )

    def deregister(self, service_id: str) -> None:
        self._request("PUT", f"/v1/agent/service/deregister/{service_id}", action=f"deregister {service_id}")
        logger.debug("consul.deregistered", service_id=service_id)

    def maintenance(self, service_id: str, enabled: bool, *reasons: str) -> None:
        params = {"enable": "true" if enabled else "false"}
        if enabled and reasons:
            params["reason"] = ". ".join(reasons)
        self._request(
            "PUT",
            f"/v1/agent/service/maintenance/{service_id}",
            action=f"maintenance {service_id}",
            params=params,
        )
        logger.debug("consul.maintenance", service_id=service_id, enabled=enabled)

    def logout(self) -> None:
        if self._acl_token:
            self._request("POST", "/v1/acl/logout", action="logout")
        logger.debug("consul.logged_out")

    def close(self) -> None:
        self._http.close()


def consul_address(node_ip: str, registration: ConsulRegistration) -> str:
    host = registration.host or node_ip
    if not host:
        raise ConfigError("Consul host not found in the registration data and node IP is empty")
    port = registration.port or DEFAULT_PORT
    return f"http://{host}:{port}"


def acl_login(http: httpx.Client, auth_method: str, bearer_token: str) -> str:
    """Exchange the service-account JWT for a Consul ACL token."""
    try:
        response = http.post("/v1/acl/login", json={"AuthMethod": auth_method, "BearerToken": bearer_token})
    except httpx.HTTPError as e:
        raise ServiceRegistryError(f"Consul ACL login failed: {e}", cause=e) from e
    if response.status_code >= 400:
        raise ServiceRegistryError(
            f"Consul ACL login failed: {response.status_code} {response.text}",
            context=ErrorContext(url="/v1/acl/login", http_status=response.status_code),
        )
    return response.json()["SecretID"]


def create_consul_client(
    node_ip: str,
    registration: ConsulRegistration | None,
    settings: OperatorSettings,
    *,
    transport: httpx.BaseTransport | None = None,
) -> ConsulClient | None:
    """Client for an enabled registration, ``None`` otherwise."""
    if registration is None or not registration.enabled:
        logger.debug("consul.registration_disabled")
        return None

    address = consul_address(node_ip, registration)
    logger.debug("consul.address", address=address)
    http = httpx.Client(base_url=address, timeout=DEFAULT_TIMEOUT, transport=transport)

    try:
        bearer = settings.read_service_account_token()
    except OSError as e:
        http.close()
        raise ConfigError(f"Cannot read service account token: {e}", cause=e) from e

    if registration.acl_enabled:
        secret_id = acl_login(http, registration.auth_method, bearer)
        client = ConsulClient(http, token=secret_id, acl_token=secret_id)
    else:
        client = ConsulClient(http, token=bearer)
    logger.debug("consul.client_created", acl=registration.acl_enabled)
    return client


__all__ = ["ConsulClient", "create_consul_client", "consul_address", "acl_login", "DEFAULT_PORT"]
