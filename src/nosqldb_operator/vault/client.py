"""
Vault HTTP client.

Logs in with the pod's service-account JWT (``auth/<method>/login``) and
talks to the logical API.  The client token is obtained lazily and renewed
once on a 403, which covers token expiry between passes.

Examples:
    >>> registration = VaultRegistration(enabled=True, url="http://vault:8200", role="mongo")
    >>> client = VaultClient(registration, token_reader=lambda: "jwt")  # doctest: +SKIP
    >>> client.read("secret/mongo/admin")  # doctest: +SKIP
    {'password': '...'}
"""

from __future__ import annotations

import uuid
from typing import Any, Callable, Mapping

import httpx

from nosqldb_operator.core.errors import ErrorContext, SecretStoreError
from nosqldb_operator.core.logging import get_logger
from nosqldb_operator.core.models import VaultRegistration

logger = get_logger(__name__)

DEFAULT_TIMEOUT = 10.0


class VaultClient:
    """Thin synchronous client for the Vault logical API."""

    def __init__(
        self,
        registration: VaultRegistration,
        *,
        token_reader: Callable[[], str],
        http: httpx.Client | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.registration = registration
        self._token_reader = token_reader
        self._http = http or httpx.Client(base_url=registration.url, timeout=timeout)
        self._token: str | None = None

    def close(self) -> None:
        self._http.close()

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    def login(self) -> str:
        """Exchange the service-account JWT for a Vault client token."""
        path = f"/v1/auth/{self.registration.method}/login"
        try:
            response = self._http.post(path, json={"jwt": self._token_reader(), "role": self.registration.role})
        except (httpx.HTTPError, OSError) as e:
            raise SecretStoreError(f"Vault login failed: {e}", context=ErrorContext(url=path), cause=e) from e
        if response.status_code >= 400:
            raise SecretStoreError(
                f"Vault login failed: {response.status_code}",
                context=ErrorContext(url=path, http_status=response.status_code),
            )
        self._token = response.json()["auth"]["client_token"]
        logger.debug("vault.logged_in", method=self.registration.method, role=self.registration.role)
        return self._token

    def _request(self, method: str, path: str, *, json: Mapping[str, Any] | None = None) -> httpx.Response:
        url = "/v1/" + path.lstrip("/")
        for attempt in (1, 2):
            token = self._token or self.login()
            try:
                response = self._http.request(method, url, json=json, headers={"X-Vault-Token": token})
            except httpx.HTTPError as e:
                raise SecretStoreError(
                    f"Vault {method} {url} failed: {e}", context=ErrorContext(url=url), cause=e
                ) from e
            if response.status_code == 403 and attempt == 1:
                logger.debug("vault.token_rejected", url=url)
                self._token = None
                continue
            return response
        return response

    @staticmethod
    def _raise_for_status(response: httpx.Response, action: str) -> None:
        if response.status_code >= 400:
            raise SecretStoreError(
                f"Vault {action} failed: {response.status_code} {response.text}",
                context=ErrorContext(url=str(response.request.url), http_status=response.status_code),
                retryable=response.status_code >= 500,
            )

    # ------------------------------------------------------------------
    # Logical API
    # ------------------------------------------------------------------

    def read(self, path: str) -> dict[str, Any] | None:
        response = self._request("GET", path)
        if response.status_code == 404:
            return None
        self._raise_for_status(response, f"read {path}")
        return response.json().get("data")

    def write(self, path: str, data: Mapping[str, Any] | None) -> dict[str, Any] | None:
        response = self._request("POST", path, json=dict(data or {}))
        self._raise_for_status(response, f"write {path}")
        if response.status_code == 204 or not response.content:
            return None
        return response.json().get("data")

    def list(self, path: str) -> list[str]:
        response = self._request("LIST", path)
        if response.status_code == 404:
            return []
        self._raise_for_status(response, f"list {path}")
        return list((response.json().get("data") or {}).get("keys") or [])

    def generate_password(self, policy: str) -> str:
        """Password from a Vault password policy; a random UUID when no policy is named."""
        if not policy:
            return str(uuid.uuid4())
        response = self._request("GET", f"sys/policies/password/{policy}/generate")
        self._raise_for_status(response, f"generate password with policy {policy}")
        return response.json()["data"]["password"]

    def create_password_policy(self, name: str, policy: str) -> None:
        response = self._request("PUT", f"sys/policies/password/{name}", json={"policy": policy})
        self._raise_for_status(response, f"create password policy {name}")


__all__ = ["VaultClient"]
