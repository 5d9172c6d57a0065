"""Kubernetes Secrets adapter over the core/v1 REST API."""

import base64
import binascii
import json
import ssl
from pathlib import Path
from types import TracebackType
from typing import Any, Self

import httpx

from jwks_rotator.core.settings import KubernetesSettings
from jwks_rotator.store.base import SecretRecord, SecretStoreError, SecretStoreHTTPError

HTTP_NOT_FOUND = 404
STRATEGIC_MERGE_PATCH = "application/strategic-merge-patch+json"


def _secrets_path(namespace: str, name: str | None = None) -> str:
    path = f"/api/v1/namespaces/{namespace}/secrets"
    if name is not None:
        path = f"{path}/{name}"
    return path


def _error_from_response(response: httpx.Response) -> SecretStoreHTTPError:
    """Build a store error, preferring the Kubernetes Status message."""
    body = response.text
    message = response.reason_phrase
    try:
        status = response.json()
    except ValueError:
        status = None
    if isinstance(status, dict) and status.get("message"):
        message = str(status["message"])
    return SecretStoreHTTPError(response.status_code, message, body)


def _decode_field(value: str) -> str | None:
    try:
        return base64.b64decode(value, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return None


def _record_from_secret(namespace: str, name: str, secret: Any) -> SecretRecord:
    """Decode each field on its own; binary fields are set aside, not fatal."""
    raw = secret.get("data") if isinstance(secret, dict) else None
    decoded: dict[str, str] = {}
    undecodable: list[str] = []
    for key, value in (raw or {}).items():
        text = _decode_field(value) if isinstance(value, str) else None
        if text is None:
            undecodable.append(key)
        else:
            decoded[key] = text
    return SecretRecord(
        namespace=namespace, name=name, data=decoded, undecodable=undecodable
    )


def _json_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError as exc:
        request = response.request
        msg = f"{request.method} {request.url.path} returned a non-JSON body"
        raise SecretStoreError(msg) from exc


class KubernetesSecretStore:
    """Reads and writes Opaque secrets through the Kubernetes API server."""

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    @classmethod
    def from_settings(cls, settings: KubernetesSettings) -> Self:
        """Build an in-cluster client from the mounted service account."""
        token = Path(settings.token_path).read_text().strip()
        verify = ssl.create_default_context(cafile=settings.ca_cert_path)
        client = httpx.AsyncClient(
            base_url=settings.base_url,
            headers={"Authorization": f"Bearer {token}"},
            verify=verify,
            timeout=settings.request_timeout,
        )
        return cls(client)

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def get(self, namespace: str, name: str) -> SecretRecord | None:
        """GET the secret; a 404 means it does not exist."""
        response = await self._client.get(_secrets_path(namespace, name))
        if response.status_code == HTTP_NOT_FOUND:
            return None
        if response.is_error:
            raise _error_from_response(response)
        return _record_from_secret(namespace, name, _json_body(response))

    async def create(
        self, namespace: str, name: str, data: dict[str, str]
    ) -> SecretRecord:
        """POST a new Opaque secret with ``data`` as stringData."""
        manifest = {
            "apiVersion": "v1",
            "kind": "Secret",
            "metadata": {"name": name, "namespace": namespace},
            "type": "Opaque",
            "stringData": data,
        }
        response = await self._client.post(_secrets_path(namespace), json=manifest)
        if response.is_error:
            raise _error_from_response(response)
        return _record_from_secret(namespace, name, _json_body(response))

    async def patch(self, namespace: str, name: str, data: dict[str, str]) -> None:
        """Strategic-merge-patch only the given fields of the secret."""
        response = await self._client.patch(
            _secrets_path(namespace, name),
            content=json.dumps({"stringData": data}),
            headers={"Content-Type": STRATEGIC_MERGE_PATCH},
        )
        if response.is_error:
            raise _error_from_response(response)
