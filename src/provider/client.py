"""Async client for the Tailscale REST API.

Built on the azure-core pipeline so transport retries, User-Agent handling,
request logging and the exception taxonomy come from one place:

- 404 raises ResourceNotFoundError (the distinguished not-found variant)
- 401/403 raise ClientAuthenticationError
- 409 raises ResourceExistsError
- any other non-2xx status raises HttpResponseError

Every error carries the API's own message text so that end users see the
original remote error.
"""

from __future__ import annotations

import json
import logging
from typing import Any
from urllib.parse import quote

from azure.core import AsyncPipelineClient
from azure.core.credentials import AzureKeyCredential
from azure.core.exceptions import (
    ClientAuthenticationError,
    HttpResponseError,
    ResourceExistsError,
    ResourceNotFoundError,
    ResponseNotReadError,
)
from azure.core.pipeline import policies
from azure.core.pipeline.transport import AsyncHttpTransport
from azure.core.rest import AsyncHttpResponse, HttpRequest

from .config import ProviderConfig
from .models import ACL, CreateKeyRequest, Device, DNSPreferences, Key

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v2"
JSON_CONTENT_TYPE = "application/json"
HUJSON_CONTENT_TYPE = "application/hujson"

ERROR_MAP: dict[int, type[HttpResponseError]] = {
    401: ClientAuthenticationError,
    403: ClientAuthenticationError,
    404: ResourceNotFoundError,
    409: ResourceExistsError,
}


def _error_message(response: Any) -> str:
    """Extract the API's error message, falling back to the raw body or reason."""
    try:
        body = response.text()
    except ResponseNotReadError:
        body = ""
    if body:
        try:
            payload = json.loads(body)
        except ValueError:
            return body
        if isinstance(payload, dict) and payload.get("message"):
            return str(payload["message"])
        return body
    return f"{response.status_code} {response.reason}"


def raise_for_status(response: Any) -> None:
    """Raise the azure-core exception matching a non-2xx response."""
    if 200 <= response.status_code < 300:
        return
    error_type = ERROR_MAP.get(response.status_code, HttpResponseError)
    raise error_type(message=_error_message(response), response=response)


class TailscaleClient:
    """Thin typed wrapper over the Tailscale v2 API for one tailnet."""

    def __init__(
        self,
        config: ProviderConfig,
        *,
        transport: AsyncHttpTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            config: Provider configuration (credentials, tailnet, base URL).
            transport: Optional transport override, used by tests.
        """
        self._config = config
        self._tailnet_path = f"{API_PREFIX}/tailnet/{quote(config.tailnet, safe='')}"

        pipeline_policies = [
            policies.UserAgentPolicy(base_user_agent=config.user_agent),
            policies.AsyncRetryPolicy(retry_total=config.retry_total),
            policies.AzureKeyCredentialPolicy(
                AzureKeyCredential(config.api_key), "Authorization", prefix="Bearer"
            ),
            policies.HttpLoggingPolicy(),
        ]
        kwargs: dict[str, Any] = {}
        if transport is not None:
            kwargs["transport"] = transport

        self._client = AsyncPipelineClient(
            base_url=config.base_url, policies=pipeline_policies, **kwargs
        )

    async def __aenter__(self) -> TailscaleClient:
        await self._client.__aenter__()
        return self

    async def __aexit__(self, *exc_details: Any) -> None:
        await self._client.__aexit__(*exc_details)

    async def close(self) -> None:
        await self._client.close()

    async def _send(
        self,
        method: str,
        path: str,
        *,
        body: dict[str, Any] | None = None,
        accept: str = JSON_CONTENT_TYPE,
    ) -> AsyncHttpResponse:
        request = HttpRequest(
            method,
            self._client.format_url(f"{self._tailnet_path}{path}"),
            headers={"Accept": accept},
            json=body,
        )
        response = await self._client.send_request(
            request,
            connection_timeout=self._config.request_timeout_seconds,
            read_timeout=self._config.request_timeout_seconds,
        )
        logger.debug(
            f"{method} {path} -> {response.status_code}",
            extra={"method": method, "path": path, "status_code": response.status_code},
        )
        raise_for_status(response)
        return response

    # -------------------------------------------------------------------------
    # Keys
    # -------------------------------------------------------------------------

    async def create_key(self, request: CreateKeyRequest) -> Key:
        response = await self._send(
            "POST", "/keys", body=request.model_dump(by_alias=True, exclude_none=True)
        )
        return Key.model_validate(response.json())

    async def get_key(self, key_id: str) -> Key:
        response = await self._send("GET", f"/keys/{quote(key_id, safe='')}")
        return Key.model_validate(response.json())

    async def delete_key(self, key_id: str) -> None:
        await self._send("DELETE", f"/keys/{quote(key_id, safe='')}")

    # -------------------------------------------------------------------------
    # DNS
    # -------------------------------------------------------------------------

    async def get_dns_preferences(self) -> DNSPreferences:
        response = await self._send("GET", "/dns/preferences")
        return DNSPreferences.model_validate(response.json())

    async def set_dns_preferences(self, preferences: DNSPreferences) -> None:
        await self._send(
            "POST", "/dns/preferences", body=preferences.model_dump(by_alias=True)
        )

    # -------------------------------------------------------------------------
    # Policy file and devices
    # -------------------------------------------------------------------------

    async def get_acl(self) -> ACL:
        """Fetch the policy file as JSON and as HuJSON (comments preserved)."""
        as_json = await self._send("GET", "/acl", accept=JSON_CONTENT_TYPE)
        as_hujson = await self._send("GET", "/acl", accept=HUJSON_CONTENT_TYPE)
        return ACL(json_text=as_json.text(), hujson_text=as_hujson.text())

    async def list_devices(self) -> list[Device]:
        response = await self._send("GET", "/devices?fields=all")
        payload = response.json()
        return [Device.model_validate(d) for d in payload.get("devices", [])]
