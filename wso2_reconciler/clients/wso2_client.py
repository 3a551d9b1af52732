# SPDX-License-Identifier: Apache-2.0
# Copyright 2024-2026 CAB Ingénierie / Christophe ABOULICAM
"""WSO2 API Manager REST client (publisher v1 and store v1).

Thin async wrapper around httpx bound to one WSO2 server and one bearer
token. Every call maps to exactly one REST request; retries, searches and
comparisons are the caller's business.

Non-2xx responses and transport faults are raised as TransientRemoteError
so callers can check ``error.status_code == 404`` without importing httpx.
"""

import json
from typing import Any

import httpx
import structlog

from ..errors import RemoteResponseError, TransientRemoteError

logger = structlog.get_logger(__name__)

PUBLISHER_V1 = "/api/am/publisher/v1"
STORE_V1 = "/api/am/store/v1"


async def _log_request(request: httpx.Request) -> None:
    logger.debug("> REQUEST", method=request.method, url=str(request.url))


async def _log_response(response: httpx.Response) -> None:
    logger.debug(
        "> RESPONSE",
        method=response.request.method,
        url=str(response.request.url),
        status_code=response.status_code,
    )


def build_http_client(
    base_url: str,
    timeout: float,
    verify: bool = True,
    headers: dict[str, str] | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Create an httpx client with request/response logging hooks."""
    return httpx.AsyncClient(
        base_url=base_url,
        headers=headers or {},
        timeout=timeout,
        verify=verify,
        transport=transport,
        event_hooks={"request": [_log_request], "response": [_log_response]},
    )


def raise_for_remote_status(response: httpx.Response) -> None:
    """Translate an error response into TransientRemoteError."""
    try:
        response.raise_for_status()
    except httpx.HTTPStatusError as e:
        raise TransientRemoteError(
            f"{response.request.method} {response.request.url.path} failed with "
            f"{response.status_code}: {response.text[:500]}",
            status_code=response.status_code,
        ) from e


class Wso2Client:
    """Client for the WSO2 publisher and store REST APIs."""

    def __init__(
        self,
        base_url: str,
        access_token: str,
        timeout: float = 30.0,
        verify: bool = True,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._client = build_http_client(
            self.base_url,
            timeout=timeout,
            verify=verify,
            headers={
                "Authorization": f"Bearer {access_token}",
                "Accept": "application/json",
            },
            transport=transport,
        )

    async def aclose(self) -> None:
        """Close the underlying HTTP connection pool."""
        await self._client.aclose()

    async def __aenter__(self) -> "Wso2Client":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        """Make a request against the WSO2 server.

        Args:
            method: HTTP method (GET, POST, PUT, DELETE)
            path: API path including the publisher/store prefix
            **kwargs: Additional arguments passed to httpx.request

        Returns:
            Decoded JSON body, or {} for empty responses
        """
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.TransportError as e:
            raise TransientRemoteError(f"{method} {path} failed: {e!r}") from e

        raise_for_remote_status(response)

        # Handle empty responses
        if response.status_code == 204 or not response.content:
            return {}

        try:
            return response.json()
        except json.JSONDecodeError as e:
            raise RemoteResponseError(
                f"{method} {path} returned a non-JSON body",
                details={"body": response.text[:500]},
            ) from e

    @staticmethod
    def _list_of(result: Any, what: str) -> list[dict]:
        if not isinstance(result, dict) or not isinstance(result.get("list"), list):
            raise RemoteResponseError(f"{what} list response should contain 'list' even if empty")
        return result["list"]

    # =========================================================================
    # APIs (publisher)
    # =========================================================================

    async def search_apis(self, query: str) -> list[dict]:
        result = await self._request("GET", f"{PUBLISHER_V1}/apis", params={"query": query})
        return self._list_of(result, "API")

    async def get_api(self, api_id: str) -> dict:
        return await self._request("GET", f"{PUBLISHER_V1}/apis/{api_id}")

    async def create_api(self, definition: dict) -> dict:
        return await self._request(
            "POST",
            f"{PUBLISHER_V1}/apis",
            params={"openAPIVersion": "V3"},
            json=definition,
        )

    async def update_api(self, api_id: str, definition: dict) -> dict:
        return await self._request("PUT", f"{PUBLISHER_V1}/apis/{api_id}", json=definition)

    async def delete_api(self, api_id: str) -> None:
        await self._request("DELETE", f"{PUBLISHER_V1}/apis/{api_id}")

    async def get_api_document(self, api_id: str) -> dict:
        """Get the OpenAPI document WSO2 holds for an API."""
        return await self._request("GET", f"{PUBLISHER_V1}/apis/{api_id}/swagger")

    async def update_api_document(self, api_id: str, document: dict) -> dict:
        """Replace the OpenAPI document of an API (multipart upload)."""
        return await self._request(
            "PUT",
            f"{PUBLISHER_V1}/apis/{api_id}/swagger",
            files={"apiDefinition": (None, json.dumps(document), "application/json")},
        )

    async def change_api_lifecycle(self, api_id: str, action: str) -> dict:
        return await self._request(
            "POST",
            f"{PUBLISHER_V1}/apis/change-lifecycle",
            params={"apiId": api_id, "action": action},
        )

    async def get_store_api(self, api_id: str) -> dict:
        """Get the developer portal view of an API (includes endpoint URLs)."""
        return await self._request("GET", f"{STORE_V1}/apis/{api_id}")

    # =========================================================================
    # Applications (store)
    # =========================================================================

    async def search_applications(self, query: str) -> list[dict]:
        result = await self._request("GET", f"{STORE_V1}/applications", params={"query": query})
        return self._list_of(result, "Application")

    async def get_application(self, application_id: str) -> dict:
        return await self._request("GET", f"{STORE_V1}/applications/{application_id}")

    async def create_application(self, definition: dict) -> dict:
        return await self._request("POST", f"{STORE_V1}/applications", json=definition)

    async def update_application(self, application_id: str, definition: dict) -> dict:
        return await self._request(
            "PUT", f"{STORE_V1}/applications/{application_id}", json=definition
        )

    async def delete_application(self, application_id: str) -> None:
        await self._request("DELETE", f"{STORE_V1}/applications/{application_id}")

    # =========================================================================
    # Subscriptions (store)
    # =========================================================================

    async def search_subscriptions(self, api_id: str, application_id: str) -> list[dict]:
        result = await self._request(
            "GET",
            f"{STORE_V1}/subscriptions",
            params={"apiId": api_id, "applicationId": application_id},
        )
        return self._list_of(result, "Subscription")

    async def get_subscription(self, subscription_id: str) -> dict:
        return await self._request("GET", f"{STORE_V1}/subscriptions/{subscription_id}")

    async def create_subscription(self, definition: dict) -> dict:
        return await self._request("POST", f"{STORE_V1}/subscriptions", json=definition)

    async def update_subscription(self, subscription_id: str, definition: dict) -> dict:
        return await self._request(
            "PUT", f"{STORE_V1}/subscriptions/{subscription_id}", json=definition
        )

    async def delete_subscription(self, subscription_id: str) -> None:
        await self._request("DELETE", f"{STORE_V1}/subscriptions/{subscription_id}")
