# SPDX-License-Identifier: Apache-2.0
# Copyright 2024-2026 CAB Ingénierie / Christophe ABOULICAM
"""Credential & session resolution against a WSO2 API Manager.

One session per invocation:
1. Read ``{user, pwd}`` from the secret store by reference
2. Register an OAuth client through Dynamic Client Registration (DCR)
3. Exchange the user credentials for a bearer token (password grant)
4. Check that the server major version matches the configured REST API version

Tokens are never refreshed or cached; the invocation is shorter than their lifetime.
"""

import re
from dataclasses import dataclass
from typing import Any, Optional

import httpx
import structlog

from ..clients.wso2_client import Wso2Client, build_http_client, raise_for_remote_status
from ..config import Settings, get_settings
from ..errors import RemoteResponseError, ValidationError
from ..models import RemoteConfig
from .vault_client import SecretStore

logger = structlog.get_logger(__name__)

# Substring of the /services/Version body expected for each REST API version
SERVER_VERSION_MARKERS: dict[str, str] = {
    "v1": "WSO2 API Manager-3",
    "v2": "WSO2 API Manager-4",
}

_TAG_PATTERN = re.compile(r"<[^>]+>")


@dataclass
class Wso2Credentials:
    """WSO2 user credentials as stored in the secret store."""

    user: str
    pwd: str

    @classmethod
    def from_secret(cls, payload: Any, reference: str) -> "Wso2Credentials":
        if not isinstance(payload, dict) or not payload.get("user") or not payload.get("pwd"):
            raise ValidationError(
                f"'user' and 'pwd' attributes from credentials {reference} are required. "
                "Check if the secret is shaped like {'user': 'someuser', 'pwd': 'mypass'}",
                field="credentialsReference",
            )
        return cls(user=str(payload["user"]), pwd=str(payload["pwd"]))

    def username_for(self, tenant: Optional[str]) -> str:
        """Tenant users log in as ``user@tenant``."""
        return f"{self.user}@{tenant}" if tenant else self.user


@dataclass
class ClientCredentials:
    """OAuth client registered through DCR."""

    client_id: str
    client_secret: str


class Wso2SessionResolver:
    """Turns a RemoteConfig into an authenticated Wso2Client."""

    def __init__(
        self,
        secret_store: SecretStore,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.secret_store = secret_store
        self.settings = settings or get_settings()
        self._transport = transport

    async def open_client(self, remote_config: RemoteConfig) -> Wso2Client:
        """Resolve credentials, authenticate and return a client bound to the bearer token."""
        secret = await self.secret_store.read_secret(remote_config.credentials_reference)
        credentials = Wso2Credentials.from_secret(secret, remote_config.credentials_reference)
        username = credentials.username_for(remote_config.tenant)
        base_url = remote_config.normalized_base_url

        async with build_http_client(
            base_url,
            timeout=self.settings.request_timeout_seconds,
            verify=self.settings.tls_verify,
            transport=self._transport,
        ) as http:
            client_credentials = await self.register_client(http, username, credentials.pwd)
            access_token = await self.get_bearer_token(
                http, username, credentials.pwd, client_credentials
            )
            await self.check_server_version(http, remote_config.api_version)

        logger.info("WSO2 session opened", base_url=base_url, username=username)
        return Wso2Client(
            base_url,
            access_token,
            timeout=self.settings.request_timeout_seconds,
            verify=self.settings.tls_verify,
            transport=self._transport,
        )

    async def register_client(
        self, http: httpx.AsyncClient, username: str, password: str
    ) -> ClientCredentials:
        """Register (or re-fetch) the OAuth client used for the password grant."""
        response = await http.post(
            f"/client-registration/{self.settings.dcr_api_version}/register",
            json={
                "clientName": self.settings.client_name,
                "owner": username,
                "grantType": "password refresh_token",
                "saasApp": True,
            },
            auth=(username, password),
        )
        raise_for_remote_status(response)
        body = response.json()
        if not body.get("clientId") or not body.get("clientSecret"):
            raise RemoteResponseError("Client registration response has no clientId/clientSecret")
        return ClientCredentials(client_id=body["clientId"], client_secret=body["clientSecret"])

    async def get_bearer_token(
        self,
        http: httpx.AsyncClient,
        username: str,
        password: str,
        client_credentials: ClientCredentials,
    ) -> str:
        response = await http.post(
            "/oauth2/token",
            data={
                "grant_type": "password",
                "username": username,
                "password": password,
                "scope": self.settings.token_scopes,
            },
            auth=(client_credentials.client_id, client_credentials.client_secret),
        )
        raise_for_remote_status(response)
        access_token = response.json().get("access_token")
        if not access_token:
            raise RemoteResponseError("Token response has no access_token")
        return access_token

    async def check_server_version(self, http: httpx.AsyncClient, api_version: str) -> None:
        """Fail fast when the server major version doesn't match ``api_version``."""
        marker = SERVER_VERSION_MARKERS.get(api_version)
        if marker is None:
            raise ValidationError(
                f"WSO2 REST API version '{api_version}' is not supported", field="apiVersion"
            )

        response = await http.get("/services/Version")
        raise_for_remote_status(response)
        info = _TAG_PATTERN.sub("", response.text).strip()
        if marker not in info:
            raise ValidationError(
                f"Client for API {api_version} requires '{marker}.x' server. Found '{info}'",
                field="apiVersion",
            )
        logger.debug("WSO2 server version checked", version=info)
