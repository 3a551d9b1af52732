# SPDX-License-Identifier: Apache-2.0
# Copyright 2024-2026 CAB Ingénierie / Christophe ABOULICAM
"""Pytest configuration and shared fixtures.

``FakeWso2Server`` is an in-memory WSO2 API Manager 3.x served through
``httpx.MockTransport``: it implements the auth endpoints, the publisher
and store resources the reconciler uses, records every call and can be
told to fail a given call a number of times.
"""

import copy
import itertools
import json
from pathlib import Path
from typing import Any, Optional

import httpx
import pytest
import yaml

from wso2_reconciler.config import Settings, clear_settings_cache

FIXTURES_DIR = Path(__file__).parent / "fixtures"

BASE_URL = "https://wso2.example.com:9443"
CREDENTIALS_REFERENCE = "wso2/admin"
PUBLISHER = "/api/am/publisher/v1"
STORE = "/api/am/store/v1"

LIFECYCLE_TARGETS = {
    "Publish": "PUBLISHED",
    "Deploy as a Prototype": "PROTOTYPED",
    "Demote to Created": "CREATED",
    "Block": "BLOCKED",
    "Deprecate": "DEPRECATED",
    "Retire": "RETIRED",
}


class InMemorySecretStore:
    """SecretStore backed by a dict."""

    def __init__(self, secrets: dict[str, dict[str, Any]]):
        self.secrets = secrets
        self.reads: list[str] = []

    async def read_secret(self, reference: str) -> dict[str, Any]:
        self.reads.append(reference)
        return self.secrets[reference]


def _multipart_field(request: httpx.Request, name: str) -> bytes:
    boundary = request.headers["content-type"].split("boundary=")[1]
    for part in request.content.split(f"--{boundary}".encode()):
        if f'name="{name}"'.encode() in part:
            return part.split(b"\r\n\r\n", 1)[1].rsplit(b"\r\n", 1)[0]
    raise AssertionError(f"multipart field {name} not found")


class FakeWso2Server:
    """Minimal stateful WSO2 API Manager 3.x."""

    def __init__(self, server_version: str = "WSO2 API Manager-3.2.0", tenant: Optional[str] = None):
        self.server_version = server_version
        # WSO2 stores the context of tenant APIs as /t/{tenant}/...
        self.context_prefix = f"/t/{tenant}" if tenant else ""
        self.apis: dict[str, dict] = {}
        self.documents: dict[str, dict] = {}
        self.applications: dict[str, dict] = {}
        self.subscriptions: dict[str, dict] = {}
        self.endpoint_urls: list[dict] = [
            {
                "environmentName": "Production and Sandbox",
                "environmentType": "hybrid",
                "URLs": {
                    "http": "http://gw.example.com:8280/petstore/1.0.0",
                    "https": "https://gw.example.com:8243/petstore/1.0.0",
                },
                "defaultVersionURLs": {"https": "https://gw.example.com:8243/petstore"},
            }
        ]
        self.calls: list[tuple[str, str]] = []
        self.requests: list[httpx.Request] = []
        self._next_ids: dict[str, list[str]] = {"api": [], "application": [], "subscription": []}
        self._counter = itertools.count(1)
        self._failures: list[dict] = []

    # --- test helpers ---

    def next_id(self, kind: str, *ids: str) -> None:
        """Ids handed out to the next created resources of ``kind``."""
        self._next_ids[kind].extend(ids)

    def fail(self, method: str, path: str, status_code: int = 500, times: int = 1) -> None:
        """Answer the next ``times`` matching calls with ``status_code``."""
        self._failures.append(
            {"method": method, "path": path, "status_code": status_code, "times": times}
        )

    def count(self, method: str, path: str) -> int:
        return sum(1 for call in self.calls if call == (method, path))

    def mutations(self) -> list[tuple[str, str]]:
        """Non-auth calls that change server state."""
        return [
            (method, path)
            for method, path in self.calls
            if method in ("POST", "PUT", "DELETE") and path.startswith("/api/am/")
        ]

    def _stored_context(self, context: str) -> str:
        if self.context_prefix and not context.startswith("/t/"):
            return self.context_prefix + context
        return context

    def add_api(self, api: dict, document: Optional[dict] = None) -> dict:
        stored = {"lifeCycleStatus": "CREATED", **copy.deepcopy(api)}
        if "context" in stored:
            stored["context"] = self._stored_context(stored["context"])
        self.apis[stored["id"]] = stored
        if document is not None:
            self.documents[stored["id"]] = copy.deepcopy(document)
        return stored

    def add_application(self, application: dict) -> dict:
        self.applications[application["applicationId"]] = copy.deepcopy(application)
        return application

    def add_subscription(self, subscription: dict) -> dict:
        self.subscriptions[subscription["subscriptionId"]] = copy.deepcopy(subscription)
        return subscription

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    # --- request handling ---

    def _new_id(self, kind: str) -> str:
        if self._next_ids[kind]:
            return self._next_ids[kind].pop(0)
        return f"{kind}-{next(self._counter)}"

    def _injected_failure(self, method: str, path: str) -> Optional[httpx.Response]:
        for failure in self._failures:
            if failure["method"] == method and failure["path"] == path and failure["times"] > 0:
                failure["times"] -= 1
                return httpx.Response(
                    failure["status_code"], json={"code": failure["status_code"], "message": "boom"}
                )
        return None

    def handle(self, request: httpx.Request) -> httpx.Response:
        method, path = request.method, request.url.path
        self.calls.append((method, path))
        self.requests.append(request)

        failure = self._injected_failure(method, path)
        if failure is not None:
            return failure

        if path.startswith("/client-registration/"):
            return httpx.Response(200, json={"clientId": "client-id", "clientSecret": "client-secret"})
        if path == "/oauth2/token":
            return httpx.Response(200, json={"access_token": "access-token", "expires_in": 3600})
        if path == "/services/Version":
            return httpx.Response(
                200,
                text=f"<ns:getVersionResponse><ns:return>{self.server_version}</ns:return></ns:getVersionResponse>",
            )
        if path.startswith(PUBLISHER + "/apis"):
            return self._publisher_apis(request, path[len(PUBLISHER + "/apis"):])
        if path.startswith(STORE + "/apis/"):
            api_id = path[len(STORE + "/apis/"):]
            if api_id not in self.apis:
                return httpx.Response(404, json={"code": 404})
            return httpx.Response(200, json={"id": api_id, "endpointURLs": self.endpoint_urls})
        if path.startswith(STORE + "/applications"):
            return self._collection(
                request, path[len(STORE + "/applications"):], self.applications, "applicationId", "application"
            )
        if path.startswith(STORE + "/subscriptions"):
            return self._collection(
                request, path[len(STORE + "/subscriptions"):], self.subscriptions, "subscriptionId", "subscription"
            )
        return httpx.Response(404, json={"code": 404, "message": f"no route {method} {path}"})

    def _publisher_apis(self, request: httpx.Request, rest: str) -> httpx.Response:
        method = request.method
        if rest == "" and method == "GET":
            return httpx.Response(200, json={"count": len(self.apis), "list": list(self.apis.values())})
        if rest == "" and method == "POST":
            body = json.loads(request.content)
            body.pop("lifeCycleStatus", None)
            stored = self.add_api({**body, "id": self._new_id("api")})
            return httpx.Response(201, json=stored)
        if rest == "/change-lifecycle" and method == "POST":
            api_id = request.url.params["apiId"]
            if api_id not in self.apis:
                return httpx.Response(404, json={"code": 404})
            self.apis[api_id]["lifeCycleStatus"] = LIFECYCLE_TARGETS[request.url.params["action"]]
            return httpx.Response(200, json={"lifecycleState": {"state": self.apis[api_id]["lifeCycleStatus"]}})

        api_id, _, sub = rest.lstrip("/").partition("/")
        if api_id not in self.apis:
            return httpx.Response(404, json={"code": 404, "message": "API not found"})
        if sub == "swagger":
            if method == "GET":
                return httpx.Response(200, json=self.documents.get(api_id, {"openapi": "3.0.1", "paths": {}}))
            self.documents[api_id] = json.loads(_multipart_field(request, "apiDefinition"))
            return httpx.Response(200, json=self.documents[api_id])
        if method == "GET":
            return httpx.Response(200, json=self.apis[api_id])
        if method == "PUT":
            body = json.loads(request.content)
            body.pop("lifeCycleStatus", None)
            if "context" in body:
                body["context"] = self._stored_context(body["context"])
            self.apis[api_id] = {"lifeCycleStatus": self.apis[api_id]["lifeCycleStatus"], **body, "id": api_id}
            return httpx.Response(200, json=self.apis[api_id])
        if method == "DELETE":
            del self.apis[api_id]
            return httpx.Response(200)
        return httpx.Response(405)

    def _collection(
        self, request: httpx.Request, rest: str, items: dict[str, dict], id_field: str, kind: str
    ) -> httpx.Response:
        method = request.method
        if rest == "" and method == "GET":
            params = request.url.params
            if kind == "subscription":
                found = [
                    s for s in items.values()
                    if s.get("apiId") == params.get("apiId")
                    and s.get("applicationId") == params.get("applicationId")
                ]
            else:
                # fuzzy, like WSO2: the query matches name prefixes
                query = params.get("query", "")
                found = [a for a in items.values() if a.get("name", "").startswith(query)]
            return httpx.Response(200, json={"count": len(found), "list": found})
        if rest == "" and method == "POST":
            body = json.loads(request.content)
            stored = {**body, id_field: self._new_id(kind)}
            items[stored[id_field]] = stored
            return httpx.Response(201, json=stored)

        resource_id = rest.lstrip("/")
        if resource_id not in items:
            return httpx.Response(404, json={"code": 404})
        if method == "GET":
            return httpx.Response(200, json=items[resource_id])
        if method == "PUT":
            items[resource_id] = {**json.loads(request.content), id_field: resource_id}
            return httpx.Response(200, json=items[resource_id])
        if method == "DELETE":
            del items[resource_id]
            return httpx.Response(200)
        return httpx.Response(405)


async def no_sleep(seconds: float) -> None:
    """Drop-in for asyncio.sleep that returns immediately."""


@pytest.fixture(autouse=True)
def reset_settings():
    """Reset settings cache before each test."""
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def settings() -> Settings:
    return Settings(log_format="text", managed_tag="")


@pytest.fixture
def secret_store() -> InMemorySecretStore:
    return InMemorySecretStore({CREDENTIALS_REFERENCE: {"user": "admin", "pwd": "admin-pwd"}})


@pytest.fixture
def wso2_server() -> FakeWso2Server:
    return FakeWso2Server()


@pytest.fixture
def petstore_document() -> dict:
    with open(FIXTURES_DIR / "petstore.yaml") as f:
        return yaml.safe_load(f)


@pytest.fixture
def remote_config() -> dict:
    return {"baseUrl": BASE_URL, "credentialsReference": CREDENTIALS_REFERENCE}


@pytest.fixture
def api_properties(remote_config, petstore_document) -> dict:
    return {
        "remoteConfig": remote_config,
        "resourceDefinition": {
            "name": "petstore",
            "context": "/petstore",
            "gatewayEnvironments": ["Production and Sandbox"],
            "endpointConfig": {
                "endpoint_type": "http",
                "production_endpoints": {"url": "https://backend.example.com/petstore"},
            },
        },
        "openapiDocument": petstore_document,
    }


@pytest.fixture
def api_event(api_properties) -> dict:
    return {
        "RequestType": "Create",
        "ResourceType": "Custom::Wso2Api",
        "RequestId": "req-api-1",
        "LogicalResourceId": "PetstoreApi",
        "StackId": "arn:aws:cloudformation:eu-west-1:123456789012:stack/petstore/1",
        "ResourceProperties": api_properties,
    }


@pytest.fixture
def make_server():
    """Factory for servers that need non-default construction."""
    return FakeWso2Server


@pytest.fixture
def make_secret_store():
    return InMemorySecretStore
