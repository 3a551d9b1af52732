# SPDX-License-Identifier: Apache-2.0
# Copyright 2024-2026 CAB Ingénierie / Christophe ABOULICAM
"""Tests for the custom resource entry point."""

import httpx
import pytest

from wso2_reconciler.config import Settings
from wso2_reconciler.handlers import handle_event, lambda_handler
from wso2_reconciler.reconcilers.api import endpoint_url_for
from wso2_reconciler.services.retry import RetryKind

STORE = "/api/am/store/v1"


async def _no_sleep(seconds: float) -> None:
    pass


class RecordingObserver:
    def __init__(self):
        self.attempts = []

    def on_retry(self, attempt) -> None:
        self.attempts.append(attempt)


@pytest.fixture
def application_event(remote_config) -> dict:
    return {
        "RequestType": "Create",
        "ResourceType": "Custom::Wso2Application",
        "RequestId": "req-app-1",
        "ResourceProperties": {
            "remoteConfig": remote_config,
            "resourceDefinition": {"name": "billing", "throttlingPolicy": "Unlimited"},
        },
    }


def _drifting_transport(server, path: str, **overrides) -> httpx.MockTransport:
    """Transport whose GET ``path`` answers always differ from what was stored."""

    def handler(request: httpx.Request) -> httpx.Response:
        response = server.handle(request)
        if request.method == "GET" and request.url.path == path and response.status_code == 200:
            return httpx.Response(200, json={**response.json(), **overrides})
        return response

    return httpx.MockTransport(handler)


class TestHandleEvent:
    """Test response building and failure reporting."""

    @pytest.mark.asyncio
    async def test_unknown_resource_type(self, settings, secret_store, wso2_server, application_event):
        application_event["ResourceType"] = "Custom::Unknown"

        response = await handle_event(
            application_event, settings=settings, secret_store=secret_store,
            transport=wso2_server.transport, sleep=_no_sleep,
        )

        assert response["Status"] == "FAILED"
        assert response["PhysicalResourceId"] == "failed-req-app-1"
        assert "Custom::Unknown" in response["Reason"]
        assert wso2_server.calls == []

    @pytest.mark.asyncio
    async def test_explicit_kind(self, settings, secret_store, wso2_server, application_event):
        del application_event["ResourceType"]

        response = await handle_event(
            application_event, "application", settings=settings, secret_store=secret_store,
            transport=wso2_server.transport, sleep=_no_sleep,
        )

        assert response["Status"] == "SUCCESS"

    @pytest.mark.asyncio
    async def test_unknown_explicit_kind(self, settings, secret_store, application_event):
        response = await handle_event(
            application_event, "gateway", settings=settings, secret_store=secret_store,
        )

        assert response["Status"] == "FAILED"
        assert "Unknown resource kind 'gateway'" in response["Reason"]

    @pytest.mark.asyncio
    async def test_invalid_properties_fail_before_network(
        self, settings, secret_store, wso2_server, application_event
    ):
        del application_event["ResourceProperties"]["resourceDefinition"]["name"]

        response = await handle_event(
            application_event, settings=settings, secret_store=secret_store,
            transport=wso2_server.transport, sleep=_no_sleep,
        )

        assert response["Status"] == "FAILED"
        assert response["Reason"].startswith("Invalid application resource properties")
        assert wso2_server.calls == []
        assert secret_store.reads == []

    @pytest.mark.asyncio
    async def test_lint_failure_fails_before_network(self, settings, secret_store, wso2_server, api_event):
        api_event["ResourceProperties"]["openapiDocument"]["paths"]["/pets"]["get"].pop("responses")

        response = await handle_event(
            api_event, settings=settings, secret_store=secret_store,
            transport=wso2_server.transport, sleep=_no_sleep,
        )

        assert response["Status"] == "FAILED"
        assert "'responses' is a required property" in response["Reason"]
        assert wso2_server.calls == []

    @pytest.mark.asyncio
    async def test_failure_keeps_physical_id(self, settings, secret_store, wso2_server, application_event):
        application_event["RequestType"] = "Update"
        application_event["PhysicalResourceId"] = "app-1"
        wso2_server.fail("POST", "/oauth2/token", status_code=401)

        response = await handle_event(
            application_event, settings=settings, secret_store=secret_store,
            transport=wso2_server.transport, sleep=_no_sleep,
        )

        assert response["Status"] == "FAILED"
        assert response["PhysicalResourceId"] == "app-1"

    @pytest.mark.asyncio
    async def test_reason_is_truncated(self, secret_store, wso2_server, application_event):
        settings = Settings(log_format="text", managed_tag="", reason_max_length=40)
        application_event["ResourceType"] = "Custom::" + "X" * 100

        response = await handle_event(
            application_event, settings=settings, secret_store=secret_store,
            transport=wso2_server.transport, sleep=_no_sleep,
        )

        assert len(response["Reason"]) == 40
        assert response["Reason"].endswith("...")


class TestInvalidSettings:
    """Test that broken process settings are reported, not raised."""

    @pytest.mark.asyncio
    async def test_handle_event_reports_invalid_settings(
        self, monkeypatch, secret_store, wso2_server, application_event
    ):
        monkeypatch.setenv("LOG_LEVEL", "verbose")

        response = await handle_event(
            application_event, secret_store=secret_store,
            transport=wso2_server.transport, sleep=_no_sleep,
        )

        assert response["Status"] == "FAILED"
        assert response["PhysicalResourceId"] == "failed-req-app-1"
        assert "log_level" in response["Reason"]
        assert wso2_server.calls == []

    def test_lambda_handler_reports_invalid_settings(self, monkeypatch, application_event):
        monkeypatch.setenv("LOG_LEVEL", "verbose")

        response = lambda_handler(application_event)

        assert response["Status"] == "FAILED"
        assert "Invalid log level" in response["Reason"]


class TestVerification:
    """Test read-after-write divergence handling."""

    @pytest.mark.asyncio
    async def test_divergence_is_advisory_by_default(
        self, settings, secret_store, wso2_server, application_event
    ):
        wso2_server.next_id("application", "app-1")
        transport = _drifting_transport(
            wso2_server, f"{STORE}/applications/app-1", throttlingPolicy="Bronze"
        )

        response = await handle_event(
            application_event, settings=settings, secret_store=secret_store,
            transport=transport, sleep=_no_sleep,
        )

        assert response["Status"] == "SUCCESS"
        assert wso2_server.count("GET", f"{STORE}/applications/app-1") == 1

    @pytest.mark.asyncio
    async def test_divergence_fails_with_strict_verification(
        self, secret_store, wso2_server, application_event
    ):
        settings = Settings(log_format="text", managed_tag="", strict_verification=True)
        wso2_server.next_id("application", "app-1")
        transport = _drifting_transport(
            wso2_server, f"{STORE}/applications/app-1", throttlingPolicy="Bronze"
        )
        application_event["ResourceProperties"]["retryOptions"] = {
            "checkRetries": {"numOfAttempts": 3}
        }
        observer = RecordingObserver()

        response = await handle_event(
            application_event, settings=settings, secret_store=secret_store,
            transport=transport, retry_observer=observer, sleep=_no_sleep,
        )

        assert response["Status"] == "FAILED"
        assert "doesn't match the submitted contents: throttlingPolicy" in response["Reason"]
        assert wso2_server.count("GET", f"{STORE}/applications/app-1") == 3
        assert [a.kind for a in observer.attempts] == [RetryKind.CHECK, RetryKind.CHECK]
        assert [a.attempt_number for a in observer.attempts] == [1, 2]


class TestEndpointUrl:
    """Test store endpoint URL selection."""

    def test_only_gateway_environments_are_considered(self):
        store_api = {
            "endpointURLs": [
                {"environmentName": "Internal", "URLs": {"https": "https://internal"}},
                {"environmentName": "Production and Sandbox", "URLs": {"https": "https://gw"}},
            ]
        }
        assert endpoint_url_for(store_api, ["Production and Sandbox"]) == "https://gw"

    def test_last_matching_environment_wins(self):
        store_api = {
            "endpointURLs": [
                {"environmentName": "Production", "URLs": {"https": "https://prod"}},
                {"environmentName": "Sandbox", "URLs": {"https": "https://sandbox"}},
                {"environmentName": "Sandbox", "URLs": {"http": "http://sandbox"}},
            ]
        }
        assert endpoint_url_for(store_api, ["Production", "Sandbox"]) == "https://sandbox"

    def test_default_version_url_fallback(self):
        store_api = {
            "endpointURLs": [
                {
                    "environmentName": "Production and Sandbox",
                    "URLs": {"http": "http://gw"},
                    "defaultVersionURLs": {"https": "https://gw/default"},
                }
            ]
        }
        assert endpoint_url_for(store_api, ["Production and Sandbox"]) == "https://gw/default"

    def test_no_matching_environment(self):
        assert endpoint_url_for({"endpointURLs": []}, ["Production and Sandbox"]) is None
        assert endpoint_url_for({}, ["Production and Sandbox"]) is None
