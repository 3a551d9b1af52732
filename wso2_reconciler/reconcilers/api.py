# SPDX-License-Identifier: Apache-2.0
# Copyright 2024-2026 CAB Ingénierie / Christophe ABOULICAM
"""API reconciler (publisher v1).

On top of the generic create/update cycle, an API carries two more pieces
of state that WSO2 stores separately from the API definition:
- the OpenAPI document (``/apis/{id}/swagger``)
- the lifecycle status (changed through ``/apis/change-lifecycle``)

Both are converged after the definition, in that order, and both are
always verified: an API published with a stale document is worse than a
failed deployment.
"""

from typing import Any, Optional

import structlog

from ..clients.wso2_client import Wso2Client
from ..errors import ConvergenceError, LifecycleMismatchError
from ..models import ApiDefinition, ApiSearchCriteria, ResourceIdentifier
from ..openapi import normalize_cors_configuration, openapi_similarity_failures, to_wire_payload
from ..services.finder import ResourceFinder
from ..services.retry import RetryExecutors
from .base import ResourceReconciler
from .diff import normalize_operations, tenant_context_normalizer

logger = structlog.get_logger(__name__)

LIFECYCLE_ACTIONS: dict[str, str] = {
    "PUBLISHED": "Publish",
    "PROTOTYPED": "Deploy as a Prototype",
    "CREATED": "Demote to Created",
    "BLOCKED": "Block",
    "DEPRECATED": "Deprecate",
    "RETIRED": "Retire",
}

# lifeCycleStatus is excluded: it is converged by its own step
API_COMPARED_ATTRIBUTES = (
    "name",
    "context",
    "version",
    "description",
    "provider",
    "isDefaultVersion",
    "type",
    "transport",
    "tags",
    "policies",
    "apiThrottlingPolicy",
    "authorizationHeader",
    "securityScheme",
    "maxTps",
    "visibility",
    "visibleRoles",
    "visibleTenants",
    "subscriptionAvailability",
    "subscriptionAvailableTenants",
    "accessControl",
    "accessControlRoles",
    "businessInformation",
    "corsConfiguration",
    "additionalProperties",
    "endpointConfig",
    "endpointImplementationType",
    "gatewayEnvironments",
    "operations",
    "categories",
    "enableSchemaValidation",
    "enableStore",
    "responseCachingEnabled",
    "cacheTimeout",
)


def endpoint_url_for(store_api: dict, gateway_environments: list[str]) -> Optional[str]:
    """https URL of the store endpoint deployed on one of our gateways.

    When several of our gateway environments expose the API, the last one
    listed by the store wins.
    """
    endpoint_url = None
    for endpoint in store_api.get("endpointURLs") or []:
        if endpoint.get("environmentName") not in gateway_environments:
            continue
        urls = endpoint.get("URLs") or {}
        default_urls = endpoint.get("defaultVersionURLs") or {}
        endpoint_url = urls.get("https") or default_urls.get("https") or endpoint_url
    return endpoint_url


class ApiReconciler(ResourceReconciler):
    """Reconciles a prepared ApiDefinition and its OpenAPI 3.0 document."""

    kind = "API"
    id_field = "id"
    compared_attributes = API_COMPARED_ATTRIBUTES
    normalizers = {
        "corsConfiguration": normalize_cors_configuration,
        "operations": normalize_operations,
    }

    def __init__(
        self,
        client: Wso2Client,
        finder: ResourceFinder,
        retries: RetryExecutors,
        definition: ApiDefinition,
        document: dict[str, Any],
        lifecycle_status: str = "PUBLISHED",
        fail_if_exists: bool = False,
        strict_verification: bool = False,
    ):
        super().__init__(client, finder, retries, fail_if_exists, strict_verification)
        self.definition = definition
        self.normalizers = {
            **self.normalizers,
            "context": tenant_context_normalizer(finder.tenant),
        }
        self.document = document
        self.lifecycle_status = lifecycle_status
        self._payload = to_wire_payload(definition)
        # the lifecycle step owns the status; a definition value is ignored on PUT
        self._payload.pop("lifeCycleStatus", None)

    async def locate(self) -> Optional[dict]:
        identifier = ResourceIdentifier[ApiSearchCriteria](
            search_criteria=self.definition.search_criteria()
        )
        return await self.finder.find_api(identifier)

    def desired_payload(self) -> dict[str, Any]:
        return self._payload

    async def create(self) -> dict:
        return await self.client.create_api(self._payload)

    async def update(self, resource_id: str) -> dict:
        return await self.client.update_api(resource_id, {**self._payload, "id": resource_id})

    async def read(self, resource_id: str) -> dict:
        return await self.client.get_api(resource_id)

    async def remove(self, resource_id: str) -> None:
        await self.client.delete_api(resource_id)

    async def after_upsert(self, resource_id: str, current: dict, created: bool) -> dict[str, Any]:
        await self.sync_document(resource_id, created)
        status = await self.sync_lifecycle(resource_id, current.get("lifeCycleStatus"))

        data: dict[str, Any] = {}
        if status == "PUBLISHED":
            endpoint_url = await self.find_endpoint_url(resource_id)
            if endpoint_url:
                data["EndpointUrl"] = endpoint_url
        return data

    # --- OpenAPI document ---

    async def _document_failures(self, resource_id: str) -> list[str]:
        current = await self.client.get_api_document(resource_id)
        return openapi_similarity_failures(self.document, current)

    async def sync_document(self, resource_id: str, created: bool) -> None:
        """Upload the OpenAPI document unless WSO2 already holds a similar one."""
        if not created and not await self._document_failures(resource_id):
            logger.info("API OpenAPI document is up to date", resource_id=resource_id)
            return

        await self.retries.mutation.execute(
            lambda: self.client.update_api_document(resource_id, self.document),
            f"update API document {resource_id}",
        )

        async def check() -> None:
            failures = await self._document_failures(resource_id)
            if failures:
                raise ConvergenceError("API document", resource_id, failures)

        await self.retries.check.execute(check, f"verify API document {resource_id}")
        logger.info("API OpenAPI document updated", resource_id=resource_id)

    # --- Lifecycle ---

    async def sync_lifecycle(self, resource_id: str, current_status: Optional[str]) -> str:
        """Move the API to the requested lifecycle status; returns the final status."""
        target = self.lifecycle_status
        if current_status == target:
            logger.info("API lifecycle status is up to date", resource_id=resource_id, status=target)
            return target

        action = LIFECYCLE_ACTIONS[target]
        await self.retries.mutation.execute(
            lambda: self.client.change_api_lifecycle(resource_id, action),
            f"change API {resource_id} lifecycle to {target}",
        )

        async def check() -> str:
            api = await self.client.get_api(resource_id)
            status = api.get("lifeCycleStatus")
            if status != target:
                raise LifecycleMismatchError(resource_id, target, status)
            return status

        status = await self.retries.check.execute(
            check, f"verify API {resource_id} lifecycle status"
        )
        logger.info(
            "API lifecycle status changed",
            resource_id=resource_id,
            previous=current_status,
            status=status,
            action=action,
        )
        return status

    # --- Store ---

    async def find_endpoint_url(self, resource_id: str) -> Optional[str]:
        # the store may lag behind the publisher right after a publish
        store_api = await self.retries.check.execute(
            lambda: self.client.get_store_api(resource_id), f"read store API {resource_id}"
        )
        endpoint_url = endpoint_url_for(store_api, self.definition.gateway_environments or [])
        if endpoint_url is None:
            logger.warning(
                "No store endpoint URL found for the API gateway environments",
                resource_id=resource_id,
                gateway_environments=self.definition.gateway_environments,
            )
        return endpoint_url
