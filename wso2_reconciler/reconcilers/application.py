# SPDX-License-Identifier: Apache-2.0
# Copyright 2024-2026 CAB Ingénierie / Christophe ABOULICAM
"""Application reconciler (store v1)."""

from typing import Any, Optional

from ..clients.wso2_client import Wso2Client
from ..models import ApplicationDefinition, ApplicationSearchCriteria, ResourceIdentifier
from ..services.finder import ResourceFinder
from ..services.retry import RetryExecutors
from .base import ResourceReconciler

APPLICATION_COMPARED_ATTRIBUTES = (
    "name",
    "throttlingPolicy",
    "description",
    "tokenType",
    "attributes",
    "groups",
    "subscriptionScopes",
)


class ApplicationReconciler(ResourceReconciler):
    kind = "Application"
    id_field = "applicationId"
    compared_attributes = APPLICATION_COMPARED_ATTRIBUTES

    def __init__(
        self,
        client: Wso2Client,
        finder: ResourceFinder,
        retries: RetryExecutors,
        definition: ApplicationDefinition,
        fail_if_exists: bool = False,
        strict_verification: bool = False,
    ):
        super().__init__(client, finder, retries, fail_if_exists, strict_verification)
        self.definition = definition
        self._payload = definition.to_wire()

    async def locate(self) -> Optional[dict]:
        identifier = ResourceIdentifier[ApplicationSearchCriteria](
            search_criteria=self.definition.search_criteria()
        )
        return await self.finder.find_application(identifier)

    def desired_payload(self) -> dict[str, Any]:
        return self._payload

    async def create(self) -> dict:
        return await self.client.create_application(self._payload)

    async def update(self, resource_id: str) -> dict:
        return await self.client.update_application(
            resource_id, {**self._payload, "applicationId": resource_id}
        )

    async def read(self, resource_id: str) -> dict:
        return await self.client.get_application(resource_id)

    async def remove(self, resource_id: str) -> None:
        await self.client.delete_application(resource_id)
