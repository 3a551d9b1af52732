# SPDX-License-Identifier: Apache-2.0
# Copyright 2024-2026 CAB Ingénierie / Christophe ABOULICAM
"""Subscription reconciler (store v1).

A subscription links one API to one Application. Both parents are resolved
first, by id or by search, and the subscription is then located by the
resolved pair: WSO2 allows at most one subscription per pair.
"""

from typing import Any, Optional

import structlog

from ..clients.wso2_client import Wso2Client
from ..errors import ResourceNotFoundError
from ..models import (
    ApiSearchCriteria,
    ApplicationSearchCriteria,
    ResourceIdentifier,
    SubscriptionDefinition,
    SubscriptionSearchCriteria,
)
from ..services.finder import ResourceFinder
from ..services.retry import RetryExecutors
from .base import ResourceReconciler

logger = structlog.get_logger(__name__)

SUBSCRIPTION_COMPARED_ATTRIBUTES = ("apiId", "applicationId", "throttlingPolicy", "status")


class SubscriptionReconciler(ResourceReconciler):
    kind = "Subscription"
    id_field = "subscriptionId"
    compared_attributes = SUBSCRIPTION_COMPARED_ATTRIBUTES

    def __init__(
        self,
        client: Wso2Client,
        finder: ResourceFinder,
        retries: RetryExecutors,
        definition: SubscriptionDefinition,
        api: ResourceIdentifier[ApiSearchCriteria],
        application: ResourceIdentifier[ApplicationSearchCriteria],
        fail_if_exists: bool = False,
        strict_verification: bool = False,
    ):
        super().__init__(client, finder, retries, fail_if_exists, strict_verification)
        self.definition = definition
        self.api = api
        self.application = application
        self.api_id: Optional[str] = None
        self.application_id: Optional[str] = None

    async def resolve_parents(self) -> None:
        """Resolve the API and Application ids the subscription links.

        Raises:
            ResourceNotFoundError: either parent doesn't exist
        """
        api = await self.finder.find_api(self.api)
        if api is None:
            raise ResourceNotFoundError("API", self.api.describe())
        application = await self.finder.find_application(self.application)
        if application is None:
            raise ResourceNotFoundError("Application", self.application.describe())

        self.api_id = str(api["id"])
        self.application_id = str(application["applicationId"])
        logger.debug(
            "Subscription parents resolved",
            api_id=self.api_id,
            application_id=self.application_id,
        )

    async def locate(self) -> Optional[dict]:
        await self.resolve_parents()
        identifier = ResourceIdentifier[SubscriptionSearchCriteria](
            search_criteria=SubscriptionSearchCriteria(
                api_id=self.api_id, application_id=self.application_id
            )
        )
        return await self.finder.find_subscription(identifier)

    def desired_payload(self) -> dict[str, Any]:
        return {
            "apiId": self.api_id,
            "applicationId": self.application_id,
            **self.definition.to_wire(),
        }

    async def create(self) -> dict:
        return await self.client.create_subscription(self.desired_payload())

    async def update(self, resource_id: str) -> dict:
        return await self.client.update_subscription(
            resource_id, {"subscriptionId": resource_id, **self.desired_payload()}
        )

    async def read(self, resource_id: str) -> dict:
        return await self.client.get_subscription(resource_id)

    async def remove(self, resource_id: str) -> None:
        await self.client.delete_subscription(resource_id)

    async def after_upsert(self, resource_id: str, current: dict, created: bool) -> dict[str, Any]:
        return {"ApiId": self.api_id, "ApplicationId": self.application_id}
