# SPDX-License-Identifier: Apache-2.0
# Copyright 2024-2026 CAB Ingénierie / Christophe ABOULICAM
"""Locate at most one WSO2 resource per identifier.

Direct reads by id map 404 to "not found". Searches go to the server first
and are then filtered locally on the exact identity fields: WSO2 search is
fuzzy (``name:pet`` also matches ``petstore``) and, for super-tenant users,
returns APIs of every tenant.
"""

from typing import Awaitable, Callable, Optional

import structlog

from ..clients.wso2_client import Wso2Client
from ..errors import AmbiguousMatchError, TransientRemoteError
from ..models import (
    ApiSearchCriteria,
    ApplicationSearchCriteria,
    ResourceIdentifier,
    SubscriptionSearchCriteria,
)

logger = structlog.get_logger(__name__)


def api_matches(candidate: dict, criteria: ApiSearchCriteria, tenant: Optional[str]) -> bool:
    """Exact identity check for an API returned by a search.

    ``context`` may come back tenant-qualified (``/t/{tenant}/petstore``),
    so it must end with the requested context and carry the right prefix.
    """
    if candidate.get("name") != criteria.name or candidate.get("version") != criteria.version:
        return False
    context = candidate.get("context")
    if not context or not context.endswith(criteria.context):
        return False
    if tenant:
        return context.startswith(f"/t/{tenant}/")
    return not context.startswith("/t/")


def application_matches(candidate: dict, criteria: ApplicationSearchCriteria) -> bool:
    return candidate.get("name") == criteria.name


def subscription_matches(candidate: dict, criteria: SubscriptionSearchCriteria) -> bool:
    return (
        candidate.get("apiId") == criteria.api_id
        and candidate.get("applicationId") == criteria.application_id
    )


class ResourceFinder:
    """Resource lookups for one WSO2 session."""

    def __init__(self, client: Wso2Client, tenant: Optional[str] = None):
        self.client = client
        self.tenant = tenant

    async def _get_or_none(
        self, read: Callable[[str], Awaitable[dict]], resource_id: str, kind: str
    ) -> Optional[dict]:
        try:
            return await read(resource_id)
        except TransientRemoteError as e:
            if e.is_not_found:
                logger.info(f"WSO2 {kind} not found by id", resource_id=resource_id)
                return None
            raise

    def _single_match(
        self, kind: str, criteria: dict, candidates: list[dict], matches: list[dict]
    ) -> Optional[dict]:
        if len(matches) > 1:
            raise AmbiguousMatchError(kind, criteria, len(matches), tenant=self.tenant)
        if not matches:
            logger.info(
                f"No WSO2 {kind} matches the search criteria",
                criteria=criteria,
                candidates=len(candidates),
            )
            return None
        return matches[0]

    async def find_api(
        self, identifier: ResourceIdentifier[ApiSearchCriteria]
    ) -> Optional[dict]:
        """Find one API by id or by name + version + context."""
        if identifier.id is not None:
            return await self._get_or_none(self.client.get_api, identifier.id, "API")

        criteria = identifier.search_criteria
        candidates = await self.client.search_apis(criteria.query)
        matches = [c for c in candidates if api_matches(c, criteria, self.tenant)]
        return self._single_match("API", identifier.describe(), candidates, matches)

    async def find_application(
        self, identifier: ResourceIdentifier[ApplicationSearchCriteria]
    ) -> Optional[dict]:
        """Find one Application by id or by name."""
        if identifier.id is not None:
            return await self._get_or_none(
                self.client.get_application, identifier.id, "Application"
            )

        criteria = identifier.search_criteria
        candidates = await self.client.search_applications(criteria.name)
        matches = [c for c in candidates if application_matches(c, criteria)]
        return self._single_match("Application", identifier.describe(), candidates, matches)

    async def find_subscription(
        self, identifier: ResourceIdentifier[SubscriptionSearchCriteria]
    ) -> Optional[dict]:
        """Find one Subscription by id or by its API/Application pair."""
        if identifier.id is not None:
            return await self._get_or_none(
                self.client.get_subscription, identifier.id, "Subscription"
            )

        criteria = identifier.search_criteria
        candidates = await self.client.search_subscriptions(
            criteria.api_id, criteria.application_id
        )
        matches = [c for c in candidates if subscription_matches(c, criteria)]
        return self._single_match("Subscription", identifier.describe(), candidates, matches)
