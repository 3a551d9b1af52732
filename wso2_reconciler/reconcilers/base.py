# SPDX-License-Identifier: Apache-2.0
# Copyright 2024-2026 CAB Ingénierie / Christophe ABOULICAM
"""Abstract reconciler for WSO2 resources.

Every resource kind (API, Application, Subscription) converges the same way:

    locate -> guard -> diff -> mutate -> verify -> post-steps

Subclasses provide the kind-specific calls; the state machine lives in
``ResourceReconciler.reconcile``. All operations are idempotent: running the
same request twice makes no mutation the second time.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional

import structlog

from ..clients.wso2_client import Wso2Client
from ..errors import (
    AlreadyExistsError,
    ConvergenceError,
    RemoteResponseError,
    TransientRemoteError,
    ValidationError,
)
from ..models import OperationStatus, RequestType
from ..services.finder import ResourceFinder
from ..services.retry import RetryExecutors
from .diff import Normalizer, diff_attributes

logger = structlog.get_logger(__name__)


@dataclass
class ReconcileResult:
    """Standardized result of one reconciliation."""

    physical_id: str
    status: OperationStatus = OperationStatus.SUCCESS
    data: dict[str, Any] = field(default_factory=dict)
    reason: Optional[str] = None


class ResourceReconciler(ABC):
    """Converges one WSO2 resource towards its desired definition."""

    #: Display name used in logs and errors ("API", "Application"...)
    kind: str = "resource"
    #: Attribute of the WSO2 representation holding the resource id
    id_field: str = "id"
    #: Wire attributes compared between desired and current state
    compared_attributes: tuple[str, ...] = ()
    normalizers: dict[str, Normalizer] = {}

    def __init__(
        self,
        client: Wso2Client,
        finder: ResourceFinder,
        retries: RetryExecutors,
        fail_if_exists: bool = False,
        strict_verification: bool = False,
    ):
        self.client = client
        self.finder = finder
        self.retries = retries
        self.fail_if_exists = fail_if_exists
        self.strict_verification = strict_verification

    # --- Kind-specific calls ---

    @abstractmethod
    async def locate(self) -> Optional[dict]:
        """Find the current representation of the resource, or None."""
        ...

    @abstractmethod
    def desired_payload(self) -> dict[str, Any]:
        """Wire payload of the desired state (POST body, diff reference)."""
        ...

    @abstractmethod
    async def create(self) -> dict:
        ...

    @abstractmethod
    async def update(self, resource_id: str) -> dict:
        ...

    @abstractmethod
    async def read(self, resource_id: str) -> dict:
        ...

    @abstractmethod
    async def remove(self, resource_id: str) -> None:
        ...

    async def after_upsert(self, resource_id: str, current: dict, created: bool) -> dict[str, Any]:
        """Post-steps run once the resource exists; returns extra result data."""
        return {}

    # --- State machine ---

    def diff(self, current: dict) -> list[str]:
        return diff_attributes(
            self.desired_payload(), current, self.compared_attributes, self.normalizers
        )

    def _id_from(self, response: Any, operation: str) -> str:
        resource_id = response.get(self.id_field) if isinstance(response, dict) else None
        if not resource_id:
            raise RemoteResponseError(
                f"{operation} {self.kind} response has no '{self.id_field}'",
                details={"response": response},
            )
        return str(resource_id)

    async def reconcile(
        self, request_type: RequestType, physical_resource_id: Optional[str] = None
    ) -> ReconcileResult:
        """Run one Create, Update or Delete request to completion.

        Raises:
            ReconcilerError: on any failure; nothing is swallowed here
        """
        if request_type == RequestType.DELETE:
            await self.delete(physical_resource_id)
            return ReconcileResult(physical_id=physical_resource_id)

        current = await self.locate()

        if current is not None and request_type == RequestType.CREATE and self.fail_if_exists:
            raise AlreadyExistsError(self.kind, str(current.get(self.id_field)))

        if current is None and request_type == RequestType.UPDATE:
            logger.warning(
                f"WSO2 {self.kind} not found on Update, creating it",
                physical_resource_id=physical_resource_id,
            )

        created = current is None
        if created:
            response = await self.retries.mutation.execute(self.create, f"create {self.kind}")
            resource_id = self._id_from(response, "Create")
            logger.info(f"WSO2 {self.kind} created", resource_id=resource_id)
            current = await self.verify(resource_id)
        else:
            resource_id = str(current[self.id_field])
            failed_checks = self.diff(current)
            if failed_checks:
                logger.info(
                    f"WSO2 {self.kind} differs from its definition, updating",
                    resource_id=resource_id,
                    changed=failed_checks,
                )
                response = await self.retries.mutation.execute(
                    lambda: self.update(resource_id), f"update {self.kind} {resource_id}"
                )
                resource_id = self._id_from(response, "Update")
                current = await self.verify(resource_id)
            else:
                logger.info(f"WSO2 {self.kind} is up to date", resource_id=resource_id)

        data = {"Id": resource_id}
        data.update(await self.after_upsert(resource_id, current, created))
        return ReconcileResult(physical_id=resource_id, data=data)

    async def verify(self, resource_id: str) -> dict:
        """Read the resource back until the server returns it.

        Divergent attributes are fatal only with ``strict_verification``.
        """

        async def check() -> dict:
            current = await self.read(resource_id)
            failed_checks = self.diff(current)
            if failed_checks:
                if self.strict_verification:
                    raise ConvergenceError(self.kind, resource_id, failed_checks)
                logger.warning(
                    f"WSO2 {self.kind} read back differs from the submitted definition",
                    resource_id=resource_id,
                    failed_checks=failed_checks,
                )
            return current

        return await self.retries.check.execute(check, f"verify {self.kind} {resource_id}")

    async def delete(self, resource_id: Optional[str]) -> None:
        if not resource_id:
            raise ValidationError(
                f"Cannot delete WSO2 {self.kind}: PhysicalResourceId is empty",
                field="PhysicalResourceId",
            )

        async def remove() -> None:
            try:
                await self.remove(resource_id)
            except TransientRemoteError as e:
                if not e.is_not_found:
                    raise
                logger.info(f"WSO2 {self.kind} already deleted", resource_id=resource_id)
                return
            logger.info(f"WSO2 {self.kind} deleted", resource_id=resource_id)

        await self.retries.mutation.execute(remove, f"delete {self.kind} {resource_id}")
