# SPDX-License-Identifier: Apache-2.0
# Copyright 2024-2026 CAB Ingénierie / Christophe ABOULICAM
"""CloudFormation custom resource entry point.

One event in, one response out:

    event -> parse -> (API only) prepare definition -> open WSO2 session
          -> reconcile -> {PhysicalResourceId, Status, Data, Reason}

Every failure is caught here and reported as a FAILED response; nothing
is raised to the caller.
"""

import asyncio
import uuid
from typing import Any, Optional, Union

import httpx
import structlog
from pydantic import ValidationError as PydanticValidationError

from ..clients.wso2_client import Wso2Client
from ..config import Settings, get_settings
from ..errors import ReconcilerError, ValidationError
from ..logging_config import bind_context, clear_context, configure_logging
from ..models import (
    ApiResourceProperties,
    ApplicationResourceProperties,
    CustomResourceEvent,
    CustomResourceResponse,
    OperationStatus,
    RequestType,
    ResourceKind,
    ResourceProperties,
    RetryOptions,
    SubscriptionResourceProperties,
    parse_resource_properties,
)
from ..openapi import prepare_api_definition
from ..reconcilers import (
    ApiReconciler,
    ApplicationReconciler,
    ReconcileResult,
    ResourceReconciler,
    SubscriptionReconciler,
)
from ..services.finder import ResourceFinder
from ..services.retry import RetryExecutors, RetryObserver, SleepFunc
from ..services.session import Wso2SessionResolver
from ..services.vault_client import SecretStore, VaultClient

logger = structlog.get_logger(__name__)

# used when the settings themselves cannot be loaded
DEFAULT_REASON_MAX_LENGTH = Settings.model_fields["reason_max_length"].default


def _resolve_kind(
    event: CustomResourceEvent, kind: Optional[Union[ResourceKind, str]]
) -> ResourceKind:
    if kind is not None:
        try:
            return ResourceKind(kind)
        except ValueError as e:
            raise ValidationError(f"Unknown resource kind '{kind}'", field="kind") from e
    resolved = event.resource_kind
    if resolved is None:
        raise ValidationError(
            f"Cannot determine the resource kind from ResourceType '{event.resource_type}'",
            field="ResourceType",
        )
    return resolved


def _parse_properties(kind: ResourceKind, raw: dict[str, Any]) -> ResourceProperties:
    try:
        return parse_resource_properties(kind, raw)
    except PydanticValidationError as e:
        raise ValidationError(
            f"Invalid {kind.value} resource properties: {e}",
            details={"errors": e.errors(include_url=False, include_context=False)},
        ) from e


def build_reconciler(
    properties: ResourceProperties,
    client: Wso2Client,
    retries: RetryExecutors,
    settings: Settings,
    prepared: Optional[tuple] = None,
) -> ResourceReconciler:
    """Pick the reconciler matching the resource properties."""
    finder = ResourceFinder(client, tenant=properties.remote_config.tenant)
    common = {
        "fail_if_exists": properties.fail_if_exists,
        "strict_verification": settings.strict_verification,
    }

    if isinstance(properties, ApiResourceProperties):
        if prepared is None:
            prepared = (properties.resource_definition, properties.openapi_document)
        definition, document = prepared
        return ApiReconciler(
            client,
            finder,
            retries,
            definition=definition,
            document=document,
            lifecycle_status=properties.lifecycle_status or settings.default_lifecycle_status,
            **common,
        )
    if isinstance(properties, ApplicationResourceProperties):
        return ApplicationReconciler(
            client, finder, retries, definition=properties.resource_definition, **common
        )
    if isinstance(properties, SubscriptionResourceProperties):
        return SubscriptionReconciler(
            client,
            finder,
            retries,
            definition=properties.resource_definition,
            api=properties.api_identifier(),
            application=properties.application_identifier(),
            **common,
        )
    raise ValidationError(f"Unsupported resource properties {type(properties).__name__}")


async def reconcile_event(
    event: CustomResourceEvent,
    kind: ResourceKind,
    settings: Settings,
    secret_store: SecretStore,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    retry_observer: Optional[RetryObserver] = None,
    sleep: SleepFunc = asyncio.sleep,
) -> ReconcileResult:
    """Reconcile one parsed event. Raises on failure."""
    properties = _parse_properties(kind, event.resource_properties)

    # lint and defaults run before any network call
    prepared = None
    if isinstance(properties, ApiResourceProperties) and event.request_type != RequestType.DELETE:
        prepared = prepare_api_definition(
            properties.resource_definition,
            properties.openapi_document,
            managed_tag=settings.managed_tag,
        )

    mutation_policy, check_policy = (properties.retry_options or RetryOptions()).resolve()
    retries = RetryExecutors.from_policies(
        mutation_policy, check_policy, observer=retry_observer, sleep=sleep
    )

    resolver = Wso2SessionResolver(secret_store, settings=settings, transport=transport)
    client = await resolver.open_client(properties.remote_config)
    async with client:
        reconciler = build_reconciler(properties, client, retries, settings, prepared)
        return await reconciler.reconcile(event.request_type, event.physical_resource_id)


def _truncate(message: str, max_length: int) -> str:
    if len(message) <= max_length:
        return message
    return message[: max_length - 3] + "..."


async def handle_event(
    event: dict[str, Any],
    kind: Optional[Union[ResourceKind, str]] = None,
    *,
    settings: Optional[Settings] = None,
    secret_store: Optional[SecretStore] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    retry_observer: Optional[RetryObserver] = None,
    sleep: SleepFunc = asyncio.sleep,
) -> dict[str, Any]:
    """Handle one custom resource event and build the provider response.

    Args:
        event: Raw CloudFormation custom resource event
        kind: Resource kind; taken from ResourceType when omitted
        settings: Settings override (defaults to get_settings())
        secret_store: Credentials store (defaults to Vault)
        transport: httpx transport override, used by tests
        retry_observer: Receives every retry attempt
        sleep: Coroutine used between retries

    Returns:
        ``{PhysicalResourceId, Status, Data?, Reason?}``
    """
    physical_id = event.get("PhysicalResourceId")
    request_id = event.get("RequestId")
    reason_max_length = DEFAULT_REASON_MAX_LENGTH

    try:
        settings = settings or get_settings()
        reason_max_length = settings.reason_max_length
        parsed = CustomResourceEvent.model_validate(event)
        bind_context(
            request_id=parsed.request_id,
            request_type=parsed.request_type.value,
            resource_type=parsed.resource_type,
            logical_resource_id=parsed.logical_resource_id,
        )
        resource_kind = _resolve_kind(parsed, kind)
        logger.info(
            "Custom resource request received",
            kind=resource_kind.value,
            physical_resource_id=parsed.physical_resource_id,
        )

        result = await reconcile_event(
            parsed,
            resource_kind,
            settings,
            secret_store or VaultClient.from_settings(settings),
            transport=transport,
            retry_observer=retry_observer,
            sleep=sleep,
        )
        response = CustomResourceResponse(
            physical_resource_id=result.physical_id,
            status=result.status,
            data=result.data,
        )
        logger.info("Custom resource request succeeded", physical_resource_id=result.physical_id)
    except Exception as e:
        if isinstance(e, ReconcilerError):
            logger.exception("Custom resource request failed", **e.to_dict())
        else:
            logger.exception("Custom resource request failed", error=str(e))
        response = CustomResourceResponse(
            physical_resource_id=physical_id or f"failed-{request_id or uuid.uuid4()}",
            status=OperationStatus.FAILED,
            reason=_truncate(str(e) or type(e).__name__, reason_max_length),
        )
    finally:
        clear_context()

    return response.to_event_response()


def lambda_handler(event: dict[str, Any], context: Any = None) -> dict[str, Any]:
    """Synchronous AWS Lambda entry point."""
    try:
        configure_logging()
    except Exception:
        # invalid settings are reported as FAILED by handle_event
        logger.exception("Logging configuration failed, using structlog defaults")
    return asyncio.run(handle_event(event))
