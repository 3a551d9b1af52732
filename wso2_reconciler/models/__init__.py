# SPDX-License-Identifier: Apache-2.0
# Copyright 2024-2026 CAB Ingénierie / Christophe ABOULICAM
"""Pydantic models for WSO2 resources and custom resource events."""

from .api import (
    ApiDefinition,
    ApiOperation,
    ApiSearchCriteria,
    BusinessInformation,
    CorsConfiguration,
    LifecycleStatus,
    MaxTps,
)
from .application import ApplicationDefinition, ApplicationSearchCriteria
from .common import (
    DEFAULT_CHECK_RETRY_POLICY,
    DEFAULT_MUTATION_RETRY_POLICY,
    OperationStatus,
    RemoteConfig,
    RequestType,
    ResourceIdentifier,
    ResourceKind,
    RetryOptions,
    RetryPolicy,
    RetryPolicyOverrides,
    WireModel,
)
from .events import (
    RESOURCE_TYPE_KINDS,
    ApiResourceProperties,
    ApplicationResourceProperties,
    BaseResourceProperties,
    CustomResourceEvent,
    CustomResourceResponse,
    ResourceProperties,
    SubscriptionResourceProperties,
    parse_resource_properties,
)
from .subscription import SubscriptionDefinition, SubscriptionSearchCriteria

__all__ = [
    "ApiDefinition",
    "ApiOperation",
    "ApiSearchCriteria",
    "BusinessInformation",
    "CorsConfiguration",
    "LifecycleStatus",
    "MaxTps",
    "ApplicationDefinition",
    "ApplicationSearchCriteria",
    "SubscriptionDefinition",
    "SubscriptionSearchCriteria",
    "DEFAULT_CHECK_RETRY_POLICY",
    "DEFAULT_MUTATION_RETRY_POLICY",
    "OperationStatus",
    "RemoteConfig",
    "RequestType",
    "ResourceIdentifier",
    "ResourceKind",
    "RetryOptions",
    "RetryPolicy",
    "RetryPolicyOverrides",
    "WireModel",
    "RESOURCE_TYPE_KINDS",
    "ApiResourceProperties",
    "ApplicationResourceProperties",
    "BaseResourceProperties",
    "CustomResourceEvent",
    "CustomResourceResponse",
    "ResourceProperties",
    "SubscriptionResourceProperties",
    "parse_resource_properties",
]
