# SPDX-License-Identifier: Apache-2.0
# Copyright 2024-2026 CAB Ingénierie / Christophe ABOULICAM
"""WSO2 API (publisher v1) definition models."""

from typing import Any, Literal

from pydantic import Field

from .common import WireModel

LifecycleStatus = Literal["CREATED", "PROTOTYPED", "PUBLISHED", "BLOCKED", "DEPRECATED", "RETIRED"]


class ApiOperation(WireModel):
    """One path + verb entry of an API as WSO2 stores it."""

    target: str
    verb: str
    auth_type: str | None = "Any"
    throttling_policy: str | None = "Unlimited"


class CorsConfiguration(WireModel):
    """API CORS settings. WSO2 stores the two flags as "true"/"false" strings."""

    cors_configuration_enabled: bool | str | None = None
    access_control_allow_origins: list[str] | None = None
    access_control_allow_credentials: bool | str | None = None
    access_control_allow_headers: list[str] | None = None
    access_control_allow_methods: list[str] | None = None


class BusinessInformation(WireModel):
    business_owner: str | None = None
    business_owner_email: str | None = None
    technical_owner: str | None = None
    technical_owner_email: str | None = None


class MaxTps(WireModel):
    production: int | None = None
    sandbox: int | None = None


class ApiSearchCriteria(WireModel):
    """Identity of an API: name + version + context."""

    name: str
    version: str
    context: str

    @property
    def query(self) -> str:
        return f"name:{self.name} version:{self.version} context:{self.context}"


class ApiDefinition(WireModel):
    """Desired state of a WSO2 API.

    Identity fields (name, version, context) are optional here so that
    validate_api_definition can name the missing one instead of failing
    inside pydantic.
    """

    id: str | None = None
    name: str | None = None
    context: str | None = None
    version: str | None = None
    description: str | None = None
    provider: str | None = None
    life_cycle_status: LifecycleStatus | None = None
    is_default_version: bool | None = None
    type: str | None = None
    transport: list[str] | None = None
    tags: list[str] | None = None
    policies: list[str] | None = None
    api_throttling_policy: str | None = None
    authorization_header: str | None = None
    security_scheme: list[str] | None = None
    max_tps: MaxTps | None = None
    visibility: Literal["PUBLIC", "PRIVATE", "RESTRICTED"] | None = None
    visible_roles: list[str] | None = None
    visible_tenants: list[str] | None = None
    subscription_availability: Literal[
        "CURRENT_TENANT", "ALL_TENANTS", "SPECIFIC_TENANTS"
    ] | None = None
    subscription_available_tenants: list[str] | None = None
    access_control: Literal["NONE", "RESTRICTED"] | None = None
    access_control_roles: list[str] | None = None
    business_information: BusinessInformation | None = None
    cors_configuration: CorsConfiguration | None = None
    additional_properties: dict[str, Any] | None = None
    endpoint_config: dict[str, Any] | None = None
    endpoint_implementation_type: Literal["INLINE", "ENDPOINT", "MOCKED_OAS"] | None = None
    gateway_environments: list[str] | None = None
    operations: list[ApiOperation] | None = None
    categories: list[str] | None = None
    enable_schema_validation: bool | None = None
    enable_store: bool | None = None
    response_caching_enabled: bool | None = None
    cache_timeout: int | None = Field(None, ge=0)

    def search_criteria(self) -> ApiSearchCriteria:
        return ApiSearchCriteria(name=self.name, version=self.version, context=self.context)
