# SPDX-License-Identifier: Apache-2.0
# Copyright 2024-2026 CAB Ingénierie / Christophe ABOULICAM
"""CloudFormation custom resource envelope and per-kind resource properties."""

from typing import Annotated, Any, Literal, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator, model_validator

from .api import ApiDefinition, ApiSearchCriteria, LifecycleStatus
from .application import ApplicationDefinition, ApplicationSearchCriteria
from .common import (
    OperationStatus,
    RemoteConfig,
    RequestType,
    ResourceIdentifier,
    ResourceKind,
    RetryOptions,
    WireModel,
)
from .subscription import SubscriptionDefinition

# ResourceType values registered by the CDK constructs
RESOURCE_TYPE_KINDS: dict[str, ResourceKind] = {
    "Custom::Wso2Api": ResourceKind.API,
    "Custom::Wso2Application": ResourceKind.APPLICATION,
    "Custom::Wso2Subscription": ResourceKind.SUBSCRIPTION,
}


class BaseResourceProperties(WireModel):
    """Properties shared by every resource kind."""

    remote_config: RemoteConfig
    retry_options: RetryOptions | None = None
    fail_if_exists: bool = False


class ApiResourceProperties(BaseResourceProperties):
    kind: Literal["api"] = "api"
    resource_definition: ApiDefinition
    openapi_document: dict[str, Any]
    lifecycle_status: LifecycleStatus | None = None

    @field_validator("openapi_document", mode="before")
    @classmethod
    def parse_document_string(cls, v: Any) -> Any:
        """Accept the document as a JSON or YAML string (JSON is valid YAML)."""
        if isinstance(v, str):
            return yaml.safe_load(v)
        return v


class ApplicationResourceProperties(BaseResourceProperties):
    kind: Literal["application"] = "application"
    resource_definition: ApplicationDefinition


class SubscriptionResourceProperties(BaseResourceProperties):
    kind: Literal["subscription"] = "subscription"
    resource_definition: SubscriptionDefinition = Field(default_factory=SubscriptionDefinition)
    api_id: str | None = None
    api_search_parameters: ApiSearchCriteria | None = None
    application_id: str | None = None
    application_search_parameters: ApplicationSearchCriteria | None = None

    @model_validator(mode="after")
    def check_parent_references(self) -> "SubscriptionResourceProperties":
        if (self.api_id is None) == (self.api_search_parameters is None):
            raise ValueError("exactly one of 'apiId' or 'apiSearchParameters' must be set")
        if (self.application_id is None) == (self.application_search_parameters is None):
            raise ValueError(
                "exactly one of 'applicationId' or 'applicationSearchParameters' must be set"
            )
        return self

    def api_identifier(self) -> ResourceIdentifier[ApiSearchCriteria]:
        return ResourceIdentifier[ApiSearchCriteria](
            id=self.api_id, search_criteria=self.api_search_parameters
        )

    def application_identifier(self) -> ResourceIdentifier[ApplicationSearchCriteria]:
        return ResourceIdentifier[ApplicationSearchCriteria](
            id=self.application_id, search_criteria=self.application_search_parameters
        )


ResourceProperties = Annotated[
    Union[ApiResourceProperties, ApplicationResourceProperties, SubscriptionResourceProperties],
    Field(discriminator="kind"),
]

_resource_properties_adapter: TypeAdapter[ResourceProperties] = TypeAdapter(ResourceProperties)


def parse_resource_properties(kind: ResourceKind, raw: dict[str, Any]) -> ResourceProperties:
    """Validate raw event properties against the model of the given kind."""
    return _resource_properties_adapter.validate_python({**raw, "kind": kind.value})


class CustomResourceEvent(BaseModel):
    """The subset of the CloudFormation custom resource event we rely on."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    request_type: RequestType = Field(alias="RequestType")
    resource_type: str | None = Field(None, alias="ResourceType")
    physical_resource_id: str | None = Field(None, alias="PhysicalResourceId")
    request_id: str | None = Field(None, alias="RequestId")
    logical_resource_id: str | None = Field(None, alias="LogicalResourceId")
    stack_id: str | None = Field(None, alias="StackId")
    resource_properties: dict[str, Any] = Field(default_factory=dict, alias="ResourceProperties")

    @property
    def resource_kind(self) -> ResourceKind | None:
        if self.resource_type is None:
            return None
        return RESOURCE_TYPE_KINDS.get(self.resource_type)


class CustomResourceResponse(BaseModel):
    """Response returned to the custom resource provider."""

    model_config = ConfigDict(populate_by_name=True)

    physical_resource_id: str = Field(alias="PhysicalResourceId")
    status: OperationStatus = Field(alias="Status")
    data: dict[str, Any] | None = Field(None, alias="Data")
    reason: str | None = Field(None, alias="Reason")

    def to_event_response(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")
