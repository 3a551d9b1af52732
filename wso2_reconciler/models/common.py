# SPDX-License-Identifier: Apache-2.0
# Copyright 2024-2026 CAB Ingénierie / Christophe ABOULICAM
"""Shared models: request types, retry policies, remote server config and identifiers."""

from enum import Enum
from typing import Any, Generic, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class RequestType(str, Enum):
    """CloudFormation custom resource request types."""

    CREATE = "Create"
    UPDATE = "Update"
    DELETE = "Delete"


class OperationStatus(str, Enum):
    """Outcome reported back to CloudFormation."""

    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


class ResourceKind(str, Enum):
    """WSO2 resource kinds managed by the reconciler."""

    API = "api"
    APPLICATION = "application"
    SUBSCRIPTION = "subscription"


class WireModel(BaseModel):
    """Base for models exchanged with WSO2 or CloudFormation.

    Attributes are snake_case in Python and camelCase on the wire. Unknown
    attributes are kept so any field accepted by WSO2 can be passed through.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    def to_wire(self) -> dict[str, Any]:
        """Dump to the JSON shape WSO2 expects (camelCase, unset fields omitted)."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


# =============================================================================
# Retry policies
# =============================================================================


class RetryPolicy(WireModel):
    """Exponential backoff policy. Delays are expressed in milliseconds."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    starting_delay: int = Field(ge=0)
    time_multiple: float = Field(ge=1)
    max_delay: int = Field(ge=0)
    num_of_attempts: int = Field(ge=1)
    delay_first_attempt: bool = False


class RetryPolicyOverrides(WireModel):
    """Caller-supplied partial retry policy, merged over the defaults."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    starting_delay: int | None = Field(None, ge=0)
    time_multiple: float | None = Field(None, ge=1)
    max_delay: int | None = Field(None, ge=0)
    num_of_attempts: int | None = Field(None, ge=1)
    delay_first_attempt: bool | None = None

    def merge_over(self, defaults: RetryPolicy) -> RetryPolicy:
        return defaults.model_copy(update=self.model_dump(exclude_none=True))


DEFAULT_MUTATION_RETRY_POLICY = RetryPolicy(
    starting_delay=2000,
    time_multiple=1.5,
    max_delay=5000,
    num_of_attempts=3,
    delay_first_attempt=False,
)

# 500, 750, 1125, ... capped at 10s: roughly 74s of waiting over 10 attempts
DEFAULT_CHECK_RETRY_POLICY = RetryPolicy(
    starting_delay=500,
    time_multiple=1.5,
    max_delay=10000,
    num_of_attempts=10,
    delay_first_attempt=True,
)


class RetryOptions(WireModel):
    """Retry overrides for the mutation and the verification calls."""

    mutation_retries: RetryPolicyOverrides | None = None
    check_retries: RetryPolicyOverrides | None = None

    def resolve(self) -> tuple[RetryPolicy, RetryPolicy]:
        """Return the (mutation, check) policies with overrides applied."""
        mutation = DEFAULT_MUTATION_RETRY_POLICY
        check = DEFAULT_CHECK_RETRY_POLICY
        if self.mutation_retries:
            mutation = self.mutation_retries.merge_over(mutation)
        if self.check_retries:
            check = self.check_retries.merge_over(check)
        return mutation, check


# =============================================================================
# Remote server
# =============================================================================


class RemoteConfig(WireModel):
    """How to reach and authenticate against the WSO2 server."""

    base_url: str
    credentials_reference: str
    tenant: str | None = None
    api_version: Literal["v1"] = "v1"

    @property
    def normalized_base_url(self) -> str:
        return self.base_url.rstrip("/")


# =============================================================================
# Identifiers
# =============================================================================

CriteriaT = TypeVar("CriteriaT", bound=BaseModel)


class ResourceIdentifier(WireModel, Generic[CriteriaT]):
    """Either an explicit WSO2 id or the criteria used to search for one."""

    id: str | None = None
    search_criteria: CriteriaT | None = None

    @model_validator(mode="after")
    def exactly_one_of_id_or_criteria(self) -> "ResourceIdentifier[CriteriaT]":
        if (self.id is None) == (self.search_criteria is None):
            raise ValueError("exactly one of 'id' or 'searchCriteria' must be set")
        return self

    def describe(self) -> dict[str, Any]:
        if self.id is not None:
            return {"id": self.id}
        return self.search_criteria.model_dump(by_alias=True, exclude_none=True)
