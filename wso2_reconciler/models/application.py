# SPDX-License-Identifier: Apache-2.0
# Copyright 2024-2026 CAB Ingénierie / Christophe ABOULICAM
"""WSO2 Application (store v1) definition models."""

from typing import Literal

from .common import WireModel


class ApplicationSearchCriteria(WireModel):
    """Identity of an Application: its name within the tenant."""

    name: str


class ApplicationDefinition(WireModel):
    """Desired state of a WSO2 Application."""

    name: str
    throttling_policy: str = "Unlimited"
    description: str | None = None
    token_type: Literal["JWT", "OAUTH"] | None = None
    attributes: dict[str, str] | None = None
    groups: list[str] | None = None
    subscription_scopes: list[str] | None = None

    def search_criteria(self) -> ApplicationSearchCriteria:
        return ApplicationSearchCriteria(name=self.name)
