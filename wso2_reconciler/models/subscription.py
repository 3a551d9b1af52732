# SPDX-License-Identifier: Apache-2.0
# Copyright 2024-2026 CAB Ingénierie / Christophe ABOULICAM
"""WSO2 Subscription (store v1) definition models."""

from typing import Literal

from .common import WireModel


class SubscriptionSearchCriteria(WireModel):
    """A subscription is identified by the API/Application pair it links."""

    api_id: str
    application_id: str


class SubscriptionDefinition(WireModel):
    """Desired state of a WSO2 Subscription."""

    throttling_policy: str = "Unlimited"
    status: Literal[
        "BLOCKED", "PROD_ONLY_BLOCKED", "UNBLOCKED", "ON_HOLD", "REJECTED", "TIER_UPDATE_PENDING"
    ] | None = None
