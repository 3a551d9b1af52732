# SPDX-License-Identifier: Apache-2.0
# Copyright 2024-2026 CAB Ingénierie / Christophe ABOULICAM
"""Reconcilers: one per WSO2 resource kind."""

from .api import LIFECYCLE_ACTIONS, ApiReconciler, endpoint_url_for
from .application import ApplicationReconciler
from .base import ReconcileResult, ResourceReconciler
from .diff import diff_attributes, matches, normalize_operations
from .subscription import SubscriptionReconciler

__all__ = [
    "LIFECYCLE_ACTIONS",
    "ApiReconciler",
    "endpoint_url_for",
    "ApplicationReconciler",
    "ReconcileResult",
    "ResourceReconciler",
    "diff_attributes",
    "matches",
    "normalize_operations",
    "SubscriptionReconciler",
]
