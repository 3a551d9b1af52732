# SPDX-License-Identifier: Apache-2.0
# Copyright 2024-2026 CAB Ingénierie / Christophe ABOULICAM
"""Event entry points."""

from .custom_resource import build_reconciler, handle_event, lambda_handler, reconcile_event

__all__ = ["build_reconciler", "handle_event", "lambda_handler", "reconcile_event"]
