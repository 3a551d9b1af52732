# SPDX-License-Identifier: Apache-2.0
# Copyright 2024-2026 CAB Ingénierie / Christophe ABOULICAM
"""Reconciliation engine for WSO2 API Manager APIs, Applications and Subscriptions."""

__version__ = "0.1.0"
