# SPDX-License-Identifier: Apache-2.0
# Copyright 2024-2026 CAB Ingénierie / Christophe ABOULICAM
"""HTTP clients for the WSO2 API Manager."""

from .wso2_client import PUBLISHER_V1, STORE_V1, Wso2Client, build_http_client

__all__ = ["Wso2Client", "build_http_client", "PUBLISHER_V1", "STORE_V1"]
