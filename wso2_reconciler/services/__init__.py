# SPDX-License-Identifier: Apache-2.0
# Copyright 2024-2026 CAB Ingénierie / Christophe ABOULICAM
"""Services shared by every reconciler."""

from .finder import ResourceFinder, api_matches, application_matches, subscription_matches
from .retry import (
    LoggingRetryObserver,
    RetryAttempt,
    RetryExecutor,
    RetryExecutors,
    RetryKind,
    RetryObserver,
)
from .session import ClientCredentials, Wso2Credentials, Wso2SessionResolver
from .vault_client import SecretStore, VaultClient

__all__ = [
    "ResourceFinder",
    "api_matches",
    "application_matches",
    "subscription_matches",
    "LoggingRetryObserver",
    "RetryAttempt",
    "RetryExecutor",
    "RetryExecutors",
    "RetryKind",
    "RetryObserver",
    "ClientCredentials",
    "Wso2Credentials",
    "Wso2SessionResolver",
    "SecretStore",
    "VaultClient",
]
