# SPDX-License-Identifier: Apache-2.0
# Copyright 2024-2026 CAB Ingénierie / Christophe ABOULICAM
"""Reconciler settings using Pydantic Settings."""

from functools import lru_cache
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..models.api import LifecycleStatus


class Settings(BaseSettings):
    """Process-level configuration for the WSO2 reconciler.

    Everything that is not part of a custom resource event lives here and
    can be overridden via environment variables.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "wso2-apim-reconciler"
    app_version: str = "0.1.0"

    # Logging
    log_level: str = "INFO"
    log_format: Literal["json", "text"] = "json"
    log_masking_enabled: bool = True
    log_masking_patterns: str = "password,pwd,secret,token,authorization"

    # WSO2 HTTP client
    request_timeout_seconds: float = 30.0
    tls_verify: bool = True
    client_name: str = "wso2-apim-reconciler"
    dcr_api_version: str = "v0.17"
    token_scopes: str = (
        "apim:api_view apim:api_create apim:api_publish apim:api_delete "
        "apim:subscribe apim:app_manage apim:sub_manage"
    )

    # Vault (credentials referenced by custom resource events)
    vault_addr: str = "http://127.0.0.1:8200"
    vault_token: str | None = None
    vault_kubernetes_role: str | None = None
    vault_mount_point: str = "secret"

    # Reconciliation behaviour
    strict_verification: bool = False  # fail when a verify read-back diverges
    default_lifecycle_status: LifecycleStatus = "PUBLISHED"
    managed_tag: str = "wso2-apim-reconciler"  # empty disables tagging
    reason_max_length: int = 1000

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return upper

    @property
    def log_masking_patterns_list(self) -> list[str]:
        """Return masking patterns as a list."""
        return [p.strip() for p in self.log_masking_patterns.split(",") if p.strip()]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache (useful for testing)."""
    get_settings.cache_clear()
