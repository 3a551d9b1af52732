# SPDX-License-Identifier: Apache-2.0
# Copyright 2024-2026 CAB Ingénierie / Christophe ABOULICAM
"""HashiCorp Vault secret store for WSO2 credentials.

Custom resource events never carry credentials, only a ``credentialsReference``:
the KV v2 path (under the configured mount point) of a secret shaped like
``{"user": "...", "pwd": "..."}``.
Uses Kubernetes authentication in cluster, token auth everywhere else.
"""
import os
from typing import Any, Optional, Protocol

import hvac
import structlog
from hvac.exceptions import InvalidPath, VaultError

from ..config import Settings
from ..errors import ValidationError

logger = structlog.get_logger(__name__)

KUBERNETES_JWT_PATH = "/var/run/secrets/kubernetes.io/serviceaccount/token"


class SecretStore(Protocol):
    """Anything able to resolve a credentials reference into a secret payload."""

    async def read_secret(self, reference: str) -> dict[str, Any]: ...


class VaultClient:
    """Read-only HashiCorp Vault client for credentials references."""

    def __init__(
        self,
        vault_addr: str,
        vault_token: Optional[str] = None,
        kubernetes_role: Optional[str] = None,
        mount_point: str = "secret",
    ):
        """Initialize Vault client.

        Args:
            vault_addr: Vault server URL
            vault_token: Vault token for authentication
            kubernetes_role: Kubernetes auth role name (in cluster)
            mount_point: KV secrets engine mount point
        """
        self.vault_addr = vault_addr
        self.mount_point = mount_point
        self._client: Optional[hvac.Client] = None
        self._vault_token = vault_token
        self._kubernetes_role = kubernetes_role

    @classmethod
    def from_settings(cls, settings: Settings) -> "VaultClient":
        return cls(
            vault_addr=settings.vault_addr,
            vault_token=settings.vault_token or os.environ.get("VAULT_TOKEN"),
            kubernetes_role=settings.vault_kubernetes_role,
            mount_point=settings.vault_mount_point,
        )

    def _get_client(self) -> hvac.Client:
        """Get or create authenticated Vault client."""
        if self._client is not None and self._client.is_authenticated():
            return self._client

        self._client = hvac.Client(url=self.vault_addr)

        if self._kubernetes_role and os.path.exists(KUBERNETES_JWT_PATH):
            try:
                with open(KUBERNETES_JWT_PATH) as f:
                    jwt_token = f.read()
                self._client.auth.kubernetes.login(role=self._kubernetes_role, jwt=jwt_token)
                logger.info("Authenticated with Vault using Kubernetes auth")
                return self._client
            except VaultError as e:
                logger.warning("Kubernetes auth failed, falling back to token", error=str(e))

        if self._vault_token:
            self._client.token = self._vault_token
            if self._client.is_authenticated():
                logger.info("Authenticated with Vault using token auth")
                return self._client

        raise VaultError("Failed to authenticate with Vault")

    async def read_secret(self, reference: str) -> dict[str, Any]:
        """Read the latest version of the secret at ``reference``.

        Raises:
            ValidationError: the reference does not point to an existing secret
            VaultError: Vault is unreachable or refused the request
        """
        client = self._get_client()

        try:
            response = client.secrets.kv.v2.read_secret_version(
                path=reference,
                mount_point=self.mount_point,
                raise_on_deleted_version=True,
            )
        except InvalidPath as e:
            raise ValidationError(
                f"Credentials secret '{reference}' not found in Vault mount '{self.mount_point}'",
                field="credentialsReference",
            ) from e
        except VaultError as e:
            logger.error("Failed to read credentials from Vault", reference=reference, error=str(e))
            raise

        data = (response or {}).get("data", {}).get("data")
        if not isinstance(data, dict):
            raise ValidationError(
                f"Credentials secret '{reference}' has no data", field="credentialsReference"
            )
        logger.info("Retrieved credentials from Vault", reference=reference)
        return data
