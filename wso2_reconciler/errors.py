# SPDX-License-Identifier: Apache-2.0
# Copyright 2024-2026 CAB Ingénierie / Christophe ABOULICAM
"""Reconciler error codes and exception classes.

Every failure surfaced by a reconciliation carries a machine-readable code,
a human-readable message, optional details and a remediation hint for the
operator reading the CloudFormation event or the Lambda logs.

Error payload (as logged):
```json
{
  "error": {
    "code": "AMBIGUOUS_MATCH",
    "message": "More than one WSO2 API matches name:petstore version:v1 context:/petstore",
    "details": {"criteria": {"name": "petstore"}, "tenant": "nn.nl", "matches": 2},
    "suggestion": "Remove the duplicate resource on the WSO2 server or reference it by id"
  }
}
```
"""

from enum import Enum
from typing import Any


class ReconcilerErrorCode(str, Enum):
    """Standard reconciler error codes."""

    # Local input problems (no network call made)
    VALIDATION_ERROR = "VALIDATION_ERROR"
    LINT_ERROR = "LINT_ERROR"

    # Remote state does not allow automatic reconciliation
    AMBIGUOUS_MATCH = "AMBIGUOUS_MATCH"
    ALREADY_EXISTS = "ALREADY_EXISTS"
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"

    # Remote server faults
    REMOTE_ERROR = "REMOTE_ERROR"
    REMOTE_RESPONSE_INVALID = "REMOTE_RESPONSE_INVALID"

    # Verification (read-after-write) failures
    NOT_CONVERGED = "NOT_CONVERGED"
    LIFECYCLE_MISMATCH = "LIFECYCLE_MISMATCH"


# Whether an error class is worth retrying. The retry executor itself retries
# everything; this flag is informational for logs and dashboards.
ERROR_CODE_IS_TRANSIENT: dict[ReconcilerErrorCode, bool] = {
    ReconcilerErrorCode.VALIDATION_ERROR: False,
    ReconcilerErrorCode.LINT_ERROR: False,
    ReconcilerErrorCode.AMBIGUOUS_MATCH: False,
    ReconcilerErrorCode.ALREADY_EXISTS: False,
    ReconcilerErrorCode.RESOURCE_NOT_FOUND: False,
    ReconcilerErrorCode.REMOTE_ERROR: True,
    ReconcilerErrorCode.REMOTE_RESPONSE_INVALID: True,
    ReconcilerErrorCode.NOT_CONVERGED: True,
    ReconcilerErrorCode.LIFECYCLE_MISMATCH: True,
}


ERROR_CODE_SUGGESTIONS: dict[ReconcilerErrorCode, str] = {
    ReconcilerErrorCode.VALIDATION_ERROR: "Fix the custom resource properties and redeploy",
    ReconcilerErrorCode.LINT_ERROR: "Fix the reported OpenAPI document violations and redeploy",
    ReconcilerErrorCode.AMBIGUOUS_MATCH: "Remove the duplicate resource on the WSO2 server or reference it by id",
    ReconcilerErrorCode.ALREADY_EXISTS: "Delete the unmanaged resource on the WSO2 server or set failIfExists to false",
    ReconcilerErrorCode.RESOURCE_NOT_FOUND: "Check that the referenced API or Application exists in the same tenant",
    ReconcilerErrorCode.REMOTE_ERROR: "Check WSO2 server health and the Lambda logs for the full retry history",
    ReconcilerErrorCode.REMOTE_RESPONSE_INVALID: "Check that the WSO2 server version matches the configured apiVersion",
    ReconcilerErrorCode.NOT_CONVERGED: "WSO2 cluster may be out of sync; retry the deployment",
    ReconcilerErrorCode.LIFECYCLE_MISMATCH: "Check the API lifecycle state in the WSO2 publisher portal",
}


class ReconcilerError(Exception):
    """Base exception for reconciler errors.

    Usage:
        raise ReconcilerError(
            code=ReconcilerErrorCode.AMBIGUOUS_MATCH,
            message=f"More than one application named '{name}'",
            details={"name": name},
        )
    """

    def __init__(
        self,
        code: ReconcilerErrorCode | str,
        message: str,
        details: dict[str, Any] | None = None,
        suggestion: str | None = None,
    ):
        """Initialize reconciler error.

        Args:
            code: Error code (ReconcilerErrorCode enum or string)
            message: Human-readable error message
            details: Additional context for debugging
            suggestion: Override default suggestion (optional)
        """
        self.code = code if isinstance(code, ReconcilerErrorCode) else ReconcilerErrorCode(code)
        self.message = message
        self.details = details
        self.suggestion = suggestion or ERROR_CODE_SUGGESTIONS.get(self.code)
        super().__init__(message)

    @property
    def is_transient(self) -> bool:
        """Whether retrying the same call may succeed."""
        return ERROR_CODE_IS_TRANSIENT.get(self.code, False)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for structured logging."""
        return {
            "error": {
                "code": self.code.value,
                "message": self.message,
                "details": self.details,
                "suggestion": self.suggestion,
            }
        }


# =============================================================================
# Specific Error Classes
# =============================================================================


class ValidationError(ReconcilerError):
    """Raised when resource properties are invalid. Never retried."""

    def __init__(
        self,
        message: str,
        field: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(
            code=ReconcilerErrorCode.VALIDATION_ERROR,
            message=message,
            details=details or ({"field": field} if field else None),
        )
        self.field = field


class LintError(ReconcilerError):
    """Raised with every OpenAPI document violation found in one pass."""

    def __init__(self, violations: list[str], message: str | None = None):
        summary = "\n".join(f"- {v}" for v in violations)
        super().__init__(
            code=ReconcilerErrorCode.LINT_ERROR,
            message=message or f"OpenAPI document has {len(violations)} violation(s):\n{summary}",
            details={"violations": violations},
        )
        self.violations = violations


class AmbiguousMatchError(ReconcilerError):
    """Raised when more than one remote resource matches the search criteria."""

    def __init__(
        self,
        resource_kind: str,
        criteria: dict[str, Any],
        matches: int,
        tenant: str | None = None,
    ):
        rendered = " ".join(f"{k}={v}" for k, v in criteria.items())
        super().__init__(
            code=ReconcilerErrorCode.AMBIGUOUS_MATCH,
            message=(
                f"Cannot determine which WSO2 {resource_kind} is related to this custom resource: "
                f"{matches} candidates match {rendered} tenant={tenant}"
            ),
            details={"criteria": criteria, "tenant": tenant, "matches": matches},
        )


class AlreadyExistsError(ReconcilerError):
    """Raised on Create when the resource exists and failIfExists is set."""

    def __init__(self, resource_kind: str, resource_id: str):
        super().__init__(
            code=ReconcilerErrorCode.ALREADY_EXISTS,
            message=f"WSO2 {resource_kind} '{resource_id}' already exists and failIfExists is true",
            details={"resource_id": resource_id},
        )


class ResourceNotFoundError(ReconcilerError):
    """Raised when a resource another resource depends on cannot be found."""

    def __init__(self, resource_kind: str, reference: dict[str, Any]):
        super().__init__(
            code=ReconcilerErrorCode.RESOURCE_NOT_FOUND,
            message=f"Cannot find the WSO2 {resource_kind} referenced by {reference}",
            details={"reference": reference},
        )


class TransientRemoteError(ReconcilerError):
    """Raised for any non-2xx response or network fault talking to WSO2."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
        code: ReconcilerErrorCode = ReconcilerErrorCode.REMOTE_ERROR,
    ):
        super().__init__(
            code=code,
            message=message,
            details={"status_code": status_code, **(details or {})},
        )
        self.status_code = status_code

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404


class RemoteResponseError(TransientRemoteError):
    """Raised when WSO2 answers 2xx with a body we cannot use."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(
            message=message,
            details=details,
            code=ReconcilerErrorCode.REMOTE_RESPONSE_INVALID,
        )


class ConvergenceError(ReconcilerError):
    """Raised when a read-after-write does not reflect the submitted state."""

    def __init__(self, resource_kind: str, resource_id: str, failed_checks: list[str]):
        super().__init__(
            code=ReconcilerErrorCode.NOT_CONVERGED,
            message=(
                f"WSO2 {resource_kind} '{resource_id}' read back doesn't match the submitted contents: "
                f"{', '.join(failed_checks)}"
            ),
            details={"resource_id": resource_id, "failed_checks": failed_checks},
        )
        self.failed_checks = failed_checks


class LifecycleMismatchError(ReconcilerError):
    """Raised when an API does not reach the requested lifecycle status."""

    def __init__(self, api_id: str, expected: str, actual: str | None):
        super().__init__(
            code=ReconcilerErrorCode.LIFECYCLE_MISMATCH,
            message=f"API {api_id} is in status {actual} (not {expected})",
            details={"api_id": api_id, "expected": expected, "actual": actual},
        )
