# SPDX-License-Identifier: Apache-2.0
# Copyright 2024-2026 CAB Ingénierie / Christophe ABOULICAM
"""Merge an OpenAPI document into a WSO2 API definition.

The pipeline run before an API is reconciled:
1. validate_api_definition: required identity fields and role lists
2. downgrade_openapi: WSO2 3.x only understands OpenAPI 3.0
3. lint_openapi_document: structural + WSO2 compatibility rules
4. apply_defaults: operations, descriptive fields, server defaults and CORS

to_wire_payload then produces the JSON body sent to the publisher API.
"""

from typing import Any, Optional

import structlog

from ..errors import ValidationError
from ..models import (
    ApiDefinition,
    ApiOperation,
    BusinessInformation,
    CorsConfiguration,
    MaxTps,
)
from .downgrade import downgrade_openapi
from .linter import lint_openapi_document
from .visitor import HTTP_METHODS, OpenApiVisitor

logger = structlog.get_logger(__name__)

# WSO2 console defaults
DEFAULT_CORS_ALLOW_HEADERS = [
    "Authorization",
    "Access-Control-Allow-Origin",
    "Content-Type",
    "SOAPAction",
]
DEFAULT_CORS_ALLOW_METHODS = ["GET", "PUT", "POST", "DELETE", "PATCH", "OPTIONS"]

# Booleans WSO2 expects as "true"/"false" strings
STRINGIFIED_CORS_FLAGS = ("corsConfigurationEnabled", "accessControlAllowCredentials")


def _default_api_fields() -> dict[str, Any]:
    return {
        "security_scheme": ["oauth2"],
        "life_cycle_status": "CREATED",
        "is_default_version": True,
        "enable_store": True,
        "type": "HTTP",
        "transport": ["https"],
        "policies": ["Unlimited"],
        "api_throttling_policy": "Unlimited",
        "max_tps": MaxTps(production=300, sandbox=10),
        "endpoint_implementation_type": "ENDPOINT",
        "subscription_availability": "CURRENT_TENANT",
        "subscription_available_tenants": [],
    }


def validate_api_definition(definition: ApiDefinition) -> None:
    """Check the fields WSO2 needs before anything is sent.

    Raises:
        ValidationError: naming the first missing or inconsistent field
    """
    if not definition.context:
        raise ValidationError("context is required (it is used in api url prefix)", field="context")
    if not definition.name:
        raise ValidationError("name is required", field="name")
    if not definition.gateway_environments:
        raise ValidationError(
            "gatewayEnvironments must have at least one element", field="gatewayEnvironments"
        )
    if not definition.endpoint_config:
        raise ValidationError("endpointConfig is required", field="endpointConfig")
    if definition.visibility == "RESTRICTED" and not definition.visible_roles:
        raise ValidationError(
            "visibleRoles must be defined when visibility is RESTRICTED", field="visibleRoles"
        )
    if definition.access_control == "RESTRICTED" and not definition.access_control_roles:
        raise ValidationError(
            "accessControlRoles must be defined when accessControl is RESTRICTED",
            field="accessControlRoles",
        )


class OperationCollector(OpenApiVisitor):
    """Builds one ApiOperation per path + verb from x-auth-type / x-throttling-tier."""

    def __init__(self) -> None:
        self.operations: list[ApiOperation] = []

    def visit_operation(self, path, method, operation, path_parameters) -> None:
        extensions = {k.lower(): v for k, v in operation.items() if k.lower().startswith("x-")}
        self.operations.append(
            ApiOperation(
                target=path,
                verb=method,
                auth_type=extensions.get("x-auth-type", "Any"),
                throttling_policy=extensions.get("x-throttling-tier", "Unlimited"),
            )
        )


def api_operations_from_document(document: dict[str, Any]) -> list[ApiOperation]:
    collector = OperationCollector()
    collector.walk(document)
    return collector.operations


def apply_cors_defaults(cors: Optional[CorsConfiguration]) -> Optional[CorsConfiguration]:
    """Fill a CORS configuration that only lists allowed origins.

    No configuration stays no configuration.
    """
    if cors is None or not cors.access_control_allow_origins:
        return cors
    return cors.model_copy(
        update={
            "access_control_allow_credentials": (
                False
                if cors.access_control_allow_credentials is None
                else cors.access_control_allow_credentials
            ),
            "access_control_allow_headers": (
                cors.access_control_allow_headers or list(DEFAULT_CORS_ALLOW_HEADERS)
            ),
            "access_control_allow_methods": (
                cors.access_control_allow_methods or list(DEFAULT_CORS_ALLOW_METHODS)
            ),
            "cors_configuration_enabled": (
                True
                if cors.cors_configuration_enabled is None
                else cors.cors_configuration_enabled
            ),
        }
    )


def apply_defaults(
    definition: ApiDefinition,
    document: dict[str, Any],
    managed_tag: Optional[str] = None,
) -> ApiDefinition:
    """Return a copy of ``definition`` completed from ``document`` and WSO2 defaults.

    Explicit values on the definition are never overwritten.
    """
    update: dict[str, Any] = {
        field: value
        for field, value in _default_api_fields().items()
        if getattr(definition, field) is None
    }

    # caller operations are appended so they win over the synthesized ones
    update["operations"] = api_operations_from_document(document) + list(
        definition.operations or []
    )

    info = document.get("info") or {}
    contact = info.get("contact") or {}
    if not definition.business_information and (contact.get("email") or contact.get("name")):
        update["business_information"] = BusinessInformation(
            business_owner=contact.get("name"),
            business_owner_email=contact.get("email"),
            technical_owner=contact.get("name"),
            technical_owner_email=contact.get("email"),
        )
    if not definition.description and info.get("description"):
        update["description"] = info["description"]
    if not definition.version and info.get("version"):
        update["version"] = str(info["version"])

    tags = list(definition.tags) if definition.tags is not None else None
    if tags is None and document.get("tags"):
        tags = [t["name"] for t in document["tags"] if isinstance(t, dict) and t.get("name")]
    if managed_tag:
        tags = tags or []
        if managed_tag not in tags:
            tags.append(managed_tag)
    if tags is not None:
        update["tags"] = tags

    update["cors_configuration"] = apply_cors_defaults(definition.cors_configuration)

    result = definition.model_copy(update=update)
    if not result.version:
        raise ValidationError(
            '"version" must be defined either in "openapiDocument.info.version" '
            'or in "resourceDefinition.version"',
            field="version",
        )
    return result


def normalize_cors_configuration(cors: Optional[dict[str, Any]]) -> Optional[dict[str, Any]]:
    """Stringify the boolean CORS flags the way WSO2 stores them.

    Only present boolean values are converted; absent flags stay absent.
    """
    if cors is None:
        return None
    normalized = dict(cors)
    for flag in STRINGIFIED_CORS_FLAGS:
        if isinstance(normalized.get(flag), bool):
            normalized[flag] = "true" if normalized[flag] else "false"
    return normalized


def to_wire_payload(definition: ApiDefinition) -> dict[str, Any]:
    """JSON body for POST/PUT /apis."""
    payload = definition.to_wire()
    if "corsConfiguration" in payload:
        payload["corsConfiguration"] = normalize_cors_configuration(payload["corsConfiguration"])
    return payload


def prepare_api_definition(
    definition: ApiDefinition,
    document: dict[str, Any],
    managed_tag: Optional[str] = None,
) -> tuple[ApiDefinition, dict[str, Any]]:
    """Run the whole pipeline; returns the completed definition and the 3.0 document.

    Raises:
        ValidationError: definition or document version is invalid
        LintError: the document violates one or more rules
    """
    validate_api_definition(definition)
    document = downgrade_openapi(document)
    lint_openapi_document(document, use_target_rules=True)
    completed = apply_defaults(definition, document, managed_tag=managed_tag)
    logger.info(
        "API definition prepared",
        name=completed.name,
        version=completed.version,
        context=completed.context,
        operations=len(completed.operations or []),
    )
    return completed, document


def openapi_similarity_failures(expected: dict[str, Any], actual: dict[str, Any]) -> list[str]:
    """Compare the parts of an OpenAPI document WSO2 must keep as submitted.

    WSO2 rewrites the document it stores (adds x-wso2-* extensions, security
    and throttling tiers, reorders keys), so only title, version, paths,
    verbs and component schema names are compared.

    Returns:
        Names of the failed checks; empty when the documents are similar
    """
    failures: list[str] = []
    expected_info = expected.get("info") or {}
    actual_info = actual.get("info") or {}
    for field in ("title", "version"):
        if str(expected_info.get(field)) != str(actual_info.get(field)):
            failures.append(f"info.{field}")

    expected_paths = expected.get("paths") or {}
    actual_paths = actual.get("paths") or {}
    if set(expected_paths) != set(actual_paths):
        failures.append("paths")
    else:
        for path, item in expected_paths.items():
            expected_verbs = {k for k in item if k in HTTP_METHODS}
            actual_verbs = {k for k in (actual_paths.get(path) or {}) if k in HTTP_METHODS}
            if expected_verbs != actual_verbs:
                failures.append(f"paths.{path}")

    expected_schemas = set(((expected.get("components") or {}).get("schemas") or {}))
    actual_schemas = set(((actual.get("components") or {}).get("schemas") or {}))
    if not expected_schemas.issubset(actual_schemas):
        failures.append("components.schemas")
    return failures
