# SPDX-License-Identifier: Apache-2.0
# Copyright 2024-2026 CAB Ingénierie / Christophe ABOULICAM
"""OpenAPI transformation, down-conversion and lint pipeline."""

from .downgrade import downgrade_openapi, downgrade_schema
from .linter import lint_openapi_document
from .transformer import (
    DEFAULT_CORS_ALLOW_HEADERS,
    DEFAULT_CORS_ALLOW_METHODS,
    OperationCollector,
    api_operations_from_document,
    apply_cors_defaults,
    apply_defaults,
    normalize_cors_configuration,
    openapi_similarity_failures,
    prepare_api_definition,
    to_wire_payload,
    validate_api_definition,
)
from .visitor import HTTP_METHODS, OpenApiVisitor

__all__ = [
    "downgrade_openapi",
    "downgrade_schema",
    "lint_openapi_document",
    "DEFAULT_CORS_ALLOW_HEADERS",
    "DEFAULT_CORS_ALLOW_METHODS",
    "OperationCollector",
    "api_operations_from_document",
    "apply_cors_defaults",
    "apply_defaults",
    "normalize_cors_configuration",
    "openapi_similarity_failures",
    "prepare_api_definition",
    "to_wire_payload",
    "validate_api_definition",
    "HTTP_METHODS",
    "OpenApiVisitor",
]
