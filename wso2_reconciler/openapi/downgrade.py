# SPDX-License-Identifier: Apache-2.0
# Copyright 2024-2026 CAB Ingénierie / Christophe ABOULICAM
"""Down-convert OpenAPI 3.1 documents to 3.0.3.

WSO2 API Manager 3.x only imports OpenAPI 3.0. The conversion covers the
3.1 constructs that have a 3.0 equivalent; constructs without one are
dropped.
"""

import copy
from typing import Any

import structlog

from ..errors import ValidationError
from .visitor import OpenApiVisitor

logger = structlog.get_logger(__name__)

TARGET_VERSION = "3.0.3"

# 3.1-only keywords without a 3.0 equivalent
_DROPPED_SCHEMA_KEYWORDS = ("$schema", "$id", "$comment", "contentMediaType")
_DROPPED_DOCUMENT_KEYS = ("webhooks", "jsonSchemaDialect")
_SCHEMA_MAP_KEYWORDS = ("properties", "patternProperties")
_SCHEMA_LIST_KEYWORDS = ("allOf", "anyOf", "oneOf", "prefixItems")
_SCHEMA_KEYWORDS = ("items", "additionalProperties", "not")


def downgrade_schema(schema: Any) -> None:
    """Rewrite one JSON Schema 2020-12 object in place as an OpenAPI 3.0 schema."""
    if not isinstance(schema, dict):
        return

    schema_type = schema.get("type")
    if isinstance(schema_type, list):
        types = [t for t in schema_type if t != "null"]
        if len(types) < len(schema_type):
            schema["nullable"] = True
        if len(types) == 1:
            schema["type"] = types[0]
        else:
            del schema["type"]
            if types:
                schema["anyOf"] = [{"type": t} for t in types]
    elif schema_type == "null":
        del schema["type"]
        schema["nullable"] = True

    if "const" in schema:
        schema["enum"] = [schema.pop("const")]

    examples = schema.get("examples")
    if isinstance(examples, list):
        del schema["examples"]
        if examples:
            schema.setdefault("example", examples[0])

    for exclusive, inclusive in (("exclusiveMinimum", "minimum"), ("exclusiveMaximum", "maximum")):
        bound = schema.get(exclusive)
        if isinstance(bound, (int, float)) and not isinstance(bound, bool):
            schema[inclusive] = bound
            schema[exclusive] = True

    if schema.pop("contentEncoding", None) == "base64":
        schema["format"] = "byte"
    for keyword in _DROPPED_SCHEMA_KEYWORDS:
        schema.pop(keyword, None)

    for keyword in _SCHEMA_MAP_KEYWORDS:
        for sub in (schema.get(keyword) or {}).values():
            downgrade_schema(sub)
    for keyword in _SCHEMA_LIST_KEYWORDS:
        for sub in schema.get(keyword) or []:
            downgrade_schema(sub)
    for keyword in _SCHEMA_KEYWORDS:
        downgrade_schema(schema.get(keyword))

    # 3.0 has no tuple validation
    prefix_items = schema.pop("prefixItems", None)
    if prefix_items and "items" not in schema:
        schema["items"] = {"anyOf": prefix_items} if len(prefix_items) > 1 else prefix_items[0]


def _downgrade_content(content: Any) -> None:
    for media_type in (content or {}).values():
        if isinstance(media_type, dict):
            downgrade_schema(media_type.get("schema"))


def _downgrade_parameters(parameters: Any) -> None:
    for param in parameters or []:
        if isinstance(param, dict):
            downgrade_schema(param.get("schema"))
            _downgrade_content(param.get("content"))


def _downgrade_headers(headers: Any) -> None:
    for header in (headers or {}).values():
        if isinstance(header, dict):
            downgrade_schema(header.get("schema"))


class _SchemaDowngrader(OpenApiVisitor):
    """Converts every schema reachable from paths."""

    def visit_path(self, path, path_item) -> None:
        _downgrade_parameters(path_item.get("parameters"))

    def visit_operation(self, path, method, operation, path_parameters) -> None:
        _downgrade_parameters(operation.get("parameters"))
        request_body = operation.get("requestBody")
        if isinstance(request_body, dict):
            _downgrade_content(request_body.get("content"))

    def visit_response(self, path, method, status, response) -> None:
        _downgrade_headers(response.get("headers"))
        _downgrade_content(response.get("content"))


def _downgrade_components(components: dict[str, Any]) -> None:
    for schema in (components.get("schemas") or {}).values():
        downgrade_schema(schema)
    _downgrade_parameters(list((components.get("parameters") or {}).values()))
    _downgrade_headers(components.get("headers"))
    for body in (components.get("requestBodies") or {}).values():
        if isinstance(body, dict):
            _downgrade_content(body.get("content"))
    for response in (components.get("responses") or {}).values():
        if isinstance(response, dict):
            _downgrade_headers(response.get("headers"))
            _downgrade_content(response.get("content"))
    # 3.1 allows pathItems in components; 3.0 does not
    components.pop("pathItems", None)


def downgrade_openapi(document: dict[str, Any]) -> dict[str, Any]:
    """Return an OpenAPI 3.0 version of ``document``.

    3.0.x documents are returned untouched, 3.1.x documents are converted
    on a deep copy.

    Raises:
        ValidationError: the document is neither OpenAPI 3.0 nor 3.1
    """
    version = str(document.get("openapi", ""))
    if version.startswith("3.0."):
        return document
    if not version.startswith("3.1."):
        raise ValidationError(
            f"openapiDocument must be OpenAPI 3.0.x or 3.1.x, found '{version or 'unknown'}'",
            field="openapiDocument",
        )

    converted = copy.deepcopy(document)
    converted["openapi"] = TARGET_VERSION
    for key in _DROPPED_DOCUMENT_KEYS:
        converted.pop(key, None)

    info = converted.get("info")
    if isinstance(info, dict):
        info.pop("summary", None)
        if isinstance(info.get("license"), dict):
            info["license"].pop("identifier", None)

    converted.setdefault("paths", {})
    _SchemaDowngrader().walk(converted)
    if isinstance(converted.get("components"), dict):
        _downgrade_components(converted["components"])

    logger.info("OpenAPI document converted", source_version=version, target_version=TARGET_VERSION)
    return converted
