# SPDX-License-Identifier: Apache-2.0
# Copyright 2024-2026 CAB Ingénierie / Christophe ABOULICAM
"""Lint OpenAPI 3.0 documents before they are uploaded to WSO2.

Generic rules:
- structure, checked against schemas/openapi-3.0.json (JSON Schema draft 7)
- every local ``$ref`` resolves inside the document

WSO2 rules (use_target_rules=True):
- URL template parameters and ``in: path`` declarations match exactly
- ``x-auth-type`` uses a value WSO2 knows
- no external ``$ref`` (WSO2 cannot fetch them)

All violations are collected and raised together as one LintError.
"""

import json
import re
from functools import lru_cache
from pathlib import Path
from typing import Any

import structlog
from jsonschema import Draft7Validator

from ..errors import LintError
from .visitor import OpenApiVisitor, dereference, operation_parameters, resolve_local_ref

logger = structlog.get_logger(__name__)

SCHEMA_PATH = Path(__file__).parent / "schemas" / "openapi-3.0.json"

WSO2_AUTH_TYPES = frozenset(
    {"Any", "None", "Application", "Application User", "Application & Application User"}
)

_TEMPLATE_PARAMETER = re.compile(r"{([^}/]+)}")


@lru_cache
def load_schema() -> dict:
    """Load the structural JSON Schema shipped with the package."""
    with open(SCHEMA_PATH) as f:
        return json.load(f)


def _location(parts) -> str:
    return " -> ".join(str(p) for p in parts) or "root"


def structural_violations(document: dict[str, Any]) -> list[str]:
    validator = Draft7Validator(load_schema())
    errors = sorted(validator.iter_errors(document), key=lambda e: list(map(str, e.absolute_path)))
    return [f"{_location(error.absolute_path)}: {error.message}" for error in errors]


def _collect_refs(node: Any, location: list, found: list[tuple[str, str]]) -> None:
    if isinstance(node, dict):
        ref = node.get("$ref")
        if isinstance(ref, str):
            found.append((_location(location), ref))
        for key, value in node.items():
            if key != "$ref":
                _collect_refs(value, location + [key], found)
    elif isinstance(node, list):
        for index, value in enumerate(node):
            _collect_refs(value, location + [index], found)


def reference_violations(document: dict[str, Any], allow_external: bool = True) -> list[str]:
    violations = []
    refs: list[tuple[str, str]] = []
    _collect_refs(document, [], refs)
    for location, ref in refs:
        if not ref.startswith("#"):
            if not allow_external:
                violations.append(f"{location}: external reference '{ref}' is not supported")
            continue
        try:
            resolve_local_ref(document, ref)
        except KeyError:
            violations.append(f"{location}: reference '{ref}' cannot be resolved")
    return violations


class _Wso2CompatibilityRules(OpenApiVisitor):
    """WSO2-specific checks, one pass over every operation."""

    def __init__(self, document: dict[str, Any]) -> None:
        self.document = document
        self.violations: list[str] = []

    def visit_operation(self, path, method, operation, path_parameters) -> None:
        location = _location(["paths", path, method])
        parameters = operation_parameters(
            {"parameters": [dereference(self.document, p) for p in operation.get("parameters") or []]},
            [dereference(self.document, p) for p in path_parameters],
        )

        in_template = _TEMPLATE_PARAMETER.findall(path)
        declared = [p.get("name") for p in parameters if p.get("in") == "path"]
        for name in in_template:
            if name not in declared:
                self.violations.append(
                    f"{location}: path parameter '{name}' in the URL template has no "
                    f"matching 'in: path' declaration (declared: {declared or 'none'})"
                )
        for name in declared:
            if name not in in_template:
                self.violations.append(
                    f"{location}: declared path parameter '{name}' does not appear in the URL template"
                )

        auth_type = operation.get("x-auth-type")
        if auth_type is not None and auth_type not in WSO2_AUTH_TYPES:
            self.violations.append(
                f"{location}: x-auth-type '{auth_type}' must be one of {sorted(WSO2_AUTH_TYPES)}"
            )


def lint_openapi_document(document: dict[str, Any], use_target_rules: bool = True) -> None:
    """Validate ``document`` and raise every violation at once.

    Raises:
        LintError: one or more rules are violated
    """
    violations = structural_violations(document)
    violations += reference_violations(document, allow_external=not use_target_rules)

    if use_target_rules:
        rules = _Wso2CompatibilityRules(document)
        rules.walk(document)
        violations += rules.violations

    if violations:
        logger.warning("OpenAPI document lint failed", violations=len(violations))
        raise LintError(violations)
    logger.debug("OpenAPI document lint passed")
