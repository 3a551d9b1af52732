# SPDX-License-Identifier: Apache-2.0
# Copyright 2024-2026 CAB Ingénierie / Christophe ABOULICAM
"""Typed traversal of an OpenAPI document: paths -> operations -> responses.

Subclasses override the hooks they care about. Only the HTTP verbs of the
OpenAPI path item object are visited, so vendor extensions and path-level
keys such as ``parameters`` or ``summary`` are never mistaken for operations.
"""

from typing import Any

HTTP_METHODS = ("get", "put", "post", "delete", "options", "head", "patch", "trace")


class OpenApiVisitor:
    """Walks an OpenAPI 3.x document in declaration order."""

    def walk(self, document: dict[str, Any]) -> None:
        paths = document.get("paths")
        if not isinstance(paths, dict):
            return
        for path, path_item in paths.items():
            if not isinstance(path_item, dict):
                continue
            self.visit_path(path, path_item)

            path_parameters = path_item.get("parameters") or []
            for method in HTTP_METHODS:
                operation = path_item.get(method)
                if not isinstance(operation, dict):
                    continue
                self.visit_operation(path, method, operation, path_parameters)

                for status, response in (operation.get("responses") or {}).items():
                    if isinstance(response, dict):
                        self.visit_response(path, method, str(status), response)

    def visit_path(self, path: str, path_item: dict[str, Any]) -> None:
        """Called once per path item."""

    def visit_operation(
        self,
        path: str,
        method: str,
        operation: dict[str, Any],
        path_parameters: list[dict[str, Any]],
    ) -> None:
        """Called once per path + verb. ``path_parameters`` are the path-level ones."""

    def visit_response(
        self, path: str, method: str, status: str, response: dict[str, Any]
    ) -> None:
        """Called once per declared response of an operation."""


def operation_parameters(
    operation: dict[str, Any], path_parameters: list[dict[str, Any]]
) -> list[dict[str, Any]]:
    """Effective parameters of an operation (operation-level ones win on name + in).

    ``$ref`` parameters must be resolved by the caller beforehand.
    """
    merged: dict[tuple[Any, Any], dict[str, Any]] = {}
    for param in list(path_parameters) + list(operation.get("parameters") or []):
        if isinstance(param, dict):
            merged[(param.get("name"), param.get("in"))] = param
    return list(merged.values())


def resolve_local_ref(document: dict[str, Any], ref: str) -> Any:
    """Resolve a ``#/a/b`` JSON pointer inside ``document``.

    Raises:
        KeyError: the pointer doesn't resolve
    """
    if not ref.startswith("#/"):
        raise KeyError(ref)
    node: Any = document
    for token in ref[2:].split("/"):
        token = token.replace("~1", "/").replace("~0", "~")
        if isinstance(node, dict) and token in node:
            node = node[token]
        elif isinstance(node, list) and token.isdigit() and int(token) < len(node):
            node = node[int(token)]
        else:
            raise KeyError(ref)
    return node


def dereference(document: dict[str, Any], node: Any) -> Any:
    """Follow a local ``$ref`` (if any) once; unresolvable refs return the node as is."""
    if isinstance(node, dict) and isinstance(node.get("$ref"), str):
        try:
            return resolve_local_ref(document, node["$ref"])
        except KeyError:
            return node
    return node
