# SPDX-License-Identifier: Apache-2.0
# Copyright 2024-2026 CAB Ingénierie / Christophe ABOULICAM
"""Compare a desired WSO2 payload with what the server returns.

Only attributes the desired payload sets are compared, and dicts are
compared as subsets: WSO2 answers with many server-side attributes (ids,
timestamps, defaults) that are not part of the desired state.
"""

from typing import Any, Callable, Iterable, Optional

Normalizer = Callable[[Any], Any]


def _is_scalar(value: Any) -> bool:
    return not isinstance(value, (dict, list))


def matches(desired: Any, current: Any) -> bool:
    """True when ``current`` holds everything ``desired`` states."""
    if isinstance(desired, dict):
        if not isinstance(current, dict):
            return False
        return all(matches(v, current.get(k)) for k, v in desired.items() if v is not None)

    if isinstance(desired, list):
        if not isinstance(current, list) or len(desired) != len(current):
            return False
        if all(_is_scalar(v) for v in desired) and all(_is_scalar(v) for v in current):
            # order of tags, transports, roles... is not significant
            return sorted(desired, key=repr) == sorted(current, key=repr)
        return all(matches(d, c) for d, c in zip(desired, current))

    if isinstance(desired, bool) or isinstance(current, bool):
        return desired is current
    return desired == current


def diff_attributes(
    desired: dict[str, Any],
    current: dict[str, Any],
    attributes: Iterable[str],
    normalizers: Optional[dict[str, Normalizer]] = None,
) -> list[str]:
    """Names of the compared attributes whose current value differs."""
    normalizers = normalizers or {}
    failed = []
    for attribute in attributes:
        wanted = desired.get(attribute)
        if wanted is None:
            continue
        actual = current.get(attribute)
        normalize = normalizers.get(attribute)
        if normalize is not None:
            wanted, actual = normalize(wanted), normalize(actual)
        if not matches(wanted, actual):
            failed.append(attribute)
    return failed


def normalize_operations(operations: Any) -> Any:
    """Reduce API operations to sorted (target, VERB, authType, throttlingPolicy) tuples.

    Later entries for the same target + verb replace earlier ones, the way
    WSO2 keeps only one operation per path and verb.
    """
    if not isinstance(operations, list):
        return operations
    keyed: dict[tuple, tuple] = {}
    for op in operations:
        if not isinstance(op, dict):
            continue
        verb = str(op.get("verb", "")).upper()
        keyed[(op.get("target"), verb)] = (
            op.get("target"),
            verb,
            op.get("authType"),
            op.get("throttlingPolicy"),
        )
    return sorted(keyed.values(), key=repr)


def tenant_context_normalizer(tenant: Optional[str]) -> Normalizer:
    """Strip the ``/t/{tenant}`` prefix WSO2 adds to the context of tenant APIs."""
    prefix = f"/t/{tenant}" if tenant else None

    def normalize(context: Any) -> Any:
        if prefix and isinstance(context, str) and context.startswith(prefix + "/"):
            return context[len(prefix):]
        return context

    return normalize
