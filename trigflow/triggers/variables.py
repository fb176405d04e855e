"""
Projection of an event context into process start variables.
"""

from collections.abc import Mapping
from typing import Any

from trigflow.triggers.paths import MISSING, resolve_path


def default_variables(context: Mapping[str, Any]) -> dict[str, Any]:
    """
    Variable set used when a trigger declares no mappings.

    Absent sources are left out rather than sent as nulls.
    """
    candidates = {
        "entityId": context.get("entityId"),
        "workspaceId": context.get("workspaceId"),
        "triggeredBy": context.get("userId") or context.get("createdById"),
        "triggerType": context.get("triggerType"),
    }
    return {name: value for name, value in candidates.items() if value is not None}


def map_variables(mappings: Mapping[str, Any] | None, context: Mapping[str, Any]) -> dict[str, Any]:
    """
    Build process variables from ``mappings`` (output name -> path or literal).

    Outputs whose path does not resolve are omitted.
    """
    if not mappings:
        return default_variables(context)

    variables: dict[str, Any] = {}
    for name, source in mappings.items():
        value = resolve_path(source, context)
        if value is not MISSING:
            variables[name] = value

    return variables
