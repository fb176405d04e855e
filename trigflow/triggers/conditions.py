"""
Condition evaluation for trigger matching.

A trigger's ``conditions`` mapping holds independent, AND-ed predicate
fields checked against the event context:

    fromStatus / toStatus   context.oldStatus / context.newStatus equality
    priority / category     equality with the same-named context fields
    entityTypes             context.entityType must be listed
    onlyWhenAssigned        context.newAssigneeId must be set
    customExpression        "<$.path> <op> <literal>" comparison

When ``customExpression`` is present its result is returned as-is once the
structured fields have passed. Unknown keys are ignored so schedule and
webhook settings can live in the same mapping.
"""

import math
from collections.abc import Mapping
from typing import Any

from trigflow.core.logger import get_logger
from trigflow.triggers.paths import MISSING, resolve_path

logger = get_logger(__name__)

# Order matters: two-character operators must win over their prefixes
OPERATORS = ("==", "!=", ">=", "<=", ">", "<")

_QUOTES = str.maketrans("", "", "'\"")

_EQUALITY_FIELDS = (
    ("fromStatus", "oldStatus"),
    ("toStatus", "newStatus"),
    ("priority", "priority"),
    ("category", "category"),
)


def matches(conditions: Mapping[str, Any] | None, context: Mapping[str, Any]) -> bool:
    """
    Decide whether ``conditions`` match the event ``context``.

    Empty or missing conditions always match.
    """
    if not conditions:
        return True

    for condition_key, context_key in _EQUALITY_FIELDS:
        if condition_key in conditions:
            if context.get(context_key, MISSING) != conditions[condition_key]:
                return False

    entity_types = conditions.get("entityTypes")
    if entity_types and context.get("entityType") not in entity_types:
        return False

    if conditions.get("onlyWhenAssigned") and not context.get("newAssigneeId"):
        return False

    expression = conditions.get("customExpression")
    if expression:
        try:
            return evaluate_expression(expression, context)
        except Exception:
            logger.warning(f"Failed to evaluate custom expression: {expression}")
            return False

    return True


def evaluate_expression(expression: str, context: Mapping[str, Any]) -> bool:
    """
    Evaluate a single ``<left> <op> <right>`` comparison.

    The left side goes through the path resolver, the right side is a
    literal with quote characters stripped. Equality operators compare
    string renderings, ordering operators compare numbers; a value that is
    not a number makes the comparison false. Expressions without a known
    operator evaluate to false.
    """
    for op in OPERATORS:
        if op not in expression:
            continue

        parts = [part.strip() for part in expression.split(op)]
        left = resolve_path(parts[0], context)
        right = parts[1].translate(_QUOTES)

        if op == "==":
            return to_display_string(left) == right
        if op == "!=":
            return to_display_string(left) != right

        left_number = to_number(left)
        right_number = to_number(right)
        if op == ">":
            return left_number > right_number
        if op == ">=":
            return left_number >= right_number
        if op == "<":
            return left_number < right_number
        return left_number <= right_number

    return False


def to_display_string(value: Any) -> str:
    """Render a context value the way event producers serialize it."""
    if value is MISSING:
        return "undefined"
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        if value.is_integer():
            return str(int(value))
        return repr(value)
    if isinstance(value, (list, tuple)):
        return ",".join("" if item is None or item is MISSING else to_display_string(item) for item in value)
    if isinstance(value, Mapping):
        return "[object Object]"
    return str(value)


def to_number(value: Any) -> float:
    """
    Coerce a value to a float for ordering comparisons.

    Blank strings and None count as zero; anything unparsable is NaN.
    """
    if value is MISSING:
        return math.nan
    if value is None:
        return 0.0
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        return _parse_numeric_string(value)
    if isinstance(value, (list, tuple)):
        if not value:
            return 0.0
        if len(value) == 1:
            return to_number(to_display_string(value[0]))
    return math.nan


def _parse_numeric_string(raw: str) -> float:
    text = raw.strip()
    if not text:
        return 0.0
    if text in ("Infinity", "+Infinity"):
        return math.inf
    if text == "-Infinity":
        return -math.inf

    lowered = text.lower()
    if "_" in text or "inf" in lowered or "nan" in lowered:
        return math.nan

    for prefix, base in (("0x", 16), ("0o", 8), ("0b", 2)):
        if lowered.startswith(prefix):
            try:
                return float(int(text[2:], base))
            except ValueError:
                return math.nan

    try:
        return float(text)
    except ValueError:
        return math.nan
