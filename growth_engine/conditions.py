"""
Condition Evaluation -- Growth Engine
=====================================

Declarative ``{type, operator, value, field}`` conditions evaluated against
the current behavior/engagement context. Shared by the behavioral trigger
monitor, the A/B targeting rules and the personalization rules.

Condition types resolve to:
    time        -- session duration in seconds
    scroll      -- scroll depth percent
    engagement  -- engagement score
    behavior    -- behavior pattern (field "behaviorPattern") or a snapshot field
    content     -- count of tools used / content consumed (field selects which)
    device      -- device type
    custom      -- caller-supplied custom data keyed by field
    tier        -- engagement tier
    time_of_day -- morning/afternoon/evening/night

Operators: gt, lt, eq, ne (alias neq), gte, lte, includes, excludes.
A condition whose field cannot be resolved evaluates False; so do type
mismatches and unknown operators.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, List, Optional

from growth_engine.engagement import EngagementLevel
from growth_engine.journey import BehaviorSnapshot

logger = logging.getLogger("conditions")

_MISSING = object()

OPERATORS = ("gt", "lt", "eq", "ne", "neq", "gte", "lte", "includes", "excludes")

# snake_case aliases for the camelCase field names used in rule data
_FIELD_ALIASES: Dict[str, str] = {
    "behaviorPattern": "behavior_pattern",
    "toolsUsed": "tools_used",
    "contentConsumed": "content_consumed",
    "sectionsViewed": "sections_viewed",
    "ctasClicked": "ctas_clicked",
    "returnVisitor": "return_visitor",
    "deviceType": "device_type",
    "timeOfDay": "time_of_day",
}


@dataclass(frozen=True)
class Condition:
    """One comparison of a context field against a literal."""
    type: str
    operator: str
    value: Any
    field: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        if isinstance(d["value"], tuple):
            d["value"] = list(d["value"])
        return d

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> Condition:
        value = d.get("value")
        if isinstance(value, list):
            value = tuple(value)
        return cls(
            type=d.get("type", "custom"),
            operator=d.get("operator", "eq"),
            value=value,
            field=d.get("field"),
        )


@dataclass
class ConditionContext:
    """Everything a condition may look at."""
    behavior: BehaviorSnapshot
    engagement: EngagementLevel
    custom: Optional[Dict[str, Any]] = None


def _plain(value: Any) -> Any:
    # Enum members compare by their string value
    return getattr(value, "value", value)


def resolve(condition: Condition, context: ConditionContext) -> Any:
    """Return the actual value a condition compares, or the missing sentinel."""
    behavior = context.behavior
    engagement = context.engagement
    ctype = condition.type
    field_name = _FIELD_ALIASES.get(condition.field or "", condition.field or "")

    if ctype == "time":
        return behavior.session_duration_seconds
    if ctype == "scroll":
        return behavior.scroll_depth_percent
    if ctype == "engagement":
        return engagement.score
    if ctype == "tier":
        return engagement.tier.value
    if ctype == "device":
        return behavior.device_type.value
    if ctype == "time_of_day":
        return behavior.time_of_day.value
    if ctype == "behavior":
        if field_name in ("", "behavior_pattern"):
            return engagement.behavior_pattern.value
        value = getattr(behavior, field_name, _MISSING)
        return _MISSING if value is _MISSING else _plain(value)
    if ctype == "content":
        if field_name == "tools_used":
            return len(behavior.tools_used)
        if field_name == "content_consumed":
            return len(behavior.content_consumed)
        if field_name == "sections_viewed":
            return len(behavior.sections_viewed)
        return _MISSING
    if ctype == "custom":
        custom = context.custom or {}
        key = condition.field or ""
        if key in custom:
            return _plain(custom[key])
        if field_name in custom:
            return _plain(custom[field_name])
        return _MISSING

    logger.debug("Unknown condition type %r", ctype)
    return _MISSING


def compare(actual: Any, operator: str, expected: Any) -> bool:
    """Apply *operator* to (actual, expected). Never raises."""
    expected = _plain(expected)
    try:
        if operator == "eq":
            return actual == expected
        elif operator in ("ne", "neq"):
            return actual != expected
        elif operator == "gt":
            return float(actual) > float(expected)
        elif operator == "gte":
            return float(actual) >= float(expected)
        elif operator == "lt":
            return float(actual) < float(expected)
        elif operator == "lte":
            return float(actual) <= float(expected)
        elif operator == "includes":
            if isinstance(expected, (list, tuple, set, frozenset)):
                return actual in expected
            return expected in actual
        elif operator == "excludes":
            if isinstance(expected, (list, tuple, set, frozenset)):
                return actual not in expected
            return expected not in actual
        else:
            logger.warning("Unknown operator %r in condition", operator)
            return False
    except (TypeError, ValueError):
        return False


def evaluate(condition: Condition, context: ConditionContext) -> bool:
    actual = resolve(condition, context)
    if actual is _MISSING or actual is None:
        return False
    return compare(actual, condition.operator, condition.value)


def evaluate_all(conditions: Iterable[Condition], context: ConditionContext) -> bool:
    """All conditions must hold (AND). An empty list holds trivially."""
    return all(evaluate(c, context) for c in conditions)


def failing(conditions: Iterable[Condition], context: ConditionContext) -> List[Condition]:
    """Conditions that do not hold, for debugging and the CLI."""
    return [c for c in conditions if not evaluate(c, context)]
