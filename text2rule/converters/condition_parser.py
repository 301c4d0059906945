"""
Condition parser.

Turns IF-condition text such as ``if (X >= 10) AND (Y = 'abc')`` into
structured condition objects.
"""
import logging
from typing import Any, Optional, Union

from text2rule.models.rule_tree import NodeType, RuleNode

logger = logging.getLogger(__name__)

# Two-character operators first so ">" never matches inside ">=".
OPERATORS = (">=", "<=", "!=", ">", "<", "=")

# Older trees tag the node IF_Condition.
CONDITION_NODE_TYPES = (NodeType.IF_CONDITION.lower(), "if_condition")


def clean_condition_text(text: str) -> str:
    """Strip a leading ``if (``/``if(`` and every trailing ``)``."""
    cleaned = text.strip()
    if cleaned.startswith("if ("):
        cleaned = cleaned[4:]
    elif cleaned.startswith("if("):
        cleaned = cleaned[3:]
    while cleaned.endswith(")"):
        cleaned = cleaned[:-1]
    return cleaned


def find_operator(conjunct: str) -> Optional[str]:
    for op in OPERATORS:
        if op in conjunct:
            return op
    return None


def coerce_value(raw: str) -> Union[int, float, str]:
    """Decimal point -> float, otherwise try int, otherwise keep the string."""
    if "." in raw:
        try:
            return float(raw)
        except ValueError:
            return raw
    try:
        return int(raw)
    except ValueError:
        return raw


def parse_conjunct(conjunct: str, parent_id: str, index: int) -> Optional[dict[str, Any]]:
    """Parse one ``A op B`` piece. Returns None when no operator is present."""
    conjunct = conjunct.strip().replace("(", "").replace(")", "").strip()
    operator = find_operator(conjunct)
    if operator is None:
        logger.warning(f"No operator in condition {conjunct!r}, skipping")
        return None

    left, right = conjunct.split(operator, 1)
    name = left.strip()
    if not name:
        logger.warning(f"Missing profile name in condition {conjunct!r}, skipping")
        return None

    value = right.strip().replace("'", "").replace('"', "")
    return {
        "id": f"{parent_id}_{index}",
        "pid": parent_id,
        "type": "condition",
        "profile": {"id": 1000 + index, "name": name},
        "operator": operator,
        "values": {"value": coerce_value(value)},
    }


def parse_if_condition(text: str, parent_id: str = "0", start_index: int = 0) -> list[dict[str, Any]]:
    """Split on `` AND `` and parse every conjunct; unparseable ones are dropped."""
    conditions = []
    for i, part in enumerate(clean_condition_text(text).split(" AND ")):
        condition = parse_conjunct(part, parent_id, start_index + i)
        if condition is not None:
            conditions.append(condition)
    return conditions


class ConditionParser:
    """Collects condition objects from every IfCondition node of a tree."""

    def __init__(self, parent_id: str = "0"):
        self.parent_id = parent_id

    def extract_conditions(self, root: Optional[RuleNode]) -> list[dict[str, Any]]:
        conditions: list[dict[str, Any]] = []
        if root is None:
            return conditions

        for node in root.walk():
            if node.node_type.lower() not in CONDITION_NODE_TYPES or not node.text:
                continue
            try:
                conditions.extend(parse_if_condition(node.text, self.parent_id, len(conditions)))
            except Exception as e:
                logger.error(f"Failed to parse condition {node.text!r}: {e}")

        logger.info(f"Extracted {len(conditions)} conditions")
        return conditions
