"""
Read-only renderers for a finished RuleTree.

FinalRuleJsonRenderer runs the three parsers and the builder to produce the
structured rule output; AsciiTreeRenderer draws the tree for logs and the CLI.
Neither mutates the tree.
"""
import json
import logging
from typing import Any, Optional

from text2rule.models.rule_tree import RuleNode, RuleTree

from .action_parser import ActionParser
from .condition_parser import ConditionParser
from .rule_json_builder import RuleJsonBuilder
from .schedule_parser import ScheduleParser

logger = logging.getLogger(__name__)


class FinalRuleJsonRenderer:
    """Tree -> rule JSON structure."""

    def __init__(self):
        self.condition_parser = ConditionParser()
        self.action_parser = ActionParser()
        self.schedule_parser = ScheduleParser()

    def render(self, tree: Optional[RuleTree]) -> list[dict[str, Any]]:
        if tree is None or tree.root is None:
            logger.warning("Render called with empty tree")
            return []

        try:
            conditions = self.condition_parser.extract_conditions(tree.root)
            actions = self.action_parser.extract_actions(tree.root)
            schedule = self.schedule_parser.extract_schedule(tree.root)
        except Exception as e:
            logger.error(f"Failed to render rule JSON: {e}")
            return []

        return (
            RuleJsonBuilder()
            .with_conditions(conditions)
            .with_actions(actions)
            .with_schedule(schedule)
            .build()
        )

    def render_json(self, tree: Optional[RuleTree], indent: Optional[int] = 2) -> str:
        return json.dumps(self.render(tree), indent=indent)


class AsciiTreeRenderer:
    """Tree -> box-drawing text."""

    HEADER = "--- ASCII Tree Visualization ---"
    FOOTER = "--------------------------------"

    def render(self, tree: Optional[RuleTree]) -> str:
        if tree is None or tree.root is None:
            logger.warning("Cannot render ASCII tree: tree root is empty")
            return ""

        lines = [self.HEADER]
        self._render_node(tree.root, "", True, lines)
        lines.append(self.FOOTER)
        return "\n".join(lines)

    def _render_node(self, node: RuleNode, prefix: str, is_tail: bool, lines: list[str]) -> None:
        label = node.label().replace("\n", " | ")
        lines.append(f"{prefix}{'└── ' if is_tail else '├── '}{label}")
        child_prefix = prefix + ("    " if is_tail else "│   ")
        for i, child in enumerate(node.children):
            self._render_node(child, child_prefix, i == len(node.children) - 1, lines)
