"""
Rule JSON builder.

Assembles parsed conditions, actions and schedule into the output shape:

    [{"detail": {"rules": {"id": "0", "pid": "#", "childrens": [...], "schedule": {...}}}}]

Conditions hang directly under the synthetic root "0". Every action is copied
under every condition (ids "0_<c>_<a>"): actions are not bound to the
condition that produced them at this point.
"""
import copy
import json
import logging
from typing import Any, Optional

logger = logging.getLogger(__name__)

ROOT_ID = "0"
ROOT_PID = "#"


class RuleJsonBuilder:
    """Fluent builder for the rule output structure."""

    def __init__(self):
        self.conditions: list[dict[str, Any]] = []
        self.actions: list[dict[str, Any]] = []
        self.schedule: Optional[dict[str, Any]] = None

    def with_conditions(self, conditions: Optional[list[dict]]) -> "RuleJsonBuilder":
        self.conditions = list(conditions or [])
        return self

    def with_actions(self, actions: Optional[list[dict]]) -> "RuleJsonBuilder":
        self.actions = list(actions or [])
        return self

    def with_schedule(self, schedule: Optional[dict]) -> "RuleJsonBuilder":
        self.schedule = schedule
        return self

    def _conditions_with_actions(self) -> list[dict[str, Any]]:
        children = []
        for ci, condition in enumerate(self.conditions):
            node = copy.deepcopy(condition)
            node["id"] = f"{ROOT_ID}_{ci}"
            node["pid"] = ROOT_ID

            action_children = []
            for ai, action in enumerate(self.actions):
                action_copy = copy.deepcopy(action)
                action_copy["id"] = f"{ROOT_ID}_{ci}_{ai}"
                action_copy["pid"] = f"{ROOT_ID}_{ci}"
                action_children.append(action_copy)

            if action_children:
                node["childrens"] = action_children
            children.append(node)
        return children

    def build(self) -> list[dict[str, Any]]:
        """Return the rule structure, or [] if it could not be assembled."""
        try:
            rules: dict[str, Any] = {"id": ROOT_ID, "pid": ROOT_PID}
            children = self._conditions_with_actions()
            if children:
                rules["childrens"] = children
            if self.schedule is not None:
                rules["schedule"] = self.schedule

            logger.info(
                f"Built rule JSON: {len(self.conditions)} conditions, "
                f"{len(self.actions)} actions, schedule={self.schedule is not None}"
            )
            return [{"detail": {"rules": rules}}]
        except Exception as e:
            logger.error(f"Failed to build rule JSON: {e}")
            return []

    def build_json(self, indent: Optional[int] = 2) -> str:
        return json.dumps(self.build(), indent=indent)
