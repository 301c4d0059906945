"""Action parser: ActionDetails "Key: Value, ..." text -> action objects."""
import logging
from typing import Any, Optional

from text2rule.models.rule_tree import NodeType, RuleNode

logger = logging.getLogger(__name__)

DEFAULT_ACTION_NAME = "Send Promotion"
DEFAULT_CHANNEL = "SMS"
DEFAULT_MESSAGE_ID = ""
ACTION_ID = 5


def parse_action_details(details: str) -> dict[str, str]:
    """Split on "," then on the first ":"; keys are trimmed with spaces turned into "_"."""
    fields = {}
    for part in details.split(","):
        part = part.strip()
        if ":" not in part:
            continue
        key, value = part.split(":", 1)
        fields[key.strip().replace(" ", "_")] = value.strip()
    return fields


def _field(name: str, value: str) -> dict[str, str]:
    return {"name": name, "value": value}


def build_action(details: str, parent_id: str = "0", index: int = 0) -> dict[str, Any]:
    fields = parse_action_details(details)
    return {
        "id": f"{parent_id}_{index}",
        "pid": parent_id,
        "type": "action",
        "action": {
            "id": ACTION_ID,
            "name": fields.get("Action", DEFAULT_ACTION_NAME),
        },
        "field": [
            _field("ActionCall", "EXTERNAL"),
            _field("ActionName", "UPLOADER_MAIN"),
            _field("ActionURL", "UPLOADER_CALL"),
            _field("ActionType", "ASYNCH"),
        ],
        "request": {
            "field": [
                _field("ActionKey", "campaign_action"),
                _field("CHANNEL", fields.get("Channel", DEFAULT_CHANNEL)),
                _field("MESSAGE_ID", fields.get("Message_ID", DEFAULT_MESSAGE_ID)),
            ],
        },
    }


class ActionParser:
    """Collects action objects from Action nodes that have an ActionDetails child."""

    def __init__(self, parent_id: str = "0"):
        self.parent_id = parent_id

    def extract_actions(self, root: Optional[RuleNode]) -> list[dict[str, Any]]:
        actions: list[dict[str, Any]] = []
        if root is None:
            return actions

        for node in root.walk():
            if not node.is_type(NodeType.ACTION):
                continue
            details = node.children_of_type(NodeType.ACTION_DETAILS)
            if not details or not details[0].text:
                continue
            try:
                actions.append(build_action(details[0].text, self.parent_id, len(actions)))
            except Exception as e:
                logger.error(f"Failed to parse action {details[0].text!r}: {e}")

        logger.info(f"Extracted {len(actions)} actions")
        return actions
