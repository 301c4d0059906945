"""Schedule parser: ScheduleDetails summary -> schedule object."""
import logging
from typing import Any, Optional

from text2rule.models.rule_tree import NodeType, RuleNode

logger = logging.getLogger(__name__)

SCHEDULE_TYPE_PREFIX = "Schedule Type:"
DEFAULT_START_DATE = "2024-11-01"
DEFAULT_EXPIRY_DATE = "2024-11-30"


def extract_value(text: str, prefix: str) -> str:
    """Text after ``prefix`` up to the next comma (or end), trimmed."""
    start = text.find(prefix)
    if start < 0:
        return ""
    start += len(prefix)
    end = text.find(",", start)
    if end < 0:
        end = len(text)
    return text[start:end].strip()


def build_schedule(details: str) -> dict[str, Any]:
    label = extract_value(details, SCHEDULE_TYPE_PREFIX)
    return {
        "field": [
            {"name": "ScheduleId", "value": ""},
            {"name": "ScheduleName", "value": label},
            {"name": "ScheduleType", "value": label},
            {"name": "StartDate", "value": DEFAULT_START_DATE},
            {"name": "ExpiryDate", "value": DEFAULT_EXPIRY_DATE},
            {"name": "Repeat", "value": "Yes"},
        ],
    }


class ScheduleParser:
    """Builds the schedule object from the first Schedule node that has details."""

    def extract_schedule(self, root: Optional[RuleNode]) -> Optional[dict[str, Any]]:
        if root is None:
            return None

        # Segment-level Schedule nodes carry no ScheduleDetails, skip past them.
        for node in root.walk():
            if not node.is_type(NodeType.SCHEDULE):
                continue
            for details in node.walk():
                if details.is_type(NodeType.SCHEDULE_DETAILS) and details.text:
                    schedule = build_schedule(details.text)
                    logger.info(f"Extracted schedule: {extract_value(details.text, SCHEDULE_TYPE_PREFIX)!r}")
                    return schedule

        logger.debug("No Schedule/ScheduleDetails node found")
        return None
