"""
Schedule extraction stage.

Parses every Schedule node into structured fields and stores a templated
summary as its single ScheduleDetails child.
"""
import logging
from typing import Optional

from langsmith import traceable

from text2rule.core.semantic_transform import SemanticTransform
from text2rule.models.rule_tree import NodeType, RuleNode, RuleTree
from text2rule.models.schemas import ScheduleParserResult
from text2rule.utils.pacing import CallPacer

from .base import StageResult

logger = logging.getLogger(__name__)

NO_SCHEDULE_TEXT = "No schedule information available"


def format_time(value: dict) -> str:
    """{"hours": "9", "minutes": "0"} -> "09:00"; other shapes as key=value pairs."""
    if not value:
        return ""
    hours = value.get("hours", value.get("hour"))
    minutes = value.get("minutes", value.get("minute", "0"))
    if hours not in (None, ""):
        try:
            return f"{int(hours):02d}:{int(minutes or 0):02d}"
        except (TypeError, ValueError):
            return f"{hours}:{minutes}"
    return ", ".join(f"{k}={v}" for k, v in value.items())


def format_schedule_details(result: Optional[ScheduleParserResult]) -> str:
    if result is None or not result.schedule_type:
        return NO_SCHEDULE_TEXT

    parts = [f"Schedule Type: {result.schedule_type}"]
    if result.repeat:
        parts.append(f"Repeat: {result.repeat}")
    if result.day:
        parts.append(f"Day(s): {result.day}")
    if result.start_time:
        parts.append(f"Start Time: {format_time(result.start_time)}")
    if result.interval == "Yes":
        parts.append(f"Interval: {result.frequency}")
        if result.end_time:
            parts.append(f"End Time: {format_time(result.end_time)}")
    if result.segment_rule_start_date:
        parts.append(f"Start Date: {result.segment_rule_start_date}")
    if result.segment_rule_end_date:
        parts.append(f"End Date: {result.segment_rule_end_date}")
    return ", ".join(parts)


@traceable(name="schedule_extraction_stage")
async def extract_schedule(
    tree: Optional[RuleTree],
    transform: SemanticTransform,
    call_delay: float = 0.0,
) -> StageResult:
    """
    Run schedule extraction once (no consistency gate).

    A rule without a Schedule node is not an error. Parse failures become a
    "Schedule extraction failed" detail node instead of failing the stage.
    """
    if tree is None or tree.root is None:
        return StageResult.failure(tree, "No tree to extract schedule from")

    targets = tree.find_all_by_type(NodeType.SCHEDULE)
    if not targets:
        logger.info("No Schedule node found, skipping schedule extraction")
        return StageResult(tree=tree)

    pacer = CallPacer(call_delay)
    for node in targets:
        tree.clear_children(node)
        await pacer.wait()

        try:
            result = await transform.parse_schedule(node.text)
            details = format_schedule_details(result)
        except Exception as e:
            logger.error(f"Failed to parse schedule: {e}")
            details = f"Schedule extraction failed: {e}"

        tree.add_child(node, RuleNode(NodeType.SCHEDULE_DETAILS, details, node.model_tag or transform.model_tag))
        logger.info(f"Schedule details: {details}")

    return StageResult(tree=tree, calls=pacer.calls)
