"""
Action extraction stage.

Gives every Action node one ActionDetails child of the form
"Type: <type>, Channel: <channel>, Details: <details>", which the action
parser later turns into a structured action object.
"""
import logging
from typing import Optional

from langsmith import traceable

from text2rule.core.semantic_transform import SemanticTransform
from text2rule.models.rule_tree import NodeType, RuleNode, RuleTree
from text2rule.utils.pacing import CallPacer

from .base import StageResult

logger = logging.getLogger(__name__)

ACTION_MARKER = "-> Action:"


def action_source_text(text: str) -> str:
    """Text after "-> Action:" when present, else the whole text."""
    if ACTION_MARKER in text:
        return text.split(ACTION_MARKER, 1)[1].strip()
    return text.strip()


def format_action_details(action_type: str, channel: str, details: str) -> str:
    return f"Type: {action_type or 'Unknown'}, Channel: {channel or 'Unknown'}, Details: {details}"


@traceable(name="action_extraction_stage")
async def extract_actions(
    tree: Optional[RuleTree],
    transform: SemanticTransform,
    call_delay: float = 0.0,
) -> StageResult:
    """Run action extraction once. Unparseable answers fall back to an Unknown detail line."""
    if tree is None or tree.root is None:
        return StageResult.failure(tree, "No tree to extract actions from")

    targets = tree.find_all_by_type(NodeType.ACTION)
    if not targets:
        logger.info("No Action nodes found, skipping action extraction")
        return StageResult(tree=tree)

    pacer = CallPacer(call_delay)
    for node in targets:
        tree.clear_children(node)
        action_text = action_source_text(node.text)
        await pacer.wait()

        try:
            result = await transform.extract_action(action_text)
        except Exception as e:
            logger.error(f"Action extraction call failed: {e}")
            result = None

        if result is None:
            details = format_action_details("Unknown", "Unknown", action_text)
        else:
            details = format_action_details(result.action_type, result.channel, result.details or action_text)

        tree.add_child(node, RuleNode(NodeType.ACTION_DETAILS, details, node.model_tag or transform.model_tag))
        logger.info(f"Action details: {details}")

    return StageResult(tree=tree, calls=pacer.calls)
