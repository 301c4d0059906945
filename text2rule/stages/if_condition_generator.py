"""
IF-condition generation stage.

For every `segments` node (conditions, one per line) the KPI names are
matched first, then a single `if (...) AND (...)` expression is generated and
stored as the node's IfCondition child.
"""
import logging
from typing import Optional

from langsmith import traceable

from text2rule.core.semantic_transform import SemanticTransform
from text2rule.models.rule_tree import NodeType, RuleNode, RuleTree
from text2rule.utils.pacing import CallPacer

from .base import StageResult

logger = logging.getLogger(__name__)

IF_ERROR_TEXT = "if (error)"


@traceable(name="if_condition_stage")
async def generate_if_conditions(
    tree: Optional[RuleTree],
    transform: SemanticTransform,
    kpi_context: str = "",
    call_delay: float = 0.0,
) -> StageResult:
    """Run IF generation once. Failures produce "if (error)" for that node."""
    if tree is None or tree.root is None:
        return StageResult.failure(tree, "No tree to generate IF conditions for")

    targets = tree.find_all_by_type(NodeType.SEGMENTS_GROUP)
    if not targets:
        logger.info("No segments nodes found, skipping IF generation")
        return StageResult(tree=tree)

    pacer = CallPacer(call_delay)
    for node in targets:
        tree.clear_children(node)
        conditions = [line.strip() for line in node.text.split("\n") if line.strip()]

        await pacer.wait()
        try:
            kpi_matches = await transform.match_kpis(node.text, kpi_context)
        except Exception as e:
            logger.error(f"KPI matching failed: {e}")
            kpi_matches = []

        await pacer.wait()
        try:
            if_text = await transform.generate_if_condition(conditions, kpi_context, node.text, kpi_matches)
        except Exception as e:
            logger.error(f"IF generation failed: {e}")
            if_text = ""

        tree.add_child(node, RuleNode(NodeType.IF_CONDITION, if_text or IF_ERROR_TEXT, node.model_tag or transform.model_tag))
        logger.info(f"Generated IF condition: {if_text or IF_ERROR_TEXT}")

    return StageResult(tree=tree, calls=pacer.calls)
