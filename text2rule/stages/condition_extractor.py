"""
Condition extraction stage.

Replaces the children of every NormalStatements node with one Segment per
extracted condition -> action statement.
"""
import logging
from typing import Optional

from langsmith import traceable

from text2rule.core.semantic_transform import SemanticTransform
from text2rule.models.rule_tree import NodeType, RuleNode, RuleTree
from text2rule.utils.pacing import CallPacer

from .base import StageResult

logger = logging.getLogger(__name__)


@traceable(name="condition_extraction_stage")
async def extract_conditions(
    tree: Optional[RuleTree],
    transform: SemanticTransform,
    prompt_override: Optional[str] = None,
    input_text: str = "",
    call_delay: float = 0.0,
) -> StageResult:
    """
    Run one condition extraction attempt.

    A node whose answer cannot be parsed is left without Segments; the stage
    only fails when no node could be processed at all.
    """
    if tree is None or tree.root is None:
        return StageResult.failure(tree, "No tree to extract conditions from")

    targets = tree.find_all_by_type(NodeType.NORMAL_STATEMENTS)
    if not targets:
        return StageResult.failure(tree, "No NormalStatements node found")

    pacer = CallPacer(call_delay)
    processed = 0
    problems = []

    for node in targets:
        tree.clear_children(node)
        await pacer.wait()

        try:
            texts = await transform.extract_child_texts(node.text, prompt_override, input_text)
        except Exception as e:
            problems.append(f"extraction call failed: {e}")
            continue

        if texts is None:
            problems.append("extraction response could not be parsed")
            continue

        for text in texts:
            tree.add_child(node, RuleNode(NodeType.SEGMENT, text, node.model_tag or transform.model_tag))
        processed += 1
        logger.info(f"Extracted {len(texts)} segments from NormalStatements")

    if processed == 0:
        return StageResult.failure(tree, "; ".join(problems), calls=pacer.calls)

    return StageResult(tree=tree, reason="; ".join(problems), calls=pacer.calls)
