"""
Decomposition stage.

Turns the whole input text into a root node with a NormalStatements child
and, when the rule has one, a Schedule child.
"""
import logging
from typing import Optional

from langsmith import traceable

from text2rule.core.semantic_transform import SemanticTransform
from text2rule.models.rule_tree import NodeType, RuleNode, RuleTree

from .base import StageResult

logger = logging.getLogger(__name__)


@traceable(name="decompose_stage")
async def decompose_rule(
    text: str,
    transform: SemanticTransform,
    tree: Optional[RuleTree] = None,
    prompt_override: Optional[str] = None,
) -> StageResult:
    """
    Run one decomposition attempt.

    When ``tree`` already has a root (a retry), the root is reused and only
    its children are rebuilt.
    """
    if not text or not text.strip():
        return StageResult.failure(tree, "No input text to decompose")

    try:
        result = await transform.decompose(text, prompt_override)
    except Exception as e:
        return StageResult.failure(tree, f"Decomposition call failed: {e}", calls=1)

    if result is None:
        return StageResult.failure(tree, "Decomposition returned no parseable result", calls=1)

    model_tag = transform.model_tag
    if tree is None or tree.root is None:
        tree = RuleTree(RuleNode(NodeType.ROOT, text, model_tag))
    else:
        tree.clear_children(tree.root)
        tree.root.text = text
        tree.root.similarity_score = None

    if result.normal_statements.strip():
        tree.add_child(tree.root, RuleNode(NodeType.NORMAL_STATEMENTS, result.normal_statements.strip(), model_tag))
    else:
        logger.warning("Decomposition produced no normal statements")

    if result.schedule.strip():
        tree.add_child(tree.root, RuleNode(NodeType.SCHEDULE, result.schedule.strip(), model_tag))

    logger.info(f"Decomposition produced {len(tree.root.children)} children")
    return StageResult(tree=tree, calls=1)
