"""
Rule conversion stage.

Breaks every Segment statement into up to five typed children, in this
order: segments (conditions, one per line), Action, Policy, Schedule,
Sampling. Empty parts are not added.
"""
import logging
from typing import Optional

from langsmith import traceable

from text2rule.core.semantic_transform import SemanticTransform
from text2rule.models.rule_tree import NodeType, RuleNode, RuleTree
from text2rule.models.schemas import RuleConverterResult
from text2rule.utils.pacing import CallPacer

from .base import StageResult

logger = logging.getLogger(__name__)


def add_converted_children(tree: RuleTree, node: RuleNode, result: RuleConverterResult, model_tag: str) -> int:
    parts = [
        (NodeType.SEGMENTS_GROUP, "\n".join(s.strip() for s in result.segments if s and s.strip())),
        (NodeType.ACTION, result.actions),
        (NodeType.POLICY, result.policy),
        (NodeType.SCHEDULE, result.schedule),
        (NodeType.SAMPLING, result.sampling),
    ]
    added = 0
    for node_type, text in parts:
        if text and text.strip():
            tree.add_child(node, RuleNode(node_type, text.strip(), model_tag))
            added += 1
    return added


@traceable(name="rule_conversion_stage")
async def convert_rules(
    tree: Optional[RuleTree],
    transform: SemanticTransform,
    call_delay: float = 0.0,
) -> StageResult:
    """
    Run rule conversion once (no consistency gate).

    Segments whose answer cannot be parsed are skipped; the stage fails only
    when no Segment could be converted.
    """
    if tree is None or tree.root is None:
        return StageResult.failure(tree, "No tree to convert")

    # Snapshot first: conversion adds a Schedule child under each Segment,
    # which must not be picked up as a new target.
    targets = tree.find_all_by_type(NodeType.SEGMENT)
    if not targets:
        return StageResult.failure(tree, "No Segment nodes to convert")

    pacer = CallPacer(call_delay)
    converted = 0
    problems = []

    for node in targets:
        tree.clear_children(node)
        await pacer.wait()

        try:
            result = await transform.convert_rule(node.text)
        except Exception as e:
            problems.append(f"conversion call failed: {e}")
            continue

        if result is None:
            problems.append(f"could not parse conversion of: {node.text[:80]}")
            continue

        added = add_converted_children(tree, node, result, node.model_tag or transform.model_tag)
        converted += 1
        logger.info(f"Converted Segment into {added} typed children")

    if converted == 0:
        return StageResult.failure(tree, "; ".join(problems), calls=pacer.calls)

    return StageResult(tree=tree, reason="; ".join(problems), calls=pacer.calls)
