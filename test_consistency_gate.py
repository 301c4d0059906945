"""Tests for the consistency gate and the retry decisions built on it."""
import pytest

from text2rule.core.consistency_gate import (
    ConsistencyGate,
    GateScope,
    NO_CHILDREN_REASON,
    ROOT_SCOPE,
    gate_passes,
)
from text2rule.core.refinement import EXHAUSTED, PASS, RETRY, RetryPolicy, build_feedback
from text2rule.models.rule_tree import NodeType, RuleNode, RuleTree


CONDITION_SCOPE = GateScope(NodeType.NORMAL_STATEMENTS, NodeType.SEGMENT)


def decomposed_tree(text: str = "the rule") -> RuleTree:
    tree = RuleTree(RuleNode(NodeType.ROOT, text))
    tree.add_child(tree.root, RuleNode(NodeType.NORMAL_STATEMENTS, "statements"))
    tree.add_child(tree.root, RuleNode(NodeType.SCHEDULE, "daily"))
    return tree


def test_gate_passes_threshold_boundary():
    """Missing scores never pass; a score equal to the threshold passes."""
    assert gate_passes(0.8, 0.8)
    assert gate_passes(0.95, 0.8)
    assert not gate_passes(0.79, 0.8)
    assert not gate_passes(None, 0.8)
    assert not gate_passes(None, 0.0)


async def test_root_scope_joins_children_and_scores_root(make_transform):
    """Root mode compares the root with all its children, newline-joined."""
    transform = make_transform(decompose_scores=0.9)
    transform.decompose_inputs.add("the rule")
    tree = decomposed_tree()

    result = await ConsistencyGate(transform, threshold=0.8).check(tree, ROOT_SCOPE)

    assert result.passed
    assert result.score == 0.9
    assert transform.score_requests == [("the rule", "statements\ndaily")]
    assert tree.root.similarity_score == 0.9
    assert all(c.similarity_score is None for c in tree.root.children)


async def test_scoped_mode_ignores_siblings_of_other_types(make_transform):
    """Only Segment children of NormalStatements take part in the comparison."""
    transform = make_transform(condition_scores=0.85)
    tree = decomposed_tree()
    statements = tree.root.children[0]
    tree.add_child(statements, RuleNode(NodeType.SEGMENT, "seg 1"))
    tree.add_child(statements, RuleNode(NodeType.POLICY, "policy text"))
    tree.add_child(statements, RuleNode(NodeType.SEGMENT, "seg 2"))

    result = await ConsistencyGate(transform).check(tree, CONDITION_SCOPE)

    assert transform.score_requests == [("statements", "seg 1\nseg 2")]
    assert statements.similarity_score == 0.85
    assert tree.root.similarity_score is None
    assert result.child_texts == ["seg 1", "seg 2"]


async def test_no_children_fails_fast_without_call(make_transform):
    """With nothing to compare the gate fails at 0.0 and never calls the transform."""
    transform = make_transform()
    tree = decomposed_tree()

    result = await ConsistencyGate(transform).check(tree, CONDITION_SCOPE)

    assert not result.passed
    assert result.score == 0.0
    assert NO_CHILDREN_REASON in result.reason
    assert transform.calls["score"] == 0


async def test_unparseable_score_counts_as_zero(make_transform):
    """A None score is stored as 0.0 and fails the gate."""
    transform = make_transform(decompose_scores=None)
    transform.decompose_inputs.add("the rule")
    tree = decomposed_tree()

    result = await ConsistencyGate(transform, threshold=0.0).check(tree, ROOT_SCOPE)

    assert not result.passed
    assert result.score == 0.0
    assert tree.root.similarity_score == 0.0
    assert result.reason


async def test_aggregate_is_lowest_node_score(make_transform):
    """One poorly extracted NormalStatements node fails the stage."""
    transform = make_transform(condition_scores=[0.95, 0.4])
    tree = RuleTree(RuleNode(NodeType.ROOT, "rule"))
    for i in range(2):
        statements = tree.add_child(tree.root, RuleNode(NodeType.NORMAL_STATEMENTS, f"s{i}"))
        tree.add_child(statements, RuleNode(NodeType.SEGMENT, f"seg{i}"))

    result = await ConsistencyGate(transform, threshold=0.8).check(tree, CONDITION_SCOPE)

    assert result.score == 0.4
    assert not result.passed
    assert [n.similarity_score for n in tree.find_all_by_type(NodeType.NORMAL_STATEMENTS)] == [0.95, 0.4]


async def test_missing_tree_fails(make_transform):
    result = await ConsistencyGate(make_transform()).check(None, ROOT_SCOPE)
    assert not result.passed
    assert result.score == 0.0


async def test_retry_policy_is_bounded(make_transform):
    """pass -> PASS; fail below ceiling -> RETRY; fail at ceiling -> EXHAUSTED."""
    transform = make_transform(decompose_scores=0.5)
    transform.decompose_inputs.add("the rule")
    failing = await ConsistencyGate(transform).check(decomposed_tree(), ROOT_SCOPE)
    policy = RetryPolicy(threshold=0.8, max_retries=3)

    assert [policy.decide(failing, n) for n in range(5)] == [RETRY, RETRY, RETRY, EXHAUSTED, EXHAUSTED]

    passing_transform = make_transform(decompose_scores=0.9)
    passing_transform.decompose_inputs.add("the rule")
    passing = await ConsistencyGate(passing_transform).check(decomposed_tree(), ROOT_SCOPE)
    assert policy.decide(passing, 3) == PASS


async def test_feedback_carries_score_original_and_children(make_transform):
    """Feedback names the stage, score vs threshold, original text and numbered children."""
    transform = make_transform(decompose_scores=0.42)
    transform.decompose_inputs.add("the rule")
    gate = await ConsistencyGate(transform, threshold=0.8).check(decomposed_tree(), ROOT_SCOPE)

    feedback = build_feedback("decomposition", gate)

    assert "DECOMPOSITION" in feedback
    assert "0.42" in feedback and "0.8" in feedback
    assert "the rule" in feedback
    assert "1. statements" in feedback
    assert "2. daily" in feedback


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
