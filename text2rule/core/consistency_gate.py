"""
Consistency Gate - compares a node's text with the text of its derived children.

Two scopes share one implementation:
- root scope: the tree root against all of its direct children
- scoped: every node of one type (e.g. NormalStatements) against only its
  children of a given type (e.g. Segment); siblings of other types are left
  out of the comparison

The score is stored on the checked node, never on the children.
"""
import logging
from dataclasses import dataclass, field
from typing import Optional

from langsmith import traceable

from text2rule.core.semantic_transform import SemanticTransform
from text2rule.models.rule_tree import RuleNode, RuleTree
from text2rule.utils.pacing import CallPacer

logger = logging.getLogger(__name__)

NO_CHILDREN_REASON = "no children to compare"


def gate_passes(score: Optional[float], threshold: float) -> bool:
    """A missing score never passes."""
    return score is not None and score >= threshold


@dataclass
class GateCheck:
    """Outcome for one checked node."""
    node_type: str
    original_text: str
    child_texts: list[str]
    score: float
    reason: str = ""


@dataclass
class GateResult:
    """Aggregate outcome of one gate run."""
    score: float
    threshold: float
    passed: bool
    reason: str = ""
    checks: list[GateCheck] = field(default_factory=list)

    @property
    def original_text(self) -> str:
        return "\n".join(c.original_text for c in self.checks)

    @property
    def child_texts(self) -> list[str]:
        return [t for c in self.checks for t in c.child_texts]

    def to_dict(self) -> dict:
        return {
            "score": round(self.score, 4),
            "threshold": self.threshold,
            "passed": self.passed,
            "reason": self.reason,
            "checked_nodes": len(self.checks),
        }


@dataclass
class GateScope:
    """
    Which nodes to check and which of their children count.

    ``node_type`` None means the tree root. ``child_type`` None means every
    direct child.
    """
    node_type: Optional[str] = None
    child_type: Optional[str] = None

    def targets(self, tree: RuleTree) -> list[RuleNode]:
        if tree is None or tree.root is None:
            return []
        if self.node_type is None:
            return [tree.root]
        return tree.find_all_by_type(self.node_type)

    def relevant_children(self, node: RuleNode) -> list[RuleNode]:
        if self.child_type is None:
            return list(node.children)
        return node.children_of_type(self.child_type)


ROOT_SCOPE = GateScope()


class ConsistencyGate:
    """Scores nodes against their children and applies the pass threshold."""

    def __init__(
        self,
        transform: SemanticTransform,
        threshold: float = 0.8,
        call_delay: float = 0.0,
    ):
        self.transform = transform
        self.threshold = threshold
        self.call_delay = call_delay

    async def _check_node(self, node: RuleNode, scope: GateScope) -> GateCheck:
        children = scope.relevant_children(node)
        child_texts = [c.text for c in children]

        if not children:
            node.similarity_score = 0.0
            logger.warning(f"Consistency check on {node.node_type}: {NO_CHILDREN_REASON}")
            return GateCheck(node.node_type, node.text, [], 0.0, NO_CHILDREN_REASON)

        score = await self.transform.score_similarity(node.text, "\n".join(child_texts))
        reason = ""
        if score is None:
            reason = "similarity score could not be parsed"
            score = 0.0

        node.similarity_score = score
        return GateCheck(node.node_type, node.text, child_texts, score, reason)

    @traceable(name="consistency_gate")
    async def check(self, tree: RuleTree, scope: GateScope = ROOT_SCOPE) -> GateResult:
        """
        Run the gate over every node the scope selects.

        The aggregate score is the lowest per-node score, so one poorly
        extracted node fails the whole stage.
        """
        targets = scope.targets(tree)
        if not targets:
            return GateResult(0.0, self.threshold, False, f"no {scope.node_type or 'root'} node to check")

        pacer = CallPacer(self.call_delay)
        checks = []
        for node in targets:
            await pacer.wait()
            checks.append(await self._check_node(node, scope))

        score = min(c.score for c in checks)
        reason = "; ".join(c.reason for c in checks if c.reason)
        # A node with nothing to compare or an unparseable score never passes, whatever the threshold.
        passed = gate_passes(score, self.threshold) and not any(c.reason for c in checks)

        logger.info(
            f"Consistency gate {'PASSED' if passed else 'FAILED'}: "
            f"score={score:.2f}, threshold={self.threshold}, nodes={len(checks)}"
        )
        return GateResult(score, self.threshold, passed, reason, checks)
