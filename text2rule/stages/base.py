"""
Shared pieces for stage controllers.

A stage controller is a single attempt: it locates the node type it owns,
clears the previous output under it, calls the semantic transform once per
node and appends the new children. It never decides about retries.
Calls within one stage are spaced by utils.pacing.CallPacer.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from text2rule.models.rule_tree import RuleTree

logger = logging.getLogger(__name__)


@dataclass
class StageResult:
    """Outcome of one stage attempt."""
    tree: Optional[RuleTree]
    failed: bool = False
    reason: str = ""
    calls: int = 0

    @classmethod
    def failure(cls, tree: Optional[RuleTree], reason: str, calls: int = 0) -> "StageResult":
        logger.error(f"Stage failed: {reason}")
        return cls(tree=tree, failed=True, reason=reason, calls=calls)
