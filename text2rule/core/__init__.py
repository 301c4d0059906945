"""Core engine: semantic transform port, consistency gate, retry decisions."""

from .semantic_transform import (
    SemanticTransform,
    LLMSemanticTransform,
)
from .consistency_gate import (
    ConsistencyGate,
    GateResult,
    GateScope,
    ROOT_SCOPE,
    gate_passes,
)
from .refinement import (
    RetryPolicy,
    build_feedback,
    PASS,
    RETRY,
    EXHAUSTED,
)

__all__ = [
    "SemanticTransform",
    "LLMSemanticTransform",
    "ConsistencyGate",
    "GateResult",
    "GateScope",
    "ROOT_SCOPE",
    "gate_passes",
    "RetryPolicy",
    "build_feedback",
    "PASS",
    "RETRY",
    "EXHAUSTED",
]
