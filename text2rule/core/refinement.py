"""
Retry / refinement decisions for consistency-gated stages.

Each gated stage cycles Attempt -> Gate -> (Refine -> Attempt)* until the gate
passes or the retry ceiling is reached. On exhaustion the pipeline moves on
with the last attempt's output and marks the run as low confidence.
"""
import logging
from dataclasses import dataclass

from text2rule.core.consistency_gate import GateResult

logger = logging.getLogger(__name__)

PASS = "pass"
RETRY = "retry"
EXHAUSTED = "exhausted"


@dataclass
class RetryPolicy:
    """Threshold and retry ceiling for one stage."""
    threshold: float = 0.8
    max_retries: int = 3

    def decide(self, gate: GateResult, retry_count: int) -> str:
        if gate.passed:
            return PASS
        if retry_count >= self.max_retries:
            return EXHAUSTED
        return RETRY


def build_feedback(stage: str, gate: GateResult) -> str:
    """
    Feedback text handed to the prompt refinement call.

    Carries the stage, score against threshold, the original text and the
    numbered child texts so the refiner can see what was lost.
    """
    lines = [
        f"Stage: {stage.upper()}",
        f"Consistency Score: {gate.score:.2f} (Threshold: {gate.threshold})",
        "",
    ]
    if gate.passed:
        lines.append("The output meets the consistency threshold.")
    else:
        lines.append(
            "The output is below the consistency threshold. The derived statements do not fully "
            "preserve the meaning of the original text. Make sure every condition, threshold, "
            "action, Message ID and schedule detail is carried over."
        )
    if gate.reason:
        lines.append(f"Reason: {gate.reason}")

    lines.append("")
    lines.append("Original Text:")
    lines.append(gate.original_text)
    lines.append("")
    lines.append("Extracted Children:")
    if gate.child_texts:
        for i, text in enumerate(gate.child_texts, start=1):
            lines.append(f"{i}. {text}")
    else:
        lines.append("(none)")

    return "\n".join(lines)


def format_previous_output(gate: GateResult) -> str:
    return "\n".join(gate.child_texts)
