"""
State schema for the rule conversion LangGraph workflow.

Stages:
1. Validate -> 2. Decompose (gated, refine loop) -> 3. Schedule Extract ->
4. Condition Extract (gated, refine loop) -> 5. Rule Convert ->
6. Action Extract -> 7. IF Condition -> 8. Render Output
"""
from typing import TypedDict, Optional, Literal, Any

from text2rule.utils.config import Config, config as default_config


class WorkflowState(TypedDict, total=False):
    """
    Shared state across all stages of the pipeline.

    Once ``workflow_failed`` is set no stage touches the tree again; the
    graph routes straight to the ``failed`` terminal.
    """

    # ==========================================================================
    # INPUT DATA
    # ==========================================================================
    input_text: str                           # Raw rule text
    kpi_context: str                          # Optional KPI catalogue for IF generation

    # ==========================================================================
    # STAGE 1: VALIDATION OUTPUT
    # ==========================================================================
    validation: dict                          # ValidationResult.model_dump()

    # ==========================================================================
    # SHARED TREE
    # ==========================================================================
    tree: Any                                 # RuleTree, grown in place by every stage

    # ==========================================================================
    # STAGE 2: DECOMPOSITION LOOP
    # ==========================================================================
    retry_count: int                          # Decomposition refinements so far
    consistency_score: float                  # Last root-level gate score
    feedback: str                             # Last decomposition feedback
    decompose_prompt: Optional[str]           # Refined prompt override (None = default)
    decompose_gate: dict                      # GateResult.to_dict()
    decompose_decision: str                   # pass / retry / exhausted
    previous_output: str                      # Children text of the last attempt

    # ==========================================================================
    # STAGE 4: CONDITION EXTRACTION LOOP
    # ==========================================================================
    condition_retry_count: int
    condition_consistency_score: float
    condition_feedback: str
    condition_prompt: Optional[str]
    condition_gate: dict
    condition_decision: str
    condition_previous_output: str

    # ==========================================================================
    # GATE SETTINGS
    # ==========================================================================
    threshold: float                          # Consistency pass threshold
    max_retries: int                          # Refinement ceiling per gated stage
    inter_call_delay: float                   # Seconds between LLM calls in one stage

    # ==========================================================================
    # FINAL OUTPUT
    # ==========================================================================
    rule_json: list                           # Structured rule output
    ascii_tree: str                           # Text rendering of the tree
    low_confidence: bool                      # A gate ran out of retries
    workflow_failed: bool
    failure_reason: str
    final_status: Literal["PENDING", "OK", "BEST_EFFORT", "INVALID", "FAIL"]

    # ==========================================================================
    # EXECUTION METADATA
    # ==========================================================================
    current_stage: str                        # Current stage name
    stage_timings: dict[str, int]             # Stage -> duration_ms
    total_runtime_ms: int                     # Total pipeline runtime

    # ==========================================================================
    # ERROR TRACKING
    # ==========================================================================
    errors: list[dict]                        # List of errors encountered
    warnings: list[str]                       # Non-blocking warnings


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def create_initial_state(
    input_text: str,
    kpi_context: Optional[str] = None,
    settings: Optional[Config] = None,
    threshold: Optional[float] = None,
    max_retries: Optional[int] = None,
    inter_call_delay: Optional[float] = None,
) -> WorkflowState:
    """
    Create initial workflow state.

    Args:
        input_text: Raw rule text
        kpi_context: KPI catalogue text (defaults to settings.KPI_CONTEXT)
        settings: Config instance for defaults
        threshold: Consistency threshold override
        max_retries: Refinement ceiling override
        inter_call_delay: Seconds between LLM calls override

    Returns:
        Initial WorkflowState
    """
    settings = settings or default_config

    return WorkflowState(
        # Input
        input_text=input_text or "",
        kpi_context=kpi_context if kpi_context is not None else settings.KPI_CONTEXT,

        # Stage outputs (initialized empty)
        validation={},
        tree=None,
        retry_count=0,
        consistency_score=0.0,
        feedback="",
        decompose_prompt=None,
        decompose_gate={},
        decompose_decision="",
        previous_output="",
        condition_retry_count=0,
        condition_consistency_score=0.0,
        condition_feedback="",
        condition_prompt=None,
        condition_gate={},
        condition_decision="",
        condition_previous_output="",

        # Gate settings
        threshold=threshold if threshold is not None else settings.CONSISTENCY_THRESHOLD,
        max_retries=max_retries if max_retries is not None else settings.MAX_RETRIES,
        inter_call_delay=inter_call_delay if inter_call_delay is not None else settings.INTER_CALL_DELAY,

        # Output
        rule_json=[],
        ascii_tree="",
        low_confidence=False,
        workflow_failed=False,
        failure_reason="",
        final_status="PENDING",

        # Metadata
        current_stage="init",
        stage_timings={},
        total_runtime_ms=0,
        errors=[],
        warnings=[],
    )


def add_stage_timing(state: WorkflowState, stage: str, duration_ms: int) -> None:
    """Add timing for a stage. Repeated stages (retries) accumulate."""
    state["stage_timings"][stage] = state["stage_timings"].get(stage, 0) + duration_ms
    state["total_runtime_ms"] = sum(state["stage_timings"].values())


def add_error(state: WorkflowState, stage: str, error: str, is_fatal: bool = False) -> None:
    """Add an error to state."""
    state["errors"].append({
        "stage": stage,
        "error": error,
        "is_fatal": is_fatal,
    })
    if is_fatal:
        state["workflow_failed"] = True
        state["failure_reason"] = f"{stage}: {error}"
        state["final_status"] = "FAIL"
