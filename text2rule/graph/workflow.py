"""
LangGraph workflow assembly and run helpers for the rule conversion pipeline.
"""
import logging
from typing import Optional

from langgraph.graph import StateGraph, END
from langsmith import traceable

from text2rule.core.semantic_transform import LLMSemanticTransform, SemanticTransform
from text2rule.prompts import CONSISTENCY_KEY
from text2rule.utils.config import Config, config as default_config

from .nodes import (
    validate_node,
    decompose_node,
    consistency_check_decompose_node,
    refine_decompose_prompt_node,
    schedule_extract_node,
    condition_extract_node,
    consistency_check_condition_node,
    refine_condition_prompt_node,
    rule_convert_node,
    action_extract_node,
    if_condition_node,
    render_output_node,
    aborted_invalid_node,
    failed_node,
    should_abort,
    route_after_validation,
    route_after_decompose_gate,
    route_after_condition_gate,
)
from .state import WorkflowState, create_initial_state

logger = logging.getLogger(__name__)


# =============================================================================
# WORKFLOW GRAPH CREATION
# =============================================================================

def create_rule_workflow():
    """
    Create the rule conversion LangGraph workflow.

    Flow:
    ┌──────────┐   ┌───────────┐   ┌─────────────────────────────┐
    │ Validate │ → │ Decompose │ → │ Consistency Check (root)    │
    └────┬─────┘   └─────▲─────┘   └──────────────┬──────────────┘
         │               │                        │
         │ invalid       │ retry < max            │ pass / retries exhausted
         ▼               │                        ▼
    [aborted_invalid]  ┌─┴──────────────┐   ┌──────────────────┐
                       │ Refine Prompt  │   │ Schedule Extract │
                       └────────────────┘   └────────┬─────────┘
                                                     ▼
    ┌───────────────────┐   ┌──────────────────────────────────────┐
    │ Condition Extract │ → │ Consistency Check (NormalStatements) │
    └─────────▲─────────┘   └──────────────────┬───────────────────┘
              │ retry < max                    │ pass / retries exhausted
        ┌─────┴─────────┐                      ▼
        │ Refine Prompt │     Rule Convert → Action Extract → IF Condition
        └───────────────┘                      → Render Output → [END]

    Any stage failure routes to [failed].

    Returns:
        Compiled StateGraph workflow
    """
    workflow = StateGraph(WorkflowState)

    # ==========================================================================
    # ADD NODES (all have @traceable for LangSmith observability)
    # ==========================================================================
    workflow.add_node("validate", validate_node)
    workflow.add_node("decompose", decompose_node)
    workflow.add_node("consistency_check_decompose", consistency_check_decompose_node)
    workflow.add_node("refine_decompose_prompt", refine_decompose_prompt_node)
    workflow.add_node("schedule_extract", schedule_extract_node)
    workflow.add_node("condition_extract", condition_extract_node)
    workflow.add_node("consistency_check_condition", consistency_check_condition_node)
    workflow.add_node("refine_condition_prompt", refine_condition_prompt_node)
    workflow.add_node("rule_convert", rule_convert_node)
    workflow.add_node("action_extract", action_extract_node)
    workflow.add_node("if_condition", if_condition_node)
    workflow.add_node("render_output", render_output_node)
    workflow.add_node("aborted_invalid", aborted_invalid_node)
    workflow.add_node("failed", failed_node)

    # ==========================================================================
    # SET ENTRY POINT
    # ==========================================================================
    workflow.set_entry_point("validate")

    # ==========================================================================
    # ADD EDGES
    # ==========================================================================

    # Stage 1 → Stage 2 or terminal
    workflow.add_conditional_edges(
        "validate",
        route_after_validation,
        {
            "continue": "decompose",
            "invalid": "aborted_invalid",
            "abort": "failed",
        }
    )

    # Stage 2 loop
    workflow.add_conditional_edges(
        "decompose",
        should_abort,
        {"continue": "consistency_check_decompose", "abort": "failed"}
    )
    workflow.add_conditional_edges(
        "consistency_check_decompose",
        route_after_decompose_gate,
        {
            "refine": "refine_decompose_prompt",
            "continue": "schedule_extract",
            "abort": "failed",
        }
    )
    workflow.add_conditional_edges(
        "refine_decompose_prompt",
        should_abort,
        {"continue": "decompose", "abort": "failed"}
    )

    # Stage 3 → Stage 4
    workflow.add_conditional_edges(
        "schedule_extract",
        should_abort,
        {"continue": "condition_extract", "abort": "failed"}
    )

    # Stage 4 loop
    workflow.add_conditional_edges(
        "condition_extract",
        should_abort,
        {"continue": "consistency_check_condition", "abort": "failed"}
    )
    workflow.add_conditional_edges(
        "consistency_check_condition",
        route_after_condition_gate,
        {
            "refine": "refine_condition_prompt",
            "continue": "rule_convert",
            "abort": "failed",
        }
    )
    workflow.add_conditional_edges(
        "refine_condition_prompt",
        should_abort,
        {"continue": "condition_extract", "abort": "failed"}
    )

    # Stages 5 → 8
    workflow.add_conditional_edges(
        "rule_convert",
        should_abort,
        {"continue": "action_extract", "abort": "failed"}
    )
    workflow.add_conditional_edges(
        "action_extract",
        should_abort,
        {"continue": "if_condition", "abort": "failed"}
    )
    workflow.add_conditional_edges(
        "if_condition",
        should_abort,
        {"continue": "render_output", "abort": "failed"}
    )
    workflow.add_conditional_edges(
        "render_output",
        should_abort,
        {"continue": END, "abort": "failed"}
    )

    # Terminals
    workflow.add_edge("aborted_invalid", END)
    workflow.add_edge("failed", END)

    # ==========================================================================
    # COMPILE
    # ==========================================================================
    return workflow.compile()


# =============================================================================
# RUN PIPELINE FUNCTIONS
# =============================================================================

def recursion_limit_for(max_retries: int, settings: Config) -> int:
    """
    Graph step budget for one run.

    Each gated loop takes at most 3 * max_retries + 2 steps (attempt, gate,
    refine); validate, schedule and the four closing stages add 6 more, and
    the failed terminal and some headroom make up the rest. The configured
    limit is a floor, never a cap on the retry ceiling.
    """
    return max(settings.RECURSION_LIMIT, 2 * (3 * max_retries + 2) + 10)


def default_transform(settings: Config) -> SemanticTransform:
    """LLM-backed transform used when the caller does not supply one."""
    return LLMSemanticTransform(settings=settings)


def _prepare_run(
    input_text: str,
    transform: Optional[SemanticTransform],
    settings: Optional[Config],
    kpi_context: Optional[str],
    threshold: Optional[float],
    max_retries: Optional[int],
    inter_call_delay: Optional[float],
) -> tuple[WorkflowState, dict]:
    """Build the initial state and the run config for one conversion."""
    settings = settings or default_config
    transform = transform or default_transform(settings)

    # Per-stage gate settings come from the consistency prompt's attributes
    prompts = transform.prompt_registry
    if prompts is not None:
        if threshold is None:
            threshold = prompts.get_float(CONSISTENCY_KEY, "consistency_threshold", settings.CONSISTENCY_THRESHOLD)
        if max_retries is None:
            max_retries = prompts.get_int(CONSISTENCY_KEY, "max_retries", settings.MAX_RETRIES)

    initial_state = create_initial_state(
        input_text=input_text,
        kpi_context=kpi_context,
        settings=settings,
        threshold=threshold,
        max_retries=max_retries,
        inter_call_delay=inter_call_delay,
    )
    run_config = {
        "recursion_limit": recursion_limit_for(initial_state["max_retries"], settings),
        "configurable": {"transform": transform, "settings": settings},
    }
    return initial_state, run_config


@traceable(name="run_rule_pipeline")
async def run_rule_pipeline(
    input_text: str,
    transform: Optional[SemanticTransform] = None,
    settings: Optional[Config] = None,
    kpi_context: Optional[str] = None,
    threshold: Optional[float] = None,
    max_retries: Optional[int] = None,
    inter_call_delay: Optional[float] = None,
) -> WorkflowState:
    """
    Run the full rule conversion pipeline.

    Args:
        input_text: Free-text rule
        transform: SemanticTransform to use (defaults to the LLM-backed one)
        settings: Config instance (defaults to the module config)
        kpi_context: KPI catalogue for IF generation
        threshold: Consistency threshold override
        max_retries: Refinement ceiling override
        inter_call_delay: Seconds between LLM calls override

    Returns:
        Final WorkflowState with results
    """
    workflow = create_rule_workflow()
    initial_state, run_config = _prepare_run(
        input_text, transform, settings, kpi_context, threshold, max_retries, inter_call_delay
    )

    run_transform = run_config["configurable"]["transform"]
    try:
        final_state = await workflow.ainvoke(initial_state, config=run_config)
    finally:
        # A transform built for this run is closed with it
        if transform is None:
            await run_transform.aclose()

    # Log summary
    logger.info(
        f"Pipeline complete: status={final_state.get('final_status')}, "
        f"runtime={final_state.get('total_runtime_ms')}ms, "
        f"decompose_retries={final_state.get('retry_count')}, "
        f"condition_retries={final_state.get('condition_retry_count')}"
    )
    if isinstance(run_transform, LLMSemanticTransform):
        run_transform.client.stats.log_summary()

    return final_state


async def run_rule_pipeline_streaming(
    input_text: str,
    transform: Optional[SemanticTransform] = None,
    settings: Optional[Config] = None,
    kpi_context: Optional[str] = None,
    threshold: Optional[float] = None,
    max_retries: Optional[int] = None,
    inter_call_delay: Optional[float] = None,
):
    """
    Run pipeline with streaming state updates.

    Yields ``{node_name: state}`` after each node completes.
    """
    workflow = create_rule_workflow()
    initial_state, run_config = _prepare_run(
        input_text, transform, settings, kpi_context, threshold, max_retries, inter_call_delay
    )

    try:
        async for update in workflow.astream(initial_state, config=run_config):
            yield update
    finally:
        if transform is None:
            await run_config["configurable"]["transform"].aclose()
