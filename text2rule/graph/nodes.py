"""
LangGraph nodes for the rule conversion pipeline.

All nodes have @traceable for LangSmith observability. Collaborators (the
semantic transform and the Config instance) come from
``config["configurable"]`` so a run can be wired with a scripted transform.

Stages:
1. Validate - single pass/fail check, no tree
2. Decompose - NormalStatements + Schedule under the root (gated)
3. Schedule Extract - ScheduleDetails summary
4. Condition Extract - Segments under NormalStatements (gated)
5. Rule Convert - typed children under each Segment
6. Action Extract - ActionDetails under each Action
7. IF Condition - one IfCondition per segments node
8. Render Output - rule JSON + ASCII tree
"""
import time
import logging
from typing import Optional

from langchain_core.runnables import RunnableConfig
from langsmith import traceable

from text2rule.core.consistency_gate import ConsistencyGate, GateResult, GateScope, ROOT_SCOPE
from text2rule.core.refinement import EXHAUSTED, RETRY, RetryPolicy, build_feedback, format_previous_output
from text2rule.core.semantic_transform import SemanticTransform
from text2rule.models.rule_tree import NodeType
from text2rule.prompts import CONDITION_KEY, DECOMPOSITION_KEY
from text2rule.utils.config import Config, config as default_config

from .state import (
    WorkflowState,
    add_stage_timing,
    add_error,
)

logger = logging.getLogger(__name__)

CONDITION_SCOPE = GateScope(NodeType.NORMAL_STATEMENTS, NodeType.SEGMENT)


# =============================================================================
# UTILITY: RUN DEPENDENCIES
# =============================================================================

def get_transform(config: Optional[RunnableConfig]) -> SemanticTransform:
    configurable = (config or {}).get("configurable", {})
    transform = configurable.get("transform")
    if transform is None:
        raise ValueError("No semantic transform configured for this run")
    return transform


def get_settings(config: Optional[RunnableConfig]) -> Config:
    configurable = (config or {}).get("configurable", {})
    return configurable.get("settings") or default_config


def _elapsed_ms(start_time: float) -> int:
    return int((time.time() - start_time) * 1000)


def _record_gate(state: WorkflowState, stage: str, result: GateResult, retry_count: int) -> str:
    """Apply the retry policy to a gate result and log the decision."""
    policy = RetryPolicy(threshold=state["threshold"], max_retries=state["max_retries"])
    decision = policy.decide(result, retry_count)

    if decision == EXHAUSTED:
        state["low_confidence"] = True
        message = (
            f"{stage} consistency {result.score:.2f} below {result.threshold} after "
            f"{retry_count} retries, proceeding with best effort"
        )
        state["warnings"].append(message)
        logger.warning(message)
    else:
        logger.info(
            f"{stage} gate: {decision} (score={result.score:.2f}, threshold={result.threshold}, "
            f"retry {retry_count}/{policy.max_retries})"
        )
    return decision


# =============================================================================
# STAGE 1: VALIDATION NODE
# =============================================================================

@traceable(name="stage1_validate")
async def validate_node(state: WorkflowState, config: RunnableConfig) -> WorkflowState:
    """
    Stage 1: Check the raw text is a convertible rule.

    Not consistency-gated. A rejected rule ends the run with no tree.
    """
    start_time = time.time()
    state["current_stage"] = "validate"

    try:
        from ..stages import validate_input

        result = await validate_input(state["input_text"], get_transform(config))
        state["validation"] = result.model_dump()

        add_stage_timing(state, "validate", _elapsed_ms(start_time))
        logger.info(f"Stage 1 complete: valid={result.is_valid}, issues={len(result.issues_detected)}")

    except Exception as e:
        logger.error(f"Validation failed: {e}")
        add_error(state, "validate", str(e), is_fatal=True)

    return state


# =============================================================================
# STAGE 2: DECOMPOSITION LOOP
# =============================================================================

@traceable(name="stage2_decompose")
async def decompose_node(state: WorkflowState, config: RunnableConfig) -> WorkflowState:
    """
    Stage 2: Split the rule into NormalStatements and Schedule.

    On a retry the root is reused and its children rebuilt with the refined
    prompt override.
    """
    start_time = time.time()
    state["current_stage"] = "decompose"

    try:
        from ..stages import decompose_rule

        result = await decompose_rule(
            state["input_text"],
            get_transform(config),
            tree=state.get("tree"),
            prompt_override=state.get("decompose_prompt"),
        )
        if result.failed:
            add_error(state, "decompose", result.reason, is_fatal=True)
        else:
            state["tree"] = result.tree
            add_stage_timing(state, "decompose", _elapsed_ms(start_time))
            logger.info(
                f"Stage 2 complete: {len(result.tree.root.children)} children "
                f"(attempt {state['retry_count'] + 1})"
            )

    except Exception as e:
        logger.error(f"Decomposition failed: {e}")
        add_error(state, "decompose", str(e), is_fatal=True)

    return state


@traceable(name="stage2_consistency_check")
async def consistency_check_decompose_node(state: WorkflowState, config: RunnableConfig) -> WorkflowState:
    """Gate the decomposition: root text against all of its children."""
    start_time = time.time()
    state["current_stage"] = "consistency_check_decompose"

    try:
        gate = ConsistencyGate(
            get_transform(config),
            threshold=state["threshold"],
            call_delay=state["inter_call_delay"],
        )
        result = await gate.check(state["tree"], ROOT_SCOPE)

        state["consistency_score"] = result.score
        state["feedback"] = build_feedback("decomposition", result)
        state["previous_output"] = format_previous_output(result)
        state["decompose_gate"] = result.to_dict()
        state["decompose_decision"] = _record_gate(state, "Decomposition", result, state["retry_count"])

        add_stage_timing(state, "consistency_check_decompose", _elapsed_ms(start_time))

    except Exception as e:
        logger.error(f"Decomposition consistency check failed: {e}")
        add_error(state, "consistency_check_decompose", str(e), is_fatal=True)

    return state


@traceable(name="stage2_refine_prompt")
async def refine_decompose_prompt_node(state: WorkflowState, config: RunnableConfig) -> WorkflowState:
    """Ask for a better decomposition prompt; keep the current one if none comes back."""
    start_time = time.time()
    state["current_stage"] = "refine_decompose_prompt"
    state["retry_count"] += 1

    try:
        transform = get_transform(config)
        original = state.get("decompose_prompt") or transform.default_prompt(DECOMPOSITION_KEY)

        refined = await transform.refine_prompt(
            original,
            state["input_text"],
            state.get("previous_output", ""),
            state.get("feedback", ""),
        )
        if refined:
            state["decompose_prompt"] = refined
        else:
            logger.warning("Prompt refinement returned nothing, reusing the current prompt")
            state["decompose_prompt"] = original or None

        add_stage_timing(state, "refine_decompose_prompt", _elapsed_ms(start_time))
        logger.info(f"Decomposition prompt refined (retry {state['retry_count']}/{state['max_retries']})")

    except Exception as e:
        logger.error(f"Decomposition prompt refinement failed: {e}")
        add_error(state, "refine_decompose_prompt", str(e), is_fatal=True)

    return state


# =============================================================================
# STAGE 3: SCHEDULE EXTRACTION NODE
# =============================================================================

@traceable(name="stage3_schedule_extract")
async def schedule_extract_node(state: WorkflowState, config: RunnableConfig) -> WorkflowState:
    """Stage 3: Summarize each Schedule node into a ScheduleDetails child."""
    start_time = time.time()
    state["current_stage"] = "schedule_extract"

    try:
        from ..stages import extract_schedule

        result = await extract_schedule(state["tree"], get_transform(config), state["inter_call_delay"])
        if result.failed:
            add_error(state, "schedule_extract", result.reason, is_fatal=True)
        else:
            add_stage_timing(state, "schedule_extract", _elapsed_ms(start_time))
            logger.info(f"Stage 3 complete: {result.calls} schedule calls")

    except Exception as e:
        logger.error(f"Schedule extraction failed: {e}")
        add_error(state, "schedule_extract", str(e), is_fatal=True)

    return state


# =============================================================================
# STAGE 4: CONDITION EXTRACTION LOOP
# =============================================================================

@traceable(name="stage4_condition_extract")
async def condition_extract_node(state: WorkflowState, config: RunnableConfig) -> WorkflowState:
    """Stage 4: Replace the children of every NormalStatements node with Segments."""
    start_time = time.time()
    state["current_stage"] = "condition_extract"

    try:
        from ..stages import extract_conditions

        result = await extract_conditions(
            state["tree"],
            get_transform(config),
            prompt_override=state.get("condition_prompt"),
            input_text=state["input_text"],
            call_delay=state["inter_call_delay"],
        )
        if result.failed:
            add_error(state, "condition_extract", result.reason, is_fatal=True)
        else:
            if result.reason:
                state["warnings"].append(f"condition_extract: {result.reason}")
            segments = len(result.tree.find_all_by_type(NodeType.SEGMENT))
            add_stage_timing(state, "condition_extract", _elapsed_ms(start_time))
            logger.info(
                f"Stage 4 complete: {segments} segments "
                f"(attempt {state['condition_retry_count'] + 1})"
            )

    except Exception as e:
        logger.error(f"Condition extraction failed: {e}")
        add_error(state, "condition_extract", str(e), is_fatal=True)

    return state


@traceable(name="stage4_consistency_check")
async def consistency_check_condition_node(state: WorkflowState, config: RunnableConfig) -> WorkflowState:
    """Gate condition extraction: each NormalStatements node against its Segments only."""
    start_time = time.time()
    state["current_stage"] = "consistency_check_condition"

    try:
        gate = ConsistencyGate(
            get_transform(config),
            threshold=state["threshold"],
            call_delay=state["inter_call_delay"],
        )
        result = await gate.check(state["tree"], CONDITION_SCOPE)

        state["condition_consistency_score"] = result.score
        state["condition_feedback"] = build_feedback("condition extraction", result)
        state["condition_previous_output"] = format_previous_output(result)
        state["condition_gate"] = result.to_dict()
        state["condition_decision"] = _record_gate(
            state, "Condition extraction", result, state["condition_retry_count"]
        )

        add_stage_timing(state, "consistency_check_condition", _elapsed_ms(start_time))

    except Exception as e:
        logger.error(f"Condition consistency check failed: {e}")
        add_error(state, "consistency_check_condition", str(e), is_fatal=True)

    return state


@traceable(name="stage4_refine_prompt")
async def refine_condition_prompt_node(state: WorkflowState, config: RunnableConfig) -> WorkflowState:
    """Ask for a better condition extraction prompt."""
    start_time = time.time()
    state["current_stage"] = "refine_condition_prompt"
    state["condition_retry_count"] += 1

    try:
        transform = get_transform(config)
        original = state.get("condition_prompt") or transform.default_prompt(CONDITION_KEY)
        statements = "\n".join(n.text for n in state["tree"].find_all_by_type(NodeType.NORMAL_STATEMENTS))

        refined = await transform.refine_prompt(
            original,
            statements or state["input_text"],
            state.get("condition_previous_output", ""),
            state.get("condition_feedback", ""),
        )
        if refined:
            state["condition_prompt"] = refined
        else:
            logger.warning("Prompt refinement returned nothing, reusing the current prompt")
            state["condition_prompt"] = original or None

        add_stage_timing(state, "refine_condition_prompt", _elapsed_ms(start_time))
        logger.info(
            f"Condition prompt refined (retry {state['condition_retry_count']}/{state['max_retries']})"
        )

    except Exception as e:
        logger.error(f"Condition prompt refinement failed: {e}")
        add_error(state, "refine_condition_prompt", str(e), is_fatal=True)

    return state


# =============================================================================
# STAGE 5: RULE CONVERSION NODE
# =============================================================================

@traceable(name="stage5_rule_convert")
async def rule_convert_node(state: WorkflowState, config: RunnableConfig) -> WorkflowState:
    """Stage 5: Expand every Segment into segments/Action/Policy/Schedule/Sampling."""
    start_time = time.time()
    state["current_stage"] = "rule_convert"

    try:
        from ..stages import convert_rules

        result = await convert_rules(state["tree"], get_transform(config), state["inter_call_delay"])
        if result.failed:
            add_error(state, "rule_convert", result.reason, is_fatal=True)
        else:
            if result.reason:
                state["warnings"].append(f"rule_convert: {result.reason}")
            add_stage_timing(state, "rule_convert", _elapsed_ms(start_time))
            logger.info(f"Stage 5 complete: {result.calls} segments converted")

    except Exception as e:
        logger.error(f"Rule conversion failed: {e}")
        add_error(state, "rule_convert", str(e), is_fatal=True)

    return state


# =============================================================================
# STAGE 6: ACTION EXTRACTION NODE
# =============================================================================

@traceable(name="stage6_action_extract")
async def action_extract_node(state: WorkflowState, config: RunnableConfig) -> WorkflowState:
    """Stage 6: Add an ActionDetails summary under each Action node."""
    start_time = time.time()
    state["current_stage"] = "action_extract"

    try:
        from ..stages import extract_actions

        result = await extract_actions(state["tree"], get_transform(config), state["inter_call_delay"])
        if result.failed:
            add_error(state, "action_extract", result.reason, is_fatal=True)
        else:
            add_stage_timing(state, "action_extract", _elapsed_ms(start_time))
            logger.info(f"Stage 6 complete: {result.calls} actions extracted")

    except Exception as e:
        logger.error(f"Action extraction failed: {e}")
        add_error(state, "action_extract", str(e), is_fatal=True)

    return state


# =============================================================================
# STAGE 7: IF CONDITION NODE
# =============================================================================

@traceable(name="stage7_if_condition")
async def if_condition_node(state: WorkflowState, config: RunnableConfig) -> WorkflowState:
    """Stage 7: Turn each segments node into one ``if (...)`` expression."""
    start_time = time.time()
    state["current_stage"] = "if_condition"

    try:
        from ..stages import generate_if_conditions

        result = await generate_if_conditions(
            state["tree"],
            get_transform(config),
            kpi_context=state.get("kpi_context", ""),
            call_delay=state["inter_call_delay"],
        )
        if result.failed:
            add_error(state, "if_condition", result.reason, is_fatal=True)
        else:
            add_stage_timing(state, "if_condition", _elapsed_ms(start_time))
            logger.info(f"Stage 7 complete: {result.calls} IF calls")

    except Exception as e:
        logger.error(f"IF condition generation failed: {e}")
        add_error(state, "if_condition", str(e), is_fatal=True)

    return state


# =============================================================================
# STAGE 8: RENDER OUTPUT NODE
# =============================================================================

@traceable(name="stage8_render_output")
async def render_output_node(state: WorkflowState, config: RunnableConfig) -> WorkflowState:
    """
    Stage 8: Render the finished tree.

    Produces the structured rule JSON and the ASCII tree; neither touches
    the tree.
    """
    start_time = time.time()
    state["current_stage"] = "render_output"

    try:
        from ..converters import AsciiTreeRenderer, FinalRuleJsonRenderer

        settings = get_settings(config)
        tree = state["tree"]

        if settings.RENDER_JSON:
            state["rule_json"] = FinalRuleJsonRenderer().render(tree)
        if settings.RENDER_ASCII:
            state["ascii_tree"] = AsciiTreeRenderer().render(tree)

        state["final_status"] = "BEST_EFFORT" if state.get("low_confidence") else "OK"

        add_stage_timing(state, "render_output", _elapsed_ms(start_time))
        logger.info(
            f"Stage 8 complete: {tree.node_count()} nodes, "
            f"{len(state['rule_json'])} rule blocks, status={state['final_status']}"
        )

    except Exception as e:
        logger.error(f"Rendering failed: {e}")
        add_error(state, "render_output", str(e), is_fatal=True)

    return state


# =============================================================================
# TERMINAL NODES
# =============================================================================

@traceable(name="aborted_invalid")
async def aborted_invalid_node(state: WorkflowState) -> WorkflowState:
    """Terminal: the input was rejected before any tree was built."""
    state["current_stage"] = "aborted_invalid"
    issues = state.get("validation", {}).get("issues_detected", [])
    state["tree"] = None
    state["final_status"] = "INVALID"
    state["failure_reason"] = "; ".join(issues)
    logger.warning(f"Rule rejected: {state['failure_reason']}")
    return state


@traceable(name="failed")
async def failed_node(state: WorkflowState) -> WorkflowState:
    """Terminal: a stage could not produce output."""
    state["current_stage"] = "failed"
    state["final_status"] = "FAIL"
    logger.error(f"Workflow failed: {state.get('failure_reason', 'unknown error')}")
    return state


# =============================================================================
# ROUTING FUNCTIONS
# =============================================================================

def should_abort(state: WorkflowState) -> str:
    """Check if pipeline should abort due to fatal error."""
    if state.get("workflow_failed"):
        return "abort"
    return "continue"


def route_after_validation(state: WorkflowState) -> str:
    if state.get("workflow_failed"):
        return "abort"
    if not state.get("validation", {}).get("is_valid", False):
        return "invalid"
    return "continue"


def route_after_decompose_gate(state: WorkflowState) -> str:
    """Refine and retry, or move on (passed or out of retries)."""
    if state.get("workflow_failed"):
        return "abort"
    if state.get("decompose_decision") == RETRY:
        return "refine"
    return "continue"


def route_after_condition_gate(state: WorkflowState) -> str:
    if state.get("workflow_failed"):
        return "abort"
    if state.get("condition_decision") == RETRY:
        return "refine"
    return "continue"
