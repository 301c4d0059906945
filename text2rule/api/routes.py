"""FastAPI routes for the rule conversion API."""
import logging
from functools import lru_cache

from fastapi import APIRouter, Depends, HTTPException

from text2rule.converters import FinalRuleJsonRenderer
from text2rule.core.semantic_transform import LLMSemanticTransform, SemanticTransform
from text2rule.graph import run_rule_pipeline
from text2rule.models.rule_tree import RuleTree
from text2rule.models.schemas import (
    ConsistencySummary,
    ConvertRequest,
    ConvertResponse,
    HealthResponse,
    RenderRequest,
)
from text2rule.utils.config import config

logger = logging.getLogger(__name__)

router = APIRouter()


@lru_cache(maxsize=1)
def get_transform() -> SemanticTransform:
    """Shared LLM-backed transform; overridden in tests."""
    return LLMSemanticTransform(settings=config)


def build_convert_response(state: dict) -> ConvertResponse:
    """Map a final WorkflowState onto the API response."""
    tree = state.get("tree")
    consistency = {}
    if state.get("decompose_gate"):
        consistency["decompose"] = ConsistencySummary(
            score=state.get("consistency_score"),
            retries=state.get("retry_count", 0),
            passed=state["decompose_gate"].get("passed", False),
            feedback=state.get("feedback") or None,
        )
    if state.get("condition_gate"):
        consistency["condition"] = ConsistencySummary(
            score=state.get("condition_consistency_score"),
            retries=state.get("condition_retry_count", 0),
            passed=state["condition_gate"].get("passed", False),
            feedback=state.get("condition_feedback") or None,
        )

    return ConvertResponse(
        final_status=state.get("final_status", "FAIL"),
        validation=state.get("validation") or None,
        failure_reason=state.get("failure_reason") or None,
        consistency=consistency,
        tree=tree.to_dict() if tree is not None else None,
        ascii_tree=state.get("ascii_tree", ""),
        rule_json=state.get("rule_json", []),
        stage_timings=state.get("stage_timings", {}),
    )


# ============================================================================
# HEALTH CHECK
# ============================================================================

@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Report API version and configured model."""
    return HealthResponse(
        status="healthy",
        version=config.APP_VERSION,
        model=config.LLM_MODEL,
    )


# ============================================================================
# CONVERSION
# ============================================================================

@router.post("/convert", response_model=ConvertResponse)
async def convert_rule(
    request: ConvertRequest,
    transform: SemanticTransform = Depends(get_transform),
):
    """
    Convert a free-text rule into a rule tree and structured rule JSON.

    A rejected rule is still a 200 with final_status "INVALID" and the
    validator's issues; only unexpected errors become a 500.
    """
    try:
        state = await run_rule_pipeline(
            request.rule_text,
            transform=transform,
            settings=config,
            kpi_context=request.kpi_context,
        )
        return build_convert_response(state)
    except Exception as e:
        logger.error(f"Conversion failed: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/render")
async def render_tree(request: RenderRequest):
    """Render a serialized rule tree into rule JSON without calling the LLM."""
    try:
        tree = RuleTree.from_dict(request.tree)
    except Exception as e:
        raise HTTPException(status_code=400, detail=f"Invalid tree: {e}")

    try:
        return {"rule_json": FinalRuleJsonRenderer().render(tree)}
    except Exception as e:
        logger.error(f"Render failed: {e}")
        raise HTTPException(status_code=500, detail=str(e))
