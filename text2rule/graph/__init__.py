"""LangGraph workflow exports."""
from .workflow import (
    create_rule_workflow,
    run_rule_pipeline,
    run_rule_pipeline_streaming,
)
from .state import WorkflowState, create_initial_state

__all__ = [
    "create_rule_workflow",
    "run_rule_pipeline",
    "run_rule_pipeline_streaming",
    "WorkflowState",
    "create_initial_state",
]
