"""Prompt templates for rule conversion."""

from .rule_prompts import (
    DEFAULT_PROMPTS,
    VALIDATION_SUFFIX,
)

# Registry keys
VALIDATION_KEY = "basic_validator_agent_prompt"
DECOMPOSITION_KEY = "statement_decompostion_agent_prompt"
CONDITION_KEY = "condition_extraction_prompt"
SCHEDULE_KEY = "schedule_parser_prompt"
RULE_CONVERTER_KEY = "rule_converter_prompt"
ACTION_KEY = "action_extraction_prompt"
CONSISTENCY_KEY = "consistency_check_prompt"
REFINEMENT_KEY = "prompt_refinement_prompt"
KPI_MATCHING_KEY = "unified_kpi_matching_prompt"
IF_CONDITION_KEY = "unified_if_condition_prompt"

__all__ = [
    "DEFAULT_PROMPTS",
    "VALIDATION_SUFFIX",
    "VALIDATION_KEY",
    "DECOMPOSITION_KEY",
    "CONDITION_KEY",
    "SCHEDULE_KEY",
    "RULE_CONVERTER_KEY",
    "ACTION_KEY",
    "CONSISTENCY_KEY",
    "REFINEMENT_KEY",
    "KPI_MATCHING_KEY",
    "IF_CONDITION_KEY",
]
